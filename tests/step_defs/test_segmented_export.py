"""
Step definitions for segmented export scenarios

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: tests/step_defs/test_segmented_export.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: BDD Step Definitions

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Steps for pulls, segment sealing, bucket
                                fallback, retries and verification.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from pytest_bdd import scenarios, given, when, then, parsers

from generators.relay_fakes import FakeObjectWriter, FakeSource, make_chunks
from mongo_relay.config import ExportOptions
from mongo_relay.exceptions import RelayError
from mongo_relay.reader import CollectionCursorReader, PullStatus
from mongo_relay.relay import ExportRelay

# Load all scenarios from the feature file
scenarios('../features/segmented_export.feature')


def _source(bdd_context) -> FakeSource:
    if bdd_context.source is None:
        bdd_context.source = FakeSource({})
    return bdd_context.source


def _writer(bdd_context) -> FakeObjectWriter:
    if bdd_context.writer is None:
        bdd_context.writer = FakeObjectWriter(capacity=bdd_context.capacity)
    return bdd_context.writer


# =============================================================================
# Given Steps - Setup
# =============================================================================

@given(parsers.parse('the transfer buffer holds {capacity:d} bytes'))
def transfer_buffer(bdd_context, capacity):
    bdd_context.capacity = capacity


@given(parsers.parse('a collection "{name}" with {count:d} documents of {size:d} bytes'))
def collection_with_documents(bdd_context, name, count, size):
    _source(bdd_context).collections[name] = make_chunks(name, count, size=size)


@given("the destination bucket exists")
def bucket_exists(bdd_context):
    _writer(bdd_context).bucket_exists = True


@given("the destination bucket does not exist")
def bucket_missing(bdd_context):
    _writer(bdd_context).bucket_exists = False


@given("the destination bucket does not exist and cannot be created")
def bucket_cannot_be_created(bdd_context):
    writer = _writer(bdd_context)
    writer.bucket_exists = False
    writer.create_fails = True


@given(parsers.parse('the next {count:d} uploads fail'))
def uploads_fail(bdd_context, count):
    _writer(bdd_context).fail_uploads = count


@given(parsers.parse('reading document {index:d} of "{name}" fails once'))
def read_fails_once(bdd_context, index, name):
    _source(bdd_context).fail_at.add((name, index))


@given("the destination returns corrupted downloads")
def corrupted_downloads(bdd_context):
    _writer(bdd_context).corrupt_downloads = True


@given("verification is enabled")
def verification_enabled(bdd_context):
    bdd_context.verify = True


# =============================================================================
# When Steps - Actions
# =============================================================================

@when("I pull until the end of the stream")
def pull_until_end(bdd_context):
    reader = CollectionCursorReader(_source(bdd_context))
    while True:
        result = reader.pull(bdd_context.capacity)
        bdd_context.pulls.append(result)
        if result.status is PullStatus.END_OF_STREAM:
            break


@when("I run the export")
def run_export(bdd_context):
    relay = ExportRelay(
        CollectionCursorReader(_source(bdd_context)),
        _writer(bdd_context),
        ExportOptions(verify=bdd_context.verify),
    )
    try:
        bdd_context.last_result = relay.run()
    except RelayError as e:
        bdd_context.last_error = e
        bdd_context.last_result = relay.result


# =============================================================================
# Then Steps - Assertions
# =============================================================================

@then(parsers.parse('pull {index:d} returns {size:d} bytes with status "{status}"'))
def pull_returns(bdd_context, index, size, status):
    result = bdd_context.pulls[index - 1]
    assert len(result.data) == size
    assert result.status.value == status


@then("the pulls together equal the full export")
def pulls_equal_export(bdd_context):
    data = b"".join(result.data for result in bdd_context.pulls)
    assert data == bdd_context.source.full_export()


@then("the export succeeds")
def export_succeeds(bdd_context):
    assert bdd_context.last_error is None
    assert bdd_context.last_result.success


@then(parsers.parse('the export fails with "{error_name}"'))
def export_fails(bdd_context, error_name):
    assert type(bdd_context.last_error).__name__ == error_name
    assert not bdd_context.last_result.success


@then(parsers.parse('{count:d} segments are written'))
def segments_written(bdd_context, count):
    assert len(bdd_context.last_result.segments) == count
    assert len(bdd_context.writer.objects) == count


@then(parsers.parse('segment {index:d} is {size:d} bytes'))
def segment_size(bdd_context, index, size):
    assert bdd_context.last_result.segments[index - 1].size_bytes == size


@then("the segments together equal the full export")
def segments_equal_export(bdd_context):
    data = b"".join(bdd_context.writer.objects.values())
    assert data == bdd_context.source.full_export()


@then(parsers.parse('the bucket was created {count:d} time'))
def bucket_created(bdd_context, count):
    assert bdd_context.writer.create_calls == count

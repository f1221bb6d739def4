"""
Export Relay - Orchestrates pulls and segment uploads

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/relay.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Upload loop rolling to a new segment on
                                every short-buffer pull, as an explicit
                                state machine.
2026-10-19  relay-dev   UPDATE  One write retry, one create-bucket fallback,
                                optional download-and-compare verification.
2026-10-19  relay-dev   UPDATE  A writer that returns without draining the
                                segment fails the export with WriteError.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import uuid

import bson

from .config import ExportOptions
from .exceptions import (
    AuthorizationError,
    BucketNotFoundError,
    IntegrityError,
    RelayError,
    WriteError,
)
from .handlers.base import ObjectWriter
from .reader import CollectionCursorReader, PullStatus, SegmentStream

logger = logging.getLogger(__name__)


# =============================================================================
# Enums and Data Classes
# =============================================================================

class RelayState(Enum):
    """Upload loop states"""
    PULLING = "pulling"
    SEGMENT_SEALING = "segment_sealing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (RelayState.DONE, RelayState.FAILED)


@dataclass
class SegmentRecord:
    """One sealed destination object"""
    key: str
    size_bytes: int
    documents: int
    checksum: str
    verified: bool = False


@dataclass
class ExportResult:
    """Result of an export run"""
    success: bool
    database: str
    state: RelayState = RelayState.PULLING
    segments: List[SegmentRecord] = field(default_factory=list)
    documents: int = 0
    bytes_written: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "database": self.database,
            "state": self.state.value,
            "segments": [s.__dict__ for s in self.segments],
            "documents": self.documents,
            "bytes_written": self.bytes_written,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }


# =============================================================================
# Core Utility Functions
# =============================================================================

def next_state(state: RelayState, status: Optional[PullStatus]) -> RelayState:
    """
    Transition of the upload loop given how the current segment's stream ended.

    Args:
        state: Current state
        status: Final pull status of the current segment

    Returns:
        The following state

    Raises:
        ValueError: If ``state`` is terminal
    """
    if state in TERMINAL_STATES:
        raise ValueError(f"No transition out of terminal state {state.value}")

    if status not in (PullStatus.SHORT_BUFFER, PullStatus.END_OF_STREAM):
        return RelayState.FAILED

    if state is RelayState.PULLING:
        return RelayState.SEGMENT_SEALING

    # SEGMENT_SEALING
    if status is PullStatus.SHORT_BUFFER:
        return RelayState.PULLING
    return RelayState.DONE


def write_with_fallback(upload: Callable[[], None], writer: ObjectWriter,
                        rewind: Callable[[], None] = lambda: None,
                        allow_bucket_create: bool = True) -> bool:
    """
    Run ``upload`` with one retry and one create-bucket fallback.

    Args:
        upload: Performs the write
        writer: Writer used for the bucket creation
        rewind: Resets the upload source before another attempt
        allow_bucket_create: Whether a missing bucket may still be created

    Returns:
        True if a bucket creation was attempted

    Raises:
        WriteError: When the retry or the fallback also fails
    """
    retried = False
    created = False

    while True:
        try:
            upload()
            return created
        except BucketNotFoundError:
            if created or not allow_bucket_create:
                raise
            created = True
            logger.warning(f"Bucket {writer.bucket} not found, creating it")
            writer.create_bucket()
        except AuthorizationError:
            raise
        except WriteError as e:
            if retried:
                raise
            retried = True
            logger.warning(f"Write failed, retrying once: {e}")
        rewind()


class SegmentNamer:
    """
    Names segments ``<database>/<YYYY-MM-DD_HH:MM:SS>_<run>-<seq>.<ext>``.

    The random run id separates concurrent runs; the sequence separates
    segments sealed within the same second.
    """

    TIME_FORMAT = "%Y-%m-%d_%H:%M:%S"

    def __init__(self, database: str, extension: str = "bson",
                 clock: Callable[[], datetime] = datetime.now,
                 run_id: Optional[str] = None):
        self.database = database
        self.extension = extension
        self.clock = clock
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self._sequence = 0

    def next_name(self) -> str:
        self._sequence += 1
        stamp = self.clock().strftime(self.TIME_FORMAT)
        return f"{self.database}/{stamp}_{self.run_id}-{self._sequence:04d}.{self.extension}"


# =============================================================================
# Export Relay Class
# =============================================================================

class ExportRelay:
    """
    Drives one export: pull, write, seal, repeat.

    Every pull that stops short seals the current segment and opens the
    next; the reader's resumption state carries over untouched, so segment
    boundaries never lose or repeat a document.
    """

    def __init__(self, reader: CollectionCursorReader, writer: ObjectWriter,
                 options: Optional[ExportOptions] = None,
                 namer: Optional[SegmentNamer] = None):
        """
        Initialize the relay.

        Args:
            reader: Cursor reader over the source
            writer: Object writer for the destination bucket
            options: Run options (debug, verify, retries)
            namer: Segment namer, defaults to one for the source database
        """
        self.reader = reader
        self.writer = writer
        self.options = options or ExportOptions()
        self.namer = namer or SegmentNamer(
            reader.source.database_name, extension=self.options.extension
        )
        self.result: Optional[ExportResult] = None
        self._bucket_create_attempted = False

    def cancel(self):
        """Cancel the export at the next pull"""
        self.reader.cancel()

    def run(self) -> ExportResult:
        """
        Execute the export.

        Returns:
            ExportResult with every sealed segment

        Raises:
            RelayError: On any fatal condition; ``self.result`` still
                describes the segments sealed before the failure
        """
        result = ExportResult(
            success=False,
            database=self.reader.source.database_name,
            started_at=datetime.now(),
        )
        self.result = result
        state = RelayState.PULLING
        stream: Optional[SegmentStream] = None
        key = ""

        logger.info(f"Starting export of {result.database}")
        try:
            self.writer.connect()

            while state not in TERMINAL_STATES:
                if state is RelayState.PULLING:
                    key, stream = self._write_segment()
                else:
                    self._seal(key, stream, result)
                state = next_state(state, stream.status)

            result.success = state is RelayState.DONE

        except RelayError as e:
            state = RelayState.FAILED
            result.error_message = str(e)
            logger.error(f"Export of {result.database} failed: {e}")
            raise

        finally:
            result.state = state
            result.completed_at = datetime.now()
            self.reader.source.disconnect()
            self.writer.disconnect()

        logger.info(
            f"Export of {result.database} complete: {len(result.segments)} segments, "
            f"{result.documents} documents, {result.bytes_written} bytes"
        )
        return result

    def _write_segment(self) -> Tuple[str, SegmentStream]:
        key = self.writer.object_key(self.namer.next_name())
        stream = SegmentStream(self.reader, read_retries=self.options.read_retries)

        logger.info(f"Uploading segment {key}")
        created = write_with_fallback(
            lambda: self.writer.upload_stream(key, stream),
            self.writer,
            rewind=stream.rewind,
            allow_bucket_create=not self._bucket_create_attempted,
        )
        self._bucket_create_attempted = self._bucket_create_attempted or created
        if not stream.finished:
            raise WriteError(f"Writer returned before segment {key} was fully read")
        return key, stream

    def _seal(self, key: str, stream: SegmentStream, result: ExportResult) -> None:
        data = stream.emitted
        record = SegmentRecord(
            key=key,
            size_bytes=len(data),
            documents=stream.documents,
            checksum=self.writer.get_checksum(data),
        )

        if self.options.verify:
            downloaded = self.writer.download_bytes(key)
            if downloaded != data:
                raise IntegrityError(
                    f"Segment {key}: uploaded {len(data)} bytes, downloaded {len(downloaded)} "
                    f"bytes that differ"
                )
            record.verified = True

        result.segments.append(record)
        result.documents += record.documents
        result.bytes_written += record.size_bytes
        logger.info(f"Sealed segment {key} ({record.size_bytes} bytes, {record.documents} documents)")


# =============================================================================
# Export-only and smoke-test helpers
# =============================================================================

def measure_export(reader: CollectionCursorReader, capacity: int,
                   read_retries: int = 3) -> Tuple[int, int]:
    """
    Read the whole source without uploading.

    Args:
        reader: Cursor reader over the source
        capacity: Pull capacity, as the writer's buffer would be
        read_retries: Transient retries per pull

    Returns:
        Tuple of (documents, bytes)
    """
    documents = 0
    size = 0
    try:
        while True:
            stream = SegmentStream(reader, read_retries=read_retries)
            size += len(stream.read(capacity))
            documents += stream.documents
            if stream.status is PullStatus.END_OF_STREAM:
                return documents, size
    finally:
        reader.source.disconnect()


def upload_sample(writer: ObjectWriter, database: str = "testdb",
                  document: Optional[Dict[str, Any]] = None,
                  verify: bool = False) -> str:
    """
    Upload one small BSON document as a destination smoke test.

    Returns:
        Key of the uploaded object

    Raises:
        WriteError: If the upload fails after retry and bucket fallback
        IntegrityError: If ``verify`` is set and the read-back differs
    """
    data = bson.encode(document or {"testKey": "testValue"})
    key = writer.object_key(SegmentNamer(database).next_name())

    writer.connect()
    try:
        write_with_fallback(lambda: writer.upload_bytes(data, key), writer)
        if verify:
            if not writer.object_exists(key):
                raise IntegrityError(f"Sample object {key} not found after upload")
            if writer.download_bytes(key) != data:
                raise IntegrityError(f"Sample object {key} differs from what was uploaded")
    finally:
        writer.disconnect()

    logger.info(f"Uploaded sample object {key}")
    return key

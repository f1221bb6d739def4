"""
Unit tests for the command line interface

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: tests/unit/test_cli.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Unit Test Suite

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Unit tests for argument handling and the
                                parse, test and store commands.
2026-10-19  relay-dev   UPDATE  Sealed scope keys and the scope secret check.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

import json

import pytest

from generators.relay_fakes import FakeObjectWriter, FakeSource, make_chunks
from mongo_relay import cli
from mongo_relay.access import parse_capability


@pytest.fixture
def patched_handlers(monkeypatch):
    """Replace the MongoDB handler and writer factory with in-memory doubles"""
    source = FakeSource({"orders": make_chunks("order", 3)}, database="inventory")
    writer = FakeObjectWriter(capacity=10 ** 6)
    created = {}

    def make_source(config):
        created["source_config"] = config
        return source

    def make_writer(capability, config):
        created["capability"] = capability
        return writer

    monkeypatch.setattr(cli, "MongoSourceHandler", make_source)
    monkeypatch.setattr(cli.WriterFactory, "create", make_writer)
    return source, writer, created


class TestSplitArguments:
    """Tests for free-form positional arguments"""

    def test_files_then_key_words(self):
        args = cli.split_arguments(["db.json", "s.json", "key", "restrict"], file_slots=2)

        assert args.files == ["db.json", "s.json"]
        assert args.print_key
        assert args.restrict
        assert not args.debug

    def test_debug_anywhere(self):
        args = cli.split_arguments(["debug", "db.json"], file_slots=1)

        assert args.debug
        assert args.files == ["db.json"]

    def test_restrict_requires_key(self):
        args = cli.split_arguments(["s.json", "restrict"], file_slots=1)

        assert not args.print_key
        assert not args.restrict

    def test_key_without_files(self):
        args = cli.split_arguments(["key"], file_slots=2)

        assert args.files == []
        assert args.print_key

    def test_extra_files_ignored(self):
        args = cli.split_arguments(["a", "b", "c"], file_slots=1)

        assert args.files == ["a"]


class TestCommands:
    """Tests for the parse, test and store commands"""

    def test_parse_reports_size(self, patched_handlers, db_config_file, capsys):
        source, _, created = patched_handlers

        assert cli.main(["parse", db_config_file]) == 0

        out = capsys.readouterr().out
        assert "Complete!" in out
        assert "3 documents, 300 bytes" in out
        assert created["source_config"].database == "inventory"
        assert source.disconnects == 1

    def test_parse_alias(self, patched_handlers, db_config_file):
        assert cli.main(["p", db_config_file, "debug"]) == 0

    def test_test_uploads_sample(self, patched_handlers, storage_config_file, capsys):
        _, writer, _ = patched_handlers

        assert cli.main(["t", storage_config_file]) == 0

        assert len(writer.objects) == 1
        out = capsys.readouterr().out
        assert "Uploaded sample object" in out
        assert "Serialized Scope Key" not in out

    def test_store_exports_everything(self, patched_handlers, db_config_file,
                                      storage_config_file, capsys):
        source, writer, created = patched_handlers

        assert cli.main(["store", db_config_file, storage_config_file]) == 0

        assert b"".join(writer.objects.values()) == source.full_export()
        assert created["capability"].bucket == "backups"
        assert created["capability"].prefix == "nightly/"
        assert "Stored 3 documents (300 bytes) from inventory in 1 segment(s)" in capsys.readouterr().out

    def test_store_prints_key(self, patched_handlers, db_config_file,
                              storage_config_file, scope_secret, capsys):
        assert cli.main(["s", db_config_file, storage_config_file, "key"]) == 0

        line = [l for l in capsys.readouterr().out.splitlines()
                if l.startswith("Serialized Scope Key: ")][0]
        capability = parse_capability(line.split(": ", 1)[1], scope_secret)
        assert capability.can_delete
        assert capability.bucket == "backups"

    def test_store_prints_restricted_key(self, patched_handlers, db_config_file,
                                         storage_config_file, scope_secret, capsys):
        assert cli.main(["s", db_config_file, storage_config_file, "key", "restrict"]) == 0

        out = capsys.readouterr().out
        line = [l for l in out.splitlines()
                if l.startswith("Restricted Serialized Scope Key: ")][0]
        capability = parse_capability(line.split(": ", 1)[1], scope_secret)
        assert not capability.can_delete
        assert capability.can_read
        assert "S3 gateway grants it full rights" in out

    def test_key_without_scope_secret_fails_before_export(self, patched_handlers, db_config_file,
                                                         tmp_path, capsys):
        _, writer, _ = patched_handlers
        path = tmp_path / "no_secret.json"
        path.write_text(json.dumps({"apikey": "AKIAEXAMPLE:s3cr3t", "bucket": "backups"}))

        assert cli.main(["store", db_config_file, str(path), "key"]) == 1

        assert writer.objects == {}
        assert "scopeSecret" in capsys.readouterr().err

    def test_missing_config_returns_error(self, tmp_path, capsys):
        missing = str(tmp_path / "absent.json")

        assert cli.main(["store", missing, missing]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_export_failure_returns_error(self, patched_handlers, db_config_file,
                                          storage_config_file, capsys):
        _, writer, _ = patched_handlers
        writer.fail_uploads = 2

        assert cli.main(["store", db_config_file, storage_config_file]) == 1
        assert "connection reset" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--version"])

        assert exc.value.code == 0
        assert "1.0.0" in capsys.readouterr().out

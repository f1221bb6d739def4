"""
Command Line Interface - parse, test and store commands

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/cli.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Command Line Tool

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  argparse front end: export-only size report,
                                destination smoke test, full export.
2026-10-19  relay-dev   UPDATE  Key printing needs a scope secret and says
                                the gateway does not enforce restrictions.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Optional
import argparse
import logging
import sys

from . import __version__
from .access import access_from_config, resolve_access, shareable_token
from .config import (
    DEFAULT_DB_CONFIG_FILE,
    DEFAULT_STORAGE_CONFIG_FILE,
    ExportOptions,
    load_destination_config,
    load_source_config,
)
from .exceptions import ConfigurationError, RelayError
from .handlers.factory import WriterFactory
from .handlers.mongodb import MongoSourceHandler
from .reader import CollectionCursorReader
from .relay import ExportRelay, measure_export, upload_sample

logger = logging.getLogger(__name__)

DEBUG_TOKEN = "debug"
KEY_TOKEN = "key"
RESTRICT_TOKEN = "restrict"


@dataclass
class CommandArgs:
    """Positional arguments of a command, with the debug token pulled out"""
    debug: bool = False
    files: List[str] = field(default_factory=list)
    print_key: bool = False
    restrict: bool = False


def split_arguments(values: List[str], file_slots: int) -> CommandArgs:
    """
    Sort free-form positional arguments.

    ``debug`` may appear anywhere. The first ``file_slots`` other values are
    configuration paths; after them come the optional ``key`` and
    ``restrict`` words.
    """
    parsed = CommandArgs()
    extras = []
    for value in values:
        if value == DEBUG_TOKEN:
            parsed.debug = True
        elif len(parsed.files) < file_slots and value not in (KEY_TOKEN, RESTRICT_TOKEN):
            parsed.files.append(value)
        else:
            extras.append(value)

    parsed.print_key = KEY_TOKEN in extras
    parsed.restrict = parsed.print_key and RESTRICT_TOKEN in extras
    return parsed


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not debug:
        # botocore is chatty at INFO when retrying
        logging.getLogger("botocore").setLevel(logging.WARNING)


def _file_or_default(files: List[str], index: int, default: str) -> str:
    return files[index] if len(files) > index else default


def cmd_parse(values: List[str]) -> int:
    """Read every collection and report the export size"""
    args = split_arguments(values, file_slots=1)
    configure_logging(args.debug)
    options = ExportOptions(debug=args.debug)

    source_config = load_source_config(_file_or_default(args.files, 0, DEFAULT_DB_CONFIG_FILE))
    source = MongoSourceHandler(source_config)
    reader = CollectionCursorReader(source, debug=options.debug)

    documents, size = measure_export(reader, options.buffer_size, options.read_retries)
    print("Reading ALL collections from the MongoDB database...Complete!")
    print(f"Database {source.database_name}: {documents} documents, {size} bytes")
    return 0


def cmd_test(values: List[str]) -> int:
    """Upload a sample object to the configured bucket"""
    args = split_arguments(values, file_slots=1)
    configure_logging(args.debug)

    dest_config = load_destination_config(
        _file_or_default(args.files, 0, DEFAULT_STORAGE_CONFIG_FILE)
    )
    _check_key_request(args, dest_config)
    capability = resolve_access(access_from_config(dest_config))
    writer = WriterFactory.create(capability, dest_config)

    key = upload_sample(writer, verify=args.debug or dest_config.verify)
    print(f"Uploaded sample object to {capability.bucket}/{key}")
    _print_key(args, capability, dest_config)
    return 0


def cmd_store(values: List[str]) -> int:
    """Export every collection into the configured bucket"""
    args = split_arguments(values, file_slots=2)
    configure_logging(args.debug)

    source_config = load_source_config(_file_or_default(args.files, 0, DEFAULT_DB_CONFIG_FILE))
    dest_config = load_destination_config(
        _file_or_default(args.files, 1, DEFAULT_STORAGE_CONFIG_FILE)
    )
    _check_key_request(args, dest_config)
    options = ExportOptions(
        debug=args.debug,
        verify=args.debug or dest_config.verify,
        buffer_size=dest_config.buffer_size,
    )

    capability = resolve_access(access_from_config(dest_config))
    writer = WriterFactory.create(capability, dest_config)
    reader = CollectionCursorReader(MongoSourceHandler(source_config), debug=options.debug)
    relay = ExportRelay(reader, writer, options)

    result = relay.run()
    print(
        f"Stored {result.documents} documents ({result.bytes_written} bytes) from "
        f"{result.database} in {len(result.segments)} segment(s)"
    )
    for segment in result.segments:
        print(f"  {capability.bucket}/{segment.key}  {segment.size_bytes} bytes  {segment.checksum}")
    _print_key(args, capability, dest_config)
    return 0


def _check_key_request(args: CommandArgs, dest_config) -> None:
    # fail before the export rather than after it
    if args.print_key and not dest_config.scope_secret:
        raise ConfigurationError(
            "Printing a scope key requires 'scopeSecret' in the storage configuration"
        )


def _print_key(args: CommandArgs, capability, dest_config) -> None:
    if not args.print_key:
        return
    token = shareable_token(capability, dest_config, restrict=args.restrict)
    label = "Restricted Serialized Scope Key" if args.restrict else "Serialized Scope Key"
    print(f"{label}: {token}")
    if args.restrict:
        print(
            "Note: restrictions are enforced by mongo-relay only. The key embeds the "
            "root credential and the S3 gateway grants it full rights."
        )


COMMANDS = {
    "parse": cmd_parse,
    "test": cmd_test,
    "store": cmd_store,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mongo-relay",
        description="Back up all MongoDB collections to S3-compatible object storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s parse ./config/db_property.json
  %(prog)s test ./config/storj_config.json key restrict
  %(prog)s store ./config/db_property.json ./config/storj_config.json debug
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    parse_parser = subparsers.add_parser(
        "parse", aliases=["p"],
        help="Read MongoDB properties, fetch ALL collections and report the size",
    )
    parse_parser.add_argument("args", nargs="*", help="[db_config] [debug]")

    test_parser = subparsers.add_parser(
        "test", aliases=["t"],
        help="Read storage configuration and upload a sample object",
    )
    test_parser.add_argument("args", nargs="*", help="[storage_config] [key [restrict]] [debug]")

    store_parser = subparsers.add_parser(
        "store", aliases=["s"],
        help="Transfer ALL collections into the bucket in BSON format",
    )
    store_parser.add_argument(
        "args", nargs="*", help="[db_config] [storage_config] [key [restrict]] [debug]"
    )
    return parser


ALIASES = {"p": "parse", "t": "test", "s": "store"}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    parsed = parser.parse_args(argv)

    if not parsed.command:
        parser.print_help()
        return 1

    command = ALIASES.get(parsed.command, parsed.command)
    try:
        return COMMANDS[command](parsed.args)
    except (RelayError, ValueError) as e:
        logger.error(f"{command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

"""
Mongo Relay - Segmented streaming export of MongoDB into object storage

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/__init__.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Package Initialization

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Main package initialization with version
                                and public API exports.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

__version__ = "1.0.0"
__author__ = "Mongo Relay Contributors"
__license__ = "MIT"

from .reader import CollectionCursorReader, PullStatus, ReadCursorState, SegmentStream
from .relay import ExportRelay, ExportResult, RelayState, SegmentNamer
from .access import Capability, DerivedAccess, OpaqueToken, resolve_access

__all__ = [
    "CollectionCursorReader",
    "PullStatus",
    "ReadCursorState",
    "SegmentStream",
    "ExportRelay",
    "ExportResult",
    "RelayState",
    "SegmentNamer",
    "Capability",
    "DerivedAccess",
    "OpaqueToken",
    "resolve_access",
    "__version__",
]

"""
Handlers Package - Document source and object store writers

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/handlers/__init__.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Package Initialization

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Initial package structure
-------------------------------------------------------------------------------
===============================================================================
"""

from .base import ObjectWriter, SourceHandler
from .mongodb import MongoSourceHandler
from .cloud_storage import S3ObjectWriter, map_client_error
from .factory import WriterFactory

__all__ = [
    "SourceHandler",
    "ObjectWriter",
    "MongoSourceHandler",
    "S3ObjectWriter",
    "map_client_error",
    "WriterFactory",
]

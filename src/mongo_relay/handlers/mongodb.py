"""
MongoDB Source Handler - Direct MongoDB connection handler

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/handlers/mongodb.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  MongoDB source handler: lazy connection,
                                collection enumeration and raw BSON
                                document cursors via pymongo.
2026-10-19  relay-dev   UPDATE  Cursor acquisition bounded by the pass
                                timeout; server-side skip over _id order.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from typing import Iterator, List, Optional
from urllib.parse import quote_plus
import logging

from bson.codec_options import CodecOptions
from bson.raw_bson import RawBSONDocument
from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from ..config import SourceConfig
from ..exceptions import EnumerationError, SourceConnectionError, TransientReadError
from .base import SourceHandler

logger = logging.getLogger(__name__)

RAW_CODEC_OPTIONS = CodecOptions(document_class=RawBSONDocument)


class MongoSourceHandler(SourceHandler):
    """
    Source handler for a MongoDB database.

    Documents are read as RawBSONDocument so each chunk is the exact BSON
    the server sent, with no decode/encode round trip.
    """

    def __init__(self, config: SourceConfig, client_factory=MongoClient):
        """
        Initialize MongoDB handler.

        Args:
            config: MongoDB connection properties
            client_factory: Callable building the client (injected in tests)
        """
        self.config = config
        self._client_factory = client_factory
        self._client = None
        self._db = None
        self._collection_names: Optional[List[str]] = None

    @property
    def database_name(self) -> str:
        return self.config.database

    @property
    def timeout_ms(self) -> int:
        return int(self.config.timeout * 1000)

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    def _build_connection_string(self) -> str:
        """Build MongoDB connection string"""
        if self.config.username and self.config.password:
            auth = f"{quote_plus(self.config.username)}:{quote_plus(self.config.password)}@"
        else:
            auth = ""

        host_port = f"{self.config.hostname}:{self.config.port}"

        option_str = ""
        if self.config.auth_source:
            option_str = f"?authSource={self.config.auth_source}"

        return f"mongodb://{auth}{host_port}/{self.config.database}{option_str}"

    def connect(self) -> None:
        """Establish connection to MongoDB and ping it"""
        if self.is_connected:
            return

        logger.info(f"Connecting to MongoDB: {self.config.hostname}:{self.config.port}")
        try:
            self._client = self._client_factory(
                self._build_connection_string(),
                serverSelectionTimeoutMS=self.timeout_ms,
                connectTimeoutMS=self.timeout_ms,
                socketTimeoutMS=self.timeout_ms,
            )
            self._client.admin.command("ping")
        except PyMongoError as e:
            self.disconnect()
            raise SourceConnectionError(
                f"Failed to connect to MongoDB at {self.config.hostname}:{self.config.port}: {e}"
            ) from e

        self._db = self._client[self.config.database]
        logger.info("Successfully connected to MongoDB")

    def disconnect(self) -> None:
        """Close MongoDB connection"""
        if self._client is not None:
            self._client.close()
            logger.info("Disconnected from MongoDB")
        self._client = None
        self._db = None

    def collection_names(self) -> List[str]:
        """List all collections once; later calls return the cached list"""
        if self._collection_names is not None:
            return list(self._collection_names)

        self.connect()
        try:
            names = self._db.list_collection_names()
        except PyMongoError as e:
            raise EnumerationError(f"Failed to retrieve collection names: {e}") from e

        self._collection_names = sorted(names)
        logger.info(
            f"Found {len(self._collection_names)} collections in {self.database_name}"
        )
        return list(self._collection_names)

    def iter_documents(self, collection: str, skip: int = 0) -> Iterator[bytes]:
        """Yield raw BSON for every document, ordered by _id"""
        self.connect()
        coll = self._db.get_collection(collection, codec_options=RAW_CODEC_OPTIONS)

        try:
            cursor = coll.find(
                {},
                sort=[("_id", ASCENDING)],
                skip=skip,
                max_time_ms=self.timeout_ms,
            )
            with cursor:
                for document in cursor:
                    yield document.raw
        except PyMongoError as e:
            raise TransientReadError(
                f"Cursor over {collection} failed after skip={skip}: {e}"
            ) from e

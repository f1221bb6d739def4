"""
Base Handlers - Abstract source and object writer interfaces

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/handlers/base.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Abstract interfaces for the document source
                                and the object store writer.
-------------------------------------------------------------------------------

License: MIT
===============================================================================
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, List, Tuple
import hashlib
import logging

from ..access import Capability

logger = logging.getLogger(__name__)


class SourceHandler(ABC):
    """
    Document source the cursor reader pulls from.

    Usage:
        handler = MongoSourceHandler(config)
        names = handler.collection_names()  # connects on first use
        for chunk in handler.iter_documents(names[0]):
            ...
        handler.disconnect()
    """

    @property
    @abstractmethod
    def database_name(self) -> str:
        """Name of the exported database"""

    @abstractmethod
    def connect(self) -> None:
        """Open the connection. Raises SourceConnectionError."""

    @abstractmethod
    def disconnect(self) -> None:
        """Release the connection"""

    @abstractmethod
    def collection_names(self) -> List[str]:
        """
        Ordered collection names, fetched once per handler.

        Raises:
            EnumerationError: If the listing fails
        """

    @abstractmethod
    def iter_documents(self, collection: str, skip: int = 0) -> Iterator[bytes]:
        """
        Yield the serialized documents of a collection in a stable order.

        Args:
            collection: Collection name
            skip: Leading documents to leave out

        Raises:
            TransientReadError: If the cursor fails, at acquisition or mid-way
        """

    def test_connection(self) -> Tuple[bool, str]:
        try:
            self.connect()
            return True, f"Connected to database {self.database_name}"
        except Exception as e:
            return False, f"Connection test failed: {e}"


class ObjectWriter(ABC):
    """
    Writes named objects into the bucket a Capability grants.

    ``upload_stream`` must fully drain the stream or fail before returning.
    """

    def __init__(self, capability: Capability):
        self.capability = capability

    @property
    def bucket(self) -> str:
        return self.capability.bucket

    def object_key(self, name: str) -> str:
        """Prefix a name with the capability's upload path"""
        return f"{self.capability.prefix}{name}"

    @abstractmethod
    def connect(self) -> None:
        """Open the client. Raises DestinationConnectionError."""

    @abstractmethod
    def disconnect(self) -> None:
        """Release the client"""

    @abstractmethod
    def upload_stream(self, remote_key: str, stream: BinaryIO) -> None:
        """
        Write everything ``stream`` yields to ``remote_key``.

        Raises:
            BucketNotFoundError: If the bucket does not exist
            AuthorizationError: If the capability forbids writes
            WriteError: For any other write failure
        """

    @abstractmethod
    def upload_bytes(self, data: bytes, remote_key: str) -> None:
        """Write a small in-memory object (same errors as upload_stream)"""

    @abstractmethod
    def download_bytes(self, remote_key: str) -> bytes:
        """Read an object back in full"""

    @abstractmethod
    def create_bucket(self) -> None:
        """Create the capability's bucket. Raises WriteError."""

    @abstractmethod
    def object_exists(self, remote_key: str) -> bool:
        """Check whether an object exists"""

    def get_checksum(self, data: bytes) -> str:
        """Calculate SHA-256 checksum"""
        return f"sha256:{hashlib.sha256(data).hexdigest()}"

"""
Collection Cursor Reader - Bounded-buffer byte stream over all collections

===============================================================================
PROVENANCE TRACKING
===============================================================================
File: src/mongo_relay/reader.py
Created: 2026-10-19
Author: Mongo Relay Contributors
Type: Core Implementation

Change History:
-------------------------------------------------------------------------------
Date        Author      Type    Description
-------------------------------------------------------------------------------
2026-10-19  relay-dev   CREATE  Pull-based reader with count-based
                                resumption across collections.
2026-10-19  relay-dev   UPDATE  SegmentStream file object handed to the
                                object writer, with transient retry and
                                replay of the emitted segment bytes.
-------------------------------------------------------------------------------

License: MIT

Every document is one chunk. A pull never splits a chunk: when the next chunk
does not fit, the pull stops short and the chunk is the first thing the next
pull emits. Resumption state is (remaining collections, documents already
emitted from the head collection), so a resumed pull re-opens the head
collection's cursor skipping that many documents.
===============================================================================
"""

from contextlib import closing
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import io
import logging

from .exceptions import (
    ChunkTooLargeError,
    EnumerationError,
    ExportCancelled,
    RelayError,
    TransientReadError,
)
from .handlers.base import SourceHandler

logger = logging.getLogger(__name__)


class PullStatus(Enum):
    """Outcome of one pull"""
    SHORT_BUFFER = "short_buffer"
    END_OF_STREAM = "end_of_stream"
    TRANSIENT_ERROR = "transient_error"
    FATAL = "fatal"


@dataclass
class ReadCursorState:
    """Resumption state, mutated only by CollectionCursorReader"""
    remaining: Optional[List[str]] = None
    offset: int = 0

    @property
    def current_collection(self) -> Optional[str]:
        if not self.remaining:
            return None
        return self.remaining[0]


@dataclass
class PullResult:
    """Bytes and status of one pull, unpackable as a tuple"""
    data: bytes
    status: PullStatus
    documents: int = 0
    error: Optional[RelayError] = field(default=None, repr=False)

    def __iter__(self):
        return iter((self.data, self.status))


class CollectionCursorReader:
    """
    Turns per-collection document cursors into a bounded-buffer stream.

    Not safe for concurrent pulls: one export drives one reader from a
    single thread.
    """

    def __init__(self, source: SourceHandler, debug: bool = False):
        """
        Args:
            source: Document source (connected lazily on first pull)
            debug: Log a trace line for every pull
        """
        self.source = source
        self.debug = debug
        self.state = ReadCursorState()
        self.documents_emitted = 0
        self.bytes_emitted = 0
        self._cancelled = False

    def cancel(self):
        """Make the next pull raise ExportCancelled"""
        self._cancelled = True

    def is_cancelled(self) -> bool:
        return self._cancelled

    def pull(self, capacity: int) -> PullResult:
        """
        Fill at most ``capacity`` bytes with whole chunks.

        Args:
            capacity: Maximum number of bytes the caller can accept

        Returns:
            PullResult with the bytes and one of:
            SHORT_BUFFER (more pending), END_OF_STREAM, TRANSIENT_ERROR
            (state kept, pull again), FATAL (enumeration failed)

        Raises:
            ExportCancelled: If cancel() was called
        """
        if self._cancelled:
            raise ExportCancelled("Export cancelled")

        if self.state.remaining is None:
            try:
                self.state.remaining = list(self.source.collection_names())
            except EnumerationError as e:
                logger.error(f"Collection enumeration failed: {e}")
                return PullResult(b"", PullStatus.FATAL, error=e)

        buffer = bytearray()
        documents = 0

        while self.state.remaining:
            collection = self.state.remaining[0]
            try:
                with closing(self.source.iter_documents(collection, skip=self.state.offset)) as chunks:
                    for chunk in chunks:
                        if self._cancelled:
                            raise ExportCancelled("Export cancelled")
                        if len(buffer) + len(chunk) >= capacity:
                            return self._finish(buffer, documents, PullStatus.SHORT_BUFFER, capacity)
                        buffer += chunk
                        documents += 1
                        self.state.offset += 1
            except TransientReadError as e:
                logger.warning(
                    f"Read of {collection} failed at document {self.state.offset}: {e}"
                )
                return self._finish(buffer, documents, PullStatus.TRANSIENT_ERROR, capacity, e)

            if self.debug:
                logger.debug(f"Collection {collection} complete ({self.state.offset} documents)")
            self.state.remaining.pop(0)
            self.state.offset = 0

        return self._finish(buffer, documents, PullStatus.END_OF_STREAM, capacity)

    def _finish(self, buffer: bytearray, documents: int, status: PullStatus,
                capacity: int, error: Optional[RelayError] = None) -> PullResult:
        self.documents_emitted += documents
        self.bytes_emitted += len(buffer)
        if self.debug:
            logger.debug(
                f"pull(capacity={capacity}) -> {len(buffer)} bytes, {documents} documents, "
                f"{status.value}; next={self.state.current_collection} offset={self.state.offset}"
            )
        return PullResult(bytes(buffer), status, documents, error)


class SegmentStream(io.RawIOBase):
    """
    Read-only file object covering exactly one destination segment.

    Each ``read(n)`` is one pull of capacity ``n``. Once a pull reports
    SHORT_BUFFER or END_OF_STREAM the stream is exhausted and the writer
    seals the object. Emitted bytes are kept so the segment can be replayed
    for a write retry; that buffer is bounded by one transfer buffer since
    every pull that does not reach the end stops short.
    """

    def __init__(self, reader: CollectionCursorReader, read_retries: int = 3):
        super().__init__()
        self._reader = reader
        self._read_retries = read_retries
        self._emitted = bytearray()
        self._position = 0
        self.status: Optional[PullStatus] = None
        self.documents = 0

    def readable(self) -> bool:
        return True

    @property
    def finished(self) -> bool:
        return self.status in (PullStatus.SHORT_BUFFER, PullStatus.END_OF_STREAM)

    @property
    def emitted(self) -> bytes:
        return bytes(self._emitted)

    def rewind(self) -> None:
        """Replay the emitted bytes from the start on the next reads"""
        self._position = 0

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return self.readall()
        if size == 0:
            return b""

        if self._position < len(self._emitted):
            data = bytes(self._emitted[self._position:self._position + size])
            self._position += len(data)
            return data

        if self.finished:
            return b""

        data = self._pull(size)
        self._emitted += data
        self._position += len(data)
        return data

    def readinto(self, buffer) -> int:
        data = self.read(len(buffer))
        buffer[:len(data)] = data
        return len(data)

    def _pull(self, size: int) -> bytes:
        collected = bytearray()
        attempts = 0

        while True:
            result = self._reader.pull(size - len(collected))
            collected += result.data
            self.documents += result.documents

            if result.status is PullStatus.TRANSIENT_ERROR:
                attempts += 1
                if attempts > self._read_retries:
                    raise TransientReadError(
                        f"Giving up after {self._read_retries} retries: {result.error}"
                    ) from result.error
                logger.warning(f"Retrying pull ({attempts}/{self._read_retries})")
                continue

            if result.status is PullStatus.FATAL:
                raise result.error

            if result.status is PullStatus.SHORT_BUFFER and not collected and not self._emitted:
                # An empty short pull on a fresh segment would repeat forever.
                raise ChunkTooLargeError(
                    f"Document {self._reader.state.offset} of "
                    f"{self._reader.state.current_collection} does not fit in {size} bytes"
                )

            self.status = result.status
            return bytes(collected)

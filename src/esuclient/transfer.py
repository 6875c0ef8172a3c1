"""Chunked upload and download of large objects.

``UploadHelper`` streams content into the service as a sequence of
bounded writes: the first chunk creates (or replaces) the object and every
later chunk is written at the next extent. ``DownloadHelper`` does the
reverse, reading buffer-sized extents into a local stream.

Both helpers report progress to listeners as typed events:

* ``ProgressEvent`` after every chunk,
* ``CompleteEvent`` once the transfer finished,
* ``FailureEvent`` when a chunk failed; the error is then raised as a
  ``TransferError``.

A helper runs one transfer at a time and may be reused afterwards.
"""

import logging
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import BinaryIO

from esuclient import metrics
from esuclient.checksum import Checksum
from esuclient.client import EsuClient
from esuclient.config import DEFAULT_BUFFER_SIZE
from esuclient.errors import EsuError, TransferError
from esuclient.models import Acl, Extent, Identifier, MetadataList, ObjectId, ObjectPath

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressEvent:
    """A chunk was transferred.

    Attributes:
        delta: Bytes in this chunk.
        current_bytes: Bytes transferred so far.
        total_bytes: Expected total, or -1 when unknown.
    """

    delta: int
    current_bytes: int
    total_bytes: int


@dataclass(frozen=True)
class CompleteEvent:
    """The transfer finished successfully."""


@dataclass(frozen=True)
class FailureEvent:
    """The transfer failed with ``error``."""

    error: BaseException


TransferEvent = ProgressEvent | CompleteEvent | FailureEvent
Listener = Callable[[TransferEvent], None]


# ---------------------------------------------------------------------------
# Shared session state
# ---------------------------------------------------------------------------


class _TransferSession:
    """Progress bookkeeping and notification shared by both helpers."""

    direction = ""

    def __init__(self, client: EsuClient, listener: Listener | None = None) -> None:
        self._client = client
        self._listeners: list[Listener] = [listener] if listener is not None else []
        self._lock = threading.Lock()
        self._stream: BinaryIO | None = None
        self._close_stream = False

        self.current_bytes = 0
        self.total_bytes = -1
        self.complete = False
        self.failed = False
        self.error: BaseException | None = None

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _begin(self, stream: BinaryIO, close_stream: bool, total_bytes: int) -> None:
        if not self._lock.acquire(blocking=False):
            raise RuntimeError(f"A {self.direction} is already in progress on this helper")
        self.current_bytes = 0
        self.total_bytes = total_bytes
        self.complete = False
        self.failed = False
        self.error = None
        self._stream = stream
        self._close_stream = close_stream

    def _end(self) -> None:
        self._stream = None
        self._lock.release()

    def _notify(self, event: TransferEvent) -> None:
        for listener in self._listeners:
            listener(event)

    def _progress(self, count: int) -> None:
        self.current_bytes += count
        self._notify(ProgressEvent(count, self.current_bytes, self.total_bytes))

    def _complete(self) -> None:
        self.complete = True
        self._release_stream()
        metrics.record_transfer(self.direction, "complete")
        logger.info("%s complete: %d bytes", self.direction.capitalize(), self.current_bytes)
        self._notify(CompleteEvent())

    def _fail(self, error: TransferError) -> None:
        self.failed = True
        self.error = error
        self._release_stream()
        metrics.record_transfer(self.direction, "error")
        logger.warning(
            "%s failed after %d bytes: %s", self.direction.capitalize(), self.current_bytes, error
        )
        self._notify(FailureEvent(error))

    def _release_stream(self) -> None:
        if self._close_stream and self._stream is not None:
            self._stream.close()

    def _wrap_error(self, error: Exception) -> TransferError:
        if isinstance(error, TransferError):
            return error
        return TransferError(f"Error during {self.direction}: {error}", cause=error)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------


class UploadHelper(_TransferSession):
    """Uploads a stream to an object in buffer-sized chunks.

    Args:
        client: The client used for create and update requests.
        buffer_size: Chunk size in bytes (default 4 MiB).
        buffer: A caller-supplied buffer to use instead of allocating one;
            its length sets the chunk size.
        listener: Optional callable receiving transfer events.
    """

    direction = "upload"

    def __init__(
        self,
        client: EsuClient,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        buffer: bytearray | None = None,
        listener: Listener | None = None,
    ) -> None:
        super().__init__(client, listener)
        self._buffer = buffer if buffer is not None else bytearray(buffer_size)
        if not self._buffer:
            raise ValueError("Transfer buffer must not be empty")

    def create_object(
        self,
        stream: BinaryIO,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        close_stream: bool = False,
        mime_type: str | None = None,
        path: ObjectPath | None = None,
        checksum: Checksum | None = None,
    ) -> ObjectId:
        """Create an object from the contents of a stream.

        Args:
            stream: Binary stream to read until EOF.
            acl: ACL for the new object.
            metadata: User metadata for the new object.
            close_stream: Close the stream when the upload ends.
            mime_type: Content type of the object.
            path: Namespace path to create the object at, if any.
            checksum: Running checksum sent with the create and every
                append, advanced chunk by chunk.

        Returns:
            The id of the new object.

        Raises:
            TransferError: If reading the stream or any request failed.
            RuntimeError: If this helper is already transferring.
        """
        return self._create(stream, acl, metadata, close_stream, mime_type, path, -1, checksum)

    def create_object_from_file(
        self,
        filename: str | os.PathLike,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        mime_type: str | None = None,
        path: ObjectPath | None = None,
        checksum: Checksum | None = None,
    ) -> ObjectId:
        """Create an object from a local file."""
        stream, size = _open_for_upload(filename)
        return self._create(stream, acl, metadata, True, mime_type, path, size, checksum)

    def update_object(
        self,
        identifier: Identifier,
        stream: BinaryIO,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        close_stream: bool = False,
        mime_type: str | None = None,
        checksum: Checksum | None = None,
    ) -> None:
        """Replace an object's content with the contents of a stream.

        The first chunk is written without an extent, truncating the object.

        Raises:
            TransferError: If reading the stream or any request failed.
            RuntimeError: If this helper is already transferring.
        """
        self._update(identifier, stream, acl, metadata, close_stream, mime_type, -1, checksum)

    def update_object_from_file(
        self,
        identifier: Identifier,
        filename: str | os.PathLike,
        acl: Acl | None = None,
        metadata: MetadataList | None = None,
        mime_type: str | None = None,
        checksum: Checksum | None = None,
    ) -> None:
        """Replace an object's content with a local file."""
        stream, size = _open_for_upload(filename)
        self._update(identifier, stream, acl, metadata, True, mime_type, size, checksum)

    def _create(
        self,
        stream: BinaryIO,
        acl: Acl | None,
        metadata: MetadataList | None,
        close_stream: bool,
        mime_type: str | None,
        path: ObjectPath | None,
        total_bytes: int,
        checksum: Checksum | None = None,
    ) -> ObjectId:
        def first(data: memoryview) -> ObjectId:
            if path is not None:
                return self._client.create_object_on_path(
                    path, acl, metadata, data, mime_type, checksum
                )
            return self._client.create_object(acl, metadata, data, mime_type, checksum)

        return self._run(stream, close_stream, total_bytes, first, mime_type, checksum)

    def _update(
        self,
        identifier: Identifier,
        stream: BinaryIO,
        acl: Acl | None,
        metadata: MetadataList | None,
        close_stream: bool,
        mime_type: str | None,
        total_bytes: int,
        checksum: Checksum | None = None,
    ) -> None:
        def first(data: memoryview) -> Identifier:
            self._client.update_object(identifier, acl, metadata, None, data, mime_type, checksum)
            return identifier

        self._run(stream, close_stream, total_bytes, first, mime_type, checksum)

    def _run(
        self,
        stream: BinaryIO,
        close_stream: bool,
        total_bytes: int,
        first: Callable[[memoryview], Identifier],
        mime_type: str | None,
        checksum: Checksum | None = None,
    ) -> Identifier:
        """Drive one upload session: the first chunk, then appends until EOF."""
        self._begin(stream, close_stream, total_bytes)
        try:
            try:
                count = self._read_chunk()
                target = first(self._chunk(count))
                if count > 0:
                    self._progress(count)
                    while (count := self._read_chunk()) > 0:
                        extent = Extent(self.current_bytes, count)
                        self._client.update_object(
                            target,
                            extent=extent,
                            data=self._chunk(count),
                            mime_type=mime_type,
                            checksum=checksum,
                        )
                        self._progress(count)
            except (EsuError, OSError) as e:
                error = self._wrap_error(e)
                self._fail(error)
                if error is e:
                    raise
                raise error from e
            self._complete()
            return target
        finally:
            self._end()

    def _read_chunk(self) -> int:
        """Fill the buffer from the stream until it is full or EOF is reached."""
        size = len(self._buffer)
        filled = 0
        while filled < size:
            data = self._stream.read(size - filled)
            if not data:
                break
            self._buffer[filled:filled + len(data)] = data
            filled += len(data)
        return filled

    def _chunk(self, count: int) -> memoryview:
        return memoryview(self._buffer)[:count]


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


class DownloadHelper(_TransferSession):
    """Downloads an object into a stream in buffer-sized extents.

    Args:
        client: The client used for metadata and read requests.
        buffer_size: Largest extent requested at once (default 4 MiB).
        listener: Optional callable receiving transfer events.
    """

    direction = "download"

    def __init__(
        self,
        client: EsuClient,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        listener: Listener | None = None,
    ) -> None:
        super().__init__(client, listener)
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.buffer_size = buffer_size

    def read_object(
        self, identifier: Identifier, stream: BinaryIO, close_stream: bool = False
    ) -> None:
        """Read an object's content into a stream.

        The object size comes from its ``size`` system metadata.

        Raises:
            TransferError: If the size is unknown or any request or write failed.
            RuntimeError: If this helper is already transferring.
        """
        self._begin(stream, close_stream, -1)
        try:
            try:
                self.total_bytes = self._object_size(identifier)
                while self.current_bytes < self.total_bytes:
                    size = min(self.buffer_size, self.total_bytes - self.current_bytes)
                    data = self._client.read_object(identifier, Extent(self.current_bytes, size))
                    if not data:
                        raise TransferError(
                            f"Empty read at offset {self.current_bytes} of {self.total_bytes}"
                        )
                    stream.write(data)
                    self._progress(len(data))
            except (EsuError, OSError) as e:
                error = self._wrap_error(e)
                self._fail(error)
                if error is e:
                    raise
                raise error from e
            self._complete()
        finally:
            self._end()

    def read_object_to_file(self, identifier: Identifier, filename: str | os.PathLike) -> None:
        """Read an object's content into a local file, replacing it."""
        try:
            stream = open(filename, "wb")
        except OSError as e:
            raise TransferError(f"Could not open output file {filename}", cause=e) from e
        self.read_object(identifier, stream, close_stream=True)

    def _object_size(self, identifier: Identifier) -> int:
        size = self._client.get_system_metadata(identifier).get("size")
        if size is None or not size.value.strip():
            raise TransferError("Failed to get object size")
        try:
            return int(size.value)
        except ValueError as e:
            raise TransferError(f"Invalid object size {size.value!r}", cause=e) from e


def _open_for_upload(filename: str | os.PathLike) -> tuple[BinaryIO, int]:
    """Open a local file for upload and return it with its size."""
    try:
        stream = open(filename, "rb")
    except OSError as e:
        raise TransferError(f"Could not open input file {filename}", cause=e) from e
    return stream, os.fstat(stream.fileno()).st_size

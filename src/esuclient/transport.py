"""HTTP transport boundary for the ESU client.

The client talks to the network only through a ``Transport``: it hands over
a fully signed request and receives the status, headers and a readable body
stream. ``HttpxTransport`` is the default implementation; tests substitute
an in-memory transport.
"""

import io
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import BinaryIO, Protocol

import httpx

from esuclient.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """A response received from the service.

    Attributes:
        status_code: The HTTP status code.
        reason: The HTTP reason phrase.
        headers: Response headers with case-insensitive lookup.
        stream: The response body. The receiver must close it.
    """

    status_code: int
    reason: str
    headers: Mapping[str, str]
    stream: BinaryIO


class Transport(Protocol):
    """Protocol for sending a signed request to the service."""

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | bytearray | memoryview | None = None,
    ) -> TransportResponse:
        """Send a request and return the response with an open body stream.

        Args:
            method: HTTP method.
            url: Absolute request URL.
            headers: Request headers, already signed.
            body: Request body, or None for requests without content.

        Returns:
            The response. Non-2xx statuses are returned, not raised.

        Raises:
            TransportError: If no response could be obtained.
        """
        ...

    def close(self) -> None:
        """Release connections held by the transport."""
        ...


class _ResponseStream(io.RawIOBase):
    """Raw binary stream over a streamed httpx response body."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._chunks: Iterator[bytes] = response.iter_bytes()
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except httpx.HTTPError as e:
                raise TransportError(f"Error reading response body: {e}") from e
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


class HttpxTransport:
    """Transport backed by a synchronous ``httpx.Client``.

    The underlying client pools connections and is safe to share between
    threads.
    """

    def __init__(self, client: httpx.Client | None = None, timeout: float = 60.0) -> None:
        """Initialize the transport.

        Args:
            client: An existing httpx client to send through. When omitted a
                client is created and owned by this transport.
            timeout: Request timeout in seconds for an owned client.
        """
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | bytearray | memoryview | None = None,
    ) -> TransportResponse:
        content = bytes(body) if body is not None else None
        try:
            request = self._client.build_request(
                method, url, headers=dict(headers), content=content
            )
            response = self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as e:
            logger.warning("Transport error for %s %s: %s", method, url, e)
            raise TransportError(f"Error executing request: {e}") from e

        return TransportResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            headers=response.headers,
            stream=io.BufferedReader(_ResponseStream(response)),
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

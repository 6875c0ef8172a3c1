"""Shared pytest fixtures for esuclient tests.

Requests go through ``FakeTransport``, an in-memory transport that records
every request and answers from a queue of canned responses, so no test
needs a running service.
"""

import io
import logging
from dataclasses import dataclass, field

import httpx
import pytest

from esuclient.client import EsuClient
from esuclient.transport import TransportResponse

# A valid Base64 shared secret.
SECRET = "LJLuryj6zs8ste6Y3jTGQp71xq0="
UID = "6039ac182f194e15b9261d73ce044939/user1"
OBJECT_ID = "4924264aa10573d404924281caf51f049242d810edc8"
LOCATION = f"/rest/objects/{OBJECT_ID}"


@dataclass
class RecordedRequest:
    """A request captured by FakeTransport."""

    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None

    @property
    def path(self) -> str:
        return httpx.URL(self.url).raw_path.decode("ascii")


@dataclass
class CannedResponse:
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    reason: str = "OK"


class TrackingStream(io.BytesIO):
    """BytesIO that remembers whether it was closed."""

    was_closed = False

    def close(self) -> None:
        self.was_closed = True
        super().close()


class FakeTransport:
    """In-memory transport answering from a queue of responses.

    Queue ``CannedResponse`` objects or exceptions with ``add``; an
    exception is raised from ``send`` instead of returning a response. When
    the queue is empty an empty 200 response is returned.
    """

    def __init__(self) -> None:
        self.requests: list[RecordedRequest] = []
        self.streams: list[TrackingStream] = []
        self._queue: list[CannedResponse | Exception] = []
        self.closed = False

    def add(
        self,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        body: bytes = b"",
        reason: str = "OK",
    ) -> None:
        self._queue.append(CannedResponse(status_code, headers or {}, body, reason))

    def add_error(self, error: Exception) -> None:
        self._queue.append(error)

    def send(self, method, url, headers, body=None) -> TransportResponse:
        self.requests.append(
            RecordedRequest(method, url, dict(headers), bytes(body) if body is not None else None)
        )
        canned = self._queue.pop(0) if self._queue else CannedResponse()
        if isinstance(canned, Exception):
            raise canned
        stream = TrackingStream(canned.body)
        self.streams.append(stream)
        return TransportResponse(
            status_code=canned.status_code,
            reason=canned.reason,
            headers=httpx.Headers(canned.headers),
            stream=stream,
        )

    def close(self) -> None:
        self.closed = True

    @property
    def last(self) -> RecordedRequest:
        return self.requests[-1]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(transport: FakeTransport) -> EsuClient:
    """An EsuClient talking to the fake transport."""
    return EsuClient("storage.example.com", 80, UID, SECRET, transport=transport)


@pytest.fixture
def restore_logging():
    """Put the root and httpx loggers back the way the test found them."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    noisy = {name: logging.getLogger(name).level for name in ("httpx", "httpcore")}
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, noisy_level in noisy.items():
        logging.getLogger(name).setLevel(noisy_level)

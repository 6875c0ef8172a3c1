"""Parser for multipart/byteranges response bodies.

A read of several extents returns one body holding every requested range:

    <blank line>
    --BOUNDARY
    Content-Type: application/octet-stream
    Content-Range: bytes 0-4/10
    <blank line>
    <5 bytes of data>
    <blank line>
    --BOUNDARY
    ...
    --BOUNDARY--

Both CRLF and bare LF line endings are accepted.
"""

import re
from dataclasses import dataclass
from typing import BinaryIO

from esuclient.errors import MultipartError
from esuclient.models import Extent

CONTENT_TYPE_PATTERN = re.compile(r"^Content-Type: (.+)$")
CONTENT_RANGE_PATTERN = re.compile(r"^Content-Range: bytes (\d+)-(\d+)/(\d+)$")
BOUNDARY_PATTERN = re.compile(r' boundary="?([^\s";]*)"?;?')


@dataclass(frozen=True)
class MultipartPart:
    """One extent of a multipart byte-range response."""

    content_type: str
    content_extent: Extent
    data: bytes


class MultipartEntity(list):
    """The ordered parts of a multipart byte-range response."""

    @classmethod
    def from_stream(cls, stream: BinaryIO, boundary: str) -> "MultipartEntity":
        """Parse a multipart body.

        The stream is closed on return, whether or not parsing succeeded.

        Args:
            stream: Binary stream positioned at the start of the body.
            boundary: The boundary token, with or without its leading ``--``.

        Returns:
            A MultipartEntity holding the parts in body order.

        Raises:
            MultipartError: If the body does not follow the expected layout.
        """
        if boundary.startswith("--"):
            boundary = boundary[2:]
        delimiter = "--" + boundary
        terminator = delimiter + "--"

        parts = cls()
        try:
            while True:
                if _read_line(stream) != "":
                    raise MultipartError("Parse error: expected EOL before boundary")
                line = _read_line(stream)
                if line == terminator:
                    break
                if line != delimiter:
                    raise MultipartError(
                        f"Parse error: expected [{delimiter}], instead got [{line}]"
                    )
                parts.append(_read_part(stream))
        finally:
            stream.close()
        return parts

    def aggregate_bytes(self) -> bytes:
        """Concatenate the data of all parts in order."""
        return b"".join(part.data for part in self)


def parse_boundary(content_type: str | None) -> str:
    """Extract the boundary parameter from a multipart Content-Type value.

    Raises:
        MultipartError: If no boundary is present.
    """
    match = BOUNDARY_PATTERN.search(content_type or "")
    if match is None or not match.group(1):
        raise MultipartError(f"No boundary in content type: {content_type!r}")
    return match.group(1)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_part(stream: BinaryIO) -> MultipartPart:
    """Read the headers and data of one part."""
    content_type = None
    start = -1
    end = 0
    while (line := _read_line(stream)) != "":
        match = CONTENT_TYPE_PATTERN.match(line)
        if match:
            content_type = match.group(1)
            continue
        match = CONTENT_RANGE_PATTERN.match(line)
        if match:
            start = int(match.group(1))
            end = int(match.group(2))
            continue
        raise MultipartError(f"Unrecognized header line: {line}")

    if content_type is None:
        raise MultipartError("Parse error: No content-type specified in part")
    if start == -1:
        raise MultipartError("Parse error: No content-range specified in part")

    length = end - start + 1
    return MultipartPart(content_type, Extent(start, length), _read_exactly(stream, length))


def _read_line(stream: BinaryIO) -> str:
    """Read one line without its terminator.

    Raises:
        MultipartError: If the stream is already at EOF.
    """
    raw = stream.readline()
    if not raw:
        raise MultipartError("Parse error: unexpected end of stream")
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw.decode("utf-8")


def _read_exactly(stream: BinaryIO, length: int) -> bytes:
    """Read exactly ``length`` bytes, looping on short reads."""
    chunks = []
    remaining = length
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise MultipartError(
                f"Parse error: stream ended after {length - remaining} of {length} bytes"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)

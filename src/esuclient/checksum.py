"""Running content checksums for the ``x-emc-wschecksum`` header.

The service verifies uploads against a checksum the client computes over
everything written so far. Each create or append advances the running
hash and sends ``<ALGORITHM>/<offset>/<hex digest>``, where the digest is
that of all bytes up to ``offset``.

SHA0 is what the service checks by default but ``hashlib`` does not
provide it, so it is implemented here.
"""

import hashlib
import struct
from enum import Enum


class Algorithm(str, Enum):
    """Checksum algorithms the service accepts."""

    SHA0 = "SHA0"
    SHA1 = "SHA1"
    MD5 = "MD5"


def _rotl(value: int, count: int) -> int:
    return ((value << count) | (value >> (32 - count))) & 0xFFFFFFFF


class Sha0:
    """Incremental SHA-0 with the ``hashlib`` update/copy/digest interface.

    SHA-0 is SHA-1 without the one-bit rotation in the message schedule.
    """

    name = "sha0"
    digest_size = 20
    block_size = 64

    def __init__(self, data: bytes = b"") -> None:
        self._h = (0x67452301, 0xEFCDAB89, 0x98BADCFE, 0x10325476, 0xC3D2E1F0)
        self._buffer = b""
        self._length = 0
        if data:
            self.update(data)

    def update(self, data) -> None:
        data = bytes(data)
        self._length += len(data)
        self._buffer += data
        blocks = len(self._buffer) // 64
        for i in range(blocks):
            self._h = _compress(self._h, self._buffer[i * 64 : (i + 1) * 64])
        self._buffer = self._buffer[blocks * 64 :]

    def copy(self) -> "Sha0":
        other = Sha0()
        other._h = self._h
        other._buffer = self._buffer
        other._length = self._length
        return other

    def digest(self) -> bytes:
        padding = b"\x80" + b"\x00" * ((55 - self._length) % 64)
        tail = self._buffer + padding + struct.pack(">Q", self._length * 8)
        h = self._h
        for i in range(0, len(tail), 64):
            h = _compress(h, tail[i : i + 64])
        return struct.pack(">5I", *h)

    def hexdigest(self) -> str:
        return self.digest().hex()


def _compress(h: tuple[int, ...], block: bytes) -> tuple[int, ...]:
    w = list(struct.unpack(">16I", block))
    for t in range(16, 80):
        w.append(w[t - 3] ^ w[t - 8] ^ w[t - 14] ^ w[t - 16])

    a, b, c, d, e = h
    for t in range(80):
        if t < 20:
            f, k = (b & c) | (~b & d), 0x5A827999
        elif t < 40:
            f, k = b ^ c ^ d, 0x6ED9EBA1
        elif t < 60:
            f, k = (b & c) | (b & d) | (c & d), 0x8F1BBCDC
        else:
            f, k = b ^ c ^ d, 0xCA62C1D6
        temp = (_rotl(a, 5) + (f & 0xFFFFFFFF) + e + k + w[t]) & 0xFFFFFFFF
        a, b, c, d, e = temp, a, _rotl(b, 30), c, d

    return tuple((x + y) & 0xFFFFFFFF for x, y in zip(h, (a, b, c, d, e)))


class Checksum:
    """A running checksum over an object's content.

    Pass the same instance to the create call and to every append that
    follows it so each request carries the hash of the content written so
    far.

    Args:
        algorithm: The hash to compute; SHA0 unless the service says
            otherwise.
    """

    def __init__(self, algorithm: Algorithm | str = Algorithm.SHA0) -> None:
        self.algorithm = Algorithm(algorithm)
        if self.algorithm is Algorithm.SHA0:
            self._hash = Sha0()
        else:
            self._hash = hashlib.new(self.algorithm.value.lower())
        self.offset = 0

    def update(self, data: bytes | bytearray | memoryview) -> None:
        """Advance the checksum over the next bytes of content."""
        self._hash.update(data)
        self.offset += len(data)

    @property
    def hex_digest(self) -> str:
        """Digest of all content seen so far; the running state is kept."""
        return self._hash.copy().hexdigest()

    def __str__(self) -> str:
        return f"{self.algorithm.value}/{self.offset}/{self.hex_digest}"

    def __repr__(self) -> str:
        return f"Checksum({self.algorithm.value!r}, offset={self.offset})"

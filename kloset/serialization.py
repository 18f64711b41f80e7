"""Framing of stored resources: a typed, versioned header, the payload and a MAC footer."""

from __future__ import annotations

import hmac
import struct
from typing import BinaryIO, Callable, Protocol

from kloset.versioning import Version

__all__ = [
    "STORAGE_HEADER_SIZE",
    "STORAGE_FOOTER_SIZE",
    "MAGIC",
    "LEGACY_MAGIC",
    "SerializationError",
    "SerializeReader",
    "DeserializeReader",
    "serialize",
    "deserialize",
]

STORAGE_HEADER_SIZE = 16
STORAGE_FOOTER_SIZE = 32
MAGIC = b"_KLOSET_"
LEGACY_MAGIC = b"_PLAKAR_"

_HEADER_STRUCT = struct.Struct("<8sII")
_CHUNK_SIZE = 4096


class _Hash(Protocol):
    def update(self, data: bytes) -> None: ...

    def digest(self) -> bytes: ...


HasherFactory = Callable[[], _Hash]


class SerializationError(ValueError):
    """Raised when a framed resource is malformed or fails verification."""


def _footer_from_digest(digest: bytes) -> bytes:
    return digest[:STORAGE_FOOTER_SIZE].ljust(STORAGE_FOOTER_SIZE, b"\0")


class SerializeReader:
    """Readable stream yielding the header, the hashed payload and then the MAC footer."""

    def __init__(
        self,
        hasher: HasherFactory,
        resource_type: int,
        version: Version,
        stream: BinaryIO,
    ) -> None:
        header = _HEADER_STRUCT.pack(MAGIC, int(resource_type), int(version))
        self._hasher = hasher()
        self._hasher.update(header)
        self._inner = stream
        self._header = bytearray(header)
        self._footer: bytearray | None = None
        self._data_done = False

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (all remaining when negative); b"" at the end."""
        if size is None:
            size = -1
        out = bytearray()
        while size < 0 or len(out) < size:
            room = -1 if size < 0 else size - len(out)
            if self._header:
                take = len(self._header) if room < 0 else min(room, len(self._header))
                out += self._header[:take]
                del self._header[:take]
            elif not self._data_done:
                chunk = self._inner.read(_CHUNK_SIZE if room < 0 else room)
                if chunk:
                    self._hasher.update(chunk)
                    out += chunk
                else:
                    self._data_done = True
                    self._footer = bytearray(_footer_from_digest(self._hasher.digest()))
            elif self._footer:
                take = len(self._footer) if room < 0 else min(room, len(self._footer))
                out += self._footer[:take]
                del self._footer[:take]
            else:
                break
        return bytes(out)


class DeserializeReader:
    """Readable stream over a framed payload, verifying the MAC footer at the end."""

    def __init__(self, hasher: _Hash, stream: BinaryIO) -> None:
        self._inner = stream
        self._hasher = hasher
        self._pending = bytearray()
        self._eof = False
        self._done = False

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` payload bytes (all when negative); b"" once verified."""
        if size is None:
            size = -1
        out = bytearray()
        while not self._done and (size < 0 or len(out) < size):
            if not self._eof:
                chunk = self._inner.read(_CHUNK_SIZE)
                if chunk:
                    self._pending += chunk
                else:
                    self._eof = True

            flushable = max(len(self._pending) - STORAGE_FOOTER_SIZE, 0)
            want = flushable if size < 0 else min(flushable, size - len(out))
            if want:
                piece = bytes(self._pending[:want])
                del self._pending[:want]
                self._hasher.update(piece)
                out += piece

            if self._eof:
                if len(self._pending) == STORAGE_FOOTER_SIZE:
                    self._verify()
                elif len(self._pending) < STORAGE_FOOTER_SIZE:
                    raise SerializationError("truncated stream: missing footer")
        return bytes(out)

    def _verify(self) -> None:
        footer = bytes(self._pending)
        if not hmac.compare_digest(footer, self._hasher.digest()):
            raise SerializationError("hmac mismatch")
        self._pending.clear()
        self._done = True


def serialize(
    hasher: HasherFactory, resource_type: int, version: Version, stream: BinaryIO
) -> SerializeReader:
    """Wrap ``stream`` so that reading it yields the framed resource.

    ``hasher`` is a zero-argument callable returning a fresh hash or MAC object.
    """
    return SerializeReader(hasher, resource_type, version, stream)


def deserialize(
    hasher: HasherFactory, resource_type: int, stream: BinaryIO
) -> tuple[Version, DeserializeReader]:
    """Parse the header of a framed resource and return its version and a payload reader."""
    header = stream.read(STORAGE_HEADER_SIZE)
    if len(header) < STORAGE_HEADER_SIZE:
        raise SerializationError("unexpected EOF while reading header")

    magic, parsed_type, parsed_version = _HEADER_STRUCT.unpack(header)
    if magic not in (MAGIC, LEGACY_MAGIC):
        raise SerializationError(f"invalid plakar magic: {magic!r}")
    if parsed_type != int(resource_type):
        raise SerializationError("invalid resource type")

    h = hasher()
    h.update(header)
    return Version(parsed_version), DeserializeReader(h, stream)
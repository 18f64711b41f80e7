"""Errors met while scanning, recorded per path in a snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field

import msgpack

from kloset.versioning import Version, from_string

__all__ = ["VFS_ERROR_VERSION", "ErrorItem", "new_error_item"]

VFS_ERROR_VERSION = "1.0.0"


@dataclass
class ErrorItem:
    """A path and the error met on it."""

    version: Version = field(default_factory=Version)
    name: str = ""
    error: str = ""

    def to_bytes(self) -> bytes:
        """Encode the item as msgpack."""
        return msgpack.packb(
            {"version": int(self.version), "name": self.name, "error": self.error},
            use_bin_type=True,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "ErrorItem":
        """Decode a msgpack item; raise ValueError when malformed."""
        try:
            decoded = msgpack.unpackb(data, raw=False)
        except Exception as err:
            raise ValueError(f"invalid error item encoding: {err}") from err
        if decoded is None:
            return cls()
        if not isinstance(decoded, dict):
            raise ValueError("error item: expected a map")
        version = decoded.get("version") or 0
        name = decoded.get("name") or ""
        error = decoded.get("error") or ""
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError("field 'version': expected an integer")
        if not isinstance(name, str) or not isinstance(error, str):
            raise ValueError("fields 'name' and 'error' must be strings")
        return cls(version=Version(version), name=name, error=error)


def new_error_item(path: str, error: str) -> ErrorItem:
    """Create an error item for ``path`` at the current format version."""
    return ErrorItem(version=from_string(VFS_ERROR_VERSION), name=path, error=error)
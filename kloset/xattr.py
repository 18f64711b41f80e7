"""Extended attributes and alternate data streams recorded in a snapshot."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

import msgpack

from kloset.versioning import Version, from_string

__all__ = ["VFS_XATTR_VERSION", "AttributeType", "Xattr"]

VFS_XATTR_VERSION = "1.0.0"
_MAC_SIZE = 32


class AttributeType(enum.IntEnum):
    """The kind of an attribute attached to a file."""

    EXTENDED = 0
    ADS = 1


def _zero_mac() -> bytes:
    return bytes(_MAC_SIZE)


@dataclass
class Xattr:
    """An attribute of a file, whose value is stored as an object."""

    version: Version = field(default_factory=Version)
    path: str = ""
    name: str = ""
    size: int = 0
    type: int = AttributeType.EXTENDED
    object: bytes = field(default_factory=_zero_mac)
    resolved_object: Any = field(default=None, compare=False)

    @classmethod
    def from_record(cls, record: Any, object_mac: bytes, size: int) -> "Xattr":
        """Build an attribute from a scan record and the MAC of its stored value."""
        return cls(
            version=from_string(VFS_XATTR_VERSION),
            path=record.pathname,
            name=record.xattr_name,
            type=record.xattr_type,
            object=bytes(object_mac),
            size=size,
        )

    def to_path(self) -> str:
        """Return the key of the attribute: path, name and a type separator."""
        if self.type == AttributeType.EXTENDED:
            sep = ":"
        elif self.type == AttributeType.ADS:
            sep = "@"
        else:
            sep = "#"
        return self.path + self.name + sep

    def to_bytes(self) -> bytes:
        """Encode the attribute as msgpack."""
        wire: dict[str, Any] = {
            "version": int(self.version),
            "path": self.path,
            "name": self.name,
            "size": self.size,
            "type": int(self.type),
        }
        if any(self.object):
            wire["object"] = self.object
        return msgpack.packb(wire, use_bin_type=True)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Xattr":
        """Decode a msgpack attribute; raise ValueError when malformed."""
        try:
            decoded = msgpack.unpackb(data, raw=False)
        except Exception as err:
            raise ValueError(f"invalid xattr encoding: {err}") from err
        if decoded is None:
            return cls()
        if not isinstance(decoded, dict):
            raise ValueError("xattr: expected a map")
        try:
            kind = decoded.get("type") or 0
            try:
                kind = AttributeType(kind)
            except ValueError:
                kind = int(kind)
            obj = decoded.get("object")
            return cls(
                version=Version(decoded.get("version") or 0),
                path=_text(decoded, "path"),
                name=_text(decoded, "name"),
                size=int(decoded.get("size") or 0),
                type=kind,
                object=bytes(obj) if obj is not None else _zero_mac(),
            )
        except (TypeError, ValueError) as err:
            raise ValueError(f"invalid xattr: {err}") from err


def _text(d: dict, key: str) -> str:
    value = d.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected a string")
    return value
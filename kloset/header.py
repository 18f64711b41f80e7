"""Snapshot headers: identity, sources, context, msgpack encoding and sorting."""

from __future__ import annotations

import functools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import msgpack

from kloset.summary import Summary
from kloset.versioning import Version, from_string

__all__ = [
    "VERSION",
    "MAC_SIZE",
    "ZERO_TIME",
    "Importer",
    "Identity",
    "Class",
    "Classification",
    "KeyValue",
    "Index",
    "VFS",
    "Source",
    "Header",
    "new_source",
    "new_header",
    "parse_sort_keys",
    "sort_headers",
]

VERSION = "1.0.0"
MAC_SIZE = 32

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_SORTABLE_FIELDS = frozenset(
    {
        "Version",
        "Identifier",
        "Timestamp",
        "Duration",
        "Identity",
        "Name",
        "Category",
        "Environment",
        "Perimeter",
        "Job",
        "Replicas",
        "Classifications",
        "Tags",
        "Context",
        "Sources",
    }
)


def _zero_mac() -> bytes:
    return bytes(MAC_SIZE)


def _map(data: Any, what: str) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{what}: expected a map, got {type(data).__name__}")
    return data


def _list(data: Any, what: str) -> list:
    if data is None:
        return []
    if not isinstance(data, (list, tuple)):
        raise ValueError(f"{what}: expected a list, got {type(data).__name__}")
    return list(data)


def _str(d: dict, key: str) -> str:
    value = d.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected a string")
    return value


def _int(d: dict, key: str) -> int:
    value = d.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r}: expected an integer")
    return value


def _bytes(d: dict, key: str, default: bytes = b"") -> bytes:
    value = d.get(key)
    if value is None:
        return default
    if not isinstance(value, (bytes, bytearray)):
        raise ValueError(f"field {key!r}: expected bytes")
    return bytes(value)


def _encode_time(t: datetime) -> msgpack.Timestamp:
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    delta = t - _EPOCH
    return msgpack.Timestamp(delta.days * 86400 + delta.seconds, delta.microseconds * 1000)


def _decode_time(value: Any) -> datetime:
    if value is None:
        return ZERO_TIME
    if not isinstance(value, msgpack.Timestamp):
        raise ValueError("field 'timestamp': expected a timestamp")
    return _EPOCH + timedelta(seconds=value.seconds, microseconds=value.nanoseconds // 1000)


@dataclass
class Importer:
    """The backend kind, origin and directory a source was read from."""

    type: str = ""
    origin: str = ""
    directory: str = ""

    def _to_wire(self) -> dict:
        return {"type": self.type, "origin": self.origin, "directory": self.directory}

    @classmethod
    def _from_wire(cls, data: Any) -> "Importer":
        d = _map(data, "importer")
        return cls(type=_str(d, "type"), origin=_str(d, "origin"), directory=_str(d, "directory"))


@dataclass
class Identity:
    """The signing identity of a snapshot."""

    identifier: uuid.UUID = field(default_factory=lambda: uuid.UUID(int=0))
    public_key: bytes = b""

    def _to_wire(self) -> dict:
        return {"identifier": self.identifier.bytes, "public_key": self.public_key}

    @classmethod
    def _from_wire(cls, data: Any) -> "Identity":
        d = _map(data, "identity")
        raw = _bytes(d, "identifier", bytes(16))
        if len(raw) != 16:
            raise ValueError("field 'identifier': expected 16 bytes")
        return cls(identifier=uuid.UUID(bytes=raw), public_key=_bytes(d, "public_key"))


@dataclass
class Class:
    """A class assigned by an analyzer, with its probability."""

    name: str = ""
    probability: float = 0.0

    def _to_wire(self) -> dict:
        return {"name": self.name, "probability": float(self.probability)}

    @classmethod
    def _from_wire(cls, data: Any) -> "Class":
        d = _map(data, "class")
        probability = d.get("probability") or 0.0
        if isinstance(probability, bool) or not isinstance(probability, (int, float)):
            raise ValueError("field 'probability': expected a number")
        return cls(name=_str(d, "name"), probability=float(probability))


@dataclass
class Classification:
    """The classes an analyzer assigned to a snapshot."""

    analyzer: str = ""
    classes: list[Class] = field(default_factory=list)

    def _to_wire(self) -> dict:
        return {"analyzer": self.analyzer, "classes": [c._to_wire() for c in self.classes]}

    @classmethod
    def _from_wire(cls, data: Any) -> "Classification":
        d = _map(data, "classification")
        return cls(
            analyzer=_str(d, "analyzer"),
            classes=[Class._from_wire(c) for c in _list(d.get("classes"), "classes")],
        )


@dataclass
class KeyValue:
    """A context entry."""

    key: str = ""
    value: str = ""

    def _to_wire(self) -> dict:
        return {"key": self.key, "value": self.value}

    @classmethod
    def _from_wire(cls, data: Any) -> "KeyValue":
        d = _map(data, "context entry")
        return cls(key=_str(d, "key"), value=_str(d, "value"))


@dataclass
class Index:
    """A named index of a source and the MAC of its root."""

    name: str = ""
    type: str = ""
    value: bytes = field(default_factory=_zero_mac)

    def _to_wire(self) -> dict:
        return {"name": self.name, "type": self.type, "value": self.value}

    @classmethod
    def _from_wire(cls, data: Any) -> "Index":
        d = _map(data, "index")
        return cls(name=_str(d, "name"), type=_str(d, "type"), value=_bytes(d, "value", _zero_mac()))


@dataclass
class VFS:
    """The MACs of the filesystem, xattr and error trees of a source."""

    root: bytes = field(default_factory=_zero_mac)
    xattrs: bytes = field(default_factory=_zero_mac)
    errors: bytes = field(default_factory=_zero_mac)

    def _to_wire(self) -> dict:
        return {"root": self.root, "xattrs": self.xattrs, "errors": self.errors}

    @classmethod
    def _from_wire(cls, data: Any) -> "VFS":
        d = _map(data, "vfs")
        return cls(
            root=_bytes(d, "root", _zero_mac()),
            xattrs=_bytes(d, "xattrs", _zero_mac()),
            errors=_bytes(d, "errors", _zero_mac()),
        )


@dataclass
class Source:
    """One imported source of a snapshot."""

    importer: Importer = field(default_factory=Importer)
    context: list[KeyValue] = field(default_factory=list)
    vfs: VFS = field(default_factory=VFS)
    indexes: list[Index] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)

    def _to_wire(self) -> dict:
        return {
            "importer": self.importer._to_wire(),
            "context": [kv._to_wire() for kv in self.context],
            "root": self.vfs._to_wire(),
            "indexes": [i._to_wire() for i in self.indexes],
            "summary": msgpack.unpackb(self.summary.to_bytes(), raw=False),
        }

    @classmethod
    def _from_wire(cls, data: Any) -> "Source":
        d = _map(data, "source")
        raw_summary = d.get("summary")
        summary = None
        if raw_summary is not None:
            summary = Summary.from_bytes(msgpack.packb(raw_summary, use_bin_type=True))
        return cls(
            importer=Importer._from_wire(d.get("importer")),
            context=[KeyValue._from_wire(kv) for kv in _list(d.get("context"), "context")],
            vfs=VFS._from_wire(d.get("root")),
            indexes=[Index._from_wire(i) for i in _list(d.get("indexes"), "indexes")],
            summary=summary if summary is not None else Summary(),
        )


def new_source() -> Source:
    """Return an empty source."""
    return Source()


@dataclass
class Header:
    """The description of a snapshot. ``duration`` is in nanoseconds."""

    version: Version = field(default_factory=Version)
    identifier: bytes = field(default_factory=_zero_mac)
    timestamp: datetime = ZERO_TIME
    duration: int = 0
    identity: Identity = field(default_factory=Identity)
    name: str = ""
    category: str = ""
    environment: str = ""
    perimeter: str = ""
    job: str = ""
    replicas: int = 0
    classifications: list[Classification] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    context: list[KeyValue] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)

    def _to_wire(self) -> dict:
        return {
            "version": int(self.version),
            "identifier": self.identifier,
            "timestamp": _encode_time(self.timestamp),
            "duration": self.duration,
            "identity": self.identity._to_wire(),
            "name": self.name,
            "category": self.category,
            "environment": self.environment,
            "perimeter": self.perimeter,
            "job": self.job,
            "replicas": self.replicas,
            "classifications": [c._to_wire() for c in self.classifications],
            "tags": list(self.tags),
            "context": [kv._to_wire() for kv in self.context],
            "sources": [s._to_wire() for s in self.sources],
        }

    @classmethod
    def _from_wire(cls, data: Any) -> "Header":
        d = _map(data, "header")
        tags = _list(d.get("tags"), "tags")
        if not all(isinstance(t, str) for t in tags):
            raise ValueError("field 'tags': expected strings")
        return cls(
            version=Version(_int(d, "version")),
            identifier=_bytes(d, "identifier", _zero_mac()),
            timestamp=_decode_time(d.get("timestamp")),
            duration=_int(d, "duration"),
            identity=Identity._from_wire(d.get("identity")),
            name=_str(d, "name"),
            category=_str(d, "category"),
            environment=_str(d, "environment"),
            perimeter=_str(d, "perimeter"),
            job=_str(d, "job"),
            replicas=_int(d, "replicas"),
            classifications=[
                Classification._from_wire(c)
                for c in _list(d.get("classifications"), "classifications")
            ],
            tags=tags,
            context=[KeyValue._from_wire(kv) for kv in _list(d.get("context"), "context")],
            sources=[Source._from_wire(s) for s in _list(d.get("sources"), "sources")],
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Header":
        """Decode a msgpack-encoded header; raise ValueError when malformed."""
        try:
            decoded = msgpack.unpackb(data, raw=False)
        except Exception as err:
            raise ValueError(f"invalid header encoding: {err}") from err
        return cls._from_wire(decoded)

    def serialize(self) -> bytes:
        """Encode the header as msgpack."""
        return msgpack.packb(self._to_wire(), use_bin_type=True)

    def set_context(self, key: str, value: str) -> None:
        """Append a context entry."""
        self.context.append(KeyValue(key=key, value=value))

    def get_context(self, key: str) -> str:
        """Return the first context value for ``key``, or an empty string."""
        return next((kv.value for kv in self.context if kv.key == key), "")

    def get_source(self, idx: int) -> Source:
        """Return the source at ``idx``; raise IndexError when out of range."""
        if idx < 0 or idx >= len(self.sources):
            raise IndexError("invalid source index")
        return self.sources[idx]

    def index_id(self) -> bytes:
        """Return the full identifier."""
        return bytes(self.identifier)

    def short_id(self) -> bytes:
        """Return the first four bytes of the identifier."""
        return bytes(self.identifier[:4])

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


def new_header(name: str, identifier: bytes) -> Header:
    """Create a header stamped now, with default labels and one empty source."""
    if len(identifier) != MAC_SIZE:
        raise ValueError(f"identifier must be {MAC_SIZE} bytes")
    return Header(
        identifier=bytes(identifier),
        timestamp=datetime.now(timezone.utc),
        version=from_string(VERSION),
        name=name,
        category="default",
        environment="default",
        perimeter="default",
        job="default",
        replicas=1,
        sources=[new_source()],
    )


def parse_sort_keys(sort_keys: str) -> list[str] | None:
    """Parse a comma-separated list of header field names, each optionally prefixed by '-'."""
    if sort_keys == "":
        return None
    seen: set[str] = set()
    valid: list[str] = []
    for key in sort_keys.split(","):
        key = key.strip()
        lookup = key[1:] if key.startswith("-") else key
        if lookup in seen:
            raise ValueError("duplicate sort key: " + key)
        seen.add(lookup)
        if lookup not in _SORTABLE_FIELDS:
            raise ValueError("invalid sort key: " + key)
        valid.append(key)
    return valid


def _sign(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _tags_cmp(a: list[str], b: list[str]) -> int:
    for x, y in zip(a, b):
        if x != y:
            return _sign(x, y)
    return _sign(len(a), len(b))


_COMPARATORS = {
    "Timestamp": lambda a, b: _sign(a.timestamp, b.timestamp),
    "Identifier": lambda a, b: _sign(bytes(a.identifier), bytes(b.identifier)),
    "Version": lambda a, b: _sign(int(a.version), int(b.version)),
    "Tags": lambda a, b: _tags_cmp(a.tags, b.tags),
}


def sort_headers(headers: list[Header], sort_keys: list[str]) -> None:
    """Sort ``headers`` in place by the given keys; '-' reverses a key.

    Raises ValueError for an unknown key met while comparing.
    """
    failure: list[str] = []

    def compare(a: Header, b: Header) -> int:
        for key in sort_keys:
            descending = key.startswith("-")
            comparator = _COMPARATORS.get(key[1:] if descending else key)
            if comparator is None:
                failure.append(key)
                return 0
            result = comparator(a, b)
            if result:
                return -result if descending else result
        return 0

    headers.sort(key=functools.cmp_to_key(compare))
    if failure:
        raise ValueError("invalid sort key: " + failure[0])
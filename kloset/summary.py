"""Per-directory statistics about files, accumulated during a scan."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Optional, TypeVar

import msgpack

__all__ = ["FileSummary", "Directory", "Below", "Summary"]

# File mode bits as laid out in the stored mode field.
_MODE_DIR = 1 << 31
_MODE_SYMLINK = 1 << 27
_MODE_DEVICE = 1 << 26
_MODE_NAMED_PIPE = 1 << 25
_MODE_SOCKET = 1 << 24
_MODE_SETUID = 1 << 23
_MODE_SETGID = 1 << 22
_MODE_CHAR_DEVICE = 1 << 21
_MODE_STICKY = 1 << 20
_MODE_IRREGULAR = 1 << 19
_MODE_TYPE = (
    _MODE_DIR
    | _MODE_SYMLINK
    | _MODE_NAMED_PIPE
    | _MODE_SOCKET
    | _MODE_DEVICE
    | _MODE_CHAR_DEVICE
    | _MODE_IRREGULAR
)

_LO_ENTROPY = 2.0
_HI_ENTROPY = 7.0

R = TypeVar("R", bound="_Record")


def _wire(key: str, default: Any = 0, omitempty: bool = True) -> Any:
    return field(default=default, metadata={"key": key, "omitempty": omitempty})


def _nested(key: str, kind: type) -> Any:
    return field(
        default_factory=kind,
        metadata={"key": key, "omitempty": True, "type": kind},
    )


def _coerce(name: str, default: Any, value: Any) -> Any:
    if value is None:
        return default
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"field {name!r}: expected a number, got {value!r}")
        return float(value)
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"field {name!r}: expected an integer, got {value!r}")
        return value
    if isinstance(default, str):
        if not isinstance(value, str):
            raise ValueError(f"field {name!r}: expected a string, got {value!r}")
        return value
    return value


class _Record:
    """Shared msgpack map conversion for the summary records."""

    def _to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if "type" in f.metadata:
                value = value._to_wire()
            if f.metadata["omitempty"] and not value:
                continue
            out[f.metadata["key"]] = value
        return out

    @classmethod
    def _from_wire(cls: type[R], data: Any) -> R:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__}: expected a map, got {type(data).__name__}")
        kwargs: dict[str, Any] = {}
        for f in fields(cls):  # type: ignore[arg-type]
            key = f.metadata["key"]
            if key not in data:
                continue
            kind = f.metadata.get("type")
            if kind is not None:
                kwargs[f.name] = kind._from_wire(data[key])
            else:
                kwargs[f.name] = _coerce(key, f.default, data[key])
        return cls(**kwargs)


def _encode(record: _Record) -> bytes:
    return msgpack.packb(record._to_wire(), use_bin_type=True)


def _decode(cls: type[R], data: bytes) -> Optional[R]:
    try:
        decoded = msgpack.unpackb(data, raw=False)
    except Exception as err:
        raise ValueError(f"invalid {cls.__name__} encoding: {err}") from err
    if decoded is None:
        return None
    return cls._from_wire(decoded)


@dataclass
class FileSummary(_Record):
    """Statistics about a single file."""

    size: int = _wire("size", omitempty=False)
    objects: int = _wire("objects", omitempty=False)
    chunks: int = _wire("chunks", omitempty=False)
    mode: int = _wire("mode", omitempty=False)
    mod_time: int = _wire("mod_time", omitempty=False)
    content_type: str = _wire("content_type", "", omitempty=False)
    entropy: float = _wire("entropy", 0.0, omitempty=False)

    def to_bytes(self) -> bytes:
        """Encode the file summary as msgpack."""
        return _encode(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> Optional["FileSummary"]:
        """Decode a msgpack file summary; a msgpack nil gives None."""
        return _decode(cls, data)


@dataclass
class Directory(_Record):
    """Statistics about the direct children of a directory."""

    directories: int = _wire("directories")
    files: int = _wire("files")
    symlinks: int = _wire("symlinks")
    devices: int = _wire("devices")
    pipes: int = _wire("pipes")
    sockets: int = _wire("sockets")

    children: int = _wire("children")

    setuid: int = _wire("setuid")
    setgid: int = _wire("setgid")
    sticky: int = _wire("sticky")

    objects: int = _wire("objects")
    chunks: int = _wire("chunks")

    min_size: int = _wire("min_size")
    max_size: int = _wire("max_size")
    avg_size: int = _wire("avg_size")
    size: int = _wire("size")

    min_mod_time: int = _wire("min_mod_time")
    max_mod_time: int = _wire("max_mod_time")

    min_entropy: float = _wire("min_entropy", 0.0)
    max_entropy: float = _wire("max_entropy", 0.0)
    sum_entropy: float = _wire("sum_entropy", 0.0)
    avg_entropy: float = _wire("avg_entropy", 0.0)
    hi_entropy: int = _wire("hi_entropy")
    lo_entropy: int = _wire("lo_entropy")

    mime_audio: int = _wire("MIME_audio")
    mime_video: int = _wire("MIME_video")
    mime_image: int = _wire("MIME_image")
    mime_text: int = _wire("MIME_text")
    mime_application: int = _wire("MIME_application")
    mime_other: int = _wire("MIME_other")

    errors: int = _wire("errors")


@dataclass
class Below(_Record):
    """Statistics about everything further down a directory."""

    directories: int = _wire("directories")
    files: int = _wire("files")
    symlinks: int = _wire("symlinks")
    devices: int = _wire("devices")
    pipes: int = _wire("pipes")
    sockets: int = _wire("sockets")

    children: int = _wire("children")

    setuid: int = _wire("setuid")
    setgid: int = _wire("setgid")
    sticky: int = _wire("sticky")

    objects: int = _wire("objects")
    chunks: int = _wire("chunks")

    min_size: int = _wire("min_size")
    max_size: int = _wire("max_size")
    size: int = _wire("size")

    min_mod_time: int = _wire("min_mod_time")
    max_mod_time: int = _wire("max_mod_time")

    min_entropy: float = _wire("min_entropy", 0.0)
    max_entropy: float = _wire("max_entropy", 0.0)
    hi_entropy: int = _wire("hi_entropy")
    lo_entropy: int = _wire("lo_entropy")

    mime_audio: int = _wire("MIME_audio")
    mime_video: int = _wire("MIME_video")
    mime_image: int = _wire("MIME_image")
    mime_text: int = _wire("MIME_text")
    mime_application: int = _wire("MIME_application")
    mime_other: int = _wire("MIME_other")

    errors: int = _wire("errors", omitempty=False)


_SUMMED = (
    "files",
    "directories",
    "symlinks",
    "devices",
    "pipes",
    "sockets",
    "children",
    "setuid",
    "setgid",
    "sticky",
    "objects",
    "chunks",
    "size",
    "hi_entropy",
    "lo_entropy",
    "mime_audio",
    "mime_video",
    "mime_image",
    "mime_text",
    "mime_application",
    "mime_other",
    "errors",
)
_MINIMA = ("min_size", "min_mod_time", "min_entropy")
_MAXIMA = ("max_size", "max_mod_time", "max_entropy")

_MIME_COUNTERS = (
    ("text/", "mime_text"),
    ("image/", "mime_image"),
    ("audio/", "mime_audio"),
    ("video/", "mime_video"),
    ("application/", "mime_application"),
)


@dataclass
class Summary(_Record):
    """Statistics of a directory: its own children and everything below them."""

    directory: Directory = _nested("directory", Directory)
    below: Below = _nested("below", Below)

    def update_below(self, below: "Summary") -> None:
        """Fold the summary of a subdirectory into the ``below`` statistics."""
        mine = self.below
        sources = (below.below, below.directory)
        for name in _SUMMED:
            total = sum(getattr(source, name) for source in sources)
            setattr(mine, name, getattr(mine, name) + total)
        for name in _MINIMA:
            for source in sources:
                value, current = getattr(source, name), getattr(mine, name)
                if current == 0 or value < current:
                    setattr(mine, name, value)
        for name in _MAXIMA:
            for source in sources:
                value, current = getattr(source, name), getattr(mine, name)
                if current == 0 or value > current:
                    setattr(mine, name, value)

    def update_with_file_summary(self, file_summary: FileSummary) -> None:
        """Account for one direct child of the directory."""
        d = self.directory
        mode = file_summary.mode

        if mode & _MODE_TYPE == 0:
            d.files += 1
        elif mode & _MODE_DIR:
            d.directories += 1
        elif mode & _MODE_SYMLINK:
            d.symlinks += 1
        elif mode & _MODE_DEVICE:
            d.devices += 1
        elif mode & _MODE_NAMED_PIPE:
            d.pipes += 1
        elif mode & _MODE_SOCKET:
            d.sockets += 1
        else:
            d.files += 1

        if mode & _MODE_SETUID:
            d.setuid += 1
        if mode & _MODE_SETGID:
            d.setgid += 1
        if mode & _MODE_STICKY:
            d.sticky += 1

        if file_summary.objects > 0:
            d.objects += file_summary.objects
            d.chunks += file_summary.chunks

        for low, high, value in (
            ("min_mod_time", "max_mod_time", file_summary.mod_time),
            ("min_size", "max_size", file_summary.size),
            ("min_entropy", "max_entropy", file_summary.entropy),
        ):
            current = getattr(d, low)
            if value < current or current == 0:
                setattr(d, low, value)
            current = getattr(d, high)
            if value > current or current == 0:
                setattr(d, high, value)

        if file_summary.entropy <= _LO_ENTROPY:
            d.lo_entropy += 1
        elif file_summary.entropy >= _HI_ENTROPY:
            d.hi_entropy += 1

        content_type = file_summary.content_type
        if content_type:
            counter = next(
                (name for prefix, name in _MIME_COUNTERS if content_type.startswith(prefix)),
                "mime_other",
            )
            setattr(d, counter, getattr(d, counter) + 1)

        d.size += file_summary.size
        d.sum_entropy += file_summary.entropy

    def update_averages(self) -> None:
        """Compute the average size and entropy of the directory's files."""
        d = self.directory
        if d.files > 0:
            d.avg_size = d.size // d.files
            d.avg_entropy = d.sum_entropy / d.files

    def to_bytes(self) -> bytes:
        """Encode the summary as msgpack."""
        return _encode(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> Optional["Summary"]:
        """Decode a msgpack summary; a msgpack nil gives None."""
        return _decode(cls, data)
"""Packed resource versions and the registry of current versions per resource type."""

from __future__ import annotations

import re
import threading
from typing import Hashable

__all__ = [
    "Version",
    "new_version",
    "from_string",
    "register",
    "get_current_version",
]

_UINT32_MASK = 0xFFFFFFFF
_VERSION_RE = re.compile(r"\s*(\d+)\.(\d+)\.(\d+)")


class Version(int):
    """A version packed as ``major << 16 | minor << 8 | patch`` in 32 bits."""

    def __new__(cls, value: int = 0) -> "Version":
        return super().__new__(cls, int(value) & _UINT32_MASK)

    def major(self) -> int:
        return (int(self) >> 16) & 0xFF

    def minor(self) -> int:
        return (int(self) >> 8) & 0xFF

    def patch(self) -> int:
        return int(self) & 0xFF

    def __str__(self) -> str:
        return f"{self.major()}.{self.minor()}.{self.patch()}"

    def __repr__(self) -> str:
        return f"Version({str(self)!r})"


def new_version(major: int, minor: int, patch: int) -> Version:
    """Pack the three components into a Version."""
    return Version((major << 16) | (minor << 8) | patch)


def from_string(s: str) -> Version:
    """Parse ``"major.minor.patch"``; raise ValueError when it does not parse."""
    match = _VERSION_RE.match(s)
    if match is None:
        raise ValueError(f"invalid version string: {s!r}")
    major, minor, patch = (int(part) for part in match.groups())
    if any(part > _UINT32_MASK for part in (major, minor, patch)):
        raise ValueError(f"version component out of range: {s!r}")
    return new_version(major, minor, patch)


_current_versions: dict[Hashable, Version] = {}
_current_versions_lock = threading.Lock()


def register(resource_type: Hashable, version: Version) -> None:
    """Record the current version of a resource type; each type registers once."""
    with _current_versions_lock:
        if resource_type in _current_versions:
            raise ValueError(f"version already registered for type {resource_type}")
        _current_versions[resource_type] = Version(version)


def get_current_version(resource_type: Hashable) -> Version:
    """Return the registered version of a resource type, or raise KeyError."""
    with _current_versions_lock:
        try:
            return _current_versions[resource_type]
        except KeyError:
            raise KeyError(f"version not registered for type {resource_type}") from None
"""Path ordering used by the snapshot filesystem tree: by depth, then lexically."""

from __future__ import annotations

__all__ = ["path_cmp", "path_sort_key", "is_entry_below"]


def path_cmp(a: str, b: str) -> int:
    """Compare two paths: fewer '/' first, ties broken lexically; returns -1, 0 or 1."""
    da, db = a.count("/"), b.count("/")
    if da != db:
        return 1 if da > db else -1
    return (a > b) - (a < b)


def path_sort_key(path: str) -> tuple[int, str]:
    """Sort key equivalent to ``path_cmp``."""
    return path.count("/"), path


def is_entry_below(parent: str, entry: str) -> bool:
    """Tell whether ``entry`` is a direct child of the ``parent`` prefix."""
    return entry.startswith(parent) and "/" not in entry[len(parent):]
"""Storage framing, versioning, snapshot headers and VFS helpers for a backup engine."""

__version__ = "0.1.0"

__all__ = [
    "versioning",
    "serialization",
    "storage",
    "importer",
    "exporter",
    "summary",
    "header",
    "xattr",
    "vfs_errors",
    "paths",
]
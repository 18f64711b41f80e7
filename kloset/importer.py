"""Importers: sources of scan records, and the registry of importer backends."""

from __future__ import annotations

import abc
import os
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Iterator

from kloset.storage import BackendRegistry

__all__ = [
    "ExtendedAttributes",
    "ScanRecord",
    "ScanError",
    "ScanResult",
    "Importer",
    "register",
    "backends",
    "new_importer",
    "new_scan_record",
    "new_scan_xattr",
    "new_scan_error",
]


@dataclass
class ExtendedAttributes:
    """A named extended attribute value."""

    name: str
    value: bytes


@dataclass
class ScanRecord:
    """A filesystem entry, or one of its extended attributes, found by a scan."""

    pathname: str
    target: str = ""
    file_info: Any = None
    extended_attributes: list[str] = field(default_factory=list)
    file_attributes: int = 0
    is_xattr: bool = False
    xattr_name: str = ""
    xattr_type: Any = None


@dataclass
class ScanError:
    """A path that could not be scanned, with the reason."""

    pathname: str
    err: Exception


@dataclass
class ScanResult:
    """Either a record or an error produced by a scan."""

    record: ScanRecord | None = None
    error: ScanError | None = None


class Importer(abc.ABC):
    """A data source that can be scanned and read from."""

    @abc.abstractmethod
    def origin(self) -> str:
        """Return where the data comes from, e.g. a host name."""

    @abc.abstractmethod
    def type(self) -> str:
        """Return the kind of importer."""

    @abc.abstractmethod
    def root(self) -> str:
        """Return the root path of the scan."""

    @abc.abstractmethod
    def scan(self) -> Iterator[ScanResult]:
        """Yield the results of scanning the source."""

    @abc.abstractmethod
    def new_reader(self, pathname: str) -> BinaryIO:
        """Open the content of a file."""

    @abc.abstractmethod
    def new_extended_attribute_reader(self, pathname: str, attribute: str) -> BinaryIO:
        """Open the value of an extended attribute of a file."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the resources held by the importer."""

    def __enter__(self) -> "Importer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


ImporterFactory = Callable[[str, "dict[str, str]"], Importer]

_backends: BackendRegistry[ImporterFactory] = BackendRegistry("fs")


def register(name: str, backend: ImporterFactory) -> None:
    """Register an importer backend; raise ValueError if the name is taken."""
    _backends.register(name, backend)


def backends() -> list[str]:
    """Return the names of the registered importer backends."""
    return _backends.names()


def new_importer(config: dict[str, str], cwd: str | None = None) -> Importer:
    """Build an importer from its configuration, normalising ``config['location']``."""
    try:
        location = config["location"]
    except KeyError:
        raise ValueError("missing location") from None

    proto, location, backend = _backends.lookup(location)
    if backend is None:
        raise ValueError("unsupported importer protocol")

    if proto == "fs" and not os.path.isabs(location):
        location = os.path.normpath(os.path.join(cwd or os.getcwd(), location))
        config["location"] = "fs://" + location
    else:
        config["location"] = f"{proto}://{location}"
    return backend(proto, config)


def new_scan_record(
    pathname: str, target: str, file_info: Any, xattrs: list[str]
) -> ScanResult:
    """Wrap a scanned entry in a ScanResult."""
    return ScanResult(
        record=ScanRecord(
            pathname=pathname,
            target=target,
            file_info=file_info,
            extended_attributes=xattrs,
        )
    )


def new_scan_xattr(pathname: str, xattr: str, kind: Any) -> ScanResult:
    """Wrap a scanned extended attribute in a ScanResult."""
    return ScanResult(
        record=ScanRecord(
            pathname=pathname,
            is_xattr=True,
            xattr_name=xattr,
            xattr_type=kind,
        )
    )


def new_scan_error(pathname: str, err: Exception) -> ScanResult:
    """Wrap a scan failure in a ScanResult."""
    return ScanResult(error=ScanError(pathname=pathname, err=err))
"""Exporters: destinations for restored data, and the registry of exporter backends."""

from __future__ import annotations

import abc
import os
from typing import Any, BinaryIO, Callable

from kloset.storage import BackendRegistry

__all__ = ["Exporter", "register", "backends", "new_exporter"]


class Exporter(abc.ABC):
    """A destination that restored directories and files are written to."""

    @abc.abstractmethod
    def root(self) -> str:
        """Return the root path of the destination."""

    @abc.abstractmethod
    def create_directory(self, pathname: str) -> None:
        """Create a directory, parents included."""

    @abc.abstractmethod
    def store_file(self, pathname: str, fp: BinaryIO, size: int) -> None:
        """Write the content read from ``fp`` to ``pathname``."""

    @abc.abstractmethod
    def set_permissions(self, pathname: str, file_info: Any) -> None:
        """Apply the permissions described by ``file_info`` to ``pathname``."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the resources held by the exporter."""

    def __enter__(self) -> "Exporter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


ExporterFactory = Callable[[str, "dict[str, str]"], Exporter]

_backends: BackendRegistry[ExporterFactory] = BackendRegistry("fs")


def register(name: str, backend: ExporterFactory) -> None:
    """Register an exporter backend; raise ValueError if the name is taken."""
    _backends.register(name, backend)


def backends() -> list[str]:
    """Return the names of the registered exporter backends."""
    return _backends.names()


def new_exporter(config: dict[str, str], cwd: str | None = None) -> Exporter:
    """Build an exporter from its configuration, normalising ``config['location']``."""
    try:
        location = config["location"]
    except KeyError:
        raise ValueError("missing location") from None

    proto, location, backend = _backends.lookup(location)
    if backend is None:
        raise ValueError("unsupported exporter protocol")

    if proto == "fs" and not os.path.isabs(location):
        location = os.path.normpath(os.path.join(cwd or os.getcwd(), location))
        config["location"] = "fs://" + location
    else:
        config["location"] = f"{proto}://{location}"
    return backend(proto, config)
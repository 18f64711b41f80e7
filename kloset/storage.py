"""Storage backends: the store interface, the backend registry and store construction."""

from __future__ import annotations

import abc
import enum
import os
import sys
import threading
from typing import BinaryIO, Callable, Generic, TypeVar

__all__ = [
    "StorageError",
    "Mode",
    "Store",
    "BackendRegistry",
    "register",
    "backends",
    "new",
    "open",
    "create",
]

T = TypeVar("T")


class StorageError(Exception):
    """Raised when a store cannot be located, created or opened."""


class Mode(enum.IntFlag):
    """Access modes a store supports."""

    WRITE = 1 << 1
    READ = 1 << 2


class Store(abc.ABC):
    """A repository storage backend holding states, packfiles and locks keyed by MAC."""

    @abc.abstractmethod
    def create(self, config: bytes) -> None:
        """Initialise a new store with the serialized configuration."""

    @abc.abstractmethod
    def open(self) -> bytes:
        """Open an existing store and return its serialized configuration."""

    @abc.abstractmethod
    def location(self) -> str:
        """Return the location the store was opened with."""

    @abc.abstractmethod
    def mode(self) -> Mode:
        """Return the access modes of the store."""

    @abc.abstractmethod
    def size(self) -> int:
        """Return the size of the store; may be costly."""

    @abc.abstractmethod
    def get_states(self) -> list[bytes]:
        """List the MACs of the stored states."""

    @abc.abstractmethod
    def put_state(self, mac: bytes, stream: BinaryIO) -> int:
        """Store a state and return the number of bytes written."""

    @abc.abstractmethod
    def get_state(self, mac: bytes) -> BinaryIO:
        """Return a reader over a stored state."""

    @abc.abstractmethod
    def delete_state(self, mac: bytes) -> None:
        """Remove a state."""

    @abc.abstractmethod
    def get_packfiles(self) -> list[bytes]:
        """List the MACs of the stored packfiles."""

    @abc.abstractmethod
    def put_packfile(self, mac: bytes, stream: BinaryIO) -> int:
        """Store a packfile and return the number of bytes written."""

    @abc.abstractmethod
    def get_packfile(self, mac: bytes) -> BinaryIO:
        """Return a reader over a whole packfile."""

    @abc.abstractmethod
    def get_packfile_blob(self, mac: bytes, offset: int, length: int) -> BinaryIO:
        """Return a reader over ``length`` bytes of a packfile starting at ``offset``."""

    @abc.abstractmethod
    def delete_packfile(self, mac: bytes) -> None:
        """Remove a packfile."""

    @abc.abstractmethod
    def get_locks(self) -> list[bytes]:
        """List the identifiers of the stored locks."""

    @abc.abstractmethod
    def put_lock(self, lock_id: bytes, stream: BinaryIO) -> int:
        """Store a lock and return the number of bytes written."""

    @abc.abstractmethod
    def get_lock(self, lock_id: bytes) -> BinaryIO:
        """Return a reader over a stored lock."""

    @abc.abstractmethod
    def delete_lock(self, lock_id: bytes) -> None:
        """Remove a lock."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the resources held by the store."""

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class BackendRegistry(Generic[T]):
    """Backends keyed by protocol name, resolving ``proto://rest`` locations."""

    def __init__(self, default_proto: str = "fs") -> None:
        self._default_proto = default_proto
        self._backends: dict[str, T] = {}
        self._lock = threading.Lock()

    def register(self, name: str, backend: T) -> None:
        """Add a backend; raise ValueError if the name is already taken."""
        with self._lock:
            if name in self._backends:
                raise ValueError(f"backend '{name}' registered twice")
            self._backends[name] = backend

    def names(self) -> list[str]:
        """Return the registered protocol names, sorted."""
        with self._lock:
            return sorted(self._backends)

    def lookup(self, location: str) -> tuple[str, str, T | None]:
        """Split a location into protocol and remainder and find its backend.

        A location without ``://`` uses the default protocol. The backend is
        None when the protocol is not registered.
        """
        proto, sep, rest = location.partition("://")
        if not sep:
            proto, rest = self._default_proto, location
        with self._lock:
            return proto, rest, self._backends.get(proto)


StoreFactory = Callable[[str, "dict[str, str]"], Store]

_backends: BackendRegistry[StoreFactory] = BackendRegistry("fs")


def register(backend: StoreFactory, *args: str) -> None:
    """Register ``backend`` under each of the given protocol names."""
    for name in args:
        _backends.register(name, backend)


def backends() -> list[str]:
    """Return the names of the registered storage backends."""
    return _backends.names()


def new(store_config: dict[str, str], cwd: str | None = None) -> Store:
    """Build a store from its configuration, normalising ``store_config['location']``.

    Relative ``fs`` locations are made absolute against ``cwd`` (the current
    directory by default).
    """
    try:
        location = store_config["location"]
    except KeyError:
        raise StorageError("missing location") from None

    proto, location, backend = _backends.lookup(location)
    if backend is None:
        raise StorageError(f"backend '{proto}' does not exist")

    if proto == "fs" and not os.path.isabs(location):
        location = os.path.normpath(os.path.join(cwd or os.getcwd(), location))
        store_config["location"] = "fs://" + location
    else:
        store_config["location"] = f"{proto}://{location}"
    return backend(proto, store_config)


def _report(err: Exception) -> None:
    prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "kloset"
    print(f"{prog}: {err}", file=sys.stderr)


def open(store_config: dict[str, str], cwd: str | None = None) -> tuple[Store, bytes]:
    """Open an existing store and return it with its serialized configuration."""
    try:
        store = new(store_config, cwd)
    except StorageError as err:
        _report(err)
        raise
    return store, store.open()


def create(
    store_config: dict[str, str], configuration: bytes, cwd: str | None = None
) -> Store:
    """Create a new store initialised with the serialized configuration."""
    try:
        store = new(store_config, cwd)
    except StorageError as err:
        _report(err)
        raise
    store.create(configuration)
    return store
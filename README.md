# kloset

Building blocks for a content-addressed, deduplicating backup repository.

- **`kloset.versioning`**: packed `major.minor.patch` resource versions
  (`Version`, `new_version`, `from_string`) and a registry of the current
  version of each resource type (`register`, `get_current_version`).
  `from_string` raises `ValueError` on malformed input; registering a type
  twice raises `ValueError`, asking for an unregistered one raises `KeyError`.
- **`kloset.serialization`**: the framing used for stored blobs: a 16-byte
  header (`_KLOSET_` magic, resource type, version, little-endian), the
  payload, and a 32-byte MAC footer. `serialize` and `deserialize` take a
  zero-argument hasher factory and return streaming readers
  (`SerializeReader`, `DeserializeReader`). A bad magic, a wrong resource
  type, a truncated stream or a footer that does not match raises
  `SerializationError`. The legacy `_PLAKAR_` magic is also accepted.
- **`kloset.storage`**: the abstract `Store` interface, `Mode` flags, a
  generic `BackendRegistry` that resolves `proto://rest` locations (plain
  paths use the `fs` protocol), and the module-level `register`, `backends`,
  `new`, `open` and `create`. Failures to locate a backend raise
  `StorageError` (for example `backend 'unknown' does not exist`).
- **`kloset.importer`** / **`kloset.exporter`**: the abstract `Importer` and
  `Exporter` interfaces, their backend registries (`register`, `backends`,
  `new_importer`, `new_exporter`), and the scan result records
  (`ScanRecord`, `ScanError`, `ScanResult`, `new_scan_record`,
  `new_scan_xattr`, `new_scan_error`).
- **`kloset.summary`**: per-directory statistics (`Summary`, `Directory`,
  `Below`, `FileSummary`) with `update_with_file_summary`, `update_below`,
  `update_averages`, and msgpack `to_bytes` / `from_bytes`.
- **`kloset.header`**: snapshot headers (`Header`, `Source`, `Index`, `VFS`,
  `Identity`, ...), `new_header`, `new_source`, msgpack `serialize` /
  `Header.from_bytes`, and sorting with `parse_sort_keys` / `sort_headers`.
- **`kloset.xattr`**: extended attributes and alternate data streams
  (`Xattr`, `AttributeType`).
- **`kloset.vfs_errors`**: per-path scan errors (`ErrorItem`,
  `new_error_item`).
- **`kloset.paths`**: path ordering used by the filesystem index: by depth,
  then lexically (`path_cmp`, `path_sort_key`, `is_entry_below`).

## Installation

```
pip install kloset
```

## Examples

Framing a payload and reading it back:

```python
import hashlib
import io

from kloset.serialization import serialize, deserialize
from kloset.versioning import new_version

payload = b"hello"
framed = serialize(hashlib.sha256, 1, new_version(1, 0, 0), io.BytesIO(payload)).read()

version, reader = deserialize(hashlib.sha256, 1, io.BytesIO(framed))
assert str(version) == "1.0.0"
assert reader.read() == payload
```

Registering a storage backend and building a store:

```python
from kloset import storage

storage.register(MyStore, "mem")          # MyStore(proto, config) -> Store
store = storage.new({"location": "mem:///somewhere"})
```

Ordering filesystem paths, shallow paths first:

```python
from kloset.paths import path_sort_key

sorted(["/etc/foo/bar", "/etc/zzz", "/etc/foo"], key=path_sort_key)
# ['/etc/foo', '/etc/zzz', '/etc/foo/bar']
```

Sorting snapshot headers:

```python
from kloset.header import new_header, parse_sort_keys, sort_headers

headers = [new_header("a", bytes([2]) * 32), new_header("b", bytes([1]) * 32)]
sort_headers(headers, parse_sort_keys("Identifier"))
# headers[0].name == "b"
```

## What this package does not do

It ships no storage, importer or exporter backends: every registry starts
empty, and `new`, `new_importer` and `new_exporter` only work once a backend
has been registered. There is no repository layer, no snapshot creation,
restore, check or search, no chunking, compression or encryption, and no
command-line tool.

## Running the tests

```
pip install -e ".[test]"
pytest
```
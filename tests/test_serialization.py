import functools
import hashlib
import io

import pytest

from kloset.serialization import (
    LEGACY_MAGIC,
    MAGIC,
    STORAGE_FOOTER_SIZE,
    STORAGE_HEADER_SIZE,
    SerializationError,
    deserialize,
    serialize,
)
from kloset.versioning import new_version

RESOURCE = 3
VERSION = new_version(1, 0, 0)


def _frame(payload, hasher=hashlib.sha256, resource=RESOURCE, version=VERSION):
    return serialize(hasher, resource, version, io.BytesIO(payload)).read()


def _unframe(data, hasher=hashlib.sha256, resource=RESOURCE, read_size=-1):
    version, reader = deserialize(hasher, resource, io.BytesIO(data))
    if read_size < 0:
        return version, reader.read()
    out = bytearray()
    while True:
        piece = reader.read(read_size)
        if not piece:
            break
        assert len(piece) <= read_size
        out += piece
    return version, bytes(out)


def test_header_layout():
    framed = _frame(b"hello")
    assert framed[:STORAGE_HEADER_SIZE] == b"_KLOSET_\x03\x00\x00\x00\x00\x00\x01\x00"
    assert framed[STORAGE_HEADER_SIZE:-STORAGE_FOOTER_SIZE] == b"hello"


def test_framed_length():
    payload = b"x" * 1000
    framed = _frame(payload)
    assert len(framed) == STORAGE_HEADER_SIZE + len(payload) + STORAGE_FOOTER_SIZE


def test_footer_is_mac_of_header_and_payload():
    framed = _frame(b"some payload")
    body, footer = framed[:-STORAGE_FOOTER_SIZE], framed[-STORAGE_FOOTER_SIZE:]
    assert footer == hashlib.sha256(body).digest()


@pytest.mark.parametrize("payload", [b"", b"hello", bytes(range(256)) * 40])
def test_roundtrip(payload):
    version, data = _unframe(_frame(payload))
    assert version == VERSION
    assert data == payload


@pytest.mark.parametrize("read_size", [1, 7, 33, 5000])
def test_roundtrip_small_reads(read_size):
    payload = bytes(range(256)) * 30
    framed = serialize(hashlib.sha256, RESOURCE, VERSION, io.BytesIO(payload))
    chunks = []
    while True:
        piece = framed.read(read_size)
        if not piece:
            break
        assert len(piece) <= read_size
        chunks.append(piece)
    _, data = _unframe(b"".join(chunks), read_size=read_size)
    assert data == payload


def test_roundtrip_with_keyed_blake2():
    hasher = functools.partial(hashlib.blake2b, digest_size=32, key=b"placeholder")
    version, data = _unframe(_frame(b"abc", hasher=hasher), hasher=hasher)
    assert (version, data) == (VERSION, b"abc")


def test_version_is_preserved():
    v = new_version(2, 5, 9)
    version, _ = _unframe(_frame(b"data", version=v))
    assert str(version) == "2.5.9"


def test_tampered_payload_rejected():
    framed = bytearray(_frame(b"hello world"))
    framed[STORAGE_HEADER_SIZE] ^= 0xFF
    _, reader = deserialize(hashlib.sha256, RESOURCE, io.BytesIO(bytes(framed)))
    with pytest.raises(SerializationError, match="hmac mismatch"):
        reader.read()


def test_different_hasher_rejected():
    framed = _frame(b"hello")
    _, reader = deserialize(hashlib.blake2s, RESOURCE, io.BytesIO(framed))
    with pytest.raises(SerializationError, match="hmac mismatch"):
        reader.read()


def test_long_digest_never_verifies():
    framed = _frame(b"hello", hasher=hashlib.sha512)
    _, reader = deserialize(hashlib.sha512, RESOURCE, io.BytesIO(framed))
    with pytest.raises(SerializationError, match="hmac mismatch"):
        reader.read()


def test_wrong_resource_type_rejected():
    framed = _frame(b"hello", resource=RESOURCE)
    with pytest.raises(SerializationError, match="invalid resource type"):
        deserialize(hashlib.sha256, RESOURCE + 1, io.BytesIO(framed))


def test_invalid_magic_rejected():
    framed = b"_BADMAG_" + _frame(b"hello")[len(MAGIC):]
    with pytest.raises(SerializationError, match="invalid plakar magic"):
        deserialize(hashlib.sha256, RESOURCE, io.BytesIO(framed))


def test_legacy_magic_accepted():
    framed = _frame(b"legacy")
    body = LEGACY_MAGIC + framed[len(MAGIC):-STORAGE_FOOTER_SIZE]
    legacy = body + hashlib.sha256(body).digest()
    version, data = _unframe(legacy)
    assert (version, data) == (VERSION, b"legacy")


def test_short_header_rejected():
    with pytest.raises(SerializationError):
        deserialize(hashlib.sha256, RESOURCE, io.BytesIO(MAGIC))


def test_truncated_footer_rejected():
    framed = _frame(b"hello")[:-10]
    _, reader = deserialize(hashlib.sha256, RESOURCE, io.BytesIO(framed))
    with pytest.raises(SerializationError, match="truncated"):
        reader.read()


def test_read_after_end_returns_empty():
    _, reader = deserialize(hashlib.sha256, RESOURCE, io.BytesIO(_frame(b"abc")))
    assert reader.read() == b"abc"
    assert reader.read() == b""
import io
import os

import pytest

from kloset import importer
from kloset.importer import Importer, ScanResult


class MockedImporter(Importer):
    def __init__(self, proto, config):
        self.proto = proto
        self.config = dict(config)

    def origin(self):
        return ""

    def type(self):
        return ""

    def root(self):
        return ""

    def scan(self):
        return iter(())

    def new_reader(self, pathname):
        return io.BytesIO(b"")

    def new_extended_attribute_reader(self, pathname, attribute):
        return io.BytesIO(b"")

    def close(self):
        pass


for _name in ("fs", "s3", "ftp"):
    if _name not in importer.backends():
        importer.register(_name, MockedImporter)


def test_backends():
    importer.register("local1", lambda proto, config: None)
    importer.register("remote1", lambda proto, config: None)
    names = importer.backends()
    assert {"local1", "remote1"} <= set(names)


def test_register_twice_raises():
    importer.register("dup-importer", MockedImporter)
    with pytest.raises(ValueError):
        importer.register("dup-importer", MockedImporter)


@pytest.mark.parametrize(
    "location,expected_backend",
    [
        ("/", "fs"),
        ("fs://some/path", "fs"),
        ("s3://bucket/path", "s3"),
        ("ftp://some/path", "ftp"),
    ],
)
def test_new_importer(location, expected_backend):
    imp = importer.new_importer({"location": location})
    assert isinstance(imp, MockedImporter)
    assert imp.proto == expected_backend


def test_new_importer_unsupported():
    with pytest.raises(ValueError) as exc:
        importer.new_importer({"location": "http://unsupported"})
    assert "unsupported importer protocol" in str(exc.value)


def test_new_importer_missing_location():
    with pytest.raises(ValueError) as exc:
        importer.new_importer({})
    assert str(exc.value) == "missing location"


def test_new_importer_relative_fs_joined_with_cwd():
    cwd = os.path.abspath(os.sep + "work")
    config = {"location": "fs://some/path"}
    imp = importer.new_importer(config, cwd)
    expected = "fs://" + os.path.normpath(os.path.join(cwd, "some/path"))
    assert config["location"] == expected
    assert imp.config["location"] == expected


def test_new_importer_other_protocol_keeps_location():
    config = {"location": "s3://bucket/path"}
    importer.new_importer(config)
    assert config["location"] == "s3://bucket/path"


def test_new_scan_record():
    file_info = {"name": "file", "size": 300000}
    xattr = ["attr1", "attr2"]
    result = importer.new_scan_record("/path/to/file", "target", file_info, xattr)
    assert result.error is None
    assert result.record.pathname == "/path/to/file"
    assert result.record.target == "target"
    assert result.record.file_info == file_info
    assert sorted(result.record.extended_attributes) == sorted(xattr)
    assert result.record.is_xattr is False


def test_new_scan_xattr():
    result = importer.new_scan_xattr("/path/to/file", "foo/bar", "extended")
    assert result.record.pathname == "/path/to/file"
    assert result.record.xattr_name == "foo/bar"
    assert result.record.xattr_type == "extended"
    assert result.record.is_xattr is True


def test_new_scan_error():
    err = RuntimeError("some error")
    result = importer.new_scan_error("/path/to/file", err)
    assert result.record is None
    assert result.error.pathname == "/path/to/file"
    assert result.error.err is err


def test_scan_result_defaults():
    result = ScanResult()
    assert result.record is None and result.error is None
import msgpack
import pytest

from kloset.summary import Below, Directory, FileSummary, Summary

MODE_DIR = 1 << 31
MODE_SYMLINK = 1 << 27
MODE_SETUID = 1 << 23


def regular(size, entropy=1.0, content_type="", mod_time=100, objects=1, chunks=1):
    return FileSummary(
        size=size,
        objects=objects,
        chunks=chunks,
        mode=0o644,
        mod_time=mod_time,
        content_type=content_type,
        entropy=entropy,
    )


def test_file_summary_round_trip():
    fs = FileSummary(
        size=5,
        objects=1,
        chunks=2,
        mode=0o644,
        mod_time=1234,
        content_type="text/plain; charset=utf-8",
        entropy=1.9219280948873625,
    )
    assert FileSummary.from_bytes(fs.to_bytes()) == fs


def test_file_summary_keeps_all_keys_even_when_zero():
    decoded = msgpack.unpackb(FileSummary().to_bytes(), raw=False)
    assert set(decoded) == {
        "size",
        "objects",
        "chunks",
        "mode",
        "mod_time",
        "content_type",
        "entropy",
    }


def test_empty_summary_wire_form():
    decoded = msgpack.unpackb(Summary().to_bytes(), raw=False)
    assert decoded == {"below": {"errors": 0}}


def test_summary_round_trip():
    summary = Summary()
    summary.update_with_file_summary(regular(10, content_type="image/png"))
    summary.update_with_file_summary(regular(30, entropy=7.5))
    summary.update_averages()
    summary.below.errors = 2
    summary.below.mime_video = 4
    restored = Summary.from_bytes(summary.to_bytes())
    assert restored == summary


def test_mime_keys_on_wire():
    summary = Summary()
    summary.update_with_file_summary(regular(1, content_type="audio/ogg"))
    decoded = msgpack.unpackb(summary.to_bytes(), raw=False)
    assert decoded["directory"]["MIME_audio"] == 1
    assert "MIME_text" not in decoded["directory"]


def test_regular_text_file():
    summary = Summary()
    summary.update_with_file_summary(regular(42, entropy=1.5, content_type="text/plain"))
    d = summary.directory
    assert d.files == 1
    assert d.mime_text == 1
    assert d.lo_entropy == 1
    assert d.hi_entropy == 0
    assert d.size == 42
    assert d.min_size == 42 and d.max_size == 42
    assert d.objects == 1 and d.chunks == 1


def test_mode_classification():
    summary = Summary()
    summary.update_with_file_summary(FileSummary(mode=MODE_DIR | 0o755))
    summary.update_with_file_summary(FileSummary(mode=MODE_SYMLINK | 0o777))
    summary.update_with_file_summary(FileSummary(mode=MODE_SETUID | 0o755))
    d = summary.directory
    assert d.directories == 1
    assert d.symlinks == 1
    assert d.files == 1
    assert d.setuid == 1


def test_entropy_and_mime_buckets():
    summary = Summary()
    summary.update_with_file_summary(regular(1, entropy=7.5, content_type="font/woff"))
    summary.update_with_file_summary(regular(1, entropy=4.0, content_type=""))
    d = summary.directory
    assert d.hi_entropy == 1
    assert d.lo_entropy == 0
    assert d.mime_other == 1
    assert d.min_entropy == 4.0
    assert d.max_entropy == 7.5


def test_objects_ignored_without_objects():
    summary = Summary()
    summary.update_with_file_summary(regular(3, objects=0, chunks=9))
    assert summary.directory.objects == 0
    assert summary.directory.chunks == 0


def test_update_averages():
    summary = Summary()
    summary.update_with_file_summary(regular(10, entropy=2.0))
    summary.update_with_file_summary(regular(30, entropy=6.0))
    summary.update_averages()
    assert summary.directory.avg_size == 20
    assert summary.directory.avg_entropy == pytest.approx(4.0)


def test_update_averages_without_files_leaves_zero():
    summary = Summary()
    summary.update_with_file_summary(FileSummary(mode=MODE_DIR))
    summary.update_averages()
    assert summary.directory.avg_size == 0
    assert summary.directory.avg_entropy == 0.0


def test_update_below_sums_and_extremes():
    child = Summary(
        directory=Directory(files=2, errors=1, min_size=4, max_size=12, mime_text=1),
        below=Below(files=3, errors=2, min_size=9, max_size=10),
    )
    parent = Summary()
    parent.update_below(child)
    assert parent.below.files == 5
    assert parent.below.errors == 3
    assert parent.below.mime_text == 1
    assert parent.below.min_size == 4
    assert parent.below.max_size == 12
    assert parent.directory == Directory()


def test_update_below_accumulates_over_children():
    child = Summary(directory=Directory(files=1, size=7))
    parent = Summary()
    parent.update_below(child)
    parent.update_below(child)
    assert parent.below.files == 2
    assert parent.below.size == 14


def test_from_bytes_nil_is_none():
    assert Summary.from_bytes(msgpack.packb(None)) is None
    assert FileSummary.from_bytes(msgpack.packb(None)) is None


def test_from_bytes_rejects_garbage():
    with pytest.raises(ValueError):
        Summary.from_bytes(b"\xc1")
    with pytest.raises(ValueError):
        FileSummary.from_bytes(msgpack.packb([1, 2]))


def test_from_bytes_rejects_wrong_field_type():
    with pytest.raises(ValueError):
        Summary.from_bytes(msgpack.packb({"directory": {"files": "many"}}))


def test_from_bytes_ignores_unknown_keys():
    data = msgpack.packb({"size": 8, "unknown": True})
    assert FileSummary.from_bytes(data) == FileSummary(size=8)
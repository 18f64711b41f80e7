import pytest

from kloset.versioning import (
    Version,
    from_string,
    get_current_version,
    new_version,
    register,
)


@pytest.mark.parametrize(
    "major, minor, patch, want",
    [
        (1, 2, 3, Version(0x010203)),
        (0, 0, 0, Version(0)),
        (255, 255, 255, Version(0xFFFFFF)),
    ],
    ids=["basic version", "zero version", "max single byte"],
)
def test_new_version(major, minor, patch, want):
    assert new_version(major, minor, patch) == want


def test_version_components():
    v = new_version(1, 2, 3)
    assert v.major() == 1
    assert v.minor() == 2
    assert v.patch() == 3


@pytest.mark.parametrize(
    "version, want",
    [
        (new_version(1, 2, 3), "1.2.3"),
        (new_version(0, 0, 0), "0.0.0"),
        (new_version(255, 255, 255), "255.255.255"),
    ],
    ids=["basic version", "zero version", "max single byte"],
)
def test_version_string(version, want):
    assert str(version) == want


@pytest.mark.parametrize(
    "text, want",
    [
        ("1.2.3", new_version(1, 2, 3)),
        ("0.0.0", new_version(0, 0, 0)),
        ("255.255.255", new_version(255, 255, 255)),
    ],
    ids=["valid version", "zero version", "max version"],
)
def test_from_string_valid(text, want):
    assert from_string(text) == want


@pytest.mark.parametrize("text", ["1.2", "a.b.c"], ids=["invalid format", "invalid numbers"])
def test_from_string_invalid(text):
    with pytest.raises(ValueError):
        from_string(text)


def test_from_string_roundtrip():
    v = new_version(4, 17, 200)
    assert from_string(str(v)) == v


def test_register_and_get_current_version():
    test_type = "test-versioning-config"
    test_version = new_version(1, 0, 0)

    register(test_type, test_version)
    assert get_current_version(test_type) == test_version

    with pytest.raises(ValueError, match="already registered"):
        register(test_type, test_version)


def test_get_unregistered_version():
    with pytest.raises(KeyError, match="not registered"):
        get_current_version("test-versioning-never-registered")
"""Unit tests for storage URI parsing and local path classification."""

import os
from pathlib import Path

import pytest

from s3util.paths import (
    PathKind,
    StorageLocator,
    classify_local_path,
    is_storage_uri,
    resolve_storage_uri,
)


@pytest.mark.parametrize(
    "uri, bucket, key",
    [
        ("s3://mybucket/mykey", "mybucket", "mykey"),
        ("s3://mybucket/a/b/c.txt", "mybucket", "a/b/c.txt"),
        ("s3://mybucket/images/", "mybucket", "images/"),
        ("s3://mybucket/", "mybucket", ""),
        ("s3://mybucket", "mybucket", ""),
        ("s3://mybucket/logs/*", "mybucket", "logs/*"),
    ],
)
def test_resolve_storage_uri(uri: str, bucket: str, key: str) -> None:
    """
    Tests that the bucket is everything before the first slash and the key
    everything after it.
    """
    assert resolve_storage_uri(uri) == StorageLocator(bucket, key)


@pytest.mark.parametrize("path", ["foo.txt", "./dir", "/abs/s3://x", "S3://upper"])
def test_resolve_non_storage_uri(path: str) -> None:
    """Tests that local paths are not mistaken for storage URIs."""
    assert not is_storage_uri(path)
    assert resolve_storage_uri(path) is None


@pytest.mark.parametrize(
    "locator",
    [
        StorageLocator("b", "k"),
        StorageLocator("b", ""),
        StorageLocator("b", "deep/nested/key.bin"),
        StorageLocator("b", "prefix/*"),
    ],
)
def test_locator_uri_round_trip(locator: StorageLocator) -> None:
    """Tests that re-parsing a locator's URI yields the same locator."""
    assert resolve_storage_uri(locator.uri) == locator


def test_locator_uri_without_key() -> None:
    assert StorageLocator("b").uri == "s3://b"
    assert str(StorageLocator("b", "k")) == "s3://b/k"


@pytest.mark.parametrize(
    "key, is_wildcard, prefix",
    [
        ("logs/*", True, "logs/"),
        ("logs/2024-*", True, "logs/2024-"),
        ("*", True, ""),
        ("logs/a.txt", False, "logs/a.txt"),
        ("", False, ""),
    ],
)
def test_locator_wildcard(key: str, is_wildcard: bool, prefix: str) -> None:
    """Tests that only a single trailing marker is stripped from the prefix."""
    locator: StorageLocator = StorageLocator("b", key)
    assert locator.is_wildcard is is_wildcard
    assert locator.wildcard_prefix == prefix


def test_classify_file_and_directory(tmp_path: Path) -> None:
    """
    Tests classification of existing paths.

    Arrange:
        - Create a file and a directory.
    Act:
        - Classify both, the directory via a relative path.
    Assert:
        - Kinds are correct and paths are absolute and canonical.
    """
    file_path: Path = tmp_path / "f.txt"
    file_path.write_text("x")

    assert classify_local_path(str(file_path)).kind is PathKind.FILE

    cwd: str = os.getcwd()
    try:
        os.chdir(tmp_path)
        local = classify_local_path(".")
    finally:
        os.chdir(cwd)
    assert local.kind is PathKind.DIRECTORY
    assert local.path.is_absolute()
    assert local.path == tmp_path.resolve()


def test_classify_resolves_symlinks(tmp_path: Path) -> None:
    target: Path = tmp_path / "real"
    target.mkdir()
    link: Path = tmp_path / "link"
    link.symlink_to(target)

    local = classify_local_path(str(link))

    assert local.kind is PathKind.DIRECTORY
    assert local.path == target.resolve()


def test_classify_missing_path(tmp_path: Path) -> None:
    """Tests that a missing path is reported, not raised."""
    local = classify_local_path(str(tmp_path / "missing"))

    assert local.kind is PathKind.NOT_FOUND
    assert isinstance(local.error, FileNotFoundError)


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs named pipes")
def test_classify_fifo_is_not_a_file(tmp_path: Path) -> None:
    """Tests that a named pipe is classified apart from regular files."""
    fifo: Path = tmp_path / "pipe"
    os.mkfifo(fifo)

    local = classify_local_path(str(fifo))

    assert local.kind is PathKind.OTHER
    assert local.error is None

"""
Resolution of command-line paths into storage locators and local paths.

A storage URI has the form `s3://bucket[/key]`. Anything else is treated as
a path on the local file system.
"""

import logging
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

logger: logging.Logger = logging.getLogger(__name__)

SCHEME: str = "s3://"
WILDCARD: str = "*"


@dataclass(frozen=True)
class StorageLocator:
    """
    A resolved (bucket, key) pair.

    Attributes:
        bucket (str): The bucket name.
        key (str): The object key. Empty means the bucket root, or that the
            destination name should be derived from the source.
    """

    bucket: str
    key: str = ""

    @property
    def uri(self) -> str:
        """
        Re-derives the storage URI for this locator.

        Returns:
            str: `s3://bucket/key`, or `s3://bucket` if the key is empty.
        """
        if not self.key:
            return f"{SCHEME}{self.bucket}"
        return f"{SCHEME}{self.bucket}/{self.key}"

    @property
    def is_wildcard(self) -> bool:
        """Whether the key requests a prefix listing."""
        return self.key.endswith(WILDCARD)

    @property
    def wildcard_prefix(self) -> str:
        """The literal listing prefix, i.e. the key without its trailing marker."""
        return self.key[: -len(WILDCARD)] if self.is_wildcard else self.key

    def __str__(self) -> str:
        return self.uri


class PathKind(Enum):
    """Classification of a local path."""

    FILE = "file"
    DIRECTORY = "directory"
    OTHER = "other"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class LocalPath:
    """
    A local path in canonical absolute form, together with its classification.

    Attributes:
        path (Path): The resolved absolute path.
        kind (PathKind): What the path points to.
        error (OSError, optional): The stat error when `kind` is `NOT_FOUND`.
    """

    path: Path
    kind: PathKind
    error: Optional[OSError] = None


def is_storage_uri(path: str) -> bool:
    """Returns True if `path` carries the storage scheme prefix."""
    return path.startswith(SCHEME)


def resolve_storage_uri(path: str) -> Optional[StorageLocator]:
    """
    Splits a storage URI into its bucket and key.

    Examples:
        s3://mybucket/mykey   => StorageLocator("mybucket", "mykey")
        s3://mybucket/a/b.txt => StorageLocator("mybucket", "a/b.txt")
        s3://mybucket/        => StorageLocator("mybucket", "")
        s3://mybucket         => StorageLocator("mybucket", "")

    Args:
        path (str): The path to resolve.

    Returns:
        Optional[StorageLocator]: The locator, or None if `path` is not a
            storage URI.
    """
    if not is_storage_uri(path):
        return None
    without_scheme: str = path[len(SCHEME) :]
    bucket, _, key = without_scheme.partition("/")
    return StorageLocator(bucket=bucket, key=key)


def classify_local_path(path: str) -> LocalPath:
    """
    Resolves a local path to its canonical absolute form and classifies it.

    Args:
        path (str): The local path as given by the user.

    Returns:
        LocalPath: The resolved path. Stat failures are reported as
            `PathKind.NOT_FOUND` with the error attached, never raised.
            Anything that is neither a regular file nor a directory (FIFOs,
            sockets, devices) is `PathKind.OTHER`.
    """
    resolved: Path = Path(path).expanduser().absolute()
    try:
        resolved = resolved.resolve()
        mode: int = resolved.stat().st_mode
    except OSError as e:
        logger.debug(f"Could not stat '{resolved}': {e}")
        return LocalPath(resolved, PathKind.NOT_FOUND, e)
    if stat.S_ISDIR(mode):
        return LocalPath(resolved, PathKind.DIRECTORY)
    if stat.S_ISREG(mode):
        return LocalPath(resolved, PathKind.FILE)
    return LocalPath(resolved, PathKind.OTHER)

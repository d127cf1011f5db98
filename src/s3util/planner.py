"""
Turns a resolved source and destination into independent transfer jobs.

Planning is all-or-nothing: if the source cannot be fully enumerated, a
`PlanError` is raised and no job is returned.
"""

import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import List, Tuple, Union

from s3util.exceptions import PlanError
from s3util.paths import (
    LocalPath,
    PathKind,
    StorageLocator,
    classify_local_path,
)
from s3util.storage import StorageClient

logger: logging.Logger = logging.getLogger(__name__)


class Direction(Enum):
    """Which way bytes flow for a transfer."""

    UPLOAD = "upload"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class TransferJob:
    """
    A unit of transfer work for exactly one file.

    Attributes:
        direction (Direction): Upload or download.
        local_path (Path): The absolute local file path (read on upload,
            written on download).
        locator (StorageLocator): The object on the storage side.
    """

    direction: Direction
    local_path: Path
    locator: StorageLocator

    @property
    def source(self) -> str:
        if self.direction is Direction.UPLOAD:
            return str(self.local_path)
        return self.locator.uri

    @property
    def destination(self) -> str:
        if self.direction is Direction.UPLOAD:
            return self.locator.uri
        return str(self.local_path)

    def describe(self) -> str:
        return f"{self.source} -> {self.destination}"


def _join_key(prefix: str, relative: str) -> str:
    """Joins a key prefix and a relative path with a single `/`."""
    prefix = prefix.rstrip("/")
    if not prefix:
        return relative
    return f"{prefix}/{relative}"


def _walk_files(root: Path) -> List[Tuple[str, Path]]:
    """
    Recursively lists every regular file under `root`.

    Args:
        root (Path): The directory to walk.

    Returns:
        List[Tuple[str, Path]]: (relative posix path, absolute path) pairs,
            sorted by relative path.

    Raises:
        PlanError: If any directory cannot be read or any entry cannot be stat'ed.
    """

    def _on_error(e: OSError) -> None:
        raise PlanError(f"Failed to walk source directory '{root}': {e}") from e

    files: List[Tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        for name in dirnames:
            if os.path.islink(os.path.join(dirpath, name)):
                logger.debug(
                    f"Not descending into symlinked directory '{Path(dirpath) / name}'"
                )
        for name in filenames:
            full_path: Path = Path(dirpath) / name
            try:
                mode: int = full_path.stat().st_mode
            except OSError as e:
                # Also covers broken symlinks.
                raise PlanError(f"Failed to stat '{full_path}': {e}") from e
            if not stat.S_ISREG(mode):
                logger.debug(f"Skipping non-regular file '{full_path}'")
                continue
            files.append((full_path.relative_to(root).as_posix(), full_path))
    files.sort(key=lambda item: item[0])
    return files


def _is_safe_relative(relative: str) -> bool:
    parts: PurePosixPath = PurePosixPath(relative)
    return bool(relative) and not parts.is_absolute() and ".." not in parts.parts


class JobPlanner:
    """Builds the job list for one invocation."""

    def __init__(self, client: StorageClient) -> None:
        """
        Args:
            client (StorageClient): Used for prefix listings on download.
        """
        self._client: StorageClient = client

    async def plan(
        self,
        source: Union[str, StorageLocator],
        destination: Union[str, StorageLocator],
        direction: Direction,
    ) -> List[TransferJob]:
        """
        Produces the ordered list of transfer jobs.

        Args:
            source (Union[str, StorageLocator]): A local path for uploads, a
                locator for downloads.
            destination (Union[str, StorageLocator]): A locator for uploads, a
                local path for downloads.
            direction (Direction): The transfer direction.

        Returns:
            List[TransferJob]: Deterministically ordered, independent jobs.

        Raises:
            PlanError: If the jobs cannot be fully determined.
        """
        if direction is Direction.UPLOAD:
            if not (isinstance(source, str) and isinstance(destination, StorageLocator)):
                raise TypeError(
                    "An upload needs a local source path and a storage destination."
                )
            jobs: List[TransferJob] = self.plan_upload(source, destination)
        else:
            if not (isinstance(source, StorageLocator) and isinstance(destination, str)):
                raise TypeError(
                    "A download needs a storage source and a local destination path."
                )
            jobs = await self.plan_download(source, destination)
        logger.info(f"Planned {len(jobs)} {direction.value} job(s).")
        return jobs

    def plan_upload(
        self, source: str, destination: StorageLocator
    ) -> List[TransferJob]:
        local: LocalPath = classify_local_path(source)
        if local.kind is PathKind.NOT_FOUND:
            raise PlanError(
                f"Failed to stat input path '{source}': {local.error}"
            ) from local.error
        if local.kind is PathKind.OTHER:
            raise PlanError(
                f"Input path '{source}' is neither a regular file nor a directory."
            )

        if local.kind is PathKind.FILE:
            # Either an explicit key used verbatim, or the bucket (or a
            # folder-like key ending in "/") and the file name is appended.
            key: str = destination.key
            if not key or key.endswith("/"):
                key = f"{key}{local.path.name}"
            return [
                TransferJob(
                    Direction.UPLOAD,
                    local.path,
                    StorageLocator(destination.bucket, key),
                )
            ]

        # A directory mirrors its whole tree under the destination key, e.g.
        #
        #     s3util . s3://mybucket/images
        #
        # uploads ./foo.png to s3://mybucket/images/foo.png and
        # ./sub/baz.jpg to s3://mybucket/images/sub/baz.jpg
        return [
            TransferJob(
                Direction.UPLOAD,
                full_path,
                StorageLocator(destination.bucket, _join_key(destination.key, rel)),
            )
            for rel, full_path in _walk_files(local.path)
        ]

    async def plan_download(
        self, source: StorageLocator, destination: str
    ) -> List[TransferJob]:
        local: LocalPath = classify_local_path(destination)

        if source.is_wildcard:
            return await self._plan_prefix_download(source, local, destination)

        if not source.key:
            raise PlanError(
                f"No key given in '{source.uri}'. To download a whole bucket "
                f"use '{source.uri}/*'."
            )
        out_path: Path = local.path
        if local.kind is PathKind.DIRECTORY:
            out_path = local.path / source.key.rstrip("/").rsplit("/", 1)[-1]
        return [TransferJob(Direction.DOWNLOAD, out_path, source)]

    async def _plan_prefix_download(
        self, source: StorageLocator, local: LocalPath, destination: str
    ) -> List[TransferJob]:
        if local.kind is not PathKind.DIRECTORY:
            raise PlanError(
                f"Destination '{destination}' must be an existing directory "
                f"when downloading '{source.uri}'."
            )

        prefix: str = source.wildcard_prefix
        try:
            keys: List[str] = await self._client.list(source.bucket, prefix)
        except Exception as e:
            raise PlanError(f"Failed to list '{source.uri}': {e}") from e

        # Each key lands at its suffix after the prefix, so logs/2024-* maps
        # logs/2024-01.txt to <dest>/01.txt.
        jobs: List[TransferJob] = []
        for key in sorted(keys):
            if key.endswith("/"):
                continue
            relative: str = key[len(prefix) :].lstrip("/")
            if not _is_safe_relative(relative):
                logger.warning(f"Skipping unsafe key '{key}' from '{source.uri}'")
                continue
            jobs.append(
                TransferJob(
                    Direction.DOWNLOAD,
                    local.path.joinpath(*PurePosixPath(relative).parts),
                    StorageLocator(source.bucket, key),
                )
            )
        return jobs

"""
Pytest configuration and fixtures for the s3util test suite.

This module provides:
- An in-memory `FakeStorageClient` implementing the storage protocol, with
  fault injection and concurrency tracking.
- Fixtures for the fake client, an `AppConfig`, and a sample directory tree.
"""

import asyncio
import io
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Set, Tuple

import pytest
from botocore.exceptions import ClientError

from s3util.config import AppConfig


def make_client_error(code: str, operation: str) -> ClientError:
    """
    Build a botocore `ClientError` like the ones raised by a real S3 client.

    Args:
        code (str): The S3 error code, e.g. "AccessDenied".
        operation (str): The operation name, e.g. "PutObject".

    Returns:
        ClientError: The error instance.
    """
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeStream:
    """A readable object body that records whether it was closed."""

    def __init__(self, data: bytes, fail_after: Optional[int] = None) -> None:
        self._buffer: io.BytesIO = io.BytesIO(data)
        self._fail_after: Optional[int] = fail_after
        self.closed: bool = False

    async def read(self, amt: int = -1) -> bytes:
        if self._fail_after is not None and self._buffer.tell() >= self._fail_after:
            raise make_client_error("InternalError", "GetObject")
        await asyncio.sleep(0)
        return self._buffer.read(amt)

    def close(self) -> None:
        self.closed = True


class FakeStorageClient:
    """
    In-memory `StorageClient`.

    Attributes:
        objects (Dict[Tuple[str, str], bytes]): Stored objects by (bucket, key).
        fail_put (Set[str]): Keys whose upload raises `AccessDenied`.
        fail_get (Set[str]): Keys whose download raises `AccessDenied`.
        fail_read (Set[str]): Keys whose body breaks after the first chunk.
        fail_list (bool): Whether `list` raises.
        put_bodies (List[BinaryIO]): Every file object passed to `put`.
        streams (List[FakeStream]): Every stream returned by `get`.
        max_in_flight (int): Peak number of concurrent put/get calls.
    """

    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.fail_put: Set[str] = set()
        self.fail_get: Set[str] = set()
        self.fail_read: Set[str] = set()
        self.fail_list: bool = False
        self.put_bodies: List[BinaryIO] = []
        self.streams: List[FakeStream] = []
        self.list_calls: List[Tuple[str, str]] = []
        self.in_flight: int = 0
        self.max_in_flight: int = 0

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        # Yield so that other workers get a chance to overlap.
        await asyncio.sleep(0.001)

    async def put(self, bucket: str, key: str, body: BinaryIO) -> None:
        self.put_bodies.append(body)
        await self._enter()
        try:
            if key in self.fail_put:
                raise make_client_error("AccessDenied", "PutObject")
            self.objects[(bucket, key)] = body.read()
        finally:
            self.in_flight -= 1

    async def get(self, bucket: str, key: str) -> FakeStream:
        await self._enter()
        try:
            if key in self.fail_get or (bucket, key) not in self.objects:
                code: str = "AccessDenied" if key in self.fail_get else "NoSuchKey"
                raise make_client_error(code, "GetObject")
            stream: FakeStream = FakeStream(
                self.objects[(bucket, key)],
                fail_after=1 if key in self.fail_read else None,
            )
            self.streams.append(stream)
            return stream
        finally:
            self.in_flight -= 1

    async def list(self, bucket: str, prefix: str) -> List[str]:
        self.list_calls.append((bucket, prefix))
        if self.fail_list:
            raise make_client_error("NoSuchBucket", "ListObjectsV2")
        return [k for (b, k) in self.objects if b == bucket and k.startswith(prefix)]


@pytest.fixture(scope="function")
def fake_client() -> FakeStorageClient:
    """
    Provide an empty in-memory storage client.

    Returns:
        FakeStorageClient: A fresh client for each test.
    """
    return FakeStorageClient()


@pytest.fixture(scope="function")
def app_config() -> AppConfig:
    """
    Provide an `AppConfig` with a small pool and small download chunks.

    Returns:
        AppConfig: A config instance for use in tests.
    """
    return AppConfig(parallelism=3, chunk_size=4)


@pytest.fixture(scope="function")
def source_tree(tmp_path: Path) -> Path:
    """
    Create a directory with `a.txt` and `sub/b.txt`.

    Args:
        tmp_path (Path): The pytest fixture for a temporary directory.

    Returns:
        Path: The root of the tree.
    """
    root: Path = tmp_path / "src"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("content of a")
    (root / "sub" / "b.txt").write_text("content of b")
    return root

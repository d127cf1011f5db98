"""
The object-storage capability used by the transfer core.

The core only depends on the `StorageClient` protocol. `S3StorageClient`
implements it on top of an aiobotocore S3 client; tests substitute an
in-memory implementation.
"""

import logging
import os
from contextlib import AsyncExitStack, asynccontextmanager
from typing import (
    TYPE_CHECKING,
    AsyncIterator,
    BinaryIO,
    List,
    Protocol,
)

from aiobotocore.session import AioSession, get_session
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError

from s3util.config import Config
from s3util.exceptions import FatalError

if TYPE_CHECKING:
    from types_aiobotocore_s3.client import S3Client
    from types_aiobotocore_s3.paginator import ListObjectsV2Paginator

logger: logging.Logger = logging.getLogger(__name__)


class ObjectStream(Protocol):
    """A readable byte stream returned by `StorageClient.get`."""

    async def read(self, amt: int = ...) -> bytes: ...

    def close(self) -> None: ...


class StorageClient(Protocol):
    """
    Minimal object-storage interface. Implementations must be safe to call
    concurrently from many tasks and signal failures by raising.
    """

    async def put(self, bucket: str, key: str, body: BinaryIO) -> None: ...

    async def get(self, bucket: str, key: str) -> ObjectStream: ...

    async def list(self, bucket: str, prefix: str) -> List[str]: ...


class S3StorageClient:
    """`StorageClient` backed by an aiobotocore S3 client."""

    def __init__(self, client: "S3Client") -> None:
        """
        Args:
            client (S3Client): An open aiobotocore S3 client.
        """
        self._client: "S3Client" = client

    async def put(self, bucket: str, key: str, body: BinaryIO) -> None:
        """
        Uploads the contents of an open binary file.

        Args:
            bucket (str): The destination bucket.
            key (str): The destination key.
            body (BinaryIO): A file object opened for reading in binary mode.
        """
        # Some S3 providers reject chunked uploads, so always send the length.
        size: int = os.fstat(body.fileno()).st_size
        await self._client.put_object(
            Bucket=bucket, Key=key, Body=body, ContentLength=size
        )
        logger.debug(f"PUT s3://{bucket}/{key} ({size} bytes)")

    async def get(self, bucket: str, key: str) -> ObjectStream:
        """
        Opens an object for streaming reads.

        Args:
            bucket (str): The source bucket.
            key (str): The source key.

        Returns:
            ObjectStream: The response body. The caller must close it.
        """
        response = await self._client.get_object(Bucket=bucket, Key=key)
        logger.debug(f"GET s3://{bucket}/{key}")
        return response["Body"]

    async def list(self, bucket: str, prefix: str) -> List[str]:
        """
        Lists every key in `bucket` that starts with `prefix`.

        Args:
            bucket (str): The bucket to list.
            prefix (str): The literal key prefix.

        Returns:
            List[str]: All matching keys, across every result page.
        """
        paginator: "ListObjectsV2Paginator" = self._client.get_paginator(
            "list_objects_v2"
        )
        keys: List[str] = []
        async for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                keys.append(obj["Key"])
        logger.debug(f"Listed {len(keys)} keys under 's3://{bucket}/{prefix}'")
        return keys


@asynccontextmanager
async def open_storage_client(config: Config) -> AsyncIterator[S3StorageClient]:
    """
    Creates an aiobotocore session and S3 client for the configured endpoint.

    Args:
        config (Config): The application configuration.

    Yields:
        S3StorageClient: A storage client that is closed on exit.
    """
    # Explicitly set signature_version, which is required by most non-AWS
    # S3 providers.
    boto_config: BotoConfig = BotoConfig(
        signature_version="s3v4",
        max_pool_connections=config.app.parallelism + 10,
        retries={"max_attempts": config.app.transfer_max_attempts},
    )
    session: AioSession = get_session()
    async with AsyncExitStack() as stack:
        try:
            client: "S3Client" = await stack.enter_async_context(
                session.create_client(
                    "s3", **config.storage.as_boto_dict(), config=boto_config
                )
            )
        except (BotoCoreError, ValueError) as e:
            raise FatalError(f"Failed to create the S3 client: {e}") from e

        logger.debug(
            f"S3 client ready (endpoint={config.storage.endpoint_url or 'default'}, "
            f"region={config.storage.region})"
        )
        yield S3StorageClient(client)

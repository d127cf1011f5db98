"""
Defines the per-job unit of work.

`transfer_one` performs a single upload or download and never raises for
an I/O failure: every failure is converted into an `Err` outcome carrying
the paths involved and the underlying cause.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Union

from botocore.exceptions import BotoCoreError, ClientError

from s3util.exceptions import TransferError
from s3util.planner import Direction, TransferJob
from s3util.storage import ObjectStream, StorageClient

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    """A successful transfer."""


@dataclass(frozen=True)
class Err:
    """
    A failed transfer.

    Attributes:
        reason (str): Human readable description, including the paths involved.
        cause (BaseException): The underlying exception.
    """

    reason: str
    cause: BaseException


Outcome = Union[Ok, Err]


@dataclass(frozen=True)
class TransferResult:
    """
    The result of processing one job.

    Attributes:
        job (TransferJob): The job this result belongs to.
        outcome (Outcome): `Ok()` or `Err(reason, cause)`.
    """

    job: TransferJob
    outcome: Outcome

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Ok)


async def _upload(client: StorageClient, job: TransferJob) -> None:
    loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
    try:
        f: BinaryIO = await loop.run_in_executor(None, open, job.local_path, "rb")
    except OSError as e:
        raise TransferError(
            f"Failed to read source file '{job.local_path}': {e}"
        ) from e
    try:
        await client.put(job.locator.bucket, job.locator.key, f)
    except (ClientError, BotoCoreError) as e:
        raise TransferError(
            f"Failed to upload '{job.local_path}' to '{job.locator.uri}': {e}"
        ) from e
    finally:
        f.close()


async def _download(client: StorageClient, job: TransferJob, chunk_size: int) -> None:
    loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
    try:
        stream: ObjectStream = await client.get(job.locator.bucket, job.locator.key)
    except (ClientError, BotoCoreError) as e:
        raise TransferError(f"Failed to download '{job.locator.uri}': {e}") from e

    out_path: Path = job.local_path
    try:
        try:
            await loop.run_in_executor(
                None, lambda: out_path.parent.mkdir(parents=True, exist_ok=True)
            )
            f: BinaryIO = await loop.run_in_executor(None, open, out_path, "wb")
        except OSError as e:
            raise TransferError(
                f"Failed to create destination file '{out_path}': {e}"
            ) from e
        completed: bool = False
        try:
            while True:
                chunk: bytes = await stream.read(chunk_size)
                if not chunk:
                    break
                await loop.run_in_executor(None, f.write, chunk)
            completed = True
        except (ClientError, BotoCoreError, OSError) as e:
            raise TransferError(
                f"Failed to download '{job.locator.uri}' to '{out_path}': {e}"
            ) from e
        finally:
            f.close()
            if not completed:
                # Don't leave a truncated file behind.
                out_path.unlink(missing_ok=True)
    finally:
        stream.close()


async def transfer_one(
    client: StorageClient, job: TransferJob, chunk_size: int = 1024 * 1024
) -> Outcome:
    """
    Transfers a single file and reports the outcome.

    Args:
        client (StorageClient): The shared storage client.
        job (TransferJob): The job to perform.
        chunk_size (int): Read size used when streaming downloads to disk.

    Returns:
        Outcome: `Ok()` on success, otherwise `Err` with the reason.
    """
    try:
        if job.direction is Direction.UPLOAD:
            await _upload(client, job)
        else:
            await _download(client, job, chunk_size)
    except TransferError as e:
        logger.error(str(e))
        return Err(str(e), e.__cause__ or e)
    except Exception as e:
        logger.exception(f"An unexpected error occurred transferring {job.describe()}")
        return Err(f"Failed to transfer {job.describe()}: {e}", e)

    logger.debug(f"Successfully transferred {job.describe()}")
    return Ok()

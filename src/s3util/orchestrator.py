"""Core orchestration logic for s3util."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from s3util.config import AppConfig
from s3util.exceptions import AmbiguousDirectionError, PlanError, UsageError
from s3util.paths import StorageLocator, is_storage_uri, resolve_storage_uri
from s3util.planner import Direction, JobPlanner, TransferJob
from s3util.pool import ResultCallback, WorkerPool
from s3util.storage import StorageClient
from s3util.transfer import Err, Outcome, TransferResult, transfer_one

logger: logging.Logger = logging.getLogger(__name__)


class OrchestratorState(Enum):
    """Lifecycle of a single `TransferOrchestrator.run`."""

    INIT = "init"
    RESOLVING = "resolving"
    PLANNING = "planning"
    TRANSFERRING = "transferring"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class JobFailure:
    """
    A failed job and why it failed.

    Attributes:
        job (TransferJob): The job that failed.
        reason (str): The failure description, including the paths involved.
    """

    job: TransferJob
    reason: str


@dataclass
class AggregateOutcome:
    """
    The combined result of all jobs of one run.

    Attributes:
        succeeded (int): The number of jobs that completed successfully.
        failed (List[JobFailure]): Failed jobs, in submission order.
    """

    succeeded: int = 0
    failed: List[JobFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed

    def add(self, result: TransferResult) -> None:
        """Records one job result."""
        outcome: Outcome = result.outcome
        if isinstance(outcome, Err):
            self.failed.append(JobFailure(result.job, outcome.reason))
        else:
            self.succeeded += 1


def resolve_direction(source_arg: str, dest_arg: str) -> Direction:
    """
    Determines the transfer direction from the two command-line paths.

    Args:
        source_arg (str): The input path.
        dest_arg (str): The output path.

    Returns:
        Direction: `DOWNLOAD` if the input is a storage URI, `UPLOAD` if the
            output is.

    Raises:
        AmbiguousDirectionError: If neither or both paths are storage URIs.
    """
    source_remote: bool = is_storage_uri(source_arg)
    dest_remote: bool = is_storage_uri(dest_arg)
    if source_remote == dest_remote:
        which: str = "Both" if source_remote else "Neither"
        raise AmbiguousDirectionError(
            f"{which} of '{source_arg}' and '{dest_arg}' is an S3 URI. "
            "Exactly one of the paths must start with s3://"
        )
    return Direction.DOWNLOAD if source_remote else Direction.UPLOAD


def resolve_paths(
    source_arg: str, dest_arg: str
) -> Tuple[Direction, Union[str, StorageLocator], Union[str, StorageLocator]]:
    """
    Validates both command-line paths and resolves the storage side.

    Args:
        source_arg (str): The input path.
        dest_arg (str): The output path.

    Returns:
        Tuple[Direction, Union[str, StorageLocator], Union[str, StorageLocator]]:
            The direction, then the source and the destination with the
            storage URI replaced by its locator.

    Raises:
        AmbiguousDirectionError: If neither or both paths are storage URIs.
        UsageError: If the storage URI has no bucket name.
    """
    direction: Direction = resolve_direction(source_arg, dest_arg)
    remote_arg: str = dest_arg if direction is Direction.UPLOAD else source_arg
    locator: Optional[StorageLocator] = resolve_storage_uri(remote_arg)
    if locator is None or not locator.bucket:
        raise UsageError(
            f"No bucket name in '{remote_arg}'. Expected s3://bucket[/key]"
        )
    if direction is Direction.UPLOAD:
        return direction, source_arg, locator
    return direction, locator, dest_arg


class TransferOrchestrator:
    """Orchestrates one copy between local storage and a bucket from start to finish."""

    def __init__(
        self,
        config: AppConfig,
        client: StorageClient,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        """
        Initializes the orchestrator.

        Args:
            config (AppConfig): Operational settings, parallelism in particular.
            client (StorageClient): The storage client shared by all workers.
            on_result (ResultCallback, optional): Called for each finished job.
        """
        self._config: AppConfig = config
        self._client: StorageClient = client
        self.on_result: Optional[ResultCallback] = on_result
        self._planner: JobPlanner = JobPlanner(client)
        self.state: OrchestratorState = OrchestratorState.INIT

    async def plan(self, source_arg: str, dest_arg: str) -> List[TransferJob]:
        """
        Resolves both paths and plans the jobs without transferring anything.

        Args:
            source_arg (str): The input path or storage URI.
            dest_arg (str): The output path or storage URI.

        Returns:
            List[TransferJob]: The planned jobs.

        Raises:
            AmbiguousDirectionError: If the direction cannot be determined.
            UsageError: If the storage URI has no bucket name.
            PlanError: If planning fails.
        """
        try:
            self.state = OrchestratorState.RESOLVING
            direction, source, destination = resolve_paths(source_arg, dest_arg)
            self.state = OrchestratorState.PLANNING
            return await self._planner.plan(source, destination, direction)
        except (UsageError, PlanError) as e:
            self.state = OrchestratorState.FAILED
            logger.debug(f"Run failed before transferring: {e}")
            raise

    async def run(self, source_arg: str, dest_arg: str) -> AggregateOutcome:
        """
        Executes the full copy.

        Individual job failures never stop the run; they are collected in the
        returned outcome.

        Args:
            source_arg (str): The input path or storage URI.
            dest_arg (str): The output path or storage URI.

        Returns:
            AggregateOutcome: Success count and the failures in submission order.

        Raises:
            AmbiguousDirectionError: If the direction cannot be determined.
            UsageError: If the storage URI has no bucket name.
            PlanError: If planning fails. Nothing has been transferred then.
        """
        jobs: List[TransferJob] = await self.plan(source_arg, dest_arg)
        return await self.transfer(jobs)

    async def transfer(self, jobs: List[TransferJob]) -> AggregateOutcome:
        """
        Runs already planned jobs on a fresh worker pool and aggregates the results.

        Args:
            jobs (List[TransferJob]): Jobs returned by `plan`.

        Returns:
            AggregateOutcome: Success count and the failures in submission order.
        """
        self.state = OrchestratorState.TRANSFERRING
        pool: WorkerPool = WorkerPool(
            self._config.parallelism,
            lambda job: transfer_one(self._client, job, self._config.chunk_size),
            on_result=self.on_result,
        )
        logger.info(
            f"Transferring {len(jobs)} file(s) with {pool.size} worker(s)."
        )
        results: List[TransferResult] = await pool.submit_all(jobs)

        self.state = OrchestratorState.AGGREGATING
        outcome: AggregateOutcome = AggregateOutcome()
        for result in results:
            outcome.add(result)

        self.state = OrchestratorState.DONE
        logger.info(
            f"Transfer finished: {outcome.succeeded} succeeded, "
            f"{len(outcome.failed)} failed."
        )
        return outcome

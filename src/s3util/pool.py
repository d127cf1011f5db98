"""
A fixed-size pool of asyncio worker tasks.

Jobs are fed through a shared queue to at most `size` workers. Every job
owns a future that is resolved exactly once by the worker that processed
it, and `submit_all` only returns once all of them are resolved.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from s3util.planner import TransferJob
from s3util.transfer import Err, Outcome, TransferResult

logger: logging.Logger = logging.getLogger(__name__)

WorkFn = Callable[[TransferJob], Awaitable[Outcome]]
ResultCallback = Callable[[TransferResult], None]


class WorkerPool:
    """Runs transfer jobs with bounded concurrency."""

    def __init__(
        self,
        size: int,
        work: WorkFn,
        on_result: Optional[ResultCallback] = None,
    ) -> None:
        """
        Initialize the pool.

        Args:
            size (int): The number of concurrent workers. Values below 1 are
                raised to 1.
            work (WorkFn): Coroutine function performing one job.
            on_result (ResultCallback, optional): Called once for each result
                as soon as it is available, e.g. to advance a progress bar.
        """
        self._size: int = max(1, size)
        self._work: WorkFn = work
        self._on_result: Optional[ResultCallback] = on_result

    @property
    def size(self) -> int:
        return self._size

    async def _worker(
        self,
        worker_id: int,
        queue: "asyncio.Queue[Tuple[int, TransferJob]]",
        slots: List["asyncio.Future[TransferResult]"],
    ) -> None:
        """
        A long-lived worker task that processes jobs from the queue.

        It runs until cancelled by `submit_all` once every slot is filled.

        Args:
            worker_id (int): A unique identifier for this worker.
            queue (asyncio.Queue[Tuple[int, TransferJob]]): Pending jobs and
                their slot index.
            slots (List[asyncio.Future[TransferResult]]): One result slot per job.
        """
        logger.debug(f"Worker {worker_id} started.")
        while True:
            try:
                index, job = await queue.get()
            except asyncio.CancelledError:
                logger.debug(f"Worker {worker_id} shutting down.")
                raise
            try:
                try:
                    outcome: Outcome = await self._work(job)
                except Exception as e:
                    logger.exception(f"Worker {worker_id} failed on {job.describe()}")
                    outcome = Err(f"Failed to transfer {job.describe()}: {e}", e)
                result: TransferResult = TransferResult(job, outcome)
                # Raises InvalidStateError if the slot was already filled.
                slots[index].set_result(result)
                if self._on_result is not None:
                    self._on_result(result)
            finally:
                queue.task_done()

    async def submit_all(self, jobs: Sequence[TransferJob]) -> List[TransferResult]:
        """
        Processes every job and waits for all of them to finish.

        A failing job never cancels its siblings; its failure is recorded as
        an `Err` result instead.

        Args:
            jobs (Sequence[TransferJob]): The jobs to run.

        Returns:
            List[TransferResult]: One result per job, in the same order as `jobs`.
        """
        if not jobs:
            return []

        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        slots: List["asyncio.Future[TransferResult]"] = [
            loop.create_future() for _ in jobs
        ]
        queue: "asyncio.Queue[Tuple[int, TransferJob]]" = asyncio.Queue()
        for index, job in enumerate(jobs):
            queue.put_nowait((index, job))

        num_workers: int = min(self._size, len(jobs))
        logger.debug(f"Starting {num_workers} worker(s) for {len(jobs)} job(s).")
        worker_tasks: List["asyncio.Task[None]"] = [
            asyncio.create_task(self._worker(i, queue, slots))
            for i in range(num_workers)
        ]
        barrier: "asyncio.Future[List[TransferResult]]" = asyncio.gather(*slots)
        try:
            # Barrier: every slot must be filled before returning. A worker
            # only exits on its own if it hit a bug.
            done, _ = await asyncio.wait(
                {barrier, *worker_tasks}, return_when=asyncio.FIRST_COMPLETED
            )
            if barrier not in done:
                crashed: "asyncio.Task[None]" = next(iter(done))
                raise RuntimeError(
                    "Worker pool stopped before all jobs reported a result."
                ) from crashed.exception()
            results: List[TransferResult] = list(barrier.result())
        finally:
            if not barrier.done():
                barrier.cancel()
            for task in worker_tasks:
                task.cancel()
            await asyncio.gather(*worker_tasks, return_exceptions=True)
        return results

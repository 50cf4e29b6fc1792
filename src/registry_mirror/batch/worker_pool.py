"""Fixed-size asyncio worker pool for one batch of independent jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Job = Callable[[], Awaitable[T]]


class WorkerPool(Generic[T]):
    """Run jobs across exactly ``parallelism`` concurrent workers.

    Every job is claimed by exactly one worker and yields exactly one result.
    Results come back in completion order, not submission order. A pool owns
    its queues for a single call to :meth:`stream` or :meth:`run`.
    """

    def __init__(self, parallelism: int):
        """Initialize worker pool.

        Args:
            parallelism: Number of concurrent workers, at least 1

        Raises:
            ValueError: if ``parallelism`` is below 1
        """
        if parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {parallelism}")
        self.parallelism = parallelism

    async def _worker(
        self,
        worker_id: int,
        jobs: asyncio.Queue,
        results: asyncio.Queue,
    ) -> None:
        """Claim and run jobs until the queue is empty.

        Args:
            worker_id: Worker identifier
            jobs: Pre-filled job queue
            results: Queue receiving ``(result, exception)`` pairs
        """
        while True:
            try:
                job = jobs.get_nowait()
            except asyncio.QueueEmpty:
                logger.debug("Worker %d found no more jobs", worker_id)
                return

            try:
                result = await job()
            except Exception as e:
                results.put_nowait((None, e))
            except BaseException as e:
                # still report it, or stream() would wait on this job forever
                results.put_nowait((None, e))
                raise
            else:
                results.put_nowait((result, None))

    async def stream(self, jobs: Sequence[Job[T]]) -> AsyncIterator[T]:
        """Run ``jobs`` and yield each result as soon as it is available.

        Yields exactly ``len(jobs)`` results, using at most ``len(jobs)`` workers.
        If a job raises, the remaining workers are cancelled and the exception
        is re-raised here; a cancelled job surfaces as ``RuntimeError``.
        Cancelling the consumer also cancels the workers.
        """
        if not jobs:
            return

        job_queue: asyncio.Queue = asyncio.Queue(maxsize=len(jobs))
        result_queue: asyncio.Queue[Tuple[Optional[T], Optional[BaseException]]] = asyncio.Queue(
            maxsize=len(jobs)
        )
        for job in jobs:
            job_queue.put_nowait(job)

        workers: List[asyncio.Task] = [
            asyncio.create_task(self._worker(i, job_queue, result_queue))
            for i in range(min(self.parallelism, len(jobs)))
        ]

        try:
            for _ in range(len(jobs)):
                result, error = await result_queue.get()
                if isinstance(error, asyncio.CancelledError):
                    raise RuntimeError("mirror job was cancelled before it finished") from error
                if error is not None:
                    raise error
                yield result  # type: ignore[misc]
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def run(self, jobs: Sequence[Job[T]]) -> List[T]:
        """Run ``jobs`` and return every result, in completion order."""
        return [result async for result in self.stream(jobs)]

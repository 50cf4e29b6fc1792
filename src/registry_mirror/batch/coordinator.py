"""Turn a mirror batch into pool jobs, run them, and aggregate the outcomes."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from ..core.copier import Copier
from .models import BatchRequest, BatchResponse, MirrorJob, MirrorOutcome
from .progress import BatchState, ProgressTracker
from .worker_pool import WorkerPool

DEFAULT_PARALLELISM = 5

MirrorTask = Callable[[], Awaitable[Optional[MirrorOutcome]]]


def resolve_parallelism(requested: int, default: int = DEFAULT_PARALLELISM) -> int:
    """Use ``requested`` when positive, otherwise ``default``."""
    return requested if requested > 0 else default


class BatchCoordinator:
    """Runs every job of a batch and reports the failures.

    A failing job never stops its siblings; the coordinator always waits for
    all outcomes before answering. Each call to :meth:`run` gets its own pool.
    """

    def __init__(
        self,
        copier: Copier,
        default_parallelism: int = DEFAULT_PARALLELISM,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize batch coordinator.

        Args:
            copier: Performs the actual image copy
            default_parallelism: Workers used when a request asks for 0
            logger: Sink for per-job events (module logger if None)
        """
        self.copier = copier
        self.default_parallelism = default_parallelism
        self.log = logger or logging.getLogger(__name__)

    def _make_task(self, job: MirrorJob) -> MirrorTask:
        async def task() -> Optional[MirrorOutcome]:
            self.log.info("[%d] %s processing", job.index, job.name)
            try:
                await self.copier.copy(job.src, job.dst)
            except Exception as e:
                # CopyError normally; other exceptions stay contained to this job too
                return self._failure(job, str(e) or type(e).__name__)
            finally:
                self.log.info("[%d] %s finished", job.index, job.name)
            return None

        return task

    def _failure(self, job: MirrorJob, message: str) -> MirrorOutcome:
        self.log.warning("[%d] %s failed: %s", job.index, job.name, message)
        return MirrorOutcome(index=job.index, name=job.name, error=message)

    def build_tasks(self, request: BatchRequest) -> List[MirrorTask]:
        return [self._make_task(job) for job in request.jobs]

    async def run(self, request: BatchRequest) -> BatchResponse:
        """Run ``request`` to completion.

        Returns:
            Response whose ``errors`` hold one outcome per failed job, sorted by index.
        """
        tracker = ProgressTracker(total=len(request.jobs))
        tasks = self.build_tasks(request)

        if not tasks:
            tracker.transition(BatchState.COMPLETE)
            return BatchResponse(ok=True)

        parallelism = resolve_parallelism(request.parallelism, self.default_parallelism)
        pool: WorkerPool[Optional[MirrorOutcome]] = WorkerPool(parallelism)

        tracker.transition(BatchState.DISPATCHED)
        self.log.info("Dispatching %d mirror job(s) across %d worker(s)", len(tasks), parallelism)

        errors: List[MirrorOutcome] = []
        async for outcome in pool.stream(tasks):
            tracker.transition(BatchState.COLLECTING)
            if outcome is None:
                tracker.increment(success=True)
            else:
                tracker.increment(success=False, current_item=outcome.name)
                errors.append(outcome)

        tracker.transition(BatchState.COMPLETE)
        self.log.info("Batch complete: %r", tracker)

        errors.sort(key=lambda outcome: outcome.index)
        return BatchResponse(ok=not errors, errors=errors)

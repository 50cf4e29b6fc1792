"""Batch execution for registry mirroring.

Provides:
- WorkerPool: fixed-size asyncio pool for independent jobs
- BatchCoordinator: runs a mirror batch and aggregates failures
- ProgressTracker: per-batch lifecycle and counters
"""

from __future__ import annotations

from .coordinator import DEFAULT_PARALLELISM, BatchCoordinator, resolve_parallelism
from .models import BatchRequest, BatchResponse, MirrorJob, MirrorOutcome
from .progress import BatchState, ProgressTracker
from .worker_pool import WorkerPool

__all__ = [
    "BatchCoordinator",
    "BatchRequest",
    "BatchResponse",
    "BatchState",
    "DEFAULT_PARALLELISM",
    "MirrorJob",
    "MirrorOutcome",
    "ProgressTracker",
    "WorkerPool",
    "resolve_parallelism",
]

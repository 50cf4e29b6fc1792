"""Progress tracking for a single mirror batch."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class BatchState(str, Enum):
    """Batch lifecycle. States only move forward."""

    BUILDING = "building"
    DISPATCHED = "dispatched"
    COLLECTING = "collecting"
    COMPLETE = "complete"


_ORDER = list(BatchState)


@dataclass
class ProgressTracker:
    """Tracks collected outcomes and lifecycle state of one batch."""

    total: int
    processed: int = 0
    successful: int = 0
    failed: int = 0
    state: BatchState = BatchState.BUILDING
    started_at: float = field(default_factory=time.time)
    current_item: Optional[str] = None

    @property
    def percentage(self) -> float:
        """Calculate completion percentage."""
        if self.total == 0:
            return 100.0
        return min(100.0, (self.processed / self.total) * 100.0)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.started_at

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    def transition(self, state: BatchState) -> None:
        """Move the batch to ``state``.

        Raises:
            RuntimeError: if ``state`` is behind the current state, or the batch
                is marked complete before every outcome was collected.
        """
        if _ORDER.index(state) < _ORDER.index(self.state):
            raise RuntimeError(f"cannot move batch from {self.state.value} back to {state.value}")
        if state is BatchState.COMPLETE and self.remaining:
            raise RuntimeError(f"batch still waiting on {self.remaining} outcome(s)")
        self.state = state

    def increment(self, success: bool = True, current_item: Optional[str] = None) -> None:
        """Record one collected outcome.

        Args:
            success: Whether the job succeeded
            current_item: Name of the job the outcome belongs to
        """
        if self.processed >= self.total:
            raise RuntimeError("more outcomes collected than jobs in batch")

        self.processed += 1
        if success:
            self.successful += 1
        else:
            self.failed += 1

        if current_item:
            self.current_item = current_item

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "total": self.total,
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "percentage": round(self.percentage, 2),
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "current_item": self.current_item,
        }

    def __repr__(self) -> str:
        return (
            f"Progress({self.state.value}: {self.processed}/{self.total} = {self.percentage:.1f}%, "
            f"ok={self.successful} failed={self.failed}, {self.elapsed_seconds:.2f}s)"
        )

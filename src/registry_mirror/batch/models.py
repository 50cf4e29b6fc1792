"""Data model for mirror batches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional


def mirror_name(src: str, dst: str) -> str:
    return f"({src} to {dst})"


@dataclass(frozen=True)
class MirrorJob:
    """One image to copy from ``src`` to ``dst``, at position ``index`` in its batch."""

    index: int
    src: str
    dst: str

    @property
    def name(self) -> str:
        return mirror_name(self.src, self.dst)


@dataclass(frozen=True)
class MirrorOutcome:
    """Result of one job. ``error`` is set iff the copy failed."""

    index: int
    name: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "name": self.name, "error": self.error}


@dataclass
class BatchRequest:
    jobs: List[MirrorJob] = field(default_factory=list)
    parallelism: int = 0

    @classmethod
    def from_mirrors(
        cls,
        mirrors: Iterable[Mapping[str, str]],
        parallelism: int = 0,
    ) -> BatchRequest:
        """Number ``{"src", "dst"}`` mappings in the order given."""
        jobs = [MirrorJob(index=i, src=m["src"], dst=m["dst"]) for i, m in enumerate(mirrors)]
        return cls(jobs=jobs, parallelism=parallelism)


@dataclass
class BatchResponse:
    ok: bool
    errors: List[MirrorOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the response; ``errors`` is left out when empty."""
        data: Dict[str, Any] = {"ok": self.ok}
        if self.errors:
            data["errors"] = [e.to_dict() for e in self.errors]
        return data

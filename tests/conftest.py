from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from registry_mirror.core.copier import CopyError


class FakeCopier:
    """Copier double: fails for sources listed in ``failures`` and records concurrency."""

    def __init__(
        self,
        failures: Optional[Dict[str, str]] = None,
        delay: float = 0.0,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.failures = failures or {}
        self.delay = delay
        self.delays = delays or {}
        self.calls: List[Tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def copy(self, src: str, dst: str) -> None:
        self.calls.append((src, dst))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(src, self.delay))
            if src in self.failures:
                raise CopyError(self.failures[src])
        finally:
            self.active -= 1


@pytest.fixture
def fake_copier():
    return FakeCopier

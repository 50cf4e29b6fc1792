"""Image copy capability.

The registry protocol work (manifest negotiation, blob transfer) lives outside this
package. A ``Copier`` only has to copy ``src`` to ``dst`` or raise ``CopyError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Protocol, Sequence

logger = logging.getLogger(__name__)


class CopyError(Exception):
    """Raised when an image could not be copied."""


class Copier(Protocol):
    async def copy(self, src: str, dst: str) -> None: ...


class CraneCopier:
    """Copy images by running ``crane copy SRC DST`` in a subprocess.

    Each copy is its own OS process, so concurrent copies run in parallel.
    Registry credentials are resolved by crane from the usual docker keychain.
    """

    def __init__(self, binary: str = "crane", extra_args: Sequence[str] = ()):
        self.binary = binary
        self.extra_args = list(extra_args)

    def command(self, src: str, dst: str) -> List[str]:
        return [self.binary, "copy", *self.extra_args, src, dst]

    async def copy(self, src: str, dst: str) -> None:
        cmd = self.command(src, dst)
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise CopyError(f"{self.binary}: executable not found") from None

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise
        if proc.returncode != 0:
            raise CopyError(_failure_message(stderr, stdout, proc.returncode))


def _failure_message(stderr: bytes, stdout: bytes, returncode: int | None) -> str:
    # crane prints "Error: <cause>" as its last stderr line
    for stream in (stderr, stdout):
        lines = [line.strip() for line in stream.decode(errors="replace").splitlines()]
        lines = [line for line in lines if line]
        if lines:
            last = lines[-1]
            return last[len("Error: ") :] if last.startswith("Error: ") else last
    return f"copy exited with status {returncode}"


class ThreadedCopier:
    """Adapt a blocking ``copy(src, dst)`` callable by running it in a worker thread."""

    def __init__(self, func: Callable[[str, str], None]):
        self.func = func

    async def copy(self, src: str, dst: str) -> None:
        await asyncio.to_thread(self.func, src, dst)

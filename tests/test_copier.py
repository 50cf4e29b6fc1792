"""Tests for the image copier implementations."""

from __future__ import annotations

import asyncio
import os
import stat
import sys
import threading

import pytest

from registry_mirror.core.copier import CopyError, CraneCopier, ThreadedCopier

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses a /bin/sh stand-in for crane")


def fake_crane(tmp_path, script: str):
    path = tmp_path / "crane"
    path.write_text("#!/bin/sh\n" + script)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


def test_crane_command():
    copier = CraneCopier(binary="gcrane", extra_args=["--platform", "all"])
    assert copier.command("postgres", "example.com/r/postgres") == [
        "gcrane",
        "copy",
        "--platform",
        "all",
        "postgres",
        "example.com/r/postgres",
    ]


@posix_only
@pytest.mark.asyncio
async def test_crane_copy_success(tmp_path):
    log = tmp_path / "args"
    copier = CraneCopier(binary=fake_crane(tmp_path, f'echo "$@" > {log}\nexit 0\n'))

    await copier.copy("postgres", "example.com/r/postgres")

    assert log.read_text().strip() == "copy postgres example.com/r/postgres"


@posix_only
@pytest.mark.asyncio
async def test_crane_copy_failure_reports_last_error_line(tmp_path):
    script = 'echo "2024/01/01 pulling" >&2\necho "Error: unauthorized" >&2\nexit 1\n'
    copier = CraneCopier(binary=fake_crane(tmp_path, script))

    with pytest.raises(CopyError, match="^unauthorized$"):
        await copier.copy("postgres", "example.com/r/postgres")


@posix_only
@pytest.mark.asyncio
async def test_crane_copy_failure_without_output(tmp_path):
    copier = CraneCopier(binary=fake_crane(tmp_path, "exit 3\n"))

    with pytest.raises(CopyError, match="status 3"):
        await copier.copy("a", "b")


@pytest.mark.asyncio
async def test_crane_missing_binary(tmp_path):
    copier = CraneCopier(binary=str(tmp_path / "no-such-crane"))

    with pytest.raises(CopyError, match="executable not found"):
        await copier.copy("a", "b")


@pytest.mark.asyncio
async def test_threaded_copier_runs_off_the_event_loop():
    seen = []
    loop_thread = threading.get_ident()

    def blocking_copy(src, dst):
        seen.append((src, dst, threading.get_ident()))

    await ThreadedCopier(blocking_copy).copy("a", "b")

    assert seen[0][:2] == ("a", "b")
    assert seen[0][2] != loop_thread


@pytest.mark.asyncio
async def test_threaded_copier_propagates_errors():
    def failing_copy(src, dst):
        raise CopyError("denied")

    with pytest.raises(CopyError, match="denied"):
        await ThreadedCopier(failing_copy).copy("a", "b")


@posix_only
@pytest.mark.asyncio
async def test_crane_copy_cancel_kills_child(tmp_path):
    pidfile = tmp_path / "pid"
    copier = CraneCopier(binary=fake_crane(tmp_path, f"echo $$ > {pidfile}\nexec sleep 30\n"))

    task = asyncio.create_task(copier.copy("a", "b"))
    for _ in range(200):
        if pidfile.exists() and pidfile.read_text().strip():
            break
        await asyncio.sleep(0.01)
    pid = int(pidfile.read_text())

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)

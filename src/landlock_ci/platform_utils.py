"""Host OS detection and PID-reuse safe process management.

Uses psutil's OS detection constants for platform identification and
psutil.Process for monitoring and terminating phase subprocesses together
with the children they spawn (cargo runs each test binary as a child).
"""

import asyncio
import contextlib
from enum import Enum, auto
from functools import cache

import psutil


class HostOS(Enum):
    """Host operating systems relevant to Landlock."""

    LINUX = auto()
    """Linux (Landlock available from 5.13)."""

    MACOS = auto()
    """macOS (no Landlock; developer machines)."""

    UNKNOWN = auto()
    """Unsupported or unrecognized OS."""


@cache
def detect_host_os() -> HostOS:
    """Detect current host operating system using psutil constants."""
    if psutil.LINUX:
        return HostOS.LINUX
    if psutil.MACOS:
        return HostOS.MACOS
    return HostOS.UNKNOWN


class ProcessWrapper:
    """PID-reuse safe process wrapper using psutil.

    Wraps asyncio.subprocess.Process with psutil.Process for safer PID monitoring.
    Signals are delivered to the whole process tree so that test binaries
    spawned by the phase command do not outlive a timed-out phase.
    """

    def __init__(self, async_proc: asyncio.subprocess.Process) -> None:
        self.async_proc = async_proc
        self.psutil_proc: psutil.Process | None = None

        if async_proc.pid:
            with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                self.psutil_proc = psutil.Process(async_proc.pid)

    async def is_running(self) -> bool:
        """Check if process is still running (PID-reuse safe)."""
        if not self.psutil_proc:
            return self.async_proc.returncode is None

        try:
            return await asyncio.to_thread(self.psutil_proc.is_running)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return False

    @property
    def pid(self) -> int | None:
        """Process ID."""
        return self.async_proc.pid

    @property
    def returncode(self) -> int | None:
        """Process return code (None if still running)."""
        return self.async_proc.returncode

    @property
    def stdout(self) -> asyncio.StreamReader | None:
        return self.async_proc.stdout

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        return self.async_proc.stderr

    async def wait(self) -> int:
        """Wait for process to complete."""
        return await self.async_proc.wait()

    async def wait_with_timeout(self, timeout: float) -> int:
        """Wait for process exit.

        Raises:
            TimeoutError: If process doesn't exit within timeout
        """
        await asyncio.wait_for(self.wait(), timeout=timeout)
        return self.returncode  # type: ignore[return-value]

    def _children(self) -> list[psutil.Process]:
        if self.psutil_proc is None:
            return []
        try:
            return self.psutil_proc.children(recursive=True)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return []

    async def terminate(self) -> None:
        """Send SIGTERM to the process and its descendants."""
        await self._signal_tree(kill=False)

    async def kill(self) -> None:
        """Send SIGKILL to the process and its descendants."""
        await self._signal_tree(kill=True)

    async def _signal_tree(self, *, kill: bool) -> None:
        if self.psutil_proc and await self.is_running():
            children = await asyncio.to_thread(self._children)
            for proc in [*children, self.psutil_proc]:
                with contextlib.suppress(psutil.NoSuchProcess, psutil.AccessDenied):
                    await asyncio.to_thread(proc.kill if kill else proc.terminate)
        elif self.async_proc.returncode is None:
            if kill:
                self.async_proc.kill()
            else:
                self.async_proc.terminate()

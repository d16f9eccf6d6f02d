"""Test phase execution.

Each phase is a subprocess (cargo build, cargo test, the integration
script). Phases run strictly one after another; the shared result log is
handed to them through the LANDLOCK_CI_RESULTS_LOG environment variable.

Failure policy per phase:
- tolerate_failure=False: a non-zero exit raises a PhaseFailure subclass
  (UnitTestFailure for the unit phase).
- tolerate_failure=True: a non-zero exit is recorded and logged only.
  Used for the integration phase, which is expected to fail on kernels
  without Landlock. [FAIL] records it logs are still counted later.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from typing import TYPE_CHECKING

from landlock_ci import constants
from landlock_ci._logging import get_logger
from landlock_ci.exceptions import IntegrationTestFailure, PhaseFailure, UnitTestFailure
from landlock_ci.models import PhaseResult
from landlock_ci.platform_utils import ProcessWrapper
from landlock_ci.resource_cleanup import cleanup_process
from landlock_ci.subprocess_utils import drain_subprocess_output

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from pathlib import Path

    from landlock_ci.config import TestPhase

logger = get_logger(__name__)

# cargo prints very long lines for compiler invocations with --verbose
_STREAM_LIMIT = 1024 * 1024

_FAILURE_TYPES: dict[str, type[PhaseFailure]] = {
    constants.UNIT_PHASE: UnitTestFailure,
    constants.INTEGRATION_PHASE: IntegrationTestFailure,
}


class TestRunner:
    """Runs test phases as subprocesses and applies the failure policy.

    Args:
        log_path: Shared result log exported to every phase
        cwd: Working directory for phases (None = current directory)
        env: Extra environment variables for phases
        on_output: Callback for each stdout/stderr line (default: info log)
    """

    __test__ = False

    def __init__(
        self,
        log_path: Path,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> None:
        self.log_path = log_path
        self.cwd = cwd
        self.env = dict(env or {})
        self.on_output = on_output
        self.results: list[PhaseResult] = []

    def _phase_env(self) -> dict[str, str]:
        return {**os.environ, **self.env, constants.RESULTS_LOG_ENV_VAR: str(self.log_path)}

    async def run_phase(self, phase: TestPhase) -> PhaseResult:
        """Run one phase to completion.

        Returns:
            PhaseResult (also appended to self.results)

        Raises:
            PhaseFailure: non-zero exit and phase.tolerate_failure is False
        """
        logger.info(
            f"Running {phase.name} phase",
            extra={"phase": phase.name, "command": list(phase.command), "tolerate_failure": phase.tolerate_failure},
        )
        start = time.monotonic()
        timed_out = False

        try:
            async_proc = await asyncio.create_subprocess_exec(
                *phase.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                env=self._phase_env(),
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            logger.error(
                f"Cannot start {phase.name} phase",
                extra={"phase": phase.name, "command": list(phase.command), "error": str(e)},
            )
            exit_code = constants.EXIT_COMMAND_NOT_FOUND
        else:
            exit_code, timed_out = await self._wait(ProcessWrapper(async_proc), phase)

        result = PhaseResult(
            name=phase.name,
            command=list(phase.command),
            exit_code=exit_code,
            tolerated=exit_code != 0 and phase.tolerate_failure,
            timed_out=timed_out,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        self.results.append(result)
        self._apply_policy(phase, result)
        return result

    async def run_phases(self, phases: Iterable[TestPhase]) -> list[PhaseResult]:
        """Run phases in order, stopping at the first fatal failure."""
        return [await self.run_phase(phase) for phase in phases]

    async def _wait(self, proc: ProcessWrapper, phase: TestPhase) -> tuple[int, bool]:
        """Wait for exit while draining output. Returns (exit_code, timed_out)."""
        drain = asyncio.create_task(
            drain_subprocess_output(
                proc,
                process_name=phase.name,
                stdout_handler=self.on_output,
                stderr_handler=self.on_output,
            )
        )
        try:
            async with asyncio.timeout(phase.timeout_seconds):
                await drain
                await proc.wait()
        except TimeoutError:
            logger.error(
                f"{phase.name} phase timed out",
                extra={"phase": phase.name, "timeout_seconds": phase.timeout_seconds},
            )
            await self._stop(proc, phase, drain)
            return constants.EXIT_PHASE_TIMEOUT, True
        except BaseException:
            # Drain failure or cancellation: never leave the phase running
            await self._stop(proc, phase, drain)
            raise

        return proc.returncode if proc.returncode is not None else constants.EXIT_FAILURE, False

    async def _stop(self, proc: ProcessWrapper, phase: TestPhase, drain: asyncio.Task[None]) -> None:
        await cleanup_process(
            proc,
            phase.name,
            term_timeout=constants.PHASE_TERM_TIMEOUT_SECONDS,
            kill_timeout=constants.PHASE_KILL_TIMEOUT_SECONDS,
        )
        if not drain.done():
            drain.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await drain

    def _apply_policy(self, phase: TestPhase, result: PhaseResult) -> None:
        extra = {"phase": phase.name, "exit_code": result.exit_code, "duration_ms": result.duration_ms}
        if result.succeeded:
            logger.info(f"{phase.name} phase passed", extra=extra)
            return

        if phase.tolerate_failure:
            logger.warning(
                f"{phase.name} phase failed with exit code {result.exit_code}; tolerated, "
                "logged test failures are still counted",
                extra=extra,
            )
            return

        failure_type = _FAILURE_TYPES.get(phase.name, PhaseFailure)
        raise failure_type(
            phase.name,
            result.exit_code,
            {"command": list(phase.command), "timed_out": result.timed_out},
        )

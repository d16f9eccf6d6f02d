"""Tests for TestRunner.

Phases are real subprocesses running short Python snippets with the
current interpreter, so no mocking of asyncio subprocess APIs.
"""

import os
from pathlib import Path

import psutil
import pytest

from landlock_ci import constants
from landlock_ci.config import TestPhase
from landlock_ci.exceptions import IntegrationTestFailure, PhaseFailure, UnitTestFailure
from landlock_ci.result_log import parse_log
from landlock_ci.runner import TestRunner
from tests.conftest import append_lines_command, python_command, skip_unless_posix

# ============================================================================
# Success Path
# ============================================================================


class TestRunPhase:
    async def test_successful_phase(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        result = await runner.run_phase(TestPhase(name="unit", command=python_command("pass")))
        assert result.succeeded
        assert result.exit_code == 0
        assert result.tolerated is False
        assert result.timed_out is False
        assert result.name == "unit"
        assert runner.results == [result]

    async def test_log_path_exported(self, log_path: Path) -> None:
        """Phases find the shared log through LANDLOCK_CI_RESULTS_LOG."""
        runner = TestRunner(log_path)
        await runner.run_phase(TestPhase(name="integration", command=append_lines_command("[PASS] from child")))
        (record,) = parse_log(log_path)
        assert record.description == "from child"

    async def test_phases_append_to_same_log(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        await runner.run_phases(
            [
                TestPhase(name="unit", command=append_lines_command("[PASS] unit_a")),
                TestPhase(name="integration", command=append_lines_command("[FAIL] integ_b")),
            ]
        )
        assert [r.line for r in parse_log(log_path)] == ["[PASS] unit_a", "[FAIL] integ_b"]

    async def test_output_callback(self, log_path: Path) -> None:
        lines: list[str] = []
        runner = TestRunner(log_path, on_output=lines.append)
        code = "import sys; print('hello out'); print('hello err', file=sys.stderr)"
        await runner.run_phase(TestPhase(name="unit", command=python_command(code)))
        assert sorted(lines) == ["hello err", "hello out"]

    async def test_cwd_and_env(self, tmp_path: Path, log_path: Path) -> None:
        workdir = tmp_path / "project"
        workdir.mkdir()
        runner = TestRunner(log_path, cwd=workdir, env={"LANDLOCK_CI_TEST_MARKER": "42"})
        code = (
            "import os, pathlib\n"
            "pathlib.Path('cwd.txt').write_text(os.getcwd() + '|' + os.environ['LANDLOCK_CI_TEST_MARKER'])\n"
        )
        await runner.run_phase(TestPhase(name="unit", command=python_command(code)))
        cwd, marker = (workdir / "cwd.txt").read_text().split("|")
        assert os.path.samefile(cwd, workdir)
        assert marker == "42"

    async def test_long_output_line(self, log_path: Path) -> None:
        """Lines longer than asyncio's default 64KB stream limit are drained."""
        lines: list[str] = []
        runner = TestRunner(log_path, on_output=lines.append)
        await runner.run_phase(TestPhase(name="build", command=python_command("print('x' * 200_000)")))
        assert len(lines[0]) == 200_000

    async def test_oversized_output_line_discarded(self, log_path: Path) -> None:
        """A line beyond the stream limit is dropped; the phase still completes."""
        lines: list[str] = []
        runner = TestRunner(log_path, on_output=lines.append)
        phase = TestPhase(
            name="integration",
            command=python_command("print('before'); print('x' * 2_000_000); print('after')"),
            tolerate_failure=True,
        )
        result = await runner.run_phase(phase)
        assert result.exit_code == 0
        assert lines == ["before", "after"]

    async def test_oversized_trailing_output_without_newline(self, log_path: Path) -> None:
        lines: list[str] = []
        runner = TestRunner(log_path, on_output=lines.append)
        code = "import sys; print('before'); sys.stdout.write('y' * 2_000_000)"
        result = await runner.run_phase(TestPhase(name="build", command=python_command(code)))
        assert result.exit_code == 0
        assert lines == ["before"]


# ============================================================================
# Failure Policy
# ============================================================================


class TestFailurePolicy:
    async def test_unit_failure_is_fatal(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        with pytest.raises(UnitTestFailure) as exc_info:
            await runner.run_phase(TestPhase(name="unit", command=python_command("raise SystemExit(101)")))
        assert exc_info.value.exit_code == 101
        assert exc_info.value.phase == "unit"
        assert runner.results[0].exit_code == 101

    async def test_build_failure_is_phase_failure(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        with pytest.raises(PhaseFailure) as exc_info:
            await runner.run_phase(TestPhase(name="build", command=python_command("raise SystemExit(1)")))
        assert type(exc_info.value) is PhaseFailure

    async def test_integration_failure_tolerated(self, log_path: Path) -> None:
        """Tolerated failures are recorded, not raised."""
        runner = TestRunner(log_path)
        phase = TestPhase(
            name="integration",
            command=append_lines_command("[FAIL] needs landlock", exit_code=1),
            tolerate_failure=True,
        )
        result = await runner.run_phase(phase)
        assert result.exit_code == 1
        assert result.tolerated is True
        assert not result.succeeded
        # Logged failures are still there for the aggregator
        assert parse_log(log_path)[0].description == "needs landlock"

    async def test_integration_failure_not_tolerated(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        phase = TestPhase(name="integration", command=python_command("raise SystemExit(2)"))
        with pytest.raises(IntegrationTestFailure):
            await runner.run_phase(phase)

    async def test_tolerance_independent_of_phase_name(self, log_path: Path) -> None:
        """tolerate_failure is a plain flag; even a unit phase can opt in."""
        runner = TestRunner(log_path)
        phase = TestPhase(name="unit", command=python_command("raise SystemExit(3)"), tolerate_failure=True)
        result = await runner.run_phase(phase)
        assert result.tolerated is True

    async def test_run_phases_stops_at_fatal_failure(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        with pytest.raises(UnitTestFailure):
            await runner.run_phases(
                [
                    TestPhase(name="unit", command=python_command("raise SystemExit(1)")),
                    TestPhase(name="integration", command=append_lines_command("[PASS] never")),
                ]
            )
        assert [r.name for r in runner.results] == ["unit"]
        assert not log_path.exists()

    async def test_command_not_found(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        phase = TestPhase(name="integration", command=("definitely-not-a-command-xyz",), tolerate_failure=True)
        result = await runner.run_phase(phase)
        assert result.exit_code == constants.EXIT_COMMAND_NOT_FOUND
        assert result.tolerated is True

    async def test_command_not_found_fatal(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        with pytest.raises(UnitTestFailure) as exc_info:
            await runner.run_phase(TestPhase(name="unit", command=("definitely-not-a-command-xyz",)))
        assert exc_info.value.exit_code == constants.EXIT_COMMAND_NOT_FOUND


# ============================================================================
# Timeouts
# ============================================================================


@skip_unless_posix
class TestTimeout:
    async def test_timeout_kills_phase(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        phase = TestPhase(
            name="integration",
            command=python_command("import time; time.sleep(30)"),
            tolerate_failure=True,
            timeout_seconds=0.5,
        )
        result = await runner.run_phase(phase)
        assert result.timed_out is True
        assert result.exit_code == constants.EXIT_PHASE_TIMEOUT
        assert result.tolerated is True
        assert result.duration_ms < 20_000

    async def test_timeout_fatal_for_unit(self, log_path: Path) -> None:
        runner = TestRunner(log_path)
        phase = TestPhase(name="unit", command=python_command("import time; time.sleep(30)"), timeout_seconds=0.5)
        with pytest.raises(UnitTestFailure) as exc_info:
            await runner.run_phase(phase)
        assert exc_info.value.exit_code == constants.EXIT_PHASE_TIMEOUT
        assert exc_info.value.context["timed_out"] is True

    async def test_output_handler_error_stops_phase(self, tmp_path: Path, log_path: Path) -> None:
        """A failing output consumer propagates, and the phase process is not left running."""
        pid_file = tmp_path / "pid.txt"
        code = (
            "import os, time\n"
            f"open({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
            "print('hello', flush=True)\n"
            "time.sleep(30)\n"
        )

        def explode(line: str) -> None:
            raise RuntimeError(f"cannot handle {line!r}")

        runner = TestRunner(log_path, on_output=explode)
        with pytest.raises(ExceptionGroup):
            await runner.run_phase(TestPhase(name="integration", command=python_command(code), tolerate_failure=True))

        assert not psutil.pid_exists(int(pid_file.read_text()))

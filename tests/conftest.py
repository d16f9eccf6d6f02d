"""Shared pytest fixtures for landlock-ci tests."""

import sys
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from landlock_ci.kernel_probe import probe_cache
from landlock_ci.platform_utils import HostOS, detect_host_os

# ============================================================================
# Shared Skip Markers
# ============================================================================

skip_unless_linux = pytest.mark.skipif(
    detect_host_os() != HostOS.LINUX,
    reason="This test requires Linux (procfs, Landlock)",
)

skip_unless_posix = pytest.mark.skipif(
    sys.platform == "win32",
    reason="This test requires POSIX signals",
)

# ============================================================================
# Fixtures
# ============================================================================

SAMPLE_LOG = "[PASS] test_a\n[FAIL] test_b\n[PASS] test_c\n"


@pytest.fixture(autouse=True)
def reset_probe_cache() -> Iterator[None]:
    """Each test probes the kernel release from scratch."""
    probe_cache.reset()
    yield
    probe_cache.reset()


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    """Result log location inside the test's temp dir (not created)."""
    return tmp_path / "_test_results.log"


@pytest.fixture
def write_log(log_path: Path) -> Callable[[str], Path]:
    """Write result log content and return its path."""

    def _write(content: str) -> Path:
        log_path.write_text(content, encoding="utf-8")
        return log_path

    return _write


def python_command(code: str) -> tuple[str, ...]:
    """argv running a Python snippet with the current interpreter."""
    return (sys.executable, "-c", code)


def append_lines_command(*lines: str, exit_code: int = 0) -> tuple[str, ...]:
    """argv appending lines to $LANDLOCK_CI_RESULTS_LOG, then exiting with exit_code."""
    code = (
        "import os, sys\n"
        "with open(os.environ['LANDLOCK_CI_RESULTS_LOG'], 'a', encoding='utf-8') as f:\n"
        f"    f.writelines(line + '\\n' for line in {list(lines)!r})\n"
        f"sys.exit({exit_code})\n"
    )
    return python_command(code)

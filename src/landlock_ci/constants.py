"""Constants for landlock-ci configuration and output."""

from typing import Final

# ============================================================================
# Result Log Grammar
# ============================================================================

PASS_MARKER: Final[str] = "[PASS]"
"""Outcome marker for a passing test record."""

FAIL_MARKER: Final[str] = "[FAIL]"
"""Outcome marker for a failing test record."""

DEFAULT_LOG_PATH: Final[str] = "_test_results.log"
"""Result log written by the integration suite, relative to the workdir."""

RESULTS_LOG_ENV_VAR: Final[str] = "LANDLOCK_CI_RESULTS_LOG"
"""Environment variable exporting the absolute result log path to phases."""

LOG_ENCODING: Final[str] = "utf-8"

# ============================================================================
# Kernel Capability
# ============================================================================

MIN_LANDLOCK_KERNEL: Final[tuple[int, int]] = (5, 13)
"""First kernel release with Landlock (ABI v1)."""

KERNEL_OSRELEASE_PATH: Final[str] = "/proc/sys/kernel/osrelease"

DEGRADED_ADVISORY: Final[str] = "Some tests may fail on kernel < {minimum} due to limited Landlock support"

UNKNOWN_ADVISORY: Final[str] = (
    "Could not determine Landlock support for kernel {release!r}; integration test failures may be expected"
)

# ============================================================================
# Phases
# ============================================================================

BUILD_PHASE: Final[str] = "build"
UNIT_PHASE: Final[str] = "unit"
INTEGRATION_PHASE: Final[str] = "integration"

DEFAULT_BUILD_COMMAND: Final[tuple[str, ...]] = ("cargo", "build", "--verbose")
DEFAULT_UNIT_COMMAND: Final[tuple[str, ...]] = ("cargo", "test")
DEFAULT_INTEGRATION_COMMAND: Final[tuple[str, ...]] = ("bash", "integration_tests.sh")

PHASE_TERM_TIMEOUT_SECONDS: Final[float] = 5.0
"""Grace period between SIGTERM and SIGKILL for a timed-out phase."""

PHASE_KILL_TIMEOUT_SECONDS: Final[float] = 2.0

# ============================================================================
# Exit Codes
# ============================================================================

EXIT_SUCCESS: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
# 2 is reserved for click usage errors
EXIT_HARNESS_ERROR: Final[int] = 3

EXIT_PHASE_TIMEOUT: Final[int] = 124
"""Matches the `timeout` command."""

EXIT_COMMAND_NOT_FOUND: Final[int] = 127
"""Matches the shell convention for a missing command."""

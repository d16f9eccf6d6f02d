"""Exception hierarchy for landlock-ci.

All exceptions inherit from HarnessError.

Hierarchy:
    HarnessError (base)
    ├── RecoverableError (absorbed locally, normalized to a safe default)
    │   ├── MalformedVersionString  ← kernel release not "M.m..." → UNKNOWN tier
    │   ├── MissingArtifact         ← result log absent → NO_DATA verdict
    │   └── MalformedLogLine        ← line carries both markers
    ├── UnreadableArtifact (result log exists but cannot be read) → exit 3
    └── PhaseFailure (a fatal phase exited non-zero)
        ├── UnitTestFailure         ← never tolerated
        └── IntegrationTestFailure  ← only raised when toleration is disabled
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class HarnessError(Exception):
    """Base exception for all harness errors with structured context.

    Attributes:
        message: Human-readable error message
        context: Dictionary of structured error context for logging/debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


# =============================================================================
# Recoverable conditions
# =============================================================================


class RecoverableError(HarnessError):
    """Base for conditions the pipeline survives.

    Callers catch these and substitute a documented default (UNKNOWN tier,
    NO_DATA verdict, first-marker outcome) instead of aborting.
    """


class MalformedVersionString(RecoverableError):
    """Kernel release string does not begin with two dot-separated integers.

    Attributes:
        release: The raw release string that failed to parse
    """

    def __init__(self, release: str):
        super().__init__(
            f"Cannot parse kernel version from {release!r}",
            {"release": release},
        )
        self.release = release


class MissingArtifact(RecoverableError):
    """Result log does not exist.

    Distinct from an existing log with zero records: "no log" means the
    tests may not have run at all.

    Attributes:
        path: Expected location of the result log
    """

    def __init__(self, path: Path):
        super().__init__(f"Test results log not found: {path}", {"path": str(path)})
        self.path = path


class MalformedLogLine(RecoverableError):
    """A result log line carries both the [PASS] and [FAIL] markers.

    Attributes:
        line_number: 1-based line number in the log
        line: Raw line content
    """

    def __init__(self, line_number: int, line: str):
        super().__init__(
            f"Line {line_number} carries both [PASS] and [FAIL] markers: {line!r}",
            {"line_number": line_number, "line": line},
        )
        self.line_number = line_number
        self.line = line


# =============================================================================
# Harness faults
# =============================================================================


class UnreadableArtifact(HarnessError):
    """Result log exists but cannot be read, e.g. a directory sits at its path.

    Attributes:
        path: Location of the result log
    """

    def __init__(self, path: Path, error: OSError):
        super().__init__(
            f"Cannot read test results log {path}: {error.strerror or error}",
            {"path": str(path), "error": str(error), "error_type": type(error).__name__},
        )
        self.path = path


# =============================================================================
# Phase failures
# =============================================================================


class PhaseFailure(HarnessError):
    """A phase that is not allowed to fail exited with a non-zero status.

    Attributes:
        phase: Phase name (e.g. "build", "unit")
        exit_code: Process exit status (124 on timeout, 127 when not found)
    """

    def __init__(self, phase: str, exit_code: int, context: dict[str, Any] | None = None):
        super().__init__(
            f"{phase} phase failed with exit code {exit_code}",
            {"phase": phase, "exit_code": exit_code, **(context or {})},
        )
        self.phase = phase
        self.exit_code = exit_code


class UnitTestFailure(PhaseFailure):
    """Unit-test phase failed.

    Always fatal: unit tests do not depend on kernel Landlock support, so a
    failure here is a regression.
    """


class IntegrationTestFailure(PhaseFailure):
    """Integration-test phase failed while toleration was disabled.

    With toleration enabled (the default) the phase exit code is only
    recorded; logged [FAIL] records still fail the verdict.
    """

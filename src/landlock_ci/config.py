"""Pipeline configuration for landlock-ci.

HarnessConfig provides all options for a Pipeline run: where the result
log lives, which commands make up each phase, and how failures are
tolerated.

Example:
    ```python
    from landlock_ci import HarnessConfig, Pipeline

    # Default configuration (cargo build / cargo test / integration_tests.sh)
    report = await Pipeline(HarnessConfig()).run()

    # Fail the pipeline on integration phase errors too
    config = HarnessConfig(tolerate_integration_failure=False)
    report = await Pipeline(config).run()
    ```
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from landlock_ci import constants
from landlock_ci.models import KernelVersion


class MarkerPolicy(str, Enum):
    """How to treat a result log line carrying both [PASS] and [FAIL]."""

    FIRST = "first"
    """Use whichever marker appears first in the line and log a warning."""

    STRICT = "strict"
    """Raise MalformedLogLine."""


class TestPhase(BaseModel):
    """One subprocess phase of the pipeline.

    Attributes:
        name: Phase name used in logs and errors ("build", "unit", "integration")
        command: argv of the phase (no shell)
        tolerate_failure: Accept a non-zero exit status without failing the
            pipeline. Logged [FAIL] records still count toward the verdict.
        timeout_seconds: Upper bound on phase runtime (None = unbounded)
    """

    __test__ = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    command: tuple[str, ...] = Field(min_length=1)
    tolerate_failure: bool = False
    timeout_seconds: float | None = Field(default=None, gt=0)


class HarnessConfig(BaseModel):
    """Configuration for Pipeline.

    All fields default to the behavior of the project's CI workflow.

    Attributes:
        log_path: Result log shared by all phases. Relative paths resolve
            against workdir.
        workdir: Working directory for phases (None = current directory).
        build_command: Build phase argv; empty disables the build phase.
        unit_command: Unit-test phase argv. Always fatal on failure.
        integration_command: Integration-test phase argv.
        tolerate_integration_failure: Ignore the integration phase exit code.
        phase_timeout_seconds: Per-phase timeout (None = rely on test frameworks).
        marker_policy: Handling of lines carrying both outcome markers.
        fail_on_missing: Treat a missing result log as failure instead of
            the legacy warning.
        minimum_kernel: First kernel version with full feature support.
        artifact_dir: Directory receiving a copy of the log (None disables).
        reset_log: Remove a stale result log before the phases run.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    log_path: Path = Field(
        default=Path(constants.DEFAULT_LOG_PATH),
        description="Result log shared by all phases",
    )
    workdir: Path | None = Field(
        default=None,
        description="Working directory for phases (None = cwd)",
    )

    # Phases
    build_command: tuple[str, ...] = Field(
        default=constants.DEFAULT_BUILD_COMMAND,
        description="Build phase argv (empty disables)",
    )
    unit_command: tuple[str, ...] = Field(
        default=constants.DEFAULT_UNIT_COMMAND,
        min_length=1,
        description="Unit-test phase argv",
    )
    integration_command: tuple[str, ...] = Field(
        default=constants.DEFAULT_INTEGRATION_COMMAND,
        min_length=1,
        description="Integration-test phase argv",
    )
    tolerate_integration_failure: bool = Field(
        default=True,
        description="Ignore the integration phase exit status",
    )
    phase_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Per-phase timeout in seconds",
    )

    # Result evaluation
    marker_policy: MarkerPolicy = MarkerPolicy.FIRST
    fail_on_missing: bool = Field(
        default=False,
        description="Missing result log fails the pipeline",
    )
    minimum_kernel: KernelVersion = Field(
        default=KernelVersion(major=constants.MIN_LANDLOCK_KERNEL[0], minor=constants.MIN_LANDLOCK_KERNEL[1]),
        description="First kernel version with full Landlock support",
    )

    # Artifacts
    artifact_dir: Path | None = Field(
        default=None,
        description="Directory receiving a copy of the result log",
    )
    reset_log: bool = Field(
        default=True,
        description="Remove a stale result log before running phases",
    )

    def resolved_log_path(self) -> Path:
        """Absolute result log path, anchored at workdir for relative paths."""
        if self.log_path.is_absolute():
            return self.log_path
        base = self.workdir if self.workdir is not None else Path.cwd()
        return (base / self.log_path).absolute()

    def phases(self) -> list[TestPhase]:
        """Phases in execution order: build (if configured), unit, integration."""
        phases: list[TestPhase] = []
        if self.build_command:
            phases.append(
                TestPhase(
                    name=constants.BUILD_PHASE,
                    command=self.build_command,
                    timeout_seconds=self.phase_timeout_seconds,
                )
            )
        phases.append(
            TestPhase(
                name=constants.UNIT_PHASE,
                command=self.unit_command,
                timeout_seconds=self.phase_timeout_seconds,
            )
        )
        phases.append(
            TestPhase(
                name=constants.INTEGRATION_PHASE,
                command=self.integration_command,
                tolerate_failure=self.tolerate_integration_failure,
                timeout_seconds=self.phase_timeout_seconds,
            )
        )
        return phases

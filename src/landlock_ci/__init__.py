"""landlock-ci: test-result aggregation and kernel compatibility gate.

Runs the build, unit-test and integration-test phases of a Landlock
project, then turns the shared result log into a single pass/fail verdict.
Integration-phase failures are tolerated because Landlock needs Linux 5.13+,
but every [FAIL] record written to the log still fails the pipeline.

Quick Start:
    ```python
    import asyncio

    from landlock_ci import HarnessConfig, Pipeline

    report = asyncio.run(Pipeline(HarnessConfig()).run())
    print(report.verdict, report.exit_code)
    ```

Gate an existing log:
    ```python
    from pathlib import Path

    from landlock_ci import VerdictGate
    from landlock_ci.verdict import GithubEmitter

    outcome = VerdictGate(GithubEmitter()).evaluate(Path("_test_results.log"))
    ```

Result log format (one record per line):
    [PASS] free-form description
    [FAIL] free-form description
"""

from landlock_ci.aggregator import format_summary, normalize_count, tally
from landlock_ci.config import HarnessConfig, MarkerPolicy, TestPhase
from landlock_ci.exceptions import (
    HarnessError,
    IntegrationTestFailure,
    MalformedLogLine,
    MalformedVersionString,
    MissingArtifact,
    PhaseFailure,
    RecoverableError,
    UnitTestFailure,
    UnreadableArtifact,
)
from landlock_ci.kernel_probe import classify, parse_kernel_version, probe_kernel_capability
from landlock_ci.models import (
    CapabilityTier,
    KernelCapability,
    KernelVersion,
    OutcomeKind,
    PhaseResult,
    PipelineReport,
    ResultTally,
    TestOutcomeRecord,
    Verdict,
    VerdictKind,
)
from landlock_ci.pipeline import Pipeline
from landlock_ci.result_log import append_record, iter_records, parse_log
from landlock_ci.runner import TestRunner
from landlock_ci.verdict import VerdictGate, decide

__all__ = [
    "CapabilityTier",
    "HarnessConfig",
    "HarnessError",
    "IntegrationTestFailure",
    "KernelCapability",
    "KernelVersion",
    "MalformedLogLine",
    "MalformedVersionString",
    "MarkerPolicy",
    "MissingArtifact",
    "OutcomeKind",
    "PhaseFailure",
    "PhaseResult",
    "Pipeline",
    "PipelineReport",
    "RecoverableError",
    "ResultTally",
    "TestOutcomeRecord",
    "TestPhase",
    "TestRunner",
    "UnitTestFailure",
    "UnreadableArtifact",
    "Verdict",
    "VerdictGate",
    "VerdictKind",
    "append_record",
    "classify",
    "decide",
    "format_summary",
    "iter_records",
    "normalize_count",
    "parse_kernel_version",
    "parse_log",
    "probe_kernel_capability",
    "tally",
]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("landlock-ci")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"

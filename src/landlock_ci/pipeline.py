"""Pipeline orchestration.

Sequence (each step awaits the previous one):

    probe kernel -> reset stale log -> build -> unit -> integration
        -> parse log -> tally -> verdict -> retain log (always)

The kernel probe is advisory: its tier never changes which phases run or
the exit status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from landlock_ci import constants
from landlock_ci._logging import get_logger
from landlock_ci.artifacts import retain_artifact
from landlock_ci.exceptions import MissingArtifact, PhaseFailure, UnreadableArtifact
from landlock_ci.kernel_probe import probe_kernel_capability
from landlock_ci.models import KernelCapability, PipelineReport
from landlock_ci.resource_cleanup import cleanup_file
from landlock_ci.result_log import read_log_text
from landlock_ci.runner import TestRunner
from landlock_ci.verdict import PlainEmitter, VerdictGate

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from landlock_ci.config import HarnessConfig
    from landlock_ci.verdict import AnnotationEmitter

logger = get_logger(__name__)


class Pipeline:
    """Runs the whole gate for one HarnessConfig.

    Args:
        config: Pipeline configuration
        emitter: Output sink for advisory, raw log and verdict (default: plain text)
        kernel_release: Classify this release instead of probing the host
        on_output: Callback for phase stdout/stderr lines
    """

    def __init__(
        self,
        config: HarnessConfig,
        *,
        emitter: AnnotationEmitter | None = None,
        kernel_release: str | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config
        self.emitter = emitter or PlainEmitter()
        self.kernel_release = kernel_release
        self.on_output = on_output

    async def probe(self) -> KernelCapability:
        """Probe the kernel and emit the advisory (never affects the verdict)."""
        capability = await probe_kernel_capability(self.kernel_release, self.config.minimum_kernel)
        self.emitter.text(f"Kernel version: {capability.release}")
        if capability.advisory:
            self.emitter.warning(capability.advisory)
        return capability

    async def run(self) -> PipelineReport:
        """Run all phases and gate the result log.

        Returns:
            PipelineReport with exit_code 0/1 and the retained artifact path

        Raises:
            MalformedLogLine: marker_policy is STRICT and the log has a
                line carrying both markers (the log is still retained)
            UnreadableArtifact: the result log exists but cannot be read
        """
        log_path = self.config.resolved_log_path()
        capability = await self.probe()

        try:
            report = await self._run(log_path, capability)
        finally:
            artifact = await retain_artifact(log_path, self.config.artifact_dir)

        logger.info(
            "Pipeline finished",
            extra={
                "exit_code": report.exit_code,
                "verdict": report.verdict.kind.value if report.verdict else None,
                "phases": len(report.phases),
            },
        )
        return report.model_copy(update={"artifact": artifact})

    async def _run(self, log_path: Path, capability: KernelCapability) -> PipelineReport:
        if self.config.reset_log:
            await cleanup_file(log_path, "stale result log")

        gate = VerdictGate(self.emitter, fail_on_missing=self.config.fail_on_missing)
        runner = TestRunner(log_path, cwd=self.config.workdir, on_output=self.on_output)
        try:
            await runner.run_phases(self.config.phases())
        except PhaseFailure as e:
            logger.error(e.message, extra=e.context)
            self._show_partial_log(gate, log_path)
            self.emitter.error(e.message)
            return PipelineReport(
                capability=capability,
                phases=runner.results,
                exit_code=constants.EXIT_FAILURE,
            )

        outcome = gate.evaluate(log_path, self.config.marker_policy)
        return PipelineReport(
            capability=capability,
            phases=runner.results,
            tally=outcome.tally,
            verdict=outcome.verdict,
            exit_code=outcome.exit_code,
        )

    def _show_partial_log(self, gate: VerdictGate, log_path: Path) -> None:
        """Print whatever the phases logged before a fatal failure."""
        try:
            raw_log = read_log_text(log_path)
        except MissingArtifact:
            logger.info("No result log written before the failure", extra={"path": str(log_path)})
            return
        except UnreadableArtifact as e:
            logger.warning(e.message, extra=e.context)
            return
        gate.show_log(raw_log)

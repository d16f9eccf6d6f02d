"""Verdict decision and rendering.

Decision table:

    missing result log  -> NO_DATA      warning, exit 0 (legacy leniency)
    failed > 0          -> FAILURE(n)   error + failed lines, exit 1
    otherwise           -> SUCCESS      notice, exit 0

Every path that has a log prints it in full before the summary line so the
raw evidence is always visible in the job output.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import click

from landlock_ci import constants
from landlock_ci._logging import get_logger
from landlock_ci.aggregator import format_summary, tally
from landlock_ci.config import MarkerPolicy
from landlock_ci.exceptions import MissingArtifact
from landlock_ci.models import OutcomeKind, ResultTally, TestOutcomeRecord, Verdict, VerdictKind
from landlock_ci.result_log import read_log_text, records_from_lines

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = get_logger(__name__)

RAW_LOG_GROUP_TITLE = "Complete Test Results"
MISSING_LOG_MESSAGE = "Test results log not found. Tests may not have run."


# ============================================================================
# Emitters
# ============================================================================


class AnnotationEmitter(Protocol):
    """Sink for pipeline output (raw log, summary, annotations)."""

    def start_group(self, title: str) -> None: ...

    def end_group(self) -> None: ...

    def text(self, message: str) -> None: ...

    def verbatim(self, content: str) -> None:
        """Echo untrusted text (the raw result log) without interpreting it."""
        ...

    def notice(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


def _escape_workflow_data(message: str) -> str:
    """Escape annotation data per the GitHub workflow command format."""
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class GithubEmitter:
    """Writes GitHub Actions workflow commands to stdout."""

    def start_group(self, title: str) -> None:
        click.echo(f"::group::{_escape_workflow_data(title)}")

    def end_group(self) -> None:
        click.echo("::endgroup::")

    def text(self, message: str) -> None:
        click.echo(message)

    def verbatim(self, content: str) -> None:
        # Test output may contain "::" lines; suspend command processing around it
        token = secrets.token_hex(16)
        click.echo(f"::stop-commands::{token}")
        click.echo(content)
        click.echo(f"::{token}::")

    def notice(self, message: str) -> None:
        click.echo(f"::notice::{_escape_workflow_data(message)}")

    def warning(self, message: str) -> None:
        click.echo(f"::warning::{_escape_workflow_data(message)}")

    def error(self, message: str) -> None:
        click.echo(f"::error::{_escape_workflow_data(message)}")


class PlainEmitter:
    """Writes styled plain text; ANSI codes are stripped off a TTY by click."""

    def start_group(self, title: str) -> None:
        click.echo(click.style(f"── {title} ──", bold=True))

    def end_group(self) -> None:
        click.echo(click.style("──", bold=True))

    def text(self, message: str) -> None:
        click.echo(message)

    def verbatim(self, content: str) -> None:
        click.echo(content)

    def notice(self, message: str) -> None:
        click.echo(click.style(f"Notice: {message}", fg="green"))

    def warning(self, message: str) -> None:
        click.echo(click.style(f"Warning: {message}", fg="yellow"))

    def error(self, message: str) -> None:
        click.echo(click.style(f"Error: {message}", fg="red", bold=True))


def make_emitter(github: bool) -> AnnotationEmitter:
    return GithubEmitter() if github else PlainEmitter()


# ============================================================================
# Gate
# ============================================================================


def decide(result: ResultTally | None, missing_artifact: bool = False) -> Verdict:
    """Map a tally (or a missing log) to a verdict."""
    if missing_artifact or result is None:
        return Verdict.no_data()
    if result.failed > 0:
        return Verdict.failure(result.failed)
    return Verdict.success()


@dataclass(frozen=True)
class GateOutcome:
    """Result of evaluating a result log."""

    verdict: Verdict
    exit_code: int
    tally: ResultTally | None = None
    records: list[TestOutcomeRecord] = field(default_factory=list)


class VerdictGate:
    """Turns a tally into output and an exit status.

    Args:
        emitter: Output sink (GitHub workflow commands or plain text)
        fail_on_missing: Exit non-zero on NO_DATA instead of warning only
    """

    def __init__(self, emitter: AnnotationEmitter, *, fail_on_missing: bool = False) -> None:
        self.emitter = emitter
        self.fail_on_missing = fail_on_missing

    def exit_code(self, verdict: Verdict) -> int:
        if verdict.kind is VerdictKind.FAILURE:
            return constants.EXIT_FAILURE
        if verdict.kind is VerdictKind.NO_DATA and self.fail_on_missing:
            return constants.EXIT_FAILURE
        return constants.EXIT_SUCCESS

    def show_log(self, raw_log: str | None) -> None:
        """Emit the complete raw log as a collapsible group."""
        self.emitter.start_group(RAW_LOG_GROUP_TITLE)
        if raw_log:
            self.emitter.verbatim(raw_log.rstrip("\n"))
        self.emitter.end_group()

    def render(
        self,
        verdict: Verdict,
        result: ResultTally | None,
        records: Sequence[TestOutcomeRecord],
        raw_log: str | None,
    ) -> int:
        """Emit raw log, summary and verdict message; return the exit code."""
        if verdict.kind is VerdictKind.NO_DATA:
            if self.fail_on_missing:
                self.emitter.error(MISSING_LOG_MESSAGE)
            else:
                self.emitter.warning(MISSING_LOG_MESSAGE)
            return self.exit_code(verdict)

        if result is None:
            raise ValueError(f"verdict {verdict.kind.value} requires a tally")

        self.show_log(raw_log)

        self.emitter.text(f"Test Summary: {format_summary(result)}")

        if verdict.kind is VerdictKind.FAILURE:
            self.emitter.error(f"{verdict.failure_count} test(s) failed!")
            self.emitter.text("Failed tests:")
            self.emitter.verbatim("\n".join(r.line for r in records if r.kind is OutcomeKind.FAIL))
        else:
            self.emitter.notice(f"All {result.total} tests passed successfully!")

        return self.exit_code(verdict)

    def evaluate(self, log_path: Path, policy: MarkerPolicy = MarkerPolicy.FIRST) -> GateOutcome:
        """Read, parse, aggregate and render one result log.

        Raises:
            MalformedLogLine: a line carries both markers and policy is STRICT
            UnreadableArtifact: the log exists but cannot be read
        """
        try:
            raw_log = read_log_text(log_path)
        except MissingArtifact as e:
            logger.warning(e.message, extra=e.context)
            verdict = decide(None, missing_artifact=True)
            return GateOutcome(verdict=verdict, exit_code=self.render(verdict, None, [], None))

        records = list(records_from_lines(raw_log.split("\n"), policy))
        result = tally(records)
        verdict = decide(result)
        logger.info(
            "Result log evaluated",
            extra={"path": str(log_path), "passed": result.passed, "failed": result.failed, "verdict": verdict.kind.value},
        )
        exit_code = self.render(verdict, result, records, raw_log)
        return GateOutcome(verdict=verdict, exit_code=exit_code, tally=result, records=records)

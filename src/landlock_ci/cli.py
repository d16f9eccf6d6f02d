"""Command-line interface for landlock-ci.

Usage:
    landlock-ci run                            # build, unit, integration, gate
    landlock-ci run --unit-cmd "cargo test --all" --artifact-dir out/
    landlock-ci check _test_results.log        # gate an existing log only
    landlock-ci probe                          # kernel Landlock advisory
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from pathlib import Path
from typing import NoReturn

import click

from landlock_ci import __version__, constants
from landlock_ci._logging import configure_logging, flush_logging
from landlock_ci.config import HarnessConfig, MarkerPolicy
from landlock_ci.exceptions import HarnessError, MalformedLogLine, UnreadableArtifact
from landlock_ci.kernel_probe import probe_kernel_capability
from landlock_ci.pipeline import Pipeline
from landlock_ci.settings import Settings
from landlock_ci.verdict import VerdictGate, make_emitter

ANNOTATION_CHOICES = click.Choice(["auto", "github", "plain"], case_sensitive=False)
POLICY_CHOICES = click.Choice([p.value for p in MarkerPolicy], case_sensitive=False)


def parse_command(value: str, option: str) -> tuple[str, ...]:
    """Split a shell-like command string into argv.

    Raises:
        click.BadParameter: unbalanced quotes
    """
    try:
        return tuple(shlex.split(value))
    except ValueError as exc:
        raise click.BadParameter(f"Cannot parse command {value!r}: {exc}", param_hint=option) from exc


def format_error(title: str, message: str, suggestions: list[str] | None = None) -> str:
    """Format an error message following What → Why → Fix pattern."""
    lines = [
        click.style(f"Error: {title}", fg="red", bold=True),
        "",
        f"  {message}",
    ]

    if suggestions:
        lines.extend(["", "  Suggestions:"])
        lines.extend(f"    • {suggestion}" for suggestion in suggestions)

    return "\n".join(lines)


def _setup_logging(quiet: bool, verbose: bool) -> None:
    if quiet:
        configure_logging(quiet=True)
    elif verbose:
        configure_logging(level=logging.DEBUG)
    else:
        configure_logging(level=logging.WARNING)


def _exit(code: int) -> NoReturn:
    flush_logging()
    sys.exit(code)


def _report_harness_error(exc: HarnessError) -> NoReturn:
    suggestions = None
    if isinstance(exc, MalformedLogLine):
        suggestions = [
            "Fix the test script so each line reports one outcome",
            "Use --marker-policy first to count such lines by their first marker",
        ]
    elif isinstance(exc, UnreadableArtifact):
        suggestions = ["Point --log-path or LANDLOCK_CI_LOG_PATH at a regular, readable file"]
    click.echo(format_error("Harness error", exc.message, suggestions), err=True)
    _exit(constants.EXIT_HARNESS_ERROR)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", prog_name="landlock-ci")
def main() -> None:
    """Run and gate the Landlock CI test pipeline."""


@main.command()
@click.option("-C", "--workdir", type=click.Path(file_okay=False, path_type=Path), help="Run phases in this directory")
@click.option("--log-path", type=click.Path(dir_okay=False, path_type=Path), help="Shared result log")
@click.option("--build-cmd", help="Build command (empty string disables the build phase)")
@click.option("--unit-cmd", help="Unit-test command")
@click.option("--integration-cmd", help="Integration-test command")
@click.option("--strict-integration", is_flag=True, help="Fail the pipeline when the integration phase exits non-zero")
@click.option("--phase-timeout", type=click.FloatRange(min=0, min_open=True), help="Per-phase timeout in seconds")
@click.option("--marker-policy", type=POLICY_CHOICES, default="first", show_default=True)
@click.option("--fail-on-missing", is_flag=True, help="Fail when the result log is missing")
@click.option("--annotations", type=ANNOTATION_CHOICES, help="Output style (default: auto)")
@click.option("--artifact-dir", type=click.Path(file_okay=False, path_type=Path), help="Keep a copy of the log here")
@click.option("--keep-log", is_flag=True, help="Do not remove a stale result log before running")
@click.option("-q", "--quiet", is_flag=True, help="Hide phase output and diagnostics")
@click.option("-v", "--verbose", is_flag=True, help="Show debug diagnostics")
def run(
    workdir: Path | None,
    log_path: Path | None,
    build_cmd: str | None,
    unit_cmd: str | None,
    integration_cmd: str | None,
    strict_integration: bool,
    phase_timeout: float | None,
    marker_policy: str,
    fail_on_missing: bool,
    annotations: str | None,
    artifact_dir: Path | None,
    keep_log: bool,
    quiet: bool,
    verbose: bool,
) -> NoReturn:
    """Build, run unit and integration tests, and gate the result log.

    Integration-phase exit codes are tolerated (Landlock needs Linux 5.13+),
    but every [FAIL] record in the result log fails the pipeline.
    """
    _setup_logging(quiet, verbose)
    settings = Settings()

    overrides: dict[str, object] = {}
    if build_cmd is not None:
        overrides["build_command"] = parse_command(build_cmd, "'--build-cmd'")
    if unit_cmd is not None:
        overrides["unit_command"] = parse_command(unit_cmd, "'--unit-cmd'")
    if integration_cmd is not None:
        overrides["integration_command"] = parse_command(integration_cmd, "'--integration-cmd'")

    try:
        config = HarnessConfig(
            log_path=log_path or settings.log_path,
            workdir=workdir,
            tolerate_integration_failure=not strict_integration,
            phase_timeout_seconds=phase_timeout,
            marker_policy=MarkerPolicy(marker_policy.lower()),
            fail_on_missing=fail_on_missing,
            artifact_dir=artifact_dir or settings.artifact_dir,
            reset_log=not keep_log,
            **overrides,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    emitter = make_emitter(settings.use_github_annotations(annotations.lower() if annotations else None))
    pipeline = Pipeline(
        config,
        emitter=emitter,
        kernel_release=settings.kernel_release,
        on_output=None if quiet else click.echo,
    )

    try:
        report = asyncio.run(pipeline.run())
    except HarnessError as exc:
        _report_harness_error(exc)

    _exit(report.exit_code)


@main.command()
@click.argument("log", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--marker-policy", type=POLICY_CHOICES, default="first", show_default=True)
@click.option("--fail-on-missing", is_flag=True, help="Fail when the result log is missing")
@click.option("--annotations", type=ANNOTATION_CHOICES, help="Output style (default: auto)")
@click.option("-q", "--quiet", is_flag=True, help="Hide diagnostics")
@click.option("-v", "--verbose", is_flag=True, help="Show debug diagnostics")
def check(
    log: Path | None,
    marker_policy: str,
    fail_on_missing: bool,
    annotations: str | None,
    quiet: bool,
    verbose: bool,
) -> NoReturn:
    """Gate an existing result log (default: $LANDLOCK_CI_LOG_PATH or _test_results.log)."""
    _setup_logging(quiet, verbose)
    settings = Settings()

    emitter = make_emitter(settings.use_github_annotations(annotations.lower() if annotations else None))
    gate = VerdictGate(emitter, fail_on_missing=fail_on_missing)

    try:
        outcome = gate.evaluate(log or settings.log_path, MarkerPolicy(marker_policy.lower()))
    except HarnessError as exc:
        _report_harness_error(exc)

    _exit(outcome.exit_code)


@main.command()
@click.option("--release", help="Classify this kernel release instead of the running kernel")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def probe(release: str | None, json_output: bool) -> NoReturn:
    """Report whether the kernel fully supports Landlock. Always exits 0."""
    settings = Settings()
    capability = asyncio.run(probe_kernel_capability(release or settings.kernel_release))

    if json_output:
        click.echo(capability.model_dump_json(indent=2))
    else:
        emitter = make_emitter(settings.use_github_annotations())
        emitter.text(f"Kernel version: {capability.release}")
        emitter.text(f"Landlock support: {capability.tier.value}")
        if capability.advisory:
            emitter.warning(capability.advisory)

    _exit(constants.EXIT_SUCCESS)


if __name__ == "__main__":
    main()

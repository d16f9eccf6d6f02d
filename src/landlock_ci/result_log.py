"""Result log reading and writing.

The result log is the contract between the test phases and the harness:
UTF-8 text, one record per line, each record carrying an outcome marker
followed by free-form text::

    [PASS] landlock restricts write outside allowed dir
    [FAIL] landlock denies exec of /usr/bin/env

Lines without a marker (banners, cargo output) are ignored. A line is
counted at most once: when both markers occur, MarkerPolicy decides.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from landlock_ci import constants
from landlock_ci._logging import get_logger
from landlock_ci.config import MarkerPolicy
from landlock_ci.exceptions import MalformedLogLine, MissingArtifact, UnreadableArtifact
from landlock_ci.models import OutcomeKind, TestOutcomeRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = get_logger(__name__)


def classify_line(line: str, line_number: int, policy: MarkerPolicy = MarkerPolicy.FIRST) -> TestOutcomeRecord | None:
    """Turn one log line into a record, or None if it carries no marker.

    Raises:
        MalformedLogLine: line carries both markers and policy is STRICT
    """
    pass_at = line.find(constants.PASS_MARKER)
    fail_at = line.find(constants.FAIL_MARKER)

    if pass_at < 0 and fail_at < 0:
        return None

    if pass_at >= 0 and fail_at >= 0:
        error = MalformedLogLine(line_number, line)
        if policy is MarkerPolicy.STRICT:
            raise error
        logger.warning(f"{error.message}; using first marker", extra=error.context)
        kind = OutcomeKind.PASS if pass_at < fail_at else OutcomeKind.FAIL
    else:
        kind = OutcomeKind.PASS if pass_at >= 0 else OutcomeKind.FAIL

    marker_at = pass_at if kind is OutcomeKind.PASS else fail_at
    description = line[marker_at + len(kind.marker) :].strip()
    return TestOutcomeRecord(kind=kind, description=description, line=line, line_number=line_number)


def records_from_lines(
    lines: Iterable[str], policy: MarkerPolicy = MarkerPolicy.FIRST
) -> Iterator[TestOutcomeRecord]:
    """Yield records from already-read log lines (trailing newlines allowed)."""
    for line_number, raw in enumerate(lines, start=1):
        record = classify_line(raw.rstrip("\r\n"), line_number, policy)
        if record is not None:
            yield record


def iter_records(path: Path, policy: MarkerPolicy = MarkerPolicy.FIRST) -> Iterator[TestOutcomeRecord]:
    """Lazily yield records from a result log, in file order.

    Raises (on first iteration):
        MissingArtifact: path does not exist
        UnreadableArtifact: path exists but cannot be read
        MalformedLogLine: a line carries both markers and policy is STRICT
    """
    try:
        f = path.open(encoding=constants.LOG_ENCODING, errors="replace", newline=None)
    except FileNotFoundError as e:
        raise MissingArtifact(path) from e
    except OSError as e:
        raise UnreadableArtifact(path, e) from e

    with f:
        yield from records_from_lines(f, policy)


def parse_log(path: Path, policy: MarkerPolicy = MarkerPolicy.FIRST) -> list[TestOutcomeRecord]:
    """Eager variant of iter_records."""
    return list(iter_records(path, policy))


def read_log_text(path: Path) -> str:
    """Full raw content of the result log, for audit output.

    Raises:
        MissingArtifact: path does not exist
        UnreadableArtifact: path exists but cannot be read
    """
    try:
        return path.read_text(encoding=constants.LOG_ENCODING, errors="replace")
    except FileNotFoundError as e:
        raise MissingArtifact(path) from e
    except OSError as e:
        raise UnreadableArtifact(path, e) from e


def format_record(kind: OutcomeKind, description: str) -> str:
    """Render one record line (without newline) in the log grammar."""
    if "\n" in description or "\r" in description:
        raise ValueError("Record description must be a single line")
    return f"{kind.marker} {description}"


def append_record(path: Path, kind: OutcomeKind, description: str) -> None:
    """Append one record to the result log, creating it if needed."""
    line = format_record(kind, description)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding=constants.LOG_ENCODING) as f:
        f.write(line + "\n")

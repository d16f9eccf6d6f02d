"""Tally result log records and render the summary line."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from landlock_ci.models import OutcomeKind, ResultTally

if TYPE_CHECKING:
    from collections.abc import Iterable

    from landlock_ci.models import TestOutcomeRecord


def normalize_count(value: object) -> int:
    """Coerce an intermediate count to a non-negative int, defaulting to 0.

    Accepts ints and numeric strings (" 3\\n" -> 3). None, blanks,
    non-numeric text, bools, floats and negative numbers become 0 so that an
    empty or odd log never crashes the aggregation.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, (str, bytes)):
        text = value.decode(errors="replace") if isinstance(value, bytes) else value
        text = text.strip()
        if text.isascii() and text.isdigit():
            return int(text)
    return 0


def tally_from_counts(passed: object, failed: object) -> ResultTally:
    """Build a tally from raw counter values, normalizing each."""
    return ResultTally(passed=normalize_count(passed), failed=normalize_count(failed))


def tally(records: Iterable[TestOutcomeRecord]) -> ResultTally:
    """Count PASS and FAIL records. Consumes the iterable once."""
    counts = Counter(record.kind for record in records)
    return tally_from_counts(counts.get(OutcomeKind.PASS), counts.get(OutcomeKind.FAIL))


def format_summary(result: ResultTally) -> str:
    """Human-readable summary, e.g. "2/3 tests passed (1 failures)"."""
    return f"{result.passed}/{result.total} tests passed ({result.failed} failures)"

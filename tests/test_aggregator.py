"""Tests for tallying and summary rendering."""

from collections.abc import Callable
from pathlib import Path

import pytest

from landlock_ci.aggregator import format_summary, normalize_count, tally, tally_from_counts
from landlock_ci.models import OutcomeKind, ResultTally, TestOutcomeRecord
from landlock_ci.result_log import iter_records, parse_log
from tests.conftest import SAMPLE_LOG


def _record(kind: OutcomeKind, n: int) -> TestOutcomeRecord:
    return TestOutcomeRecord(kind=kind, description=f"t{n}", line=f"{kind.marker} t{n}", line_number=n)


# ============================================================================
# Count Normalization
# ============================================================================


class TestNormalizeCount:
    """Non-numeric intermediate counts normalize to zero."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0, 0),
            (7, 7),
            ("3", 3),
            (" 3\n", 3),
            (b"12\n", 12),
            ("", 0),
            ("   ", 0),
            (None, 0),
            ("abc", 0),
            ("1.5", 0),
            ("-2", 0),
            (-2, 0),
            (True, 0),
            (2.0, 0),
            ("３", 0),
        ],
    )
    def test_values(self, value: object, expected: int) -> None:
        assert normalize_count(value) == expected

    def test_tally_from_counts(self) -> None:
        result = tally_from_counts("", None)
        assert result == ResultTally(passed=0, failed=0)
        assert result.total == 0


# ============================================================================
# Tally
# ============================================================================


class TestTally:
    def test_empty(self) -> None:
        result = tally([])
        assert (result.passed, result.failed, result.total) == (0, 0, 0)

    def test_sample_scenario(self, write_log: Callable[[str], Path]) -> None:
        """[PASS] test_a / [FAIL] test_b / [PASS] test_c -> 2 passed, 1 failed."""
        result = tally(parse_log(write_log(SAMPLE_LOG)))
        assert (result.passed, result.failed, result.total) == (2, 1, 3)

    @pytest.mark.parametrize(("passed", "failed"), [(0, 1), (5, 0), (3, 4), (100, 1)])
    def test_counts_match_records(self, passed: int, failed: int) -> None:
        records = [_record(OutcomeKind.PASS, i + 1) for i in range(passed)]
        records += [_record(OutcomeKind.FAIL, passed + i + 1) for i in range(failed)]
        result = tally(records)
        assert result.passed == passed
        assert result.failed == failed
        assert result.total == len(records)

    def test_accepts_lazy_iterator(self, write_log: Callable[[str], Path]) -> None:
        result = tally(iter_records(write_log(SAMPLE_LOG)))
        assert result.total == 3

    def test_idempotent(self, write_log: Callable[[str], Path]) -> None:
        path = write_log(SAMPLE_LOG)
        assert tally(iter_records(path)) == tally(iter_records(path))

    def test_total_in_serialized_tally(self) -> None:
        assert ResultTally(passed=2, failed=1).model_dump() == {"passed": 2, "failed": 1, "total": 3}


# ============================================================================
# Summary
# ============================================================================


class TestFormatSummary:
    def test_sample(self) -> None:
        assert format_summary(ResultTally(passed=2, failed=1)) == "2/3 tests passed (1 failures)"

    def test_empty(self) -> None:
        assert format_summary(ResultTally()) == "0/0 tests passed (0 failures)"

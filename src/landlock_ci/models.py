"""Data models for landlock-ci."""

from __future__ import annotations

from enum import Enum
from functools import total_ordering
from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from landlock_ci.constants import FAIL_MARKER, PASS_MARKER


@total_ordering
class KernelVersion(BaseModel):
    """Leading ``major.minor`` pair of a kernel release, ordered lexicographically."""

    model_config = ConfigDict(frozen=True)

    major: int = Field(ge=0)
    minor: int = Field(ge=0)

    def as_tuple(self) -> tuple[int, int]:
        return (self.major, self.minor)

    def __lt__(self, other: object) -> bool:
        if isinstance(other, KernelVersion):
            return self.as_tuple() < other.as_tuple()
        if isinstance(other, tuple):
            return self.as_tuple() < other
        return NotImplemented

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


class CapabilityTier(str, Enum):
    """Whether the host kernel fully supports the features under test."""

    FULL = "full"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


class KernelCapability(BaseModel):
    """Result of probing the running kernel. Computed once per run."""

    model_config = ConfigDict(frozen=True)

    release: str = Field(description="Raw kernel release string")
    version: KernelVersion | None = Field(default=None, description="Parsed version (None if unparseable)")
    tier: CapabilityTier
    minimum: KernelVersion = Field(description="Threshold for full support")
    advisory: str | None = Field(default=None, description="Notice for DEGRADED/UNKNOWN tiers")


class OutcomeKind(str, Enum):
    """Outcome tag of a result log record."""

    PASS = "pass"
    FAIL = "fail"

    @property
    def marker(self) -> str:
        return PASS_MARKER if self is OutcomeKind.PASS else FAIL_MARKER


class TestOutcomeRecord(BaseModel):
    """One parsed result log line."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    description: str = Field(description="Text after the outcome marker, stripped")
    line: str = Field(description="Raw line without the trailing newline")
    line_number: int = Field(ge=1)


class ResultTally(BaseModel):
    """Aggregate counts over all records of a result log."""

    model_config = ConfigDict(frozen=True)

    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return self.passed + self.failed


class VerdictKind(str, Enum):
    """Terminal outcome of a pipeline run."""

    SUCCESS = "success"
    FAILURE = "failure"
    NO_DATA = "no_data"


class Verdict(BaseModel):
    """Pipeline verdict. ``failure_count`` is non-zero only for FAILURE."""

    model_config = ConfigDict(frozen=True)

    kind: VerdictKind
    failure_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_failure_count(self) -> Self:
        if (self.kind is VerdictKind.FAILURE) != (self.failure_count > 0):
            raise ValueError(f"failure_count={self.failure_count} is inconsistent with verdict {self.kind.value}")
        return self

    @classmethod
    def success(cls) -> Verdict:
        return cls(kind=VerdictKind.SUCCESS)

    @classmethod
    def failure(cls, failure_count: int) -> Verdict:
        return cls(kind=VerdictKind.FAILURE, failure_count=failure_count)

    @classmethod
    def no_data(cls) -> Verdict:
        return cls(kind=VerdictKind.NO_DATA)


class PhaseResult(BaseModel):
    """Outcome of one test phase subprocess."""

    name: str
    command: list[str]
    exit_code: int = Field(description="Process exit status (124 on timeout, 127 if not found)")
    tolerated: bool = Field(default=False, description="Non-zero exit accepted by toleration policy")
    timed_out: bool = False
    duration_ms: int = Field(default=0, ge=0)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class PipelineReport(BaseModel):
    """Everything a pipeline run produced."""

    capability: KernelCapability
    phases: list[PhaseResult] = Field(default_factory=list)
    tally: ResultTally | None = Field(default=None, description="None when the result log was missing")
    verdict: Verdict | None = Field(default=None, description="None when a fatal phase aborted the run")
    exit_code: int
    artifact: Path | None = Field(default=None, description="Retained copy of the result log")

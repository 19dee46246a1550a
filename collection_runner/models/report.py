"""Models for normalized run results stored in the history file."""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Self

from pydantic import Field, model_validator

from collection_runner.models.base import CamelModel

NO_ASSERTIONS_MARKER = "no assertions executed"


class Counts(CamelModel):
    """Total and failed counts for one counted category."""

    total: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _failed_within_total(self) -> Self:
        if self.failed > self.total:
            raise ValueError(
                f"failed count ({self.failed}) exceeds total ({self.total})"
            )
        return self

    @property
    def passed(self) -> int:
        """Number of items that did not fail."""
        return self.total - self.failed


class RunStats(CamelModel):
    """Aggregated counters of a single run."""

    iterations: int = Field(default=0, ge=0)
    requests: Counts = Field(default_factory=Counts)
    assertions: Counts = Field(default_factory=Counts)
    test_scripts: Counts = Field(default_factory=Counts)


class FailureDetail(CamelModel):
    """A single failure in discovery order."""

    source: str = Field(..., description="Name of the request or script that failed")
    error: str = Field(..., description="Error message reported by the runner")


class AssertionOutcome(CamelModel):
    """Outcome of one assertion attached to a request execution."""

    assertion: str
    error: str | None = None


class ExecutionOutcome(CamelModel):
    """Outcome of one request execution."""

    name: str
    response_time: int = Field(default=0, ge=0, description="Milliseconds")
    response_code: int = Field(
        default=0, ge=0, description="HTTP status code, 0 when no response arrived"
    )
    assertions: Sequence[AssertionOutcome] = Field(default_factory=list)

    @property
    def failed_assertions(self) -> int:
        """Number of assertions of this execution that reported an error."""
        return sum(1 for outcome in self.assertions if outcome.error is not None)


class ReportRecord(CamelModel):
    """Normalized, immutable outcome of one test run."""

    timestamp: datetime = Field(..., description="Run completion instant")
    duration: int = Field(..., ge=0, description="Elapsed milliseconds")
    stats: RunStats
    success_rate: Decimal | None = Field(
        default=None,
        ge=0,
        le=100,
        description="Percentage of passed assertions, None without assertions",
    )
    failures: Sequence[FailureDetail] = Field(default_factory=list)
    executions: Sequence[ExecutionOutcome] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        """Whether no assertion failed during the run."""
        return self.stats.assertions.failed == 0

    @property
    def success_rate_display(self) -> str:
        """Success rate formatted for humans, or the no-assertions marker."""
        if self.success_rate is None:
            return NO_ASSERTIONS_MARKER
        return f"{self.success_rate}%"

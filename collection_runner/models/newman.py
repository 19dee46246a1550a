"""Pydantic models for the Newman JSON reporter summary."""

from collections.abc import Sequence
from typing import Any

from pydantic import Field

from collection_runner.models.base import CamelModel


class NewmanCounter(CamelModel):
    """A counted category in the run stats."""

    total: int = Field(..., ge=0)
    failed: int = Field(default=0, ge=0)
    pending: int = 0


class NewmanStats(CamelModel):
    """Stats block of a run summary."""

    iterations: NewmanCounter
    requests: NewmanCounter
    assertions: NewmanCounter
    test_scripts: NewmanCounter
    prerequest_scripts: NewmanCounter | None = None


class NewmanTimings(CamelModel):
    """Timings block, epoch milliseconds."""

    started: int
    completed: int
    response_average: float | None = None


class NewmanNamed(CamelModel):
    """An item, source or error object carrying a name."""

    name: str | None = None


class NewmanError(CamelModel):
    """Error object attached to failures and assertions."""

    name: str | None = None
    message: str | None = None


class NewmanResponse(CamelModel):
    """Response attached to an execution."""

    code: int = 0
    response_time: int = 0


class NewmanAssertion(CamelModel):
    """An assertion result attached to an execution."""

    assertion: str
    skipped: bool = False
    error: NewmanError | None = None


class NewmanExecution(CamelModel):
    """A single request execution."""

    item: NewmanNamed = Field(default_factory=NewmanNamed)
    response: NewmanResponse | None = None
    assertions: Sequence[NewmanAssertion] | None = None


class NewmanFailure(CamelModel):
    """A failure recorded during the run."""

    error: NewmanError = Field(default_factory=NewmanError)
    source: NewmanNamed | None = None


class NewmanRun(CamelModel):
    """The run block of a summary."""

    stats: NewmanStats
    timings: NewmanTimings
    executions: Sequence[NewmanExecution] | None = None
    failures: Sequence[NewmanFailure] | None = None
    error: Any = None


class NewmanSummary(CamelModel):
    """Top-level JSON reporter export."""

    run: NewmanRun

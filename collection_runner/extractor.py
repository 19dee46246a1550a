"""Normalization of raw run output into report records."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from pydantic import ValidationError

from collection_runner.models.newman import (
    NewmanExecution,
    NewmanFailure,
    NewmanSummary,
)
from collection_runner.models.report import (
    AssertionOutcome,
    Counts,
    ExecutionOutcome,
    FailureDetail,
    ReportRecord,
    RunStats,
)
from collection_runner.runners.base import RawRunOutput

TWO_PLACES = Decimal("0.01")


class MalformedOutputError(Exception):
    """Raised when raw run output lacks required fields."""


def compute_success_rate(assertions: Counts) -> Decimal | None:
    """Percentage of passed assertions rounded to 2 places, None without any."""
    if assertions.total == 0:
        return None
    rate = Decimal(assertions.passed * 100) / Decimal(assertions.total)
    return rate.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _describe_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )


def _to_execution(execution: NewmanExecution) -> ExecutionOutcome:
    response = execution.response
    return ExecutionOutcome(
        name=execution.item.name or "Unnamed request",
        response_time=response.response_time if response else 0,
        response_code=response.code if response else 0,
        assertions=[
            AssertionOutcome(
                assertion=assertion.assertion,
                error=(assertion.error.message or "Assertion failed")
                if assertion.error
                else None,
            )
            for assertion in execution.assertions or []
        ],
    )


def _to_failure(failure: NewmanFailure) -> FailureDetail:
    source = failure.source.name if failure.source and failure.source.name else None
    return FailureDetail(
        source=source or "Unknown",
        error=failure.error.message or "Unknown error",
    )


def extract(raw: RawRunOutput) -> ReportRecord:
    """Build a report record from a raw run summary.

    Args:
        raw: Raw JSON summary produced by the collection runner

    Returns:
        The normalized report record

    Raises:
        MalformedOutputError: If required stats or timings are missing

    """
    try:
        summary = NewmanSummary.model_validate(raw)
    except ValidationError as exc:
        raise MalformedOutputError(
            f"Run output is missing required fields: {_describe_errors(exc)}"
        ) from exc

    run = summary.run
    try:
        stats = RunStats(
            iterations=run.stats.iterations.total,
            requests=Counts(
                total=run.stats.requests.total, failed=run.stats.requests.failed
            ),
            assertions=Counts(
                total=run.stats.assertions.total, failed=run.stats.assertions.failed
            ),
            test_scripts=Counts(
                total=run.stats.test_scripts.total,
                failed=run.stats.test_scripts.failed,
            ),
        )
    except ValidationError as exc:
        raise MalformedOutputError(
            f"Run output has inconsistent stats: {_describe_errors(exc)}"
        ) from exc

    duration = run.timings.completed - run.timings.started
    if duration < 0:
        raise MalformedOutputError(
            f"Run completed ({run.timings.completed}) before it started "
            f"({run.timings.started})"
        )

    return ReportRecord(
        timestamp=datetime.fromtimestamp(
            run.timings.completed / 1000, tz=timezone.utc
        ),
        duration=duration,
        stats=stats,
        success_rate=compute_success_rate(stats.assertions),
        failures=[_to_failure(failure) for failure in run.failures or []],
        executions=[_to_execution(execution) for execution in run.executions or []],
    )

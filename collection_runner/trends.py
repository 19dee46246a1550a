"""Trend analysis of the latest run against recent history."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from statistics import fmean
from typing import Literal, TypeAlias

from collection_runner.models.report import ReportRecord

Direction: TypeAlias = Literal["up", "down"]
RecentTrend: TypeAlias = Literal["improving", "declining", "stable", "insufficient_data"]

RECENT_WINDOW = 7
RECENT_TREND_RUNS = 3
RECENT_TREND_BAND = 5.0

INSUFFICIENT_DATA_MESSAGE = "Insufficient data for trend analysis"
SUCCESS_RATE_IMPROVED = "Success rate improved"
SUCCESS_RATE_DECLINED = "Success rate declined"
ABOVE_AVERAGE = "Above average performance"
BELOW_AVERAGE = "Below average performance"
ALL_PASSED = "All tests passed"
PERFORMANCE_STABLE = "Performance stable"


@dataclass(frozen=True, kw_only=True)
class MetricTrend:
    """Current value of a metric compared with the previous run and the window."""

    current: float | None
    previous: float | None
    average: float | None
    direction: Direction

    @property
    def delta(self) -> float | None:
        """Change from the previous run, None when either value is missing."""
        if self.current is None or self.previous is None:
            return None
        return self.current - self.previous


@dataclass(frozen=True, kw_only=True)
class TrendAnalysis:
    """Derived comparison of the latest run against recent history."""

    sufficient: bool
    message: str | None = None
    window: int = 0
    success_rate: MetricTrend | None = None
    duration: MetricTrend | None = None
    average_response_time: float | None = None
    summary: Sequence[str] = field(default_factory=tuple)

    @classmethod
    def insufficient(cls) -> "TrendAnalysis":
        """Result for histories too short to compare."""
        return cls(sufficient=False, message=INSUFFICIENT_DATA_MESSAGE)


def _rate(record: ReportRecord) -> float | None:
    return None if record.success_rate is None else float(record.success_rate)


def _mean(values: Sequence[float]) -> float | None:
    return fmean(values) if values else None


def average_response_time(records: Sequence[ReportRecord]) -> float:
    """Mean response time over every execution of the given runs."""
    times = [
        execution.response_time
        for record in records
        for execution in record.executions
    ]
    return fmean(times) if times else 0.0


def success_rate_direction(current: float | None, previous: float | None) -> Direction:
    """``up`` only when the rate strictly increased; ties are ``down``."""
    if current is None or previous is None:
        return "down"
    return "up" if current > previous else "down"


def duration_direction(current: int, previous: int) -> Direction:
    """``up`` (improved) only when the run got strictly faster; ties are ``down``."""
    return "up" if current < previous else "down"


def summarize(
    current: ReportRecord, previous: ReportRecord, average_rate: float | None
) -> Sequence[str]:
    """Build summary signals in fixed order."""
    messages: list[str] = []
    current_rate, previous_rate = _rate(current), _rate(previous)

    if current_rate is not None and previous_rate is not None:
        if current_rate > previous_rate:
            messages.append(SUCCESS_RATE_IMPROVED)
        elif current_rate < previous_rate:
            messages.append(SUCCESS_RATE_DECLINED)

    if current_rate is not None and average_rate is not None:
        if current_rate > average_rate:
            messages.append(ABOVE_AVERAGE)
        elif current_rate < average_rate:
            messages.append(BELOW_AVERAGE)

    if current.stats.assertions.failed == 0:
        messages.append(ALL_PASSED)

    return tuple(messages) if messages else (PERFORMANCE_STABLE,)


def analyze(history: Sequence[ReportRecord]) -> TrendAnalysis:
    """Compare the newest record against the previous one and the recent window.

    Never raises: histories shorter than two entries produce an
    insufficient-data result.
    """
    if len(history) < 2:
        return TrendAnalysis.insufficient()

    recent = history[-RECENT_WINDOW:]
    current, previous = history[-1], history[-2]

    average_rate = _mean(
        [rate for record in recent if (rate := _rate(record)) is not None]
    )
    average_duration = fmean(record.duration for record in recent)

    return TrendAnalysis(
        sufficient=True,
        window=len(recent),
        success_rate=MetricTrend(
            current=_rate(current),
            previous=_rate(previous),
            average=average_rate,
            direction=success_rate_direction(_rate(current), _rate(previous)),
        ),
        duration=MetricTrend(
            current=float(current.duration),
            previous=float(previous.duration),
            average=average_duration,
            direction=duration_direction(current.duration, previous.duration),
        ),
        average_response_time=average_response_time(recent),
        summary=summarize(current, previous, average_rate),
    )


@dataclass(frozen=True, kw_only=True)
class HistorySummary:
    """Aggregate statistics over the whole history."""

    total_runs: int
    first_run: datetime
    last_run: datetime
    average_success_rate: float | None
    average_duration: float
    total_assertions: int
    total_failures: int
    recent_trend: RecentTrend


def recent_trend(history: Sequence[ReportRecord]) -> RecentTrend:
    """Classify the last runs of the recent window against the older ones."""
    window = history[-RECENT_WINDOW:]
    if len(window) < 2:
        return "insufficient_data"

    newest = [r for r in map(_rate, window[-RECENT_TREND_RUNS:]) if r is not None]
    older = [r for r in map(_rate, window[:-RECENT_TREND_RUNS]) if r is not None]
    if not newest or not older:
        return "insufficient_data"

    newest_avg, older_avg = fmean(newest), fmean(older)
    if newest_avg > older_avg + RECENT_TREND_BAND:
        return "improving"
    if newest_avg < older_avg - RECENT_TREND_BAND:
        return "declining"
    return "stable"


def summarize_history(history: Sequence[ReportRecord]) -> HistorySummary | None:
    """Summarize every recorded run, None when nothing was recorded."""
    if not history:
        return None

    return HistorySummary(
        total_runs=len(history),
        first_run=history[0].timestamp,
        last_run=history[-1].timestamp,
        average_success_rate=_mean(
            [rate for record in history if (rate := _rate(record)) is not None]
        ),
        average_duration=fmean(record.duration for record in history),
        total_assertions=sum(record.stats.assertions.total for record in history),
        total_failures=sum(record.stats.assertions.failed for record in history),
        recent_trend=recent_trend(history),
    )

"""Tests for trend analysis."""

import pytest

from collection_runner.testing.factories import build_history, build_record
from collection_runner.trends import (
    ABOVE_AVERAGE,
    ALL_PASSED,
    BELOW_AVERAGE,
    INSUFFICIENT_DATA_MESSAGE,
    PERFORMANCE_STABLE,
    SUCCESS_RATE_DECLINED,
    SUCCESS_RATE_IMPROVED,
    analyze,
    recent_trend,
    summarize_history,
)


def test_empty_history_is_insufficient() -> None:
    """Returns insufficient data for an empty history."""
    trend = analyze([])

    assert not trend.sufficient
    assert trend.message == INSUFFICIENT_DATA_MESSAGE
    assert trend.summary == ()


def test_single_entry_is_insufficient() -> None:
    """Returns insufficient data for a single run."""
    trend = analyze(build_history(["90.00"]))

    assert not trend.sufficient
    assert trend.success_rate is None


def test_improved_success_rate() -> None:
    """Reports an upward trend when the rate rose."""
    trend = analyze(build_history(["80.00", "95.00"]))

    assert trend.sufficient
    assert trend.success_rate is not None
    assert trend.success_rate.direction == "up"
    assert trend.success_rate.delta == pytest.approx(15.0)
    assert trend.summary[0] == SUCCESS_RATE_IMPROVED


def test_declined_success_rate() -> None:
    """Reports a downward trend when the rate fell."""
    trend = analyze(build_history(["95.00", "80.00"]))

    assert trend.success_rate is not None
    assert trend.success_rate.direction == "down"
    assert trend.summary == (SUCCESS_RATE_DECLINED, BELOW_AVERAGE)


def test_equal_success_rate_is_down() -> None:
    """Classifies an unchanged rate as down."""
    trend = analyze(build_history(["90.00", "90.00"]))

    assert trend.success_rate is not None
    assert trend.success_rate.direction == "down"


def test_faster_run_is_up() -> None:
    """Treats a shorter duration as an improvement."""
    trend = analyze(build_history(["90.00", "90.00"], durations=[2000, 1500]))

    assert trend.duration is not None
    assert trend.duration.direction == "up"
    assert trend.duration.delta == pytest.approx(-500.0)


@pytest.mark.parametrize("current", [2000, 2500])
def test_slower_or_equal_run_is_down(current: int) -> None:
    """Classifies an equal or longer duration as down."""
    trend = analyze(build_history(["90.00", "90.00"], durations=[2000, current]))

    assert trend.duration is not None
    assert trend.duration.direction == "down"


def test_rolling_averages_use_last_seven_runs() -> None:
    """Averages over the seven most recent runs only."""
    rates = [
        "0.00", "0.00", "50.00", "60.00", "70.00", "80.00", "90.00", "90.00", "100.00"
    ]
    durations = [9000, 9000, 1000, 2000, 3000, 4000, 5000, 6000, 7000]

    trend = analyze(build_history(rates, durations))

    assert trend.window == 7
    assert trend.success_rate is not None
    assert trend.success_rate.average == pytest.approx(540 / 7)
    assert trend.duration is not None
    assert trend.duration.average == pytest.approx(4000.0)


def test_window_shrinks_for_short_history() -> None:
    """Uses the whole history when shorter than seven runs."""
    trend = analyze(build_history(["80.00", "90.00", "100.00"]))

    assert trend.window == 3
    assert trend.success_rate is not None
    assert trend.success_rate.average == pytest.approx(90.0)


def test_response_time_average_is_flattened() -> None:
    """Averages over all executions rather than per-run averages."""
    history = [
        build_record(response_times=[100]),
        build_record(response_times=[200, 400, 600]),
    ]

    trend = analyze(history)

    assert trend.average_response_time == pytest.approx(325.0)


def test_response_time_average_without_executions() -> None:
    """Reports zero when the window has no executions."""
    trend = analyze(build_history(["90.00", "95.00"]))

    assert trend.average_response_time == 0.0


def test_summary_order() -> None:
    """Emits signals in a fixed order."""
    trend = analyze(build_history(["50.00", "60.00", "100.00"]))

    assert trend.summary == (SUCCESS_RATE_IMPROVED, ABOVE_AVERAGE, ALL_PASSED)


def test_stable_when_no_signal_applies() -> None:
    """Emits a single stable signal when nothing else applies."""
    trend = analyze(build_history(["90.00", "90.00"]))

    assert trend.summary == (PERFORMANCE_STABLE,)


def test_all_passed_without_rate_change() -> None:
    """Flags a fully passing run even without a rate change."""
    trend = analyze(build_history(["100.00", "100.00"]))

    assert trend.summary == (ALL_PASSED,)


def test_runs_without_assertions_are_skipped_in_rate_average() -> None:
    """Ignores runs without a rate when averaging and comparing."""
    trend = analyze(build_history(["80.00", None]))

    assert trend.sufficient
    assert trend.success_rate is not None
    assert trend.success_rate.current is None
    assert trend.success_rate.direction == "down"
    assert trend.success_rate.average == pytest.approx(80.0)
    assert trend.summary == (ALL_PASSED,)


def test_analysis_summary_is_never_empty() -> None:
    """Always yields at least one signal for two or more runs."""
    for rates in (["10.00", "20.00"], ["20.00", "10.00"], ["50.00", "50.00"]):
        assert analyze(build_history(rates)).summary


@pytest.mark.parametrize(
    ("rates", "expected"),
    [
        (["90.00"], "insufficient_data"),
        (["90.00", "90.00", "90.00"], "insufficient_data"),
        (["50.00", "50.00", "90.00", "90.00", "90.00"], "improving"),
        (["90.00", "90.00", "50.00", "50.00", "50.00"], "declining"),
        (["90.00", "88.00", "92.00", "90.00", "91.00"], "stable"),
    ],
)
def test_recent_trend(rates: list[str], expected: str) -> None:
    """Classifies the newest three runs against the older ones."""
    assert recent_trend(build_history(rates)) == expected


def test_summarize_history() -> None:
    """Aggregates every run in the history."""
    history = build_history(["80.00", "100.00"], durations=[1000, 3000])

    summary = summarize_history(history)

    assert summary is not None
    assert summary.total_runs == 2
    assert summary.first_run == history[0].timestamp
    assert summary.last_run == history[1].timestamp
    assert summary.average_success_rate == pytest.approx(90.0)
    assert summary.average_duration == pytest.approx(2000.0)
    assert summary.total_assertions == 20
    assert summary.total_failures == 1


def test_summarize_empty_history() -> None:
    """Returns None when nothing was recorded."""
    assert summarize_history([]) is None

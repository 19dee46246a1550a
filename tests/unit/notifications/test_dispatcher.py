"""Tests for notification dispatch."""

import asyncio
from unittest.mock import Mock

import pytest

from collection_runner.config import PROFILES, resolve_settings
from collection_runner.notifications import (
    DeliveryError,
    EmailChannel,
    NotificationChannel,
    NotificationDispatcher,
    SlackChannel,
    TeamsChannel,
)
from collection_runner.testing.factories import build_record
from collection_runner.trends import TrendAnalysis


def channel_mock(name: str) -> Mock:
    """Create a mock channel with the given name."""
    channel = Mock(spec=NotificationChannel)
    channel.name = name
    return channel


async def test_delivers_to_every_channel() -> None:
    """Delivers to all channels and reports success per channel."""
    slack, email = channel_mock("slack"), channel_mock("email")
    record, trend = build_record(), TrendAnalysis.insufficient()

    outcomes = await NotificationDispatcher(channels=[slack, email]).deliver_all(
        record, trend
    )

    assert [(o.channel, o.status) for o in outcomes] == [
        ("slack", "delivered"),
        ("email", "delivered"),
    ]
    slack.deliver.assert_awaited_once_with(record, trend)
    email.deliver.assert_awaited_once_with(record, trend)


async def test_failing_channel_does_not_affect_others() -> None:
    """Isolates a failing channel from the rest."""
    slack, teams, email = (
        channel_mock("slack"),
        channel_mock("teams"),
        channel_mock("email"),
    )
    teams.deliver.side_effect = DeliveryError("teams", "webhook returned 500")

    outcomes = await NotificationDispatcher(channels=[slack, teams, email]).deliver_all(
        build_record(), TrendAnalysis.insufficient()
    )

    assert [o.status for o in outcomes] == ["delivered", "failed", "delivered"]
    assert outcomes[1].message == "teams: webhook returned 500"
    email.deliver.assert_awaited_once()


async def test_unexpected_errors_are_reported_as_failures() -> None:
    """Treats any exception of a channel as a failed delivery."""
    slack = channel_mock("slack")
    slack.deliver.side_effect = RuntimeError("unexpected")

    outcomes = await NotificationDispatcher(channels=[slack]).deliver_all(
        build_record(), TrendAnalysis.insufficient()
    )

    assert outcomes[0].status == "failed"
    assert outcomes[0].message == "unexpected"


async def test_cancellation_propagates() -> None:
    """Re-raises cancellation instead of reporting it."""
    slack = channel_mock("slack")
    slack.deliver.side_effect = asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await NotificationDispatcher(channels=[slack]).deliver_all(
            build_record(), TrendAnalysis.insufficient()
        )


async def test_delivers_failure_notice() -> None:
    """Sends the suite failure to every channel."""
    slack = channel_mock("slack")
    error = RuntimeError("newman not installed")

    outcomes = await NotificationDispatcher(channels=[slack]).deliver_failure(error)

    assert outcomes[0].status == "delivered"
    slack.deliver_failure.assert_awaited_once_with(error)


async def test_no_channels() -> None:
    """Does nothing without channels."""
    outcomes = await NotificationDispatcher(channels=[]).deliver_all(
        build_record(), TrendAnalysis.insufficient()
    )

    assert outcomes == []


async def test_from_settings_without_configuration() -> None:
    """Enables no channel by default."""
    settings = resolve_settings(PROFILES, "default")

    async with NotificationDispatcher.from_settings(settings) as dispatcher:
        assert dispatcher.channels == []


async def test_from_settings_enables_configured_channels() -> None:
    """Creates one channel per configured destination."""
    settings = resolve_settings(
        PROFILES,
        "default",
        {
            "email": {"username": "bot", "password": "secret", "to": ["qa@x.com"]},
            "notifications": {
                "slack": {"webhook_url": "http://slack.test/hook"},
                "teams": {"webhook_url": "http://teams.test/hook"},
            },
        },
    )

    async with NotificationDispatcher.from_settings(settings) as dispatcher:
        slack, teams, email = dispatcher.channels
        assert isinstance(slack, SlackChannel)
        assert slack.webhook_url == "http://slack.test/hook"
        assert isinstance(teams, TeamsChannel)
        assert slack.session is teams.session
        assert isinstance(email, EmailChannel)

    assert slack.session.closed

"""Webhook channels posting JSON payloads with aiohttp."""

import logging
from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeAlias

import aiohttp

from collection_runner.models.report import ReportRecord
from collection_runner.notifications.base import DeliveryError, NotificationChannel
from collection_runner.trends import TrendAnalysis

log = logging.getLogger(__name__)

Payload: TypeAlias = Mapping[str, Any]


def _seconds(milliseconds: int) -> str:
    return f"{milliseconds / 1000:.2f}s"


@dataclass(frozen=True, kw_only=True)
class WebhookChannel(NotificationChannel):
    """Channel posting a JSON payload to an incoming webhook URL."""

    webhook_url: str = field(repr=False)
    session: aiohttp.ClientSession = field(repr=False)

    @abstractmethod
    def build_payload(self, record: ReportRecord, trend: TrendAnalysis) -> Payload:
        """Build the webhook payload for a completed run."""

    @abstractmethod
    def build_failure_payload(self, error: BaseException) -> Payload:
        """Build the webhook payload for a suite failure."""

    async def deliver(self, record: ReportRecord, trend: TrendAnalysis) -> None:
        """Post the run summary."""
        await self._post(self.build_payload(record, trend))

    async def deliver_failure(self, error: BaseException) -> None:
        """Post the failure notice."""
        await self._post(self.build_failure_payload(error))

    async def _post(self, payload: Payload) -> None:
        try:
            async with self.session.post(self.webhook_url, json=payload) as response:
                if response.status >= 300:
                    text = await response.text()
                    raise DeliveryError(
                        self.name, f"webhook returned {response.status} {text}"
                    )
        except aiohttp.ClientError as exc:
            raise DeliveryError(self.name, f"webhook request failed: {exc}") from exc
        log.info("%s notification sent successfully", self.name)


@dataclass(frozen=True, kw_only=True)
class SlackChannel(WebhookChannel):
    """Slack incoming webhook using message attachments."""

    name = "slack"

    channel: str = "#api-testing"

    def build_payload(self, record: ReportRecord, trend: TrendAnalysis) -> Payload:
        """Build an attachment with the key run metrics."""
        fields = [
            ("Total Assertions", record.stats.assertions.total),
            ("Failed Assertions", record.stats.assertions.failed),
            ("Duration", _seconds(record.duration)),
            ("Requests", record.stats.requests.total),
        ]
        attachment: dict[str, Any] = {
            "color": "good" if record.passed else "danger",
            "title": f"API Test Results - {record.success_rate_display}",
            "fields": [
                {"title": title, "value": value, "short": True}
                for title, value in fields
            ],
            "footer": "Collection Runner",
            "ts": int(record.timestamp.timestamp()),
        }
        if trend.summary:
            attachment["text"] = " | ".join(trend.summary)

        return {
            "channel": self.channel,
            "username": "API Collection Tests",
            "icon_emoji": ":test_tube:",
            "attachments": [attachment],
        }

    def build_failure_payload(self, error: BaseException) -> Payload:
        """Build a danger attachment carrying the error."""
        return {
            "channel": self.channel,
            "username": "API Collection Tests",
            "icon_emoji": ":test_tube:",
            "attachments": [
                {
                    "color": "danger",
                    "title": "API Test Suite - Critical Failure",
                    "text": str(error),
                    "footer": "Collection Runner",
                    "ts": int(datetime.now(timezone.utc).timestamp()),
                }
            ],
        }


@dataclass(frozen=True, kw_only=True)
class TeamsChannel(WebhookChannel):
    """Microsoft Teams incoming webhook using a MessageCard."""

    name = "teams"

    def build_payload(self, record: ReportRecord, trend: TrendAnalysis) -> Payload:
        """Build a MessageCard with the key run metrics."""
        facts = [
            ("Success Rate", record.success_rate_display),
            ("Total Assertions", record.stats.assertions.total),
            ("Failed Assertions", record.stats.assertions.failed),
            ("Duration", _seconds(record.duration)),
            ("Total Requests", record.stats.requests.total),
        ]
        if trend.summary:
            facts.append(("Trend", " | ".join(trend.summary)))

        return {
            "@type": "MessageCard",
            "@context": "http://schema.org/extensions",
            "themeColor": "00FF00" if record.passed else "FF0000",
            "summary": f"API Test Results - {record.success_rate_display}",
            "sections": [
                {
                    "activityTitle": "API Collection Test Results",
                    "activitySubtitle": (
                        f"Completed {record.timestamp.isoformat()}"
                    ),
                    "facts": [
                        {"name": name, "value": str(value)} for name, value in facts
                    ],
                }
            ],
        }

    def build_failure_payload(self, error: BaseException) -> Payload:
        """Build a red MessageCard carrying the error."""
        return {
            "@type": "MessageCard",
            "@context": "http://schema.org/extensions",
            "themeColor": "FF0000",
            "summary": "API Test Suite - Critical Failure",
            "sections": [
                {
                    "activityTitle": "API Test Suite Failed",
                    "activitySubtitle": datetime.now(timezone.utc).isoformat(),
                    "text": str(error),
                }
            ],
        }

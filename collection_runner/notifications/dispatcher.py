"""Concurrent, independently failing delivery to all enabled channels."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import aiohttp

from collection_runner.config import Settings
from collection_runner.models.report import ReportRecord
from collection_runner.notifications.base import NotificationChannel
from collection_runner.notifications.smtp import EmailChannel
from collection_runner.notifications.webhook import SlackChannel, TeamsChannel
from collection_runner.trends import TrendAnalysis

log = logging.getLogger(__name__)

WEBHOOK_TIMEOUT = aiohttp.ClientTimeout(total=30)


@dataclass(frozen=True, kw_only=True)
class DeliveryOutcome:
    """Result of delivering to one channel."""

    channel: str
    status: Literal["delivered", "failed"]
    message: str | None = None


@dataclass(frozen=True, kw_only=True)
class NotificationDispatcher:
    """Delivers notifications to every channel concurrently."""

    channels: Sequence[NotificationChannel]

    @classmethod
    @asynccontextmanager
    async def from_settings(
        cls, settings: Settings, attachments: Sequence[Path] = ()
    ) -> AsyncGenerator["NotificationDispatcher", None]:
        """Create a dispatcher for every enabled channel.

        A webhook channel is enabled when its URL is configured; email is
        enabled when credentials and recipients are configured.
        """
        channels: list[NotificationChannel] = []
        async with AsyncExitStack() as stack:
            slack = settings.notifications.slack
            teams = settings.notifications.teams
            if slack.webhook_url is not None or teams.webhook_url is not None:
                session = await stack.enter_async_context(
                    aiohttp.ClientSession(timeout=WEBHOOK_TIMEOUT)
                )
                if slack.webhook_url is not None:
                    channels.append(
                        SlackChannel(
                            webhook_url=slack.webhook_url.get_secret_value(),
                            session=session,
                            channel=slack.channel,
                        )
                    )
                if teams.webhook_url is not None:
                    channels.append(
                        TeamsChannel(
                            webhook_url=teams.webhook_url.get_secret_value(),
                            session=session,
                        )
                    )

            if settings.email.enabled:
                channels.append(
                    EmailChannel(settings=settings.email, attachments=attachments)
                )
            else:
                log.info("Email credentials not configured, skipping email channel")

            yield cls(channels=channels)

    async def deliver_all(
        self, record: ReportRecord, trend: TrendAnalysis
    ) -> Sequence[DeliveryOutcome]:
        """Deliver the run outcome to every channel.

        Returns:
            One outcome per channel, in channel order

        """
        return await self._dispatch(lambda channel: channel.deliver(record, trend))

    async def deliver_failure(self, error: BaseException) -> Sequence[DeliveryOutcome]:
        """Deliver a suite failure notice to every channel."""
        return await self._dispatch(lambda channel: channel.deliver_failure(error))

    async def _dispatch(
        self, send: Callable[[NotificationChannel], Awaitable[None]]
    ) -> Sequence[DeliveryOutcome]:
        if not self.channels:
            log.info("No notification channels enabled")
            return []

        results = await asyncio.gather(
            *(send(channel) for channel in self.channels), return_exceptions=True
        )
        return self._process_results(results)

    def _process_results(
        self, results: Sequence[None | BaseException]
    ) -> Sequence[DeliveryOutcome]:
        """Turn gathered results into outcomes, logging each failure."""
        outcomes: list[DeliveryOutcome] = []

        for channel, result in zip(self.channels, results, strict=True):
            if isinstance(result, Exception):
                log.error(
                    "Failed to deliver %s notification: %s",
                    channel.name,
                    result,
                    exc_info=result,
                )
                outcomes.append(
                    DeliveryOutcome(
                        channel=channel.name, status="failed", message=str(result)
                    )
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(
                    DeliveryOutcome(channel=channel.name, status="delivered")
                )

        return outcomes

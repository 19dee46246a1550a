"""Notification channels and dispatch."""

from collection_runner.notifications.base import DeliveryError, NotificationChannel
from collection_runner.notifications.dispatcher import (
    DeliveryOutcome,
    NotificationDispatcher,
)
from collection_runner.notifications.smtp import EmailChannel
from collection_runner.notifications.webhook import SlackChannel, TeamsChannel

__all__ = [
    "DeliveryError",
    "DeliveryOutcome",
    "EmailChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "SlackChannel",
    "TeamsChannel",
]

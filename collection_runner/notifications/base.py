"""Abstract base class for notification channels."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from collection_runner.models.report import ReportRecord
from collection_runner.trends import TrendAnalysis


class DeliveryError(Exception):
    """Raised when a channel could not deliver a notification."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel
        self.message = message


@dataclass(frozen=True, kw_only=True)
class NotificationChannel(ABC):
    """A destination for run notifications.

    Each channel delivers independently; a failing channel raises
    ``DeliveryError`` and never affects the others.
    """

    name: ClassVar[str]

    @abstractmethod
    async def deliver(self, record: ReportRecord, trend: TrendAnalysis) -> None:
        """Deliver the outcome of a completed run.

        Args:
            record: Report record of the run
            trend: Trend analysis computed from the updated history

        Raises:
            DeliveryError: If the notification could not be delivered

        """

    @abstractmethod
    async def deliver_failure(self, error: BaseException) -> None:
        """Deliver a notice that the suite could not run.

        Raises:
            DeliveryError: If the notification could not be delivered

        """

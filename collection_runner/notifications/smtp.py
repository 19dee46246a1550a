"""SMTP email channel."""

import asyncio
import logging
import smtplib
import ssl
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import EmailMessage
from pathlib import Path

from collection_runner.config import EmailSettings
from collection_runner.models.report import ReportRecord
from collection_runner.notifications.base import DeliveryError, NotificationChannel
from collection_runner.rendering import (
    email_subject,
    render_email,
    render_failure_email,
)
from collection_runner.trends import TrendAnalysis

log = logging.getLogger(__name__)

FAILURE_SUBJECT = "API Test Suite - Critical Failure"


@dataclass(frozen=True, kw_only=True)
class EmailChannel(NotificationChannel):
    """Sends an HTML summary with the rendered reports attached."""

    name = "email"

    settings: EmailSettings = field(repr=False)
    attachments: Sequence[Path] = ()

    def build_message(self, subject: str, html: str) -> EmailMessage:
        """Build a message addressed from the settings."""
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.settings.sender or self.settings.username or ""
        message["To"] = ", ".join(self.settings.to)
        if self.settings.cc:
            message["Cc"] = ", ".join(self.settings.cc)
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    def attach_reports(self, message: EmailMessage) -> None:
        """Attach every existing report file as HTML."""
        for path in self.attachments:
            if not path.is_file():
                log.debug("Skipping missing attachment: %s", path)
                continue
            message.add_attachment(
                path.read_bytes(),
                maintype="text",
                subtype="html",
                filename=path.name,
            )

    async def deliver(self, record: ReportRecord, trend: TrendAnalysis) -> None:
        """Send the run summary email."""
        message = self.build_message(
            email_subject(record), render_email(record, trend)
        )
        self.attach_reports(message)
        await self._send(message)
        log.info("Email report sent successfully")

    async def deliver_failure(self, error: BaseException) -> None:
        """Send the failure notice email."""
        message = self.build_message(
            FAILURE_SUBJECT, render_failure_email(error, datetime.now(timezone.utc))
        )
        await self._send(message)
        log.info("Failure email sent successfully")

    async def _send(self, message: EmailMessage) -> None:
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(self.name, f"SMTP delivery failed: {exc}") from exc

    def _send_blocking(self, message: EmailMessage) -> None:
        settings = self.settings
        recipients = [*settings.to, *settings.cc, *settings.bcc]
        password = settings.password.get_secret_value() if settings.password else ""
        context = ssl.create_default_context()

        if settings.use_ssl:
            with smtplib.SMTP_SSL(
                settings.host, settings.port, context=context
            ) as smtp:
                smtp.login(settings.username or "", password)
                smtp.send_message(message, to_addrs=recipients)
        else:
            with smtplib.SMTP(settings.host, settings.port) as smtp:
                smtp.starttls(context=context)
                smtp.login(settings.username or "", password)
                smtp.send_message(message, to_addrs=recipients)

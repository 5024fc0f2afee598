"""
Notification senders.

Delivery is fire-and-forget: a failed send is logged and reported as
False, never raised into the jobs and never retried.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Sequence

from dropsync.domain.settings import NotificationSettings

logger = logging.getLogger(__name__)


class SmtpNotificationSender:
    """Sends HTML reports over SMTP."""

    def __init__(self, settings: NotificationSettings) -> None:
        if not settings.smtp_host:
            raise ValueError("smtp_host is required for SmtpNotificationSender")
        self.settings = settings

    def _build_message(self, recipients: Sequence[str], subject: str, html_body: str) -> str:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.from_address
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(subject, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg.as_string()

    def send(self, recipients: Sequence[str], subject: str, html_body: str) -> bool:
        if not recipients:
            logger.warning("No recipients configured; report not sent: %s", subject)
            return False
        s = self.settings
        try:
            with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30) as server:
                if s.use_tls:
                    server.starttls()
                if s.smtp_user and s.smtp_password:
                    server.login(s.smtp_user, s.smtp_password)
                server.sendmail(s.from_address, list(recipients), self._build_message(recipients, subject, html_body))
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send report '%s': %s", subject, e)
            return False
        logger.info("Report sent to %d recipients: %s", len(recipients), subject)
        return True


class LogNotificationSender:
    """Writes reports to the log (no SMTP host configured)."""

    def send(self, recipients: Sequence[str], subject: str, html_body: str) -> bool:
        logger.info("REPORT [%s] %s", ", ".join(recipients) or "no recipients", subject)
        logger.debug("Report body:\n%s", html_body)
        return True


def create_sender(settings: NotificationSettings) -> SmtpNotificationSender | LogNotificationSender:
    """Pick the sender for the configured transport."""
    if settings.smtp_host:
        return SmtpNotificationSender(settings)
    return LogNotificationSender()

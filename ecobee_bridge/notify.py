"""Operator alerts over SMTP."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.text import MIMEText

from .const import DEFAULT_SMTP_PORT, DEFAULT_SMTP_SERVER

_LOGGER = logging.getLogger(__name__)


class EmailNotifier:
    """Best-effort email notifier.

    ``async_send`` never raises: delivery failures are logged and reported
    as False so alerting can never abort a run.
    """

    def __init__(
        self,
        username: str | None,
        password: str | None,
        recipient: str | None = None,
        smtp_server: str = DEFAULT_SMTP_SERVER,
        smtp_port: int = DEFAULT_SMTP_PORT,
        timeout: float = 10.0,
    ) -> None:
        self.username = username
        self.password = password
        self.recipient = recipient or username
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.username and self.password and self.recipient)

    def build_message(self, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.username or ""
        msg["To"] = f"Alerter <{self.recipient}>"
        return msg

    async def async_send(self, subject: str, body: str) -> bool:
        """Send an alert, returning True on delivery."""
        if not self.enabled:
            _LOGGER.debug("Notifications disabled, not sending %r", subject)
            return False

        msg = self.build_message(subject, body)
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, self._send_email_sync, msg
            )
        except (smtplib.SMTPException, OSError):
            _LOGGER.exception("Failed to send notification %r", subject)
            return False

        _LOGGER.info("Notification sent: %s", subject)
        return True

    def _send_email_sync(self, msg: MIMEText) -> None:
        """Send email synchronously (runs in executor)."""
        with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
            server.starttls()
            server.login(self.username, self.password)
            server.send_message(msg)

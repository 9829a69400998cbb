"""SMTP mail transport.

Uses standard SMTP with STARTTLS. Credentials: SMTP_HOST, SMTP_PORT,
SMTP_USER, SMTP_PASSWORD; sender from MAIL_FROM.

Security: password never logged.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

from checkout_notify.errors import DeliveryError
from checkout_notify.notifications.protocol import NotificationMessage, redact_email

logger = logging.getLogger(__name__)


class SmtpTransport:
    """Send email via SMTP with TLS."""

    def __init__(
        self,
        host: str,
        sender: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        timeout: float = 15.0,
    ):
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._from = sender or user
        self._timeout = timeout

    @property
    def transport_type(self) -> str:
        return "smtp"

    @property
    def is_configured(self) -> bool:
        return bool(self._host and self._from)

    def format_message(self, message: NotificationMessage) -> MIMEMultipart:
        """MIME email with a plain-text fallback part."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self._from
        msg["To"] = message.recipient or ""
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(f"{message.subject}\n\nThis message is best viewed as HTML.", "plain"))
        msg.attach(MIMEText(message.body_html, "html"))
        return msg

    def _send_sync(self, formatted: MIMEMultipart) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(formatted)

    async def send(self, message: NotificationMessage) -> str:
        if not self.is_configured:
            raise DeliveryError("SMTP not configured (missing SMTP_HOST/MAIL_FROM)")
        if not message.recipient:
            raise DeliveryError("Message has no recipient")

        formatted = self.format_message(message)
        try:
            await asyncio.to_thread(self._send_sync, formatted)
        except smtplib.SMTPException as e:
            raise DeliveryError(f"SMTP error: {e}") from e
        except OSError as e:
            raise DeliveryError(f"SMTP connection failed: {e}") from e

        logger.info("SMTP delivered message to %s", redact_email(message.recipient))
        return formatted["Message-ID"]

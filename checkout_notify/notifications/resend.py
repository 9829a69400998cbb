"""Resend mail transport: HTTPS email API.

Credentials: RESEND_API_KEY. The sender identity comes from MAIL_FROM.
Security: the API key is sent as a bearer token and never logged.
"""

from __future__ import annotations

import logging

import httpx

from checkout_notify.errors import DeliveryError
from checkout_notify.notifications.protocol import NotificationMessage, redact_email

logger = logging.getLogger(__name__)


class ResendTransport:
    """Send email through the Resend REST API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_base: str = "https://api.resend.com",
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._sender = sender
        self._api_base = api_base.rstrip("/")
        self._client = client

    @property
    def transport_type(self) -> str:
        return "resend"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._sender)

    def build_request(self, message: NotificationMessage) -> dict:
        return {
            "from": self._sender,
            "to": [message.recipient],
            "subject": message.subject,
            "html": message.body_html,
        }

    async def send(self, message: NotificationMessage) -> str:
        if not self.is_configured:
            raise DeliveryError("Resend not configured (missing RESEND_API_KEY/MAIL_FROM)")
        if not message.recipient:
            raise DeliveryError("Message has no recipient")

        client = self._client or httpx.AsyncClient()
        try:
            response = await client.post(
                f"{self._api_base}/emails",
                json=self.build_request(message),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            body = response.json()
            message_id = str(body.get("id", "")) if isinstance(body, dict) else ""
        except httpx.HTTPStatusError as e:
            raise DeliveryError(f"Resend rejected message: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Resend request failed: {type(e).__name__}") from e
        except ValueError as e:
            raise DeliveryError("Resend response is not JSON") from e
        finally:
            if self._client is None:
                await client.aclose()

        logger.info("Resend accepted message %s for %s", message_id, redact_email(message.recipient))
        return message_id

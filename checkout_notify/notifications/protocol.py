"""Notification message and mail transport protocol.

Each transport implements send() and raises DeliveryError on any failure.
Transports are built by the hosting layer and handed to the pipeline;
none are held at module level.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class NotificationMessage:
    """A composed order confirmation, ready for one delivery attempt."""

    recipient: str | None
    subject: str
    body_html: str


@runtime_checkable
class MailTransport(Protocol):
    """Protocol for outbound mail transports."""

    @property
    def transport_type(self) -> str:
        """Type of transport (resend, smtp)."""
        ...

    @property
    def is_configured(self) -> bool:
        """Whether this transport has credentials configured."""
        ...

    async def send(self, message: NotificationMessage) -> str:
        """Submit one message. Returns the provider message id.

        Raises:
            DeliveryError: on any transport failure.
        """
        ...


def redact_email(address: str | None) -> str:
    """Show only the domain of an address in logs."""
    if not address or "@" not in address:
        return "<none>"
    return "***@" + address.split("@", 1)[1]

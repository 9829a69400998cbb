"""Best-effort notification delivery.

One send attempt per message, bounded by a timeout. A timeout or any
transport exception is reported as DeliveryError; callers log it and
carry on. No retries happen here.
"""

from __future__ import annotations

import asyncio
import logging

from checkout_notify.errors import DeliveryError
from checkout_notify.notifications.protocol import MailTransport, NotificationMessage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


async def deliver(
    message: NotificationMessage,
    transport: MailTransport,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Hand a message to the mail transport.

    Returns:
        Provider message id.

    Raises:
        DeliveryError: transport failure, unexpected transport exception,
            or no completion within ``timeout`` seconds.
    """
    if not message.recipient:
        raise DeliveryError("Message has no recipient")

    try:
        return await asyncio.wait_for(transport.send(message), timeout=timeout)
    except DeliveryError:
        raise
    except asyncio.TimeoutError as e:
        raise DeliveryError(f"{transport.transport_type} send timed out after {timeout:.1f}s") from e
    except Exception as e:
        raise DeliveryError(f"{transport.transport_type} send failed: {type(e).__name__}: {e}") from e

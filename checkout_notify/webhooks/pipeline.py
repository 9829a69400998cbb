"""Webhook pipeline: verify, parse, route, then notify the customer.

States:
    RECEIVED -> VERIFIED -> PARSED -> ROUTED
             -> [EXTRACTED -> COMPOSED -> DELIVERED] -> ACKNOWLEDGED
    any verification or parse failure -> REJECTED

Response contract:
- Missing signing secret -> 500 (our misconfiguration)
- Bad/missing/stale signature -> 400, nothing else runs
- Malformed envelope -> 400
- Everything after parsing -> 200, whatever happens downstream.
  Unhandled kinds, duplicates, extraction/composition bugs and mail
  failures are logged with event kind, event id, session id and stage,
  but never turn into a retry signal for the sender.

Every collaborator (transport, line-item source, deduplicator) is injected.
Nothing is shared between invocations.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from checkout_notify.config import Settings
from checkout_notify.errors import AuthError, DeliveryError, ErrorKind, LineItemFetchError, ParseError
from checkout_notify.notifications.composer import Branding, compose
from checkout_notify.notifications.delivery import DEFAULT_TIMEOUT_SECONDS, deliver
from checkout_notify.notifications.protocol import MailTransport, redact_email
from checkout_notify.orders.extractor import ExtractionOptions, extract_order
from checkout_notify.orders.line_items import LineItemSource
from checkout_notify.orders.models import Address
from checkout_notify.webhooks.envelope import WebhookEvent, parse_envelope
from checkout_notify.webhooks.idempotency import EventDeduplicator
from checkout_notify.webhooks.verification import DEFAULT_TOLERANCE_SECONDS, verify_signature

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"

# Event kinds that produce a customer notification
HANDLED_KINDS = frozenset({CHECKOUT_COMPLETED})


class PipelineState(str, Enum):
    RECEIVED = "received"
    VERIFIED = "verified"
    PARSED = "parsed"
    ROUTED = "routed"
    EXTRACTED = "extracted"
    COMPOSED = "composed"
    DELIVERED = "delivered"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"


@dataclass
class PipelineOutcome:
    """Final response plus the states one invocation passed through."""

    status_code: int
    body: dict[str, Any]
    trail: list[PipelineState] = field(default_factory=list)
    event: WebhookEvent | None = None

    @property
    def state(self) -> PipelineState:
        return self.trail[-1]

    @property
    def delivered(self) -> bool:
        return PipelineState.DELIVERED in self.trail


def _log_webhook(kind: str, event_id: str, status: str) -> None:
    """Audit line for webhook activity."""
    logger.info("WEBHOOK_AUDIT event=%s id=%s status=%s", kind, event_id or "-", status)


class WebhookPipeline:
    """One pipeline per hosting process; process() keeps no state between calls."""

    def __init__(
        self,
        secret: str,
        transport: MailTransport,
        branding: Branding | None = None,
        extraction_options: ExtractionOptions | None = None,
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
        delivery_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        line_item_source: LineItemSource | None = None,
        deduplicator: EventDeduplicator | None = None,
    ):
        self._secret = secret
        self._transport = transport
        self._branding = branding or Branding()
        self._extraction_options = extraction_options or ExtractionOptions()
        self._tolerance = tolerance
        self._delivery_timeout = delivery_timeout
        self._line_items = line_item_source
        self._dedup = deduplicator

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: MailTransport,
        line_item_source: LineItemSource | None = None,
        deduplicator: EventDeduplicator | None = None,
    ) -> WebhookPipeline:
        staging = settings.courier_staging_address.strip()
        return cls(
            secret=settings.stripe_webhook_secret,
            transport=transport,
            branding=Branding(
                business_name=settings.business_name,
                tagline=settings.business_tagline,
                phone=settings.business_phone,
                signoff=settings.business_signoff,
                logo_url=settings.business_logo_url,
                pickup_address=settings.pickup_address,
            ),
            extraction_options=ExtractionOptions(
                courier_staging_address=Address(line1=staging) if staging else None,
            ),
            tolerance=settings.signature_tolerance_seconds,
            delivery_timeout=settings.delivery_timeout_seconds,
            line_item_source=line_item_source,
            deduplicator=deduplicator,
        )

    async def process(self, body: bytes, signature_header: str | None) -> PipelineOutcome:
        """Run one inbound webhook through the pipeline."""
        start = time.time()
        trail = [PipelineState.RECEIVED]

        try:
            verify_signature(body, signature_header, self._secret, tolerance=self._tolerance)
        except AuthError as e:
            trail.append(PipelineState.REJECTED)
            if e.kind is ErrorKind.MISSING_SECRET:
                _log_webhook("unknown", "", "not_configured")
                return PipelineOutcome(500, {"error": "Webhook not configured"}, trail)
            logger.warning("Webhook signature verification failed: %s", e.message)
            _log_webhook("unknown", "", "signature_failed")
            return PipelineOutcome(400, {"error": f"Webhook Error: {e.message}"}, trail)
        trail.append(PipelineState.VERIFIED)

        try:
            event = parse_envelope(body)
        except ParseError as e:
            trail.append(PipelineState.REJECTED)
            logger.warning("Webhook envelope rejected: %s", e.message)
            _log_webhook("unknown", "", "invalid_payload")
            return PipelineOutcome(400, {"error": f"Webhook Error: {e.message}"}, trail)
        trail.append(PipelineState.PARSED)

        trail.append(PipelineState.ROUTED)
        if event.kind not in HANDLED_KINDS:
            logger.info("Unhandled event type %s", event.kind)
            status = "skipped"
        elif self._dedup is not None and self._dedup.is_duplicate(event.event_id):
            status = "duplicate"
        else:
            status = "delivered" if await self._notify(event, trail) else "not_delivered"

        trail.append(PipelineState.ACKNOWLEDGED)
        _log_webhook(event.kind, event.event_id, status)
        logger.debug("Webhook processed in %.1fms: %s", (time.time() - start) * 1000, event.kind)
        return PipelineOutcome(200, {"received": True}, trail, event)

    async def _notify(self, event: WebhookEvent, trail: list[PipelineState]) -> bool:
        """Extract, compose and deliver. Absorbs every failure; True if sent."""
        session = event.payload
        logger.info(
            "Payment succeeded: session=%s amount_total=%s metadata_keys=%s",
            event.object_id or "-",
            session.get("amount_total"),
            sorted(session["metadata"]) if isinstance(session.get("metadata"), dict) else [],
        )

        stage = "extract"
        try:
            payload = await self._with_line_items(event)
            order = extract_order(payload, self._extraction_options)
            trail.append(PipelineState.EXTRACTED)

            stage = "compose"
            message = compose(order, self._branding)
            trail.append(PipelineState.COMPOSED)

            stage = "deliver"
            if not message.recipient:
                logger.warning(
                    "No customer email on checkout, confirmation not sent: event=%s id=%s session=%s",
                    event.kind,
                    event.event_id,
                    event.object_id,
                )
                return False

            message_id = await deliver(message, self._transport, timeout=self._delivery_timeout)
        except DeliveryError as e:
            logger.error(
                "CRITICAL: Failed to send confirmation email: event=%s id=%s session=%s stage=%s "
                "recipient=%s error=%s",
                event.kind,
                event.event_id,
                event.object_id,
                stage,
                redact_email(message.recipient),
                e.message,
            )
            return False
        except Exception:
            logger.exception(
                "Order notification failed: event=%s id=%s session=%s stage=%s",
                event.kind,
                event.event_id,
                event.object_id,
                stage,
            )
            return False

        trail.append(PipelineState.DELIVERED)
        logger.info(
            "Confirmation email sent to %s (message=%s, session=%s)",
            redact_email(message.recipient),
            message_id or "-",
            event.object_id,
        )
        return True

    async def _with_line_items(self, event: WebhookEvent) -> Mapping[str, Any]:
        """Payload with processor line items attached, when retrieval is on."""
        payload = event.payload
        if self._line_items is None or "line_items" in payload or not event.object_id:
            return payload

        try:
            line_items = await asyncio.to_thread(self._line_items.fetch, event.object_id)
        except LineItemFetchError as e:
            logger.warning(
                "Line item retrieval failed, using cart metadata: id=%s session=%s error=%s",
                event.event_id,
                event.object_id,
                e.message,
            )
            return payload
        return {**payload, "line_items": line_items}

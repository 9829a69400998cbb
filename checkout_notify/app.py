"""Application factory and process entry point.

The hosting layer owns every long-lived collaborator: settings, the mail
transport, the optional Stripe line-item client and the optional Redis
deduplicator. They are built here once and injected into the pipeline.
"""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from checkout_notify.config import Settings, get_settings
from checkout_notify.notifications.protocol import MailTransport
from checkout_notify.notifications.resend import ResendTransport
from checkout_notify.notifications.smtp import SmtpTransport
from checkout_notify.orders.line_items import LineItemSource, StripeLineItemSource
from checkout_notify.webhooks.handlers import register_webhook_routes
from checkout_notify.webhooks.idempotency import EventDeduplicator
from checkout_notify.webhooks.pipeline import WebhookPipeline

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


def build_transport(settings: Settings) -> MailTransport:
    """Mail transport selected by MAIL_TRANSPORT."""
    if settings.mail_transport.lower() == "smtp":
        return SmtpTransport(
            host=settings.smtp_host,
            sender=settings.mail_from,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
        )
    return ResendTransport(
        api_key=settings.resend_api_key,
        sender=settings.mail_from,
        api_base=settings.resend_api_base,
    )


def create_app(
    settings: Settings | None = None,
    transport: MailTransport | None = None,
    line_item_source: LineItemSource | None = None,
    deduplicator: EventDeduplicator | None = None,
) -> FastAPI:
    """Build the FastAPI app. Collaborators not passed in come from settings."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    transport = transport or build_transport(settings)
    if not transport.is_configured:
        logger.warning("Mail transport %s not configured, confirmations will fail", transport.transport_type)

    if line_item_source is None and settings.line_item_retrieval_enabled:
        line_item_source = StripeLineItemSource(settings.stripe_secret_key, api_base=settings.stripe_api_base)
    if deduplicator is None and settings.redis_url:
        deduplicator = EventDeduplicator.from_url(settings.redis_url, ttl_seconds=settings.dedup_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if isinstance(line_item_source, StripeLineItemSource):
            line_item_source.close()

    app = FastAPI(title="Checkout Notify", lifespan=lifespan)
    app.state.pipeline = WebhookPipeline.from_settings(
        settings,
        transport,
        line_item_source=line_item_source,
        deduplicator=deduplicator,
    )
    register_webhook_routes(app)
    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the checkout webhook server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    import uvicorn

    uvicorn.run(create_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()

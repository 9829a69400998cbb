"""Webhook HTTP handlers: FastAPI routes for the checkout webhook.

The handler reads the raw body (signatures are computed over the exact
bytes) and hands it to the pipeline, which decides the response:
200 received, 400 rejected, 500 not configured. Any method other than
POST gets 405.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from checkout_notify.webhooks.pipeline import WebhookPipeline

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/webhook"
SIGNATURE_HEADER = "stripe-signature"


def register_webhook_routes(app: FastAPI) -> None:
    """Register the webhook endpoint. Expects app.state.pipeline to be set."""

    @app.post(WEBHOOK_PATH)
    async def checkout_webhook(request: Request) -> JSONResponse:
        """Receive Stripe checkout webhooks (signature-verified)."""
        body = await request.body()
        pipeline: WebhookPipeline = request.app.state.pipeline
        outcome = await pipeline.process(body, request.headers.get(SIGNATURE_HEADER))
        return JSONResponse(outcome.body, status_code=outcome.status_code)

    @app.api_route(
        WEBHOOK_PATH,
        methods=["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"],
        include_in_schema=False,
    )
    async def checkout_webhook_wrong_method() -> JSONResponse:
        return JSONResponse(
            {"error": "Method not allowed"},
            status_code=405,
            headers={"Allow": "POST"},
        )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    logger.info("Webhook routes registered: %s", WEBHOOK_PATH)

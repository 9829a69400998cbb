"""Shared fixtures for the checkout webhook test suite."""

from __future__ import annotations

import pytest

from checkout_notify.errors import DeliveryError
from checkout_notify.webhooks.pipeline import WebhookPipeline
from checkout_notify.webhooks.verification import sign_payload
from tests.factories import WEBHOOK_SECRET, FakeTransport


@pytest.fixture()
def sign():
    """sign(body) -> valid Stripe-Signature header for the test secret."""

    def _sign(body: bytes, timestamp: int | None = None) -> str:
        return sign_payload(body, WEBHOOK_SECRET, timestamp=timestamp)

    return _sign


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def failing_transport() -> FakeTransport:
    return FakeTransport(fail_with=DeliveryError("mailbox on fire"))


@pytest.fixture()
def pipeline(transport: FakeTransport) -> WebhookPipeline:
    return WebhookPipeline(secret=WEBHOOK_SECRET, transport=transport)

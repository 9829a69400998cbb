"""Expanded line-item retrieval from the Stripe API.

Checkout session events do not embed line items. When enabled, the pipeline
asks Stripe for them so the email lists authoritative names and prices
instead of the storefront's cart metadata.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from checkout_notify.errors import LineItemFetchError
from checkout_notify.retry import retry_with_backoff

logger = logging.getLogger(__name__)

# Stripe's maximum page size; a single food order never exceeds it
_PAGE_LIMIT = 100


class LineItemSource(Protocol):
    """Anything that can return the line items of a checkout session."""

    def fetch(self, session_id: str) -> dict[str, Any]:
        """Return a Stripe list object ({'data': [...]})."""
        ...


class StripeLineItemSource:
    """Fetch checkout session line items over the Stripe REST API."""

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://api.stripe.com",
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ):
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    @retry_with_backoff(max_retries=3, base_delay=0.5, max_delay=5.0)
    def _get(self, path: str, params: list[tuple[str, str]]) -> httpx.Response:
        response = self._client.get(
            f"{self._api_base}{path}",
            params=params,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()
        return response

    def fetch(self, session_id: str) -> dict[str, Any]:
        """Line items of one checkout session, with products expanded.

        Raises:
            LineItemFetchError: on a missing session id, an HTTP failure
                that survived retries, or an unexpected response body.
        """
        if not session_id:
            raise LineItemFetchError("Checkout session id is missing")

        try:
            response = self._get(
                f"/v1/checkout/sessions/{session_id}/line_items",
                [("limit", str(_PAGE_LIMIT)), ("expand[]", "data.price.product")],
            )
            body = response.json()
        except httpx.HTTPError as e:
            raise LineItemFetchError(f"Line item request failed: {e}") from e
        except ValueError as e:
            raise LineItemFetchError("Line item response is not JSON") from e

        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise LineItemFetchError("Line item response has no data list")

        logger.info("Fetched %d line items for session %s", len(body["data"]), session_id)
        return body

    def close(self) -> None:
        self._client.close()

"""Event envelope parsing: verified bytes -> WebhookEvent.

Only called after signature verification succeeded. An unknown or absent
event type is not a parse failure; routing decides what to do with it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from checkout_notify.errors import ParseError

logger = logging.getLogger(__name__)

UNKNOWN_KIND = "unknown"


@dataclass(frozen=True)
class WebhookEvent:
    """Decoded, immutable wrapper around one inbound notification."""

    kind: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    event_id: str = ""

    @property
    def object_id(self) -> str:
        """Identifier of the payload object (checkout session id)."""
        value = self.payload.get("id")
        return value if isinstance(value, str) else ""


def parse_envelope(body: bytes) -> WebhookEvent:
    """Decode a verified request body into a WebhookEvent.

    The payload is the event's ``data.object``. Anything missing there
    yields an empty payload rather than an error.

    Raises:
        ParseError: body is not decodable UTF-8 JSON, or its top level is
            not an object.
    """
    try:
        document = json.loads(body.decode("utf-8"))
    except (ValueError, RecursionError) as e:
        raise ParseError(f"Invalid JSON payload: {e}") from e

    if not isinstance(document, dict):
        raise ParseError("Event envelope must be a JSON object")

    kind = document.get("type")
    if not isinstance(kind, str) or not kind:
        kind = UNKNOWN_KIND

    event_id = document.get("id")
    if not isinstance(event_id, str):
        event_id = ""

    data = document.get("data")
    payload = data.get("object") if isinstance(data, dict) else None
    if not isinstance(payload, dict):
        payload = {}

    return WebhookEvent(kind=kind, payload=MappingProxyType(payload), event_id=event_id)

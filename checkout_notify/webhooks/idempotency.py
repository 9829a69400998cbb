"""Event deduplication: Redis SET NX keyed by event id.

Stripe delivers at least once, so the same completed checkout can arrive
twice. When a Redis URL is configured, each event id is claimed once and
repeats are acknowledged without sending another email.

Contract:
- Key pattern: webhook:seen:stripe:{event_id}, 24h TTL by default
- Events without an id are never treated as duplicates
- If Redis is down, fail open (process the event)
"""

from __future__ import annotations

import logging
from typing import Any

import redis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 86400

# Bounds every Redis round trip made on the request path
DEFAULT_SOCKET_TIMEOUT_SECONDS = 1.0

_KEY_PREFIX = "webhook:seen"


class EventDeduplicator:
    """Claims event ids in Redis so each one is processed once."""

    def __init__(
        self,
        client: Any,
        provider: str = "stripe",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self._redis = client
        self._provider = provider
        self._ttl = ttl_seconds

    @classmethod
    def from_url(
        cls,
        redis_url: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        socket_timeout: float = DEFAULT_SOCKET_TIMEOUT_SECONDS,
    ) -> EventDeduplicator:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, ttl_seconds=ttl_seconds)

    def key_for(self, event_id: str) -> str:
        return f"{_KEY_PREFIX}:{self._provider}:{event_id}"

    def is_duplicate(self, event_id: str) -> bool:
        """Atomically claim event_id; True if it was already claimed."""
        if not event_id:
            return False

        try:
            was_set = self._redis.set(self.key_for(event_id), "1", nx=True, ex=self._ttl)
        except Exception:
            logger.warning(
                "Redis unavailable for webhook dedup, allowing %s/%s",
                self._provider,
                event_id,
                exc_info=True,
            )
            return False

        if not was_set:
            logger.info("Duplicate webhook skipped: %s/%s", self._provider, event_id)
            return True
        return False

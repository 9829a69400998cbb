"""Exponential backoff with jitter for processor API calls.

Retries transient HTTP statuses (429, 500, 502, 503, 504) and connection
errors, honoring Retry-After. Mail delivery is never wrapped in this: a
webhook request makes at most one send attempt.
"""

from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

_CONNECTION_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout, ConnectionError)


def _retry_reason(exc: Exception) -> str | None:
    """Short description if exc is transient, otherwise None."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return f"HTTP {status}" if status in RETRYABLE_STATUS_CODES else None
    if isinstance(exc, _CONNECTION_ERRORS):
        return f"connection error: {type(exc).__name__}"
    return None


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter: float,
    response: httpx.Response | None = None,
) -> float:
    """Backoff delay for a retry attempt (0-based), capped at max_delay."""
    if response is not None:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return min(float(retry_after), max_delay)
            except ValueError:
                pass

    delay = min(base_delay * (2**attempt), max_delay)
    jitter_amount = delay * jitter
    delay += random.uniform(-jitter_amount, jitter_amount)
    return max(0.05, delay)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    jitter: float = 0.3,
) -> Callable:
    """Decorator: retry a synchronous httpx call on transient failures.

    Args:
        max_retries: Retry attempts after the first call.
        base_delay: Delay before the first retry, in seconds.
        max_delay: Cap on any single delay.
        jitter: Fraction of the delay randomized in either direction.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    reason = _retry_reason(e)
                    if reason is None or attempt == max_retries:
                        raise
                    response = e.response if isinstance(e, httpx.HTTPStatusError) else None
                    delay = compute_delay(attempt, base_delay, max_delay, jitter, response)
                    logger.warning(
                        "Retry %d/%d for %s (%s), waiting %.2fs",
                        attempt + 1,
                        max_retries,
                        fn.__name__,
                        reason,
                        delay,
                    )
                    time.sleep(delay)
            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper

    return decorator

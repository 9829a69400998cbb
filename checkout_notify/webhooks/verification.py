"""Webhook signature verification: constant-time HMAC over the raw body.

Security contract:
- Operates on the exact bytes received; never on a re-serialized payload
- All comparisons use hmac.compare_digest() (constant-time)
- Missing secret -> AuthError(MISSING_SECRET), a server misconfiguration
- Missing/malformed header, digest mismatch, or stale timestamp
  -> AuthError(BAD_SIGNATURE)
- Timestamp tolerance: 300s by default, in both directions (replay protection)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from checkout_notify.errors import AuthError

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300

# Only v1 (HMAC-SHA256) signatures are accepted
_SIGNATURE_SCHEME = "v1"


def parse_signature_header(signature_header: str) -> tuple[int, list[str]]:
    """Split a Stripe-Signature header into (timestamp, v1 signatures).

    Header format: t=<timestamp>,v1=<sig>[,v1=<sig>][,v0=<deprecated>]

    Raises:
        AuthError: if the timestamp or every v1 signature is missing, or a
            v1 value holds non-ASCII characters.
    """
    timestamp: int | None = None
    signatures: list[str] = []

    for item in signature_header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise AuthError.bad_signature("Unable to parse timestamp from header") from None
        elif key == _SIGNATURE_SCHEME and value:
            if not value.isascii():
                raise AuthError.bad_signature("Malformed v1 signature in header")
            signatures.append(value)

    if timestamp is None:
        raise AuthError.bad_signature("Unable to extract timestamp from header")
    if not signatures:
        raise AuthError.bad_signature("No v1 signatures found in header")
    return timestamp, signatures


def compute_signature(body: bytes, timestamp: int, secret: str) -> str:
    """HMAC-SHA256 hex digest of '<timestamp>.<body>'."""
    signed_payload = f"{timestamp}.".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_signature(
    body: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Verify a webhook body against its signature header.

    Args:
        body: Raw request body bytes, exactly as received
        signature_header: Value of the Stripe-Signature header
        secret: Endpoint signing secret
        tolerance: Maximum allowed age (or future skew) of the signed timestamp
        now: Current unix time; defaults to time.time()

    Raises:
        AuthError: MISSING_SECRET or BAD_SIGNATURE
    """
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET not set, rejecting webhook")
        raise AuthError.missing_secret()
    if not signature_header:
        raise AuthError.bad_signature("Missing signature header")

    timestamp, signatures = parse_signature_header(signature_header)

    expected = compute_signature(body, timestamp, secret)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise AuthError.bad_signature("No signatures found matching the expected signature for payload")

    current = time.time() if now is None else now
    if tolerance > 0 and abs(current - timestamp) > tolerance:
        logger.warning("Webhook timestamp outside tolerance: %s", timestamp)
        raise AuthError.bad_signature("Timestamp outside the tolerance zone")


def sign_payload(body: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a valid signature header for a body (local tooling and tests)."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},{_SIGNATURE_SCHEME}={compute_signature(body, ts, secret)}"

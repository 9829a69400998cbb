"""Error taxonomy for webhook processing.

Only AuthError and ParseError change the HTTP response. DeliveryError and
LineItemFetchError are absorbed and logged by the pipeline.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification used for logging and response mapping."""

    MISSING_SECRET = "missing_secret"
    BAD_SIGNATURE = "bad_signature"
    MALFORMED = "malformed"
    TRANSPORT_FAILURE = "transport_failure"
    FETCH_FAILURE = "fetch_failure"


class WebhookError(Exception):
    """Base exception for webhook processing errors."""

    def __init__(self, message: str, kind: ErrorKind) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind


class AuthError(WebhookError):
    """Event authenticity could not be established."""

    @classmethod
    def missing_secret(cls) -> AuthError:
        return cls("Webhook signing secret is not configured", ErrorKind.MISSING_SECRET)

    @classmethod
    def bad_signature(cls, reason: str) -> AuthError:
        return cls(reason, ErrorKind.BAD_SIGNATURE)


class ParseError(WebhookError):
    """Verified body is not a decodable event envelope."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorKind.MALFORMED)


class DeliveryError(WebhookError):
    """Mail transport rejected, failed, or timed out."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorKind.TRANSPORT_FAILURE)


class LineItemFetchError(WebhookError):
    """Expanded line items could not be retrieved from the processor."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorKind.FETCH_FAILURE)

"""Tests for webhook signature verification.

Tests:
- Valid v1 signatures, including multiple signatures (secret rotation)
- Missing secret is a configuration error, not a client error
- Missing, malformed, mismatched and stale headers are rejected
- Any single-byte change to the body invalidates the signature
"""

from __future__ import annotations

import hashlib
import hmac
import time

import pytest
from freezegun import freeze_time
from hypothesis import given, settings
from hypothesis import strategies as st

from checkout_notify.errors import AuthError, ErrorKind
from checkout_notify.webhooks.verification import (
    compute_signature,
    parse_signature_header,
    sign_payload,
    verify_signature,
)
from tests.factories import WEBHOOK_SECRET

BODY = b'{"id": "evt_1", "type": "checkout.session.completed"}'
FROZEN_NOW = 1_717_200_000  # 2024-06-01T00:00:00Z


class TestParseSignatureHeader:
    def test_timestamp_and_signature(self):
        assert parse_signature_header("t=123,v1=abc") == (123, ["abc"])

    def test_multiple_v1_signatures(self):
        assert parse_signature_header("t=1,v1=a,v1=b")[1] == ["a", "b"]

    def test_ignores_v0_and_junk(self):
        assert parse_signature_header("t=5, v0=old ,garbage,v1=new") == (5, ["new"])

    def test_missing_timestamp(self):
        with pytest.raises(AuthError, match="timestamp"):
            parse_signature_header("v1=abc")

    def test_non_numeric_timestamp(self):
        with pytest.raises(AuthError):
            parse_signature_header("t=soon,v1=abc")

    def test_missing_v1(self):
        with pytest.raises(AuthError, match="v1"):
            parse_signature_header("t=123")

    @pytest.mark.parametrize("header", ["t=1717200000,v1=caf\u00e9", "t=1717200000,v1=\u00e9"])
    def test_non_ascii_v1_is_bad_signature(self, header):
        with pytest.raises(AuthError, match="Malformed v1") as exc_info:
            parse_signature_header(header)
        assert exc_info.value.kind is ErrorKind.BAD_SIGNATURE

    def test_non_ascii_v1_rejected_by_verify(self):
        with pytest.raises(AuthError) as exc_info:
            verify_signature(b"{}", "t=1717200000,v1=\u00e9", WEBHOOK_SECRET, now=FROZEN_NOW)
        assert exc_info.value.kind is ErrorKind.BAD_SIGNATURE


class TestVerifySignature:
    """Stripe v1 scheme: HMAC-SHA256 over '<t>.<raw body>'."""

    @freeze_time("2024-06-01 00:00:00")
    def test_valid_signature(self):
        header = sign_payload(BODY, WEBHOOK_SECRET, timestamp=FROZEN_NOW)
        verify_signature(BODY, header, WEBHOOK_SECRET)

    def test_matches_reference_hmac(self):
        expected = hmac.new(
            WEBHOOK_SECRET.encode(), f"{FROZEN_NOW}.".encode() + BODY, hashlib.sha256
        ).hexdigest()
        assert compute_signature(BODY, FROZEN_NOW, WEBHOOK_SECRET) == expected

    def test_missing_secret_is_configuration_error(self):
        header = sign_payload(BODY, WEBHOOK_SECRET)
        with pytest.raises(AuthError) as exc_info:
            verify_signature(BODY, header, "")
        assert exc_info.value.kind is ErrorKind.MISSING_SECRET

    @pytest.mark.parametrize("header", [None, ""])
    def test_missing_header(self, header):
        with pytest.raises(AuthError) as exc_info:
            verify_signature(BODY, header, WEBHOOK_SECRET)
        assert exc_info.value.kind is ErrorKind.BAD_SIGNATURE

    def test_malformed_header(self):
        with pytest.raises(AuthError) as exc_info:
            verify_signature(BODY, "not-a-signature", WEBHOOK_SECRET)
        assert exc_info.value.kind is ErrorKind.BAD_SIGNATURE

    def test_wrong_secret(self):
        header = sign_payload(BODY, "whsec_someone_else")
        with pytest.raises(AuthError, match="expected signature"):
            verify_signature(BODY, header, WEBHOOK_SECRET)

    def test_reserialized_body_fails(self):
        """Verifying a re-encoded payload instead of the raw bytes must fail."""
        header = sign_payload(BODY, WEBHOOK_SECRET)
        reserialized = b'{"id":"evt_1","type":"checkout.session.completed"}'
        with pytest.raises(AuthError):
            verify_signature(reserialized, header, WEBHOOK_SECRET)

    def test_rotated_secret_second_signature_matches(self):
        ts = int(time.time())
        valid = compute_signature(BODY, ts, WEBHOOK_SECRET)
        header = f"t={ts},v1=deadbeef,v1={valid}"
        verify_signature(BODY, header, WEBHOOK_SECRET)


class TestTimestampTolerance:
    """Timestamps more than 300s away from now are rejected (replay protection)."""

    @freeze_time("2024-06-01 00:10:00")
    def test_old_timestamp_rejected(self):
        header = sign_payload(BODY, WEBHOOK_SECRET, timestamp=FROZEN_NOW)
        with pytest.raises(AuthError, match="tolerance"):
            verify_signature(BODY, header, WEBHOOK_SECRET)

    @freeze_time("2024-05-31 23:50:00")
    def test_future_timestamp_rejected(self):
        header = sign_payload(BODY, WEBHOOK_SECRET, timestamp=FROZEN_NOW)
        with pytest.raises(AuthError, match="tolerance"):
            verify_signature(BODY, header, WEBHOOK_SECRET)

    @freeze_time("2024-06-01 00:04:59")
    def test_within_tolerance_accepted(self):
        header = sign_payload(BODY, WEBHOOK_SECRET, timestamp=FROZEN_NOW)
        verify_signature(BODY, header, WEBHOOK_SECRET)

    def test_custom_tolerance_and_clock(self):
        header = sign_payload(BODY, WEBHOOK_SECRET, timestamp=FROZEN_NOW)
        verify_signature(BODY, header, WEBHOOK_SECRET, tolerance=3600, now=FROZEN_NOW + 1800)
        with pytest.raises(AuthError):
            verify_signature(BODY, header, WEBHOOK_SECRET, tolerance=60, now=FROZEN_NOW + 1800)


class TestTamperSensitivity:
    @given(
        body=st.binary(min_size=1, max_size=512),
        data=st.data(),
    )
    @settings(max_examples=100)
    def test_any_single_byte_change_fails(self, body, data):
        header = sign_payload(body, WEBHOOK_SECRET, timestamp=FROZEN_NOW)
        index = data.draw(st.integers(min_value=0, max_value=len(body) - 1))
        replacement = data.draw(st.integers(min_value=0, max_value=255).filter(lambda b: b != body[index]))
        tampered = body[:index] + bytes([replacement]) + body[index + 1 :]

        verify_signature(body, header, WEBHOOK_SECRET, now=FROZEN_NOW)
        with pytest.raises(AuthError):
            verify_signature(tampered, header, WEBHOOK_SECRET, now=FROZEN_NOW)

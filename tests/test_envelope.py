"""Tests for event envelope parsing."""

from __future__ import annotations

import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from checkout_notify.errors import AuthError, ParseError
from checkout_notify.webhooks.envelope import UNKNOWN_KIND, parse_envelope
from checkout_notify.webhooks.verification import sign_payload, verify_signature
from tests.factories import WEBHOOK_SECRET, checkout_event, encode

NOW = 1_717_200_000


class TestParseEnvelope:
    def test_checkout_event(self):
        event = parse_envelope(encode(checkout_event({"orderType": "pickup"})))
        assert event.kind == "checkout.session.completed"
        assert event.event_id == "evt_test_1"
        assert event.object_id == "cs_test_123"
        assert event.payload["metadata"] == {"orderType": "pickup"}

    def test_missing_type_is_unknown_not_error(self):
        event = parse_envelope(b'{"id": "evt_2", "data": {"object": {}}}')
        assert event.kind == UNKNOWN_KIND

    def test_missing_data_gives_empty_payload(self):
        event = parse_envelope(b'{"type": "ping"}')
        assert dict(event.payload) == {}
        assert event.event_id == ""
        assert event.object_id == ""

    def test_payload_is_read_only(self):
        event = parse_envelope(encode(checkout_event()))
        with pytest.raises(TypeError):
            event.payload["id"] = "cs_other"  # type: ignore[index]

    @pytest.mark.parametrize(
        "body",
        [b"", b"not json", b"{", b"\xff\xfe\x00", b"[1, 2, 3]", b'"string"', b"null"],
    )
    def test_malformed_raises_parse_error(self, body):
        with pytest.raises(ParseError):
            parse_envelope(body)

    def test_deeply_nested_body_is_parse_error(self):
        body = b'{"type": "x", "data": ' + b"[" * 100_000 + b"]" * 100_000 + b"}"
        with pytest.raises(ParseError):
            parse_envelope(body)


_json_scalars = st.none() | st.booleans() | st.integers() | st.text(max_size=20)
_json_values = st.recursive(
    _json_scalars,
    lambda children: st.lists(children, max_size=4) | st.dictionaries(st.text(max_size=8), children, max_size=4),
    max_leaves=12,
)


class TestVerifyThenParseRoundTrip:
    @given(
        kind=st.text(min_size=1, max_size=40),
        payload=st.dictionaries(st.text(max_size=12), _json_values, max_size=6),
    )
    @settings(max_examples=100)
    def test_kind_and_payload_survive(self, kind, payload):
        body = json.dumps({"id": "evt_rt", "type": kind, "data": {"object": payload}}).encode()
        header = sign_payload(body, WEBHOOK_SECRET, timestamp=NOW)

        verify_signature(body, header, WEBHOOK_SECRET, now=NOW)
        event = parse_envelope(body)

        assert event.kind == kind
        assert dict(event.payload) == payload

    def test_forged_signature_rejected_before_parsing(self):
        body = encode(checkout_event())
        with pytest.raises(AuthError):
            verify_signature(body, "t=1,v1=forged", WEBHOOK_SECRET, now=NOW)

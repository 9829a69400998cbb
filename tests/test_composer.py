"""Tests for the order confirmation composer."""

from __future__ import annotations

import json

from hypothesis import given, settings
from hypothesis import strategies as st

from checkout_notify.notifications.composer import (
    COURIER_CALL_TO_ACTION,
    DELIVERY_ADDRESS_LABEL,
    NO_FULFILLMENT_NOTICE,
    NO_ITEMS_NOTICE,
    PICKUP_ADDRESS_LABEL,
    Branding,
    compose,
    format_item,
    format_money,
)
from checkout_notify.orders.extractor import extract_order
from checkout_notify.orders.models import Address, FulfillmentType, LineItem, Order, Schedule


def make_order(**overrides) -> Order:
    fields = dict(
        customer_name="Pat",
        customer_email="pat@example.com",
        customer_phone="555-0100",
    )
    fields.update(overrides)
    return Order(**fields)


class TestFormatting:
    def test_money(self):
        assert format_money(2500) == "$25.00"
        assert format_money(5) == "$0.05"
        assert format_money(123456789) == "$1,234,567.89"

    def test_money_other_currency(self):
        assert format_money(1999, "eur") == "19.99 EUR"

    def test_item_row(self):
        assert format_item(LineItem("Brisket", 2, 1000)) == "Brisket × 2 — $20.00"


class TestScenarioPickup:
    """Pickup on 2024-06-01 at noon, $10×2 + $5×1."""

    def setup_method(self):
        payload = {
            "id": "cs_a",
            "customer_email": "pat@example.com",
            "metadata": {
                "fulfillmentType": "pickup",
                "date": "2024-06-01",
                "time": "noon",
                "cartItems": json.dumps(
                    [{"name": "Brisket", "qty": 2, "price": 10}, {"name": "Slaw", "qty": 1, "price": 5}]
                ),
            },
        }
        self.message = compose(extract_order(payload))

    def test_total(self):
        assert "Total Paid: $25.00" in self.message.body_html

    def test_item_rows(self):
        assert "Brisket × 2 — $20.00" in self.message.body_html
        assert "Slaw × 1 — $5.00" in self.message.body_html

    def test_schedule(self):
        assert "2024-06-01" in self.message.body_html
        assert "noon" in self.message.body_html

    def test_pickup_address_present(self):
        assert PICKUP_ADDRESS_LABEL in self.message.body_html
        assert "964 Rose Ave, Piedmont, CA 94611" in self.message.body_html

    def test_no_courier_call_to_action(self):
        assert COURIER_CALL_TO_ACTION not in self.message.body_html

    def test_subject_and_recipient(self):
        assert self.message.subject == "Order Confirmation - Ranch Lab (Pickup)"
        assert self.message.recipient == "pat@example.com"


class TestScenarioDelivery:
    """Delivery with no date or time fields."""

    def setup_method(self):
        payload = {"id": "cs_b", "customer_email": "pat@example.com", "metadata": {"orderType": "delivery"}}
        self.message = compose(extract_order(payload))

    def test_schedule_not_specified(self):
        assert "<strong>Date:</strong> Not specified" in self.message.body_html
        assert "<strong>Time:</strong> Not specified" in self.message.body_html

    def test_courier_call_to_action(self):
        assert COURIER_CALL_TO_ACTION in self.message.body_html
        assert PICKUP_ADDRESS_LABEL not in self.message.body_html

    def test_subject(self):
        assert self.message.subject.endswith("(Delivery)")


class TestFulfillmentSections:
    def test_delivery_shows_address_when_known(self):
        order = make_order(
            fulfillment=FulfillmentType.DELIVERY,
            address=Address(line1="1 Main St", city="Oakland", region="CA", postal_code="94601"),
        )
        body = compose(order).body_html
        assert DELIVERY_ADDRESS_LABEL in body
        assert "1 Main St, Oakland, CA 94601" in body

    def test_unspecified_generic_copy(self):
        message = compose(make_order())
        assert NO_FULFILLMENT_NOTICE.replace("'", "&#x27;") in message.body_html
        assert COURIER_CALL_TO_ACTION not in message.body_html
        assert PICKUP_ADDRESS_LABEL not in message.body_html
        assert message.subject == "Order Confirmation - Ranch Lab"

    def test_empty_items(self):
        body = compose(make_order(fulfillment=FulfillmentType.PICKUP)).body_html
        assert NO_ITEMS_NOTICE in body
        assert "Total Paid: $0.00" in body


class TestEscaping:
    def test_customer_text_is_escaped(self):
        order = make_order(
            customer_name="<script>alert(1)</script>",
            items=(LineItem("Ribs & <b>Beans</b>", 1, 100),),
            total_cents=100,
        )
        body = compose(order).body_html
        assert "<script>" not in body
        assert "&lt;script&gt;" in body
        assert "Ribs &amp; &lt;b&gt;Beans&lt;/b&gt;" in body


class TestBranding:
    def test_custom_branding(self):
        branding = Branding(
            business_name="Smoke Shack",
            phone="(555) 000-1111",
            signoff="The Shack",
            pickup_address="1 Pit Rd",
        )
        message = compose(make_order(fulfillment=FulfillmentType.PICKUP), branding)
        assert message.subject == "Order Confirmation - Smoke Shack (Pickup)"
        assert "1 Pit Rd" in message.body_html
        assert "(555) 000-1111" in message.body_html
        assert "The Shack" in message.body_html


_items = st.lists(
    st.builds(
        LineItem,
        name=st.text(min_size=1, max_size=30),
        quantity=st.integers(min_value=1, max_value=50),
        unit_price_cents=st.integers(min_value=0, max_value=100_000),
    ),
    max_size=6,
).map(tuple)

_orders = st.builds(
    Order,
    customer_name=st.text(min_size=1, max_size=30),
    customer_email=st.none() | st.emails(),
    customer_phone=st.text(min_size=1, max_size=20),
    fulfillment=st.sampled_from(FulfillmentType),
    schedule=st.builds(Schedule, date=st.none() | st.text(max_size=12), time=st.none() | st.text(max_size=12)),
    address=st.none() | st.builds(Address, line1=st.none() | st.text(max_size=20), city=st.none() | st.text(max_size=10)),
    items=_items,
    total_cents=st.integers(min_value=0, max_value=10_000_000),
)


class TestDeterminism:
    @given(order=_orders)
    @settings(max_examples=100)
    def test_same_order_same_message(self, order):
        assert compose(order) == compose(order)

    @given(order=_orders)
    @settings(max_examples=100)
    def test_total_always_rendered(self, order):
        message = compose(order)
        assert f"Total Paid: {format_money(order.total_cents)}" in message.body_html
        assert message.subject.startswith("Order Confirmation - ")

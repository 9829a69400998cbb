"""Order context extraction: checkout payload -> canonical Order.

Checkout metadata has been written under several naming schemes over time
(camelCase and snake_case keys, a single ``slot`` string vs. separate
date/time fields, cart items serialized into one metadata value). Each
logical field is resolved by an ordered list of lookup rules; the first
rule that yields a usable value wins.

Precedence:
- fulfillment-specific fields (``pickupDate``) over generic ones (``date``)
  over the combined ``slot`` string
- payload-embedded data (``line_items``, ``customer_details``) over
  metadata-embedded data (``cartItems``, ``name``)

Extraction never raises. Every field has a default, so a malformed or
partial event still produces an Order and still gets acknowledged.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

from checkout_notify.orders.models import (
    Address,
    FulfillmentType,
    LineItem,
    Order,
    Schedule,
)

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "friend"
DEFAULT_CUSTOMER_PHONE = "Not provided"
DEFAULT_ITEM_NAME = "Item"

# Upper bound on reconstructed lines; metadata values are small, payloads are not
_MAX_ITEMS = 100


@dataclass(frozen=True)
class Rule:
    """Look up one alias: a key path inside the metadata bag or the payload."""

    source: str  # "metadata" or "payload"
    path: tuple[str, ...]

    def lookup(self, payload: Mapping[str, Any], metadata: Mapping[str, Any]) -> Any:
        node: Any = metadata if self.source == "metadata" else payload
        for key in self.path:
            if not isinstance(node, Mapping):
                return None
            node = node.get(key)
        return node


def meta(*keys: str) -> tuple[Rule, ...]:
    """One metadata rule per alias, in priority order."""
    return tuple(Rule("metadata", (key,)) for key in keys)


def field_of(*path: str) -> Rule:
    """A rule reading a nested payload field."""
    return Rule("payload", path)


@dataclass(frozen=True)
class ExtractionOptions:
    """Business settings that shape extraction."""

    # All deliveries leave from here when set; payload addresses are ignored.
    courier_staging_address: Address | None = None


# ── Rule tables ─────────────────────────────────────────────────────────────

FULFILLMENT_RULES = meta(
    "fulfillmentType",
    "fulfillment_type",
    "fulfillment",
    "orderType",
    "order_type",
    "deliveryMethod",
    "delivery_method",
)

_FULFILLMENT_VALUES = {
    "pickup": FulfillmentType.PICKUP,
    "pick-up": FulfillmentType.PICKUP,
    "pick up": FulfillmentType.PICKUP,
    "pick_up": FulfillmentType.PICKUP,
    "collection": FulfillmentType.PICKUP,
    "takeout": FulfillmentType.PICKUP,
    "delivery": FulfillmentType.DELIVERY,
    "deliver": FulfillmentType.DELIVERY,
    "courier": FulfillmentType.DELIVERY,
    "uber": FulfillmentType.DELIVERY,
    "shipping": FulfillmentType.DELIVERY,
}

DATE_RULES: dict[FulfillmentType, tuple[Rule, ...]] = {
    FulfillmentType.PICKUP: meta("pickupDate", "pickup_date"),
    FulfillmentType.DELIVERY: meta("deliveryDate", "delivery_date"),
    FulfillmentType.UNSPECIFIED: (),
}
TIME_RULES: dict[FulfillmentType, tuple[Rule, ...]] = {
    FulfillmentType.PICKUP: meta("pickupTime", "pickup_time"),
    FulfillmentType.DELIVERY: meta("deliveryTime", "delivery_time"),
    FulfillmentType.UNSPECIFIED: (),
}
GENERIC_DATE_RULES = meta("date", "orderDate", "order_date", "scheduledDate", "scheduled_date")
GENERIC_TIME_RULES = meta("time", "orderTime", "order_time", "scheduledTime", "scheduled_time")
SLOT_RULES = meta("slot", "timeSlot", "time_slot")

NAME_RULES = meta("customerName", "customer_name", "name", "fullName") + (
    field_of("customer_details", "name"),
    field_of("shipping_details", "name"),
)
EMAIL_RULES = (
    field_of("customer_details", "email"),
    field_of("customer_email"),
) + meta("customerEmail", "customer_email", "email")
PHONE_RULES = meta("customerPhone", "customer_phone", "phone") + (
    field_of("customer_details", "phone"),
)

PAYLOAD_ADDRESS_RULES = (
    field_of("shipping_details", "address"),
    field_of("shipping", "address"),
    field_of("customer_details", "address"),
)
ADDRESS_LINE_RULES = meta("shippingLine1", "shipping_line1", "addressLine1", "address_line1", "address")
ADDRESS_CITY_RULES = meta("shippingCity", "shipping_city", "city")
ADDRESS_REGION_RULES = meta("shippingState", "shipping_state", "state", "region")
ADDRESS_POSTAL_RULES = meta(
    "shippingPostalCode", "shipping_postal_code", "postalCode", "postal_code", "zip"
)

LINE_ITEM_RULES = (field_of("line_items"),)
CART_RULES = meta("cartItems", "cart_items", "items", "cart")

TOTAL_RULES = (field_of("amount_total"),)

_ISO_DATE_PREFIX = re.compile(r"^\s*([0-9]{4}-[0-9]{2}-[0-9]{2})(?:[ T,@]+(.*))?$")
_INTEGER = re.compile(r"^\s*-?[0-9]+\s*$")


# ── Value coercion ──────────────────────────────────────────────────────────


def _text(value: Any) -> str | None:
    """Stripped string form of a scalar, or None for empty/non-scalar values."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER.match(value):
        try:
            return int(value)
        except ValueError:
            # more digits than int() accepts
            return None
    return None


def _dollars_to_cents(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        amount = Decimal(str(value).strip().lstrip("$"))
        if not amount.is_finite():
            return None
        return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (ArithmeticError, ValueError):
        return None


def first_text(
    rules: Iterable[Rule], payload: Mapping[str, Any], metadata: Mapping[str, Any]
) -> str | None:
    """Value of the first rule that yields non-empty text."""
    for rule in rules:
        value = _text(rule.lookup(payload, metadata))
        if value is not None:
            return value
    return None


# ── Field resolvers ─────────────────────────────────────────────────────────


def resolve_fulfillment(payload: Mapping[str, Any], metadata: Mapping[str, Any]) -> FulfillmentType:
    for rule in FULFILLMENT_RULES:
        value = _text(rule.lookup(payload, metadata))
        if value is None:
            continue
        fulfillment = _FULFILLMENT_VALUES.get(value.lower())
        if fulfillment is not None:
            return fulfillment
    return FulfillmentType.UNSPECIFIED


def split_slot(slot: str | None) -> tuple[str | None, str | None]:
    """Split a combined slot string into (date, time).

    '2024-06-01 12:00-2:00pm' -> ('2024-06-01', '12:00-2:00pm');
    anything without a leading ISO date is treated as a time.
    """
    if not slot:
        return None, None
    match = _ISO_DATE_PREFIX.match(slot)
    if match:
        return match.group(1), _text(match.group(2))
    return None, slot


def resolve_schedule(
    fulfillment: FulfillmentType, payload: Mapping[str, Any], metadata: Mapping[str, Any]
) -> Schedule:
    slot_date, slot_time = split_slot(first_text(SLOT_RULES, payload, metadata))
    date = (
        first_text(DATE_RULES[fulfillment], payload, metadata)
        or first_text(GENERIC_DATE_RULES, payload, metadata)
        or slot_date
    )
    time = (
        first_text(TIME_RULES[fulfillment], payload, metadata)
        or first_text(GENERIC_TIME_RULES, payload, metadata)
        or slot_time
    )
    return Schedule(date=date, time=time)


def _address_from_mapping(value: Any) -> Address | None:
    if not isinstance(value, Mapping):
        return None
    address = Address(
        line1=_text(value.get("line1")),
        city=_text(value.get("city")),
        region=_text(value.get("state")),
        postal_code=_text(value.get("postal_code")),
    )
    return None if address.is_empty else address


def resolve_address(
    fulfillment: FulfillmentType,
    payload: Mapping[str, Any],
    metadata: Mapping[str, Any],
    options: ExtractionOptions,
) -> Address | None:
    if fulfillment is not FulfillmentType.DELIVERY:
        return None
    if options.courier_staging_address is not None:
        return options.courier_staging_address

    for rule in PAYLOAD_ADDRESS_RULES:
        address = _address_from_mapping(rule.lookup(payload, metadata))
        if address is not None:
            return address

    address = Address(
        line1=first_text(ADDRESS_LINE_RULES, payload, metadata),
        city=first_text(ADDRESS_CITY_RULES, payload, metadata),
        region=first_text(ADDRESS_REGION_RULES, payload, metadata),
        postal_code=first_text(ADDRESS_POSTAL_RULES, payload, metadata),
    )
    return None if address.is_empty else address


def _line_entries(value: Any) -> list[Any]:
    """Entries of a Stripe list object ({'data': [...]}) or a plain list."""
    if isinstance(value, Mapping):
        value = value.get("data")
    return list(value[:_MAX_ITEMS]) if isinstance(value, list) else []


def _expanded_line_item(entry: Any) -> LineItem | None:
    """One priced line from the processor's expanded line-item data."""
    if not isinstance(entry, Mapping):
        return None
    price = entry.get("price") if isinstance(entry.get("price"), Mapping) else {}
    product = price.get("product") if isinstance(price.get("product"), Mapping) else {}

    name = (
        _text(entry.get("description"))
        or _text(product.get("name"))
        or _text(price.get("nickname"))
        or DEFAULT_ITEM_NAME
    )
    quantity = _as_int(entry.get("quantity"))
    quantity = quantity if quantity and quantity > 0 else 1

    unit = _as_int(price.get("unit_amount"))
    if unit is None:
        line_amount = _as_int(entry.get("amount_subtotal"))
        if line_amount is None:
            line_amount = _as_int(entry.get("amount_total"))
        unit = line_amount // quantity if line_amount is not None else 0
    return LineItem(name=name, quantity=quantity, unit_price_cents=max(unit, 0))


def _cart_item(entry: Any) -> LineItem | None:
    """One line from a cart serialized into metadata by the storefront."""
    if not isinstance(entry, Mapping):
        return None
    name = _text(entry.get("name")) or _text(entry.get("title")) or DEFAULT_ITEM_NAME

    quantity = None
    for key in ("qty", "quantity"):
        quantity = _as_int(entry.get(key))
        if quantity is not None:
            break
    quantity = quantity if quantity and quantity > 0 else 1

    unit = None
    for key in ("unitPriceCents", "unit_price_cents", "priceCents", "price_cents"):
        unit = _as_int(entry.get(key))
        if unit is not None:
            break
    if unit is None:
        # Storefront carts carry dollar prices
        unit = _dollars_to_cents(entry.get("price"))
    return LineItem(name=name, quantity=quantity, unit_price_cents=max(unit or 0, 0))


def _decode_cart(value: Any) -> list[Any]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (ValueError, RecursionError):
            logger.debug("Cart metadata is not valid JSON (%d chars)", len(value))
            return []
    return list(value[:_MAX_ITEMS]) if isinstance(value, list) else []


def resolve_items(payload: Mapping[str, Any], metadata: Mapping[str, Any]) -> tuple[LineItem, ...]:
    for rule in LINE_ITEM_RULES:
        items = [
            item
            for item in map(_expanded_line_item, _line_entries(rule.lookup(payload, metadata)))
            if item is not None
        ]
        if items:
            return tuple(items)

    for rule in CART_RULES:
        items = [
            item
            for item in map(_cart_item, _decode_cart(rule.lookup(payload, metadata)))
            if item is not None
        ]
        if items:
            return tuple(items)
    return ()


def resolve_total(
    items: tuple[LineItem, ...], payload: Mapping[str, Any], metadata: Mapping[str, Any]
) -> int:
    for rule in TOTAL_RULES:
        total = _as_int(rule.lookup(payload, metadata))
        if total is not None and total >= 0:
            return total
    return sum(item.amount_cents for item in items)


def resolve_email(payload: Mapping[str, Any], metadata: Mapping[str, Any]) -> str | None:
    for rule in EMAIL_RULES:
        value = _text(rule.lookup(payload, metadata))
        if value and "@" in value:
            return value
    return None


# ── Entry point ─────────────────────────────────────────────────────────────


def extract_order(payload: Mapping[str, Any], options: ExtractionOptions | None = None) -> Order:
    """Reconcile a checkout session payload into an Order.

    Args:
        payload: The event's data object (a checkout session)
        options: Business settings; defaults to no courier staging address

    Returns:
        Order with placeholders wherever the payload had nothing usable
    """
    options = options or ExtractionOptions()
    if not isinstance(payload, Mapping):
        payload = {}
    metadata = payload.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}

    fulfillment = resolve_fulfillment(payload, metadata)
    items = resolve_items(payload, metadata)
    currency = _text(payload.get("currency"))

    return Order(
        customer_name=first_text(NAME_RULES, payload, metadata) or DEFAULT_CUSTOMER_NAME,
        customer_email=resolve_email(payload, metadata),
        customer_phone=first_text(PHONE_RULES, payload, metadata) or DEFAULT_CUSTOMER_PHONE,
        fulfillment=fulfillment,
        schedule=resolve_schedule(fulfillment, payload, metadata),
        address=resolve_address(fulfillment, payload, metadata, options),
        items=items,
        total_cents=resolve_total(items, payload, metadata),
        currency=currency.lower() if currency else "usd",
        reference=_text(payload.get("id")) or "",
    )

"""Canonical order representation reconstructed from a completed checkout."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

NOT_SPECIFIED = "Not specified"


class FulfillmentType(str, Enum):
    """How the customer receives the order."""

    PICKUP = "pickup"
    DELIVERY = "delivery"
    UNSPECIFIED = "unspecified"

    @property
    def label(self) -> str:
        return {
            FulfillmentType.PICKUP: "Pickup",
            FulfillmentType.DELIVERY: "Delivery",
            FulfillmentType.UNSPECIFIED: "Order",
        }[self]


@dataclass(frozen=True)
class Schedule:
    """Requested pickup/delivery slot. Empty parts render as 'Not specified'."""

    date: str | None = None
    time: str | None = None

    @property
    def date_display(self) -> str:
        return self.date or NOT_SPECIFIED

    @property
    def time_display(self) -> str:
        return self.time or NOT_SPECIFIED


@dataclass(frozen=True)
class Address:
    """Delivery address. Every part is optional."""

    line1: str | None = None
    city: str | None = None
    region: str | None = None
    postal_code: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any((self.line1, self.city, self.region, self.postal_code))

    def one_line(self) -> str:
        locality = " ".join(p for p in (self.region, self.postal_code) if p)
        return ", ".join(p for p in (self.line1, self.city, locality) if p)


@dataclass(frozen=True)
class LineItem:
    """One purchased product line."""

    name: str
    quantity: int = 1
    unit_price_cents: int = 0

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {self.quantity}")
        if self.unit_price_cents < 0:
            raise ValueError(f"unit_price_cents must be >= 0, got {self.unit_price_cents}")

    @property
    def amount_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class Order:
    """Everything the confirmation email needs about one paid checkout.

    ``total_cents`` is the processor-reported total when one was available,
    otherwise the sum of item amounts. ``items`` may be empty.
    """

    customer_name: str
    customer_email: str | None
    customer_phone: str
    fulfillment: FulfillmentType = FulfillmentType.UNSPECIFIED
    schedule: Schedule = field(default_factory=Schedule)
    address: Address | None = None
    items: tuple[LineItem, ...] = ()
    total_cents: int = 0
    currency: str = "usd"
    reference: str = ""

"""Order confirmation composer: Order -> NotificationMessage.

Pure and deterministic. No I/O, no clock, no randomness: the same Order
and Branding always produce the same message. Every Order yields a
message, including one with no items and no fulfillment choice.

All customer-supplied text is HTML-escaped before interpolation.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape

from checkout_notify.notifications.protocol import NotificationMessage
from checkout_notify.orders.models import NOT_SPECIFIED, FulfillmentType, LineItem, Order

PICKUP_ADDRESS_LABEL = "Pickup Address:"
DELIVERY_ADDRESS_LABEL = "Delivery Address:"
COURIER_CALL_TO_ACTION = "Schedule your courier pickup"
NO_FULFILLMENT_NOTICE = "We didn't receive a pickup or delivery choice with this order."
NO_ITEMS_NOTICE = "Your itemized receipt is included with your payment confirmation."

_TEXT = "color: #5d4037;"
_HEADING = "color: #bf360c;"
_PANEL = (
    "background: linear-gradient(135deg, #fff3e0 0%, #ffe0b2 100%); padding: 24px; "
    "border-radius: 12px; margin: 24px 0; border-left: 6px solid {accent};"
)


@dataclass(frozen=True)
class Branding:
    """Business identity shown in every confirmation."""

    business_name: str = "Ranch Lab"
    tagline: str = "Fire-inspired cooking crafted from my travels"
    phone: str = "(310) 666-0797"
    signoff: str = "Milos & the Ranch Lab team"
    logo_url: str = "https://i.imgur.com/CxUwX5E.png"
    pickup_address: str = "964 Rose Ave, Piedmont, CA 94611"


def format_money(cents: int, currency: str = "usd") -> str:
    """2500 -> '$25.00'; non-USD amounts carry the currency code."""
    amount = f"{cents // 100:,}.{cents % 100:02d}"
    if currency.lower() == "usd":
        return f"${amount}"
    return f"{amount} {currency.upper()}"


def format_item(item: LineItem, currency: str = "usd") -> str:
    """'Brisket × 2 — $20.00' (amount is for the whole line)."""
    return f"{item.name} × {item.quantity} — {format_money(item.amount_cents, currency)}"


def compose_subject(order: Order, branding: Branding) -> str:
    subject = f"Order Confirmation - {branding.business_name}"
    if order.fulfillment is FulfillmentType.UNSPECIFIED:
        return subject
    return f"{subject} ({order.fulfillment.label})"


def _detail(label: str, value: str) -> str:
    return f'<p style="margin: 8px 0; {_TEXT}"><strong>{label}</strong> {escape(value)}</p>'


def _fulfillment_section(order: Order, branding: Branding) -> str:
    if order.fulfillment is FulfillmentType.PICKUP:
        return (
            f'<p style="margin: 12px 0; {_TEXT}"><strong>{PICKUP_ADDRESS_LABEL}</strong><br>'
            f"{escape(branding.pickup_address)}</p>"
        )

    if order.fulfillment is FulfillmentType.DELIVERY:
        parts = []
        if order.address is not None and not order.address.is_empty:
            parts.append(
                f'<p style="margin: 12px 0; {_TEXT}"><strong>{DELIVERY_ADDRESS_LABEL}</strong><br>'
                f"{escape(order.address.one_line())}</p>"
            )
        parts.append(
            f'<p style="margin: 12px 0; {_TEXT}"><strong>{COURIER_CALL_TO_ACTION}:</strong> '
            "your order will be ready for courier pickup at the scheduled time. "
            f"Reply to this email or call {escape(branding.phone)} to book the courier.</p>"
        )
        return "".join(parts)

    return (
        f'<p style="margin: 12px 0; {_TEXT}"><strong>Note:</strong> {escape(NO_FULFILLMENT_NOTICE)} '
        "Reply to this email and let us know whether you'd like pickup or delivery.</p>"
    )


def _items_section(order: Order) -> str:
    row = '<li style="padding: 8px 0; border-bottom: 1px solid #ffe0b2; color: #bf360c;">{}</li>'
    if order.items:
        rows = "".join(row.format(escape(format_item(item, order.currency))) for item in order.items)
    else:
        rows = row.format(escape(NO_ITEMS_NOTICE))
    return (
        f'<div style="{_PANEL.format(accent="#ff8c42")}">'
        f'<h3 style="{_HEADING} margin: 0 0 16px; font-size: 20px;">Items Ordered</h3>'
        f'<ul style="list-style: none; padding: 0; margin: 0;">{rows}</ul>'
        '<div style="border-top: 3px solid #ff6b35; padding-top: 16px; margin-top: 16px;">'
        f'<p style="font-weight: bold; font-size: 18px; {_HEADING} margin: 0;">'
        f"Total Paid: {format_money(order.total_cents, order.currency)}</p>"
        "</div></div>"
    )


def compose_body(order: Order, branding: Branding) -> str:
    if order.fulfillment is FulfillmentType.UNSPECIFIED:
        intro = "Thank you for your order! We've received your payment."
        order_type = NOT_SPECIFIED
    else:
        intro = (
            "Thank you for your order! We've received your payment and will have "
            f"your food ready for {order.fulfillment.value}."
        )
        order_type = order.fulfillment.label

    details = "".join(
        (
            _detail("Order Type:", order_type),
            _detail("Date:", order.schedule.date_display),
            _detail("Time:", order.schedule.time_display),
            _detail("Phone:", order.customer_phone),
        )
    )

    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; '
        'background: #fff8f0; border-radius: 12px; overflow: hidden;">'
        '<div style="background: linear-gradient(135deg, #ff6b35 0%, #ff8c42 100%); padding: 30px; text-align: center;">'
        f'<img src="{escape(branding.logo_url)}" alt="{escape(branding.business_name)}" '
        'style="max-width: 200px; height: auto; margin-bottom: 16px;" />'
        f'<p style="color: #fff3e0; margin: 8px 0; font-size: 16px;">{escape(branding.tagline)}</p>'
        "</div>"
        '<div style="padding: 30px;">'
        f'<h2 style="{_HEADING} margin: 0 0 20px; font-size: 24px;">Order Confirmed!</h2>'
        f'<p style="{_TEXT} font-size: 16px; line-height: 1.6;">Hi {escape(order.customer_name)},</p>'
        f'<p style="{_TEXT} font-size: 16px; line-height: 1.6;">{intro}</p>'
        f'<div style="{_PANEL.format(accent="#ff6b35")}">'
        f'<h3 style="{_HEADING} margin: 0 0 16px; font-size: 20px;">Order Details</h3>'
        f"{details}{_fulfillment_section(order, branding)}"
        "</div>"
        f"{_items_section(order)}"
        '<div style="background: #ff8c42; padding: 20px; border-radius: 8px; margin: 24px 0; text-align: center;">'
        '<p style="color: white; margin: 0; font-size: 16px;">Questions? Reply to this email or call us at '
        f"<strong>{escape(branding.phone)}</strong></p>"
        "</div>"
        '<div style="text-align: center; margin-top: 30px;">'
        f'<p style="{_HEADING} font-size: 18px; font-weight: bold; margin: 0;">Thanks,</p>'
        f'<p style="color: #ff6b35; font-size: 20px; font-weight: bold; margin: 8px 0;">{escape(branding.signoff)}</p>'
        "</div></div></div>"
    )


def compose(order: Order, branding: Branding | None = None) -> NotificationMessage:
    """Build the confirmation email for an order."""
    branding = branding or Branding()
    return NotificationMessage(
        recipient=order.customer_email,
        subject=compose_subject(order, branding),
        body_html=compose_body(order, branding),
    )

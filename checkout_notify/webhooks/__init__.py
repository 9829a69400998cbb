"""Webhook inbound system.

Receives checkout events from Stripe. Each webhook is signature-verified,
parsed into an envelope, optionally deduplicated, and routed through the
order notification pipeline.
"""

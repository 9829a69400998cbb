"""Checkout notifications: verified payment webhooks to order confirmation emails."""

"""Checkout notification service configuration."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the webhook service.

    Loaded once by the hosting layer and passed into the pipeline.
    Nothing else reads the environment.
    """

    # Stripe
    stripe_webhook_secret: str = ""
    stripe_secret_key: str = ""
    stripe_api_base: str = "https://api.stripe.com"
    expand_line_items: bool = False
    signature_tolerance_seconds: int = 300

    # Mail transport: "resend" or "smtp"
    mail_transport: str = "resend"
    mail_from: str = "Ranch Lab <onboarding@resend.dev>"
    resend_api_key: str = ""
    resend_api_base: str = "https://api.resend.com"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    delivery_timeout_seconds: float = 10.0

    # Event-id deduplication (disabled when empty)
    redis_url: str = ""
    dedup_ttl_seconds: int = 86400

    # Email branding
    business_name: str = "Ranch Lab"
    business_tagline: str = "Fire-inspired cooking crafted from my travels"
    business_phone: str = "(310) 666-0797"
    business_signoff: str = "Milos & the Ranch Lab team"
    business_logo_url: str = "https://i.imgur.com/CxUwX5E.png"
    pickup_address: str = "964 Rose Ave, Piedmont, CA 94611"
    # Single-line address all courier deliveries leave from; empty = use
    # the shipping address carried by the payment.
    courier_staging_address: str = ""

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def line_item_retrieval_enabled(self) -> bool:
        return bool(self.expand_line_items and self.stripe_secret_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings singleton for the hosting layer."""
    return Settings()

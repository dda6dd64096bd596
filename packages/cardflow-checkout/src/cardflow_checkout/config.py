"""Checkout configuration surface.

Settings are read once at process start from ``CARDFLOW_*`` environment
variables (or a ``.env`` file) and handed to the processor adapters through
their ``from_settings`` constructors.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CheckoutSettings(BaseSettings):
    """Processor credentials and merchant identity for the checkout flow."""

    model_config = SettingsConfigDict(
        env_prefix="CARDFLOW_",
        env_file=".env",
        extra="ignore",
    )

    # Tokenizing processor
    processor_public_key: str = ""
    processor_api_base: str = "https://api.stripe.com/v1"
    merchant_identifier: str = "merchant.cardflow.test"
    url_scheme: str = "cardflow"
    test_mode: bool = True
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    max_network_retries: int = Field(default=2, ge=0)

    # Delegated-checkout provider
    delegated_key_id: str = ""
    delegated_key_secret: Optional[str] = None

    @field_validator("url_scheme")
    @classmethod
    def strip_url_scheme(cls, v: str) -> str:
        """Accept ``cardflow://`` as well as ``cardflow``."""
        return v.split("://", 1)[0]

    @model_validator(mode="after")
    def check_key_matches_mode(self) -> "CheckoutSettings":
        key = self.processor_public_key
        if key.startswith("sk_"):
            raise ValueError(
                "processor_public_key must be a publishable key; "
                "secret keys never belong in a payer-facing process"
            )
        if self.test_mode and key.startswith("pk_live_"):
            raise ValueError("Live publishable key configured while test_mode is enabled")
        if not self.test_mode and key.startswith("pk_test_"):
            raise ValueError("Test publishable key configured while test_mode is disabled")
        return self

    @property
    def redirect_url(self) -> str:
        """Return URL the processor uses for redirect-based confirmation."""
        return f"{self.url_scheme}://redirect"


@lru_cache
def get_settings() -> CheckoutSettings:
    return CheckoutSettings()

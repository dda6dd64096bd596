"""Tokenization client implementations."""
from cardflow_checkout.tokenization.base import (
    RawCardDataWarning,
    TokenizationClient,
)
from cardflow_checkout.tokenization.stripe import StripeTokenizationClient

__all__ = [
    "RawCardDataWarning",
    "TokenizationClient",
    "StripeTokenizationClient",
]

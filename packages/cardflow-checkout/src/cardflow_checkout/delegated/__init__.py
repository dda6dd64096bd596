"""Delegated checkout client implementations."""
from cardflow_checkout.delegated.base import (
    CallbackRegistration,
    DelegatedCheckoutClient,
)
from cardflow_checkout.delegated.razorpay import RazorpayCheckoutClient

__all__ = [
    "CallbackRegistration",
    "DelegatedCheckoutClient",
    "RazorpayCheckoutClient",
]

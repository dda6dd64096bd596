"""Billing details providers."""
from __future__ import annotations

from abc import ABC, abstractmethod

from cardflow_checkout.models import BillingProfile


class BillingDetailsProvider(ABC):
    """Supplies the payer's billing profile for a checkout session."""

    @abstractmethod
    async def get_billing_profile(self) -> BillingProfile:
        pass


class StaticBillingDetailsProvider(BillingDetailsProvider):
    """Returns a profile known up front (account data, test fixtures)."""

    def __init__(self, profile: BillingProfile):
        self.profile = profile

    async def get_billing_profile(self) -> BillingProfile:
        return self.profile

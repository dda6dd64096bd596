"""
Pytest configuration for cardflow-checkout tests.
"""
from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

from cardflow_checkout.billing import StaticBillingDetailsProvider
from cardflow_checkout.models import Address, BillingProfile, PaymentMethodHandle

FUTURE_YEAR = date.today().year + 4

VALID_CARD_FIELDS = {
    "number": "4242 4242 4242 4242",
    "expiration_month": "12",
    "expiration_year": str(FUTURE_YEAR),
    "cvc": "123",
}


@pytest.fixture(autouse=True)
def clear_cardflow_env(monkeypatch):
    """Keep developer CARDFLOW_* variables out of the settings tests."""
    import os

    for name in list(os.environ):
        if name.startswith("CARDFLOW_"):
            monkeypatch.delenv(name)


@pytest.fixture
def billing_profile() -> BillingProfile:
    """Billing profile that passes local validation."""
    return BillingProfile(
        email="payer@example.com",
        phone="+14155550100",
        address=Address(
            line1="510 Townsend St",
            city="San Francisco",
            state="CA",
            postal_code="94103",
            country="US",
        ),
    )


@pytest.fixture
def billing_provider(billing_profile):
    return StaticBillingDetailsProvider(billing_profile)


@pytest.fixture
def payment_method() -> PaymentMethodHandle:
    return PaymentMethodHandle(id="pm_123", brand="visa", last4="4242")


@pytest.fixture
def tokenization_client(payment_method):
    """Tokenization client double that returns pm_123."""
    client = Mock()
    client.processor_name = "mock"
    client.return_url = None
    client.create_payment_method = AsyncMock(return_value=payment_method)
    return client


@pytest.fixture
def confirm_intent():
    """Intent confirmation that always succeeds."""
    return AsyncMock(return_value=True)


def fill_card(orchestrator, **overrides) -> None:
    """Type a complete card into a raw-mode orchestrator."""
    fields = {**VALID_CARD_FIELDS, **overrides}
    for name, value in fields.items():
        orchestrator.update_field(name, value)

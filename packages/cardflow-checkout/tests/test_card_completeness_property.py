"""
Property tests for card completeness.

For any sequence of field updates, the orchestrator reports the card as
complete exactly when every field's last value is valid on its own.
"""
from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from cardflow_checkout.billing import StaticBillingDetailsProvider
from cardflow_checkout.models import Address, BillingProfile
from cardflow_checkout.orchestrator import CheckoutOrchestrator

hypothesis = pytest.importorskip("hypothesis")
st = hypothesis.strategies
given = hypothesis.given
settings = hypothesis.settings
HealthCheck = hypothesis.HealthCheck

DIGITS = "0123456789"

numbers = st.one_of(
    st.none(),
    st.text(alphabet=DIGITS + " -a", max_size=20),
)
months = st.one_of(
    st.none(),
    st.integers(min_value=-3, max_value=20),
    st.text(alphabet=DIGITS + " x", max_size=3),
)
years = st.one_of(
    st.none(),
    st.integers(min_value=-1, max_value=2100),
    st.text(alphabet=DIGITS + "y", max_size=4),
)
cvcs = st.one_of(
    st.none(),
    st.text(alphabet=DIGITS + " c", max_size=6),
)

updates = st.lists(
    st.one_of(
        st.tuples(st.just("number"), numbers),
        st.tuples(st.just("expiration_month"), months),
        st.tuples(st.just("expiration_year"), years),
        st.tuples(st.just("cvc"), cvcs),
    ),
    max_size=12,
)


def _whole_number(raw):
    if isinstance(raw, int):
        return raw
    text = raw.strip()
    if not text or any(ch not in DIGITS for ch in text):
        return None
    return int(text)


def field_is_valid(name, raw) -> bool:
    if raw is None:
        return False
    if name == "number":
        text = raw.strip().replace(" ", "").replace("-", "")
        return bool(text) and all(ch in DIGITS for ch in text)
    if name == "cvc":
        text = raw.strip()
        return 3 <= len(text) <= 4 and all(ch in DIGITS for ch in text)

    value = _whole_number(raw)
    if value is None:
        return False
    if name == "expiration_month":
        return 1 <= value <= 12
    year = 2000 + value if 0 <= value < 100 else value
    return year >= date.today().year


def make_orchestrator() -> CheckoutOrchestrator:
    billing = BillingProfile(
        email="payer@example.com",
        phone="",
        address=Address(line1="1 Main St", city="Springfield", state="IL", postal_code="62701", country="US"),
    )
    client = Mock()
    client.create_payment_method = AsyncMock()
    return CheckoutOrchestrator(
        tokenization_client=client,
        confirm_intent=AsyncMock(return_value=True),
        billing_provider=StaticBillingDetailsProvider(billing),
    )


class TestCompletenessProperty:
    """Completeness follows the last value typed into each field."""

    @given(updates)
    @settings(max_examples=300, suppress_health_check=[HealthCheck.too_slow])
    def test_complete_iff_every_field_valid(self, sequence):
        """is_complete matches an independent per-field check."""
        orchestrator = make_orchestrator()
        last = {"number": None, "expiration_month": None, "expiration_year": None, "cvc": None}

        for name, value in sequence:
            orchestrator.update_field(name, value)
            last[name] = value

        expected = all(field_is_valid(name, value) for name, value in last.items())
        assert orchestrator.is_complete is expected

    @given(updates)
    @settings(max_examples=100)
    def test_updates_never_raise_for_known_fields(self, sequence):
        """Arbitrary typing never breaks the session."""
        orchestrator = make_orchestrator()
        for name, value in sequence:
            orchestrator.update_field(name, value)
        assert orchestrator.state.value in ("idle", "collecting")

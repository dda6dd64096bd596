"""
Tests for cardflow_checkout.models.

Tests cover:
- CardDetails completeness rules
- Card snapshot immutability and masked repr
- Billing profile validation and processor params
- Hosted field references
- Delegated checkout options
"""
from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import date

import pytest

from cardflow_checkout.exceptions import AuthError, NetworkError, ValidationError
from cardflow_checkout.models import (
    Address,
    BillingProfile,
    CardDetails,
    CheckoutFailed,
    CheckoutSession,
    CheckoutState,
    DelegatedCheckoutOptions,
    HostedFieldRef,
    RawCard,
    TokenizationMode,
    normalize_expiration_year,
)

TODAY = date(2026, 6, 15)


def make_card(**overrides) -> CardDetails:
    values = dict(
        number="4242424242424242",
        expiration_month=12,
        expiration_year=2030,
        cvc="123",
    )
    values.update(overrides)
    return CardDetails(**values)


class TestCardCompleteness:
    """Tests for CardDetails.field_errors and check_complete."""

    def test_complete_card(self):
        """A fully populated card is complete."""
        assert make_card().check_complete(TODAY) is True
        assert make_card().field_errors(TODAY) == {}

    def test_empty_card_reports_every_field(self):
        """An empty card is incomplete in all four fields."""
        errors = CardDetails().field_errors(TODAY)
        assert set(errors) == {"number", "expiration_month", "expiration_year", "cvc"}

    @pytest.mark.parametrize("number", ["", "4242-4242", "4242 4242", "42a2"])
    def test_number_must_be_digits(self, number):
        """Card numbers must be non-empty and digits only."""
        assert "number" in make_card(number=number).field_errors(TODAY)

    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_month_range(self, month):
        """Months outside 1..12 are rejected."""
        assert "expiration_month" in make_card(expiration_month=month).field_errors(TODAY)

    @pytest.mark.parametrize("month", [1, 6, 12])
    def test_month_bounds_accepted(self, month):
        """Months 1 and 12 are both valid."""
        assert make_card(expiration_month=month).check_complete(TODAY)

    def test_past_year_is_expired(self):
        """A year before the current one is expired."""
        errors = make_card(expiration_year=2025).field_errors(TODAY)
        assert errors["expiration_year"] == "Card has expired"

    def test_current_year_accepted(self):
        """The current year is still valid."""
        assert make_card(expiration_year=2026).check_complete(TODAY)

    def test_two_digit_year(self):
        """Two-digit years are read as 20xx."""
        assert make_card(expiration_year=30).check_complete(TODAY)
        assert not make_card(expiration_year=25).check_complete(TODAY)

    def test_negative_year_rejected(self):
        assert "expiration_year" in make_card(expiration_year=-1).field_errors(TODAY)

    @pytest.mark.parametrize("cvc", ["12", "12345", "12a", ""])
    def test_cvc_rules(self, cvc):
        """CVC must be 3 or 4 digits."""
        assert "cvc" in make_card(cvc=cvc).field_errors(TODAY)

    @pytest.mark.parametrize("cvc", ["123", "1234"])
    def test_cvc_lengths_accepted(self, cvc):
        assert make_card(cvc=cvc).check_complete(TODAY)

    def test_non_ascii_digits_rejected(self):
        """Unicode digits are not card digits."""
        assert "number" in make_card(number="٤٢٤٢٤٢٤٢").field_errors(TODAY)
        assert "cvc" in make_card(cvc="１２３").field_errors(TODAY)

    def test_normalize_expiration_year(self):
        assert normalize_expiration_year(30) == 2030
        assert normalize_expiration_year(0) == 2000
        assert normalize_expiration_year(2031) == 2031


class TestCardSnapshot:
    """Tests for CardDetails immutability and display."""

    def test_copy_with_leaves_original_untouched(self):
        """copy_with returns a new snapshot."""
        original = CardDetails(number="4242")
        updated = original.copy_with(cvc="123")

        assert original.cvc is None
        assert updated.cvc == "123"
        assert updated.number == "4242"

    def test_frozen(self):
        """Snapshots cannot be mutated in place."""
        card = CardDetails()
        with pytest.raises(FrozenInstanceError):
            card.number = "4242"

    def test_repr_masks_number_and_cvc(self):
        """repr never shows the full PAN or the CVC."""
        text = repr(make_card())
        assert "4242424242424242" not in text
        assert "****4242" in text
        assert "123" not in text

    def test_last4(self):
        assert make_card().last4 == "4242"
        assert CardDetails(number="42").last4 is None


class TestBillingProfile:
    """Tests for BillingProfile validation and serialization."""

    def test_valid_profile(self, billing_profile):
        billing_profile.validate()

    def test_invalid_email(self, billing_profile):
        """Emails without @ are rejected with the field name."""
        profile = BillingProfile(
            email="payer.example.com",
            phone=billing_profile.phone,
            address=billing_profile.address,
        )
        with pytest.raises(ValidationError) as exc_info:
            profile.validate()
        assert exc_info.value.field == "email"

    def test_country_must_be_two_letters(self, billing_profile):
        address = Address(
            line1="1 Main St",
            city="Springfield",
            state="IL",
            postal_code="62701",
            country="USA",
        )
        profile = BillingProfile(email="a@b.co", phone="", address=address)
        with pytest.raises(ValidationError) as exc_info:
            profile.validate()
        assert exc_info.value.field == "address.country"

    def test_missing_city(self, billing_profile):
        address = Address(line1="1 Main St", city="", state="", postal_code="", country="US")
        with pytest.raises(ValidationError) as exc_info:
            BillingProfile(email="a@b.co", phone="", address=address).validate()
        assert exc_info.value.details["field"] == "address.city"

    def test_processor_params(self, billing_profile):
        """Billing is flattened into bracketed form fields."""
        params = billing_profile.to_processor_params()

        assert params["billing_details[email]"] == "payer@example.com"
        assert params["billing_details[address][city]"] == "San Francisco"
        assert params["billing_details[address][country]"] == "US"
        assert "billing_details[address][line2]" not in params

    def test_processor_params_skip_empty_values(self):
        address = Address(line1="1 Main St", city="Springfield", state="", postal_code="", country="US", line2="Apt 4")
        params = BillingProfile(email="a@b.co", phone="", address=address).to_processor_params()

        assert "billing_details[phone]" not in params
        assert "billing_details[address][state]" not in params
        assert params["billing_details[address][line2]"] == "Apt 4"


class TestCardDataSource:
    """Tests for RawCard and HostedFieldRef."""

    def test_raw_card_delegates_completeness(self):
        assert RawCard(CardDetails()).is_complete is False
        assert RawCard(CardDetails()).mode == TokenizationMode.RAW

    def test_hosted_field_needs_reference_and_flag(self):
        """A hosted field is complete only with a reference and the complete flag."""
        assert HostedFieldRef(id="tok_visa", complete=True).is_complete is True
        assert HostedFieldRef(id="tok_visa", complete=False).is_complete is False
        assert HostedFieldRef(id="", complete=True).is_complete is False
        assert HostedFieldRef(id="tok_visa").mode == TokenizationMode.HOSTED

    def test_session_card_source(self):
        raw = CheckoutSession()
        assert isinstance(raw.card_source, RawCard)

        hosted = CheckoutSession(mode=TokenizationMode.HOSTED)
        assert hosted.card_source == HostedFieldRef(id="")

    def test_session_defaults(self):
        session = CheckoutSession()
        assert session.state == CheckoutState.IDLE
        assert session.session_id.startswith("cs_")
        assert session.attempt == 0


class TestCheckoutState:
    """Tests for state classification."""

    def test_terminal_states(self):
        assert CheckoutState.SUCCEEDED.is_terminal
        assert CheckoutState.FAILED.is_terminal
        assert not CheckoutState.TOKENIZING.is_terminal

    def test_pending_states(self):
        assert CheckoutState.VALIDATING.is_pending
        assert CheckoutState.TOKENIZING.is_pending
        assert CheckoutState.AWAITING_CONFIRMATION.is_pending
        assert not CheckoutState.COLLECTING.is_pending

    def test_failed_event_retryable(self):
        assert CheckoutFailed("cs_1", NetworkError("down")).retryable is True
        assert CheckoutFailed("cs_1", AuthError("bad key")).retryable is False


class TestDelegatedCheckoutOptions:
    """Tests for DelegatedCheckoutOptions."""

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            DelegatedCheckoutOptions(amount_minor_units=amount, merchant_name="Acme").validate()
        assert exc_info.value.field == "amount_minor_units"

    @pytest.mark.parametrize("amount", [10.5, "100", True])
    def test_amount_must_be_integer(self, amount):
        with pytest.raises(ValidationError):
            DelegatedCheckoutOptions(amount_minor_units=amount, merchant_name="Acme").validate()

    def test_merchant_name_required(self):
        with pytest.raises(ValidationError) as exc_info:
            DelegatedCheckoutOptions(amount_minor_units=100, merchant_name="").validate()
        assert exc_info.value.field == "merchant_name"

    def test_to_checkout_options(self):
        """Options map onto the provider's checkout keys."""
        options = DelegatedCheckoutOptions(
            amount_minor_units=5000,
            merchant_name="Acme Corp.",
            currency="inr",
            description="Order #42",
            prefill_contact="8888888888",
            prefill_email="payer@example.com",
            order_id="order_9A33XWu170gUtm",
            notes={"cart": "42"},
        )

        assert options.to_checkout_options("rzp_test_abc") == {
            "key": "rzp_test_abc",
            "amount": 5000,
            "name": "Acme Corp.",
            "currency": "INR",
            "description": "Order #42",
            "order_id": "order_9A33XWu170gUtm",
            "prefill": {"contact": "8888888888", "email": "payer@example.com"},
            "notes": {"cart": "42"},
        }

    def test_minimal_checkout_options(self):
        options = DelegatedCheckoutOptions(amount_minor_units=100, merchant_name="Acme")
        assert options.to_checkout_options("rzp_test_abc") == {
            "key": "rzp_test_abc",
            "amount": 100,
            "name": "Acme",
        }

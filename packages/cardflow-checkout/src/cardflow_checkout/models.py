"""Checkout data models."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Optional, Union
import uuid

from cardflow_checkout.exceptions import CheckoutError, ValidationError
from cardflow_checkout.logging import mask_card_number, mask_value


MIN_CVC_LENGTH = 3
MAX_CVC_LENGTH = 4


class CheckoutState(str, Enum):
    """Checkout session states."""
    IDLE = "idle"
    COLLECTING = "collecting"
    VALIDATING = "validating"
    TOKENIZING = "tokenizing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CheckoutState.SUCCEEDED, CheckoutState.FAILED)

    @property
    def is_pending(self) -> bool:
        return self in (
            CheckoutState.VALIDATING,
            CheckoutState.TOKENIZING,
            CheckoutState.AWAITING_CONFIRMATION,
        )


class TokenizationMode(str, Enum):
    """Where card data lives while it is being entered."""
    RAW = "raw"
    HOSTED = "hosted"


class CardField(str, Enum):
    """Card fields the payer fills in."""
    NUMBER = "number"
    EXPIRATION_MONTH = "expiration_month"
    EXPIRATION_YEAR = "expiration_year"
    CVC = "cvc"


def _is_ascii_digits(text: str) -> bool:
    return text.isascii() and text.isdigit()


def normalize_expiration_year(year: int) -> int:
    """Expand a two-digit year (``30``) to four digits (``2030``)."""
    if 0 <= year < 100:
        return 2000 + year
    return year


@dataclass(frozen=True)
class CardDetails:
    """Snapshot of the card fields entered so far.

    Never mutated in place: every field update goes through ``copy_with`` and
    yields a new snapshot.
    """
    number: Optional[str] = None
    expiration_month: Optional[int] = None
    expiration_year: Optional[int] = None
    cvc: Optional[str] = None

    def copy_with(self, **changes: Any) -> CardDetails:
        return replace(self, **changes)

    def field_errors(self, today: Optional[date] = None) -> dict[str, str]:
        """Return a mapping of field name to problem for every invalid field."""
        today = today or date.today()
        errors: dict[str, str] = {}

        if not self.number:
            errors[CardField.NUMBER.value] = "Card number is required"
        elif not _is_ascii_digits(self.number):
            errors[CardField.NUMBER.value] = "Card number must contain only digits"

        if self.expiration_month is None:
            errors[CardField.EXPIRATION_MONTH.value] = "Expiration month is required"
        elif not 1 <= self.expiration_month <= 12:
            errors[CardField.EXPIRATION_MONTH.value] = "Expiration month must be between 1 and 12"

        if self.expiration_year is None:
            errors[CardField.EXPIRATION_YEAR.value] = "Expiration year is required"
        elif (
            self.expiration_year < 0
            or normalize_expiration_year(self.expiration_year) < today.year
        ):
            errors[CardField.EXPIRATION_YEAR.value] = "Card has expired"

        if not self.cvc:
            errors[CardField.CVC.value] = "CVC is required"
        elif not (
            _is_ascii_digits(self.cvc)
            and MIN_CVC_LENGTH <= len(self.cvc) <= MAX_CVC_LENGTH
        ):
            errors[CardField.CVC.value] = "CVC must be 3 or 4 digits"

        return errors

    def check_complete(self, today: Optional[date] = None) -> bool:
        return not self.field_errors(today)

    @property
    def is_complete(self) -> bool:
        return self.check_complete()

    @property
    def last4(self) -> Optional[str]:
        if self.number and len(self.number) >= 4:
            return self.number[-4:]
        return None

    def __repr__(self) -> str:
        number = mask_card_number(self.number) if self.number else None
        cvc = mask_value(self.cvc) if self.cvc else None
        return (
            f"CardDetails(number={number!r}, "
            f"expiration_month={self.expiration_month!r}, "
            f"expiration_year={self.expiration_year!r}, cvc={cvc!r})"
        )


@dataclass(frozen=True)
class Address:
    """Billing address."""
    line1: str
    city: str
    state: str
    postal_code: str
    country: str
    line2: Optional[str] = None


@dataclass(frozen=True)
class BillingProfile:
    """Billing contact and address sent along with method creation."""
    email: str
    phone: str
    address: Address

    def validate(self) -> None:
        """Reject profiles the processor would refuse, before calling it."""
        if not self.email or "@" not in self.email:
            raise ValidationError("A valid billing email is required", field="email")
        if not self.address.line1:
            raise ValidationError("Billing address line 1 is required", field="address.line1")
        if not self.address.city:
            raise ValidationError("Billing city is required", field="address.city")
        if len(self.address.country or "") != 2:
            raise ValidationError(
                "Billing country must be a two-letter ISO code",
                field="address.country",
            )

    def to_processor_params(self, prefix: str = "billing_details") -> dict[str, str]:
        """Flatten into bracketed form fields (``billing_details[address][city]``)."""
        params = {
            f"{prefix}[email]": self.email,
            f"{prefix}[phone]": self.phone,
            f"{prefix}[address][line1]": self.address.line1,
            f"{prefix}[address][city]": self.address.city,
            f"{prefix}[address][state]": self.address.state,
            f"{prefix}[address][postal_code]": self.address.postal_code,
            f"{prefix}[address][country]": self.address.country,
        }
        if self.address.line2:
            params[f"{prefix}[address][line2]"] = self.address.line2
        return {key: value for key, value in params.items() if value}


@dataclass(frozen=True)
class PaymentMethodHandle:
    """Processor-issued reference to a tokenized payment method.

    ``id`` is passed through to intent confirmation untouched; ``brand`` and
    ``last4`` are for display only.
    """
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class RawCard:
    """Card data held in application memory."""
    card: CardDetails

    @property
    def mode(self) -> TokenizationMode:
        return TokenizationMode.RAW

    @property
    def is_complete(self) -> bool:
        return self.card.is_complete


@dataclass(frozen=True)
class HostedFieldRef:
    """Reference to card data held by the processor's own input component."""
    id: str
    complete: bool = False

    @property
    def mode(self) -> TokenizationMode:
        return TokenizationMode.HOSTED

    @property
    def is_complete(self) -> bool:
        return bool(self.id) and self.complete


CardDataSource = Union[RawCard, HostedFieldRef]


@dataclass(frozen=True)
class DelegatedCheckoutOptions:
    """Options for a provider-rendered checkout."""
    amount_minor_units: int
    merchant_name: str
    currency: Optional[str] = None
    description: Optional[str] = None
    prefill_contact: Optional[str] = None
    prefill_email: Optional[str] = None
    order_id: Optional[str] = None
    notes: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if isinstance(self.amount_minor_units, bool) or not isinstance(self.amount_minor_units, int):
            raise ValidationError(
                "Amount must be an integer number of minor units",
                field="amount_minor_units",
            )
        if self.amount_minor_units <= 0:
            raise ValidationError(
                "Amount must be greater than zero",
                field="amount_minor_units",
            )
        if not self.merchant_name:
            raise ValidationError("Merchant name is required", field="merchant_name")

    def to_checkout_options(self, key_id: str) -> dict[str, Any]:
        options: dict[str, Any] = {
            "key": key_id,
            "amount": self.amount_minor_units,
            "name": self.merchant_name,
        }
        if self.currency:
            options["currency"] = self.currency.upper()
        if self.description:
            options["description"] = self.description
        if self.order_id:
            options["order_id"] = self.order_id
        prefill = {}
        if self.prefill_contact:
            prefill["contact"] = self.prefill_contact
        if self.prefill_email:
            prefill["email"] = self.prefill_email
        if prefill:
            options["prefill"] = prefill
        if self.notes:
            options["notes"] = dict(self.notes)
        return options


@dataclass(frozen=True)
class DelegatedPaymentSuccess:
    """Outcome reported by a delegated provider when the payer paid."""
    payment_id: str
    order_id: Optional[str] = None
    signature: Optional[str] = None


@dataclass(frozen=True)
class DelegatedPaymentFailure:
    """Outcome reported by a delegated provider when the payment failed."""
    code: Union[int, str]
    description: str


@dataclass(frozen=True)
class ConfirmationRequest:
    """What the intent-confirmation collaborator receives."""
    session_id: str
    payment_method: PaymentMethodHandle
    save_card: bool = False
    return_url: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSucceeded:
    """Terminal event: the payment went through."""
    session_id: str
    payment_method: Optional[PaymentMethodHandle] = None
    payment: Optional[DelegatedPaymentSuccess] = None

    @property
    def state(self) -> CheckoutState:
        return CheckoutState.SUCCEEDED


@dataclass(frozen=True)
class CheckoutFailed:
    """Terminal event: the attempt failed with ``error``."""
    session_id: str
    error: CheckoutError

    @property
    def state(self) -> CheckoutState:
        return CheckoutState.FAILED

    @property
    def retryable(self) -> bool:
        return not self.error.fatal


TerminalEvent = Union[CheckoutSucceeded, CheckoutFailed]


@dataclass
class CheckoutSession:
    """Everything one checkout attempt on one screen knows.

    Owned by the orchestrator; the UI reads it through the orchestrator's
    query properties.
    """
    mode: TokenizationMode = TokenizationMode.RAW
    session_id: str = field(default_factory=lambda: f"cs_{uuid.uuid4().hex[:16]}")
    state: CheckoutState = CheckoutState.IDLE
    card: CardDetails = field(default_factory=CardDetails)
    hosted_field: Optional[HostedFieldRef] = None
    billing: Optional[BillingProfile] = None
    save_card: bool = False
    payment_method: Optional[PaymentMethodHandle] = None
    payment: Optional[DelegatedPaymentSuccess] = None
    error: Optional[CheckoutError] = None
    attempt: int = 0
    in_flight: bool = False
    disposed: bool = False

    @property
    def card_source(self) -> CardDataSource:
        if self.mode == TokenizationMode.HOSTED:
            return self.hosted_field or HostedFieldRef(id="")
        return RawCard(self.card)

    def clear_card_data(self) -> None:
        self.card = CardDetails()
        self.hosted_field = None

"""
Cardflow Checkout - card tokenization and checkout orchestration.

This package drives the payer-facing half of a card checkout: it collects
card fields, decides when they are ready, exchanges them for a processor
payment-method handle, hands that handle to intent confirmation, and reports
one outcome back to the hosting UI.

Two integration styles are supported:
- Tokenize-then-confirm (raw fields or the processor's hosted fields)
- Delegated checkout, where the provider renders and runs the whole flow
"""

from cardflow_checkout.orchestrator import CheckoutOrchestrator, IntentConfirmer
from cardflow_checkout.models import (
    # Card data
    CardDetails,
    CardField,
    CardDataSource,
    RawCard,
    HostedFieldRef,
    TokenizationMode,
    # Billing
    Address,
    BillingProfile,
    # Outcomes
    PaymentMethodHandle,
    ConfirmationRequest,
    CheckoutSucceeded,
    CheckoutFailed,
    TerminalEvent,
    # Session
    CheckoutSession,
    CheckoutState,
    # Delegated checkout
    DelegatedCheckoutOptions,
    DelegatedPaymentSuccess,
    DelegatedPaymentFailure,
)
from cardflow_checkout.exceptions import (
    CheckoutError,
    ValidationError,
    CheckoutStateError,
    NetworkError,
    InvalidRequestError,
    AuthError,
    TokenizationError,
    ConfirmationError,
    CheckoutCancelled,
    DelegatedCheckoutError,
)
from cardflow_checkout.billing import (
    BillingDetailsProvider,
    StaticBillingDetailsProvider,
)
from cardflow_checkout.config import CheckoutSettings, get_settings
from cardflow_checkout.retry import RetryConfig

# Tokenization
from cardflow_checkout.tokenization import (
    RawCardDataWarning,
    TokenizationClient,
    StripeTokenizationClient,
)

# Delegated checkout
from cardflow_checkout.delegated import (
    CallbackRegistration,
    DelegatedCheckoutClient,
    RazorpayCheckoutClient,
)

__all__ = [
    # Orchestrator
    "CheckoutOrchestrator",
    "IntentConfirmer",
    # Models
    "CardDetails",
    "CardField",
    "CardDataSource",
    "RawCard",
    "HostedFieldRef",
    "TokenizationMode",
    "Address",
    "BillingProfile",
    "PaymentMethodHandle",
    "ConfirmationRequest",
    "CheckoutSucceeded",
    "CheckoutFailed",
    "TerminalEvent",
    "CheckoutSession",
    "CheckoutState",
    "DelegatedCheckoutOptions",
    "DelegatedPaymentSuccess",
    "DelegatedPaymentFailure",
    # Errors
    "CheckoutError",
    "ValidationError",
    "CheckoutStateError",
    "NetworkError",
    "InvalidRequestError",
    "AuthError",
    "TokenizationError",
    "ConfirmationError",
    "CheckoutCancelled",
    "DelegatedCheckoutError",
    # Billing
    "BillingDetailsProvider",
    "StaticBillingDetailsProvider",
    # Configuration
    "CheckoutSettings",
    "get_settings",
    "RetryConfig",
    # Tokenization
    "RawCardDataWarning",
    "TokenizationClient",
    "StripeTokenizationClient",
    # Delegated checkout
    "CallbackRegistration",
    "DelegatedCheckoutClient",
    "RazorpayCheckoutClient",
]

__version__ = "0.1.0"

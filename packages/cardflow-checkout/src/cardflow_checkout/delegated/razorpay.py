"""Razorpay Standard Checkout client."""
from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from cardflow_checkout.config import CheckoutSettings
from cardflow_checkout.delegated.base import DelegatedCheckoutClient, DelegatedOutcome
from cardflow_checkout.exceptions import (
    AuthError,
    CheckoutCancelled,
    CheckoutError,
    DelegatedCheckoutError,
    InvalidRequestError,
    NetworkError,
)
from cardflow_checkout.models import (
    DelegatedCheckoutOptions,
    DelegatedPaymentFailure,
    DelegatedPaymentSuccess,
)

logger = logging.getLogger(__name__)

# Renders Razorpay's checkout for the given options mapping and returns once
# it is on screen. The outcome comes back through handle_payment_success /
# handle_payment_error.
CheckoutPresenter = Callable[[Dict[str, Any]], Awaitable[None]]

SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"


class RazorpayCheckoutClient(DelegatedCheckoutClient):
    """Razorpay checkout, where Razorpay renders and runs the payment."""

    # Error codes reported by the Razorpay checkout SDKs
    NETWORK_ERROR = 0
    INVALID_OPTIONS = 1
    PAYMENT_CANCELLED = 2
    TLS_ERROR = 3
    INCOMPATIBLE_PLUGIN = 4
    UNKNOWN_ERROR = 100

    def __init__(
        self,
        key_id: str,
        presenter: CheckoutPresenter,
        key_secret: Optional[str] = None,
    ):
        super().__init__()
        if not key_id:
            raise AuthError("Razorpay key id is required")
        self.key_id = key_id
        self._key_secret = key_secret
        self._presenter = presenter
        self._launched_order_id: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: CheckoutSettings,
        presenter: CheckoutPresenter,
    ) -> "RazorpayCheckoutClient":
        return cls(
            key_id=settings.delegated_key_id,
            presenter=presenter,
            key_secret=settings.delegated_key_secret,
        )

    @property
    def provider_name(self) -> str:
        return "razorpay"

    async def _open(self, options: DelegatedCheckoutOptions) -> None:
        self._launched_order_id = options.order_id
        await self._presenter(options.to_checkout_options(self.key_id))

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check ``razorpay_signature`` = HMAC-SHA256(order_id|payment_id)."""
        if not self._key_secret:
            return False
        expected = hmac.new(
            self._key_secret.encode(),
            f"{order_id}|{payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)

    def _check_outcome(self, outcome: DelegatedOutcome) -> DelegatedOutcome:
        """Reject successes whose signature does not match the launched order.

        With a key secret configured, a launch that carried an ``order_id``
        must come back signed for that same order. A launch without an order
        is verified only when the provider reports both order id and
        signature.
        """
        if not isinstance(outcome, DelegatedPaymentSuccess) or not self._key_secret:
            return outcome
        expected_order_id = self._launched_order_id
        if expected_order_id is None and not (outcome.order_id and outcome.signature):
            return outcome

        order_id = outcome.order_id or expected_order_id
        if (
            not outcome.signature
            or (expected_order_id is not None and order_id != expected_order_id)
            or not self.verify_signature(order_id, outcome.payment_id, outcome.signature)
        ):
            logger.warning(
                "Razorpay signature mismatch for payment %s on order %s",
                outcome.payment_id,
                order_id,
            )
            return DelegatedPaymentFailure(
                code=SIGNATURE_MISMATCH,
                description="Payment signature could not be verified",
            )
        return outcome

    def error_for(self, failure: DelegatedPaymentFailure) -> CheckoutError:
        details = {"provider_code": failure.code}
        if failure.code == self.NETWORK_ERROR:
            return NetworkError(failure.description, details=details)
        if failure.code == self.INVALID_OPTIONS:
            return InvalidRequestError(failure.description, details=details)
        if failure.code == self.PAYMENT_CANCELLED:
            return CheckoutCancelled(failure.description, details=details)
        return DelegatedCheckoutError(failure.description, provider_code=failure.code)

"""Base interface for providers that run the entire checkout flow."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

from cardflow_checkout.exceptions import (
    CheckoutError,
    CheckoutStateError,
    DelegatedCheckoutError,
)
from cardflow_checkout.models import (
    DelegatedCheckoutOptions,
    DelegatedPaymentFailure,
    DelegatedPaymentSuccess,
)

logger = logging.getLogger(__name__)

SuccessHandler = Callable[[DelegatedPaymentSuccess], None]
FailureHandler = Callable[[DelegatedPaymentFailure], None]
DelegatedOutcome = Union[DelegatedPaymentSuccess, DelegatedPaymentFailure]


class CallbackRegistration:
    """Handle for one pair of success/failure callbacks on a client."""

    def __init__(
        self,
        client: "DelegatedCheckoutClient",
        on_success: SuccessHandler,
        on_failure: FailureHandler,
    ):
        self._client = client
        self.on_success = on_success
        self.on_failure = on_failure
        self.active = True

    def cancel(self) -> None:
        """Detach the callbacks. Outcomes arriving later are dropped."""
        if self.active:
            self.active = False
            self._client._release(self)


class DelegatedCheckoutClient(ABC):
    """
    Abstract interface for provider-rendered checkouts.

    The client owns at most one callback registration. Exactly one outcome is
    forwarded per ``launch()``; anything the provider reports after that is
    logged and dropped.
    """

    def __init__(self) -> None:
        self._registration: Optional[CallbackRegistration] = None
        self._launches = 0
        self._settled = True

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def _open(self, options: DelegatedCheckoutOptions) -> None:
        """Hand the validated options to the provider's UI."""
        pass

    @property
    def registration(self) -> Optional[CallbackRegistration]:
        return self._registration

    @property
    def is_pending(self) -> bool:
        return not self._settled

    def register(
        self,
        on_success: SuccessHandler,
        on_failure: FailureHandler,
    ) -> CallbackRegistration:
        """Register outcome callbacks, replacing any previous registration."""
        if self._registration is not None:
            self._registration.cancel()
        self._registration = CallbackRegistration(self, on_success, on_failure)
        return self._registration

    def _release(self, registration: CallbackRegistration) -> None:
        if self._registration is registration:
            self._registration = None

    async def launch(self, options: DelegatedCheckoutOptions) -> None:
        """
        Start the provider's checkout.

        Args:
            options: Amount, merchant and prefill data

        Raises:
            ValidationError: options are invalid; the provider is never contacted
            CheckoutStateError: no callbacks are registered
        """
        options.validate()
        if self._registration is None:
            raise CheckoutStateError("Register outcome callbacks before launching checkout")

        self._launches += 1
        self._settled = False
        logger.info(
            "Launching %s checkout #%d for %d minor units",
            self.provider_name,
            self._launches,
            options.amount_minor_units,
        )
        try:
            await self._open(options)
        except Exception:
            self._settled = True
            raise

    def handle_payment_success(
        self,
        payment_id: str,
        order_id: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> bool:
        """Entry point for the provider's success callback."""
        return self._deliver(
            DelegatedPaymentSuccess(
                payment_id=payment_id,
                order_id=order_id,
                signature=signature,
            )
        )

    def handle_payment_error(self, code: Union[int, str], description: str) -> bool:
        """Entry point for the provider's failure callback."""
        return self._deliver(DelegatedPaymentFailure(code=code, description=description))

    def _deliver(self, outcome: DelegatedOutcome) -> bool:
        if self._settled:
            logger.warning(
                "Dropping %s outcome from %s: no checkout is pending",
                type(outcome).__name__,
                self.provider_name,
            )
            return False

        self._settled = True
        registration = self._registration
        if registration is None or not registration.active:
            logger.warning(
                "Dropping %s outcome from %s: callbacks were cleared",
                type(outcome).__name__,
                self.provider_name,
            )
            return False

        outcome = self._check_outcome(outcome)
        if isinstance(outcome, DelegatedPaymentSuccess):
            registration.on_success(outcome)
        else:
            registration.on_failure(outcome)
        return True

    def _check_outcome(self, outcome: DelegatedOutcome) -> DelegatedOutcome:
        """Hook for provider-level integrity checks on reported outcomes."""
        return outcome

    def error_for(self, failure: DelegatedPaymentFailure) -> CheckoutError:
        """Translate a provider failure into the checkout error taxonomy."""
        return DelegatedCheckoutError(failure.description, provider_code=failure.code)

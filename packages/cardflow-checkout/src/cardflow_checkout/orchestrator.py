"""
Checkout orchestration state machine.

One orchestrator drives one checkout session on one screen:

    IDLE -> COLLECTING -> VALIDATING -> TOKENIZING -> AWAITING_CONFIRMATION
         -> SUCCEEDED | FAILED

The hosting UI feeds field updates and the submit trigger in, and reads state
transitions and the terminal event back out. Suspension happens only at the
remote calls (billing lookup, tokenization, intent confirmation, delegated
launch). Every attempt carries a number that is re-checked after each await,
so results arriving after ``cancel()`` or ``dispose()`` are discarded.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

from cardflow_checkout.billing import BillingDetailsProvider
from cardflow_checkout.delegated.base import CallbackRegistration, DelegatedCheckoutClient
from cardflow_checkout.exceptions import (
    CheckoutCancelled,
    CheckoutError,
    CheckoutStateError,
    ConfirmationError,
    ValidationError,
)
from cardflow_checkout.models import (
    BillingProfile,
    CardDetails,
    CardField,
    CheckoutFailed,
    CheckoutSession,
    CheckoutState,
    CheckoutSucceeded,
    ConfirmationRequest,
    DelegatedCheckoutOptions,
    DelegatedPaymentFailure,
    DelegatedPaymentSuccess,
    HostedFieldRef,
    PaymentMethodHandle,
    TerminalEvent,
    TokenizationMode,
)
from cardflow_checkout.tokenization.base import TokenizationClient

logger = logging.getLogger(__name__)

IntentConfirmer = Callable[[ConfirmationRequest], Awaitable[bool]]
StateListener = Callable[[CheckoutState, CheckoutState], None]
TerminalListener = Callable[[TerminalEvent], None]

_FIELD_ALIASES = {
    "number": CardField.NUMBER,
    "card_number": CardField.NUMBER,
    "expiration_month": CardField.EXPIRATION_MONTH,
    "exp_month": CardField.EXPIRATION_MONTH,
    "expirationMonth": CardField.EXPIRATION_MONTH,
    "expiration_year": CardField.EXPIRATION_YEAR,
    "exp_year": CardField.EXPIRATION_YEAR,
    "expirationYear": CardField.EXPIRATION_YEAR,
    "cvc": CardField.CVC,
}


def _resolve_field(name: Union[CardField, str]) -> CardField:
    if isinstance(name, CardField):
        return name
    card_field = _FIELD_ALIASES.get(name)
    if card_field is None:
        raise ValidationError(f"Unknown card field: {name}", field=str(name))
    return card_field


def _parse_field(card_field: CardField, value: Any) -> Any:
    """Turn a raw UI value into the stored field value.

    Month and year parse leniently: anything that is not a whole number is
    treated as not entered yet.
    """
    if value is None:
        return None
    if card_field in (CardField.EXPIRATION_MONTH, CardField.EXPIRATION_YEAR):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        text = str(value).strip()
        return int(text) if text.isascii() and text.isdigit() else None
    text = str(value).strip()
    if card_field == CardField.NUMBER:
        text = text.replace(" ", "").replace("-", "")
    return text or None


class CheckoutOrchestrator:
    """
    Drives one checkout session: collect -> validate -> tokenize -> confirm.

    Collaborators are injected:
    - tokenization_client: exchanges card data for a PaymentMethodHandle
    - confirm_intent: async callable confirming the externally created
      payment intent, returning True on success
    - billing_provider: supplies the payer's BillingProfile once per session
    - delegated_client: optional provider that runs the whole flow itself

    Guarantees:
    - at most one attempt in flight; repeated submits are no-ops
    - exactly one terminal event per attempt, none after SUCCEEDED
    - nothing observable changes after ``dispose()``

    Usage:
        orchestrator = CheckoutOrchestrator(client, confirm_intent, billing)
        orchestrator.on_terminal(render_outcome)
        orchestrator.update_field("number", "4242 4242 4242 4242")
        ...
        await orchestrator.submit()
    """

    def __init__(
        self,
        tokenization_client: TokenizationClient,
        confirm_intent: IntentConfirmer,
        billing_provider: BillingDetailsProvider,
        delegated_client: Optional[DelegatedCheckoutClient] = None,
        mode: Union[TokenizationMode, str] = TokenizationMode.RAW,
        save_card: bool = False,
    ):
        self.tokenization_client = tokenization_client
        self.delegated_client = delegated_client
        self.billing_provider = billing_provider
        self._confirm_intent = confirm_intent

        self.session = CheckoutSession(mode=TokenizationMode(mode), save_card=save_card)
        self._state_listeners: List[StateListener] = []
        self._terminal_listeners: List[TerminalListener] = []
        self._registration: Optional[CallbackRegistration] = None
        self._last_terminal_attempt = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def state(self) -> CheckoutState:
        return self.session.state

    @property
    def mode(self) -> TokenizationMode:
        return self.session.mode

    @property
    def card(self) -> CardDetails:
        return self.session.card

    @property
    def is_complete(self) -> bool:
        return self.session.card_source.is_complete

    @property
    def payment_method(self) -> Optional[PaymentMethodHandle]:
        return self.session.payment_method

    @property
    def error(self) -> Optional[CheckoutError]:
        return self.session.error

    @property
    def is_disposed(self) -> bool:
        return self.session.disposed

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_state_change(self, listener: StateListener) -> None:
        """Call ``listener(old_state, new_state)`` on every transition."""
        self._state_listeners.append(listener)

    def on_terminal(self, listener: TerminalListener) -> None:
        """Call ``listener(event)`` with each CheckoutSucceeded/CheckoutFailed."""
        self._terminal_listeners.append(listener)

    # ------------------------------------------------------------------
    # Collecting
    # ------------------------------------------------------------------

    def update_field(self, name: Union[CardField, str], value: Any) -> CardDetails:
        """
        Record one card field as typed by the payer.

        Args:
            name: Field name (``number``, ``expiration_month``,
                ``expiration_year``, ``cvc``)
            value: Raw UI value

        Returns:
            The new CardDetails snapshot
        """
        self._ensure_editable()
        if self.session.mode != TokenizationMode.RAW:
            raise CheckoutStateError("Card fields are held by the hosted component in hosted mode")

        card_field = _resolve_field(name)
        self.session.card = self.session.card.copy_with(
            **{card_field.value: _parse_field(card_field, value)}
        )
        self._enter_collecting()
        return self.session.card

    def update_hosted_field(self, reference: str, complete: bool) -> HostedFieldRef:
        """Record the hosted component's reference and completeness flag."""
        self._ensure_editable()
        if self.session.mode != TokenizationMode.HOSTED:
            raise CheckoutStateError("Hosted field updates require hosted mode")

        self.session.hosted_field = HostedFieldRef(id=reference, complete=bool(complete))
        self._enter_collecting()
        return self.session.hosted_field

    def set_save_card(self, save_card: bool) -> None:
        """Payer preference passed along to intent confirmation."""
        self._ensure_editable()
        self.session.save_card = bool(save_card)

    def resume(self) -> CheckoutState:
        """Return a non-fatally failed session to COLLECTING, keeping its data."""
        self._ensure_open()
        if self.state != CheckoutState.FAILED:
            raise CheckoutStateError(f"Nothing to resume while {self.state.value}")
        self._ensure_editable()
        self._enter_collecting()
        return self.state

    # ------------------------------------------------------------------
    # Tokenize-then-confirm
    # ------------------------------------------------------------------

    async def submit(self) -> CheckoutState:
        """
        Tokenize the collected card and confirm the payment intent.

        Returns the state reached. While an attempt is pending (or after
        success) this is a no-op returning the current state.

        Raises:
            ValidationError: card or billing data is not ready; nothing was
                sent to the processor
            AuthError: processor credentials are wrong (session also FAILED)
        """
        self._ensure_open()
        session = self.session
        if session.state.is_pending or session.state == CheckoutState.SUCCEEDED:
            logger.debug("Ignoring submit for %s while %s", session.session_id, session.state.value)
            return session.state

        source = session.card_source
        if session.state != CheckoutState.COLLECTING:
            raise ValidationError(
                "Enter or correct the card details before submitting",
                field="card",
            )
        if not source.is_complete:
            details = (
                {"fields": session.card.field_errors()}
                if session.mode == TokenizationMode.RAW
                else {}
            )
            raise ValidationError("Card details are incomplete", field="card", details=details)

        attempt = self._begin_attempt()
        self._transition(CheckoutState.VALIDATING)
        try:
            billing = await self._resolve_billing()
            if not self._is_current(attempt):
                return self._discard(attempt, "billing profile")

            self._transition(CheckoutState.TOKENIZING)
            logger.info(
                "Tokenizing %s card for session %s",
                session.mode.value,
                session.session_id,
            )
            handle = await self.tokenization_client.create_payment_method(source, billing)
            if not self._is_current(attempt):
                return self._discard(attempt, "payment method")

            session.payment_method = handle
            self._transition(CheckoutState.AWAITING_CONFIRMATION)
            confirmed = await self._confirm(
                ConfirmationRequest(
                    session_id=session.session_id,
                    payment_method=handle,
                    save_card=session.save_card,
                    return_url=self.tokenization_client.return_url,
                )
            )
            if not self._is_current(attempt):
                return self._discard(attempt, "confirmation")

            if confirmed:
                self._succeed(attempt, payment_method=handle)
            else:
                self._fail(attempt, ConfirmationError("Payment intent was not confirmed"))
        except asyncio.CancelledError:
            if self._is_current(attempt):
                self._fail(attempt, CheckoutCancelled("Checkout attempt was cancelled"))
            raise
        except ValidationError as e:
            if not self._is_current(attempt):
                return self._discard(attempt, "validation error")
            if session.state == CheckoutState.VALIDATING:
                session.in_flight = False
                self._transition(CheckoutState.COLLECTING)
                raise
            self._fail(attempt, e)
        except CheckoutError as e:
            if not self._is_current(attempt):
                return self._discard(attempt, type(e).__name__)
            self._fail(attempt, e)
            if e.fatal:
                raise
        except Exception as e:
            if self._is_current(attempt):
                self._fail(attempt, CheckoutError(f"Unexpected checkout failure: {e}"))
            raise
        return self.state

    async def _resolve_billing(self) -> BillingProfile:
        if self.session.billing is None:
            billing = await self.billing_provider.get_billing_profile()
            billing.validate()
            self.session.billing = billing
        return self.session.billing

    async def _confirm(self, request: ConfirmationRequest) -> bool:
        try:
            return bool(await self._confirm_intent(request))
        except CheckoutError:
            raise
        except Exception as e:
            raise ConfirmationError(f"Payment intent confirmation failed: {e}") from e

    # ------------------------------------------------------------------
    # Delegated checkout
    # ------------------------------------------------------------------

    async def launch_delegated(self, options: DelegatedCheckoutOptions) -> CheckoutState:
        """
        Run a provider-rendered checkout through the delegated client.

        The outcome arrives later through the client's callbacks; this returns
        once the provider's flow has been launched.

        Raises:
            ValidationError: options are invalid; the provider is not contacted
        """
        self._ensure_open()
        client = self.delegated_client
        if client is None:
            raise CheckoutStateError("No delegated checkout client is configured")
        if self.state.is_pending or self.state == CheckoutState.SUCCEEDED:
            logger.debug("Ignoring delegated launch while %s", self.state.value)
            return self.state
        if self.state == CheckoutState.FAILED:
            self._ensure_editable()

        options.validate()

        attempt = self._begin_attempt()
        self._release_registration()
        self._registration = client.register(
            on_success=lambda outcome: self._on_delegated_success(attempt, outcome),
            on_failure=lambda failure: self._on_delegated_failure(attempt, failure),
        )
        self._transition(CheckoutState.AWAITING_CONFIRMATION)
        try:
            await client.launch(options)
        except asyncio.CancelledError:
            if self._is_current(attempt):
                self._fail(attempt, CheckoutCancelled("Delegated checkout was cancelled"))
            raise
        except CheckoutError as e:
            if self._is_current(attempt):
                self._fail(attempt, e)
            if e.fatal:
                raise
        except Exception as e:
            if self._is_current(attempt):
                self._fail(attempt, CheckoutError(f"Unexpected checkout failure: {e}"))
            raise
        return self.state

    def _on_delegated_success(self, attempt: int, outcome: DelegatedPaymentSuccess) -> None:
        if not self._is_current(attempt):
            self._discard(attempt, "delegated success")
            return
        self.session.payment = outcome
        self._succeed(attempt, payment=outcome)

    def _on_delegated_failure(self, attempt: int, failure: DelegatedPaymentFailure) -> None:
        if not self._is_current(attempt):
            self._discard(attempt, "delegated failure")
            return
        self._fail(attempt, self.delegated_client.error_for(failure))

    # ------------------------------------------------------------------
    # Cancellation and disposal
    # ------------------------------------------------------------------

    def cancel(self) -> CheckoutState:
        """Abandon the pending attempt; its late result will be discarded."""
        self._ensure_open()
        if self.session.in_flight:
            self._fail(self.session.attempt, CheckoutCancelled("Checkout attempt was cancelled"))
        return self.state

    def dispose(self) -> None:
        """End the session. Nothing observable changes after this."""
        session = self.session
        if session.disposed:
            return
        session.disposed = True
        session.in_flight = False
        self._release_registration()
        session.clear_card_data()
        session.billing = None
        self._state_listeners.clear()
        self._terminal_listeners.clear()
        logger.info("Disposed checkout session %s in state %s", session.session_id, session.state.value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.session.disposed:
            raise CheckoutStateError("Checkout session has been disposed")

    def _ensure_editable(self) -> None:
        self._ensure_open()
        state = self.session.state
        if state in (CheckoutState.IDLE, CheckoutState.COLLECTING):
            return
        if state == CheckoutState.FAILED:
            if self.session.error is not None and self.session.error.fatal:
                raise CheckoutStateError(
                    "Checkout failed with a configuration error and cannot be retried"
                )
            return
        raise CheckoutStateError(f"Card details cannot change while {state.value}")

    def _enter_collecting(self) -> None:
        if self.session.state == CheckoutState.FAILED:
            self.session.error = None
        self._transition(CheckoutState.COLLECTING)

    def _begin_attempt(self) -> int:
        session = self.session
        session.attempt += 1
        session.in_flight = True
        session.error = None
        session.payment_method = None
        session.payment = None
        return session.attempt

    def _is_current(self, attempt: int) -> bool:
        session = self.session
        return not session.disposed and session.in_flight and session.attempt == attempt

    def _discard(self, attempt: int, what: str) -> CheckoutState:
        logger.warning(
            "Discarding late %s for attempt %d of session %s",
            what,
            attempt,
            self.session.session_id,
        )
        return self.session.state

    def _transition(self, new_state: CheckoutState) -> None:
        old_state = self.session.state
        if old_state == new_state:
            return
        self.session.state = new_state
        logger.debug(
            "Session %s: %s -> %s",
            self.session.session_id,
            old_state.value,
            new_state.value,
        )
        for listener in list(self._state_listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State listener failed")

    def _succeed(
        self,
        attempt: int,
        payment_method: Optional[PaymentMethodHandle] = None,
        payment: Optional[DelegatedPaymentSuccess] = None,
    ) -> None:
        session = self.session
        session.in_flight = False
        session.clear_card_data()
        self._release_registration()
        self._transition(CheckoutState.SUCCEEDED)
        logger.info(
            "Checkout %s succeeded (%s)",
            session.session_id,
            payment_method.id if payment_method else payment.payment_id,
        )
        self._emit(
            attempt,
            CheckoutSucceeded(
                session_id=session.session_id,
                payment_method=payment_method,
                payment=payment,
            ),
        )

    def _fail(self, attempt: int, error: CheckoutError) -> None:
        session = self.session
        session.in_flight = False
        session.error = error
        self._release_registration()
        self._transition(CheckoutState.FAILED)
        if error.fatal:
            logger.critical(
                "Checkout %s failed with a fatal %s: %s",
                session.session_id,
                error.error_code,
                error.message,
            )
        else:
            logger.info(
                "Checkout %s failed: %s %s",
                session.session_id,
                error.error_code,
                error.message,
            )
        self._emit(attempt, CheckoutFailed(session_id=session.session_id, error=error))

    def _emit(self, attempt: int, event: TerminalEvent) -> None:
        if attempt <= self._last_terminal_attempt:
            logger.warning("Suppressing duplicate terminal event for attempt %d", attempt)
            return
        self._last_terminal_attempt = attempt
        for listener in list(self._terminal_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Terminal event listener failed")

    def _release_registration(self) -> None:
        if self._registration is not None:
            self._registration.cancel()
            self._registration = None

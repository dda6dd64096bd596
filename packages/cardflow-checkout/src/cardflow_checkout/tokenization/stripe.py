"""Stripe tokenization client."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from cardflow_checkout.config import CheckoutSettings
from cardflow_checkout.exceptions import (
    AuthError,
    CheckoutError,
    InvalidRequestError,
    NetworkError,
    TokenizationError,
    ValidationError,
)
from cardflow_checkout.logging import mask_card_number, mask_inline, mask_sensitive_data
from cardflow_checkout.models import (
    BillingProfile,
    CardDataSource,
    CardDetails,
    PaymentMethodHandle,
    RawCard,
    normalize_expiration_year,
)
from cardflow_checkout.retry import RetryConfig, retry_async
from cardflow_checkout.tokenization.base import TokenizationClient

logger = logging.getLogger(__name__)


class StripeTokenizationClient(TokenizationClient):
    """Creates Stripe PaymentMethods with a publishable key.

    Raw-field mode sends ``card[number]`` and friends; hosted-field mode sends
    the token produced by Stripe's own card element as ``card[token]``.
    """

    DEFAULT_API_BASE = "https://api.stripe.com/v1"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        publishable_key: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        retry_config: Optional[RetryConfig] = None,
        return_url: Optional[str] = None,
    ):
        if not publishable_key:
            raise AuthError("Stripe publishable key is required")
        self.api_base = api_base.rstrip("/")
        self.retry_config = retry_config or RetryConfig(retry_on=(NetworkError,))
        self.return_url = return_url
        self._staged_card: Optional[CardDetails] = None
        self._client = httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {publishable_key}"},
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: CheckoutSettings) -> "StripeTokenizationClient":
        return cls(
            publishable_key=settings.processor_public_key,
            api_base=settings.processor_api_base,
            timeout=settings.request_timeout_seconds,
            retry_config=RetryConfig(
                max_retries=settings.max_network_retries,
                retry_on=(NetworkError,),
            ),
            return_url=settings.redirect_url,
        )

    @property
    def processor_name(self) -> str:
        return "stripe"

    @property
    def has_staged_card(self) -> bool:
        return self._staged_card is not None

    async def update_raw_card_details(self, card: CardDetails) -> None:
        """Stage raw card fields for the next payment method request.

        Stripe's REST API has no separate card-update call; the card is held
        here until the next request and cleared right after it.
        """
        errors = card.field_errors()
        if errors:
            raise ValidationError(
                "Card details are incomplete",
                field=next(iter(errors)),
                details={"fields": errors},
            )
        self._staged_card = card
        logger.debug("Staged raw card %s", mask_card_number(card.number))

    async def _request_payment_method(
        self,
        source: CardDataSource,
        billing: BillingProfile,
    ) -> PaymentMethodHandle:
        params: Dict[str, Any] = {"type": "card", **billing.to_processor_params()}
        try:
            if isinstance(source, RawCard):
                card = self._staged_card
                if card is None:
                    raise InvalidRequestError("No raw card details were staged")
                params.update(self._card_params(card))
            else:
                params["card[token]"] = source.id

            logger.debug("Payment method params: %s", mask_sensitive_data(params))
            data = await retry_async(
                lambda: self._post("/payment_methods", params),
                config=self.retry_config,
            )
        finally:
            self._staged_card = None

        handle = self._to_handle(data)
        logger.info(
            "Created Stripe payment method %s (%s mode)",
            handle.id,
            source.mode.value,
        )
        return handle

    @staticmethod
    def _card_params(card: CardDetails) -> Dict[str, Any]:
        return {
            "card[number]": card.number,
            "card[exp_month]": card.expiration_month,
            "card[exp_year]": normalize_expiration_year(card.expiration_year),
            "card[cvc]": card.cvc,
        }

    async def _post(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(path, data=params)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timed out contacting Stripe: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Could not reach Stripe: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)
        try:
            return response.json()
        except ValueError as e:
            raise CheckoutError(
                f"Stripe returned a non-JSON response (HTTP {response.status_code})",
                details={"status": response.status_code},
            ) from e

    @staticmethod
    def _error_from_response(response: httpx.Response) -> CheckoutError:
        """Map a Stripe error response onto the checkout error taxonomy."""
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        if not isinstance(error, dict):
            error = {}

        message = mask_inline(error.get("message") or f"Stripe returned HTTP {status}")
        details = {
            key: value
            for key, value in {
                "status": status,
                "code": error.get("code"),
                "param": error.get("param"),
                "request_id": response.headers.get("request-id"),
            }.items()
            if value is not None
        }
        logger.info("Stripe rejected request: HTTP %d %s", status, details.get("code", ""))

        if status in (401, 403):
            return AuthError(message, details=details)
        if status == 429 or status >= 500:
            return NetworkError(message, details=details)
        if status == 402 or error.get("type") == "card_error":
            return TokenizationError(
                message,
                decline_code=error.get("decline_code") or error.get("code"),
                details=details,
            )
        return InvalidRequestError(message, details=details)

    @staticmethod
    def _to_handle(data: Dict[str, Any]) -> PaymentMethodHandle:
        payment_method_id = data.get("id")
        if not payment_method_id:
            raise CheckoutError("Stripe response did not include a payment method id")
        card = data.get("card") or {}
        return PaymentMethodHandle(
            id=payment_method_id,
            brand=card.get("brand"),
            last4=card.get("last4"),
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()

"""Exception hierarchy for the checkout flow.

All checkout exceptions inherit from CheckoutError, enabling:
- One except clause for the whole flow
- Retry decisions driven by the ``retryable`` flag
- Fatal configuration errors distinguished by the ``fatal`` flag
- Structured error payloads for the hosting UI via ``to_dict()``

Usage:
    from cardflow_checkout.exceptions import CheckoutError, NetworkError

    try:
        handle = await client.create_payment_method(source, billing)
    except NetworkError:
        ...  # safe to send the same request again
    except CheckoutError as e:
        show(e.message)
"""
from __future__ import annotations

from typing import Any, Optional


class CheckoutError(Exception):
    """Base exception for checkout errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
        details: Optional additional context
    """

    error_code: str = "CHECKOUT_ERROR"
    retryable: bool = False
    fatal: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a payload the hosting UI can render."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(CheckoutError):
    """Local input is incomplete or malformed. Never reaches the processor."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class CheckoutStateError(CheckoutError):
    """Command is not allowed in the session's current state."""

    error_code = "INVALID_STATE"


class NetworkError(CheckoutError):
    """Transient transport or processor availability failure."""

    error_code = "NETWORK_ERROR"
    retryable = True


class InvalidRequestError(CheckoutError):
    """Processor rejected the request as malformed."""

    error_code = "INVALID_REQUEST"


class AuthError(CheckoutError):
    """Processor credentials are missing or wrong. Operator action required."""

    error_code = "AUTHENTICATION_ERROR"
    fatal = True


class TokenizationError(CheckoutError):
    """Processor declined the card during tokenization."""

    error_code = "CARD_DECLINED"
    retryable = True

    def __init__(
        self,
        message: str,
        decline_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, details=details)
        self.decline_code = decline_code


class ConfirmationError(CheckoutError):
    """Payment intent confirmation was declined or could not complete."""

    error_code = "CONFIRMATION_FAILED"
    retryable = True


class CheckoutCancelled(CheckoutError):
    """The pending attempt was abandoned by the payer or the host."""

    error_code = "CANCELLED"
    retryable = True


class DelegatedCheckoutError(CheckoutError):
    """Failure reported by a provider that runs the whole checkout flow."""

    error_code = "DELEGATED_CHECKOUT_FAILED"
    retryable = True

    def __init__(
        self,
        message: str,
        provider_code: Optional[int | str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if provider_code is not None:
            details["provider_code"] = provider_code
        super().__init__(message, details=details)
        self.provider_code = provider_code


__all__ = [
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
]

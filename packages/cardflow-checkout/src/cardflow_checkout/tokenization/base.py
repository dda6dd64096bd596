"""Base tokenization client interface."""
from __future__ import annotations

import logging
import warnings
from abc import ABC, abstractmethod
from typing import Optional

from cardflow_checkout.exceptions import ValidationError
from cardflow_checkout.models import (
    BillingProfile,
    CardDataSource,
    CardDetails,
    PaymentMethodHandle,
    RawCard,
)

logger = logging.getLogger(__name__)

PCI_GUIDE_URL = "https://stripe.com/docs/security/guide#validating-pci-compliance"


class RawCardDataWarning(UserWarning):
    """Card data is passing through application memory (raw-field mode)."""


def warn_raw_card_mode(processor_name: str) -> None:
    """Flag a raw-field tokenization. Issued on every raw-mode request."""
    message = (
        f"Raw card details are being sent to {processor_name} from application "
        f"memory instead of the processor's hosted fields. This can break PCI "
        f"compliance: {PCI_GUIDE_URL}"
    )
    warnings.warn(message, RawCardDataWarning, stacklevel=3)
    logger.warning(message)


class TokenizationClient(ABC):
    """Abstract interface for processors that exchange card data for a handle.

    Subclasses implement the two remote primitives; ``create_payment_method``
    sequences them according to where the card data lives.
    """

    # Where the processor sends the payer back after a redirect-based
    # confirmation step; handed to intent confirmation unchanged.
    return_url: Optional[str] = None

    @property
    @abstractmethod
    def processor_name(self) -> str:
        """Return the processor name."""
        pass

    @abstractmethod
    async def update_raw_card_details(self, card: CardDetails) -> None:
        """
        Push raw card fields to the processor's SDK/session.

        Args:
            card: Fully populated card details
        """
        pass

    @abstractmethod
    async def _request_payment_method(
        self,
        source: CardDataSource,
        billing: BillingProfile,
    ) -> PaymentMethodHandle:
        """Ask the processor to create the payment method."""
        pass

    async def create_payment_method(
        self,
        source: CardDataSource,
        billing: BillingProfile,
    ) -> PaymentMethodHandle:
        """
        Create a payment method from raw card details or a hosted field.

        Args:
            source: RawCard or HostedFieldRef
            billing: Billing profile attached to the payment method

        Returns:
            PaymentMethodHandle issued by the processor

        Raises:
            ValidationError: card data incomplete (no remote call is made)
            NetworkError, InvalidRequestError, AuthError, TokenizationError
        """
        if not source.is_complete:
            raise ValidationError("Card details are incomplete", field="card")

        if isinstance(source, RawCard):
            warn_raw_card_mode(self.processor_name)
            await self.update_raw_card_details(source.card)

        return await self._request_payment_method(source, billing)

    async def close(self) -> None:
        """Release network resources."""
        pass

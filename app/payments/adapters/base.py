"""
Provider adapter contract shared by every payment provider.

A ProviderAdapter turns provider-specific APIs into four operations:

    create_intent(amount, currency, context) -> IntentResult
    parse_callback(raw_payload, signature, query) -> CallbackResult
    refund(provider_payment_id, amount, prior_transaction_id) -> RefundResult
    get_status(provider_payment_id) -> StatusResult

Adapters hold no per-request state and can be shared between threads and
Celery workers. Every SDK or HTTP error is translated at the adapter
boundary into payments.exceptions (ProviderUnavailableError,
ProviderRejectedError, InvalidAmountError, InvalidSignatureError).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from payments.exceptions import InvalidAmountError

if TYPE_CHECKING:
    import uuid


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class IntentContext:
    """
    Who and what a payment intent is for.

    Attributes:
        payment_id: Local Payment id (sent as provider metadata)
        session_id: Session being paid for
        payment_method: Paymob method (card / wallet); ignored by Stripe
        customer_email: Mentee email for provider billing data
        customer_name: Mentee display name for provider billing data
    """

    payment_id: uuid.UUID
    session_id: uuid.UUID
    payment_method: int | None = None
    customer_email: str | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class IntentResult:
    """
    Result of creating a provider payment intent.

    Attributes:
        provider_payment_id: Stripe PaymentIntent id or Paymob order id
        client_secret: Stripe client secret or Paymob payment key
        redirect_url: Hosted checkout URL, if the provider uses one
    """

    provider_payment_id: str
    client_secret: str | None = None
    redirect_url: str | None = None


@dataclass(frozen=True)
class CallbackResult:
    """
    A verified provider notification mapped to provider-neutral terms.

    Attributes:
        success: Whether the provider reports a successful charge
        provider_payment_id: Payment the event refers to
        transaction_id: Provider transaction id (charge id)
        status: PaymentStatus the event implies, or None when the event
            type does not move a payment
        amount: Amount reported by the provider (major units)
        currency: Currency reported by the provider
        event_id: Provider event id used for idempotency
        event_type: Provider event type
        failure_reason: Provider failure message, if any
        raw_data: Verified payload as a dict
    """

    success: bool
    provider_payment_id: str
    transaction_id: str | None
    status: str | None
    amount: Decimal | None
    currency: str | None
    event_id: str
    event_type: str
    failure_reason: str | None = None
    raw_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RefundResult:
    """
    Result of a provider refund.

    Attributes:
        success: Whether the provider accepted the refund
        refund_transaction_id: Provider refund / transaction id
        refunded_amount: Amount refunded in the charged currency
    """

    success: bool
    refund_transaction_id: str | None
    refunded_amount: Decimal


@dataclass(frozen=True)
class StatusResult:
    """
    Provider-side status of a payment, used for polling.

    Attributes:
        status: PaymentStatus the provider state maps to
        transaction_id: Provider transaction id, once paid
        failure_reason: Provider failure message, if any
    """

    status: str
    transaction_id: str | None = None
    failure_reason: str | None = None


# =============================================================================
# Helpers
# =============================================================================


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (e.g. 12.34) to minor units (1234)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: int | str | None) -> Decimal | None:
    """Convert minor units (1234) back to a 2 dp Decimal (12.34)."""
    if value is None:
        return None
    return (Decimal(str(value)) / 100).quantize(Decimal("0.01"))


# =============================================================================
# Adapter Contract
# =============================================================================


class ProviderAdapter(ABC):
    """
    Capability set every payment provider implements.

    Attributes:
        provider: PaymentProvider value handled by the adapter
        charge_currency: Currency the provider charges in
        minimum_amount: Smallest chargeable amount in charge_currency
    """

    provider: str
    charge_currency: str
    minimum_amount: Decimal

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @abstractmethod
    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        context: IntentContext,
    ) -> IntentResult:
        """
        Create a provider payment intent for amount (in charge_currency).

        Raises:
            InvalidAmountError: Below the provider minimum
            ProviderUnavailableError: Transport, auth or outage errors
            ProviderRejectedError: Provider refused the request
        """

    @abstractmethod
    def parse_callback(
        self,
        raw_payload: bytes,
        signature: str | None,
        query: dict[str, Any] | None = None,
    ) -> CallbackResult:
        """
        Verify and parse a provider webhook.

        Authenticity is verified before anything in the payload is used.

        Raises:
            InvalidSignatureError: Missing or wrong signature
            PaymentValidationError: Payload verified but malformed
        """

    @abstractmethod
    def refund(
        self,
        provider_payment_id: str,
        amount: Decimal,
        prior_transaction_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """
        Refund amount (in charge_currency) of a paid payment.

        Raises:
            ProviderUnavailableError: Transport, auth or outage errors
            ProviderRejectedError: Provider refused the refund
        """

    @abstractmethod
    def get_status(self, provider_payment_id: str) -> StatusResult:
        """
        Read the provider's current view of a payment.

        Raises:
            ProviderUnavailableError: Transport, auth or outage errors
            ProviderRejectedError: Unknown payment
        """

    def check_minimum(self, amount: Decimal) -> None:
        """Raise InvalidAmountError when amount is below the provider minimum."""
        if amount < self.minimum_amount:
            raise InvalidAmountError(
                f"Amount {amount} {self.charge_currency} is below the "
                f"{self.provider} minimum of {self.minimum_amount}",
                details={
                    "provider": self.provider,
                    "amount": str(amount),
                    "minimum": str(self.minimum_amount),
                    "currency": self.charge_currency,
                },
            )

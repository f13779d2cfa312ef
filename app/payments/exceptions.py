"""
Payment-specific exceptions for payment, ledger, payout and dispute operations.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment / payout / dispute lookup failures
    ├── PaymentValidationError - Bad request shape or amount
    │   ├── InvalidAmountError - Amount outside provider or policy bounds
    │   └── ActiveDisputeError - A pending dispute already exists
    ├── InvalidSignatureError - Webhook authenticity check failed
    └── ProviderError - Base for provider call failures
        ├── ProviderUnavailableError - Transport/auth/outage (transient, retry)
        └── ProviderRejectedError - Provider refused the request (permanent)

    InsufficientBalanceError - Payout larger than available (BusinessRuleError)
    InvariantViolationError - Money invariant would break (ConflictError)
    LockAcquisitionError - Distributed lock contention (ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (ConflictError)

Usage:
    from payments.exceptions import InsufficientBalanceError

    if amount > balance.available_balance:
        raise InsufficientBalanceError(
            "Insufficient balance for payout",
            details={"available": str(balance.available_balance), "requested": str(amount)},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    BusinessRuleError,
    ConflictError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class, which itself
    inherits from BaseApplicationError for consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment entity cannot be found.

    Use for Payment, Payout, SessionDispute, MentorBalance and Session
    lookups made by the payment services.
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"
    http_status: int = 404


class PaymentValidationError(PaymentError):
    """
    Raised when a request fails validation.

    Not retried; surfaced to the caller as a 400.

    Example:
        if provider == PaymentProvider.PAYMOB and method is None:
            raise PaymentValidationError(
                "Paymob payments require a payment method",
                details={"provider": provider},
            )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"
    http_status: int = 400


class InvalidAmountError(PaymentValidationError):
    """Amount below the provider minimum or outside payout bounds."""

    default_error_code: str = "INVALID_AMOUNT"


class ActiveDisputeError(PaymentValidationError):
    """A pending dispute already exists for the session."""

    default_error_code: str = "ACTIVE_DISPUTE_EXISTS"
    http_status: int = 409


class InvalidSignatureError(PaymentError):
    """
    Raised when a webhook fails its authenticity check.

    Security rejection: logged at WARNING, never retried, no state change.
    A missing signature is treated the same as a wrong one.
    """

    default_error_code: str = "INVALID_SIGNATURE"
    http_status: int = 400


# =============================================================================
# Provider Exceptions
# =============================================================================


class ProviderError(PaymentError):
    """
    Base exception for payment provider failures.

    Adapters translate SDK and HTTP errors into subclasses of this class
    at the adapter boundary, so services never see provider-specific
    exception types.

    Attributes:
        provider: Provider name (stripe / paymob)
        provider_code: Provider's own error code, if any
    """

    default_error_code: str = "PROVIDER_ERROR"
    http_status: int = 502

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider: str | None = None,
        provider_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        if provider_code:
            details["provider_code"] = provider_code
        super().__init__(message, error_code=error_code, details=details)
        self.provider = provider
        self.provider_code = provider_code


class ProviderUnavailableError(ProviderError):
    """
    Provider could not be reached or refused our credentials.

    Covers network errors, timeouts, rate limiting, 5xx responses and
    authentication failures. Transient: the caller (or the provider's
    own webhook redelivery) retries with backoff.
    """

    default_error_code: str = "PROVIDER_UNAVAILABLE"
    http_status: int = 503
    is_retryable: bool = True


class ProviderRejectedError(ProviderError):
    """
    Provider understood the request and refused it.

    Covers declined cards, invalid parameters and refunds the provider
    will not perform. Permanent for the same request.
    """

    default_error_code: str = "PROVIDER_REJECTED"
    http_status: int = 502
    is_retryable: bool = False


# =============================================================================
# Ledger Exceptions
# =============================================================================


class InsufficientBalanceError(BusinessRuleError):
    """
    Raised when a payout exceeds the mentor's available balance.

    Business rule violation: surfaced to the mentor, no state change.
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"


class InvariantViolationError(ConflictError):
    """
    Raised when an operation would break a money invariant.

    Example: a refund larger than what is left of the payment. Fatal for
    the operation; the attempted value is always logged at CRITICAL.
    """

    default_error_code: str = "INVARIANT_VIOLATION"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Another process holds the lock and it could not be acquired within
    the timeout period.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed to provide our standard error
    format with additional context.

    Example:
        try:
            payout.complete()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot complete payout from '{payout.status}' state",
                details={"current_state": payout.status, "transition": "complete"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "InvalidAmountError",
    "ActiveDisputeError",
    "InvalidSignatureError",
    # Providers
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderRejectedError",
    # Ledger
    "InsufficientBalanceError",
    "InvariantViolationError",
    # Concurrency control
    "LockAcquisitionError",
    "InvalidStateTransitionError",
]

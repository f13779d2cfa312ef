"""
Stripe API adapter for payment operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls go through this adapter to
ensure consistent error handling, timeouts, idempotency, and
observability.

Features:
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency keys for safe retries
- Webhook verification over the raw request body

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_MAX_RETRIES: Network retries performed by the SDK (default: 2)
- STRIPE_CURRENCY: Currency Stripe charges in (default: USD)

Usage:
    from payments.adapters import get_adapter
    from payments.state_machines import PaymentProvider

    adapter = get_adapter(PaymentProvider.STRIPE)
    intent = adapter.create_intent(Decimal("10.00"), "USD", context)
"""

from __future__ import annotations

import hashlib
import json
import time
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.adapters.base import (
    CallbackResult,
    IntentResult,
    ProviderAdapter,
    RefundResult,
    StatusResult,
    from_minor_units,
    to_minor_units,
)
from payments.exceptions import (
    InvalidSignatureError,
    PaymentValidationError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from payments.state_machines import PaymentProvider, PaymentStatus

if TYPE_CHECKING:
    from payments.adapters.base import IntentContext


# =============================================================================
# Status Mapping
# =============================================================================

# PaymentIntent.status -> PaymentStatus
INTENT_STATUS_MAP: dict[str, str] = {
    "succeeded": PaymentStatus.SUCCEEDED,
    "processing": PaymentStatus.PENDING_CONFIRMATION,
    "requires_confirmation": PaymentStatus.PENDING_CONFIRMATION,
    "requires_action": PaymentStatus.PENDING_CONFIRMATION,
    "requires_capture": PaymentStatus.PENDING_CONFIRMATION,
    "requires_payment_method": PaymentStatus.FAILED,
    "canceled": PaymentStatus.FAILED,
}

# Webhook event type -> PaymentStatus. A declined attempt leaves the intent
# open for another attempt on the same client secret, so only cancellation
# is a final failure.
EVENT_STATUS_MAP: dict[str, str] = {
    "payment_intent.succeeded": PaymentStatus.SUCCEEDED,
    "payment_intent.payment_failed": PaymentStatus.PENDING_CONFIRMATION,
    "payment_intent.canceled": PaymentStatus.FAILED,
    "payment_intent.processing": PaymentStatus.PENDING_CONFIRMATION,
}


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The hash component provides uniqueness across environments sharing a
    Stripe account, while the structured format aids debugging.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_intent",
            entity_id=payment.id,
            attempt=1,
        )
        # Result: "create_intent:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int | str = 1,
    ) -> str:
        """
        Generate a unique idempotency key.

        Args:
            operation: The Stripe operation (create_intent, refund, etc.)
            entity_id: The domain entity ID (payment id, intent id)
            attempt: Attempt discriminator (retry number or row version)

        Returns:
            Formatted idempotency key string
        """
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter(ProviderAdapter):
    """
    Adapter for Stripe card payments (charged in USD).

    Thread-safe and stateless: the SDK is configured from settings on
    every call.

    Usage:
        adapter = StripeAdapter()
        result = adapter.create_intent(Decimal("10.00"), "USD", context)
        callback = adapter.parse_callback(request.body, request.headers["Stripe-Signature"])
    """

    provider = PaymentProvider.STRIPE
    minimum_amount = Decimal("0.50")

    @property
    def charge_currency(self) -> str:
        return getattr(settings, "STRIPE_CURRENCY", "USD")

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key and retry policy."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 2)

    # =========================================================================
    # Operations
    # =========================================================================

    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        context: IntentContext,
    ) -> IntentResult:
        """
        Create a Stripe PaymentIntent.

        The idempotency key is derived from the local payment id, so a
        retried request never creates a second intent.
        """
        self.check_minimum(amount)
        self._configure_stripe()
        logger = self.get_logger()

        amount_cents = to_minor_units(amount)
        idempotency_key = IdempotencyKeyGenerator.generate(
            "create_intent", context.payment_id
        )
        log_context = {
            "operation": "create_payment_intent",
            "payment_id": str(context.payment_id),
            "amount_cents": amount_cents,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency.lower(),
                payment_method_types=["card"],
                receipt_email=context.customer_email,
                metadata={
                    "session_id": str(context.session_id),
                    "payment_id": str(context.payment_id),
                },
                idempotency_key=idempotency_key,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "payment_intent_id": intent.id,
                "status": intent.status,
                "duration_ms": duration_ms,
            },
        )

        return IntentResult(
            provider_payment_id=intent.id,
            client_secret=intent.client_secret,
        )

    def parse_callback(
        self,
        raw_payload: bytes,
        signature: str | None,
        query: dict[str, Any] | None = None,
    ) -> CallbackResult:
        """
        Verify a Stripe webhook and map it to a CallbackResult.

        The Stripe-Signature header is checked against the raw body with
        stripe.Webhook.construct_event before the payload is read.
        """
        logger = self.get_logger()

        if not signature:
            logger.warning("Stripe webhook received without signature")
            raise InvalidSignatureError(
                "Missing Stripe-Signature header",
                details={"provider": self.provider},
            )

        try:
            stripe.Webhook.construct_event(
                raw_payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(
                "Stripe webhook signature verification failed",
                extra={"error": str(e)},
            )
            raise InvalidSignatureError(
                "Invalid webhook signature",
                details={"provider": self.provider},
            )
        except ValueError as e:
            raise PaymentValidationError(
                "Malformed Stripe webhook payload",
                details={"provider": self.provider, "error": str(e)},
            )

        event = json.loads(raw_payload)
        event_type = event.get("type", "")
        obj = event.get("data", {}).get("object", {})

        if obj.get("object") != "payment_intent" or not obj.get("id"):
            return CallbackResult(
                success=False,
                provider_payment_id=str(obj.get("payment_intent") or obj.get("id") or ""),
                transaction_id=None,
                status=None,
                amount=None,
                currency=None,
                event_id=event["id"],
                event_type=event_type,
                raw_data=event,
            )

        status = EVENT_STATUS_MAP.get(event_type)
        last_error = obj.get("last_payment_error") or {}
        failure_reason = last_error.get("message") or obj.get("cancellation_reason")
        if event_type == "payment_intent.payment_failed" and not failure_reason:
            failure_reason = "Payment attempt was declined"

        return CallbackResult(
            success=status == PaymentStatus.SUCCEEDED,
            provider_payment_id=obj["id"],
            transaction_id=obj.get("latest_charge") or obj["id"],
            status=status,
            amount=from_minor_units(obj.get("amount_received") or obj.get("amount")),
            currency=(obj.get("currency") or "").upper() or None,
            event_id=event["id"],
            event_type=event_type,
            failure_reason=failure_reason,
            raw_data=event,
        )

    def refund(
        self,
        provider_payment_id: str,
        amount: Decimal,
        prior_transaction_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """Refund part or all of a PaymentIntent."""
        self._configure_stripe()
        logger = self.get_logger()

        amount_cents = to_minor_units(amount)
        idempotency_key = idempotency_key or IdempotencyKeyGenerator.generate(
            "refund", provider_payment_id, amount_cents
        )
        log_context = {
            "operation": "create_refund",
            "payment_intent_id": provider_payment_id,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            refund = stripe.Refund.create(
                payment_intent=provider_payment_id,
                amount=amount_cents,
                idempotency_key=idempotency_key,
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "refund_id": refund.id,
                "status": refund.status,
                "duration_ms": duration_ms,
            },
        )

        if refund.status in ("failed", "canceled"):
            raise ProviderRejectedError(
                f"Stripe refund {refund.id} ended {refund.status}",
                provider=self.provider,
                provider_code=refund.status,
            )

        return RefundResult(
            success=True,
            refund_transaction_id=refund.id,
            refunded_amount=from_minor_units(refund.amount),
        )

    def get_status(self, provider_payment_id: str) -> StatusResult:
        """Retrieve a PaymentIntent and map its status."""
        self._configure_stripe()
        logger = self.get_logger()

        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": provider_payment_id,
        }

        start_time = time.time()
        logger.debug("Starting Stripe operation", extra=log_context)

        try:
            intent = stripe.PaymentIntent.retrieve(provider_payment_id)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

        logger.debug(
            "Stripe operation completed",
            extra={
                **log_context,
                "status": intent.status,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )

        status = INTENT_STATUS_MAP.get(intent.status, PaymentStatus.PENDING_CONFIRMATION)
        last_error = getattr(intent, "last_payment_error", None)
        return StatusResult(
            status=status,
            transaction_id=getattr(intent, "latest_charge", None) or intent.id,
            failure_reason=getattr(last_error, "message", None) if last_error else None,
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            ProviderRejectedError: Card declined or invalid request
            ProviderUnavailableError: Network, rate limit, server or auth errors
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}
        provider = PaymentProvider.STRIPE

        if isinstance(error, (ProviderRejectedError, ProviderUnavailableError)):
            raise error

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise ProviderRejectedError(
                str(error.user_message or error),
                error_code="CARD_DECLINED",
                provider=provider,
                provider_code=decline_code or error.code,
            )

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise ProviderRejectedError(
                str(error.user_message or error),
                provider=provider,
                provider_code=error.code,
            )

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise ProviderUnavailableError(
                "Stripe rate limit exceeded. Please retry.",
                provider=provider,
                provider_code="rate_limit",
            )

        if isinstance(error, stripe.APIConnectionError):
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise ProviderUnavailableError(
                "Could not connect to Stripe. Please retry.",
                provider=provider,
                provider_code="api_connection_error",
            )

        if isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise ProviderUnavailableError(
                "Stripe authentication failed",
                provider=provider,
                provider_code="authentication_error",
            )

        if isinstance(error, stripe.StripeError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise ProviderUnavailableError(
                "Stripe service error. Please retry.",
                provider=provider,
                provider_code="api_error",
            )

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise ProviderUnavailableError(
            f"Unexpected Stripe error: {error}",
            provider=provider,
            provider_code="unknown_error",
        )

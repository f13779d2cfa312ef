"""
Payment orchestrator service for coordinating payment operations.

This module provides the PaymentOrchestrator class which is the entry
point for every Payment mutation. It coordinates between the provider
adapters, the session collaborator, the mentor ledger and notifications.

The orchestrator:
- Creates payment intents (idempotent per session)
- Applies provider status changes forward-only (webhooks, confirm, sweeps)
- Finalizes sessions exactly once when a payment succeeds
- Executes refunds with the provider before recording them locally

Lock order for every mutation is session -> payment -> balance.

Usage:
    from payments.services import payment_orchestrator

    result = payment_orchestrator.create_payment_intent(
        session_id=session.id,
        provider=PaymentProvider.STRIPE,
        mentee=request.user,
    )
    if result.success:
        client_secret = result.data.client_secret
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from django_fsm import TransitionNotAllowed

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult

from mentorship.models import Session, SessionStatus
from payments.adapters import IdempotencyKeyGenerator, IntentContext, get_adapter
from payments.exceptions import (
    InvalidAmountError,
    InvalidStateTransitionError,
    InvariantViolationError,
    PaymentNotFoundError,
    PaymentValidationError,
    ProviderError,
)
from payments.locks import DistributedLock
from payments.models import Payment
from payments.services.currency import convert, quantize_money
from payments.services.mentor_ledger import mentor_ledger
from payments.state_machines import (
    PaymentProvider,
    PaymentStatus,
    PaymobPaymentMethod,
    WebhookOutcome,
)

if TYPE_CHECKING:
    import uuid

    from authentication.models import User
    from mentorship.services import SessionService
    from notifications.services import NotificationService
    from payments.adapters import CallbackResult, ProviderAdapter
    from payments.services.mentor_ledger import MentorLedger


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Distributed lock TTL for refund execution (seconds)
REFUND_LOCK_TTL = 120

# Lock acquisition timeout (seconds)
REFUND_LOCK_TIMEOUT = 10.0

OPEN_PAYMENT_STATUSES = frozenset(
    [PaymentStatus.CREATED, PaymentStatus.PENDING_CONFIRMATION]
)

REFUNDABLE_STATUSES = frozenset(
    [PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED]
)

# Statuses a provider notification or poll may move a payment to
PROVIDER_STATUSES = frozenset(
    [
        PaymentStatus.PENDING_CONFIRMATION,
        PaymentStatus.SUCCEEDED,
        PaymentStatus.FAILED,
    ]
)


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class PaymentIntentResult:
    """
    Result of create_payment_intent.

    Attributes:
        payment: The session's active Payment
        client_secret: Stripe client secret or Paymob payment key
        redirect_url: Hosted checkout URL (Paymob)
        created: False when an existing active payment was returned
    """

    payment: Payment
    client_secret: str | None
    redirect_url: str | None
    created: bool


@dataclass(frozen=True)
class StatusApplication:
    """Outcome of applying a provider status to a payment."""

    outcome: str
    payment: Payment | None

    @property
    def applied(self) -> bool:
        return self.outcome == WebhookOutcome.APPLIED


# =============================================================================
# Payment Orchestrator
# =============================================================================


class PaymentOrchestrator(BaseService):
    """
    Central coordinator for Payment state.

    State Flow:
        CREATED -> PENDING_CONFIRMATION -> SUCCEEDED
        SUCCEEDED -> PARTIALLY_REFUNDED -> FULLY_REFUNDED
        CREATED/PENDING_CONFIRMATION -> FAILED

    Collaborators are passed to the constructor; module-level defaults are
    used for the ones left out.
    """

    def __init__(
        self,
        ledger: MentorLedger | None = None,
        adapter_factory: Callable[[str], ProviderAdapter] | None = None,
        session_service: SessionService | None = None,
        notifier: NotificationService | None = None,
    ):
        self.ledger = ledger or mentor_ledger
        self.adapter_factory = adapter_factory or get_adapter
        self._session_service = session_service
        self._notifier = notifier

    @property
    def session_service(self) -> SessionService:
        if self._session_service is None:
            from mentorship.services import session_service

            self._session_service = session_service
        return self._session_service

    @property
    def notifier(self) -> NotificationService:
        if self._notifier is None:
            from notifications.services import notification_service

            self._notifier = notification_service
        return self._notifier

    # =========================================================================
    # Intent creation
    # =========================================================================

    def create_payment_intent(
        self,
        session_id: uuid.UUID,
        provider: str,
        payment_method: int | None = None,
        mentee: User | None = None,
    ) -> ServiceResult[PaymentIntentResult]:
        """
        Create (or return) the payment intent for a session.

        A session has at most one non-failed Payment. If it exists it is
        returned unchanged; a failed one is kept and a new Payment is made.
        The provider is only called for a Payment still in CREATED, and
        outside the database transaction.

        Args:
            session_id: Session to pay for
            provider: PaymentProvider value
            payment_method: PaymobPaymentMethod value (Paymob only)
            mentee: Requesting user; must own the session when given

        Returns:
            ServiceResult with PaymentIntentResult
        """
        self.get_logger().info(
            "Creating payment intent",
            extra={
                "session_id": str(session_id),
                "provider": provider,
                "payment_method": payment_method,
            },
        )

        try:
            adapter = self.adapter_factory(provider)
            if provider == PaymentProvider.PAYMOB:
                if payment_method not in PaymobPaymentMethod.values:
                    raise PaymentValidationError(
                        "Paymob payments require a payment method (card or wallet)",
                        error_code="PAYMENT_METHOD_REQUIRED",
                        details={"payment_method": payment_method},
                    )
            else:
                payment_method = None

            payment, created = self._get_or_create_payment(
                session_id, provider, payment_method, mentee, adapter
            )

            if payment.status != PaymentStatus.CREATED:
                return ServiceResult.success(
                    PaymentIntentResult(
                        payment=payment,
                        client_secret=payment.client_secret,
                        redirect_url=payment.checkout_url or None,
                        created=False,
                    )
                )

            intent = adapter.create_intent(
                payment.charged_amount,
                payment.charged_currency,
                IntentContext(
                    payment_id=payment.id,
                    session_id=payment.session_id,
                    payment_method=payment.payment_method,
                    customer_email=payment.mentee.email,
                    customer_name=payment.mentee.get_full_name(),
                ),
            )

            with self.atomic():
                payment = Payment.objects.select_for_update().get(id=payment.id)
                if payment.status == PaymentStatus.CREATED:
                    payment.mark_pending(
                        intent.provider_payment_id,
                        client_secret=intent.client_secret,
                        checkout_url=intent.redirect_url,
                    )
                    payment.save()

        except BaseApplicationError as e:
            self.get_logger().warning(
                "Payment intent creation failed",
                extra={
                    "session_id": str(session_id),
                    "provider": provider,
                    "error_code": e.error_code,
                },
            )
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            "Payment intent created",
            extra={
                "payment_id": str(payment.id),
                "provider_payment_id": payment.provider_payment_id,
                "amount": str(payment.amount),
                "charged_amount": str(payment.charged_amount),
                "charged_currency": payment.charged_currency,
            },
        )
        return ServiceResult.success(
            PaymentIntentResult(
                payment=payment,
                client_secret=payment.client_secret,
                redirect_url=payment.checkout_url or None,
                created=created,
            )
        )

    def _get_or_create_payment(
        self,
        session_id: uuid.UUID,
        provider: str,
        payment_method: int | None,
        mentee: User | None,
        adapter: ProviderAdapter,
    ) -> tuple[Payment, bool]:
        with self.atomic():
            try:
                session = (
                    Session.objects.select_for_update()
                    .select_related("mentee")
                    .get(id=session_id)
                )
            except Session.DoesNotExist:
                raise PaymentNotFoundError(
                    f"Session {session_id} not found",
                    error_code="SESSION_NOT_FOUND",
                    details={"session_id": str(session_id)},
                )

            if mentee is not None and session.mentee_id != mentee.pk:
                raise PaymentNotFoundError(
                    f"Session {session_id} not found",
                    error_code="SESSION_NOT_FOUND",
                    details={"session_id": str(session_id)},
                )

            existing = (
                Payment.objects.filter(session=session)
                .exclude(status=PaymentStatus.FAILED)
                .first()
            )
            if existing is not None:
                return existing, False

            if session.status != SessionStatus.PENDING or session.paid_at is not None:
                raise PaymentValidationError(
                    "Session is not awaiting payment",
                    error_code="SESSION_NOT_PAYABLE",
                    details={"session_id": str(session_id), "status": session.status},
                )
            if session.price is None or session.price <= 0:
                raise InvalidAmountError(
                    "Session has no price",
                    details={"session_id": str(session_id)},
                )

            amount = quantize_money(session.price)
            commission = self.calculate_commission(amount)
            charged_currency = adapter.charge_currency
            charged_amount = convert(amount, settings.PLATFORM_CURRENCY, charged_currency)
            adapter.check_minimum(charged_amount)

            payment = Payment.objects.create(
                session=session,
                mentee=session.mentee,
                provider=provider,
                payment_method=payment_method,
                amount=amount,
                currency=settings.PLATFORM_CURRENCY,
                charged_amount=charged_amount,
                charged_currency=charged_currency,
                platform_commission=commission,
                mentor_payout_amount=amount - commission,
            )
        return payment, True

    @staticmethod
    def calculate_commission(amount: Decimal) -> Decimal:
        """Platform commission for an amount, rounded half up to 2 places."""
        return quantize_money(
            Decimal(amount) * Decimal(settings.PLATFORM_FEE_PERCENT) / Decimal("100")
        )

    # =========================================================================
    # Confirmation & status
    # =========================================================================

    def confirm(
        self, payment_intent_id: str, session_id: uuid.UUID
    ) -> ServiceResult[Payment]:
        """
        Confirm a payment after the mentee completed checkout.

        Asks the provider for the intent's status and applies success.
        Confirming an already-paid payment succeeds without side effects.
        """
        try:
            try:
                payment = Payment.objects.get(
                    provider_payment_id=payment_intent_id, session_id=session_id
                )
            except Payment.DoesNotExist:
                raise PaymentNotFoundError(
                    "Payment not found for this session",
                    details={
                        "payment_intent_id": payment_intent_id,
                        "session_id": str(session_id),
                    },
                )

            if payment.is_paid:
                return ServiceResult.success(payment)

            if payment.status == PaymentStatus.FAILED:
                raise PaymentValidationError(
                    "Payment has failed; start a new payment",
                    error_code="PAYMENT_FAILED",
                    details={"payment_id": str(payment.id)},
                )

            status = self.adapter_factory(payment.provider).get_status(
                payment.provider_payment_id
            )
            if status.status != PaymentStatus.SUCCEEDED:
                raise PaymentValidationError(
                    "Payment has not been completed with the provider",
                    error_code="PAYMENT_NOT_SUCCEEDED",
                    details={
                        "payment_id": str(payment.id),
                        "provider_status": status.status,
                    },
                )

            applied = self.apply_status(
                payment.provider_payment_id,
                PaymentStatus.SUCCEEDED,
                transaction_id=status.transaction_id,
            )
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)

        return ServiceResult.success(applied.payment)

    def get_payment_status(
        self, payment_id: uuid.UUID, refresh: bool = False
    ) -> ServiceResult[Payment]:
        """
        Return a payment, reading through to the provider when stale.

        A pending payment older than PAYMENT_STATUS_STALE_SECONDS (or any
        open payment when refresh=True) is polled. Success is applied at
        once; failure only once the payment is past
        PAYMENT_EXPIRATION_MINUTES, since the mentee may still be in
        checkout. Provider outages fall back to the local state.
        """
        try:
            payment = Payment.objects.get(id=payment_id)
        except Payment.DoesNotExist:
            return ServiceResult.from_exception(
                PaymentNotFoundError(
                    f"Payment {payment_id} not found",
                    details={"payment_id": str(payment_id)},
                )
            )

        if not self._is_stale(payment, refresh):
            return ServiceResult.success(payment)

        try:
            status = self.adapter_factory(payment.provider).get_status(
                payment.provider_payment_id
            )
        except ProviderError as e:
            self.get_logger().warning(
                "Status read-through failed, returning local state",
                extra={"payment_id": str(payment_id), "error_code": e.error_code},
            )
            return ServiceResult.success(payment)

        expired = payment.created_at <= timezone.now() - timedelta(
            minutes=settings.PAYMENT_EXPIRATION_MINUTES
        )
        if status.status == PaymentStatus.SUCCEEDED or (
            status.status == PaymentStatus.FAILED and expired
        ):
            try:
                applied = self.apply_status(
                    payment.provider_payment_id,
                    status.status,
                    transaction_id=status.transaction_id,
                    failure_reason=status.failure_reason,
                )
            except BaseApplicationError as e:
                return ServiceResult.from_exception(e)
            return ServiceResult.success(applied.payment)

        return ServiceResult.success(payment)

    @staticmethod
    def _is_stale(payment: Payment, refresh: bool) -> bool:
        if payment.status not in OPEN_PAYMENT_STATUSES or not payment.provider_payment_id:
            return False
        if refresh:
            return True
        age = timezone.now() - payment.created_at
        return (
            payment.status == PaymentStatus.PENDING_CONFIRMATION
            and age >= timedelta(seconds=settings.PAYMENT_STATUS_STALE_SECONDS)
        )

    def reconcile_payment(self, payment_id: uuid.UUID) -> str:
        """
        Resolve an expired open payment against the provider.

        Used by the stale payment sweep. Success is applied; failure or a
        payment that never reached the provider ends FAILED; a provider
        still reporting pending leaves the payment for the next sweep.

        Returns the resulting PaymentStatus value.

        Raises:
            ProviderError: Provider could not be queried
        """
        payment = Payment.objects.get(id=payment_id)
        if payment.status not in OPEN_PAYMENT_STATUSES:
            return payment.status

        if not payment.provider_payment_id:
            with self.atomic():
                payment = self._lock_payment(payment_id=payment_id)
                if payment.status == PaymentStatus.CREATED:
                    payment.mark_failed("Payment intent was never created with the provider")
                    payment.save()
            return payment.status

        status = self.adapter_factory(payment.provider).get_status(
            payment.provider_payment_id
        )
        if status.status == PaymentStatus.PENDING_CONFIRMATION:
            return payment.status

        applied = self.apply_status(
            payment.provider_payment_id,
            status.status,
            transaction_id=status.transaction_id,
            failure_reason=status.failure_reason or "Payment expired",
        )
        return applied.payment.status

    # =========================================================================
    # Forward-only status application
    # =========================================================================

    def apply_callback(self, callback: CallbackResult) -> StatusApplication:
        """Apply a verified provider notification."""
        if callback.status not in PROVIDER_STATUSES:
            return StatusApplication(WebhookOutcome.UNHANDLED_EVENT, None)
        return self.apply_status(
            callback.provider_payment_id,
            callback.status,
            transaction_id=callback.transaction_id,
            failure_reason=callback.failure_reason,
        )

    def apply_status(
        self,
        provider_payment_id: str,
        status: str,
        transaction_id: str | None = None,
        failure_reason: str | None = None,
    ) -> StatusApplication:
        """
        Move a payment forward to a provider-reported status.

        The payment is locked; a status it already reflects is reported as
        DUPLICATE (same status) or OUT_OF_ORDER (earlier status) and
        nothing changes. Success finalizes the session in the same
        transaction: session marked paid and mentor credited.

        Raises:
            InvalidStateTransitionError: The FSM refused the transition
        """
        with self.atomic():
            payment = self._lock_payment(provider_payment_id=provider_payment_id)
            if payment is None:
                self.get_logger().info(
                    "Provider status for unknown payment",
                    extra={"provider_payment_id": provider_payment_id, "status": status},
                )
                return StatusApplication(WebhookOutcome.UNKNOWN_PAYMENT, None)

            if status == PaymentStatus.PENDING_CONFIRMATION and failure_reason:
                return self._record_declined_attempt(payment, failure_reason)

            if payment.status == status:
                return StatusApplication(WebhookOutcome.DUPLICATE, payment)

            if payment.reflects(status):
                if status == PaymentStatus.SUCCEEDED and payment.status == PaymentStatus.FAILED:
                    self.get_logger().error(
                        "Provider reports success for a failed payment",
                        extra={
                            "payment_id": str(payment.id),
                            "provider_payment_id": provider_payment_id,
                            "transaction_id": transaction_id,
                        },
                    )
                return StatusApplication(WebhookOutcome.OUT_OF_ORDER, payment)

            try:
                if status == PaymentStatus.SUCCEEDED:
                    payment.mark_succeeded(transaction_id or provider_payment_id)
                elif status == PaymentStatus.FAILED:
                    payment.mark_failed(failure_reason)
                else:
                    payment.mark_pending(
                        provider_payment_id,
                        client_secret=payment.client_secret,
                        checkout_url=payment.checkout_url,
                    )
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    str(e),
                    details={"payment_id": str(payment.id), "from": payment.status, "to": status},
                )
            payment.save()

            if status == PaymentStatus.SUCCEEDED:
                self._finalize_success(payment)
            elif status == PaymentStatus.FAILED:
                self._notify(
                    payment.mentee,
                    "payment_failed",
                    {"payment_id": str(payment.id), "reason": payment.failure_reason or ""},
                    f"payment_failed:{payment.id}",
                )

        self.get_logger().info(
            "Payment status applied",
            extra={
                "payment_id": str(payment.id),
                "status": status,
                "transaction_id": transaction_id,
            },
        )
        return StatusApplication(WebhookOutcome.APPLIED, payment)

    def _record_declined_attempt(
        self, payment: Payment, failure_reason: str
    ) -> StatusApplication:
        """
        Keep a declined payment open and remember why the attempt failed.

        The mentee may retry on the same intent, so the payment stays in
        PENDING_CONFIRMATION; a later success still applies.
        """
        if payment.status not in OPEN_PAYMENT_STATUSES:
            return StatusApplication(WebhookOutcome.OUT_OF_ORDER, payment)

        if payment.status == PaymentStatus.CREATED:
            payment.mark_pending(
                payment.provider_payment_id,
                client_secret=payment.client_secret,
                checkout_url=payment.checkout_url,
            )
        payment.failure_reason = failure_reason
        payment.save()

        self.get_logger().info(
            "Payment attempt declined, payment stays open",
            extra={
                "payment_id": str(payment.id),
                "provider_payment_id": payment.provider_payment_id,
                "failure_reason": failure_reason,
            },
        )
        return StatusApplication(WebhookOutcome.APPLIED, payment)

    def _finalize_success(self, payment: Payment) -> None:
        result = self.session_service.mark_session_paid(payment.session_id)
        if not result.success:
            raise InvariantViolationError(
                "Paid session could not be finalized",
                details={"payment_id": str(payment.id), "error": result.error},
            )
        self.ledger.credit_on_session_completion(payment.session_id)

        session = payment.session
        self._notify(
            payment.mentee,
            "payment_succeeded",
            {"payment_id": str(payment.id), "amount": str(payment.amount)},
            f"payment_succeeded:{payment.id}",
        )
        self._notify(
            session.mentor.user,
            "session_booked",
            {"session_id": str(session.id), "amount": str(payment.mentor_payout_amount)},
            f"session_booked:{session.id}",
        )

    def _lock_payment(
        self,
        payment_id: uuid.UUID | None = None,
        provider_payment_id: str | None = None,
    ) -> Payment | None:
        """Lock a payment and, before it, its session."""
        lookup = {"id": payment_id} if payment_id else {"provider_payment_id": provider_payment_id}
        session_id = (
            Payment.objects.filter(**lookup).values_list("session_id", flat=True).first()
        )
        if session_id is None:
            return None
        Session.objects.select_for_update().filter(id=session_id).first()
        return Payment.objects.select_for_update().select_related("session").get(**lookup)

    # =========================================================================
    # Refunds
    # =========================================================================

    def refund(
        self,
        payment_id: uuid.UUID,
        amount: Decimal,
        triggering_transaction_id: str | None = None,
        on_applied: Callable[[Payment, Decimal], None] | None = None,
    ) -> ServiceResult[Payment]:
        """
        Refund part or all of a paid payment.

        The provider refund happens first, outside any transaction, under
        a distributed lock per payment. The local update then runs in one
        transaction together with on_applied(payment, amount), so a caller
        can attach its own bookkeeping (dispute resolution, ledger
        adjustment) to the refund atomically.

        Args:
            payment_id: Payment to refund
            amount: Amount in the payment's currency
            triggering_transaction_id: Provider transaction to refund
                (defaults to the payment's transaction)
            on_applied: Called inside the local transaction

        Returns:
            ServiceResult with the updated Payment
        """
        amount = quantize_money(amount)
        self.get_logger().info(
            "Starting refund",
            extra={"payment_id": str(payment_id), "amount": str(amount)},
        )

        try:
            with DistributedLock(
                f"payment:refund:{payment_id}",
                ttl=REFUND_LOCK_TTL,
                timeout=REFUND_LOCK_TIMEOUT,
            ):
                payment = self._refund_with_lock(
                    payment_id, amount, triggering_transaction_id, on_applied
                )
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            "Refund completed",
            extra={
                "payment_id": str(payment.id),
                "amount": str(amount),
                "refund_amount": str(payment.refund_amount),
                "status": payment.status,
            },
        )
        return ServiceResult.success(payment)

    def _refund_with_lock(
        self,
        payment_id: uuid.UUID,
        amount: Decimal,
        triggering_transaction_id: str | None,
        on_applied: Callable[[Payment, Decimal], None] | None,
    ) -> Payment:
        try:
            payment = Payment.objects.get(id=payment_id)
        except Payment.DoesNotExist:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )
        self._check_refundable(payment, amount)

        adapter = self.adapter_factory(payment.provider)
        provider_amount = self._provider_refund_amount(payment, amount)
        refund_result = adapter.refund(
            payment.provider_payment_id,
            provider_amount,
            prior_transaction_id=triggering_transaction_id or payment.transaction_id,
            idempotency_key=IdempotencyKeyGenerator.generate(
                "refund", payment.id, payment.version
            ),
        )

        with self.atomic():
            payment = self._lock_payment(payment_id=payment_id)
            self._check_refundable(payment, amount)
            try:
                if amount == payment.refundable_amount:
                    payment.refund_full(amount)
                else:
                    payment.refund_partial(amount)
            except TransitionNotAllowed as e:
                raise InvalidStateTransitionError(
                    str(e), details={"payment_id": str(payment.id), "from": payment.status}
                )
            payment.save()

            if on_applied is not None:
                on_applied(payment, amount)

            self._notify(
                payment.mentee,
                "payment_refunded",
                {"payment_id": str(payment.id), "amount": str(amount)},
                f"payment_refunded:{payment.id}:{payment.version}",
            )

        self.get_logger().info(
            "Provider refund recorded",
            extra={
                "payment_id": str(payment.id),
                "refund_transaction_id": refund_result.refund_transaction_id,
                "provider_amount": str(provider_amount),
            },
        )
        return payment

    def _check_refundable(self, payment: Payment, amount: Decimal) -> None:
        if payment.status not in REFUNDABLE_STATUSES:
            raise InvalidStateTransitionError(
                f"Cannot refund a payment in {payment.status} state",
                details={"payment_id": str(payment.id), "status": payment.status},
            )
        if amount <= 0 or amount > payment.refundable_amount:
            self.get_logger().critical(
                "Refund amount outside refundable range",
                extra={
                    "payment_id": str(payment.id),
                    "attempted_amount": str(amount),
                    "amount": str(payment.amount),
                    "refund_amount": str(payment.refund_amount),
                },
            )
            raise InvariantViolationError(
                "Refund amount must be positive and within the refundable amount",
                error_code="REFUND_EXCEEDS_REMAINING",
                details={
                    "attempted_amount": str(amount),
                    "refundable_amount": str(payment.refundable_amount),
                },
            )

    @staticmethod
    def _provider_refund_amount(payment: Payment, amount: Decimal) -> Decimal:
        """Refund amount in the currency the provider charged."""
        charged_currency = payment.charged_currency or payment.currency
        charged_amount = payment.charged_amount or payment.amount
        if amount == payment.refundable_amount:
            already = convert(payment.refund_amount, payment.currency, charged_currency)
            return max(charged_amount - already, Decimal("0.00"))
        return convert(amount, payment.currency, charged_currency)

    def adjust_mentor_share(
        self, payment: Payment, amount: Decimal, reference_id=None
    ) -> None:
        """
        Debit the mentor's share of a refund if the session was credited.

        The share follows the payment's frozen split, so a full refund of
        a 500.00 payment with 75.00 commission debits 425.00.
        """
        session = payment.session
        if session.earnings_credited_at is None:
            return
        share = self.mentor_share(payment, amount)
        if share > 0:
            self.ledger.adjust_for_dispute_refund(
                session.mentor_id, share, payment=payment, reference_id=reference_id
            )

    @staticmethod
    def mentor_share(payment: Payment, amount: Decimal) -> Decimal:
        """
        Mentor's share of the latest refund of `amount`.

        Computed as the difference of the rounded cumulative shares before
        and after this refund, so the shares of all refunds add up to
        mentor_payout_amount once the payment is fully refunded.
        """
        amount = Decimal(amount)
        refunded_after = max(payment.refund_amount or Decimal("0.00"), amount)
        refunded_before = refunded_after - amount

        def cumulative(refunded: Decimal) -> Decimal:
            return quantize_money(refunded * payment.mentor_payout_amount / payment.amount)

        return cumulative(refunded_after) - cumulative(refunded_before)

    # =========================================================================
    # Notifications
    # =========================================================================

    def _notify(self, recipient, type_key: str, data: dict, idempotency_key: str) -> None:
        """Queue a notification to be sent once the transaction commits."""
        transaction.on_commit(
            lambda: self.notifier.notify(
                recipient, type_key, data=data, idempotency_key=idempotency_key
            ),
            robust=True,
        )


payment_orchestrator = PaymentOrchestrator()

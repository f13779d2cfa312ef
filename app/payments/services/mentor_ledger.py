"""
Mentor ledger: the only writer of MentorBalance.

Every mutation runs inside transaction.atomic() and locks the mentor's
balance row with select_for_update(), so concurrent payouts, credits and
dispute adjustments for the same mentor are serialized. Each mutation
also appends a BalanceEntry, giving a linear history per mentor.

Lock order is always: session -> payment -> balance.

Unlike the public service operations, the ledger raises typed exceptions
(InsufficientBalanceError, PaymentNotFoundError, ...). Callers run it
inside their own transaction so a failure rolls back everything; the
calling service converts the exception into a ServiceResult.

Usage:
    from payments.services.mentor_ledger import mentor_ledger

    with transaction.atomic():
        mentor_ledger.reserve_for_payout(mentor.id, Decimal("300.00"), payout=payout)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService

from mentorship.models import Session
from payments.exceptions import (
    InsufficientBalanceError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.models import BalanceEntry, BalanceEntryType, MentorBalance, Payment
from payments.services.currency import quantize_money
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    import uuid

    from mentorship.models import MentorProfile
    from payments.models import Payout

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class DisputeAdjustment:
    """
    Outcome of a dispute debit.

    Attributes:
        requested: Amount the ledger was asked to debit
        from_pending: Part taken from the payment's held earnings
        from_available: Part taken from the available balance
        shortfall: Part nobody could cover (absorbed by the platform)
        balance: Balance after the adjustment
    """

    requested: Decimal
    from_pending: Decimal
    from_available: Decimal
    shortfall: Decimal
    balance: MentorBalance


class MentorLedger(BaseService):
    """
    Single writer of mentor balances.

    Operations:
        open_balance: zero balance on mentor approval (idempotent)
        credit_on_session_completion: credit the mentor share once per session
        release_held_earnings: move matured held earnings to available
        reserve_for_payout: debit available for a payout request
        release_on_failure_or_cancel: restore a failed/cancelled payout
        adjust_for_dispute_refund: debit the mentor share of a dispute refund
    """

    # =========================================================================
    # Reads
    # =========================================================================

    def open_balance(self, mentor: MentorProfile) -> MentorBalance:
        """Create a zero balance for the mentor if none exists."""
        balance, created = MentorBalance.objects.get_or_create(mentor=mentor)
        if created:
            self.get_logger().info(
                "Mentor balance opened",
                extra={"mentor_id": str(mentor.pk)},
            )
        return balance

    def get_balance(self, mentor_id: uuid.UUID) -> MentorBalance:
        """Read a mentor's balance without locking it."""
        try:
            return MentorBalance.objects.get(mentor_id=mentor_id)
        except MentorBalance.DoesNotExist:
            raise PaymentNotFoundError(
                f"No balance for mentor {mentor_id}",
                error_code="BALANCE_NOT_FOUND",
                details={"mentor_id": str(mentor_id)},
            )

    def _lock_balance(self, mentor_id: uuid.UUID, create: bool = False) -> MentorBalance:
        if create:
            MentorBalance.objects.get_or_create(mentor_id=mentor_id)
        try:
            # Row lock needs Postgres; SQLite ignores FOR UPDATE and does not
            # serialize concurrent mutations for one mentor.
            return MentorBalance.objects.select_for_update().get(mentor_id=mentor_id)
        except MentorBalance.DoesNotExist:
            raise PaymentNotFoundError(
                f"No balance for mentor {mentor_id}",
                error_code="BALANCE_NOT_FOUND",
                details={"mentor_id": str(mentor_id)},
            )

    @staticmethod
    def _record(
        balance: MentorBalance,
        entry_type: str,
        amount: Decimal,
        reference_type: str = "",
        reference_id=None,
        idempotency_key: str | None = None,
        shortfall: Decimal = ZERO,
    ) -> BalanceEntry:
        return BalanceEntry.objects.create(
            balance=balance,
            entry_type=entry_type,
            amount=amount,
            available_after=balance.available_balance,
            pending_after=balance.pending_balance,
            shortfall=shortfall,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=idempotency_key,
        )

    @staticmethod
    def _require_positive(amount: Decimal, operation: str) -> Decimal:
        amount = quantize_money(amount)
        if amount <= ZERO:
            raise PaymentValidationError(
                "Amount must be greater than zero",
                error_code="INVALID_AMOUNT",
                details={"operation": operation, "amount": str(amount)},
            )
        return amount

    # =========================================================================
    # Credits
    # =========================================================================

    def credit_on_session_completion(self, session_id: uuid.UUID) -> MentorBalance:
        """
        Credit the mentor share of a session's payment, once.

        The session row is locked and its earnings_credited_at checked, so
        repeated or concurrent calls credit at most once. With a hold
        period configured the credit lands in pending_balance and is
        tracked on the payment as held_amount.

        Raises:
            PaymentNotFoundError: Unknown session
            PaymentValidationError: Session has no successful payment
        """
        with self.atomic():
            try:
                session = Session.objects.select_for_update().get(id=session_id)
            except Session.DoesNotExist:
                raise PaymentNotFoundError(
                    f"Session {session_id} not found",
                    error_code="SESSION_NOT_FOUND",
                    details={"session_id": str(session_id)},
                )

            if session.earnings_credited_at is not None:
                self.get_logger().info(
                    "Session earnings already credited, skipping",
                    extra={"session_id": str(session_id)},
                )
                return self._lock_balance(session.mentor_id, create=True)

            payment = (
                Payment.objects.select_for_update()
                .filter(
                    session_id=session_id,
                    status__in=[PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED],
                )
                .first()
            )
            if payment is None:
                raise PaymentValidationError(
                    "Session has no successful payment",
                    error_code="SESSION_NOT_PAID",
                    details={"session_id": str(session_id)},
                )

            amount = payment.mentor_payout_amount
            balance = self._lock_balance(session.mentor_id, create=True)
            now = timezone.now()

            if settings.MENTOR_EARNINGS_HOLD_HOURS > 0:
                balance.pending_balance += amount
                payment.held_amount = amount
            else:
                balance.available_balance += amount
                payment.earnings_released_at = now
            balance.total_earnings += amount
            balance.save()

            payment.save(update_fields=["held_amount", "earnings_released_at", "updated_at"])

            session.earnings_credited_at = now
            session.save(update_fields=["earnings_credited_at", "updated_at"])

            self._record(
                balance,
                BalanceEntryType.SESSION_CREDIT,
                amount,
                reference_type="session",
                reference_id=session.id,
                idempotency_key=f"session_credit:{session.id}",
            )

        self.get_logger().info(
            "Mentor credited for session",
            extra={
                "session_id": str(session_id),
                "mentor_id": str(session.mentor_id),
                "payment_id": str(payment.id),
                "amount": str(amount),
                "held": settings.MENTOR_EARNINGS_HOLD_HOURS > 0,
            },
        )
        return balance

    def release_held_earnings(self, payment_id: uuid.UUID) -> Decimal:
        """
        Move a payment's held earnings from pending to available.

        Returns the amount released (0 when nothing was held or it was
        already released).
        """
        with self.atomic():
            try:
                payment = (
                    Payment.objects.select_for_update()
                    .select_related("session")
                    .get(id=payment_id)
                )
            except Payment.DoesNotExist:
                raise PaymentNotFoundError(
                    f"Payment {payment_id} not found",
                    details={"payment_id": str(payment_id)},
                )

            if payment.held_amount <= ZERO or payment.earnings_released_at is not None:
                return ZERO

            balance = self._lock_balance(payment.session.mentor_id)
            amount = min(payment.held_amount, balance.pending_balance)
            balance.pending_balance -= amount
            balance.available_balance += amount
            balance.save()

            payment.held_amount = ZERO
            payment.earnings_released_at = timezone.now()
            payment.save(update_fields=["held_amount", "earnings_released_at", "updated_at"])

            self._record(
                balance,
                BalanceEntryType.HOLD_RELEASE,
                amount,
                reference_type="payment",
                reference_id=payment.id,
                idempotency_key=f"hold_release:{payment.id}",
            )

        self.get_logger().info(
            "Held earnings released",
            extra={"payment_id": str(payment_id), "amount": str(amount)},
        )
        return amount

    def matured_holds(self):
        """Payments whose hold period is over and that have no pending dispute."""
        from payments.state_machines import DisputeStatus

        cutoff = timezone.now() - timedelta(hours=settings.MENTOR_EARNINGS_HOLD_HOURS)
        return (
            Payment.objects.filter(
                held_amount__gt=ZERO,
                earnings_released_at__isnull=True,
                paid_at__lte=cutoff,
            )
            .exclude(session__disputes__status=DisputeStatus.PENDING)
            .values_list("id", flat=True)
        )

    # =========================================================================
    # Payouts
    # =========================================================================

    def reserve_for_payout(
        self,
        mentor_id: uuid.UUID,
        amount: Decimal,
        payout: Payout | None = None,
    ) -> MentorBalance:
        """
        Debit available funds for a payout request.

        Raises:
            InsufficientBalanceError: amount > available_balance
        """
        amount = self._require_positive(amount, "reserve_for_payout")
        with self.atomic():
            balance = self._lock_balance(mentor_id)
            if amount > balance.available_balance:
                self.get_logger().info(
                    "Payout reservation rejected: insufficient balance",
                    extra={
                        "mentor_id": str(mentor_id),
                        "available": str(balance.available_balance),
                        "requested": str(amount),
                    },
                )
                raise InsufficientBalanceError(
                    "Insufficient balance for payout",
                    details={
                        "available_balance": str(balance.available_balance),
                        "requested_amount": str(amount),
                    },
                )

            balance.available_balance -= amount
            balance.save()
            self._record(
                balance,
                BalanceEntryType.PAYOUT_RESERVE,
                -amount,
                reference_type="payout" if payout else "",
                reference_id=payout.id if payout else None,
                idempotency_key=f"payout_reserve:{payout.id}" if payout else None,
            )

        self.get_logger().info(
            "Funds reserved for payout",
            extra={"mentor_id": str(mentor_id), "amount": str(amount)},
        )
        return balance

    def release_on_failure_or_cancel(
        self,
        mentor_id: uuid.UUID,
        amount: Decimal,
        payout: Payout | None = None,
    ) -> MentorBalance:
        """Restore funds of a failed or cancelled payout to available."""
        amount = self._require_positive(amount, "release_on_failure_or_cancel")
        with self.atomic():
            balance = self._lock_balance(mentor_id)
            balance.available_balance += amount
            balance.save()
            self._record(
                balance,
                BalanceEntryType.PAYOUT_RELEASE,
                amount,
                reference_type="payout" if payout else "",
                reference_id=payout.id if payout else None,
                idempotency_key=f"payout_release:{payout.id}" if payout else None,
            )

        self.get_logger().info(
            "Payout funds restored",
            extra={"mentor_id": str(mentor_id), "amount": str(amount)},
        )
        return balance

    # =========================================================================
    # Disputes
    # =========================================================================

    def adjust_for_dispute_refund(
        self,
        mentor_id: uuid.UUID,
        amount: Decimal,
        payment: Payment | None = None,
        reference_id=None,
    ) -> DisputeAdjustment:
        """
        Debit the mentor share of a dispute refund.

        Earnings still held for the refunded payment are taken first, then
        the available balance. Neither goes below zero: whatever cannot be
        covered is added to the balance's shortfall and logged at WARNING.
        total_earnings drops by the full amount, floored at zero.
        """
        amount = self._require_positive(amount, "adjust_for_dispute_refund")
        with self.atomic():
            if payment is not None:
                payment = Payment.objects.select_for_update().get(id=payment.id)
            balance = self._lock_balance(mentor_id)

            remaining = amount
            from_pending = ZERO
            if payment is not None and payment.held_amount > ZERO:
                from_pending = min(payment.held_amount, balance.pending_balance, remaining)
                payment.held_amount -= from_pending
                payment.save(update_fields=["held_amount", "updated_at"])
                balance.pending_balance -= from_pending
                remaining -= from_pending

            from_available = min(remaining, balance.available_balance)
            balance.available_balance -= from_available
            remaining -= from_available

            shortfall = remaining
            balance.shortfall += shortfall
            balance.total_earnings = max(balance.total_earnings - amount, ZERO)
            balance.save()

            self._record(
                balance,
                BalanceEntryType.DISPUTE_ADJUSTMENT,
                -amount,
                reference_type="dispute" if reference_id else "",
                reference_id=reference_id,
                shortfall=shortfall,
            )

        if shortfall > ZERO:
            self.get_logger().warning(
                "Dispute refund exceeds mentor balance; shortfall absorbed by platform",
                extra={
                    "mentor_id": str(mentor_id),
                    "requested": str(amount),
                    "shortfall": str(shortfall),
                },
            )
        else:
            self.get_logger().info(
                "Mentor balance adjusted for dispute refund",
                extra={"mentor_id": str(mentor_id), "amount": str(amount)},
            )

        return DisputeAdjustment(
            requested=amount,
            from_pending=from_pending,
            from_available=from_available,
            shortfall=shortfall,
            balance=balance,
        )


mentor_ledger = MentorLedger()

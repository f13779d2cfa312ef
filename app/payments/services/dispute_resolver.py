"""
Dispute resolver for mentee claims against completed sessions.

A mentee may dispute a completed session within DISPUTE_WINDOW_DAYS.
An administrator resolves it with a full refund, a partial refund or no
refund. Refunds go through the payment orchestrator; the mentor's share
of the refunded amount is then debited from their balance.

Resolution order:
    1. Provider refund (outside any transaction, dispute stays PENDING on failure)
    2. In one transaction: payment refund recorded, mentor balance
       adjusted, dispute RESOLVED

Usage:
    from payments.services import dispute_resolver

    result = dispute_resolver.resolve(
        dispute.id,
        DisputeResolution.FULL_REFUND,
        admin=request.user,
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from django_fsm import TransitionNotAllowed

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult

from mentorship.models import Session, SessionStatus
from payments.exceptions import (
    ActiveDisputeError,
    InvalidAmountError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from payments.locks import DistributedLock
from payments.models import Payment, SessionDispute
from payments.models.dispute import ADMIN_NOTES_MAX_LENGTH, DESCRIPTION_MAX_LENGTH
from payments.services.currency import quantize_money
from payments.services.mentor_ledger import mentor_ledger
from payments.services.payment_orchestrator import payment_orchestrator
from payments.state_machines import (
    REFUND_RESOLUTIONS,
    DisputeReason,
    DisputeResolution,
    DisputeStatus,
    PaymentStatus,
)

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from django.db.models import QuerySet

    from authentication.models import User
    from notifications.services import NotificationService
    from payments.services.mentor_ledger import MentorLedger
    from payments.services.payment_orchestrator import PaymentOrchestrator


logger = logging.getLogger(__name__)

DISPUTE_LOCK_TTL = 120
DISPUTE_LOCK_TIMEOUT = 10.0

DISPUTE_ORDERINGS = frozenset(["created_at", "-created_at", "status", "-status"])


@dataclass
class DisputeFilters:
    """Filters for listing disputes."""

    status: str | None = None
    reason: str | None = None
    mentor_id: uuid.UUID | None = None
    mentee_id: uuid.UUID | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    ordering: str = "-created_at"


class DisputeResolver(BaseService):
    """
    Creation and resolution of session disputes.

    Refunds go through the orchestrator and balance changes through the
    ledger; both are passed to the constructor.
    """

    def __init__(
        self,
        orchestrator: PaymentOrchestrator | None = None,
        ledger: MentorLedger | None = None,
        notifier: NotificationService | None = None,
    ):
        self.orchestrator = orchestrator or payment_orchestrator
        self.ledger = ledger or mentor_ledger
        self._notifier = notifier

    @property
    def notifier(self) -> NotificationService:
        if self._notifier is None:
            from notifications.services import notification_service

            self._notifier = notification_service
        return self._notifier

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        session_id: uuid.UUID,
        mentee: User,
        reason: str,
        description: str | None = None,
    ) -> ServiceResult[SessionDispute]:
        """
        Open a dispute on a completed session.

        Rules:
            - Only the session's mentee may dispute it
            - The session must be COMPLETED, within DISPUTE_WINDOW_DAYS
            - OTHER requires a description; descriptions are at most
              1000 characters
            - At most one PENDING dispute per session
        """
        try:
            self._validate_claim(reason, description)
            with self.atomic():
                session = self._lock_session(session_id, mentee)
                self._check_window(session)

                if SessionDispute.objects.filter(
                    session=session, status=DisputeStatus.PENDING
                ).exists():
                    raise ActiveDisputeError(
                        "A dispute is already pending for this session",
                        details={"session_id": str(session_id)},
                    )

                payment = (
                    Payment.objects.filter(session=session)
                    .exclude(status=PaymentStatus.FAILED)
                    .first()
                )
                try:
                    with transaction.atomic():
                        dispute = SessionDispute.objects.create(
                            session=session,
                            mentee=mentee,
                            mentor_id=session.mentor_id,
                            payment=payment,
                            reason=reason,
                            description=description or "",
                        )
                except IntegrityError:
                    raise ActiveDisputeError(
                        "A dispute is already pending for this session",
                        details={"session_id": str(session_id)},
                    )
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            "Dispute created",
            extra={
                "dispute_id": str(dispute.id),
                "session_id": str(session_id),
                "reason": reason,
            },
        )
        return ServiceResult.success(dispute)

    @staticmethod
    def _validate_claim(reason: str, description: str | None) -> None:
        if reason not in DisputeReason.values:
            raise PaymentValidationError(
                f"Unknown dispute reason: {reason}",
                error_code="INVALID_DISPUTE_REASON",
                details={"reason": reason},
            )
        if reason == DisputeReason.OTHER and not (description or "").strip():
            raise PaymentValidationError(
                "A description is required when the reason is 'other'",
                error_code="DESCRIPTION_REQUIRED",
            )
        if description and len(description) > DESCRIPTION_MAX_LENGTH:
            raise PaymentValidationError(
                f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
                error_code="DESCRIPTION_TOO_LONG",
            )

    @staticmethod
    def _lock_session(session_id: uuid.UUID, mentee: User) -> Session:
        try:
            session = Session.objects.select_for_update().get(id=session_id)
        except Session.DoesNotExist:
            session = None
        if session is None or session.mentee_id != mentee.pk:
            raise PaymentNotFoundError(
                f"Session {session_id} not found",
                error_code="SESSION_NOT_FOUND",
                details={"session_id": str(session_id)},
            )
        return session

    @staticmethod
    def _check_window(session: Session) -> None:
        if session.status != SessionStatus.COMPLETED or session.completed_at is None:
            raise PaymentValidationError(
                "Only completed sessions can be disputed",
                error_code="SESSION_NOT_COMPLETED",
                details={"session_id": str(session.id), "status": session.status},
            )
        deadline = session.completed_at + timedelta(days=settings.DISPUTE_WINDOW_DAYS)
        if timezone.now() > deadline:
            raise PaymentValidationError(
                f"Disputes must be raised within {settings.DISPUTE_WINDOW_DAYS} days "
                "of session completion",
                error_code="DISPUTE_WINDOW_CLOSED",
                details={"session_id": str(session.id)},
            )

    # =========================================================================
    # Resolve
    # =========================================================================

    def resolve(
        self,
        dispute_id: uuid.UUID,
        resolution: str,
        refund_amount: Decimal | None = None,
        admin_notes: str | None = None,
        admin: User | None = None,
    ) -> ServiceResult[SessionDispute]:
        """
        Resolve a pending dispute.

        Refund resolutions need 0 < refund_amount <= session price;
        FULL_REFUND defaults to the payment's refundable remainder. The
        provider refund runs first; if it fails the dispute stays PENDING.
        """
        try:
            if resolution not in DisputeResolution.values:
                raise PaymentValidationError(
                    f"Unknown resolution: {resolution}",
                    error_code="INVALID_RESOLUTION",
                    details={"resolution": resolution},
                )
            if admin_notes and len(admin_notes) > ADMIN_NOTES_MAX_LENGTH:
                raise PaymentValidationError(
                    f"Admin notes must be at most {ADMIN_NOTES_MAX_LENGTH} characters",
                    error_code="ADMIN_NOTES_TOO_LONG",
                )

            with DistributedLock(
                f"dispute:resolve:{dispute_id}",
                ttl=DISPUTE_LOCK_TTL,
                timeout=DISPUTE_LOCK_TIMEOUT,
            ):
                result = self._resolve_with_lock(
                    dispute_id, resolution, refund_amount, admin_notes, admin
                )
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)

        if not result.success:
            return result

        self.get_logger().info(
            "Dispute resolved",
            extra={
                "dispute_id": str(dispute_id),
                "resolution": resolution,
                "refund_amount": str(result.data.refund_amount or 0),
            },
        )
        return result

    def _resolve_with_lock(
        self,
        dispute_id: uuid.UUID,
        resolution: str,
        refund_amount: Decimal | None,
        admin_notes: str | None,
        admin: User | None,
    ) -> ServiceResult[SessionDispute]:
        dispute = self._get_pending(dispute_id)

        if resolution not in REFUND_RESOLUTIONS:
            with self.atomic():
                closed = self._close(dispute_id, resolution, None, admin_notes, admin)
            return ServiceResult.success(closed)

        payment = dispute.payment or (
            Payment.objects.filter(
                session_id=dispute.session_id,
                status__in=[PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED],
            ).first()
        )
        if payment is None or not payment.is_paid:
            raise PaymentValidationError(
                "Session has no refundable payment",
                error_code="NO_REFUNDABLE_PAYMENT",
                details={"dispute_id": str(dispute_id)},
            )

        amount = self._refund_amount(dispute, payment, resolution, refund_amount)
        closed: list[SessionDispute] = []

        def on_applied(refunded_payment: Payment, refunded: Decimal) -> None:
            if dispute.session.earnings_credited_at is not None:
                self.ledger.adjust_for_dispute_refund(
                    dispute.mentor_id,
                    self.orchestrator.mentor_share(refunded_payment, refunded),
                    payment=refunded_payment,
                    reference_id=dispute_id,
                )
            closed.append(
                self._close(dispute_id, resolution, refunded, admin_notes, admin)
            )

        result = self.orchestrator.refund(payment.id, amount, on_applied=on_applied)
        if not result.success:
            self.get_logger().warning(
                "Dispute refund failed, dispute stays pending",
                extra={
                    "dispute_id": str(dispute_id),
                    "payment_id": str(payment.id),
                    "error_code": result.error_code,
                },
            )
            return result
        return ServiceResult.success(closed[0])

    @staticmethod
    def _refund_amount(
        dispute: SessionDispute,
        payment: Payment,
        resolution: str,
        refund_amount: Decimal | None,
    ) -> Decimal:
        if refund_amount is None:
            if resolution != DisputeResolution.FULL_REFUND:
                raise InvalidAmountError(
                    "A refund amount is required for a partial refund",
                    details={"dispute_id": str(dispute.id)},
                )
            refund_amount = payment.refundable_amount

        amount = quantize_money(refund_amount)
        price = dispute.session.price
        if amount <= 0 or amount > price:
            raise InvalidAmountError(
                "Refund amount must be greater than zero and at most the session price",
                details={"refund_amount": str(amount), "session_price": str(price)},
            )
        return amount

    def _get_pending(self, dispute_id: uuid.UUID) -> SessionDispute:
        try:
            dispute = SessionDispute.objects.select_related("session", "payment").get(
                id=dispute_id
            )
        except SessionDispute.DoesNotExist:
            raise PaymentNotFoundError(
                f"Dispute {dispute_id} not found",
                error_code="DISPUTE_NOT_FOUND",
                details={"dispute_id": str(dispute_id)},
            )
        if not dispute.is_pending:
            raise InvalidStateTransitionError(
                "Dispute is already resolved",
                details={"dispute_id": str(dispute_id), "status": dispute.status},
            )
        return dispute

    def _close(
        self,
        dispute_id: uuid.UUID,
        resolution: str,
        refund_amount: Decimal | None,
        admin_notes: str | None,
        admin: User | None,
    ) -> SessionDispute:
        dispute = (
            SessionDispute.objects.select_for_update()
            .select_related("mentee")
            .get(id=dispute_id)
        )
        try:
            dispute.resolve(
                resolution,
                refund_amount=refund_amount,
                admin_notes=admin_notes,
                admin=admin,
            )
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                "Dispute is already resolved",
                details={"dispute_id": str(dispute_id), "status": dispute.status},
            )
        dispute.save()

        recipient = dispute.mentee
        data = {
            "dispute_id": str(dispute.id),
            "resolution": resolution,
            "refund_amount": str(refund_amount or 0),
        }
        transaction.on_commit(
            lambda: self.notifier.notify(
                recipient,
                "dispute_resolved",
                data=data,
                idempotency_key=f"dispute_resolved:{dispute_id}",
            ),
            robust=True,
        )
        return dispute

    # =========================================================================
    # Queries
    # =========================================================================

    def list_disputes(
        self, filters: DisputeFilters | None = None
    ) -> QuerySet[SessionDispute]:
        """Disputes matching the filters, newest first by default."""
        filters = filters or DisputeFilters()
        queryset = SessionDispute.objects.select_related(
            "session", "mentee", "mentor", "payment"
        )

        if filters.status:
            queryset = queryset.filter(status=filters.status)
        if filters.reason:
            queryset = queryset.filter(reason=filters.reason)
        if filters.mentor_id:
            queryset = queryset.filter(mentor_id=filters.mentor_id)
        if filters.mentee_id:
            queryset = queryset.filter(mentee_id=filters.mentee_id)
        if filters.created_from:
            queryset = queryset.filter(created_at__gte=filters.created_from)
        if filters.created_to:
            queryset = queryset.filter(created_at__lte=filters.created_to)

        ordering = filters.ordering if filters.ordering in DISPUTE_ORDERINGS else "-created_at"
        return queryset.order_by(ordering)


dispute_resolver = DisputeResolver()

"""
Payout manager for mentor withdrawals.

A payout debits the mentor's available balance when it is requested and
gives the money back if it fails or is cancelled. The Payout row and the
balance move in the same transaction, so they never disagree.

State Flow:
    PENDING -> PROCESSING -> COMPLETED
    PENDING/PROCESSING -> FAILED     (funds restored)
    PENDING -> CANCELLED             (funds restored)

Usage:
    from payments.services import payout_manager

    result = payout_manager.request_payout(mentor.id, Decimal("300.00"))
    if not result.success and result.error_code == "INSUFFICIENT_BALANCE":
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Callable

from django.conf import settings
from django.db import transaction

from django_fsm import TransitionNotAllowed

from core.exceptions import BaseApplicationError
from core.services import BaseService, ServiceResult

from payments.exceptions import (
    InvalidAmountError,
    InvalidStateTransitionError,
    PaymentNotFoundError,
)
from payments.models import Payout
from payments.services.mentor_ledger import mentor_ledger
from payments.state_machines import PayoutStatus

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from django.db.models import QuerySet

    from authentication.models import User
    from notifications.services import NotificationService
    from payments.services.mentor_ledger import MentorLedger


logger = logging.getLogger(__name__)

# Orderings accepted by list_payouts
PAYOUT_ORDERINGS = frozenset(
    ["requested_at", "-requested_at", "amount", "-amount", "status", "-status"]
)


@dataclass
class PayoutFilters:
    """
    Filters for listing payouts.

    Attributes:
        status: PayoutStatus value
        mentor_id: Restrict to one mentor
        min_amount / max_amount: Inclusive amount range
        requested_from / requested_to: Inclusive requested_at range
        ordering: One of PAYOUT_ORDERINGS (default newest first)
    """

    status: str | None = None
    mentor_id: uuid.UUID | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    requested_from: datetime | None = None
    requested_to: datetime | None = None
    ordering: str = "-requested_at"


class PayoutManager(BaseService):
    """
    Lifecycle of mentor payouts.

    The ledger is passed to the constructor so every balance mutation
    made on behalf of a payout goes through it.
    """

    def __init__(
        self,
        ledger: MentorLedger | None = None,
        notifier: NotificationService | None = None,
    ):
        self.ledger = ledger or mentor_ledger
        self._notifier = notifier

    @property
    def notifier(self) -> NotificationService:
        if self._notifier is None:
            from notifications.services import notification_service

            self._notifier = notification_service
        return self._notifier

    # =========================================================================
    # Request
    # =========================================================================

    def request_payout(
        self, mentor_id: uuid.UUID, amount: Decimal
    ) -> ServiceResult[Payout]:
        """
        Request a withdrawal of available funds.

        The amount must have at most 2 decimal places and lie within
        PAYOUT_MIN_AMOUNT..PAYOUT_MAX_AMOUNT. Creating the payout and
        reserving the funds happen in one transaction; an insufficient
        balance rolls both back.
        """
        try:
            amount = self._validate_amount(amount)
            with self.atomic():
                payout = Payout.objects.create(
                    mentor_id=mentor_id,
                    amount=amount,
                    currency=settings.PLATFORM_CURRENCY,
                )
                self.ledger.reserve_for_payout(mentor_id, amount, payout=payout)
        except BaseApplicationError as e:
            self.get_logger().info(
                "Payout request rejected",
                extra={
                    "mentor_id": str(mentor_id),
                    "amount": str(amount),
                    "error_code": e.error_code,
                },
            )
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            "Payout requested",
            extra={
                "payout_id": str(payout.id),
                "mentor_id": str(mentor_id),
                "amount": str(amount),
            },
        )
        return ServiceResult.success(payout)

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(
                "Amount must be a number", details={"amount": str(amount)}
            )
        if not amount.is_finite() or amount.as_tuple().exponent < -2:
            raise InvalidAmountError(
                "Amount must have at most 2 decimal places",
                details={"amount": str(amount)},
            )
        minimum = Decimal(settings.PAYOUT_MIN_AMOUNT)
        maximum = Decimal(settings.PAYOUT_MAX_AMOUNT)
        if amount < minimum or amount > maximum:
            raise InvalidAmountError(
                f"Payout amount must be between {minimum} and {maximum}",
                details={
                    "amount": str(amount),
                    "min_amount": str(minimum),
                    "max_amount": str(maximum),
                },
            )
        return amount.quantize(Decimal("0.01"))

    # =========================================================================
    # Transitions
    # =========================================================================

    def process(
        self, payout_id: uuid.UUID, admin: User | None = None
    ) -> ServiceResult[Payout]:
        """PENDING -> PROCESSING."""
        return self._transition(payout_id, "process", lambda p: p.process(admin=admin))

    def complete(self, payout_id: uuid.UUID) -> ServiceResult[Payout]:
        """PROCESSING -> COMPLETED."""
        return self._transition(payout_id, "complete", lambda p: p.complete())

    def fail(self, payout_id: uuid.UUID, reason: str) -> ServiceResult[Payout]:
        """PENDING/PROCESSING -> FAILED, restoring the reserved funds."""
        return self._transition(payout_id, "fail", lambda p: p.fail(reason))

    def cancel(
        self,
        payout_id: uuid.UUID,
        admin: User | None = None,
        reason: str | None = None,
    ) -> ServiceResult[Payout]:
        """PENDING -> CANCELLED, restoring the reserved funds."""
        return self._transition(
            payout_id, "cancel", lambda p: p.cancel(admin=admin, reason=reason)
        )

    def _transition(
        self,
        payout_id: uuid.UUID,
        action: str,
        apply: Callable[[Payout], None],
    ) -> ServiceResult[Payout]:
        try:
            with self.atomic():
                try:
                    payout = Payout.objects.select_for_update().get(id=payout_id)
                except Payout.DoesNotExist:
                    raise PaymentNotFoundError(
                        f"Payout {payout_id} not found",
                        error_code="PAYOUT_NOT_FOUND",
                        details={"payout_id": str(payout_id)},
                    )

                from_status = payout.status
                try:
                    apply(payout)
                except TransitionNotAllowed:
                    raise InvalidStateTransitionError(
                        f"Cannot {action} a payout in {from_status} state",
                        details={"payout_id": str(payout_id), "status": from_status},
                    )
                payout.save()

                if payout.restores_balance:
                    self.ledger.release_on_failure_or_cancel(
                        payout.mentor_id, payout.amount, payout=payout
                    )

                if payout.status in (
                    PayoutStatus.COMPLETED,
                    PayoutStatus.FAILED,
                    PayoutStatus.CANCELLED,
                ):
                    self._notify(payout)
        except BaseApplicationError as e:
            return ServiceResult.from_exception(e)

        self.get_logger().info(
            "Payout transitioned",
            extra={
                "payout_id": str(payout_id),
                "from_status": from_status,
                "to_status": payout.status,
            },
        )
        return ServiceResult.success(payout)

    def _notify(self, payout: Payout) -> None:
        recipient = payout.mentor.user
        type_key = f"payout_{payout.status}"
        data = {
            "payout_id": str(payout.id),
            "amount": str(payout.amount),
            "reason": payout.failure_reason or "",
        }
        transaction.on_commit(
            lambda: self.notifier.notify(
                recipient, type_key, data=data, idempotency_key=f"{type_key}:{payout.id}"
            ),
            robust=True,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def list_payouts(self, filters: PayoutFilters | None = None) -> QuerySet[Payout]:
        """Payouts matching the filters, ordered as requested."""
        filters = filters or PayoutFilters()
        queryset = Payout.objects.select_related("mentor", "mentor__user")

        if filters.status:
            queryset = queryset.filter(status=filters.status)
        if filters.mentor_id:
            queryset = queryset.filter(mentor_id=filters.mentor_id)
        if filters.min_amount is not None:
            queryset = queryset.filter(amount__gte=filters.min_amount)
        if filters.max_amount is not None:
            queryset = queryset.filter(amount__lte=filters.max_amount)
        if filters.requested_from:
            queryset = queryset.filter(requested_at__gte=filters.requested_from)
        if filters.requested_to:
            queryset = queryset.filter(requested_at__lte=filters.requested_to)

        ordering = filters.ordering if filters.ordering in PAYOUT_ORDERINGS else "-requested_at"
        return queryset.order_by(ordering)


payout_manager = PayoutManager()

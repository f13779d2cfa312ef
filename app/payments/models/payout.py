"""
Payout model for mentor withdrawals.

A Payout represents money leaving the platform to a mentor. The amount
is debited from the mentor's available balance when the payout is
requested, and restored if the payout fails or is cancelled.

Usage:
    from payments.models import Payout

    payout = Payout.objects.create(mentor=profile, amount=Decimal("300.00"))

    # State transitions using django-fsm
    payout.process(admin=staff_user)  # pending -> processing
    payout.save()

    payout.complete()  # processing -> completed
    payout.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from payments.state_machines import PayoutStatus


class Payout(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Withdrawal of available earnings by a mentor.

    State Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING/PROCESSING -> FAILED
        PENDING -> CANCELLED

    Fields:
        mentor: Mentor receiving the money
        amount: Payout amount in the platform currency
        status: Current FSM state
        failure_reason: Why the payout failed or was cancelled
        requested_at: When the mentor asked for the payout
        processed_at: When an administrator started the transfer
        completed_at: When the transfer was confirmed
        processed_by: Administrator who acted on the payout

    Note:
        COMPLETED, FAILED and CANCELLED have no outgoing transitions.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    mentor = models.ForeignKey(
        "mentorship.MentorProfile",
        on_delete=models.PROTECT,
        related_name="payouts",
        help_text="Mentor receiving the payout",
    )

    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_payouts",
        help_text="Administrator who processed or cancelled the payout",
    )

    # ==========================================================================
    # Amount & State
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Payout amount in the platform currency",
    )

    currency = models.CharField(
        max_length=3,
        default="EGP",
        help_text="ISO 4217 currency code",
    )

    status = FSMField(
        default=PayoutStatus.PENDING,
        choices=PayoutStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    # ==========================================================================
    # Timestamps & Error Info
    # ==========================================================================

    requested_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="When the payout was requested",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the transfer was started",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the transfer was confirmed",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout failed",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payout was cancelled",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason the payout failed or was cancelled",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-requested_at"]
        verbose_name = "Payout"
        verbose_name_plural = "Payouts"
        indexes = [
            models.Index(fields=["mentor", "status"]),
            models.Index(fields=["status", "requested_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payout_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payout({self.id}, {self.status}, {self.amount} {self.currency})"

    @property
    def restores_balance(self) -> bool:
        """Whether this payout ended in a state that gave the funds back."""
        return self.status in (PayoutStatus.FAILED, PayoutStatus.CANCELLED)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.PROCESSING,
    )
    def process(self, admin=None):
        """
        Start the external transfer.

        Transition: PENDING -> PROCESSING
        """
        self.processed_at = timezone.now()
        if admin is not None:
            self.processed_by = admin

    @transition(
        field=status,
        source=PayoutStatus.PROCESSING,
        target=PayoutStatus.COMPLETED,
    )
    def complete(self):
        """
        Confirm the transfer. Funds were already debited at request time.

        Transition: PROCESSING -> COMPLETED
        """
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=[PayoutStatus.PENDING, PayoutStatus.PROCESSING],
        target=PayoutStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the payout as failed. The caller restores the balance.

        Transition: PENDING/PROCESSING -> FAILED
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.CANCELLED,
    )
    def cancel(self, admin=None, reason: str | None = None):
        """
        Cancel a payout before processing. The caller restores the balance.

        Transition: PENDING -> CANCELLED
        """
        self.cancelled_at = timezone.now()
        if admin is not None:
            self.processed_by = admin
        if reason:
            self.failure_reason = reason

"""
MentorBalance model holding each mentor's earnings.

Only payments.services.mentor_ledger.MentorLedger writes to this model,
always under select_for_update().
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel


class MentorBalance(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    Earnings of one mentor in the platform currency.

    Fields:
        mentor: The mentor owning the balance
        available_balance: Funds the mentor may withdraw
        pending_balance: Credited funds still inside the hold period
        total_earnings: Lifetime earnings net of dispute refunds
        shortfall: Dispute refunds the balance could not cover and the
            platform absorbed
        updated_at: Last mutation (inherited from BaseModel)
    """

    mentor = models.OneToOneField(
        "mentorship.MentorProfile",
        on_delete=models.PROTECT,
        related_name="balance",
        help_text="Mentor owning this balance",
    )

    available_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Funds available for payout",
    )

    pending_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Earnings inside the hold period",
    )

    total_earnings = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Lifetime earnings, reduced by dispute refunds",
    )

    shortfall = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Dispute refunds not covered by the balance (absorbed by the platform)",
    )

    class Meta:
        verbose_name = "Mentor Balance"
        verbose_name_plural = "Mentor Balances"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_balance__gte=0),
                name="mentor_balance_available_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(pending_balance__gte=0),
                name="mentor_balance_pending_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(total_earnings__gte=0),
                name="mentor_balance_total_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"MentorBalance({self.mentor_id}, available={self.available_balance}, "
            f"pending={self.pending_balance})"
        )

    @property
    def last_updated(self):
        return self.updated_at


class BalanceEntryType(models.TextChoices):
    """
    Kinds of mentor balance movements.

    Values:
        SESSION_CREDIT: Mentor share of a paid session credited
        HOLD_RELEASE: Held earnings moved from pending to available
        PAYOUT_RESERVE: Available funds debited for a payout request
        PAYOUT_RELEASE: Funds restored after a failed or cancelled payout
        DISPUTE_ADJUSTMENT: Mentor share of a dispute refund debited
    """

    SESSION_CREDIT = "session_credit", "Session Credit"
    HOLD_RELEASE = "hold_release", "Hold Release"
    PAYOUT_RESERVE = "payout_reserve", "Payout Reserve"
    PAYOUT_RELEASE = "payout_release", "Payout Release"
    DISPUTE_ADJUSTMENT = "dispute_adjustment", "Dispute Adjustment"


class BalanceEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    Immutable record of one MentorBalance mutation.

    The entries of a mentor, ordered by created_at, are the linear history
    of their balance. Entries are never updated or deleted.

    Fields:
        balance: Balance that was mutated
        entry_type: Kind of movement
        amount: Signed change requested (credits positive, debits negative)
        available_after / pending_after: Balance after the mutation
        shortfall: Part of a dispute debit the balance could not cover
        reference_type / reference_id: Session, payment, payout or dispute
        idempotency_key: Unique key for movements that must happen once
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )

    balance = models.ForeignKey(
        MentorBalance,
        on_delete=models.PROTECT,
        related_name="entries",
        help_text="Balance this entry belongs to",
    )

    entry_type = models.CharField(
        max_length=30,
        choices=BalanceEntryType.choices,
        help_text="Kind of movement",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Signed amount (credits positive, debits negative)",
    )

    available_after = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Available balance after this entry",
    )

    pending_after = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Pending balance after this entry",
    )

    shortfall = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Uncovered part of a dispute debit",
    )

    reference_type = models.CharField(
        max_length=30,
        blank=True,
        default="",
        help_text="Type of related entity (session, payment, payout, dispute)",
    )

    reference_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="UUID of the related entity",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Unique key to prevent duplicate movements",
    )

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Balance Entry"
        verbose_name_plural = "Balance Entries"
        indexes = [
            models.Index(fields=["balance", "created_at"]),
            models.Index(fields=["reference_type", "reference_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.get_entry_type_display()}: {self.amount}"

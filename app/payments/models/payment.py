"""
Payment model for session payments.

A Payment records one charge attempt for a mentorship session through a
payment provider, from intent creation through success and any refunds.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentProvider

    payment = Payment.objects.create(
        session=session,
        mentee=session.mentee,
        provider=PaymentProvider.STRIPE,
        amount=Decimal("500.00"),
        platform_commission=Decimal("75.00"),
        mentor_payout_amount=Decimal("425.00"),
    )

    # State transitions using django-fsm
    payment.mark_pending("pi_123", client_secret="pi_123_secret")
    payment.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin, VersionedMixin
from core.models import BaseModel

from payments.state_machines import (
    PAID_PAYMENT_STATUSES,
    PAYMENT_STATUS_RANK,
    PaymentProvider,
    PaymentStatus,
    PaymobPaymentMethod,
)


class Payment(UUIDPrimaryKeyMixin, VersionedMixin, BaseModel):
    """
    A mentee's payment for one session.

    State Flow:
        CREATED -> PENDING_CONFIRMATION -> SUCCEEDED
        SUCCEEDED -> PARTIALLY_REFUNDED -> FULLY_REFUNDED
        CREATED/PENDING_CONFIRMATION -> FAILED

    Fields:
        session: The session being paid for
        mentee: User paying
        provider: Payment provider handling the charge
        payment_method: Paymob sub-type (card or wallet), Paymob only
        amount/currency: Session price in the platform currency
        charged_amount/charged_currency: What the provider actually charges
        platform_commission: Platform share, frozen at creation
        mentor_payout_amount: Mentor share, frozen at creation
        provider_payment_id: Provider intent / order id
        client_secret: Stripe client secret or Paymob payment key
        checkout_url: Paymob iframe URL (empty for Stripe)
        transaction_id: Provider transaction id once paid
        refund_amount: Total refunded so far (never exceeds amount)
        held_amount: Mentor share credited to pending, awaiting release

    Note:
        Payments are never deleted. A failed payment is kept for audit and
        a new Payment is created for the next attempt; at most one
        non-failed Payment exists per session.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    session = models.ForeignKey(
        "mentorship.Session",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Session this payment is for",
    )

    mentee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="User making the payment",
    )

    # ==========================================================================
    # Provider
    # ==========================================================================

    provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
        help_text="Payment provider handling this charge",
    )

    payment_method = models.PositiveSmallIntegerField(
        choices=PaymobPaymentMethod.choices,
        null=True,
        blank=True,
        help_text="Paymob payment method (card or mobile wallet)",
    )

    provider_payment_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Provider intent id (Stripe pi_xxx) or order id (Paymob)",
    )

    client_secret = models.CharField(
        max_length=1024,
        null=True,
        blank=True,
        help_text="Client secret (Stripe) or payment key (Paymob) for checkout",
    )

    checkout_url = models.URLField(
        max_length=1024,
        blank=True,
        default="",
        help_text="Hosted checkout page (Paymob iframe) the mentee is redirected to",
    )

    transaction_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider transaction id once the payment succeeded",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Session price in the platform currency",
    )

    currency = models.CharField(
        max_length=3,
        default="EGP",
        help_text="ISO 4217 currency code of amount",
    )

    charged_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount charged by the provider after conversion",
    )

    charged_currency = models.CharField(
        max_length=3,
        blank=True,
        default="",
        help_text="ISO 4217 currency code charged by the provider",
    )

    platform_commission = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Platform commission, frozen at creation",
    )

    mentor_payout_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Mentor share of the amount, frozen at creation",
    )

    refund_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Total amount refunded so far",
    )

    held_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Mentor share sitting in pending balance until released",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.CREATED,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    # ==========================================================================
    # Timestamps & Error Info
    # ==========================================================================

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment succeeded",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the most recent refund was processed",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment failed",
    )

    earnings_released_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When held earnings were moved to the available balance",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason reported by the provider if the payment failed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["mentee", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    mentor_payout_amount=models.F("amount")
                    - models.F("platform_commission")
                ),
                name="payment_split_conserves_amount",
            ),
            models.CheckConstraint(
                condition=models.Q(refund_amount__gte=0)
                & models.Q(refund_amount__lte=models.F("amount")),
                name="payment_refund_within_amount",
            ),
            models.CheckConstraint(
                condition=models.Q(held_amount__gte=0),
                name="payment_held_amount_non_negative",
            ),
            models.UniqueConstraint(
                fields=["session"],
                condition=~models.Q(status=PaymentStatus.FAILED),
                name="payment_one_active_per_session",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount} {self.currency})"

    def clean(self):
        super().clean()
        if self.amount is not None and self.platform_commission is not None:
            if self.mentor_payout_amount != self.amount - self.platform_commission:
                raise ValidationError(
                    "mentor_payout_amount + platform_commission must equal amount"
                )
        if self.refund_amount is not None and self.amount is not None:
            if not Decimal("0") <= self.refund_amount <= self.amount:
                raise ValidationError("refund_amount must be between 0 and amount")

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_paid(self) -> bool:
        return self.status in PAID_PAYMENT_STATUSES

    @property
    def refundable_amount(self) -> Decimal:
        """Amount that can still be refunded."""
        return self.amount - self.refund_amount

    @property
    def status_rank(self) -> int:
        return PAYMENT_STATUS_RANK[PaymentStatus(self.status)]

    def reflects(self, status: str) -> bool:
        """
        Whether this payment is already at or past the given status.

        Used to drop duplicate and out-of-order provider notifications.
        """
        return self.status_rank >= PAYMENT_STATUS_RANK[PaymentStatus(status)]

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.CREATED,
        target=PaymentStatus.PENDING_CONFIRMATION,
    )
    def mark_pending(
        self,
        provider_payment_id: str,
        client_secret: str | None = None,
        checkout_url: str | None = None,
    ):
        """
        Record the provider intent and wait for confirmation.

        Transition: CREATED -> PENDING_CONFIRMATION
        """
        self.provider_payment_id = provider_payment_id
        self.client_secret = client_secret
        self.checkout_url = checkout_url or ""

    @transition(
        field=status,
        source=[PaymentStatus.CREATED, PaymentStatus.PENDING_CONFIRMATION],
        target=PaymentStatus.SUCCEEDED,
    )
    def mark_succeeded(self, transaction_id: str):
        """
        Mark the payment as paid.

        Transition: CREATED/PENDING_CONFIRMATION -> SUCCEEDED
        """
        self.transaction_id = transaction_id
        self.paid_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.CREATED, PaymentStatus.PENDING_CONFIRMATION],
        target=PaymentStatus.FAILED,
    )
    def mark_failed(self, reason: str | None = None):
        """
        Mark the payment as failed.

        Transition: CREATED/PENDING_CONFIRMATION -> FAILED

        The mentee retries with a new intent; this row stays for audit.
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=[PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.PARTIALLY_REFUNDED,
    )
    def refund_partial(self, amount: Decimal):
        """
        Record a partial refund.

        Transition: SUCCEEDED/PARTIALLY_REFUNDED -> PARTIALLY_REFUNDED
        """
        self.refund_amount += amount
        self.refunded_at = timezone.now()

    @transition(
        field=status,
        source=[PaymentStatus.SUCCEEDED, PaymentStatus.PARTIALLY_REFUNDED],
        target=PaymentStatus.FULLY_REFUNDED,
    )
    def refund_full(self, amount: Decimal):
        """
        Record the refund that exhausts the payment.

        Transition: SUCCEEDED/PARTIALLY_REFUNDED -> FULLY_REFUNDED
        """
        self.refund_amount += amount
        self.refunded_at = timezone.now()

"""
Mentorship models.

- MentorProfile: A user approved to sell sessions
- Session: A paid mentorship session between a mentor and a mentee

Usage:
    from mentorship.models import MentorProfile, Session, SessionStatus

    session = Session.objects.create(
        mentor=profile,
        mentee=user,
        price=Decimal("500.00"),
        scheduled_at=timezone.now() + timedelta(days=2),
    )
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class SessionStatus(models.TextChoices):
    """
    Booking status of a mentorship session.

    State Flow:
        PENDING → CONFIRMED (payment succeeded) → COMPLETED
        PENDING / CONFIRMED → CANCELLED
    """

    PENDING = "pending", "Pending Payment"
    CONFIRMED = "confirmed", "Confirmed"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class MentorProfile(UUIDPrimaryKeyMixin, BaseModel):
    """
    Mentor attached to a user account.

    A MentorBalance row is opened for the mentor when the profile is
    approved (see SessionService.approve_mentor).
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="mentor_profile",
        help_text="User account of the mentor",
    )

    headline = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Short public description of the mentor",
    )

    is_approved = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether an administrator approved this mentor",
    )

    approved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the mentor was approved",
    )

    class Meta:
        verbose_name = "Mentor Profile"
        verbose_name_plural = "Mentor Profiles"

    def __str__(self) -> str:
        return f"MentorProfile({self.user_id}, approved={self.is_approved})"


class Session(UUIDPrimaryKeyMixin, BaseModel):
    """
    A bookable mentorship session.

    Fields:
        mentor: Mentor delivering the session
        mentee: User who booked and pays for the session
        price: Price in the platform currency
        status: Booking status
        paid_at: When the session payment succeeded
        completed_at: When the session was marked completed
        earnings_credited_at: When the mentor ledger was credited for it.
            Set once; guards against crediting the same session twice.
    """

    mentor = models.ForeignKey(
        MentorProfile,
        on_delete=models.PROTECT,
        related_name="sessions",
        help_text="Mentor delivering the session",
    )

    mentee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="booked_sessions",
        help_text="User who booked the session",
    )

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Session price in the platform currency",
    )

    scheduled_at = models.DateTimeField(
        help_text="Scheduled start time",
    )

    duration_minutes = models.PositiveIntegerField(
        default=60,
        help_text="Planned session length in minutes",
    )

    status = models.CharField(
        max_length=20,
        choices=SessionStatus.choices,
        default=SessionStatus.PENDING,
        db_index=True,
        help_text="Booking status",
    )

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment for this session succeeded",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the session was completed",
    )

    earnings_credited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the mentor's earnings for this session were credited",
    )

    class Meta:
        ordering = ["-scheduled_at"]
        verbose_name = "Session"
        verbose_name_plural = "Sessions"
        indexes = [
            models.Index(fields=["mentor", "status"]),
            models.Index(fields=["mentee", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="session_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Session({self.id}, {self.status}, {self.price})"

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

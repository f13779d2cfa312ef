"""
SessionDispute model for mentee complaints about completed sessions.

A dispute is raised by the mentee within the dispute window and closed
by an administrator with a resolution. Refund resolutions refund the
session payment and reduce the mentor's balance.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import DisputeReason, DisputeResolution, DisputeStatus

DESCRIPTION_MAX_LENGTH = 1000
ADMIN_NOTES_MAX_LENGTH = 1000


class SessionDispute(UUIDPrimaryKeyMixin, BaseModel):
    """
    A mentee's dispute of a completed session.

    State Flow:
        PENDING -> RESOLVED (irreversible)

    Fields:
        session: Disputed session
        mentee: User raising the dispute
        mentor: Mentor of the session, denormalized for admin filtering
        reason: Dispute reason
        description: Free text, required when reason is OTHER
        resolution: Administrator decision
        refund_amount: Amount refunded to the mentee, if any
        admin_notes: Administrator notes
        resolved_by: Administrator who resolved the dispute
        resolved_at: When the dispute was resolved
    """

    session = models.ForeignKey(
        "mentorship.Session",
        on_delete=models.PROTECT,
        related_name="disputes",
        help_text="Disputed session",
    )

    mentee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="disputes",
        help_text="Mentee who raised the dispute",
    )

    mentor = models.ForeignKey(
        "mentorship.MentorProfile",
        on_delete=models.PROTECT,
        related_name="disputes",
        help_text="Mentor of the disputed session",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="disputes",
        help_text="Payment refunded by this dispute, if any",
    )

    reason = models.CharField(
        max_length=30,
        choices=DisputeReason.choices,
        help_text="Why the session is disputed",
    )

    description = models.TextField(
        max_length=DESCRIPTION_MAX_LENGTH,
        blank=True,
        default="",
        help_text="Details from the mentee (required for OTHER)",
    )

    status = FSMField(
        default=DisputeStatus.PENDING,
        choices=DisputeStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the dispute (managed by FSM)",
    )

    resolution = models.CharField(
        max_length=20,
        choices=DisputeResolution.choices,
        null=True,
        blank=True,
        help_text="Administrator decision",
    )

    refund_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount refunded to the mentee",
    )

    admin_notes = models.TextField(
        max_length=ADMIN_NOTES_MAX_LENGTH,
        blank=True,
        default="",
        help_text="Administrator notes",
    )

    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_disputes",
        help_text="Administrator who resolved the dispute",
    )

    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the dispute was resolved",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Session Dispute"
        verbose_name_plural = "Session Disputes"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["mentor", "status"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["session"],
                condition=models.Q(status=DisputeStatus.PENDING),
                name="dispute_one_pending_per_session",
            ),
            models.CheckConstraint(
                condition=models.Q(refund_amount__isnull=True)
                | models.Q(refund_amount__gte=0),
                name="dispute_refund_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"SessionDispute({self.id}, {self.reason}, {self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == DisputeStatus.PENDING

    @transition(
        field=status,
        source=DisputeStatus.PENDING,
        target=DisputeStatus.RESOLVED,
    )
    def resolve(
        self,
        resolution: str,
        refund_amount: Decimal | None = None,
        admin_notes: str | None = None,
        admin=None,
    ):
        """
        Close the dispute with the administrator's decision.

        Transition: PENDING -> RESOLVED
        """
        self.resolution = resolution
        self.refund_amount = refund_amount
        self.admin_notes = admin_notes or ""
        self.resolved_by = admin
        self.resolved_at = timezone.now()

"""
Notification models.

Notifications are created by the payment services after their transaction
commits and delivered by email through Celery. The row doubles as the
in-app inbox entry and the delivery record.

Models:
    Notification: A rendered message for one user, with delivery status

Usage:
    from notifications.models import Notification, NotificationStatus

    Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class NotificationStatus(models.TextChoices):
    """
    Email delivery status of a notification.

    PENDING: Created, delivery task queued
    SENT: Handed to the email backend
    FAILED: Last attempt failed, picked up by retry_failed_notifications
    SKIPPED: Nothing to deliver to (recipient has no email)
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    A user notification.

    Title and body are rendered when the notification is created, so
    later template changes do not rewrite history.

    Fields:
        recipient: User receiving the notification
        type_key: Key of the template used (e.g., "payout_completed")
        title: Rendered title
        body: Rendered body
        data: Template context, kept for clients that render their own copy
        status: Email delivery status
        attempt_count: Number of delivery attempts
        sent_at: When the email was handed to the backend
        failure_reason: Last delivery error
        is_read: In-app read flag
        idempotency_key: Optional key that makes creation idempotent
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    type_key = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Notification template key",
    )
    title = models.CharField(
        max_length=200,
        help_text="Rendered notification title",
    )
    body = models.TextField(
        help_text="Rendered notification body",
    )
    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Context used to render the notification",
    )
    status = models.CharField(
        max_length=20,
        choices=NotificationStatus.choices,
        default=NotificationStatus.PENDING,
        db_index=True,
        help_text="Email delivery status",
    )
    attempt_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of delivery attempts",
    )
    sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the email was handed to the backend",
    )
    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Error from the last failed delivery attempt",
    )
    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the recipient has read this notification",
    )
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Key preventing the same notification from being created twice",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "notification"
        verbose_name_plural = "notifications"
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
            models.Index(
                fields=["status", "updated_at"],
                name="notif_status_updated_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.type_key} -> {self.recipient_id} ({self.status})"

"""
Celery tasks for notification delivery.

Tasks:
    send_email_notification: Deliver a notification by email
    retry_failed_notifications: Periodic re-queue of failed or stuck deliveries

Design:
    - Tasks receive notification_id (UUID string)
    - Tasks are idempotent: re-running on a SENT/SKIPPED notification is a no-op
    - Failures are recorded on the row before the error is re-raised for
      Celery's autoretry, so retry_failed_notifications can pick up rows
      whose retries ran out

Usage:
    from notifications.tasks import send_email_notification

    # Called automatically by NotificationService.notify()
    send_email_notification.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.db.models import F, Q
from django.utils import timezone as django_timezone

from notifications.models import Notification, NotificationStatus

logger = logging.getLogger(__name__)


MAX_DELIVERY_ATTEMPTS = 5

# Deliveries still PENDING after this long lost their queued task
STUCK_PENDING_MINUTES = 15


def _get_deliverable(notification_id: str) -> Notification | None:
    """
    Fetch a notification that still needs delivery.

    Returns None if not found or already SENT/SKIPPED.
    """
    try:
        notification = Notification.objects.select_related("recipient").get(
            id=notification_id
        )
    except Notification.DoesNotExist:
        logger.warning(f"Notification {notification_id} not found")
        return None

    if notification.status in (NotificationStatus.SENT, NotificationStatus.SKIPPED):
        logger.info(
            f"Notification {notification_id} status is {notification.status}, skipping"
        )
        return None
    return notification


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_email_notification(self, notification_id: str) -> bool:
    """
    Send a notification via email.

    Flow:
        1. Fetch notification, skip if already delivered
        2. Skip (SKIPPED) if the recipient has no email
        3. Send through the configured EMAIL_BACKEND
        4. SENT on success; FAILED with the error on failure, then re-raise

    Returns:
        True if sent or skipped
    """
    notification = _get_deliverable(notification_id)
    if notification is None:
        return True

    recipient = notification.recipient
    if not recipient.email:
        notification.status = NotificationStatus.SKIPPED
        notification.save(update_fields=["status", "updated_at"])
        logger.info(
            f"Email notification skipped for {notification_id}: recipient has no email"
        )
        return True

    try:
        send_mail(
            subject=notification.title,
            message=notification.body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient.email],
        )
    except Exception as e:
        Notification.objects.filter(id=notification.id).update(
            status=NotificationStatus.FAILED,
            failure_reason=str(e),
            attempt_count=F("attempt_count") + 1,
            updated_at=django_timezone.now(),
        )
        logger.warning(
            f"Email notification failed for {notification_id}: {e}, will retry",
            extra={"notification_id": notification_id},
        )
        raise

    notification.status = NotificationStatus.SENT
    notification.sent_at = django_timezone.now()
    notification.failure_reason = ""
    notification.attempt_count += 1
    notification.save(
        update_fields=[
            "status",
            "sent_at",
            "failure_reason",
            "attempt_count",
            "updated_at",
        ]
    )
    logger.info(f"Email notification sent for {notification_id}")
    return True


@shared_task
def retry_failed_notifications() -> dict:
    """
    Re-queue failed and stuck notification deliveries.

    Picks FAILED notifications with attempts left, and PENDING ones whose
    delivery task never ran. Scheduled by celery-beat every 15 minutes.

    Returns:
        Dict with the number of notifications re-queued
    """
    stuck_before = django_timezone.now() - timedelta(minutes=STUCK_PENDING_MINUTES)
    notification_ids = list(
        Notification.objects.filter(
            Q(status=NotificationStatus.FAILED, attempt_count__lt=MAX_DELIVERY_ATTEMPTS)
            | Q(status=NotificationStatus.PENDING, updated_at__lt=stuck_before)
        ).values_list("id", flat=True)[:500]
    )

    for notification_id in notification_ids:
        send_email_notification.delay(str(notification_id))

    logger.info(
        f"Re-queued {len(notification_ids)} notifications",
        extra={"count": len(notification_ids)},
    )
    return {"retried_count": len(notification_ids)}

"""
Notification service layer.

Services:
    NotificationService: Notification creation and read status management

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Creation is idempotent when an idempotency_key is given
    - Email delivery is enqueued on Celery after the creating transaction commits

Usage:
    from notifications.services import notification_service

    # Typically from a payment service, inside transaction.on_commit
    result = notification_service.notify(
        recipient=mentor.user,
        type_key="payout_completed",
        data={"payout_id": str(payout.id), "amount": "500.00", "reason": ""},
        idempotency_key=f"payout_completed:{payout.id}",
    )

    # Mark as read
    result = NotificationService.mark_as_read(notification, user)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from notifications.models import Notification
from notifications.types import NOTIFICATION_TYPES

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        notify: Create a notification from a template and queue its email
        mark_as_read: Mark a single notification as read
        mark_all_as_read: Mark all user's unread notifications as read
    """

    @classmethod
    def notify(
        cls,
        recipient: User,
        type_key: str,
        data: dict | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a notification for a user and queue its email delivery.

        Implementation:
            1. Look up the template for type_key
            2. Return the existing notification if idempotency_key was seen
            3. Render title/body from data
            4. Create the notification and enqueue send_email_notification

        Args:
            recipient: User receiving the notification
            type_key: Key in NOTIFICATION_TYPES
            data: Template context (e.g., {"amount": "500.00"})
            idempotency_key: Optional key preventing duplicates

        Returns:
            ServiceResult with the Notification (new or existing)

        Error codes:
            TYPE_NOT_FOUND: Unknown type_key
            MISSING_TEMPLATE_DATA: data lacks a placeholder of the template
        """
        from notifications import tasks

        data = data or {}

        template = NOTIFICATION_TYPES.get(type_key)
        if template is None:
            cls.get_logger().warning(f"Notification type not found: {type_key}")
            return ServiceResult.failure(
                f"Notification type not found: {type_key}",
                error_code="TYPE_NOT_FOUND",
            )

        if idempotency_key:
            existing = Notification.objects.filter(idempotency_key=idempotency_key).first()
            if existing:
                cls.get_logger().info(
                    f"Duplicate notification prevented: idempotency_key={idempotency_key}"
                )
                return ServiceResult.success(existing)

        try:
            title = template.title.format(**data)
            body = template.body.format(**data)
        except KeyError as e:
            cls.get_logger().error(
                f"Missing template data for notification {type_key}: {e}",
                extra={"type_key": type_key, "recipient_id": str(recipient.pk)},
            )
            return ServiceResult.failure(
                f"Missing template data: {e}",
                error_code="MISSING_TEMPLATE_DATA",
            )

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    type_key=type_key,
                    title=title,
                    body=body.strip(),
                    data=data,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Lost a race with a concurrent sender using the same key
            return ServiceResult.success(
                Notification.objects.get(idempotency_key=idempotency_key)
            )

        cls.get_logger().info(
            f"Created notification {notification.id} of type {type_key} "
            f"for user {recipient.pk}"
        )

        notification_id = str(notification.id)
        transaction.on_commit(
            lambda: tasks.send_email_notification.delay(notification_id)
        )
        return ServiceResult.success(notification)

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read.

        Validates that the user owns the notification before marking.
        Operation is idempotent - marking an already-read notification succeeds.

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.pk:
            cls.get_logger().warning(
                f"User {user.pk} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
                http_status=403,
            )

        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """Mark all user's unread notifications as read, returning the count."""
        count = Notification.objects.filter(
            recipient=user,
            is_read=False,
        ).update(is_read=True)

        cls.get_logger().info(f"Marked {count} notifications as read for user {user.pk}")

        return ServiceResult.success(count)


notification_service = NotificationService()

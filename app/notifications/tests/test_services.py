"""
Unit tests for notification services.

Test Classes:
    TestNotify: Template rendering, idempotency and delivery queuing
    TestMarkAsRead: Ownership and idempotent read marking
    TestMarkAllAsRead: Bulk read marking
"""

import pytest
from django.core import mail

from notifications.models import Notification, NotificationStatus
from notifications.services import NotificationService, notification_service
from notifications.tests.factories import NotificationFactory
from notifications.types import NOTIFICATION_TYPES


@pytest.mark.django_db
class TestNotify:
    def test_renders_template(self, user):
        result = notification_service.notify(
            recipient=user,
            type_key="payout_failed",
            data={"amount": "300.00", "reason": "Account closed."},
        )

        assert result.success
        notification = result.data
        assert notification.recipient == user
        assert notification.title == "Payout failed"
        assert notification.body == (
            "Your payout of 300.00 EGP failed and was returned to your balance. "
            "Account closed."
        )
        assert notification.data == {"amount": "300.00", "reason": "Account closed."}
        assert notification.status == NotificationStatus.PENDING

    def test_trailing_whitespace_trimmed(self, user):
        result = notification_service.notify(
            recipient=user,
            type_key="payment_failed",
            data={"reason": ""},
        )

        assert result.data.body == "Your payment could not be completed."

    @pytest.mark.parametrize("type_key", sorted(NOTIFICATION_TYPES))
    def test_every_type_renders(self, user, type_key):
        data = {
            "amount": "500.00",
            "reason": "",
            "resolution": "full_refund",
            "refund_amount": "500.00",
        }

        assert notification_service.notify(user, type_key, data).success

    def test_unknown_type(self, user):
        result = notification_service.notify(user, "newsletter", {})

        assert not result.success
        assert result.error_code == "TYPE_NOT_FOUND"
        assert not Notification.objects.exists()

    def test_missing_placeholder(self, user):
        result = notification_service.notify(user, "payout_completed", {})

        assert result.error_code == "MISSING_TEMPLATE_DATA"
        assert not Notification.objects.exists()

    def test_idempotency_key_returns_existing(self, user):
        first = notification_service.notify(
            user, "payout_completed", {"amount": "300.00"}, idempotency_key="payout_completed:1"
        )
        second = notification_service.notify(
            user, "payout_completed", {"amount": "300.00"}, idempotency_key="payout_completed:1"
        )

        assert second.success
        assert second.data.id == first.data.id
        assert Notification.objects.count() == 1

    def test_email_queued_after_commit(self, user, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            result = notification_service.notify(user, "payout_completed", {"amount": "300.00"})

        assert len(callbacks) == 1
        assert len(mail.outbox) == 1
        assert mail.outbox[0].subject == "Payout completed"
        assert mail.outbox[0].to == ["mona@example.com"]
        result.data.refresh_from_db()
        assert result.data.status == NotificationStatus.SENT

    def test_nothing_sent_before_commit(self, user):
        notification_service.notify(user, "payout_completed", {"amount": "300.00"})

        assert mail.outbox == []


@pytest.mark.django_db
class TestMarkAsRead:
    def test_marks_read(self, user, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, user)

        assert result.success
        unread_notification.refresh_from_db()
        assert unread_notification.is_read is True

    def test_already_read_is_noop(self, user, read_notification):
        result = NotificationService.mark_as_read(read_notification, user)

        assert result.success
        assert result.data.is_read is True

    def test_other_users_notification(self, other_user, unread_notification):
        result = NotificationService.mark_as_read(unread_notification, other_user)

        assert not result.success
        assert result.error_code == "NOT_OWNER"
        assert result.http_status == 403
        unread_notification.refresh_from_db()
        assert unread_notification.is_read is False


@pytest.mark.django_db
class TestMarkAllAsRead:
    def test_marks_only_users_unread(
        self, user, multiple_unread_notifications, read_notification, other_user_notifications
    ):
        result = NotificationService.mark_all_as_read(user)

        assert result.data == 3
        assert not Notification.objects.filter(recipient=user, is_read=False).exists()
        assert Notification.objects.filter(is_read=False).count() == 3

    def test_nothing_to_mark(self, user):
        assert NotificationService.mark_all_as_read(user).data == 0


@pytest.mark.django_db
def test_factory_notifications_are_not_delivered(user):
    NotificationFactory(recipient=user)

    assert mail.outbox == []

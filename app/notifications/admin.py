"""
Django admin configuration for notification models.
"""

from django.contrib import admin

from notifications.models import Notification, NotificationStatus
from notifications.tasks import send_email_notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Notifications are created by services; the admin only views them and
    can re-queue failed deliveries.
    """

    list_display = [
        "id",
        "recipient",
        "type_key",
        "title",
        "status",
        "attempt_count",
        "is_read",
        "created_at",
    ]
    list_filter = ["status", "type_key", "is_read", "created_at"]
    search_fields = ["id", "recipient__email", "title", "idempotency_key"]
    readonly_fields = [
        "id",
        "recipient",
        "type_key",
        "title",
        "body",
        "data",
        "status",
        "attempt_count",
        "sent_at",
        "failure_reason",
        "idempotency_key",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["resend"]

    @admin.action(description="Re-send selected failed notifications")
    def resend(self, request, queryset):
        ids = list(
            queryset.filter(status=NotificationStatus.FAILED).values_list("id", flat=True)
        )
        for notification_id in ids:
            send_email_notification.delay(str(notification_id))
        self.message_user(request, f"Re-queued {len(ids)} notifications.")

    def has_add_permission(self, request) -> bool:
        return False

"""
Payment admin configuration.

Registers the payment domain models with the Django admin. Money-moving
fields are read-only: state changes go through the service layer, which
is what the payout actions below call into.
"""

from django.contrib import admin

from payments.models import (
    BalanceEntry,
    MentorBalance,
    Payment,
    Payout,
    SessionDispute,
    WebhookEvent,
)
from payments.services import payout_manager
from payments.state_machines import PayoutStatus

__all__ = [
    "PaymentAdmin",
    "MentorBalanceAdmin",
    "PayoutAdmin",
    "SessionDisputeAdmin",
    "WebhookEventAdmin",
]


# =============================================================================
# Payments
# =============================================================================


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Payments are driven by provider callbacks and the reconciliation
    sweep, so nothing here is editable.
    """

    list_display = [
        "id",
        "session",
        "mentee",
        "provider",
        "amount_display",
        "status",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "provider", "created_at"]
    search_fields = ["id", "provider_payment_id", "transaction_id", "mentee__email"]
    readonly_fields = [
        "id",
        "session",
        "mentee",
        "provider",
        "payment_method",
        "provider_payment_id",
        "transaction_id",
        "checkout_url",
        "amount",
        "currency",
        "charged_amount",
        "charged_currency",
        "platform_commission",
        "mentor_payout_amount",
        "refund_amount",
        "held_amount",
        "status",
        "paid_at",
        "refunded_at",
        "failed_at",
        "earnings_released_at",
        "failure_reason",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "session", "mentee", "status"),
            },
        ),
        (
            "Provider",
            {
                "fields": (
                    "provider",
                    "payment_method",
                    "provider_payment_id",
                    "transaction_id",
                    "checkout_url",
                ),
            },
        ),
        (
            "Amounts",
            {
                "fields": (
                    "amount",
                    "currency",
                    "charged_amount",
                    "charged_currency",
                    "platform_commission",
                    "mentor_payout_amount",
                    "refund_amount",
                    "held_amount",
                ),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": ("paid_at", "refunded_at", "failed_at", "earnings_released_at"),
                "classes": ("collapse",),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("version", "created_at", "updated_at"),
            },
        ),
    )

    def amount_display(self, obj: Payment) -> str:
        """Display the amount formatted as currency."""
        return f"{obj.amount:.2f} {obj.currency}"

    amount_display.short_description = "Amount"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False


# =============================================================================
# Balances
# =============================================================================


class BalanceEntryInline(admin.TabularInline):
    """Inline display of the balance history."""

    model = BalanceEntry
    extra = 0
    ordering = ["-created_at"]
    readonly_fields = [
        "entry_type",
        "amount",
        "available_after",
        "pending_after",
        "shortfall",
        "reference_type",
        "reference_id",
        "created_at",
    ]
    fields = readonly_fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(MentorBalance)
class MentorBalanceAdmin(admin.ModelAdmin):
    """Read-only view of mentor balances and their history."""

    list_display = [
        "mentor",
        "available_balance",
        "pending_balance",
        "total_earnings",
        "shortfall",
        "updated_at",
    ]
    search_fields = ["mentor__user__email"]
    readonly_fields = [
        "id",
        "mentor",
        "available_balance",
        "pending_balance",
        "total_earnings",
        "shortfall",
        "version",
        "created_at",
        "updated_at",
    ]
    inlines = [BalanceEntryInline]
    ordering = ["-updated_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


# =============================================================================
# Payouts
# =============================================================================


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payout.

    Transitions are bulk actions that go through PayoutManager, so the
    mentor's balance is restored on cancel.
    """

    list_display = [
        "id",
        "mentor",
        "amount",
        "currency",
        "status",
        "requested_at",
        "processed_by",
    ]
    list_filter = ["status", "requested_at"]
    search_fields = ["id", "mentor__user__email"]
    readonly_fields = [
        "id",
        "mentor",
        "amount",
        "currency",
        "status",
        "requested_at",
        "processed_at",
        "completed_at",
        "failed_at",
        "cancelled_at",
        "processed_by",
        "failure_reason",
        "version",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "requested_at"
    ordering = ["-requested_at"]
    actions = ["process_payouts", "complete_payouts", "cancel_payouts"]

    def _run(self, request, queryset, status, operation, label):
        done = 0
        for payout_id in queryset.filter(status=status).values_list("id", flat=True):
            result = operation(payout_id)
            if result.success:
                done += 1
            else:
                self.message_user(
                    request,
                    f"Payout {payout_id}: {result.error}",
                    level="error",
                )
        self.message_user(request, f"{label} {done} payouts.")

    @admin.action(description="Mark selected pending payouts as processing")
    def process_payouts(self, request, queryset):
        self._run(
            request,
            queryset,
            PayoutStatus.PENDING,
            lambda pk: payout_manager.process(pk, admin=request.user),
            "Processing",
        )

    @admin.action(description="Mark selected processing payouts as completed")
    def complete_payouts(self, request, queryset):
        self._run(
            request, queryset, PayoutStatus.PROCESSING, payout_manager.complete, "Completed"
        )

    @admin.action(description="Cancel selected pending payouts")
    def cancel_payouts(self, request, queryset):
        self._run(
            request,
            queryset,
            PayoutStatus.PENDING,
            lambda pk: payout_manager.cancel(pk, admin=request.user),
            "Cancelled",
        )

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payouts (audit trail)."""
        return False


# =============================================================================
# Disputes
# =============================================================================


@admin.register(SessionDispute)
class SessionDisputeAdmin(admin.ModelAdmin):
    """
    Admin configuration for SessionDispute.

    Resolution refunds the provider, so it is only available through the
    admin API, never by editing the row.
    """

    list_display = [
        "id",
        "session",
        "mentee",
        "mentor",
        "reason",
        "status",
        "resolution",
        "refund_amount",
        "created_at",
    ]
    list_filter = ["status", "reason", "resolution", "created_at"]
    search_fields = ["id", "mentee__email", "mentor__user__email"]
    readonly_fields = [
        "id",
        "session",
        "mentee",
        "mentor",
        "payment",
        "reason",
        "description",
        "status",
        "resolution",
        "refund_amount",
        "admin_notes",
        "resolved_by",
        "resolved_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


# =============================================================================
# Webhooks
# =============================================================================


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "provider",
        "event_id",
        "event_type",
        "status",
        "outcome",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["provider", "status", "outcome", "event_type", "created_at"]
    search_fields = ["id", "event_id", "provider_payment_id"]
    readonly_fields = [
        "id",
        "provider",
        "event_id",
        "event_type",
        "provider_payment_id",
        "payload",
        "status",
        "outcome",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "provider", "event_id", "event_type", "status", "outcome"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("provider_payment_id", "processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False

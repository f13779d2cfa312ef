"""
Django admin configuration for mentorship models.

Approval and completion are admin actions that go through SessionService,
so approving opens the mentor's balance and completing credits it.
"""

from django.contrib import admin

from mentorship.models import MentorProfile, Session, SessionStatus
from mentorship.services import session_service


@admin.register(MentorProfile)
class MentorProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "headline", "is_approved", "approved_at", "created_at")
    list_filter = ("is_approved",)
    search_fields = ("user__email", "headline")
    readonly_fields = ("id", "is_approved", "approved_at", "created_at", "updated_at")
    actions = ["approve_mentors"]

    @admin.action(description="Approve selected mentors")
    def approve_mentors(self, request, queryset):
        approved = 0
        for mentor_id in queryset.filter(is_approved=False).values_list("id", flat=True):
            if session_service.approve_mentor(mentor_id).success:
                approved += 1
        self.message_user(request, f"Approved {approved} mentors.")


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "mentor",
        "mentee",
        "price",
        "status",
        "scheduled_at",
        "paid_at",
        "completed_at",
    )
    list_filter = ("status", "scheduled_at")
    search_fields = ("id", "mentor__user__email", "mentee__email")
    readonly_fields = (
        "id",
        "status",
        "paid_at",
        "completed_at",
        "earnings_credited_at",
        "created_at",
        "updated_at",
    )
    date_hierarchy = "scheduled_at"
    actions = ["complete_sessions"]

    @admin.action(description="Mark selected confirmed sessions as completed")
    def complete_sessions(self, request, queryset):
        completed = 0
        for session_id in queryset.filter(status=SessionStatus.CONFIRMED).values_list(
            "id", flat=True
        ):
            result = session_service.complete_session(session_id)
            if result.success:
                completed += 1
            else:
                self.message_user(
                    request, f"Session {session_id}: {result.error}", level="error"
                )
        self.message_user(request, f"Completed {completed} sessions.")

"""Django app configuration for mentorship."""

from django.apps import AppConfig


class MentorshipConfig(AppConfig):
    """Configuration for the mentorship app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "mentorship"
    verbose_name = "Mentorship"

"""
Celery configuration for the Django application.

Background work in this project:
- payments.tasks.reconcile_stale_payments: polls providers for intents that
  never received a webhook
- payments.tasks.release_held_earnings: moves matured holds to available
- notifications.tasks.*: fire-and-forget delivery and its retries

Redis is both broker and result backend. Periodic schedules are declared in
settings.CELERY_BEAT_SCHEDULE and stored by django-celery-beat's
DatabaseScheduler.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import logging
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Discover tasks.py in every installed app
app.autodiscover_tasks()

logger = logging.getLogger(__name__)


@app.task(bind=True, ignore_result=True)
def debug_task(self):
    """Log the current request to verify worker connectivity."""
    logger.info("Celery debug task request: %r", self.request)

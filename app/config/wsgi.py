"""
WSGI config for the Django application.

Gunicorn and other WSGI servers use this entry point; provider webhooks are
synchronous request/response exchanges, so WSGI is the primary deployment.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()

"""
Repository-level pytest configuration.

Django itself is configured in app/conftest.py; this file only makes sure
the settings module is known when pytest is started from the repository
root.
"""

import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

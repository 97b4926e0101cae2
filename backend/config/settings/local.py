"""
Local development settings.

Extends base settings with development-friendly defaults.
"""

from .base import *  # noqa: F403

DEBUG = True
ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Pretty console logs
LOG_JSON_FORMAT = False
LOG_LEVEL = "DEBUG"

# Print notification emails instead of sending them
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

"""
Test settings.

SQLite file database (async tests run against a real transaction-capable
database), locmem email and no background timers.
"""

from .base import *  # noqa: F403
from .base import BASE_DIR

DEBUG = False
SECRET_KEY = "django-insecure-test-key"
ALLOWED_HOSTS = ["testserver"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test.sqlite3",
        "TEST": {"NAME": BASE_DIR / "test_db.sqlite3"},
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

LOG_JSON_FORMAT = False
LOG_LEVEL = "WARNING"

SYNC_ENABLE_BACKGROUND_SYNC = False
SYNC_ON_ENQUEUE = False
SYNC_RETRY_BACKOFF_BASE_SECONDS = 0
SYNC_APPLY_TIMEOUT_SECONDS = 5
SYNC_CONNECTIVITY_URL = ""

NOTIFICATION_ENABLE_PROCESSOR = False
NOTIFICATION_PUSH_BACKEND = "local"
NOTIFICATION_SMS_BACKEND = "local"
AWS_SMS_ORIGINATION_IDENTITY = "+15550000000"

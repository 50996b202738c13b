"""
Test settings for pytest.
"""
from .base import *  # noqa: F401, F403

DEBUG = False

# Use in-memory SQLite for fast tests
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Speed up password hashing in tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Keep outbound notifications local
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
TELEGRAM_BOT_TOKEN = ""

# In-memory job store, no retry delays
JOB_STORE_URL = ""
JOB_MAX_ATTEMPTS = 2
JOB_RETRY_BACKOFF = 0
WORKER_CONCURRENCY = 2
WORKER_REGION = "test-region"

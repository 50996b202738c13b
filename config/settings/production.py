"""
Production settings.
"""
import dj_database_url

from .base import *  # noqa: F401, F403

DEBUG = False

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["api.pulse.local"])  # noqa: F405

# PostgreSQL via DATABASE_URL
DATABASES = {
    "default": dj_database_url.config(
        default="postgres://localhost:5432/pulse",
        conn_max_age=600,
        conn_health_checks=True,
    )
}

# Recurring probe jobs live next to the application data unless overridden.
# SQLAlchemy only accepts the "postgresql" scheme.
JOB_STORE_URL = env(  # noqa: F405
    "JOB_STORE_URL",
    default=env("DATABASE_URL", default="postgresql://localhost:5432/pulse").replace(  # noqa: F405
        "postgres://", "postgresql://", 1
    ),
)

# Security settings for production
SECURE_BROWSER_XSS_FILTER = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = "DENY"
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True

# Proxy configuration
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# CSRF settings
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True

CSRF_TRUSTED_ORIGINS = env.list(  # noqa: F405
    "CSRF_TRUSTED_ORIGINS",
    default=[f"https://{host}" for host in ALLOWED_HOSTS if host not in ["localhost", "127.0.0.1"]]
)

"""
Settings for the marketplace wallets service.

One settings module for every environment; anything that differs between
environments is read from the process environment (or an env file named
by ENV_FILE) through django-environ.

Variables:
    SECRET_KEY, DEBUG, ALLOWED_HOSTS
    DATABASE_URL                        PostgreSQL in deployment, SQLite locally
    CELERY_BROKER_URL, CELERY_RESULT_BACKEND
    WALLET_CURRENCY                     ISO code, lower case (default: xaf)
    REFUND_TASK_MAX_ATTEMPTS            total attempts per refund (default: 3)
    REFUND_TASK_BACKOFF                 seconds before each retry (default: 10,30,60)
    ORDER_CANCELLATION_WINDOW_MINUTES   default client window (default: 30)
    LOG_LEVEL, LOG_FILE_NAME
"""

import os
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    LOG_LEVEL=(str, "INFO"),
    WALLET_CURRENCY=(str, "xaf"),
    REFUND_TASK_MAX_ATTEMPTS=(int, 3),
    REFUND_TASK_BACKOFF=(list, [10, 30, 60]),
    ORDER_CANCELLATION_WINDOW_MINUTES=(int, 30),
)

env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

SECRET_KEY = env("SECRET_KEY", default="insecure-development-key-change-me")
DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "core",
    "tenants",
    "orders",
    "wallets",
    "activity",
    "notifications",
    "refunds",
]

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Database
# =============================================================================
# Balance writes and the refund workflow rely on SELECT ... FOR UPDATE,
# which SQLite ignores; run more than one worker only against PostgreSQL.
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    ),
}

TIME_ZONE = "UTC"
USE_TZ = True

# =============================================================================
# Celery
# =============================================================================
CELERY_BROKER_URL = env("CELERY_BROKER_URL", default="redis://localhost:6379/1")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default="redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 5 * 60

# Refund tasks ack late; a worker dying mid-refund hands the message back
# to the broker and the workflow's idempotency makes the redelivery safe.
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_TASK_ROUTES = {
    "refunds.tasks.*": {"queue": "refunds"},
    "notifications.tasks.*": {"queue": "notifications"},
}

# =============================================================================
# Wallets and refunds
# =============================================================================
# Amounts are integers in minor units of this one currency
WALLET_CURRENCY = env("WALLET_CURRENCY")

# REFUND_TASK_BACKOFF[n] is the delay before retry n + 1; the last value
# repeats if there are more retries than delays
REFUND_TASK_MAX_ATTEMPTS = env("REFUND_TASK_MAX_ATTEMPTS")
REFUND_TASK_BACKOFF = [int(delay) for delay in env("REFUND_TASK_BACKOFF")]

# A tenant's cancellation_window_minutes overrides this when set
ORDER_CANCELLATION_WINDOW_MINUTES = env("ORDER_CANCELLATION_WINDOW_MINUTES")

# =============================================================================
# Email
# =============================================================================
EMAIL_BACKEND = env(
    "EMAIL_BACKEND",
    default="django.core.mail.backends.console.EmailBackend",
)
EMAIL_HOST = env("EMAIL_HOST", default="localhost")
EMAIL_PORT = env.int("EMAIL_PORT", default=587)
EMAIL_USE_TLS = env.bool("EMAIL_USE_TLS", default=True)
EMAIL_HOST_USER = env("EMAIL_HOST_USER", default="")
EMAIL_HOST_PASSWORD = env("EMAIL_HOST_PASSWORD", default="")
DEFAULT_FROM_EMAIL = env("DEFAULT_FROM_EMAIL", default="wallets@localhost")

# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL = env("LOG_LEVEL")

# celery-worker.log, web.log, ... one file per process type
LOG_FILE_NAME = env("LOG_FILE_NAME", default="wallets.log")
LOG_DIR = BASE_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

# Loggers that get the console and file handlers directly
_PROJECT_LOGGERS = (
    "django",
    "celery",
    "orders",
    "wallets",
    "refunds",
    "notifications",
    "activity",
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "{levelname} {asctime} {name} {process:d} {message}",
            "style": "{",
        },
        "file": {
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "console",
        },
        "file": {
            "level": "DEBUG",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / LOG_FILE_NAME,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {
        "handlers": ["console", "file"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        name: {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": False,
        }
        for name in _PROJECT_LOGGERS
    },
}

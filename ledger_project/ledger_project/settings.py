"""
Django settings for ledger_project.

Everything environment specific is read from environment variables so the
same module works for local runs, the test suite and the Celery workers.
"""
import os
from pathlib import Path

from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-not-secret")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "ledger_core",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "ledger_project.urls"

# sqlite for local runs and tests, postgres when LEDGER_DB_ENGINE says so
if os.environ.get("LEDGER_DB_ENGINE", "sqlite") == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("LEDGER_DB_NAME", "ledger"),
            "USER": os.environ.get("LEDGER_DB_USER", "ledger"),
            "PASSWORD": os.environ.get("LEDGER_DB_PASSWORD", ""),
            "HOST": os.environ.get("LEDGER_DB_HOST", "localhost"),
            "PORT": os.environ.get("LEDGER_DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("LEDGER_DB_NAME", str(BASE_DIR / "db.sqlite3")),
            # writers queue on BEGIN instead of failing on lock upgrade, so
            # concurrent numbering works without row locks
            "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
            # file backed so tests can open one connection per thread
            "TEST": {"NAME": str(BASE_DIR / "test_ledger.sqlite3")},
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"
LANGUAGE_CODE = "en-us"

# --- Celery ---
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", None)
CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "0") == "1"
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    # scheduled payments, recurring journals and gateway settlements for every company
    "ledger-daily-batches": {
        "task": "ledger_core.tasks.run_daily_batches",
        "schedule": crontab(hour=2, minute=0),
    },
}

# --- Ledger behaviour (see ledger_core.conf for the defaults) ---
# LEDGER_MATCH_QUANTITY_TOLERANCE_PCT = 2
# LEDGER_MATCH_PRICE_TOLERANCE_PCT = 1
# LEDGER_RECONCILIATION_TOLERANCE = "0.01"
# LEDGER_SETTLEMENT_BACKEND = "ledger_core.services.settlement.ImmediateSettlementBackend"

LOG_LEVEL = os.environ.get("LEDGER_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "ledger_core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "django": {"handlers": ["console"], "level": "WARNING"},
    },
}

"""Django settings for the Ghost Kitchen web app.

Every value can be overridden from the environment so the same image runs
locally (SQLite, in-process adapters) and in compose (Postgres, catalog and
realtime services over HTTP).
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-not-secret")
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "apps.orders",
]

MIDDLEWARE = [
    "gateway.middleware.RequestIdMiddleware",
    "django.middleware.common.CommonMiddleware",
    "gateway.middleware.ActorMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

if os.getenv("DB_ENGINE", "sqlite") == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME", "orders"),
            "USER": os.getenv("DB_USER", "orders_user"),
            "PASSWORD": os.getenv("DB_PASSWORD", "orders-pass"),
            "HOST": os.getenv("DB_HOST", "orders-db"),
            "PORT": os.getenv("DB_PORT", "5432"),
            "CONN_MAX_AGE": int(os.getenv("DB_CONN_MAX_AGE", "60")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

REST_FRAMEWORK = {
    # Identity comes from gateway.middleware.ActorMiddleware
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_THROTTLE_RATES": {
        "orders_list": os.getenv("THROTTLE_ORDERS_LIST", "120/min"),
        "orders_create": os.getenv("THROTTLE_ORDERS_CREATE", "30/min"),
        "orders_detail": os.getenv("THROTTLE_ORDERS_DETAIL", "240/min"),
        "orders_status": os.getenv("THROTTLE_ORDERS_STATUS", "120/min"),
    },
}

# Downstream services
USE_HTTP_ADAPTERS = env_bool("USE_HTTP_ADAPTERS", False)
CATALOG_BASE_URL = os.getenv("CATALOG_BASE_URL", "http://catalog:9001")
REALTIME_BASE_URL = os.getenv("REALTIME_BASE_URL", "http://realtime:9002")
HTTP_TIMEOUT_SECS = float(os.getenv("HTTP_TIMEOUT_SECS", "2.0"))
HTTP_RETRY_MAX = int(os.getenv("HTTP_RETRY_MAX", "3"))
HTTP_RETRY_BACKOFF_BASE = float(os.getenv("HTTP_RETRY_BACKOFF_BASE", "0.15"))
HTTP_RETRY_MAX_SLEEP = float(os.getenv("HTTP_RETRY_MAX_SLEEP", "0.5"))
HTTP_CIRCUIT_FAIL_THRESHOLD = int(os.getenv("HTTP_CIRCUIT_FAIL_THRESHOLD", "5"))
HTTP_CIRCUIT_RESET_TIMEOUT = float(os.getenv("HTTP_CIRCUIT_RESET_TIMEOUT", "30"))

# Order codes
ORDER_CODE_LENGTH = int(os.getenv("ORDER_CODE_LENGTH", "4"))
ORDER_CODE_MAX_ATTEMPTS = int(os.getenv("ORDER_CODE_MAX_ATTEMPTS", "10"))
ORDER_CODE_PERSIST_RETRIES = int(os.getenv("ORDER_CODE_PERSIST_RETRIES", "1"))

# Tracking view pacing (cosmetic)
ORDER_TRACKING_PREPARE_SECS = float(os.getenv("ORDER_TRACKING_PREPARE_SECS", "20"))
ORDER_TRACKING_READY_SECS = float(os.getenv("ORDER_TRACKING_READY_SECS", "60"))
ORDER_TRACKING_POLL_SECS = float(os.getenv("ORDER_TRACKING_POLL_SECS", "4"))
ORDERS_API_BASE_URL = os.getenv("ORDERS_API_BASE_URL", "http://localhost:8000/api")

LOCKER_DEVICE_NAME = os.getenv("LOCKER_DEVICE_NAME", "locker-01")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": "gateway.logging_filters.RequestIdFilter"},
    },
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(actor_role)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["request_id"],
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "orders": {"level": LOG_LEVEL, "propagate": True},
        "django.request": {"level": "WARNING", "propagate": True},
    },
}

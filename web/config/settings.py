"""Django settings for the storefront core.

Every deployment-relevant value is read from the environment so the same
module serves local development, the test suite and the gunicorn image.
"""

import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "apps.cart",
    "apps.orders",
]

MIDDLEWARE = [
    "gateway.middleware.RequestIdMiddleware",
    "gateway.middleware.ApiSizeLimitMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

if os.getenv("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB"),
            "USER": os.getenv("POSTGRES_USER", "shop"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", "shop"),
            "HOST": os.getenv("POSTGRES_HOST", "web-db"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
            "CONN_MAX_AGE": int(os.getenv("DB_CONN_MAX_AGE", "60")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
            # Writers take the lock up front and wait for it, instead of
            # failing with "database is locked" on a read-to-write upgrade
            "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
            # File-backed so request threads share one database
            "TEST": {"NAME": str(BASE_DIR / "test_db.sqlite3")},
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

CACHES = {
    "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["gateway.authentication.IdentityHeaderAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_THROTTLE_RATES": {
        "cart": os.getenv("THROTTLE_CART", "600/min"),
        "checkout": os.getenv("THROTTLE_CHECKOUT", "120/min"),
        "payments": os.getenv("THROTTLE_PAYMENTS", "120/min"),
        "orders_read": os.getenv("THROTTLE_ORDERS_READ", "600/min"),
    },
}

# ---- External collaborators ----
USE_HTTP_ADAPTERS = _env_bool("USE_HTTP_ADAPTERS", True)
CATALOG_BASE_URL = os.getenv("CATALOG_BASE_URL", "http://catalog:9001")
PAYMENT_GATEWAY_BASE_URL = os.getenv("PAYMENT_GATEWAY_BASE_URL", "http://gateway:9002")
PAYMENT_GATEWAY_KEY_ID = os.getenv("PAYMENT_GATEWAY_KEY_ID", "rzp_test_1234567890ABCDE")
PAYMENT_GATEWAY_KEY_SECRET = os.getenv("PAYMENT_GATEWAY_KEY_SECRET", "test_secret_key")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")

HTTP_TIMEOUT_SECS = float(os.getenv("HTTP_TIMEOUT_SECS", "5.0"))
HTTP_RETRY_MAX = int(os.getenv("HTTP_RETRY_MAX", "2"))
HTTP_RETRY_BACKOFF_BASE = float(os.getenv("HTTP_RETRY_BACKOFF_BASE", "0.15"))
HTTP_RETRY_MAX_SLEEP = float(os.getenv("HTTP_RETRY_MAX_SLEEP", "0.5"))
HTTP_CIRCUIT_FAIL_THRESHOLD = int(os.getenv("HTTP_CIRCUIT_FAIL_THRESHOLD", "5"))
HTTP_CIRCUIT_RESET_TIMEOUT = float(os.getenv("HTTP_CIRCUIT_RESET_TIMEOUT", "30.0"))
# Per-service overrides, e.g. CATALOG_CIRCUIT_FAIL_THRESHOLD
HTTP_CIRCUITS = {
    name: {
        "fail_threshold": int(os.getenv(f"{name.upper()}_CIRCUIT_FAIL_THRESHOLD", str(HTTP_CIRCUIT_FAIL_THRESHOLD))),
        "reset_timeout": float(os.getenv(f"{name.upper()}_CIRCUIT_RESET_TIMEOUT", str(HTTP_CIRCUIT_RESET_TIMEOUT))),
    }
    for name in ("catalog", "gateway")
}

# ---- Pricing policy ----
FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "100"))
SHIPPING_FLAT_FEE = Decimal(os.getenv("SHIPPING_FLAT_FEE", "9.99"))
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.08"))

# ---- Concurrency ----
CART_WRITE_RETRIES = int(os.getenv("CART_WRITE_RETRIES", "3"))
ORDER_NUMBER_RETRIES = int(os.getenv("ORDER_NUMBER_RETRIES", "3"))

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
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["request_id"],
        },
    },
    "loggers": {
        "shop": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}

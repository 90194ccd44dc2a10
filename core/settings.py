"""
Django settings for the commodity pricing backend.
Values are read from the environment (optionally a .env file).
"""

import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

from core.scheduling import daily_crontab

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-change-me")
DEBUG = env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "apps.exchange",
    "apps.pricing",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "core.urls"
WSGI_APPLICATION = "core.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DB_ENGINE = os.getenv("DB_ENGINE", "sqlite")

if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME", "pricing"),
            "USER": os.getenv("DB_USER", "postgres"),
            "PASSWORD": os.getenv("DB_PASSWORD", ""),
            "HOST": os.getenv("DB_HOST", "localhost"),
            "PORT": os.getenv("DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / os.getenv("DB_NAME", "db.sqlite3"),
        }
    }

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Holds the daily update lock, so web and worker processes must share it.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": os.getenv("CACHE_URL", REDIS_URL),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

REST_FRAMEWORK = {
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "EXCEPTION_HANDLER": "core.exceptions.api_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Commodity Pricing API",
    "DESCRIPTION": "Commodity prices, currency conversion and daily price updates.",
    "VERSION": "1.0.0",
}

# Rate provider
CURRENCY_API_URL = os.getenv("CURRENCY_API_URL", "https://api.exchangerate-api.com/v4/latest")
CURRENCY_API_KEY = os.getenv("CURRENCY_API_KEY") or None
CURRENCY_API_TIMEOUT = int(os.getenv("CURRENCY_API_TIMEOUT", "10"))
CURRENCY_API_USER_AGENT = os.getenv("CURRENCY_API_USER_AGENT", "CommodityPricing-Backend/1.0")

# Rate resolution
CURRENCY_FALLBACK_RATE = Decimal(os.getenv("CURRENCY_FALLBACK_RATE", "0.054"))
CURRENCY_FALLBACK_BASE_FROM = os.getenv("CURRENCY_FALLBACK_BASE_FROM", "ZAR")
CURRENCY_FALLBACK_BASE_TO = os.getenv("CURRENCY_FALLBACK_BASE_TO", "USD")
CURRENCY_FALLBACK_INVERSE_PRECISION = int(os.getenv("CURRENCY_FALLBACK_INVERSE_PRECISION", "6"))
CURRENCY_TABLE_CACHE_TTL_SECONDS = int(os.getenv("CURRENCY_TABLE_CACHE_TTL_SECONDS", "900"))
EXCHANGE_RATE_MAX_AGE_HOURS = int(os.getenv("EXCHANGE_RATE_MAX_AGE_HOURS", "4"))

# Daily price update
PRICE_UPDATE_TIME = os.getenv("PRICE_UPDATE_TIME", "09:00")
PRICE_UPDATE_TIMEZONE = os.getenv("PRICE_UPDATE_TIMEZONE", "Africa/Johannesburg")
PRICE_UPDATE_LOCK_TIMEOUT = int(os.getenv("PRICE_UPDATE_LOCK_TIMEOUT", "600"))

# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL)
CELERY_TIMEZONE = PRICE_UPDATE_TIMEZONE
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_BEAT_SCHEDULE = {
    "daily-price-update": {
        "task": "update_daily_prices",
        "schedule": daily_crontab(PRICE_UPDATE_TIME),
        "kwargs": {"trigger_source": "cron"},
    },
}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "apps": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": True,
        },
        "core": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": True,
        },
    },
}

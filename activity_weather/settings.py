"""Django settings for the activity weather engine."""
from __future__ import annotations

import os

from django.core.exceptions import ImproperlyConfigured


def env(name: str, default: str | None = None) -> str:
    """Fetch environment variables while allowing explicit defaults."""

    value = os.environ.get(name, default)
    if value is None:
        raise ImproperlyConfigured(f"Environment variable {name} is required")
    return value


def env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, "1" if default else "0").lower() in ("1", "true", "yes")


def env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.environ.get(name, default).split(",") if item.strip()]


SECRET_KEY = env("DJANGO_SECRET_KEY")
DEBUG = env_bool("DJANGO_DEBUG")

INSTALLED_APPS: list[str] = []

TIME_ZONE = "UTC"
USE_TZ = True

REDIS_URL = os.environ.get("REDIS_URL")
if REDIS_URL:
    WEATHER_CACHE_BACKEND = {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": REDIS_URL,
        "OPTIONS": {
            "CLIENT_CLASS": "django_redis.client.DefaultClient",
        },
    }
else:
    WEATHER_CACHE_BACKEND = {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "activity-weather",
    }

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "default",
    },
    "weather": WEATHER_CACHE_BACKEND,
}

WEATHER_CACHE_ALIAS = os.environ.get("WEATHER_CACHE_ALIAS", "weather")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "standard"},
    },
    "loggers": {
        "activity_weather": {
            "handlers": ["console"],
            "level": os.environ.get("WEATHER_LOG_LEVEL", "INFO"),
        },
    },
}


def _provider(name: str, base_url: str, per_day: int, max_concurrent: int = 1, min_time: float = 0.0) -> dict:
    prefix = f"WEATHER_{name.upper()}"
    return {
        "disabled": env_bool(f"{prefix}_DISABLED"),
        "secret": os.environ.get(f"{prefix}_SECRET"),
        "base_url": os.environ.get(f"{prefix}_BASE_URL", base_url),
        "timeout": float(os.environ.get(f"{prefix}_TIMEOUT", "10")),
        "rate_limit": {
            "per_day": int(os.environ.get(f"{prefix}_PER_DAY", per_day)),
            "max_concurrent": max_concurrent,
            "min_time": min_time,
        },
    }


WEATHER = {
    "cache_duration": int(os.environ.get("WEATHER_CACHE_DURATION", "3600")),
    "default_providers": env_list("WEATHER_DEFAULT_PROVIDERS", "openmeteo,weatherapi,tomorrow"),
    "mid_min_seconds": int(os.environ.get("WEATHER_MID_MIN_SECONDS", "10800")),
    "mid_pro_only": env_bool("WEATHER_MID_PRO_ONLY", True),
    "quota_reset_hours": float(os.environ.get("WEATHER_QUOTA_RESET_HOURS", "16")),
    "providers": {
        "stormglass": _provider("stormglass", "https://api.stormglass.io/v2/", per_day=10, min_time=1.0),
        "tomorrow": _provider("tomorrow", "https://api.tomorrow.io/v4/", per_day=500, min_time=1.0),
        "weatherapi": _provider("weatherapi", "https://api.weatherapi.com/v1/", per_day=1000, max_concurrent=2),
        "openmeteo": _provider("openmeteo", "https://api.open-meteo.com/v1/", per_day=10000, max_concurrent=2),
        "openweathermap": _provider("openweathermap", "https://api.openweathermap.org/data/3.0/", per_day=1000),
        "visualcrossing": _provider("visualcrossing", "https://weather.visualcrossing.com/VisualCrossingWebServices/rest/services/", per_day=1000),
    },
}

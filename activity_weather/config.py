"""Typed view over the ``WEATHER`` Django setting."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class RateLimitSettings:
    per_day: Optional[int] = None
    max_concurrent: Optional[int] = None
    min_time: float = 0.0


@dataclass(frozen=True)
class ProviderSettings:
    name: str
    disabled: bool = False
    secret: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 10.0
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)


@dataclass(frozen=True)
class WeatherSettings:
    cache_duration: int = 3600
    default_providers: Tuple[str, ...] = ()
    mid_min_seconds: int = 10800
    mid_pro_only: bool = True
    quota_reset_hours: float = 16.0
    providers: Mapping[str, ProviderSettings] = field(default_factory=dict)

    def provider(self, name: str) -> ProviderSettings:
        return self.providers.get(name) or ProviderSettings(name=name)


def load_weather_settings(source: Optional[Mapping[str, Any]] = None) -> WeatherSettings:
    """Build ``WeatherSettings`` from a mapping, ``settings.WEATHER`` by default."""
    if source is None:
        source = getattr(settings, "WEATHER", None)
        if source is None:
            raise ImproperlyConfigured("The WEATHER setting is required")

    providers = {}
    for name, values in (source.get("providers") or {}).items():
        providers[name] = _provider_settings(name, values or {})

    default_providers = tuple(source.get("default_providers") or ())
    if not default_providers:
        raise ImproperlyConfigured("WEATHER.default_providers must list at least one provider")

    weather = WeatherSettings(
        cache_duration=_number(source, "cache_duration", 3600, int),
        default_providers=default_providers,
        mid_min_seconds=_number(source, "mid_min_seconds", 10800, int),
        mid_pro_only=bool(source.get("mid_pro_only", True)),
        quota_reset_hours=_number(source, "quota_reset_hours", 16.0, float),
        providers=providers,
    )
    if weather.quota_reset_hours <= 0:
        raise ImproperlyConfigured("WEATHER.quota_reset_hours must be positive")
    return weather


def _provider_settings(name: str, values: Mapping[str, Any]) -> ProviderSettings:
    rate_limit = values.get("rate_limit") or {}
    per_day = rate_limit.get("per_day")
    max_concurrent = rate_limit.get("max_concurrent")
    try:
        return ProviderSettings(
            name=name,
            disabled=bool(values.get("disabled", False)),
            secret=values.get("secret") or None,
            base_url=values.get("base_url") or None,
            timeout=float(values.get("timeout", 10.0)),
            rate_limit=RateLimitSettings(
                per_day=int(per_day) if per_day is not None else None,
                max_concurrent=int(max_concurrent) if max_concurrent is not None else None,
                min_time=float(rate_limit.get("min_time", 0.0)),
            ),
        )
    except (TypeError, ValueError) as exc:
        raise ImproperlyConfigured(f"Invalid settings for weather provider {name}: {exc}") from exc


def _number(source: Mapping[str, Any], key: str, default: Any, cast: type) -> Any:
    value = source.get(key, default)
    try:
        number = cast(value)
    except (TypeError, ValueError) as exc:
        raise ImproperlyConfigured(f"WEATHER.{key} must be a number, got {value!r}") from exc
    if number < 0:
        raise ImproperlyConfigured(f"WEATHER.{key} must not be negative")
    return number


__all__ = ["ProviderSettings", "RateLimitSettings", "WeatherSettings", "load_weather_settings"]

"""Registry of enabled weather providers and their usage state.

The registry is the only owner of provider runtime state: request and
error counters, the time of the last request and the temporary disable
flag set when a vendor reports its quota as exhausted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Type

import requests

from .config import WeatherSettings
from .errors import QuotaExceeded
from .providers.base import RequestConfig, WeatherProvider
from .providers.openmeteo import OpenMeteoProvider
from .providers.openweathermap import OpenWeatherMapProvider
from .providers.stormglass import StormGlassProvider
from .providers.tomorrow import TomorrowProvider
from .providers.visualcrossing import VisualCrossingProvider
from .providers.weatherapi import WeatherApiProvider
from .ratelimit import ApiRateLimiter
from .utils import end_of_day


logger = logging.getLogger(__name__)

# Registration order, also the order providers are listed in logs and snapshots.
PROVIDER_CLASSES: Dict[str, Type[WeatherProvider]] = {
    provider.name: provider
    for provider in (
        StormGlassProvider,
        TomorrowProvider,
        WeatherApiProvider,
        OpenMeteoProvider,
        OpenWeatherMapProvider,
        VisualCrossingProvider,
    )
}


@dataclass
class ProviderStats:
    request_count: int = 0
    error_count: int = 0
    last_request: Optional[datetime] = None
    disabled_till: Optional[datetime] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "requestCount": self.request_count,
            "errorCount": self.error_count,
            "lastRequest": _format_datetime(self.last_request),
            "disabledTill": _format_datetime(self.disabled_till),
        }


class ProviderRegistry:
    """Holds the enabled providers and answers which may serve a query."""

    def __init__(
        self,
        providers: Iterable[WeatherProvider] = (),
        *,
        quota_reset_hours: float = 16.0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.quota_reset_hours = quota_reset_hours
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._providers: Dict[str, WeatherProvider] = {}
        self._stats: Dict[str, ProviderStats] = {}
        self._daily_limits: Dict[str, Optional[int]] = {}
        for provider in providers:
            self.register(provider)

    @classmethod
    def from_settings(
        cls,
        weather_settings: WeatherSettings,
        *,
        session: Optional[requests.Session] = None,
        provider_classes: Optional[Mapping[str, Type[WeatherProvider]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "ProviderRegistry":
        registry = cls(quota_reset_hours=weather_settings.quota_reset_hours, clock=clock)
        for name, provider_class in (provider_classes or PROVIDER_CLASSES).items():
            provider_settings = weather_settings.provider(name)
            if provider_settings.disabled:
                logger.warning("Provider %s disabled on settings", name)
                continue
            if not provider_settings.secret:
                logger.error("Missing the weather.%s.secret on settings", name)
                continue

            provider = provider_class(
                secret=provider_settings.secret,
                base_url=provider_settings.base_url,
                session=session,
                request_config=RequestConfig(timeout=provider_settings.timeout),
                rate_limiter=ApiRateLimiter.from_settings(name, provider_settings.rate_limit),
                clock=clock,
            )
            registry.register(provider, per_day=provider_settings.rate_limit.per_day)

        logger.info("Loaded %s weather providers: %s", len(registry.providers), ", ".join(registry.names))
        return registry

    # -- Registration --------------------------------------------------------
    def register(self, provider: WeatherProvider, per_day: Optional[int] = None) -> None:
        if not provider.name:
            raise ValueError("provider must have a name")
        self._providers[provider.name] = provider
        self._stats[provider.name] = ProviderStats()
        self._daily_limits[provider.name] = per_day

    @property
    def providers(self) -> List[WeatherProvider]:
        return list(self._providers.values())

    @property
    def names(self) -> List[str]:
        return list(self._providers)

    def get(self, name: Optional[str]) -> Optional[WeatherProvider]:
        if not name:
            return None
        return self._providers.get(name)

    def stats(self, name: str) -> ProviderStats:
        return self._stats[name]

    @property
    def max_hours_past(self) -> int:
        return max((p.hours_past for p in self._providers.values()), default=0)

    @property
    def max_hours_future(self) -> int:
        return max((p.hours_future for p in self._providers.values()), default=0)

    # -- Eligibility ---------------------------------------------------------
    def eligible(self, hours_from_now: int, now: Optional[datetime] = None) -> List[WeatherProvider]:
        """Providers covering ``hours_from_now`` (negative = past), enabled and under quota."""
        now = now or self._clock()
        result = []
        for name, provider in self._providers.items():
            if not self._covers(provider, hours_from_now):
                continue
            stats = self._stats[name]
            if stats.disabled_till is not None and now < stats.disabled_till:
                continue
            if not self._under_quota(name, now):
                continue
            result.append(provider)
        return result

    @staticmethod
    def _covers(provider: WeatherProvider, hours_from_now: int) -> bool:
        if hours_from_now >= 0:
            return provider.hours_future >= hours_from_now
        return provider.hours_past >= -hours_from_now

    def _under_quota(self, name: str, now: datetime) -> bool:
        """Below the daily limit, or idle long enough to assume the vendor quota rolled over.

        The idle escape resets ``request_count`` only, ``error_count`` is kept.
        """
        limit = self._daily_limits.get(name)
        stats = self._stats[name]
        if limit is None or stats.request_count < limit:
            return True
        if stats.last_request is not None and now - stats.last_request > timedelta(hours=self.quota_reset_hours):
            logger.info("Provider %s idle for over %s hours, resetting its request count", name, self.quota_reset_hours)
            stats.request_count = 0
            return True
        return False

    # -- Usage tracking ------------------------------------------------------
    def record_request(self, provider: WeatherProvider, now: Optional[datetime] = None) -> None:
        stats = self._stats[provider.name]
        stats.request_count += 1
        stats.last_request = now or self._clock()

    def record_success(self, provider: WeatherProvider) -> None:
        self._stats[provider.name].disabled_till = None

    def record_failure(self, provider: WeatherProvider, error: BaseException, now: Optional[datetime] = None) -> bool:
        """Count the failure and disable the provider on quota errors.

        Returns True when the provider got disabled.
        """
        stats = self._stats[provider.name]
        stats.error_count += 1
        if not isinstance(error, QuotaExceeded):
            return False
        now = now or self._clock()
        stats.disabled_till = end_of_day(now) + timedelta(hours=1)
        logger.warning("Provider %s daily quota reached, disabled till %s", provider.name, _format_datetime(stats.disabled_till))
        return True

    # -- Snapshot ------------------------------------------------------------
    def snapshot(self) -> Dict[str, Dict[str, object]]:
        return {name: stats.as_dict() for name, stats in self._stats.items()}


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


__all__ = ["PROVIDER_CLASSES", "ProviderRegistry", "ProviderStats"]

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

import requests

from ..cache import WeatherCache
from ..config import WeatherSettings, load_weather_settings
from ..entities import Activity, ActivityWeather, Coordinates, User, WeatherSummary, ensure_utc
from ..registry import ProviderRegistry
from ..providers.base import WeatherProvider
from ..utils import (
    IMPERIAL,
    METRIC,
    convert_units,
    hours_from_now,
    is_valid_coordinates,
    midpoint,
    round_coordinates,
)


CACHE_NAMESPACE = "weather"


class WeatherAggregator:
    """Point-in-time weather lookups over the registered providers.

    A lookup reads the cache first, then tries the preferred eligible
    provider and at most one random alternative. Failures are logged and
    turned into ``None``, nothing is raised to the caller.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: WeatherCache,
        weather_settings: WeatherSettings,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.settings = weather_settings
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._log = logging.getLogger(self.__class__.__name__)
        self.cache.setup(CACHE_NAMESPACE, weather_settings.cache_duration)

    # Public API ---------------------------------------------------------
    async def get_location_weather(
        self,
        user: User,
        coordinates: Any,
        when: Optional[datetime],
        provider: Optional[str] = None,
    ) -> Optional[WeatherSummary]:
        if when is None or not is_valid_coordinates(coordinates):
            self._log.warning("User %s %s: invalid coordinates %s or date %s", user.id, user.display_name, coordinates, when)
            return None

        coordinates = round_coordinates(coordinates)
        when = ensure_utc(when)
        preferred, is_default_selection = self._resolve_preference(user, provider)
        units = IMPERIAL if user.preferences.imperial else METRIC
        cache_key = f"{coordinates[0]}-{coordinates[1]}-{int(when.timestamp())}"

        cached = await self._read_cache(cache_key)
        if cached is not None and (is_default_selection or cached.provider == preferred):
            self._log.debug("User %s: weather for %s at %s from cache (%s)", user.id, coordinates, when.isoformat(), cached.provider)
            return convert_units(cached, units)

        now = self._clock()
        eligible = self.registry.eligible(hours_from_now(when, now), now)
        if not eligible:
            self._log.warning("User %s %s: no weather provider available for %s at %s", user.id, user.display_name, coordinates, when.isoformat())
            return None

        for candidate in self._candidates(eligible, preferred):
            self.registry.record_request(candidate, self._clock())
            try:
                summary = await candidate.get_weather(coordinates, when, user.preferences)
            except Exception as exc:
                self.registry.record_failure(candidate, exc, self._clock())
                self._log.error(
                    "User %s %s: %s failed for %s at %s: %s",
                    user.id,
                    user.display_name,
                    candidate.name,
                    coordinates,
                    when.isoformat(),
                    exc,
                )
                continue

            self.registry.record_success(candidate)
            await self._write_cache(cache_key, summary)
            return summary

        self._log.error("User %s %s: could not get weather for %s at %s", user.id, user.display_name, coordinates, when.isoformat())
        return None

    async def get_activity_weather(self, user: User, activity: Activity) -> Optional[ActivityWeather]:
        try:
            return await self._activity_weather(user, activity)
        except Exception as exc:
            self._log.error("Activity %s of user %s %s: weather lookup failed", activity.id, user.id, user.display_name, exc_info=exc)
            return None

    # Helpers ------------------------------------------------------------
    async def _activity_weather(self, user: User, activity: Activity) -> Optional[ActivityWeather]:
        if not activity.has_location:
            self._log.debug("Activity %s of user %s has no location data", activity.id, user.id)
            return None

        now = self._clock()
        date_end = activity.date_end or activity.date_start
        if date_end < now - timedelta(hours=self.registry.max_hours_past):
            self._log.info("Activity %s of user %s is too old for weather data", activity.id, user.id)
            return None

        result = ActivityWeather()
        if activity.location_start:
            result.start = await self.get_location_weather(user, activity.location_start, activity.date_start)
        if activity.location_end:
            result.end = await self.get_location_weather(user, activity.location_end, date_end)

        if self._wants_mid(user, activity):
            location = activity.location_mid or self._mid_location(activity)
            if location:
                when = activity.date_start + timedelta(seconds=activity.total_time / 2)
                result.mid = await self.get_location_weather(user, location, when)

        if result.start is None and result.end is None:
            local_date = activity.date_start.astimezone(activity.local_offset)
            self._log.error("Activity %s of user %s %s: failed to get weather for %s", activity.id, user.id, user.display_name, f"{local_date:%Y-%m-%d %H:%M}")
            return None
        return result

    async def _read_cache(self, key: str) -> Optional[WeatherSummary]:
        try:
            return await self.cache.get(CACHE_NAMESPACE, key)
        except Exception as exc:
            self._log.warning("Weather cache read failed for %s: %s", key, exc)
            return None

    async def _write_cache(self, key: str, summary: WeatherSummary) -> None:
        try:
            await self.cache.set(CACHE_NAMESPACE, key, summary)
        except Exception as exc:
            self._log.warning("Weather cache write failed for %s: %s", key, exc)

    def _resolve_preference(self, user: User, provider: Optional[str]) -> Tuple[str, bool]:
        if provider:
            return provider, False
        if user.preferences.weather_provider:
            return user.preferences.weather_provider, False
        return self._rng.choice(self.settings.default_providers), True

    def _candidates(self, eligible: Sequence[WeatherProvider], preferred: Optional[str]) -> List[WeatherProvider]:
        first = next((p for p in eligible if p.name == preferred), None)
        if first is None:
            return self._rng.sample(list(eligible), min(2, len(eligible)))
        others = [p for p in eligible if p is not first]
        return [first, self._rng.choice(others)] if others else [first]

    def _wants_mid(self, user: User, activity: Activity) -> bool:
        if self.settings.mid_pro_only and not user.is_pro:
            return False
        return bool(activity.total_time) and activity.total_time > self.settings.mid_min_seconds

    @staticmethod
    def _mid_location(activity: Activity) -> Optional[Coordinates]:
        if activity.location_start and activity.location_end:
            return midpoint(activity.location_start, activity.location_end)
        return activity.location_start or activity.location_end


def build_weather_aggregator(
    weather_settings: Optional[WeatherSettings] = None,
    *,
    cache: Optional[WeatherCache] = None,
    session: Optional[requests.Session] = None,
    rng: Optional[random.Random] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> WeatherAggregator:
    """Wire an aggregator from the Django ``WEATHER`` setting."""
    weather_settings = weather_settings or load_weather_settings()
    registry = ProviderRegistry.from_settings(weather_settings, session=session, clock=clock)
    return WeatherAggregator(
        registry,
        cache or WeatherCache(default_ttl=weather_settings.cache_duration),
        weather_settings,
        rng=rng,
        clock=clock,
    )


__all__ = ["CACHE_NAMESPACE", "WeatherAggregator", "build_weather_aggregator"]

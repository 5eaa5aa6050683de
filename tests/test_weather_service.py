from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from activity_weather.cache import WeatherCache
from activity_weather.config import WeatherSettings, load_weather_settings
from activity_weather.entities import Activity, User, UserPreferences, WeatherSummary
from activity_weather.errors import QuotaExceeded, TransportError
from activity_weather.providers.base import WeatherProvider
from activity_weather.registry import ProviderRegistry
from activity_weather.services.weather import WeatherAggregator, build_weather_aggregator
from activity_weather.utils import end_of_day


NOW = datetime(2024, 6, 21, 12, tzinfo=timezone.utc)
LONDON = (51.5073, -0.1277)
USER = User(id="u1", display_name="Runner")


class _StubProvider(WeatherProvider):
    def __init__(self, name: str, *, error: Exception = None, hours_past: int = 168, hours_future: int = 48) -> None:
        super().__init__()
        self.name = name
        self.error = error
        self.hours_past = hours_past
        self.hours_future = hours_future
        self.calls = []

    async def get_weather(self, coordinates, when, preferences=None) -> WeatherSummary:
        self.calls.append((coordinates, when))
        if self.error is not None:
            raise self.error
        return WeatherSummary(
            provider=self.name,
            summary="Clear",
            temperature=12.5,
            wind_speed=18.0,
            extra_data={"units": "metric"},
        )


def make_aggregator(*providers, default_providers=None, seed=3, cache=None):
    registry = ProviderRegistry(clock=lambda: NOW)
    for provider in providers:
        registry.register(provider)
    weather = WeatherSettings(default_providers=tuple(default_providers or [p.name for p in providers]))
    return WeatherAggregator(registry, cache or WeatherCache(), weather, rng=random.Random(seed), clock=lambda: NOW)


def test_returns_summary_from_an_eligible_provider():
    alpha = _StubProvider("alpha")
    beta = _StubProvider("beta", hours_past=1)
    aggregator = make_aggregator(alpha, beta)

    result = asyncio.run(aggregator.get_location_weather(USER, LONDON, NOW - timedelta(hours=10)))

    assert result.provider == "alpha"
    assert beta.calls == []


def test_second_call_is_served_from_cache():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)
    when = NOW - timedelta(hours=2)

    async def scenario():
        first = await aggregator.get_location_weather(USER, LONDON, when)
        second = await aggregator.get_location_weather(USER, LONDON, when)
        return first, second

    first, second = asyncio.run(scenario())

    assert len(alpha.calls) == 1
    assert second.provider == first.provider
    assert second.temperature == first.temperature


def test_nearby_coordinates_share_a_cache_entry():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)
    when = NOW - timedelta(hours=2)

    async def scenario():
        await aggregator.get_location_weather(USER, (51.50731, -0.12766), when)
        return await aggregator.get_location_weather(USER, (51.50734, -0.12769), when)

    result = asyncio.run(scenario())

    assert result.provider == "alpha"
    assert len(alpha.calls) == 1
    assert alpha.calls[0][0] == (51.5073, -0.1277)


def test_cached_entry_of_another_provider_is_bypassed():
    alpha = _StubProvider("alpha")
    beta = _StubProvider("beta")
    aggregator = make_aggregator(alpha, beta)
    when = NOW - timedelta(hours=2)

    async def scenario():
        await aggregator.get_location_weather(USER, LONDON, when, provider="beta")
        return await aggregator.get_location_weather(USER, LONDON, when, provider="alpha")

    result = asyncio.run(scenario())

    assert result.provider == "alpha"
    assert len(alpha.calls) == 1
    assert len(beta.calls) == 1


def test_quota_exceeded_disables_the_only_provider():
    alpha = _StubProvider("alpha", error=QuotaExceeded("HTTP 402"))
    aggregator = make_aggregator(alpha)

    async def scenario():
        first = await aggregator.get_location_weather(USER, LONDON, NOW - timedelta(hours=2))
        second = await aggregator.get_location_weather(USER, LONDON, NOW - timedelta(hours=3))
        return first, second

    assert asyncio.run(scenario()) == (None, None)
    assert aggregator.registry.stats("alpha").disabled_till > end_of_day(NOW)
    assert len(alpha.calls) == 1


def test_falls_back_when_the_preferred_provider_fails():
    alpha = _StubProvider("alpha", error=TransportError("timeout"))
    beta = _StubProvider("beta")
    aggregator = make_aggregator(alpha, beta)
    user = User(id="u2", preferences=UserPreferences(weather_provider="alpha"))

    result = asyncio.run(aggregator.get_location_weather(user, LONDON, NOW - timedelta(hours=2)))

    assert result.provider == "beta"
    assert aggregator.registry.stats("alpha").error_count == 1
    assert aggregator.registry.stats("alpha").disabled_till is None
    assert aggregator.registry.stats("beta").error_count == 0


def test_never_more_than_two_attempts():
    providers = [_StubProvider(name, error=TransportError("down")) for name in ("alpha", "beta", "gamma")]
    aggregator = make_aggregator(*providers)

    result = asyncio.run(aggregator.get_location_weather(USER, LONDON, NOW - timedelta(hours=2)))

    assert result is None
    assert sum(len(p.calls) for p in providers) == 2


def test_invalid_input_returns_none():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)

    async def scenario():
        return (
            await aggregator.get_location_weather(USER, (91.0, 0.0), NOW),
            await aggregator.get_location_weather(USER, "51.5,-0.1", NOW),
            await aggregator.get_location_weather(USER, LONDON, None),
        )

    assert asyncio.run(scenario()) == (None, None, None)
    assert alpha.calls == []


def test_no_provider_covers_the_date():
    alpha = _StubProvider("alpha", hours_future=0)
    aggregator = make_aggregator(alpha)

    assert asyncio.run(aggregator.get_location_weather(USER, LONDON, NOW + timedelta(days=3))) is None
    assert alpha.calls == []


def test_activity_with_only_a_start_location():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)
    activity = Activity(id="a1", date_start=NOW - timedelta(hours=5), total_time=3600, location_start=LONDON)

    result = asyncio.run(aggregator.get_activity_weather(USER, activity))

    assert result.start.provider == "alpha"
    assert result.end is None
    assert result.mid is None


def test_activity_outside_coverage_is_skipped():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)
    activity = Activity(
        id="a2",
        date_start=NOW - timedelta(hours=400),
        total_time=3600,
        location_start=LONDON,
        location_end=LONDON,
    )

    assert asyncio.run(aggregator.get_activity_weather(USER, activity)) is None
    assert alpha.calls == []


def test_activity_without_location():
    aggregator = make_aggregator(_StubProvider("alpha"))
    activity = Activity(id="a3", date_start=NOW - timedelta(hours=1), total_time=600)

    assert asyncio.run(aggregator.get_activity_weather(USER, activity)) is None


def test_long_activity_gets_mid_weather_for_pro_users():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)
    activity = Activity(
        id="a4",
        date_start=NOW - timedelta(hours=6),
        total_time=4 * 3600,
        location_start=(51.5, -0.12),
        location_end=(51.6, -0.2),
    )

    result = asyncio.run(aggregator.get_activity_weather(User(id="pro", is_pro=True), activity))

    assert result.mid.provider == "alpha"
    assert alpha.calls[-1] == ((51.55, -0.16), NOW - timedelta(hours=4))


def test_long_activity_has_no_mid_weather_for_free_users():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)
    activity = Activity(
        id="a5",
        date_start=NOW - timedelta(hours=6),
        total_time=4 * 3600,
        location_start=(51.5, -0.12),
        location_end=(51.6, -0.2),
    )

    result = asyncio.run(aggregator.get_activity_weather(USER, activity))

    assert result.start is not None
    assert result.end is not None
    assert result.mid is None
    assert len(alpha.calls) == 2


def test_activity_fails_when_start_and_end_fail():
    alpha = _StubProvider("alpha", error=TransportError("down"))
    aggregator = make_aggregator(alpha)
    activity = Activity(
        id="a6",
        date_start=NOW - timedelta(hours=3),
        total_time=1800,
        location_start=LONDON,
        location_end=LONDON,
    )

    assert asyncio.run(aggregator.get_activity_weather(USER, activity)) is None


def test_build_weather_aggregator_from_settings():
    weather = load_weather_settings(
        {"default_providers": ["openmeteo"], "cache_duration": 120, "providers": {"openmeteo": {"secret": "om"}}}
    )

    aggregator = build_weather_aggregator(weather, clock=lambda: NOW)

    assert aggregator.registry.names == ["openmeteo"]
    assert aggregator.settings.cache_duration == 120


class _BrokenCacheBackend:
    def __init__(self) -> None:
        self.writes = 0

    async def aget(self, key, default=None):
        raise ConnectionError("redis down")

    async def aset(self, key, value, timeout=None):
        self.writes += 1
        raise ConnectionError("redis down")


def test_cache_backend_errors_do_not_escape():
    alpha = _StubProvider("alpha")
    backend = _BrokenCacheBackend()
    aggregator = make_aggregator(alpha, cache=WeatherCache(backend=backend))
    activity = Activity(id="a7", date_start=NOW - timedelta(hours=2), total_time=1800, location_start=LONDON)

    async def scenario():
        location = await aggregator.get_location_weather(USER, LONDON, NOW - timedelta(hours=3))
        activity_weather = await aggregator.get_activity_weather(USER, activity)
        return location, activity_weather

    location, activity_weather = asyncio.run(scenario())

    assert location.provider == "alpha"
    assert activity_weather.start.provider == "alpha"
    assert backend.writes == 2


def test_activity_lookup_never_raises(monkeypatch):
    aggregator = make_aggregator(_StubProvider("alpha"))
    activity = Activity(id="a8", date_start=NOW - timedelta(hours=2), total_time=1800, location_start=LONDON)

    def explode(*args, **kwargs):
        raise RuntimeError("registry bug")

    monkeypatch.setattr(aggregator.registry, "eligible", explode)

    assert asyncio.run(aggregator.get_activity_weather(USER, activity)) is None


def test_cached_metric_entry_is_converted_for_imperial_users():
    alpha = _StubProvider("alpha")
    aggregator = make_aggregator(alpha)
    when = NOW - timedelta(hours=2)
    imperial_user = User(id="u3", preferences=UserPreferences(weather_unit="f"))

    async def scenario():
        await aggregator.get_location_weather(USER, LONDON, when)
        return await aggregator.get_location_weather(imperial_user, LONDON, when)

    result = asyncio.run(scenario())

    assert len(alpha.calls) == 1
    assert result.temperature == 54.5
    assert result.wind_speed == pytest.approx(11.2)
    assert result.extra_data["units"] == "imperial"

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from activity_weather.config import load_weather_settings
from activity_weather.errors import QuotaExceeded, TransportError
from activity_weather.providers.base import WeatherProvider
from activity_weather.registry import ProviderRegistry
from activity_weather.utils import end_of_day


NOW = datetime(2024, 6, 21, 12, tzinfo=timezone.utc)


class PastOnly(WeatherProvider):
    name = "pastonly"
    hours_past = 168
    hours_future = 0


class Forecast(WeatherProvider):
    name = "forecast"
    hours_past = 6
    hours_future = 96


def make_registry(per_day=None):
    registry = ProviderRegistry(clock=lambda: NOW)
    registry.register(PastOnly(), per_day=per_day)
    registry.register(Forecast(), per_day=per_day)
    return registry


def test_eligible_by_coverage_window():
    registry = make_registry()

    assert registry.names == ["pastonly", "forecast"]
    assert [p.name for p in registry.eligible(-10)] == ["pastonly"]
    assert [p.name for p in registry.eligible(-3)] == ["pastonly", "forecast"]
    assert [p.name for p in registry.eligible(50)] == ["forecast"]
    assert registry.eligible(200) == []
    assert registry.max_hours_past == 168
    assert registry.max_hours_future == 96


def test_daily_quota_and_idle_reset():
    registry = make_registry(per_day=2)
    provider = registry.get("forecast")
    registry.record_request(provider, NOW)
    registry.record_request(provider, NOW)
    registry.record_failure(provider, TransportError("boom"), NOW)

    assert [p.name for p in registry.eligible(1, NOW)] == []

    later = NOW + timedelta(hours=17)
    assert [p.name for p in registry.eligible(1, later)] == ["forecast"]
    assert registry.stats("forecast").request_count == 0
    assert registry.stats("forecast").error_count == 1


def test_quota_exceeded_disables_until_next_day():
    registry = make_registry()
    provider = registry.get("pastonly")

    assert registry.record_failure(provider, QuotaExceeded("402"), NOW) is True

    stats = registry.stats("pastonly")
    assert stats.disabled_till == end_of_day(NOW) + timedelta(hours=1)
    assert stats.disabled_till > end_of_day(NOW)
    assert registry.eligible(-10, NOW) == []
    assert [p.name for p in registry.eligible(-10, stats.disabled_till + timedelta(minutes=1))] == ["pastonly"]

    registry.record_success(provider)
    assert stats.disabled_till is None


def test_other_failures_only_count():
    registry = make_registry()
    provider = registry.get("forecast")

    assert registry.record_failure(provider, TransportError("timeout"), NOW) is False
    assert registry.stats("forecast").error_count == 1
    assert registry.stats("forecast").disabled_till is None


def test_from_settings_skips_disabled_and_secretless_providers():
    weather = load_weather_settings(
        {
            "default_providers": ["openmeteo"],
            "providers": {
                "openmeteo": {"secret": "om", "rate_limit": {"per_day": 50}},
                "weatherapi": {"secret": "wa", "disabled": True},
                "tomorrow": {},
            },
        }
    )

    registry = ProviderRegistry.from_settings(weather, clock=lambda: NOW)

    assert registry.names == ["openmeteo"]
    provider = registry.get("openmeteo")
    assert provider.secret == "om"
    assert provider.rate_limiter.per_day == 50
    assert registry.get("weatherapi") is None
    assert registry.get(None) is None


def test_snapshot():
    registry = make_registry()
    registry.record_request(registry.get("forecast"), NOW)

    snapshot = registry.snapshot()

    assert snapshot["forecast"] == {
        "requestCount": 1,
        "errorCount": 0,
        "lastRequest": "2024-06-21T12:00:00+00:00",
        "disabledTill": None,
    }
    assert snapshot["pastonly"]["lastRequest"] is None

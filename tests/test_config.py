from __future__ import annotations

import pytest
from django.core.exceptions import ImproperlyConfigured

from activity_weather.config import load_weather_settings


def _source(**overrides):
    source = {
        "cache_duration": 600,
        "default_providers": ["openmeteo", "weatherapi"],
        "providers": {
            "openmeteo": {
                "secret": "abc",
                "timeout": "5",
                "rate_limit": {"per_day": 100, "max_concurrent": 2, "min_time": 0.5},
            },
            "weatherapi": {"disabled": True},
        },
    }
    source.update(overrides)
    return source


def test_load_weather_settings_from_mapping():
    weather = load_weather_settings(_source())

    assert weather.cache_duration == 600
    assert weather.default_providers == ("openmeteo", "weatherapi")
    assert weather.mid_min_seconds == 10800
    assert weather.mid_pro_only is True
    assert weather.quota_reset_hours == 16.0

    openmeteo = weather.provider("openmeteo")
    assert openmeteo.secret == "abc"
    assert openmeteo.timeout == 5.0
    assert openmeteo.rate_limit.per_day == 100
    assert openmeteo.rate_limit.max_concurrent == 2
    assert weather.provider("weatherapi").disabled is True


def test_unknown_provider_gets_empty_settings():
    settings = load_weather_settings(_source()).provider("stormglass")

    assert settings.secret is None
    assert settings.disabled is False
    assert settings.rate_limit.per_day is None


def test_load_weather_settings_from_django_settings():
    weather = load_weather_settings()

    assert weather.default_providers
    assert weather.provider("openmeteo").base_url == "https://api.open-meteo.com/v1/"


@pytest.mark.parametrize(
    "overrides",
    [
        {"default_providers": []},
        {"cache_duration": -1},
        {"cache_duration": "soon"},
        {"quota_reset_hours": 0},
        {"providers": {"openmeteo": {"timeout": "fast"}}},
    ],
)
def test_invalid_settings_raise(overrides):
    with pytest.raises(ImproperlyConfigured):
        load_weather_settings(_source(**overrides))

"""Helpers shared by the weather providers and the aggregator.

Providers hand over summaries with metric values (Celsius, m/s, hPa, km)
and a canonical precipitation class. ``process_weather_summary`` then fills
in summary text, icon and time of day and converts everything to the unit
system the user prefers.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from numbers import Real
from typing import Any, Optional, Sequence, Tuple

from astral import Observer, sun

from .entities import Coordinates, UserPreferences, WeatherSummary


METRIC = "metric"
IMPERIAL = "imperial"

# Canonical precipitation classes providers map their codes into.
RAIN = "Rain"
DRIZZLE = "Drizzle"
SNOW = "Snow"
SLEET = "Sleet"
THUNDERSTORM = "Thunderstorm"
PRECIPITATION_ICONS = {
    RAIN: "rain",
    DRIZZLE: "rain",
    SNOW: "snow",
    SLEET: "sleet",
    THUNDERSTORM: "thunderstorm",
}

# Wind speed (m/s) from which a dry summary is reported as windy.
WINDY_THRESHOLD_MS = 11.0

COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)

_TEN_MINUTES = timedelta(minutes=10)

MS_TO_KPH = 3.6
MS_TO_MPH = 2.236936
KM_TO_MILES = 0.621371


# Coordinates and time ---------------------------------------------------
def is_valid_coordinates(coordinates: Any) -> bool:
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
        return False
    for value in coordinates:
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            return False
    lat, lon = coordinates
    return -90 <= lat <= 90 and -180 <= lon <= 180


def round_coordinates(coordinates: Sequence[float], digits: int = 4) -> Coordinates:
    """Round to 4 decimals by default, which is roughly 11 metres."""
    lat, lon = coordinates
    return round(float(lat), digits), round(float(lon), digits)


def hours_from_now(when: datetime, now: datetime) -> int:
    """Whole hours between now and ``when``, negative for the past."""
    return int((when - now).total_seconds() / 3600)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999999)


def solar_elevation(coordinates: Sequence[float], when: datetime) -> float:
    """Sun elevation in degrees above the horizon, refraction included."""
    lat, lon = coordinates
    return sun.elevation(Observer(latitude=lat, longitude=lon), when.astimezone(timezone.utc))


def get_time_of_day(coordinates: Sequence[float], when: datetime) -> str:
    """Classify ``when`` as day, night, dawn or dusk for the given location."""
    elevation = solar_elevation(coordinates, when)
    if elevation > -0.833:
        return "day"
    if elevation < -6:
        return "night"
    # Twilight: morning or evening depends on which side of solar noon we are.
    later = solar_elevation(coordinates, when.replace(microsecond=0) + _TEN_MINUTES)
    return "dawn" if later > elevation else "dusk"


# Summary processing -----------------------------------------------------
def process_weather_summary(
    summary: WeatherSummary,
    coordinates: Sequence[float],
    when: datetime,
    preferences: Optional[UserPreferences] = None,
) -> WeatherSummary:
    """Complete and convert a freshly built (metric) summary in place."""
    preferences = preferences or UserPreferences()
    time_of_day = summary.extra_data.get("timeOfDay") or get_time_of_day(coordinates, when)
    summary.extra_data["timeOfDay"] = time_of_day

    if not summary.summary:
        summary.summary = describe(summary)
    if not summary.icon:
        summary.icon = get_icon(summary, is_day=time_of_day in ("day", "dawn"))
    if isinstance(summary.wind_direction, Real):
        summary.wind_direction = compass_direction(summary.wind_direction)

    summary.humidity = _round(summary.humidity, 0)
    summary.pressure = _round(summary.pressure, 0)
    summary.cloud_cover = _round(summary.cloud_cover, 0)

    # Metric output reports wind in km/h.
    summary.wind_speed = _scale(summary.wind_speed, MS_TO_KPH)
    _round_measurements(summary)
    summary.extra_data["units"] = METRIC
    return convert_units(summary, IMPERIAL if preferences.imperial else METRIC)


def convert_units(summary: WeatherSummary, target: str) -> WeatherSummary:
    """Convert a processed summary between the metric and imperial systems."""
    current = summary.extra_data.get("units", METRIC)
    if current == target:
        return summary

    if target == IMPERIAL:
        summary.temperature = _c_to_f(summary.temperature)
        summary.feels_like = _c_to_f(summary.feels_like)
        summary.wind_speed = _scale(summary.wind_speed, MS_TO_MPH / MS_TO_KPH)
        summary.visibility = _scale(summary.visibility, KM_TO_MILES)
    else:
        summary.temperature = _f_to_c(summary.temperature)
        summary.feels_like = _f_to_c(summary.feels_like)
        summary.wind_speed = _scale(summary.wind_speed, MS_TO_KPH / MS_TO_MPH)
        summary.visibility = _scale(summary.visibility, 1 / KM_TO_MILES)

    _round_measurements(summary)
    summary.extra_data["units"] = target
    return summary


def _round_measurements(summary: WeatherSummary) -> None:
    summary.temperature = _round(summary.temperature, 1)
    summary.feels_like = _round(summary.feels_like, 1)
    summary.wind_speed = _round(summary.wind_speed, 1)
    summary.visibility = _round(summary.visibility, 1)


def describe(summary: WeatherSummary) -> Optional[str]:
    if summary.precipitation:
        return summary.precipitation
    cloud_cover = summary.cloud_cover
    if cloud_cover is None:
        return None
    if cloud_cover < 10:
        return "Clear"
    if cloud_cover < 30:
        return "Mostly clear"
    if cloud_cover < 70:
        return "Partly cloudy"
    if cloud_cover < 90:
        return "Mostly cloudy"
    return "Cloudy"


def classify_condition(text: Optional[str]) -> Optional[str]:
    """Canonical precipitation class for a vendor's free-text condition."""
    text = (text or "").lower()
    if "thunder" in text:
        return THUNDERSTORM
    if "sleet" in text or "ice pellets" in text or "freezing rain" in text or "freezing drizzle" in text:
        return SLEET
    if "snow" in text or "blizzard" in text:
        return SNOW
    if "drizzle" in text:
        return DRIZZLE
    if "rain" in text or "shower" in text:
        return RAIN
    return None


def get_icon(summary: WeatherSummary, is_day: bool = True) -> Optional[str]:
    """Map a metric summary to the canonical icon vocabulary."""
    if summary.precipitation in PRECIPITATION_ICONS:
        return PRECIPITATION_ICONS[summary.precipitation]

    text = (summary.summary or "").lower()
    if "fog" in text or "mist" in text or "haze" in text:
        return "fog"
    if summary.wind_speed is not None and summary.wind_speed >= WINDY_THRESHOLD_MS:
        return "wind"

    cloud_cover = summary.cloud_cover
    if cloud_cover is None:
        if "clear" in text or "sunny" in text:
            cloud_cover = 0
        elif "cloud" in text or "overcast" in text:
            cloud_cover = 100
        else:
            return None
    if cloud_cover < 30:
        return "clear-day" if is_day else "clear-night"
    if cloud_cover < 70:
        return "partly-cloudy-day" if is_day else "partly-cloudy-night"
    return "cloudy"


def compass_direction(degrees: float) -> str:
    return COMPASS_POINTS[int((degrees % 360) / 22.5 + 0.5) % 16]


def weather_summary_string(coordinates: Sequence[float], when: datetime, summary: WeatherSummary) -> str:
    lat, lon = coordinates
    temperature = "" if summary.temperature is None else f", {summary.temperature}°"
    return f"{lat}, {lon} - {when:%Y-%m-%d %H:%M} - {summary.provider}: {summary.icon} {summary.summary}{temperature}"


def midpoint(start: Sequence[float], end: Sequence[float]) -> Tuple[float, float]:
    return (start[0] + end[0]) / 2, (start[1] + end[1]) / 2


# Internals --------------------------------------------------------------
def _round(value: Optional[float], digits: int) -> Optional[float]:
    if value is None:
        return None
    rounded = round(float(value), digits)
    return int(rounded) if digits == 0 else rounded


def _scale(value: Optional[float], factor: float) -> Optional[float]:
    if value is None:
        return None
    return value * factor


def _c_to_f(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return value * 9 / 5 + 32


def _f_to_c(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return (value - 32) * 5 / 9


__all__ = [
    "DRIZZLE",
    "IMPERIAL",
    "METRIC",
    "RAIN",
    "SLEET",
    "SNOW",
    "THUNDERSTORM",
    "classify_condition",
    "compass_direction",
    "convert_units",
    "describe",
    "end_of_day",
    "get_icon",
    "get_time_of_day",
    "hours_from_now",
    "is_valid_coordinates",
    "midpoint",
    "process_weather_summary",
    "round_coordinates",
    "solar_elevation",
    "weather_summary_string",
]

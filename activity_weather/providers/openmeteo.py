from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, List, Optional

from .base import WeatherProvider, safe_float
from ..entities import Coordinates, WeatherSummary
from ..utils import DRIZZLE, RAIN, SLEET, SNOW, THUNDERSTORM


HOURLY = [
    "temperature_2m",
    "apparent_temperature",
    "relative_humidity_2m",
    "pressure_msl",
    "wind_speed_10m",
    "wind_direction_10m",
    "precipitation",
    "cloud_cover",
    "visibility",
    "weather_code",
]

WMO_WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight showers",
    81: "Moderate showers",
    82: "Violent showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

SLEET_CODES = (56, 57, 66, 67)


def precipitation_from_code(code: Optional[int]) -> Optional[str]:
    if code is None:
        return None
    if code in SLEET_CODES:
        return SLEET
    if 51 <= code <= 55:
        return DRIZZLE
    if 61 <= code <= 65 or 80 <= code <= 82:
        return RAIN
    if 71 <= code <= 77 or code in (85, 86):
        return SNOW
    if 95 <= code <= 99:
        return THUNDERSTORM
    return None


def _kmh_to_ms(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(value / 3.6, 2)


class OpenMeteoProvider(WeatherProvider):
    name = "openmeteo"
    title = "Open-Meteo"
    hours_past = 2160
    hours_future = 360
    base_url = "https://api.open-meteo.com/v1/"

    def fetch(self, coordinates: Coordinates, when: datetime) -> Any:
        lat, lon = coordinates
        hour = when.replace(minute=0, second=0, microsecond=0)
        params = {
            "latitude": lat,
            "longitude": lon,
            "hourly": ",".join(HOURLY),
            "start_hour": hour.strftime("%Y-%m-%dT%H:%M"),
            "end_hour": (hour + timedelta(hours=1)).strftime("%Y-%m-%dT%H:%M"),
            "timezone": "UTC",
        }
        if self.secret:
            params["apikey"] = self.secret
        return self._get_json(f"{self.base_url}forecast", params=params)

    def to_weather_summary(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        hourly = data.get("hourly") if isinstance(data, dict) else None
        timestamps = (hourly or {}).get("time") or []
        if not timestamps:
            return None

        target = when.strftime("%Y-%m-%dT%H:00")
        if target not in timestamps:
            return None
        idx = timestamps.index(target)

        code = _safe_index(hourly.get("weather_code"), idx)
        code = int(code) if code is not None else None
        visibility = _safe_index(hourly.get("visibility"), idx)
        precipitation = precipitation_from_code(code)
        return WeatherSummary(
            provider=self.name,
            summary=WMO_WEATHER_CODES.get(code),
            temperature=_safe_index(hourly.get("temperature_2m"), idx),
            feels_like=_safe_index(hourly.get("apparent_temperature"), idx),
            humidity=_safe_index(hourly.get("relative_humidity_2m"), idx),
            pressure=_safe_index(hourly.get("pressure_msl"), idx),
            wind_speed=_kmh_to_ms(_safe_index(hourly.get("wind_speed_10m"), idx)),
            wind_direction=_safe_index(hourly.get("wind_direction_10m"), idx),
            precipitation=precipitation,
            cloud_cover=_safe_index(hourly.get("cloud_cover"), idx),
            visibility=None if visibility is None else visibility / 1000,
            extra_data={"mmPrecipitation": _safe_index(hourly.get("precipitation"), idx)},
        )


def _safe_index(values: Optional[List[Any]], index: int) -> Optional[float]:
    try:
        value = values[index]
    except (IndexError, TypeError):
        return None
    return safe_float(value)


__all__ = ["OpenMeteoProvider", "WMO_WEATHER_CODES", "precipitation_from_code"]

"""OpenWeatherMap provider, One Call 3.0 time machine endpoint."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from .base import WeatherProvider, safe_float
from ..entities import Coordinates, WeatherSummary
from ..utils import DRIZZLE, RAIN, SLEET, SNOW, THUNDERSTORM


def precipitation_from_id(weather_id: Optional[int]) -> Optional[str]:
    """Canonical precipitation class for an OpenWeatherMap condition id."""
    if weather_id is None:
        return None
    group = weather_id // 100
    if group == 2:
        return THUNDERSTORM
    if group == 3:
        return DRIZZLE
    if weather_id == 511 or 611 <= weather_id <= 616:
        return SLEET
    if group == 5:
        return RAIN
    if group == 6:
        return SNOW
    return None


class OpenWeatherMapProvider(WeatherProvider):
    name = "openweathermap"
    title = "OpenWeatherMap"
    hours_past = 120
    hours_future = 48
    base_url = "https://api.openweathermap.org/data/3.0/"

    def fetch(self, coordinates: Coordinates, when: datetime) -> Any:
        lat, lon = coordinates
        params = {"lat": lat, "lon": lon, "dt": int(when.timestamp()), "appid": self.secret, "units": "metric"}
        return self._get_json(f"{self.base_url}onecall/timemachine", params=params)

    def to_weather_summary(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        rows = data.get("data") if isinstance(data, dict) else None
        if not rows:
            return None
        row = rows[0]

        weather = (row.get("weather") or [{}])[0]
        weather_id = weather.get("id")
        description = weather.get("description")
        visibility = safe_float(row.get("visibility"))
        rain = (row.get("rain") or {}).get("1h")
        snow = (row.get("snow") or {}).get("1h")
        return WeatherSummary(
            provider=self.name,
            summary=description.capitalize() if description else None,
            temperature=safe_float(row.get("temp")),
            feels_like=safe_float(row.get("feels_like")),
            humidity=safe_float(row.get("humidity")),
            pressure=safe_float(row.get("pressure")),
            wind_speed=safe_float(row.get("wind_speed")),
            wind_direction=safe_float(row.get("wind_deg")),
            precipitation=precipitation_from_id(weather_id if isinstance(weather_id, int) else None),
            cloud_cover=safe_float(row.get("clouds")),
            visibility=None if visibility is None else visibility / 1000,
            extra_data={"mmPrecipitation": safe_float(rain if rain is not None else snow)},
        )


__all__ = ["OpenWeatherMapProvider", "precipitation_from_id"]

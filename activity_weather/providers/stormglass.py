from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from .base import WeatherProvider, safe_float
from ..entities import Coordinates, WeatherSummary
from ..utils import RAIN, SNOW


PARAMS = "airTemperature,humidity,pressure,cloudCover,windDirection,windSpeed,precipitation,snowDepth,visibility"

# Minimum hourly amount (mm) reported as rain.
PRECIPITATION_THRESHOLD_MM = 0.1


class StormGlassProvider(WeatherProvider):
    """Storm Glass point weather, historical data only."""

    name = "stormglass"
    title = "Storm Glass"
    hours_past = 168
    hours_future = 0
    base_url = "https://api.stormglass.io/v2/"

    def fetch(self, coordinates: Coordinates, when: datetime) -> Any:
        lat, lon = coordinates
        params = {"lat": lat, "lng": lon, "params": PARAMS}
        # Dates other than today must be requested explicitly.
        if when.date() != self._clock().date():
            params["start"] = int(when.timestamp())
            params["end"] = int((when + timedelta(hours=1)).timestamp())

        self._log.debug("Fetching %sweather/point for %s", self.base_url, coordinates)
        return self._get_json(f"{self.base_url}weather/point", params=params, headers={"Authorization": self.secret or ""})

    def to_weather_summary(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        if not isinstance(data, dict):
            return None
        hours = data.get("hours") or data.get("data") or []
        time_filter = when.strftime("%Y-%m-%dT%H")
        entry = next((row for row in hours if str(row.get("time", "")).startswith(time_filter)), None)
        if entry is None:
            return None

        precipitation_mm = _value(entry.get("precipitation"))
        snow_depth = _value(entry.get("snowDepth"))
        precipitation = None
        if precipitation_mm is not None and precipitation_mm > PRECIPITATION_THRESHOLD_MM:
            precipitation = SNOW if snow_depth and snow_depth > 0 else RAIN

        temperature = _value(entry.get("airTemperature"))
        return WeatherSummary(
            provider=self.name,
            temperature=temperature,
            feels_like=temperature,
            humidity=_value(entry.get("humidity")),
            pressure=_value(entry.get("pressure")),
            wind_speed=_value(entry.get("windSpeed")),
            wind_direction=_value(entry.get("windDirection")),
            precipitation=precipitation,
            cloud_cover=_value(entry.get("cloudCover")),
            visibility=_value(entry.get("visibility")),
            extra_data={"mmPrecipitation": precipitation_mm},
        )


def _value(sources: Any) -> Optional[float]:
    """First value reported by the SG, DWD or NOAA sources."""
    if not isinstance(sources, dict):
        return None
    for source in ("sg", "dwd", "noaa"):
        value = safe_float(sources.get(source))
        if value is not None:
            return value
    return None


__all__ = ["StormGlassProvider"]

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from .base import WeatherProvider, safe_float
from ..entities import Coordinates, WeatherSummary
from ..utils import DRIZZLE, RAIN, SLEET, SNOW, THUNDERSTORM


FIELDS = (
    "temperature",
    "temperatureApparent",
    "humidity",
    "pressureSurfaceLevel",
    "windSpeed",
    "windDirection",
    "precipitationIntensity",
    "cloudCover",
    "visibility",
    "weatherCode",
)

WEATHER_CODES = {
    1000: "Clear",
    1100: "Mostly clear",
    1101: "Partly cloudy",
    1102: "Mostly cloudy",
    1001: "Cloudy",
    2000: "Fog",
    2100: "Light fog",
    4000: "Drizzle",
    4001: "Rain",
    4200: "Light rain",
    4201: "Heavy rain",
    5000: "Snow",
    5001: "Flurries",
    5100: "Light snow",
    5101: "Heavy snow",
    6000: "Freezing drizzle",
    6001: "Freezing rain",
    6200: "Light freezing rain",
    6201: "Heavy freezing rain",
    7000: "Ice pellets",
    7101: "Heavy ice pellets",
    7102: "Light ice pellets",
    8000: "Thunderstorm",
}


def precipitation_from_code(code: Optional[int]) -> Optional[str]:
    if code is None:
        return None
    if code == 4000:
        return DRIZZLE
    if 4000 < code < 5000:
        return RAIN
    if 5000 <= code < 6000:
        return SNOW
    if 6000 <= code < 8000:
        return SLEET
    if code == 8000:
        return THUNDERSTORM
    return None


class TomorrowProvider(WeatherProvider):
    name = "tomorrow"
    title = "Tomorrow.io"
    hours_past = 6
    hours_future = 96
    base_url = "https://api.tomorrow.io/v4/"

    def fetch(self, coordinates: Coordinates, when: datetime) -> Any:
        lat, lon = coordinates
        start = when.replace(minute=0, second=0, microsecond=0)
        params = {
            "location": f"{lat},{lon}",
            "fields": ",".join(FIELDS),
            "timesteps": "1h",
            "units": "metric",
            "startTime": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "endTime": (start + timedelta(hours=1)).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "apikey": self.secret,
        }
        return self._get_json(f"{self.base_url}timelines", params=params)

    def to_weather_summary(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        try:
            intervals = data["data"]["timelines"][0]["intervals"]
        except (KeyError, IndexError, TypeError):
            return None
        if not intervals:
            return None

        hour = when.strftime("%Y-%m-%dT%H")
        interval = next((i for i in intervals if str(i.get("startTime", "")).startswith(hour)), None)
        if interval is None:
            return None
        values = interval.get("values") or {}

        code = values.get("weatherCode")
        code = int(code) if isinstance(code, (int, float)) else None
        precipitation = precipitation_from_code(code)
        return WeatherSummary(
            provider=self.name,
            summary=WEATHER_CODES.get(code),
            temperature=safe_float(values.get("temperature")),
            feels_like=safe_float(values.get("temperatureApparent")),
            humidity=safe_float(values.get("humidity")),
            pressure=safe_float(values.get("pressureSurfaceLevel")),
            wind_speed=safe_float(values.get("windSpeed")),
            wind_direction=safe_float(values.get("windDirection")),
            precipitation=precipitation,
            cloud_cover=safe_float(values.get("cloudCover")),
            visibility=safe_float(values.get("visibility")),
            extra_data={"mmPrecipitation": safe_float(values.get("precipitationIntensity"))},
        )


__all__ = ["TomorrowProvider", "WEATHER_CODES", "precipitation_from_code"]

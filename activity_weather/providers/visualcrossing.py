from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from .base import WeatherProvider, safe_float
from ..entities import Coordinates, WeatherSummary
from ..utils import RAIN, SLEET, SNOW, classify_condition


class VisualCrossingProvider(WeatherProvider):
    name = "visualcrossing"
    title = "Visual Crossing"
    hours_past = 8760
    hours_future = 360
    base_url = "https://weather.visualcrossing.com/VisualCrossingWebServices/rest/services/"

    def fetch(self, coordinates: Coordinates, when: datetime) -> Any:
        lat, lon = coordinates
        params = {"unitGroup": "metric", "include": "current", "key": self.secret, "contentType": "json"}
        return self._get_json(f"{self.base_url}timeline/{lat},{lon}/{int(when.timestamp())}", params=params)

    def to_weather_summary(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        if not isinstance(data, dict):
            return None
        current = data.get("currentConditions") or self._find_hour(data, when)
        if not current:
            return None

        conditions = current.get("conditions")
        wind_kph = safe_float(current.get("windspeed"))
        return WeatherSummary(
            provider=self.name,
            summary=conditions,
            temperature=safe_float(current.get("temp")),
            feels_like=safe_float(current.get("feelslike")),
            humidity=safe_float(current.get("humidity")),
            pressure=safe_float(current.get("pressure")),
            wind_speed=None if wind_kph is None else wind_kph / 3.6,
            wind_direction=safe_float(current.get("winddir")),
            precipitation=self._precipitation(current),
            cloud_cover=safe_float(current.get("cloudcover")),
            visibility=safe_float(current.get("visibility")),
            extra_data={"mmPrecipitation": safe_float(current.get("precip"))},
        )

    @staticmethod
    def _find_hour(data: dict, when: datetime) -> Optional[dict]:
        days = data.get("days") or []
        if not days:
            return None
        epoch = int(when.replace(minute=0, second=0, microsecond=0).timestamp())
        return next((h for h in days[0].get("hours") or [] if h.get("datetimeEpoch") == epoch), None)

    @staticmethod
    def _precipitation(current: dict) -> Optional[str]:
        amount = safe_float(current.get("precip"))
        types = current.get("preciptype") or []
        if amount and amount > 0 and types:
            if "snow" in types:
                return SNOW
            if "freezingrain" in types or "ice" in types:
                return SLEET
            if "rain" in types:
                return RAIN
        return classify_condition(current.get("conditions"))


__all__ = ["VisualCrossingProvider"]

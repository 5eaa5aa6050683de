from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from requests import Response

from .base import WeatherProvider, safe_float
from ..entities import Coordinates, WeatherSummary
from ..utils import classify_condition

# API error codes meaning the monthly or daily quota was used up.
QUOTA_ERROR_CODES = (2007, 2009)


class WeatherApiProvider(WeatherProvider):
    name = "weatherapi"
    title = "WeatherAPI.com"
    hours_past = 168
    hours_future = 72
    base_url = "https://api.weatherapi.com/v1/"

    def fetch(self, coordinates: Coordinates, when: datetime) -> Any:
        lat, lon = coordinates
        endpoint = "history.json" if when < self._clock() else "forecast.json"
        params = {"key": self.secret, "q": f"{lat},{lon}", "dt": when.strftime("%Y-%m-%d")}
        return self._get_json(f"{self.base_url}{endpoint}", params=params)

    def to_weather_summary(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        try:
            days = data["forecast"]["forecastday"]
        except (KeyError, TypeError):
            return None

        target = int(when.replace(minute=0, second=0, microsecond=0).timestamp())
        hour = None
        for day in days:
            hour = next((h for h in day.get("hour") or [] if h.get("time_epoch") == target), None)
            if hour is not None:
                break
        if hour is None:
            return None

        condition = (hour.get("condition") or {}).get("text")
        wind_kph = safe_float(hour.get("wind_kph"))
        return WeatherSummary(
            provider=self.name,
            summary=condition.strip() if condition else None,
            temperature=safe_float(hour.get("temp_c")),
            feels_like=safe_float(hour.get("feelslike_c")),
            humidity=safe_float(hour.get("humidity")),
            pressure=safe_float(hour.get("pressure_mb")),
            wind_speed=None if wind_kph is None else wind_kph / 3.6,
            wind_direction=safe_float(hour.get("wind_degree")),
            precipitation=classify_condition(condition),
            cloud_cover=safe_float(hour.get("cloud")),
            visibility=safe_float(hour.get("vis_km")),
            extra_data={"mmPrecipitation": safe_float(hour.get("precip_mm"))},
        )

    def _is_quota_response(self, response: Response) -> bool:
        if super()._is_quota_response(response):
            return True
        if response.status_code < 400:
            return False
        try:
            code = (response.json().get("error") or {}).get("code")
        except (ValueError, AttributeError):
            return False
        return code in QUOTA_ERROR_CODES


__all__ = ["QUOTA_ERROR_CODES", "WeatherApiProvider"]

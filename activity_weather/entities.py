from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence, Tuple


Coordinates = Tuple[float, float]


@dataclass
class WeatherSummary:
    """Normalized weather observation for a single point in time.

    Measurements are ``None`` when the vendor did not report them. Before
    ``process_weather_summary`` runs the values are metric (Celsius, m/s,
    hPa, km); afterwards they follow the user's preferred unit system.
    """

    provider: str
    summary: Optional[str] = None
    icon: Optional[str] = None
    temperature: Optional[float] = None
    feels_like: Optional[float] = None
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[Any] = None
    precipitation: Optional[str] = None
    cloud_cover: Optional[float] = None
    visibility: Optional[float] = None
    extra_data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.provider:
            raise ValueError("provider must be provided")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "WeatherSummary":
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in payload.items() if key in known}
        values["extra_data"] = dict(values.get("extra_data") or {})
        return cls(**values)


@dataclass
class ActivityWeather:
    start: Optional[WeatherSummary] = None
    mid: Optional[WeatherSummary] = None
    end: Optional[WeatherSummary] = None


@dataclass(frozen=True)
class UserPreferences:
    weather_provider: Optional[str] = None
    weather_unit: str = "c"

    @property
    def imperial(self) -> bool:
        return self.weather_unit == "f"


@dataclass(frozen=True)
class User:
    id: str
    display_name: str = ""
    is_pro: bool = False
    preferences: UserPreferences = field(default_factory=UserPreferences)


@dataclass
class Activity:
    """The parts of a recorded activity needed to look up its weather."""

    id: str
    date_start: datetime
    total_time: Optional[int] = None
    date_end: Optional[datetime] = None
    utc_start_offset: int = 0
    location_start: Optional[Sequence[float]] = None
    location_end: Optional[Sequence[float]] = None
    location_mid: Optional[Sequence[float]] = None

    def __post_init__(self) -> None:
        self.date_start = ensure_utc(self.date_start)
        if self.date_end is None and self.total_time:
            self.date_end = self.date_start + timedelta(seconds=self.total_time)
        elif self.date_end is not None:
            self.date_end = ensure_utc(self.date_end)

    @property
    def has_location(self) -> bool:
        return bool(self.location_start) or bool(self.location_end)

    @property
    def local_offset(self) -> timezone:
        return timezone(timedelta(minutes=self.utc_start_offset or 0))


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = [
    "Activity",
    "ActivityWeather",
    "Coordinates",
    "User",
    "UserPreferences",
    "WeatherSummary",
    "ensure_utc",
]

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import MalformedResponse, OutOfRange, ProviderError, QuotaExceeded, TransportError
from ..entities import Coordinates, UserPreferences, WeatherSummary, ensure_utc
from ..ratelimit import ApiRateLimiter
from ..utils import hours_from_now, process_weather_summary, weather_summary_string


@dataclass
class RequestConfig:
    timeout: float = 10.0
    retries: int = 1
    backoff_factor: float = 0.3
    status_forcelist: Iterable[int] = (500, 502, 503, 504)


class WeatherProvider:
    """Base class for weather vendors.

    Subclasses declare their coverage window and implement ``fetch`` (a
    blocking HTTP call returning the decoded payload) and
    ``to_weather_summary`` (metric normalization of that payload). The
    blocking part is submitted to the rate limiter, which runs it off the
    event loop.
    """

    name: str = ""
    title: str = ""
    hours_past: int = 0
    hours_future: int = 0
    base_url: str = ""
    quota_status_codes: Iterable[int] = (402, 429)

    def __init__(
        self,
        *,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
        rate_limiter: Optional[ApiRateLimiter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.secret = secret
        self.base_url = base_url or self.base_url
        self.request_config = request_config or RequestConfig()
        self.session = session or self._build_session(self.request_config)
        self.rate_limiter = rate_limiter or ApiRateLimiter(name=self.name)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._log = logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    async def get_weather(
        self,
        coordinates: Coordinates,
        when: datetime,
        preferences: Optional[UserPreferences] = None,
    ) -> WeatherSummary:
        when = ensure_utc(when)
        preferences = preferences or UserPreferences()
        self.check_range(when)

        try:
            data = await self.rate_limiter.schedule(self.fetch, coordinates, when)
            result = self._parse(data, coordinates, when)
            if result is None:
                raise MalformedResponse(f"No weather data for {when.isoformat()}")
        except ProviderError as exc:
            self._log.error("Failed to get weather for %s at %s: %s", coordinates, when.isoformat(), exc)
            raise

        process_weather_summary(result, coordinates, when, preferences)
        self._log.info(weather_summary_string(coordinates, when, result))
        return result

    def check_range(self, when: datetime) -> None:
        hours = hours_from_now(when, self._clock())
        max_hours = self.hours_future if hours >= 0 else self.hours_past
        if abs(hours) > max_hours:
            raise OutOfRange(f"Date out of range for {self.name}: {when.isoformat()}")

    def fetch(self, coordinates: Coordinates, when: datetime) -> Any:
        raise NotImplementedError

    def to_weather_summary(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        raise NotImplementedError

    # Helpers ------------------------------------------------------------
    def _parse(self, data: Any, coordinates: Coordinates, when: datetime) -> Optional[WeatherSummary]:
        try:
            return self.to_weather_summary(data, coordinates, when)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise MalformedResponse(f"Unexpected payload: {exc}") from exc

    def _build_session(self, config: RequestConfig) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=config.retries,
            backoff_factor=config.backoff_factor,
            status_forcelist=tuple(config.status_forcelist),
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _is_quota_response(self, response: Response) -> bool:
        return response.status_code in self.quota_status_codes

    def _handle_response(self, response: Response) -> Response:
        if self._is_quota_response(response):
            self._log.warning("Quota exceeded: %s", response.text[:200])
            raise QuotaExceeded(f"{self.name} quota exceeded (HTTP {response.status_code})")
        if response.status_code >= 400:
            self._log.error("Provider returned %s: %s", response.status_code, response.text[:200])
            raise TransportError(f"HTTP {response.status_code}", status_code=response.status_code)
        return response

    def _request(self, method: str, url: str, **kwargs) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request timed out", exc_info=exc)
            raise TransportError("timeout") from exc
        except requests.RequestException as exc:
            self._log.error("Request failed", exc_info=exc)
            raise TransportError("request failed") from exc
        return self._handle_response(response)

    def _get_json(self, url: str, **kwargs) -> Any:
        response = self._request("GET", url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON", exc_info=exc)
            raise MalformedResponse("invalid json") from exc


def safe_float(value: Optional[object]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "MalformedResponse",
    "OutOfRange",
    "ProviderError",
    "QuotaExceeded",
    "RequestConfig",
    "TransportError",
    "WeatherProvider",
    "safe_float",
]

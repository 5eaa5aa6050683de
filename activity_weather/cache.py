from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.cache import caches
from django.core.cache.backends.base import BaseCache

from .entities import WeatherSummary


logger = logging.getLogger(__name__)


class WeatherCache:
    """Namespaced, time-bound store for weather summaries.

    Entries live in a Django cache backend (LocMem by default, Redis when
    configured), so expiry is owned by the backend. Each namespace gets its
    own TTL through ``setup``. Summaries are stored as plain dicts, a stale
    or undecodable entry is treated as a miss.
    """

    def __init__(self, backend: Optional[BaseCache] = None, default_ttl: int = 3600) -> None:
        self._backend = backend
        self._default_ttl = default_ttl
        self._ttls: Dict[str, int] = {}

    @property
    def backend(self) -> BaseCache:
        if self._backend is None:
            self._backend = caches[settings.WEATHER_CACHE_ALIAS]
        return self._backend

    def setup(self, namespace: str, ttl: int) -> None:
        self._ttls[namespace] = ttl

    async def get(self, namespace: str, key: str) -> Optional[WeatherSummary]:
        payload = await self.backend.aget(self._key(namespace, key))
        if not payload:
            return None
        try:
            return WeatherSummary.from_dict(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding cached %s entry %s: %s", namespace, key, exc)
            return None

    async def set(self, namespace: str, key: str, value: WeatherSummary) -> None:
        ttl = self._ttls.get(namespace, self._default_ttl)
        await self.backend.aset(self._key(namespace, key), self._serialize(value), ttl)

    def clear(self) -> None:
        self.backend.clear()

    @staticmethod
    def _key(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    @staticmethod
    def _serialize(value: WeatherSummary) -> Dict[str, Any]:
        return value.to_dict()


__all__ = ["WeatherCache"]

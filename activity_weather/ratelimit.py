from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from .errors import QuotaExceeded


logger = logging.getLogger(__name__)


class ApiRateLimiter:
    """Throttle outbound vendor calls.

    Every unit of work passed to ``schedule`` respects three limits:
    - ``max_concurrent``: how many units may run at the same time
    - ``min_time``: minimum seconds between the start of two units
    - ``per_day``: a reservoir of requests refreshed every 24 hours; once it
      is empty ``QuotaExceeded`` is raised without running the unit

    Blocking callables run in a worker thread so the event loop stays free.
    """

    RESERVOIR_REFRESH_SECONDS = 24 * 60 * 60

    def __init__(
        self,
        name: str = "",
        *,
        max_concurrent: Optional[int] = None,
        min_time: float = 0.0,
        per_day: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.max_concurrent = max_concurrent
        self.min_time = max(min_time, 0.0)
        self.per_day = per_day
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent else None
        self._start_lock = asyncio.Lock()
        self._next_start = 0.0
        self._reservoir_started: Optional[float] = None
        self._reservoir = per_day

    @classmethod
    def from_settings(cls, name: str, rate_limit: Any) -> "ApiRateLimiter":
        return cls(
            name,
            max_concurrent=rate_limit.max_concurrent,
            min_time=rate_limit.min_time,
            per_day=rate_limit.per_day,
        )

    @property
    def reservoir(self) -> Optional[int]:
        return self._reservoir

    async def schedule(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        self._take_from_reservoir()
        if self._semaphore is None:
            return await self._run(func, *args, **kwargs)
        async with self._semaphore:
            return await self._run(func, *args, **kwargs)

    # Helpers ------------------------------------------------------------
    def _take_from_reservoir(self) -> None:
        if self.per_day is None:
            return
        now = self._clock()
        if self._reservoir_started is None or now - self._reservoir_started >= self.RESERVOIR_REFRESH_SECONDS:
            self._reservoir_started = now
            self._reservoir = self.per_day
        if not self._reservoir or self._reservoir <= 0:
            logger.warning("Rate limiter %s: daily reservoir of %s requests is empty", self.name, self.per_day)
            raise QuotaExceeded(f"{self.name} daily request ceiling reached")
        self._reservoir -= 1

    async def _wait_turn(self) -> None:
        if not self.min_time:
            return
        async with self._start_lock:
            wait = self._next_start - self._clock()
            if wait > 0:
                await self._sleep(wait)
            self._next_start = self._clock() + self.min_time

    async def _run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        await self._wait_turn()
        if asyncio.iscoroutinefunction(func):
            return await func(*args, **kwargs)
        return await asyncio.to_thread(func, *args, **kwargs)


__all__ = ["ApiRateLimiter"]

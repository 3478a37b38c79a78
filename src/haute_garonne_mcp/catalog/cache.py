from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

import anyio

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0


class TTLCache(Generic[T]):
    """Holds one value fetched from a slow source and refreshes it lazily.

    ``get_or_refresh`` returns the cached value while it is younger than
    ``ttl`` seconds. Otherwise it calls the fetcher once; concurrent callers
    wait on the same lock and reuse the freshly stored value instead of
    issuing their own fetch. A failed fetch leaves the previous state intact
    and propagates to the caller.
    """

    def __init__(
        self,
        fetcher: Callable[[], Awaitable[T]],
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._clock = clock
        self._lock = anyio.Lock()
        self.ttl = ttl
        self.value: T | None = None
        self.fetched_at: float | None = None

    def is_fresh(self) -> bool:
        if self.fetched_at is None:
            return False
        return self._clock() - self.fetched_at < self.ttl

    async def get_or_refresh(self) -> T:
        if self.is_fresh():
            return self.value  # type: ignore[return-value]

        async with self._lock:
            # Another task may have refreshed while we waited for the lock.
            if self.is_fresh():
                return self.value  # type: ignore[return-value]

            logger.debug("Cache expired, refreshing")
            value = await self._fetcher()
            self.value = value
            self.fetched_at = self._clock()
            return value

    def invalidate(self) -> None:
        self.value = None
        self.fetched_at = None

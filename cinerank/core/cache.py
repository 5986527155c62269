"""Expiring cache and request spacing used by the recommendation service."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class ExpiringCache(Generic[T]):
    """Key -> value map whose entries expire after a TTL.

    Expiry is checked on read.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: T, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RequestSpacer:
    """Keeps consecutive calls at least ``interval_seconds`` apart.

    Concurrent callers each wait out the remaining delay against the shared
    timestamp and may then proceed together.
    """

    def __init__(
        self,
        interval_seconds: float,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_request: float | None = None

    async def wait(self) -> float:
        """Suspend until the spacing has elapsed; returns seconds waited."""
        waited = 0.0
        if self._last_request is not None:
            elapsed = self._clock() - self._last_request
            if elapsed < self.interval_seconds:
                waited = self.interval_seconds - elapsed
                await self._sleep(waited)
        self._last_request = self._clock()
        return waited

    def reset(self) -> None:
        self._last_request = None

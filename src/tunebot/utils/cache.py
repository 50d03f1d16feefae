from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from loguru import logger

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    expires_at: float
    value: V
    handle: asyncio.TimerHandle | None = None


class TTLCache(Generic[K, V]):
    """In-memory TTL cache with a per-entry eviction timer and a periodic sweep.

    Every entry gets a one-shot ``loop.call_later`` that removes it when its TTL
    runs out. ``get`` also checks expiry, so a caller never sees an expired
    value even if the timer is late. The background sweep catches whatever
    nobody reads again.

    Single-process only: nothing here survives a restart.
    """

    def __init__(
        self,
        default_ttl_seconds: float = 180,
        *,
        sweep_interval_seconds: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = float(default_ttl_seconds)
        self._sweep_interval = float(sweep_interval_seconds)
        self._clock = clock
        self._store: dict[K, _Entry[V]] = {}
        self._sweeper: asyncio.Task[None] | None = None

    @property
    def default_ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        entry = self._store.get(key)  # type: ignore[arg-type]
        return entry is not None and entry.expires_at > self._clock()

    def get(self, key: K) -> V | None:
        entry = self._store.get(key)
        if not entry:
            return None
        if entry.expires_at <= self._clock():
            self.delete(key)
            return None
        return entry.value

    def ttl_remaining(self, key: K) -> float | None:
        entry = self._store.get(key)
        if not entry:
            return None
        remaining = entry.expires_at - self._clock()
        return remaining if remaining > 0 else None

    def set(self, key: K, value: V, ttl_seconds: float | None = None) -> K:
        ttl = self._ttl if ttl_seconds is None else float(ttl_seconds)

        # Old timer must be gone before the new one exists.
        self.delete(key)

        entry: _Entry[V] = _Entry(expires_at=self._clock() + ttl, value=value)
        loop = asyncio.get_running_loop()
        entry.handle = loop.call_later(max(ttl, 0.0), self._evict, key, entry)
        self._store[key] = entry
        return key

    def delete(self, key: K) -> bool:
        entry = self._store.pop(key, None)
        if entry is None:
            return False
        if entry.handle is not None:
            entry.handle.cancel()
        return True

    def sweep(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._store.items() if e.expires_at <= now]
        for key in expired:
            self.delete(key)
        return len(expired)

    def start(self) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.clear()

    def clear(self) -> None:
        for entry in self._store.values():
            if entry.handle is not None:
                entry.handle.cancel()
        self._store.clear()

    def _evict(self, key: K, entry: _Entry[V]) -> None:
        # Only the entry this timer was scheduled for.
        if self._store.get(key) is entry:
            del self._store[key]
            logger.debug("cache entry {} evicted by timer", key)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            removed = self.sweep()
            if removed:
                logger.debug("cache sweep removed {} expired entries", removed)

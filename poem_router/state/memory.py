# poem_router/state/memory.py
"""
In-process, in-memory counter store.

Uses asyncio.Lock for safe concurrent access within a single event loop.
All state is lost when the process exits — appropriate for single-instance
deployments and development/testing. Rate limits are not shared between
instances with this store.

Each key maps to (value, expiry_timestamp). Expired keys read as absent;
every increment sweeps all expired entries, so old buckets do not pile up.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from .base import AbstractCounterStore


class InMemoryCounterStore(AbstractCounterStore):
    """In-process counter store with per-key expiry (zero deps)."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        # key → (value, expiry_timestamp)
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def get_counts(self, keys: list[str]) -> list[int]:
        now = self._clock()
        async with self._lock:
            return [self._live_value(key, now) for key in keys]

    async def increment(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        async with self._lock:
            self._purge(now)
            value = self._live_value(key, now) + 1
            self._counters[key] = (value, now + ttl_seconds)
            return value

    def _purge(self, now: float) -> None:
        """Drop every expired entry. Must be called while holding self._lock."""
        expired = [key for key, (_, expiry) in self._counters.items() if now >= expiry]
        for key in expired:
            del self._counters[key]

    def _live_value(self, key: str, now: float) -> int:
        """Must be called while holding self._lock."""
        entry = self._counters.get(key)
        if entry is None:
            return 0
        value, expiry = entry
        if now >= expiry:
            del self._counters[key]
            return 0
        return value

    def ttl(self, key: str) -> float | None:
        """Seconds until *key* expires, or None if absent."""
        entry = self._counters.get(key)
        if entry is None:
            return None
        return entry[1] - self._clock()

    def __len__(self) -> int:
        return len(self._counters)

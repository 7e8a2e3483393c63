# poem_router/state/base.py
"""
Abstract interface that every counter store must implement.

The counter store backs the rate limiter. It is the only mutable state
shared between concurrent requests (and between app instances), so every
write goes through the store's atomic increment; no extra locking is
layered on top.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Interface contract for all counter store implementations."""

    @abstractmethod
    async def get_counts(self, keys: list[str]) -> list[int]:
        """
        Return the current value of each key, in order.

        Missing or expired keys count as zero.
        """

    @abstractmethod
    async def increment(self, key: str, ttl_seconds: int) -> int:
        """
        Atomically add one to *key* and set its expiry.

        Parameters
        ----------
        key:
            Counter key. Created at zero if absent.
        ttl_seconds:
            Expiry applied (or refreshed) on every increment.

        Returns
        -------
        int
            The value after the increment.
        """

    async def close(self) -> None:
        """Release any resources held by this store (e.g. Redis connections)."""

# poem_router/ratelimit.py
"""
Per-client admission control over three nested windows (minute, hour, day).

Each window is a fixed bucket: the counter key embeds floor(now / length),
so a new bucket starts from zero without any explicit reset. Keys expire
through the store's TTL, set to twice the bucket length.

The limiter fails open: with no store configured, or when the store
errors, every request is admitted with its full quota reported.

Counts are read and then incremented in separate steps, so concurrent
requests (or instances) near the ceiling can both be admitted; the limit
is approximate, not strictly enforced.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Mapping
from typing import Callable

from .config import AppConfig, RateLimitConfig
from .constants import BUCKET_KEY_NAMES, BUCKET_SECONDS, RATE_KEY_TMPL, TTL_MULTIPLIER
from .models import QuotaWindows, RateLimitDecision
from .state.base import AbstractCounterStore

logger = logging.getLogger(__name__)

GRANULARITIES: tuple[str, ...] = tuple(BUCKET_SECONDS)


def bucket_key(identity: str, granularity: str, now: float) -> str:
    length = BUCKET_SECONDS[granularity]
    return RATE_KEY_TMPL.format(
        identity=identity,
        granularity=BUCKET_KEY_NAMES[granularity],
        bucket=int(now // length),
    )


def reset_in(now: float) -> QuotaWindows:
    """Seconds until each bucket rolls over; a request on the boundary gets the full length."""
    return QuotaWindows(
        **{g: length - int(now % length) for g, length in BUCKET_SECONDS.items()}
    )


class RateLimiter:
    """
    Sliding fixed-bucket rate limiter.

    Parameters
    ----------
    store:
        Shared counter store. ``None`` disables limiting (fail-open).
    limits:
        Ceilings per granularity.
    clock:
        Returns the current epoch time in seconds. Injectable for tests.
    """

    def __init__(
        self,
        store: AbstractCounterStore | None,
        limits: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._limits = limits or RateLimitConfig()
        self._clock = clock

    @classmethod
    def from_config(cls, config: AppConfig) -> "RateLimiter":
        """Use Redis when a URL is configured; otherwise limiting is disabled."""
        if not config.redis_url:
            logger.warning("no redis_url configured - rate limiting disabled")
            return cls(None, config.rate_limits)
        from .state.redis import RedisCounterStore

        return cls(RedisCounterStore(config.redis_url), config.rate_limits)

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def limits(self) -> RateLimitConfig:
        return self._limits

    def _full_quota(self, now: float) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            remaining=QuotaWindows(**{g: self._limits.ceiling(g) for g in GRANULARITIES}),
            reset_in=reset_in(now),
        )

    def _remaining(self, counts: Mapping[str, int]) -> QuotaWindows:
        return QuotaWindows(
            **{g: max(0, self._limits.ceiling(g) - counts[g]) for g in GRANULARITIES}
        )

    async def _read(self, identity: str, now: float) -> tuple[dict[str, str], dict[str, int]]:
        keys = {g: bucket_key(identity, g, now) for g in GRANULARITIES}
        values = await self._store.get_counts([keys[g] for g in GRANULARITIES])  # type: ignore[union-attr]
        return keys, dict(zip(GRANULARITIES, values))

    async def check(self, identity: str) -> RateLimitDecision:
        """
        Admit or deny one request for *identity*.

        A denied request writes nothing. An admitted request increments all
        three counters and refreshes their expiry.
        """
        now = self._clock()
        if self._store is None:
            return self._full_quota(now)

        try:
            keys, counts = await self._read(identity, now)

            exceeded = [g for g in GRANULARITIES if counts[g] >= self._limits.ceiling(g)]
            if exceeded:
                logger.info(
                    "rate limit exceeded for %s (%s limit)",
                    identity,
                    exceeded[0],
                    extra={"identity": identity, "granularity": exceeded[0]},
                )
                return RateLimitDecision(
                    allowed=False,
                    remaining=self._remaining(counts),
                    reset_in=reset_in(now),
                )

            after: dict[str, int] = {}
            for g in GRANULARITIES:
                after[g] = await self._store.increment(
                    keys[g], BUCKET_SECONDS[g] * TTL_MULTIPLIER
                )
        except Exception:
            logger.warning("rate limiter store unavailable, admitting request", exc_info=True)
            return self._full_quota(now)

        return RateLimitDecision(
            allowed=True,
            remaining=self._remaining(after),
            reset_in=reset_in(now),
        )

    async def peek(self, identity: str) -> RateLimitDecision:
        """Report the current quota for *identity* without counting a request."""
        now = self._clock()
        if self._store is None:
            return self._full_quota(now)
        try:
            _, counts = await self._read(identity, now)
        except Exception:
            logger.warning("rate limiter store unavailable", exc_info=True)
            return self._full_quota(now)
        remaining = self._remaining(counts)
        return RateLimitDecision(
            allowed=all(remaining.get(g) > 0 for g in GRANULARITIES),  # type: ignore[arg-type]
            remaining=remaining,
            reset_in=reset_in(now),
        )

    async def close(self) -> None:
        if self._store is not None:
            await self._store.close()


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def client_ip(headers: Mapping[str, str], peer: str | None = None) -> str:
    """
    Identify the client from proxy headers.

    Order: first X-Forwarded-For entry, X-Real-IP, first
    X-Vercel-Forwarded-For entry, the socket peer, then 127.0.0.1.
    """
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for and forwarded_for.split(",")[0].strip():
        return forwarded_for.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    vercel_ip = headers.get("x-vercel-forwarded-for")
    if vercel_ip and vercel_ip.split(",")[0].strip():
        return vercel_ip.split(",")[0].strip()

    return peer or "127.0.0.1"


_MESSAGES: dict[str, dict[str, str]] = {
    "nl": {
        "minute": "Je hebt te veel gedichten gegenereerd. Probeer het over {seconds} seconden opnieuw.",
        "hour": "Je hebt het uurlimiet bereikt. Probeer het over {minutes} minuten opnieuw.",
        "day": "Je hebt het daglimiet bereikt. Probeer het morgen opnieuw.",
    },
    "en": {
        "minute": "Too many requests. Please try again in {seconds} seconds.",
        "hour": "Hourly limit reached. Please try again in {minutes} minutes.",
        "day": "Daily limit reached. Please try again tomorrow.",
    },
}


def format_rate_limit_message(decision: RateLimitDecision, language: str = "nl") -> str:
    """Human-readable wait-time message for a denied request. Unknown languages get Dutch."""
    messages = _MESSAGES.get(language, _MESSAGES["nl"])
    granularity = decision.exhausted_granularity or "minute"
    return messages[granularity].format(
        seconds=decision.reset_in.minute,
        minutes=math.ceil(decision.reset_in.hour / 60),
    )

"""Pooled quota for requests served with the operator's model credential."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable

from .stores.kv import KeyValueStore

_MINUTE = 60
_DAY = 86_400


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    remaining: int
    reset_at: datetime


@dataclass(frozen=True)
class QuotaUsage:
    used: int
    total: int
    remaining: int
    reset_at: datetime


class PooledRateLimiter:
    """Per-minute and per-day counters shared by every anonymous caller."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        per_minute: int = 5,
        per_day: int = 20,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.per_minute = per_minute
        self.per_day = per_day
        self._clock = clock

    def check(self) -> RateLimitStatus:
        """Count one request against the pool and report whether it may proceed."""
        now = self._clock()
        minute = int(now // _MINUTE)
        day = int(now // _DAY)
        minute_key = f"gemini:rpm:{minute}"
        day_key = f"gemini:rpd:{day}"

        minute_count = self._store.incr(minute_key)
        day_count = self._store.incr(day_key)
        if minute_count == 1:
            self._store.expire(minute_key, _MINUTE)
        if day_count == 1:
            self._store.expire(day_key, _DAY)

        if minute_count > self.per_minute or day_count > self.per_day:
            return RateLimitStatus(
                allowed=False,
                remaining=0,
                reset_at=_timestamp((minute + 1) * _MINUTE),
            )

        return RateLimitStatus(
            allowed=True,
            remaining=min(self.per_minute - minute_count, self.per_day - day_count),
            reset_at=_timestamp((day + 1) * _DAY),
        )

    def daily_usage(self) -> QuotaUsage:
        day = int(self._clock() // _DAY)
        raw = self._store.get(f"gemini:rpd:{day}")
        used = int(raw) if raw else 0
        return QuotaUsage(
            used=used,
            total=self.per_day,
            remaining=max(0, self.per_day - used),
            reset_at=_timestamp((day + 1) * _DAY),
        )


def _timestamp(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, UTC)


__all__ = ["PooledRateLimiter", "QuotaUsage", "RateLimitStatus"]

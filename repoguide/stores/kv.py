"""Key-value store contract and an in-process implementation with expiry."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple


class KeyValueStore(Protocol):
    """Minimal redis-like surface consumed by caches, quotas and the model memo."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, *, ttl: Optional[float] = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def incr(self, key: str) -> int: ...

    def expire(self, key: str, ttl: float) -> bool: ...


class MemoryStore:
    """Thread-safe dictionary store honouring per-key time-to-live.

    ``incr`` and ``expire`` are atomic with respect to each other, which
    is all the pooled rate counter needs.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry else None

    def set(self, key: str, value: str, *, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def incr(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                value, expires_at = 0, None
            else:
                value, expires_at = int(entry[0]), entry[1]
            value += 1
            self._entries[key] = (str(value), expires_at)
            return value

    def expire(self, key: str, ttl: float) -> bool:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            self._entries[key] = (entry[0], self._clock() + ttl)
            return True

    def purge_expired(self) -> int:
        """Drop every expired key and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, (_, expires_at) in self._entries.items()
                if expires_at is not None and expires_at <= now
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry


__all__ = ["KeyValueStore", "MemoryStore"]

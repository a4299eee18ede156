"""In-process expiring cache.

Handles:
- Key -> value storage with a fixed per-instance TTL
- Passive expiry (stale entries are treated as absent)
- Per-key de-duplication of concurrent origin loads

Instances are created by the app factory and injected where needed:
- Source cache: raw upstream collections, coupon rows (~2 minutes)
- Route cache: derived analytics payloads (~5 minutes)

There is no size bound. Expired entries stay in memory until overwritten,
deleted, or removed by purge_expired().
"""

import asyncio
import json
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger("uvicorn.error")

V = TypeVar("V")


class _LoadSlot:
    """Lock shared by callers loading the same key, dropped when the last one leaves."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


def cache_key(name: str, **params: Any) -> str:
    """Build a cache key for a logical query.

    Args:
        name: Logical resource name (e.g. "products").
        **params: Query parameters; None values are kept so that
            "no filter" and "filter=x" produce different keys.

    Returns:
        Key of the form "<name>_<json params>", or just name without params.
    """
    if not params:
        return name
    return f"{name}_{json.dumps(params, sort_keys=True, default=str)}"


class ExpiringCache(Generic[V]):
    """Key/value store whose entries expire a fixed time after insertion."""

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "",
    ):
        """Initialize cache.

        Args:
            ttl_seconds: Time-to-live applied to every entry.
            clock: Monotonic time source (seconds). Injectable for tests.
            name: Label used in logs and stats.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = float(ttl_seconds)
        self.name = name
        self._clock = clock
        self._entries: dict[str, tuple[V, float]] = {}
        self._lock = threading.Lock()
        self._load_slots: dict[str, _LoadSlot] = {}

    def _is_fresh(self, inserted_at: float, now: float) -> bool:
        return now - inserted_at < self.ttl_seconds

    def get(self, key: str, default: V | None = None) -> V | None:
        """Get a value if present and not expired.

        Args:
            key: Cache key.
            default: Returned on miss or expiry.

        Returns:
            Cached value or default.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, inserted_at = entry
            if not self._is_fresh(inserted_at, self._clock()):
                return default
            return value

    def set(self, key: str, value: V) -> None:
        """Insert or overwrite a value, restarting its TTL window."""
        with self._lock:
            self._entries[key] = (value, self._clock())

    def delete(self, key: str) -> bool:
        """Remove one entry.

        Returns:
            True if an entry (fresh or stale) was removed.
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def get_stale(self, key: str) -> V | None:
        """Get a retained value regardless of its age.

        Only for last-resort fallbacks after an origin failure; regular reads
        must go through get().
        """
        with self._lock:
            entry = self._entries.get(key)
            return entry[0] if entry is not None else None

    def purge_expired(self) -> int:
        """Physically drop expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            stale = [k for k, (_, ts) in self._entries.items() if not self._is_fresh(ts, now)]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug(f"Cache {self.name or '<unnamed>'} purged {len(stale)} expired entries")
        return len(stale)

    def stats(self) -> dict[str, Any]:
        """Describe current contents (admin view)."""
        with self._lock:
            now = self._clock()
            entries = [
                {
                    "key": k,
                    "age_seconds": round(now - ts, 3),
                    "fresh": self._is_fresh(ts, now),
                }
                for k, (_, ts) in self._entries.items()
            ]
        return {
            "name": self.name,
            "ttl_seconds": self.ttl_seconds,
            "size": len(entries),
            "keys": [e["key"] for e in entries],
            "entries": entries,
            "in_flight": len(self._load_slots),
        }

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[V]]) -> V:
        """Return the cached value or load, store and return it.

        Concurrent callers for the same key wait on one in-flight load instead
        of each hitting the origin. If the loader raises, nothing is stored and
        the exception reaches the caller; the next waiter then loads again.

        Args:
            key: Cache key.
            loader: Coroutine factory producing the fresh value.

        Returns:
            Cached or freshly loaded value.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        slot = self._load_slots.get(key)
        if slot is None:
            slot = self._load_slots[key] = _LoadSlot()
        slot.users += 1
        try:
            async with slot.lock:
                # Another waiter may have filled the entry while we were queued.
                cached = self.get(key)
                if cached is not None:
                    return cached
                value = await loader()
                self.set(key, value)
                return value
        finally:
            slot.users -= 1
            if slot.users == 0 and self._load_slots.get(key) is slot:
                del self._load_slots[key]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

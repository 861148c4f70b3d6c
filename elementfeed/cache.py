"""In-process TTL cache.

One instance is constructed per platform and injected into the components
that read through it (feed and trending read paths). Entries expire after
their TTL; expired entries are dropped lazily on read and in bulk by
:meth:`TTLCache.purge_expired`, which the worker manager schedules
periodically. Writers that change what a cached read would return clear the
relevant key prefix (``feed:``, ``trending:``) instead of waiting for expiry.

The interface is small enough to back with a shared cache server later.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")

_MISSING = object()


class TTLCache:
    """Thread-safe key/value store with per-entry expiry."""

    def __init__(
        self,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._default_ttl = default_ttl
        self._clock = clock
        self._store: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        self.purge_expired()
        with self._lock:
            return len(self._store)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or *default* if missing or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() > expires_at:
                del self._store[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        expires_at = self._clock() + (self._default_ttl if ttl is None else ttl)
        with self._lock:
            self._store[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Delete every key starting with *prefix*. Returns the count."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for k in keys:
                del self._store[k]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return len(expired)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Cache-aside read: return the cached value or load and cache it."""
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = await loader()
        self.set(key, value, ttl)
        return value

"""Lightweight in-memory TTL cache for the admin dashboard.

Used to avoid a round trip to the auth service and the ``users`` table on
every authenticated request: verified session profiles are cached for a
short time, keyed by access token.
"""

import time
import threading
from typing import Any, Callable


class TTLCache:
    """Thread-safe in-memory cache with time-to-live (TTL) expiry.

    Entries expire after ``ttl_seconds`` seconds. A maximum of ``maxsize``
    entries are retained; when the cache is full the entry closest to expiry
    is evicted.

    Usage::

        cache = TTLCache(maxsize=256, ttl_seconds=60)
        cache.set(token, profile)
        profile = cache.get(token)  # None if expired/missing
    """

    def __init__(self, maxsize: int = 128, ttl_seconds: float = 300.0) -> None:
        """Initialise the cache.

        Args:
            maxsize: Maximum number of sessions to remember (default 128).
            ttl_seconds: Seconds a verified profile stays trusted (default 300).
        """
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        # token -> (profile, expires_at)
        self._store: dict[Any, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Any) -> Any | None:
        """Return the cached value for *key*, or ``None`` if absent or expired.

        Args:
            key: Cache key, normally a session access token.

        Returns:
            Cached value, or ``None``.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            value, expires_at = entry
            if time.monotonic() > expires_at:
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: Any, value: Any) -> None:
        """Store *value* under *key* with the configured TTL.

        A new key arriving at a full cache evicts the entry that expires
        soonest; re-setting an existing key never evicts.

        Args:
            key: Cache key (must be hashable).
            value: Value to cache, normally a ``UserProfile``.
        """
        expires_at = time.monotonic() + self._ttl
        with self._lock:
            if key not in self._store and len(self._store) >= self._maxsize:
                soonest = min(self._store, key=lambda k: self._store[k][1])
                del self._store[soonest]
            self._store[key] = (value, expires_at)

    def delete(self, key: Any) -> None:
        """Remove a single entry, e.g. on sign-out.

        Args:
            key: Cache key to remove (no-op if not present).
        """
        with self._lock:
            self._store.pop(key, None)

    def discard_where(self, predicate: Callable[[Any], bool]) -> int:
        """Remove every entry whose cached value satisfies *predicate*.

        A user can hold several sessions at once, so when their profile is
        edited or deleted every copy cached under any of their tokens must go.

        Args:
            predicate: Called with each cached value; truthy means drop it.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            doomed = [k for k, (v, _) in self._store.items() if predicate(v)]
            for k in doomed:
                del self._store[k]
            return len(doomed)

    def clear(self) -> None:
        """Forget every cached session and reset the counters."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        """Return cache statistics.

        Returns:
            Dict with keys ``hits``, ``misses``, and ``size`` (live entries
            only; expired ones are purged first).
        """
        with self._lock:
            now = time.monotonic()
            expired = [k for k, (_, exp) in self._store.items() if now > exp]
            for k in expired:
                del self._store[k]
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._store),
            }

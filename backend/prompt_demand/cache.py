"""In-memory TTL cache with a size bound.

Expiration is lazy: an expired entry is dropped when ``get`` or ``exists``
touches it, or during the cleanup that runs when ``set`` pushes the store
over ``max_size``.  A single lock guards every mutation; the engine's
check-compute-store sequence is not atomic, so two callers may compute the
same key concurrently.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import CacheError

_MISSING = object()


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class Cache:
    """String-keyed store with per-entry expiry."""

    def __init__(
        self,
        ttl: float = 3600,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ #
    #  Reads                                                               #
    # ------------------------------------------------------------------ #
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or *default* on miss or expiry."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def exists(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def _lookup(self, key: str) -> Any:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return _MISSING
            if self._expired(entry):
                del self._store[key]
                return _MISSING
            return entry.value

    # ------------------------------------------------------------------ #
    #  Writes                                                              #
    # ------------------------------------------------------------------ #
    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> Any:
        """Store *value* for *ttl* seconds (default TTL when omitted).

        Raises CacheError for a non-string key or a negative TTL.
        """
        if not isinstance(key, str):
            raise CacheError(f"Cache keys must be strings, got {type(key).__name__}")
        ttl = self.ttl if ttl is None else ttl
        if ttl < 0:
            raise CacheError(f"Cache TTL cannot be negative: {ttl}")
        with self._lock:
            self._store[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            self._cleanup_if_needed()
        return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._store)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._store.keys())

    def __len__(self) -> int:
        return self.size()

    # ------------------------------------------------------------------ #
    #  Internals (caller holds the lock)                                   #
    # ------------------------------------------------------------------ #
    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() > entry.expires_at

    def _cleanup_if_needed(self) -> None:
        if len(self._store) <= self.max_size:
            return

        for key in [k for k, entry in self._store.items() if self._expired(entry)]:
            del self._store[key]

        overflow = len(self._store) - self.max_size
        if overflow <= 0:
            return

        # sorted() is stable: equal expiries go in insertion order
        oldest = sorted(self._store.items(), key=lambda item: item[1].expires_at)
        for key, _ in oldest[:overflow]:
            del self._store[key]

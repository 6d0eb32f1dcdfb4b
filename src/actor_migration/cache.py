"""Per-engine memo for join descriptors.

Join descriptors are a pure function of (field key, stage, field spec), and
stage and spec are fixed for an engine's lifetime, so entries are computed
lazily and never invalidated.

Concurrent first access is safe: the factory may run more than once for
the same key, but only the first stored result is ever returned, so every
caller observes one descriptor per key. Entries are published whole under
a lock, never partially.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

V = TypeVar("V")


class JoinCache(Generic[V]):
    """Thread-safe, lazily populated, never-invalidated memo keyed by field.

    Example:
        cache = JoinCache()
        desc = cache.get_or_compute("rev_user", lambda: compute("rev_user"))
    """

    def __init__(self) -> None:
        self._store: dict[str, V] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> V | None:
        """Return the cached value or ``None``."""
        with self._lock:
            return self._store.get(key)

    def get_or_compute(self, key: str, factory: Callable[[], V]) -> V:
        """Return the cached value, computing and storing it on first use.

        ``factory`` runs outside the lock; if two threads race, the value
        stored first wins and both callers receive it.
        """
        with self._lock:
            if key in self._store:
                return self._store[key]
        value = factory()
        with self._lock:
            return self._store.setdefault(key, value)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def size(self) -> int:
        """Return current number of cached keys."""
        with self._lock:
            return len(self._store)


__all__ = ["JoinCache"]

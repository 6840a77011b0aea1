"""Least-recently-used cache primitive shared by the snapshot and element caches."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Callable, Generic, Hashable, List, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Capacity-bounded mapping with least-recently-used eviction.

    Recency order is kept by an OrderedDict: the front is the least
    recently used key. ``get`` and ``set`` promote, ``has`` does not.
    A capacity of 0 is valid and retains nothing.

    Thread Safety: reads mutate recency order, so every operation takes
    the instance lock.
    """

    def __init__(
        self,
        capacity: int,
        on_evict: Optional[Callable[[K, V], None]] = None,
    ) -> None:
        """Create a cache.

        Args:
            capacity: Maximum number of entries (fixed)
            on_evict: Called with (key, value) after an entry is evicted
                for capacity; not called for delete() or clear()

        Raises:
            ValueError: If capacity is negative
        """
        if capacity < 0:
            raise ValueError(f"Cache capacity must be non-negative, got {capacity}")
        self._capacity = capacity
        self._on_evict = on_evict
        self._entries: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K) -> Optional[V]:
        """Return the value for ``key`` and mark it most recently used.

        Returns:
            The cached value, or None if absent
        """
        with self._lock:
            if key not in self._entries:
                return None
            self._entries.move_to_end(key)
            return self._entries[key]

    def set(self, key: K, value: V) -> None:
        """Store ``value`` under ``key`` as the most recently used entry.

        Adding a new key at capacity evicts the least recently used key.
        """
        evicted = None
        with self._lock:
            if self._capacity == 0:
                return
            if key in self._entries:
                self._entries[key] = value
                self._entries.move_to_end(key)
                return
            if len(self._entries) >= self._capacity:
                evicted = self._entries.popitem(last=False)
            self._entries[key] = value

        if evicted is not None and self._on_evict is not None:
            self._on_evict(*evicted)

    def has(self, key: K) -> bool:
        """Check membership without touching recency."""
        with self._lock:
            return key in self._entries

    def delete(self, key: K) -> bool:
        """Remove ``key``.

        Returns:
            True if the key was present
        """
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                return True
            return False

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[K]:
        """Keys ordered from least to most recently used."""
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __repr__(self) -> str:
        return f"LRUCache(capacity={self._capacity}, size={self.size()})"

"""Bounded in-memory key-value stores owned by a single explorer instance."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Generic, Hashable, Optional, TypeVar

__all__ = ["CacheStats", "LRUCache"]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    puts: int = 0
    evictions: int = 0


class LRUCache(Generic[K, V]):
    """Least-recently-used store with add-if-absent writes.

    ``maxsize=None`` keeps every entry. Writes never replace an existing
    value, so concurrent producers of the same key converge on whichever
    value was stored first.
    """

    def __init__(self, maxsize: Optional[int] = None) -> None:
        if maxsize is not None and maxsize < 1:
            raise ValueError("maxsize must be >= 1 or None")
        self.maxsize = maxsize
        self.stats = CacheStats()
        self._data: "OrderedDict[K, V]" = OrderedDict()

    def get(self, key: K) -> Optional[V]:
        try:
            value = self._data[key]
        except KeyError:
            self.stats.misses += 1
            return None
        self._data.move_to_end(key)
        self.stats.hits += 1
        return value

    def setdefault(self, key: K, value: V) -> V:
        """Store ``value`` unless ``key`` is present; return the stored value."""

        existing = self._data.get(key)
        if existing is not None:
            self._data.move_to_end(key)
            return existing
        self._data[key] = value
        self.stats.puts += 1
        self._evict()
        return value

    def _evict(self) -> None:
        if self.maxsize is None:
            return
        while len(self._data) > self.maxsize:
            self._data.popitem(last=False)
            self.stats.evictions += 1

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[K]:
        return list(self._data.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

"""Lazily built per-package metadata index with composite-key fast lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from .cache import LRUCache
from .errors import ExplorerError, UpstreamError
from .filters import entry_keys, filter_keys, matches_filter
from .models import IndexEntry, LookupFilter, PackageIdentifier
from .source import PackageSource

__all__ = ["PackageIndex", "PackageIndexer"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageIndex:
    """Entries of one package and their composite-key buckets."""

    package: PackageIdentifier
    entries: tuple[IndexEntry, ...]
    buckets: Mapping[str, tuple[IndexEntry, ...]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        package: PackageIdentifier,
        raw_files: Sequence[Mapping[str, Any]],
    ) -> "PackageIndex":
        entries = tuple(IndexEntry.from_raw(raw, package) for raw in raw_files)
        buckets: dict[str, list[IndexEntry]] = {}
        for entry in entries:
            for key in entry_keys(entry):
                buckets.setdefault(key, []).append(entry)
        return cls(
            package=package,
            entries=entries,
            buckets={key: tuple(items) for key, items in buckets.items()},
        )

    def fast_candidates(self, filter: LookupFilter) -> list[IndexEntry]:
        """Union of the buckets hit by the filter's composite keys."""

        seen: set[tuple[str, str, str]] = set()
        found: list[IndexEntry] = []
        for key in filter_keys(filter, self.package):
            for entry in self.buckets.get(key, ()):
                if entry.identity in seen:
                    continue
                seen.add(entry.identity)
                found.append(entry)
        return found

    def scan(self, filter: LookupFilter) -> list[IndexEntry]:
        return [entry for entry in self.entries if matches_filter(entry, filter)]

    def search(self, filter: LookupFilter) -> list[IndexEntry]:
        """Fast path when any bucket is hit, otherwise a full linear scan."""

        candidates = self.fast_candidates(filter)
        if not candidates:
            return self.scan(filter)
        return [entry for entry in candidates if matches_filter(entry, filter)]


class PackageIndexer:
    """Builds and caches :class:`PackageIndex` objects on first touch."""

    def __init__(self, source: PackageSource, *, cache_size: Optional[int] = None) -> None:
        self.source = source
        self._cache: LRUCache[str, PackageIndex] = LRUCache(cache_size)

    @property
    def cache(self) -> LRUCache[str, PackageIndex]:
        return self._cache

    async def ensure_indexed(self, package: PackageIdentifier) -> PackageIndex:
        """Return the package index, building it from the collaborator once."""

        cached = self._cache.get(package.key)
        if cached is not None:
            return cached
        try:
            await self.source.install(package)
            raw_index = await self.source.get_package_index_file(package)
        except ExplorerError:
            raise
        except Exception as exc:
            raise UpstreamError(f"indexing package {package}", str(exc)) from exc
        raw_files = list((raw_index or {}).get("files") or [])
        index = PackageIndex.build(package, raw_files)
        logger.debug(
            "indexed package=%s entries=%d keys=%d",
            package,
            len(index.entries),
            len(index.buckets),
        )
        return self._cache.setdefault(package.key, index)

"""Discovery and disambiguation of conformance resources across package contexts."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Mapping, Optional, TypeVar

from .cache import LRUCache
from .closure import EXAMPLES_MARKER, ClosureResolver, ContextResolution
from .config import ExplorerConfig
from .duplicates import resolve_duplicates
from .errors import (
    AmbiguousMatchError,
    ExplorerError,
    ManifestUnavailableError,
    NoMatchFoundError,
    UpstreamError,
)
from .indexer import PackageIndexer
from .log import Logger, default_logger
from .models import (
    FILENAME_FIELD,
    PACKAGE_ID_FIELD,
    PACKAGE_VERSION_FIELD,
    IndexEntry,
    LookupFilter,
    PackageIdentifier,
    PackageRef,
)
from .source import PackageSource

__all__ = ["FhirPackageExplorer"]

T = TypeVar("T")

FilterLike = LookupFilter | Mapping[str, Any] | None


class FhirPackageExplorer:
    """Query package contents across the transitive closure of a context.

    Build instances with :meth:`create`; the context is resolved once and
    stays fixed for the lifetime of the instance.
    """

    def __init__(
        self,
        config: ExplorerConfig,
        *,
        source: PackageSource | None = None,
    ) -> None:
        self.config = config
        self.logger: Logger = config.logger or default_logger()
        self.source: PackageSource = source or self._default_source()
        self.families = config.package_families
        self.resolver = ClosureResolver(
            self.source,
            skip_marker=EXAMPLES_MARKER if config.skip_examples else None,
        )
        self.indexer = PackageIndexer(self.source, cache_size=config.index_cache_size)
        self._content: LRUCache[str, dict[str, Any]] = LRUCache(config.content_cache_size)
        self._context: ContextResolution | None = None

    def _default_source(self) -> PackageSource:
        from fpe_builtin.packages import PackageInstaller

        return PackageInstaller(
            cache_path=self.config.cache_path,
            registry_url=self.config.registry_url,
            registry_token=self.config.registry_token,
            logger=self.logger,
        )

    @classmethod
    async def create(
        cls,
        config: ExplorerConfig | Mapping[str, Any] | None = None,
        *,
        source: PackageSource | None = None,
        **options: Any,
    ) -> "FhirPackageExplorer":
        """Build an explorer and resolve its package context before returning it."""

        if config is None:
            config = ExplorerConfig.from_mapping(options)
        elif not isinstance(config, ExplorerConfig):
            config = ExplorerConfig.from_mapping({**dict(config), **options})
        instance = cls(config, source=source)
        await instance._load_context()
        return instance

    async def _load_context(self) -> None:
        self._context = await self.resolver.resolve(self.config.context)
        self.logger.info(
            "package context loaded: roots=%s packages=%d",
            ", ".join(str(root) for root in self._context.roots),
            len(self._context.scope),
        )

    @property
    def context(self) -> ContextResolution:
        if self._context is None:
            raise ExplorerError("explorer context is not loaded; use FhirPackageExplorer.create()")
        return self._context

    # ------------------------- accessors -------------------------

    def get_cache_path(self) -> Path:
        return self.source.get_cache_path()

    def get_logger(self) -> Logger:
        return self.logger

    def get_context_packages(self) -> list[PackageIdentifier]:
        """Canonical scope: every package searched, sorted by id then version."""

        return list(self.context.scope)

    def get_normalized_root_packages(self) -> list[PackageIdentifier]:
        """The context roots left after dropping those implied by other roots."""

        return list(self.context.roots)

    # ------------------------- packages --------------------------

    async def expand_package_dependencies(self, package: PackageRef) -> list[PackageIdentifier]:
        pkg = await self._normalize(package)
        return await self._upstream(f"expanding dependencies of {pkg}", self.resolver.expand(pkg))

    async def get_direct_dependencies(self, package: PackageRef) -> list[PackageIdentifier]:
        pkg = await self._normalize(package)
        deps = await self._upstream(
            f"reading dependencies of {pkg}", self.resolver.direct_dependencies(pkg)
        )
        return list(deps)

    async def get_package_manifest(self, package: PackageRef) -> dict[str, Any]:
        pkg = await self._normalize(package)
        manifest = await self._upstream(f"reading manifest of {pkg}", self.source.get_manifest(pkg))
        if not manifest:
            raise ManifestUnavailableError(pkg)
        return dict(manifest)

    # -------------------------- queries --------------------------

    async def lookup_meta(self, filter: FilterLike = None, **fields: Any) -> list[IndexEntry]:
        """Index entries matching ``filter`` across the canonical scope."""

        normalized = LookupFilter.coerce(filter, **fields).normalized()
        allowed: Optional[frozenset[str]] = None
        if normalized.package is not None:
            scoped = await self._normalize(normalized.package)
            closure = await self._upstream(
                f"expanding dependencies of {scoped}", self.resolver.expand(scoped)
            )
            allowed = frozenset(p.key for p in closure)

        results: dict[tuple[str, str, str], IndexEntry] = {}
        for package in self.context.scope:
            if allowed is not None and package.key not in allowed:
                continue
            index = await self.indexer.ensure_indexed(package)
            for entry in index.search(normalized):
                results.setdefault(entry.identity, entry)

        self.logger.debug("lookup filter=%s matches=%d", normalized, len(results))
        return list(results.values())

    async def lookup(self, filter: FilterLike = None, **fields: Any) -> list[dict[str, Any]]:
        """Full documents matching ``filter``, enriched with their provenance."""

        entries = await self.lookup_meta(filter, **fields)
        return list(await asyncio.gather(*(self._read_document(entry) for entry in entries)))

    async def resolve_meta(self, filter: FilterLike = None, **fields: Any) -> IndexEntry:
        """The single entry matching ``filter``, after duplicate resolution."""

        normalized = LookupFilter.coerce(filter, **fields).normalized()
        matches = await self.lookup_meta(normalized)
        if not matches:
            raise NoMatchFoundError(normalized)
        if len(matches) == 1:
            return matches[0]

        package = None
        if normalized.package is not None:
            package = await self._normalize(normalized.package)
        resolved = resolve_duplicates(matches, normalized, package=package, families=self.families)
        if len(resolved) != 1:
            raise AmbiguousMatchError(normalized, sorted(str(m.package) for m in matches))
        self.logger.debug(
            "resolved %d duplicates for filter=%s to %s", len(matches), normalized, resolved[0].package
        )
        return resolved[0]

    async def resolve(self, filter: FilterLike = None, **fields: Any) -> dict[str, Any]:
        entry = await self.resolve_meta(filter, **fields)
        return await self._read_document(entry)

    # -------------------------- helpers --------------------------

    def get_file_path(self, entry: IndexEntry) -> Path:
        if not entry.filename:
            raise ExplorerError(f"index entry {entry!r} has no filename")
        return self.source.get_package_dir_path(entry.package) / "package" / entry.filename

    async def _read_document(self, entry: IndexEntry) -> dict[str, Any]:
        path = self.get_file_path(entry)
        key = str(path)
        cached = self._content.get(key)
        if cached is None:
            content = await self._upstream(f"reading {path}", self.source.read_json(path))
            if not isinstance(content, Mapping):
                raise UpstreamError(f"reading {path}", "document is not a JSON object")
            enriched = dict(content)
            enriched[PACKAGE_ID_FIELD] = entry.package_id
            enriched[PACKAGE_VERSION_FIELD] = entry.package_version
            enriched[FILENAME_FIELD] = entry.filename
            cached = self._content.setdefault(key, enriched)
        return dict(cached)

    async def _normalize(self, ref: PackageRef) -> PackageIdentifier:
        return await self._upstream(f"normalizing package {ref!s}", self.resolver.normalize(ref))

    async def _upstream(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except ExplorerError:
            raise
        except Exception as exc:
            self.logger.error("%s failed: %s", operation, exc)
            raise UpstreamError(operation, str(exc)) from exc

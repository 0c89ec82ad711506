"""Transitive dependency closure and minimal root-set computation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Iterable, Optional, Sequence, TypeVar

from .cache import LRUCache
from .errors import InitializationError
from .models import PackageIdentifier, PackageRef, sort_packages
from .source import PackageSource

__all__ = ["ClosureResolver", "ContextResolution", "EXAMPLES_MARKER", "minimal_roots"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXAMPLES_MARKER = "examples"


@dataclass(frozen=True)
class ContextResolution:
    """Outcome of resolving a context: minimal roots and canonical scope."""

    roots: tuple[PackageIdentifier, ...]
    scope: tuple[PackageIdentifier, ...]


class ClosureResolver:
    """Walks dependency graphs through a :class:`PackageSource`.

    Direct dependency lists are cached per package; traversal uses an
    explicit stack and an ``id#version`` visited set, so cycles terminate.
    """

    def __init__(
        self,
        source: PackageSource,
        *,
        skip_marker: Optional[str] = None,
    ) -> None:
        self.source = source
        self.skip_marker = skip_marker
        self._direct: LRUCache[str, tuple[PackageIdentifier, ...]] = LRUCache()

    def _skipped(self, package: PackageIdentifier) -> bool:
        return bool(self.skip_marker) and self.skip_marker in package.id

    async def normalize(self, ref: PackageRef) -> PackageIdentifier:
        if isinstance(ref, PackageIdentifier):
            return ref
        return await self.source.to_package_object(ref)

    async def direct_dependencies(self, package: PackageIdentifier) -> tuple[PackageIdentifier, ...]:
        """Sorted direct dependencies, without those excluded by the skip marker."""

        cached = self._direct.get(package.key)
        if cached is not None:
            return cached
        declared = await self.source.get_dependencies(package)
        deps = [
            PackageIdentifier(str(dep_id), str(dep_version))
            for dep_id, dep_version in (declared or {}).items()
        ]
        result = tuple(dep for dep in sort_packages(deps) if not self._skipped(dep))
        return self._direct.setdefault(package.key, result)

    async def expand(self, package: PackageIdentifier) -> list[PackageIdentifier]:
        """Return ``package`` plus everything reachable from it, sorted."""

        visited: dict[str, PackageIdentifier] = {}
        stack: list[PackageIdentifier] = [package]
        while stack:
            current = stack.pop()
            if current.key in visited:
                continue
            visited[current.key] = current
            for dep in reversed(await self.direct_dependencies(current)):
                if dep.key not in visited:
                    stack.append(dep)
        return sort_packages(visited.values())

    async def resolve(self, context: Sequence[PackageRef]) -> ContextResolution:
        """Compute the minimal root set and the canonical scope of ``context``.

        Any failure aborts the whole resolution with :class:`InitializationError`.
        """

        initial: dict[str, PackageIdentifier] = {}
        for ref in context:
            package = await self._guard(ref, self.normalize(ref))
            initial.setdefault(package.key, package)
        roots = list(initial.values())

        closures: dict[str, frozenset[str]] = {}
        members: dict[str, PackageIdentifier] = {}
        for root in roots:
            expanded = await self._guard(root, self.expand(root))
            closures[root.key] = frozenset(p.key for p in expanded)
            members.update((p.key, p) for p in expanded)

        minimal = minimal_roots(roots, closures)
        scope_keys: set[str] = set()
        for root in minimal:
            scope_keys.update(closures[root.key])
        scope = tuple(sort_packages(members[key] for key in scope_keys))

        for package in scope:
            await self._guard(package, self.source.install(package))

        logger.debug(
            "context resolved roots=%s scope=%d packages",
            ", ".join(str(r) for r in minimal),
            len(scope),
        )
        return ContextResolution(roots=tuple(minimal), scope=scope)

    async def _guard(self, ref: PackageRef, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except InitializationError:
            raise
        except Exception as exc:
            raise InitializationError(ref, str(exc)) from exc


def minimal_roots(
    roots: Iterable[PackageIdentifier],
    closures: dict[str, frozenset[str]],
) -> list[PackageIdentifier]:
    """Drop every root contained in another root's closure.

    Roots that are only redundant through a cycle are not all dropped: the
    first uncovered root of each cycle, in sorted order, stands in for it.
    The kept closures always union to the closures of all roots.
    """

    ordered = sort_packages(roots)
    kept = [
        root
        for root in ordered
        if not any(
            other.key != root.key and root.key in closures[other.key]
            for other in ordered
        )
    ]
    covered: set[str] = set()
    for root in kept:
        covered.update(closures[root.key])
    for root in ordered:
        if root.key not in covered:
            kept.append(root)
            covered.update(closures[root.key])
    # a later representative may reach an earlier one
    kept = [
        root
        for root in kept
        if not any(
            other.key != root.key and root.key in closures[other.key]
            for other in kept
        )
    ]
    return sort_packages(kept)

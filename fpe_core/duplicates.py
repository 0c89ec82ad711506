"""Tie-break policies that collapse several matching entries into one.

Each policy is a pure function ``(matches, context) -> matches``. The chain
runs them in order and stops as soon as exactly one entry remains; any
other outcome after the last policy is an unresolved ambiguity.

Order:

1. explicit package-scope match
2. implicit-package-over-core bias (and the traditional core bias)
3. resource-type bias among implicit package families
4. implicit-package version bias (package version, then major from the id)
5. same-package semver collapse on the document version
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cached_property, cmp_to_key
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .models import IndexEntry, LookupFilter, PackageIdentifier
from .versions import compare_semver, is_strict_semver

__all__ = [
    "DEFAULT_POLICIES",
    "DuplicateContext",
    "PackageFamilies",
    "Policy",
    "implicit_over_core",
    "implicit_version_bias",
    "package_scope_match",
    "resolve_duplicates",
    "resource_type_bias",
    "same_package_semver",
]

_MAJOR_SUFFIX_RE = re.compile(r"\.r(\d+)$")


def _compile(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p) for p in patterns)


@dataclass(frozen=True)
class PackageFamilies:
    """Naming conventions that classify packages as core or implicit."""

    core: tuple[str, ...] = (r"^hl7\.fhir\.r\d+\.core$",)
    implicit: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: {
            "terminology": (r"^hl7\.terminology\.r\d+$",),
            "extensions": (r"^hl7\.fhir\.uv\.extensions\.r\d+$",),
        }
    )
    terminology_family: str = "terminology"
    terminology_resource_types: frozenset[str] = frozenset({"ValueSet", "ConceptMap", "CodeSystem"})

    @cached_property
    def _core_re(self) -> tuple[re.Pattern[str], ...]:
        return _compile(self.core)

    @cached_property
    def _implicit_re(self) -> dict[str, tuple[re.Pattern[str], ...]]:
        return {name: _compile(patterns) for name, patterns in self.implicit.items()}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PackageFamilies":
        """Build families from a config table, falling back to the defaults per key."""

        defaults = cls()
        implicit = data.get("implicit", defaults.implicit)
        return cls(
            core=_as_patterns(data.get("core", defaults.core)),
            implicit={str(name): _as_patterns(p) for name, p in dict(implicit).items()},
            terminology_family=str(data.get("terminology_family", defaults.terminology_family)),
            terminology_resource_types=frozenset(
                str(item)
                for item in data.get("terminology_resource_types", defaults.terminology_resource_types)
            ),
        )

    def is_core(self, package_id: str) -> bool:
        return any(p.search(package_id) for p in self._core_re)

    def family_of(self, package_id: str) -> Optional[str]:
        """Name of the implicit family ``package_id`` belongs to, if any."""

        for name, patterns in self._implicit_re.items():
            if any(p.search(package_id) for p in patterns):
                return name
        return None

    def is_implicit(self, package_id: str) -> bool:
        return self.family_of(package_id) is not None

    def is_terminology_resource(self, resource_type: Optional[str]) -> bool:
        return bool(resource_type) and resource_type in self.terminology_resource_types


def _as_patterns(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def major_from_package_id(package_id: str) -> int:
    match = _MAJOR_SUFFIX_RE.search(package_id)
    return int(match.group(1)) if match else 0


@dataclass(frozen=True)
class DuplicateContext:
    """Inputs shared by every policy besides the candidate list."""

    filter: LookupFilter
    package: Optional[PackageIdentifier] = None
    families: PackageFamilies = field(default_factory=PackageFamilies)


Policy = Callable[[list[IndexEntry], DuplicateContext], list[IndexEntry]]


def package_scope_match(matches: list[IndexEntry], ctx: DuplicateContext) -> list[IndexEntry]:
    """Keep the single match owned by the filter's exact package, if there is one."""

    if ctx.package is None:
        return matches
    owned = [m for m in matches if m.package_id == ctx.package.id and m.package_version == ctx.package.version]
    return owned if len(owned) == 1 else matches


def implicit_over_core(matches: list[IndexEntry], ctx: DuplicateContext) -> list[IndexEntry]:
    families = ctx.families
    core = [m for m in matches if families.is_core(m.package_id)]
    implicit = [m for m in matches if families.is_implicit(m.package_id)]
    if implicit:
        return implicit
    if len(core) == 1:
        return core
    return matches


def resource_type_bias(matches: list[IndexEntry], ctx: DuplicateContext) -> list[IndexEntry]:
    """Choose between implicit families using the filter's resource type."""

    families = ctx.families
    if len(matches) < 2:
        return matches
    by_family = [families.family_of(m.package_id) for m in matches]
    if any(name is None for name in by_family) or len(set(by_family)) < 2:
        return matches
    terminology = families.terminology_family
    if families.is_terminology_resource(ctx.filter.resource_type):
        chosen = [m for m, name in zip(matches, by_family) if name == terminology]
    else:
        chosen = [m for m, name in zip(matches, by_family) if name != terminology]
    return chosen or matches


def _implicit_order(a: IndexEntry, b: IndexEntry) -> int:
    by_version = compare_semver(b.package_version, a.package_version)
    if by_version != 0:
        return by_version
    return major_from_package_id(b.package_id) - major_from_package_id(a.package_id)


def implicit_version_bias(matches: list[IndexEntry], ctx: DuplicateContext) -> list[IndexEntry]:
    if len(matches) < 2 or not all(ctx.families.is_implicit(m.package_id) for m in matches):
        return matches
    ranked = sorted(matches, key=cmp_to_key(_implicit_order))
    return [ranked[0]]


def same_package_semver(matches: list[IndexEntry], ctx: DuplicateContext) -> list[IndexEntry]:
    """Collapse versions of one document within a single package to the latest."""

    if len(matches) < 2:
        return matches
    if len({m.package_id for m in matches}) != 1:
        return matches
    versions = [m.get("version") for m in matches]
    if not all(is_strict_semver(v) for v in versions):
        return matches
    latest = sorted(versions, key=cmp_to_key(compare_semver))[-1]
    return [m for m in matches if m.get("version") == latest]


DEFAULT_POLICIES: tuple[Policy, ...] = (
    package_scope_match,
    implicit_over_core,
    resource_type_bias,
    implicit_version_bias,
    same_package_semver,
)


def resolve_duplicates(
    matches: Sequence[IndexEntry],
    filter: LookupFilter,
    *,
    package: Optional[PackageIdentifier] = None,
    families: Optional[PackageFamilies] = None,
    policies: Sequence[Policy] = DEFAULT_POLICIES,
) -> list[IndexEntry]:
    """Run the policy chain; a single-element result means success.

    ``package`` is the already-normalized identity of ``filter.package``.
    """

    current = list(matches)
    if len(current) < 2:
        return current
    ctx = DuplicateContext(filter=filter, package=package, families=families or PackageFamilies())
    for policy in policies:
        current = policy(current, ctx)
        if len(current) == 1:
            return current
    return current

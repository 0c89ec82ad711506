"""Filter normalization, entry matching and composite fast-index keys."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .models import (
    PACKAGE_ID_FIELD,
    PACKAGE_VERSION_FIELD,
    IndexEntry,
    LookupFilter,
    PackageIdentifier,
)

__all__ = [
    "composite_keys",
    "entry_keys",
    "filter_keys",
    "matches_filter",
    "normalize_filter",
]


def normalize_filter(filter: LookupFilter | Mapping[str, Any] | None) -> LookupFilter:
    """Return a normalized copy of ``filter``; the argument is left untouched."""

    return LookupFilter.coerce(filter).normalized()


def matches_filter(entry: Mapping[str, Any], filter: LookupFilter) -> bool:
    """True when every field constraint is present on ``entry`` with an equal value.

    The ``package`` scope is not a field constraint and is ignored here.
    """

    for key, value in filter.fields.items():
        if key not in entry or entry[key] != value:
            return False
    return True


def _key(*pairs: tuple[str, Any]) -> str:
    return "|".join(f"{name}:{value}" for name, value in pairs)


def composite_keys(
    fields: Mapping[str, Any],
    package: Optional[PackageIdentifier] = None,
) -> list[str]:
    """Every composite key applicable to ``fields``, most selective first.

    A key is produced only when all of its component values are non-empty.
    ``package`` overrides the package identity carried by ``fields``.
    """

    if package is not None:
        pkg_id: Any = package.id
        pkg_version: Any = package.version
    else:
        pkg_id = fields.get(PACKAGE_ID_FIELD)
        pkg_version = fields.get(PACKAGE_VERSION_FIELD)
    pkg = f"{pkg_id}#{pkg_version}" if pkg_id and pkg_version else None

    resource_type = fields.get("resourceType")
    url = fields.get("url")
    id_ = fields.get("id")
    name = fields.get("name")
    version = fields.get("version")
    derivation = fields.get("derivation")

    keys: list[str] = []
    if pkg and resource_type and id_ and derivation:
        keys.append(_key(("pkg", pkg), ("resourceType", resource_type), ("id", id_), ("derivation", derivation)))
    if pkg and resource_type and url:
        keys.append(_key(("pkg", pkg), ("resourceType", resource_type), ("url", url)))
    if resource_type and url and version:
        keys.append(_key(("resourceType", resource_type), ("url", url), ("version", version)))
    if resource_type and url:
        keys.append(_key(("resourceType", resource_type), ("url", url)))
    if url and version:
        keys.append(_key(("url", url), ("version", version)))
    if url:
        keys.append(_key(("url", url)))
    if resource_type and name and version:
        keys.append(_key(("resourceType", resource_type), ("name", name), ("version", version)))
    if resource_type and id_ and version:
        keys.append(_key(("resourceType", resource_type), ("id", id_), ("version", version)))
    if resource_type and name:
        keys.append(_key(("resourceType", resource_type), ("name", name)))
    if resource_type and id_:
        keys.append(_key(("resourceType", resource_type), ("id", id_)))
    return keys


def filter_keys(filter: LookupFilter, package: PackageIdentifier) -> list[str]:
    """Composite keys of a normalized filter while scanning ``package``."""

    return composite_keys(filter.fields, package)


def entry_keys(entry: IndexEntry) -> list[str]:
    return composite_keys(entry)

"""Value types shared by the explorer core: identities, index entries and filters."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Union

__all__ = [
    "PACKAGE_ID_FIELD",
    "PACKAGE_VERSION_FIELD",
    "FILENAME_FIELD",
    "IndexEntry",
    "LookupFilter",
    "PackageIdentifier",
    "PackageRef",
    "parse_package_spec",
    "sort_packages",
]

PACKAGE_ID_FIELD = "__packageId"
PACKAGE_VERSION_FIELD = "__packageVersion"
FILENAME_FIELD = "__filename"

PIPED_FIELDS: tuple[str, ...] = ("url", "name", "id")


@dataclass(frozen=True, order=True)
class PackageIdentifier:
    """A package name and an opaque version string."""

    id: str
    version: str

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("package id cannot be empty")
        if not self.version:
            raise ValueError(f"package {self.id!r} has no version")

    @property
    def key(self) -> str:
        """Return the ``id#version`` form used to key caches and visited sets."""

        return f"{self.id}#{self.version}"

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "version": self.version}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PackageIdentifier":
        package_id = str(data.get("id") or data.get("name") or "").strip()
        version = str(data.get("version") or "").strip()
        return cls(id=package_id, version=version)

    def __str__(self) -> str:
        return f"{self.id}@{self.version}"


PackageRef = Union[str, PackageIdentifier, Mapping[str, Any]]


def parse_package_spec(spec: str) -> tuple[str, str | None]:
    """Split ``id@version`` / ``id#version`` / ``id`` into its parts."""

    text = spec.strip()
    for separator in ("@", "#"):
        if separator in text:
            name, version = text.split(separator, 1)
            return name.strip(), version.strip() or None
    return text, None


def sort_packages(packages: Iterable[PackageIdentifier]) -> list[PackageIdentifier]:
    """Deduplicate and sort packages by id, then version."""

    return sorted(set(packages))


class IndexEntry(Mapping[str, Any]):
    """Read-only metadata of one document, stamped with its owning package."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]) -> None:
        if not data.get(PACKAGE_ID_FIELD) or not data.get(PACKAGE_VERSION_FIELD):
            raise ValueError("index entries must carry the owning package identity")
        self._data = MappingProxyType(dict(data))

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], package: PackageIdentifier) -> "IndexEntry":
        payload = {key: value for key, value in raw.items() if value is not None}
        payload[PACKAGE_ID_FIELD] = package.id
        payload[PACKAGE_VERSION_FIELD] = package.version
        return cls(payload)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        return hash(self.identity)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IndexEntry):
            return dict(self._data) == dict(other._data)
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return (
            f"IndexEntry({self.resource_type}/{self.get('id')} "
            f"filename={self.filename!r} package={self.package})"
        )

    @property
    def package_id(self) -> str:
        return str(self._data[PACKAGE_ID_FIELD])

    @property
    def package_version(self) -> str:
        return str(self._data[PACKAGE_VERSION_FIELD])

    @property
    def package(self) -> PackageIdentifier:
        return PackageIdentifier(self.package_id, self.package_version)

    @property
    def filename(self) -> str | None:
        return self._data.get("filename")

    @property
    def resource_type(self) -> str | None:
        return self._data.get("resourceType")

    @property
    def identity(self) -> tuple[str, str, str]:
        """Deduplication key: ``(filename, packageId, packageVersion)``."""

        return (str(self.filename or ""), self.package_id, self.package_version)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


@dataclass(frozen=True)
class LookupFilter:
    """Field constraints over index entries plus an optional package scope.

    ``fields`` holds exact-match constraints keyed by entry field name.
    ``package`` is never compared against entry fields; it restricts the
    search to that package and its transitive dependencies.
    """

    fields: Mapping[str, Any] = field(default_factory=dict)
    package: PackageRef | None = None

    def __post_init__(self) -> None:
        cleaned = {key: value for key, value in self.fields.items() if value is not None}
        object.__setattr__(self, "fields", MappingProxyType(cleaned))

    @classmethod
    def coerce(
        cls,
        value: "LookupFilter | Mapping[str, Any] | None" = None,
        **extra: Any,
    ) -> "LookupFilter":
        """Build a filter from a mapping (``package`` key included) and keyword fields."""

        if isinstance(value, LookupFilter):
            if not extra:
                return value
            merged: dict[str, Any] = dict(value.fields)
            package = extra.pop("package", value.package)
            merged.update(extra)
            return cls(fields=merged, package=package)
        data: dict[str, Any] = dict(value or {})
        data.update(extra)
        package = data.pop("package", None)
        return cls(fields=data, package=package)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @property
    def resource_type(self) -> str | None:
        return self.fields.get("resourceType")

    def normalized(self) -> "LookupFilter":
        """Return a copy with the ``value|version`` shorthand expanded.

        Only the first piped field in ``url``, ``name``, ``id`` order is
        honoured: its left part replaces the field and its right part becomes
        the ``version`` constraint.
        """

        fields = dict(self.fields)
        for key in PIPED_FIELDS:
            value = fields.get(key)
            if isinstance(value, str) and "|" in value:
                left, right = value.split("|", 1)
                fields[key] = left
                fields["version"] = right.split("|", 1)[0]
                break
        return LookupFilter(fields=fields, package=self.package)

    def to_dict(self) -> dict[str, Any]:
        payload = dict(self.fields)
        if self.package is not None:
            package = self.package
            payload["package"] = str(package) if isinstance(package, PackageIdentifier) else package
        return payload

    def __str__(self) -> str:
        rendered = ", ".join(f"{key}={value!r}" for key, value in sorted(self.to_dict().items()))
        return "{" + rendered + "}"

"""Tests for package identities, index entries and lookup filters."""

from __future__ import annotations

import pytest

from fpe_core import IndexEntry, LookupFilter, PackageIdentifier
from fpe_core.models import parse_package_spec, sort_packages


@pytest.mark.parametrize(
    ("spec", "expected"),
    [
        ("hl7.fhir.r4.core@4.0.1", ("hl7.fhir.r4.core", "4.0.1")),
        ("hl7.fhir.r4.core#4.0.1", ("hl7.fhir.r4.core", "4.0.1")),
        ("hl7.fhir.r4.core", ("hl7.fhir.r4.core", None)),
        (" hl7.fhir.r4.core@ ", ("hl7.fhir.r4.core", None)),
    ],
)
def test_parse_package_spec(spec: str, expected: tuple[str, str | None]) -> None:
    assert parse_package_spec(spec) == expected


def test_package_identifier_forms() -> None:
    pkg = PackageIdentifier("hl7.fhir.uv.sdc", "3.0.0")
    assert pkg.key == "hl7.fhir.uv.sdc#3.0.0"
    assert str(pkg) == "hl7.fhir.uv.sdc@3.0.0"
    assert pkg.to_dict() == {"id": "hl7.fhir.uv.sdc", "version": "3.0.0"}
    assert PackageIdentifier.from_mapping({"name": "hl7.fhir.uv.sdc", "version": "3.0.0"}) == pkg


def test_package_identifier_requires_id_and_version() -> None:
    with pytest.raises(ValueError):
        PackageIdentifier("", "1.0.0")
    with pytest.raises(ValueError):
        PackageIdentifier("pkg", "")


def test_sort_packages_orders_by_id_then_version_and_dedups() -> None:
    packages = [
        PackageIdentifier("b", "1.0.0"),
        PackageIdentifier("a", "2.0.0"),
        PackageIdentifier("a", "1.0.0"),
        PackageIdentifier("b", "1.0.0"),
    ]
    assert sort_packages(packages) == [
        PackageIdentifier("a", "1.0.0"),
        PackageIdentifier("a", "2.0.0"),
        PackageIdentifier("b", "1.0.0"),
    ]


def test_index_entry_stamps_package_and_drops_missing_values() -> None:
    pkg = PackageIdentifier("hl7.fhir.r4.core", "4.0.1")
    entry = IndexEntry.from_raw(
        {"filename": "StructureDefinition-Observation.json", "resourceType": "StructureDefinition", "url": None},
        pkg,
    )

    assert entry.package == pkg
    assert entry["__packageId"] == "hl7.fhir.r4.core"
    assert entry["__packageVersion"] == "4.0.1"
    assert "url" not in entry
    assert entry.identity == ("StructureDefinition-Observation.json", "hl7.fhir.r4.core", "4.0.1")
    assert entry.resource_type == "StructureDefinition"


def test_index_entry_is_read_only() -> None:
    entry = IndexEntry.from_raw({"filename": "a.json"}, PackageIdentifier("p", "1.0.0"))
    with pytest.raises(TypeError):
        entry["filename"] = "b.json"  # type: ignore[index]


def test_index_entry_requires_package_identity() -> None:
    with pytest.raises(ValueError):
        IndexEntry({"filename": "a.json"})


def test_filter_coerce_separates_package_and_drops_none() -> None:
    query = LookupFilter.coerce({"resourceType": "ValueSet", "url": None, "package": "p@1.0.0"}, id="x")

    assert dict(query.fields) == {"resourceType": "ValueSet", "id": "x"}
    assert query.package == "p@1.0.0"


def test_filter_normalization_splits_first_piped_field() -> None:
    query = LookupFilter({"url": "http://x/y|1.2.0", "name": "N|9.9.9"})
    normalized = query.normalized()

    assert dict(normalized.fields) == {"url": "http://x/y", "name": "N|9.9.9", "version": "1.2.0"}
    assert dict(query.fields) == {"url": "http://x/y|1.2.0", "name": "N|9.9.9"}


def test_filter_normalization_uses_name_when_url_not_piped() -> None:
    normalized = LookupFilter({"url": "http://x/y", "name": "AssembleExpectation|3.0.0"}).normalized()
    assert normalized.get("name") == "AssembleExpectation"
    assert normalized.get("version") == "3.0.0"


def test_filter_normalization_overrides_explicit_version() -> None:
    normalized = LookupFilter({"id": "obs|2.0.0", "version": "1.0.0"}).normalized()
    assert normalized.get("id") == "obs"
    assert normalized.get("version") == "2.0.0"


def test_filter_without_pipes_is_unchanged() -> None:
    query = LookupFilter({"resourceType": "StructureDefinition", "id": "Observation"}, package="p@1")
    normalized = query.normalized()
    assert dict(normalized.fields) == dict(query.fields)
    assert normalized.package == "p@1"

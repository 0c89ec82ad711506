"""Tests for the duplicate-resolution policy chain."""

from __future__ import annotations

from fpe_core import IndexEntry, LookupFilter, PackageFamilies, PackageIdentifier, resolve_duplicates
from fpe_core.duplicates import (
    DuplicateContext,
    implicit_over_core,
    major_from_package_id,
    resource_type_bias,
    same_package_semver,
)

URL = "http://example.org/fhir/ValueSet/shared"


def _entry(package_id: str, package_version: str, **fields) -> IndexEntry:
    raw = {"filename": fields.pop("filename", "ValueSet-shared.json"), "url": URL}
    raw.update(fields)
    return IndexEntry.from_raw(raw, PackageIdentifier(package_id, package_version))


def _packages(entries: list[IndexEntry]) -> list[str]:
    return [str(entry.package) for entry in entries]


def test_single_match_is_returned_untouched() -> None:
    only = [_entry("a", "1.0.0")]
    assert resolve_duplicates(only, LookupFilter({"url": URL})) == only


def test_package_scope_match_wins() -> None:
    matches = [_entry("hl7.fhir.r4.core", "4.0.1"), _entry("my.ig", "1.0.0")]
    resolved = resolve_duplicates(
        matches, LookupFilter({"url": URL}), package=PackageIdentifier("my.ig", "1.0.0")
    )
    assert _packages(resolved) == ["my.ig@1.0.0"]


def test_package_scope_with_no_owned_match_falls_through() -> None:
    matches = [_entry("a.ig", "1.0.0"), _entry("b.ig", "1.0.0")]
    resolved = resolve_duplicates(
        matches, LookupFilter({"url": URL}), package=PackageIdentifier("c.ig", "1.0.0")
    )
    assert len(resolved) == 2


def test_core_bias_prefers_single_core_match() -> None:
    matches = [_entry("my.ig", "1.0.0"), _entry("hl7.fhir.r4.core", "4.0.1")]
    assert _packages(resolve_duplicates(matches, LookupFilter({"url": URL}))) == ["hl7.fhir.r4.core@4.0.1"]


def test_implicit_package_beats_core() -> None:
    matches = [_entry("hl7.fhir.r4.core", "4.0.1"), _entry("hl7.terminology.r4", "6.2.0")]
    assert _packages(resolve_duplicates(matches, LookupFilter({"url": URL}))) == ["hl7.terminology.r4@6.2.0"]


def test_implicit_over_core_drops_core_and_others() -> None:
    ctx = DuplicateContext(filter=LookupFilter({"url": URL}))
    matches = [
        _entry("hl7.fhir.r4.core", "4.0.1"),
        _entry("hl7.terminology.r4", "6.2.0"),
        _entry("my.ig", "1.0.0"),
    ]
    assert _packages(implicit_over_core(matches, ctx)) == ["hl7.terminology.r4@6.2.0"]


def test_two_core_matches_are_not_collapsed_by_core_bias() -> None:
    ctx = DuplicateContext(filter=LookupFilter({"url": URL}))
    matches = [_entry("hl7.fhir.r4.core", "4.0.1"), _entry("hl7.fhir.r5.core", "5.0.0")]
    assert implicit_over_core(matches, ctx) == matches


def test_resource_type_bias_prefers_terminology_for_value_sets() -> None:
    matches = [_entry("hl7.fhir.uv.extensions.r4", "5.1.0"), _entry("hl7.terminology.r4", "6.2.0")]
    resolved = resolve_duplicates(matches, LookupFilter({"resourceType": "ValueSet", "url": URL}))
    assert _packages(resolved) == ["hl7.terminology.r4@6.2.0"]


def test_resource_type_bias_prefers_extensions_otherwise() -> None:
    matches = [_entry("hl7.fhir.uv.extensions.r4", "5.1.0"), _entry("hl7.terminology.r4", "6.2.0")]
    resolved = resolve_duplicates(matches, LookupFilter({"resourceType": "StructureDefinition", "url": URL}))
    assert _packages(resolved) == ["hl7.fhir.uv.extensions.r4@5.1.0"]


def test_resource_type_bias_needs_two_families() -> None:
    ctx = DuplicateContext(filter=LookupFilter({"resourceType": "ValueSet"}))
    matches = [_entry("hl7.terminology.r4", "6.2.0"), _entry("hl7.terminology.r5", "6.2.0")]
    assert resource_type_bias(matches, ctx) == matches


def test_implicit_version_bias_prefers_newer_package_version() -> None:
    matches = [_entry("hl7.terminology.r4", "5.5.0"), _entry("hl7.terminology.r4", "6.2.0")]
    assert _packages(resolve_duplicates(matches, LookupFilter({"url": URL}))) == ["hl7.terminology.r4@6.2.0"]


def test_implicit_version_bias_breaks_ties_with_fhir_major() -> None:
    matches = [_entry("hl7.terminology.r4", "6.2.0"), _entry("hl7.terminology.r5", "6.2.0")]
    assert _packages(resolve_duplicates(matches, LookupFilter({"url": URL}))) == ["hl7.terminology.r5@6.2.0"]


def test_major_from_package_id() -> None:
    assert major_from_package_id("hl7.terminology.r5") == 5
    assert major_from_package_id("hl7.terminology") == 0


def test_same_package_semver_keeps_latest_document_version() -> None:
    matches = [
        _entry("my.ig", "1.0.0", filename="ValueSet-shared-1.json", version="1.0.0"),
        _entry("my.ig", "1.0.0", filename="ValueSet-shared-2.json", version="1.10.0"),
        _entry("my.ig", "1.0.0", filename="ValueSet-shared-3.json", version="1.9.0"),
    ]
    resolved = resolve_duplicates(matches, LookupFilter({"url": URL}))
    assert [entry.filename for entry in resolved] == ["ValueSet-shared-2.json"]


def test_same_package_semver_skips_non_semver_versions() -> None:
    ctx = DuplicateContext(filter=LookupFilter({"url": URL}))
    matches = [
        _entry("my.ig", "1.0.0", filename="a.json", version="1.0.0"),
        _entry("my.ig", "1.0.0", filename="b.json", version="current"),
    ]
    assert same_package_semver(matches, ctx) == matches


def test_unrelated_packages_stay_ambiguous() -> None:
    matches = [_entry("a.ig", "1.0.0"), _entry("b.ig", "1.0.0")]
    assert len(resolve_duplicates(matches, LookupFilter({"url": URL}))) == 2


def test_custom_package_families() -> None:
    families = PackageFamilies.from_mapping(
        {"core": [r"^acme\.base$"], "implicit": {"terminology": r"^acme\.terminology$"}}
    )
    matches = [_entry("acme.base", "1.0.0"), _entry("my.ig", "1.0.0")]
    resolved = resolve_duplicates(matches, LookupFilter({"url": URL}), families=families)

    assert _packages(resolved) == ["acme.base@1.0.0"]
    assert families.is_implicit("acme.terminology")
    assert not families.is_core("hl7.fhir.r4.core")

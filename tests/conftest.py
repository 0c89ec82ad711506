"""Shared fixtures: an on-disk FHIR package cache and an in-memory package source."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import pytest

from fpe_core import PackageIdentifier
from fpe_core.models import parse_package_spec

OBSERVATION_URL = "http://hl7.org/fhir/StructureDefinition/Observation"
PATIENT_URL = "http://hl7.org/fhir/StructureDefinition/Patient"
SHARED_EXTENSION_URL = "http://example.org/fhir/StructureDefinition/shared-extension"
ASSEMBLE_EXPECTATION_URL = "http://hl7.org/fhir/uv/sdc/CodeSystem/assemble-expectation"

CORE = PackageIdentifier("hl7.fhir.r4.core", "4.0.1")
SDC = PackageIdentifier("hl7.fhir.uv.sdc", "3.0.0")


def structure_definition(sd_id: str, url: str, version: str, **extra: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "resourceType": "StructureDefinition",
        "id": sd_id,
        "url": url,
        "name": sd_id,
        "version": version,
        "kind": "resource",
        "type": sd_id,
        "derivation": "specialization",
    }
    doc.update(extra)
    return doc


class CacheBuilder:
    """Writes ``<root>/<id>#<version>/package/...`` trees for tests."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def add_package(
        self,
        package_id: str,
        version: str,
        *,
        dependencies: Mapping[str, str] | None = None,
        resources: Iterable[Mapping[str, Any] | tuple[str, Mapping[str, Any]]] = (),
        manifest: bool = True,
    ) -> Path:
        content = self.root / f"{package_id}#{version}" / "package"
        content.mkdir(parents=True, exist_ok=True)
        if manifest:
            payload = {"name": package_id, "version": version, "dependencies": dict(dependencies or {})}
            (content / "package.json").write_text(json.dumps(payload), encoding="utf-8")
        for item in resources:
            if isinstance(item, tuple):
                filename, doc = item
            else:
                doc = item
                filename = f"{doc['resourceType']}-{doc['id']}.json"
            (content / filename).write_text(json.dumps(doc), encoding="utf-8")
        return content


@pytest.fixture
def fhir_cache(tmp_path: Path) -> CacheBuilder:
    return CacheBuilder(tmp_path / "packages")


@pytest.fixture
def standard_cache(fhir_cache: CacheBuilder) -> CacheBuilder:
    """A core package and an IG (sdc) that depends on it, sharing one extension URL."""

    fhir_cache.add_package(
        CORE.id,
        CORE.version,
        resources=[
            structure_definition("Observation", OBSERVATION_URL, "4.0.1"),
            structure_definition("Patient", PATIENT_URL, "4.0.1"),
            structure_definition(
                "shared-extension",
                SHARED_EXTENSION_URL,
                "4.0.1",
                kind="complex-type",
                type="Extension",
                derivation="constraint",
            ),
        ],
    )
    fhir_cache.add_package(
        SDC.id,
        SDC.version,
        dependencies={CORE.id: CORE.version},
        resources=[
            {
                "resourceType": "CodeSystem",
                "id": "assemble-expectation",
                "url": ASSEMBLE_EXPECTATION_URL,
                "name": "AssembleExpectation",
                "version": "3.0.0",
                "content": "complete",
            },
            structure_definition(
                "shared-extension",
                SHARED_EXTENSION_URL,
                "3.0.0",
                kind="complex-type",
                type="Extension",
                derivation="constraint",
            ),
        ],
    )
    return fhir_cache


class FakeSource:
    """In-memory package source with call counters and failure injection."""

    def __init__(
        self,
        graph: Mapping[str, Mapping[str, str]],
        *,
        files: Mapping[str, list[Mapping[str, Any]]] | None = None,
        manifests: Mapping[str, Mapping[str, Any] | None] | None = None,
        documents: Mapping[str, Mapping[str, Any]] | None = None,
        fail_on: Iterable[str] = (),
        cache_path: Path = Path("/fake-cache"),
    ) -> None:
        self.graph = {key: dict(deps) for key, deps in graph.items()}
        self.files = {key: list(items) for key, items in (files or {}).items()}
        self.manifests = dict(manifests or {})
        self.documents = dict(documents or {})
        self.fail_on = set(fail_on)
        self.cache_path = cache_path
        self.installed: list[str] = []
        self.dependency_calls: dict[str, int] = {}
        self.index_calls: dict[str, int] = {}

    def _check(self, key: str) -> None:
        if key in self.fail_on:
            raise RuntimeError(f"boom: {key}")

    async def to_package_object(self, ref: Any) -> PackageIdentifier:
        if isinstance(ref, PackageIdentifier):
            return ref
        if isinstance(ref, Mapping):
            return PackageIdentifier.from_mapping(ref)
        name, version = parse_package_spec(str(ref))
        self._check(name)
        if not version:
            raise LookupError(f"no version for {name}")
        return PackageIdentifier(name, version)

    async def install(self, package: PackageIdentifier) -> None:
        self._check(package.key)
        if package.key not in self.graph:
            raise LookupError(f"unknown package {package.key}")
        if package.key not in self.installed:
            self.installed.append(package.key)

    async def get_dependencies(self, package: PackageIdentifier) -> dict[str, str]:
        self._check(package.key)
        self.dependency_calls[package.key] = self.dependency_calls.get(package.key, 0) + 1
        if package.key not in self.graph:
            raise LookupError(f"unknown package {package.key}")
        return dict(self.graph[package.key])

    async def get_package_index_file(self, package: PackageIdentifier) -> dict[str, Any]:
        self._check(f"index:{package.key}")
        self.index_calls[package.key] = self.index_calls.get(package.key, 0) + 1
        return {"index-version": 2, "files": [dict(item) for item in self.files.get(package.key, [])]}

    async def get_manifest(self, package: PackageIdentifier) -> Mapping[str, Any] | None:
        if package.key in self.manifests:
            return self.manifests[package.key]
        return {"name": package.id, "version": package.version, "dependencies": self.graph.get(package.key, {})}

    async def read_json(self, path: Path) -> Any:
        key = Path(path).as_posix()
        if key not in self.documents:
            raise FileNotFoundError(key)
        return dict(self.documents[key])

    def get_package_dir_path(self, package: PackageIdentifier) -> Path:
        return self.cache_path / package.key

    def get_cache_path(self) -> Path:
        return self.cache_path


@pytest.fixture
def fake_source() -> Callable[..., FakeSource]:
    return FakeSource

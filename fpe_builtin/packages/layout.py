"""Layout helpers for the local FHIR package cache."""

from __future__ import annotations

from pathlib import Path

from fpe_core.models import PackageIdentifier

__all__ = [
    "INDEX_FILE_NAME",
    "MANIFEST_FILE_NAME",
    "PACKAGE_SUBDIR",
    "content_dir",
    "is_installed",
    "manifest_path",
    "package_dir",
]

PACKAGE_SUBDIR = "package"
MANIFEST_FILE_NAME = "package.json"
INDEX_FILE_NAME = ".fpe.index.json"
RESERVED_FILE_NAMES = frozenset({MANIFEST_FILE_NAME, INDEX_FILE_NAME, ".index.json"})


def package_dir(root: Path, package: PackageIdentifier) -> Path:
    return root / f"{package.id}#{package.version}"


def content_dir(root: Path, package: PackageIdentifier) -> Path:
    return package_dir(root, package) / PACKAGE_SUBDIR


def manifest_path(root: Path, package: PackageIdentifier) -> Path:
    return content_dir(root, package) / MANIFEST_FILE_NAME


def is_installed(root: Path, package: PackageIdentifier) -> bool:
    return manifest_path(root, package).is_file()

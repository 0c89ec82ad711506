"""Capabilities the core consumes from the package-management collaborator."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .models import PackageIdentifier, PackageRef

__all__ = ["PackageSource"]


@runtime_checkable
class PackageSource(Protocol):
    """Acquires packages and exposes their manifests, indexes and files.

    Every method that touches the network or the filesystem is a coroutine.
    """

    async def to_package_object(self, ref: PackageRef) -> PackageIdentifier:
        """Normalize a string or mapping reference into an identifier."""

    async def install(self, package: PackageIdentifier) -> None:
        """Make sure the package is materialized locally (idempotent)."""

    async def get_dependencies(self, package: PackageIdentifier) -> Mapping[str, str]:
        """Return the direct dependency declarations: package id -> version."""

    async def get_package_index_file(self, package: PackageIdentifier) -> Mapping[str, Any]:
        """Return ``{"files": [...]}`` describing every document in the package."""

    async def get_manifest(self, package: PackageIdentifier) -> Optional[Mapping[str, Any]]:
        """Return the parsed package manifest, or ``None`` when absent."""

    async def read_json(self, path: Path) -> Any:
        """Read and parse one document."""

    def get_package_dir_path(self, package: PackageIdentifier) -> Path:
        """Return the local directory holding the package."""

    def get_cache_path(self) -> Path:
        """Return the root of the local package cache."""

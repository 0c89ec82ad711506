"""Local FHIR package cache and registry client."""

from __future__ import annotations

from .errors import PackageError, PackageNotFoundError, RegistryClientError, RegistryDownloadError
from .installer import PackageInstaller
from .registry import RegistryClient, RegistryPackageInfo

__all__ = [
    "PackageError",
    "PackageInstaller",
    "PackageNotFoundError",
    "RegistryClient",
    "RegistryClientError",
    "RegistryDownloadError",
    "RegistryPackageInfo",
]

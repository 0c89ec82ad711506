"""Errors raised by the built-in package cache and registry client."""

from __future__ import annotations


class PackageError(Exception):
    """Base class for package cache failures."""


class PackageNotFoundError(PackageError):
    """Raised when a package or version cannot be located."""


class RegistryClientError(PackageError):
    """Raised when a registry request fails."""


class RegistryDownloadError(RegistryClientError):
    """Raised when a download fails or delivers an unusable archive."""

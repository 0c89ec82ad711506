"""Core of the FHIR package explorer: scope resolution, indexing and lookups."""

import logging

from .models import IndexEntry, LookupFilter, PackageIdentifier, PackageRef
from .errors import (
    AmbiguousMatchError,
    ExplorerError,
    InitializationError,
    ManifestUnavailableError,
    NoMatchFoundError,
    UpstreamError,
)
from .log import Logger, NullLogger
from .duplicates import PackageFamilies, resolve_duplicates
from .filters import matches_filter, normalize_filter
from .config import ConfigStore, ExplorerConfig, default_config_path
from .paths import UserDirs
from .source import PackageSource
from .explorer import FhirPackageExplorer

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AmbiguousMatchError",
    "ConfigStore",
    "ExplorerConfig",
    "ExplorerError",
    "FhirPackageExplorer",
    "IndexEntry",
    "InitializationError",
    "Logger",
    "LookupFilter",
    "ManifestUnavailableError",
    "NoMatchFoundError",
    "NullLogger",
    "PackageFamilies",
    "PackageIdentifier",
    "PackageRef",
    "PackageSource",
    "UpstreamError",
    "UserDirs",
    "default_config_path",
    "matches_filter",
    "normalize_filter",
    "resolve_duplicates",
]

"""Errors raised by the package explorer core."""

from __future__ import annotations

from typing import Any, Sequence


class ExplorerError(Exception):
    """Base class for explorer errors."""


class InitializationError(ExplorerError):
    """Raised when the package context cannot be resolved."""

    def __init__(self, reference: Any, message: str) -> None:
        super().__init__(f"failed to load package context entry {reference!s}: {message}")
        self.reference = reference


class NoMatchFoundError(ExplorerError):
    """Raised when a resolve query yields no candidates."""

    def __init__(self, filter: Any) -> None:
        super().__init__(f"No matching resource found for filter {filter!s}")
        self.filter = filter


class AmbiguousMatchError(ExplorerError):
    """Raised when several candidates survive the duplicate resolution policy."""

    def __init__(self, filter: Any, candidates: Sequence[str]) -> None:
        message = (
            f"Multiple matching resources found for filter {filter!s}: "
            f"{', '.join(candidates)}"
        )
        super().__init__(message)
        self.filter = filter
        self.candidates = tuple(candidates)


class ManifestUnavailableError(ExplorerError):
    """Raised when the collaborator has no manifest for a package."""

    def __init__(self, package: Any) -> None:
        super().__init__(f"manifest for package {package!s} is unavailable")
        self.package = package


class UpstreamError(ExplorerError):
    """Wraps a package collaborator failure raised during a query."""

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation

"""Platform-independent helpers for explorer paths."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

_DEFAULT_APP_NAME = "fpe"
_DEFAULT_APP_AUTHOR = "fhir-package-explorer"
CONFIG_FILE_NAME = "config.toml"


@dataclass(frozen=True)
class UserDirs:
    """Expose the locations of the user config file and the package cache."""

    app_name: str = _DEFAULT_APP_NAME
    app_author: str = _DEFAULT_APP_AUTHOR
    config_dir_override: Path | None = None
    cache_dir_override: Path | None = None

    def config_dir(self) -> Path:
        return (
            self.config_dir_override
            if self.config_dir_override
            else Path(user_config_dir(self.app_name, appauthor=self.app_author))
        )

    def config_file(self) -> Path:
        return self.config_dir() / CONFIG_FILE_NAME

    def package_cache_dir(self) -> Path:
        """The shared FHIR package cache (``~/.fhir/packages``) unless overridden."""

        if self.cache_dir_override:
            return self.cache_dir_override
        return Path.home() / ".fhir" / "packages"

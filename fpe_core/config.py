"""Explorer configuration with file, environment and override layers."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from .duplicates import PackageFamilies
from .log import Logger
from .models import PackageRef
from .paths import UserDirs

__all__ = [
    "DEFAULT_REGISTRY_URL",
    "ConfigStore",
    "ExplorerConfig",
    "default_config_path",
]

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://packages.fhir.org"
CONFIG_SECTION = "explorer"

_ENV_KEY_MAP: dict[str, str] = {
    "cache_path": "FPE_CACHE_PATH",
    "registry_url": "FPE_REGISTRY_URL",
    "registry_token": "FPE_REGISTRY_TOKEN",
    "skip_examples": "FPE_SKIP_EXAMPLES",
}
_TRUTHY = {"1", "true", "yes", "on"}


def default_config_path() -> Path:
    """Return the platform-specific default config path."""

    return UserDirs().config_file()


def _load_config_from_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("ignoring unreadable config file %s: %s", path, exc)
        return {}
    section = data.get(CONFIG_SECTION, data)
    return dict(section) if isinstance(section, Mapping) else {}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def _as_size(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    size = int(value)
    return size if size > 0 else None


@dataclass
class ConfigStore:
    """Layered settings: config file < environment < explicit overrides."""

    path: Path = field(default_factory=default_config_path)
    env: Mapping[str, str] | None = None
    overrides: Mapping[str, Any] | None = None
    _store: dict[str, Any] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        self.env = os.environ if self.env is None else self.env
        self._store.update(_load_config_from_file(self.path))
        for key, variable in _ENV_KEY_MAP.items():
            value = self.env.get(variable)
            if value:
                self._store[key] = value
        for key, value in (self.overrides or {}).items():
            if value is not None:
                self._store[key] = value

    def get(self, key: str, default: Any | None = None) -> Any | None:
        return self._store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._store[key] = value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._store)


@dataclass
class ExplorerConfig:
    context: Sequence[PackageRef] = field(default_factory=list)
    cache_path: Path | None = None
    registry_url: str = DEFAULT_REGISTRY_URL
    registry_token: str | None = None
    skip_examples: bool = False
    logger: Logger | None = None
    index_cache_size: int | None = None
    content_cache_size: int | None = None
    package_families: PackageFamilies = field(default_factory=PackageFamilies)

    def __post_init__(self) -> None:
        if isinstance(self.context, (str, bytes)):
            raise TypeError("context must be a list of package references")
        self.context = list(self.context)
        if self.cache_path is not None:
            self.cache_path = Path(self.cache_path).expanduser()
        self.registry_url = (self.registry_url or DEFAULT_REGISTRY_URL).rstrip("/")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExplorerConfig":
        families = data.get("package_families")
        if isinstance(families, Mapping):
            families = PackageFamilies.from_mapping(families)
        cache_path = data.get("cache_path")
        return cls(
            context=list(data.get("context") or []),
            cache_path=Path(str(cache_path)) if cache_path else None,
            registry_url=str(data.get("registry_url") or DEFAULT_REGISTRY_URL),
            registry_token=data.get("registry_token") or None,
            skip_examples=_as_bool(data.get("skip_examples", False)),
            logger=data.get("logger"),
            index_cache_size=_as_size(data.get("index_cache_size")),
            content_cache_size=_as_size(data.get("content_cache_size")),
            package_families=families or PackageFamilies(),
        )

    @classmethod
    def load(
        cls,
        *,
        path: Path | None = None,
        env: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> "ExplorerConfig":
        """Merge the config file, ``FPE_*`` variables and ``overrides``."""

        store = ConfigStore(path=path or default_config_path(), env=env, overrides=overrides)
        return cls.from_mapping(store.as_dict())

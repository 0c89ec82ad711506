"""Tests for layered explorer configuration."""

from __future__ import annotations

import textwrap
from pathlib import Path

from fpe_core import ConfigStore, ExplorerConfig, UserDirs
from fpe_core.config import DEFAULT_REGISTRY_URL


def _write_config(path: Path, body: str) -> Path:
    path.write_text(textwrap.dedent(body).strip() + "\n", encoding="utf-8")
    return path


def test_defaults_without_file_or_env(tmp_path: Path) -> None:
    config = ExplorerConfig.load(path=tmp_path / "missing.toml", env={})

    assert config.context == []
    assert config.cache_path is None
    assert config.registry_url == DEFAULT_REGISTRY_URL
    assert config.skip_examples is False


def test_file_env_and_overrides_are_layered(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.toml",
        """
        [explorer]
        context = ["hl7.fhir.uv.sdc@3.0.0"]
        cache_path = "/from/file"
        registry_url = "https://file.example.org/"
        index_cache_size = 10
        """,
    )
    env = {"FPE_CACHE_PATH": "/from/env", "FPE_SKIP_EXAMPLES": "yes"}

    store = ConfigStore(path=path, env=env, overrides={"registry_url": "https://override.example.org", "cache_path": None})
    assert store.get("cache_path") == "/from/env"
    assert store.get("registry_url") == "https://override.example.org"

    config = ExplorerConfig.load(path=path, env=env)
    assert config.context == ["hl7.fhir.uv.sdc@3.0.0"]
    assert config.cache_path == Path("/from/env")
    assert config.registry_url == "https://file.example.org"
    assert config.skip_examples is True
    assert config.index_cache_size == 10


def test_package_families_from_file(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.toml",
        """
        [explorer.package_families]
        core = ["^acme\\\\.base$"]
        """,
    )
    config = ExplorerConfig.load(path=path, env={})

    assert config.package_families.is_core("acme.base")
    assert config.package_families.is_implicit("hl7.terminology.r4")


def test_unreadable_config_is_ignored(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.toml", "this is = = not toml")
    store = ConfigStore(path=path, env={})
    assert store.as_dict() == {}


def test_store_set_overrides_value(tmp_path: Path) -> None:
    store = ConfigStore(path=tmp_path / "missing.toml", env={})
    store.set("registry_url", "https://x.example.org")
    assert store.get("registry_url") == "https://x.example.org"


def test_user_dirs_overrides(tmp_path: Path) -> None:
    dirs = UserDirs(config_dir_override=tmp_path / "cfg", cache_dir_override=tmp_path / "cache")
    assert dirs.config_file() == tmp_path / "cfg" / "config.toml"
    assert dirs.package_cache_dir() == tmp_path / "cache"
    assert UserDirs().package_cache_dir() == Path.home() / ".fhir" / "packages"

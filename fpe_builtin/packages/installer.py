"""Local FHIR package cache backed by a registry download on miss."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from fpe_core.log import Logger
from fpe_core.models import PackageIdentifier, PackageRef, parse_package_spec
from fpe_core.paths import UserDirs
from fpe_core.versions import normalize_latest, version_key

from . import layout
from .errors import PackageError, PackageNotFoundError
from .io import extract_package_archive, load_index, read_json
from .registry import RegistryClient

__all__ = ["PackageInstaller"]


class PackageInstaller:
    """Install, index and read packages under ``<cache>/<id>#<version>/package``.

    Filesystem and network work runs in worker threads; installs of the same
    package are serialized so concurrent callers never race on one directory.
    """

    def __init__(
        self,
        cache_path: Path | str | None = None,
        *,
        registry_url: str | None = None,
        registry_token: str | None = None,
        client: RegistryClient | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.cache_path = Path(cache_path).expanduser() if cache_path else UserDirs().package_cache_dir()
        self.log: Logger = logger or logging.getLogger(__name__)
        self._registry_url = registry_url
        self._registry_token = registry_token
        self._client = client
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def client(self) -> RegistryClient:
        if self._client is None:
            if not self._registry_url:
                raise PackageError("no registry configured for package downloads")
            self._client = RegistryClient(self._registry_url, token=self._registry_token)
        return self._client

    # ------------------------- identity -------------------------

    def get_cache_path(self) -> Path:
        return self.cache_path

    def get_package_dir_path(self, package: PackageIdentifier) -> Path:
        return layout.package_dir(self.cache_path, package)

    async def to_package_object(self, ref: PackageRef) -> PackageIdentifier:
        if isinstance(ref, PackageIdentifier):
            return ref
        if isinstance(ref, Mapping):
            name = str(ref.get("id") or ref.get("name") or "").strip()
            version = normalize_latest(str(ref.get("version") or "") or None)
        elif isinstance(ref, str):
            name, raw_version = parse_package_spec(ref)
            version = normalize_latest(raw_version)
        else:
            raise PackageError(f"unsupported package reference: {ref!r}")
        if not name:
            raise PackageError(f"package reference has no id: {ref!r}")
        if version is None or version == "latest":
            version = await self._latest_version(name)
        return PackageIdentifier(name, version)

    async def _latest_version(self, name: str) -> str:
        installed = self._installed_versions(name)
        try:
            return await asyncio.to_thread(self.client.latest_version, name)
        except PackageError:
            if not installed:
                raise
            # offline: fall back to the newest cached copy
            self.log.warning("registry unavailable for %s, using cached %s", name, installed[-1])
            return installed[-1]

    def _installed_versions(self, name: str) -> list[str]:
        if not self.cache_path.is_dir():
            return []
        prefix = f"{name}#"
        found = [
            p.name[len(prefix):]
            for p in self.cache_path.iterdir()
            if p.is_dir() and p.name.startswith(prefix)
        ]
        return sorted(found, key=version_key)

    # ------------------------- install --------------------------

    async def install(self, package: PackageIdentifier) -> None:
        if layout.is_installed(self.cache_path, package):
            return
        lock = self._locks.setdefault(package.key, asyncio.Lock())
        async with lock:
            if layout.is_installed(self.cache_path, package):
                return
            await asyncio.to_thread(self._install_sync, package)

    def _install_sync(self, package: PackageIdentifier) -> None:
        self.cache_path.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".fpe-install-", dir=self.cache_path))
        try:
            archive = self.client.download(package.id, package.version, staging / "package.tgz")
            extracted = staging / "extracted"
            content_root = extract_package_archive(archive, extracted)
            if not (content_root / layout.MANIFEST_FILE_NAME).is_file():
                raise PackageError(f"downloaded archive for {package} has no package.json")
            load_index(content_root)
            target = self.get_package_dir_path(package)
            if target.exists():
                return
            extracted.rename(target)
            self.log.info("installed %s into %s", package, target)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    # ------------------------- contents -------------------------

    async def get_manifest(self, package: PackageIdentifier) -> Optional[dict[str, Any]]:
        await self.install(package)
        path = layout.manifest_path(self.cache_path, package)
        if not path.is_file():
            return None
        manifest = await asyncio.to_thread(read_json, path)
        return manifest if isinstance(manifest, dict) else None

    async def get_dependencies(self, package: PackageIdentifier) -> dict[str, str]:
        manifest = await self.get_manifest(package)
        if manifest is None:
            raise PackageNotFoundError(f"package {package} has no manifest")
        deps = manifest.get("dependencies") or {}
        if not isinstance(deps, Mapping):
            raise PackageError(f"package {package} declares malformed dependencies")
        return {str(k): str(v) for k, v in deps.items()}

    async def get_package_index_file(self, package: PackageIdentifier) -> dict[str, Any]:
        await self.install(package)
        return await asyncio.to_thread(load_index, layout.content_dir(self.cache_path, package))

    async def read_json(self, path: Path) -> Any:
        return await asyncio.to_thread(read_json, Path(path))

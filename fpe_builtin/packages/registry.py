"""HTTP client for an npm-style FHIR package registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence, Tuple

import requests
from requests import RequestException, Response

from fpe_core.versions import version_key

from .errors import PackageNotFoundError, RegistryClientError, RegistryDownloadError

log = logging.getLogger(__name__)

__all__ = ["RegistryClient", "RegistryPackageInfo"]


@dataclass(frozen=True)
class RegistryPackageInfo:
    """Versions and dist-tags reported by the registry for one package id."""

    name: str
    versions: Tuple[str, ...]
    dist_tags: Mapping[str, str]
    tarballs: Mapping[str, str]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RegistryPackageInfo":
        raw_versions = data.get("versions") or {}
        tarballs: dict[str, str] = {}
        if isinstance(raw_versions, Mapping):
            versions = tuple(str(v) for v in raw_versions)
            for version, meta in raw_versions.items():
                dist = meta.get("dist") if isinstance(meta, Mapping) else None
                if isinstance(dist, Mapping) and dist.get("tarball"):
                    tarballs[str(version)] = str(dist["tarball"])
        else:
            versions = tuple(str(v) for v in raw_versions)
        tags = data.get("dist-tags") or {}
        return cls(
            name=str(data.get("name", "")),
            versions=versions,
            dist_tags={str(k): str(v) for k, v in tags.items()} if isinstance(tags, Mapping) else {},
            tarballs=tarballs,
        )

    @property
    def latest(self) -> str | None:
        tagged = self.dist_tags.get("latest")
        if tagged:
            return tagged
        if not self.versions:
            return None
        return max(self.versions, key=version_key)


@dataclass
class RegistryClient:
    """Thin ``requests`` wrapper over the registry's package endpoints."""

    base_url: str
    timeout: float | Tuple[float, float] = 30.0
    token: str | None = None
    session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        if self.token:
            self.session.headers.setdefault("Authorization", f"Bearer {self.token}")

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        ok_statuses: Sequence[int] = tuple(range(200, 300)),
        **kwargs: Any,
    ) -> Response:
        url = self._url(path)
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except RequestException as exc:
            raise RegistryClientError(f"{method} {url} failed: {exc}") from exc

        if resp.status_code == 404:
            raise PackageNotFoundError(f"{method} {url} returned 404")
        if resp.status_code not in ok_statuses:
            raise RegistryClientError(f"{method} {url} returned {resp.status_code}: {resp.text}")
        return resp

    def package_info(self, name: str) -> RegistryPackageInfo:
        resp = self._request("GET", f"/{name}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise RegistryClientError(f"registry returned invalid JSON for {name}") from exc
        if not isinstance(payload, Mapping):
            raise RegistryClientError(f"registry returned unexpected payload for {name}")
        return RegistryPackageInfo.from_dict(payload)

    def latest_version(self, name: str) -> str:
        latest = self.package_info(name).latest
        if not latest:
            raise PackageNotFoundError(f"no published versions for {name}")
        return latest

    def tarball_url(self, name: str, version: str) -> str:
        """The ``dist.tarball`` URL the registry advertises, else ``/{name}/{version}``."""

        try:
            advertised = self.package_info(name).tarballs.get(version)
        except RegistryClientError as exc:
            log.debug("no package info for %s, using the default tarball path: %s", name, exc)
            advertised = None
        return advertised or self._url(f"/{name}/{version}")

    def download(
        self,
        name: str,
        version: str,
        out_path: Path | str,
        *,
        url: str | None = None,
        chunk_size: int = 1024 * 1024,
    ) -> Path:
        url = url or self.tarball_url(name, version)
        log.info("Downloading %s@%s from %s", name, version, url)
        try:
            resp = self.session.get(
                url,
                stream=True,
                timeout=self.timeout,
                headers={"Accept": "application/gzip, application/octet-stream"},
            )
        except RequestException as exc:
            raise RegistryDownloadError(f"download {name}@{version} failed: {exc}") from exc

        if resp.status_code == 404:
            raise PackageNotFoundError(f"package {name}@{version} not found at {url}")
        if resp.status_code >= 400:
            raise RegistryDownloadError(f"download failed: {resp.status_code} {resp.text}")

        target = Path(out_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as f:
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if chunk:
                    f.write(chunk)
        return target

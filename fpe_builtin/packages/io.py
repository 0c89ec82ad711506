"""JSON, index and archive helpers for package directories."""

from __future__ import annotations

import json
import logging
import shutil
import tarfile
from pathlib import Path
from typing import Any, Mapping

from .errors import PackageError, RegistryDownloadError
from .layout import INDEX_FILE_NAME, PACKAGE_SUBDIR, RESERVED_FILE_NAMES

__all__ = [
    "INDEX_FIELDS",
    "INDEX_VERSION",
    "build_index",
    "extract_package_archive",
    "load_index",
    "read_json",
    "write_index",
]

log = logging.getLogger(__name__)

INDEX_VERSION = 2
INDEX_FIELDS: tuple[str, ...] = (
    "resourceType",
    "id",
    "url",
    "name",
    "version",
    "kind",
    "type",
    "supplements",
    "content",
    "baseDefinition",
    "derivation",
)


def read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8-sig") as handle:
        return json.load(handle)


def _index_record(filename: str, document: Mapping[str, Any]) -> dict[str, Any]:
    record: dict[str, Any] = {"filename": filename}
    for key in INDEX_FIELDS:
        value = document.get(key)
        if isinstance(value, (str, int, float, bool)):
            record[key] = value
    return record


def build_index(content_root: Path) -> dict[str, Any]:
    """Describe every top-level resource document under ``content_root``."""

    files: list[dict[str, Any]] = []
    for path in sorted(content_root.glob("*.json")):
        if path.name in RESERVED_FILE_NAMES or not path.is_file():
            continue
        try:
            document = read_json(path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            log.warning("not indexing unreadable file %s: %s", path, exc)
            continue
        if not isinstance(document, Mapping) or not document.get("resourceType"):
            continue
        files.append(_index_record(path.name, document))
    return {"index-version": INDEX_VERSION, "files": files}


def write_index(content_root: Path, index: Mapping[str, Any]) -> Path:
    target = content_root / INDEX_FILE_NAME
    target.write_text(json.dumps(index, ensure_ascii=False, indent=2), encoding="utf-8")
    return target


def load_index(content_root: Path) -> dict[str, Any]:
    """Read the package index, generating and persisting it when missing."""

    target = content_root / INDEX_FILE_NAME
    if target.is_file():
        try:
            data = read_json(target)
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("rebuilding corrupt index %s: %s", target, exc)
        else:
            if isinstance(data, Mapping) and isinstance(data.get("files"), list):
                return dict(data)
    if not content_root.is_dir():
        raise PackageError(f"package content directory not found: {content_root}")
    index = build_index(content_root)
    write_index(content_root, index)
    log.debug("generated index %s files=%d", target, len(index["files"]))
    return index


def _check_member(member: tarfile.TarInfo, destination: Path) -> None:
    target = (destination / member.name).resolve()
    if destination.resolve() not in target.parents and target != destination.resolve():
        raise RegistryDownloadError(f"archive member escapes destination: {member.name}")
    if member.issym() or member.islnk():
        raise RegistryDownloadError(f"archive member is a link: {member.name}")


def extract_package_archive(archive: Path, destination: Path) -> Path:
    """Unpack a package tarball so that its files sit under ``destination/package``."""

    destination.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:*") as tar:
            members = tar.getmembers()
            for member in members:
                _check_member(member, destination)
            tar.extractall(destination, members=members, filter="data")
    except tarfile.TarError as exc:
        raise RegistryDownloadError(f"invalid package archive {archive}: {exc}") from exc

    content_root = destination / PACKAGE_SUBDIR
    if not content_root.is_dir():
        # some archives keep their files at the top level
        content_root.mkdir()
        for item in list(destination.iterdir()):
            if item != content_root:
                shutil.move(str(item), str(content_root / item.name))
    return content_root

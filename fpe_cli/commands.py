"""Built-in ``fpe`` commands."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Callable, Type

from fpe_builtin.packages import PackageError
from fpe_core import ExplorerConfig, ExplorerError, FhirPackageExplorer, IndexEntry, LookupFilter

__all__ = [
    "COMMANDS",
    "CommandNotFoundError",
    "FpeCommand",
    "fpecommand",
    "resolve_command",
]

COMMANDS: dict[str, Type["FpeCommand"]] = {}


class CommandNotFoundError(LookupError):
    """Raised when no command is registered under the requested name."""


class FpeCommand(ABC):
    """Base interface for fpe commands."""

    name: str = ""

    @classmethod
    @abstractmethod
    def configure(cls, parser: ArgumentParser) -> None:
        """Let the command configure CLI arguments."""

    @abstractmethod
    def run(self, args: Namespace) -> int:
        """Execute the command with parsed arguments."""


def fpecommand(*, name: str) -> Callable[[Type[FpeCommand]], Type[FpeCommand]]:
    def wrap(cls: Type[FpeCommand]) -> Type[FpeCommand]:
        if not issubclass(cls, FpeCommand):
            raise TypeError(f"{cls.__name__} must subclass FpeCommand to be registered as a command.")
        cls.name = name
        COMMANDS[name] = cls
        return cls

    return wrap


def resolve_command(name: str) -> Type[FpeCommand]:
    try:
        return COMMANDS[name]
    except KeyError:
        available = ", ".join(sorted(COMMANDS))
        raise CommandNotFoundError(f"Unknown command '{name}'. Available commands: {available}") from None


def _parse_field(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"filter fields must look like key=value, got {raw!r}")
    return key.strip(), value


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


class _ExplorerCommand(FpeCommand):
    """Shared plumbing: context flags, config loading and error reporting."""

    @classmethod
    def configure(cls, parser: ArgumentParser) -> None:
        parser.add_argument(
            "-c",
            "--context",
            action="append",
            default=[],
            metavar="PACKAGE",
            help="Context package reference (id@version); repeatable",
        )
        parser.add_argument("--cache-path", default=None, help="FHIR package cache root")
        parser.add_argument("--registry-url", default=None, help="Package registry base URL")
        parser.add_argument(
            "--skip-examples",
            action="store_true",
            default=None,
            help="Ignore dependencies whose id contains 'examples'",
        )
        parser.add_argument("--config", default=None, help="Path to a TOML config file")
        parser.add_argument("--format", choices=["text", "json"], default="text")
        parser.add_argument("--verbose", action="store_true", help="Log progress to stderr")

    def run(self, args: Namespace) -> int:
        if getattr(args, "verbose", False):
            logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
        try:
            return asyncio.run(self._run(args))
        except (ExplorerError, PackageError, ValueError) as exc:
            print(f"[fpe:{self.name}] error: {exc}")
            return 1

    async def _run(self, args: Namespace) -> int:
        config = self._load_config(args)
        explorer = await FhirPackageExplorer.create(config)
        return await self.execute(explorer, args)

    def _load_config(self, args: Namespace) -> ExplorerConfig:
        overrides: dict[str, Any] = {
            "cache_path": getattr(args, "cache_path", None),
            "registry_url": getattr(args, "registry_url", None),
            "skip_examples": getattr(args, "skip_examples", None),
        }
        context = list(getattr(args, "context", None) or [])
        if context:
            overrides["context"] = context
        config_path = getattr(args, "config", None)
        return ExplorerConfig.load(path=Path(config_path) if config_path else None, **overrides)

    @abstractmethod
    async def execute(self, explorer: FhirPackageExplorer, args: Namespace) -> int:
        """Run against a loaded explorer."""


class _QueryCommand(_ExplorerCommand):
    @classmethod
    def configure(cls, parser: ArgumentParser) -> None:
        super().configure(parser)
        parser.add_argument(
            "-f",
            "--filter",
            action="append",
            default=[],
            metavar="KEY=VALUE",
            help="Metadata field to match; repeatable",
        )
        parser.add_argument("--package", default=None, help="Restrict to a package and its dependencies")
        parser.add_argument("--meta", action="store_true", help="Print index entries instead of documents")

    def _filter(self, args: Namespace) -> LookupFilter:
        fields = dict(_parse_field(raw) for raw in getattr(args, "filter", None) or [])
        return LookupFilter(fields, package=getattr(args, "package", None))

    def _describe(self, entry: IndexEntry) -> str:
        label = entry.get("url") or entry.get("id") or entry.get("name") or ""
        return f"{entry.resource_type or '?'} {label} package={entry.package} file={entry.filename}"


@fpecommand(name="context")
class ContextCommand(_ExplorerCommand):
    """Show the minimal root packages and the full package scope of a context."""

    async def execute(self, explorer: FhirPackageExplorer, args: Namespace) -> int:
        roots = explorer.get_normalized_root_packages()
        scope = explorer.get_context_packages()
        if args.format == "json":
            _print_json({"roots": [p.to_dict() for p in roots], "packages": [p.to_dict() for p in scope]})
            return 0
        print(f"[fpe:context] cache={explorer.get_cache_path()} roots={len(roots)} packages={len(scope)}")
        for package in roots:
            print(f"[fpe:context] root {package}")
        for package in scope:
            print(f"[fpe:context] package {package}")
        return 0


@fpecommand(name="lookup")
class LookupCommand(_QueryCommand):
    """List every resource in the context matching the given metadata fields."""

    async def execute(self, explorer: FhirPackageExplorer, args: Namespace) -> int:
        query = self._filter(args)
        entries = await explorer.lookup_meta(query)
        if args.format == "json":
            if args.meta:
                _print_json([entry.to_dict() for entry in entries])
            else:
                _print_json(await explorer.lookup(query))
            return 0
        if not entries:
            print(f"[fpe:lookup] no matches for {query}")
            return 0
        print(f"[fpe:lookup] filter={query} matches={len(entries)}")
        for entry in entries:
            print(f"[fpe:lookup] {self._describe(entry)}")
        return 0


@fpecommand(name="resolve")
class ResolveCommand(_QueryCommand):
    """Resolve the metadata fields to exactly one resource, applying duplicate rules."""

    async def execute(self, explorer: FhirPackageExplorer, args: Namespace) -> int:
        query = self._filter(args)
        if args.meta:
            entry = await explorer.resolve_meta(query)
            if args.format == "json":
                _print_json(entry.to_dict())
            else:
                print(f"[fpe:resolve] {self._describe(entry)}")
            return 0
        _print_json(await explorer.resolve(query))
        return 0


@fpecommand(name="deps")
class DepsCommand(_ExplorerCommand):
    """Show the dependency closure (or the direct dependencies) of a package."""

    @classmethod
    def configure(cls, parser: ArgumentParser) -> None:
        super().configure(parser)
        parser.add_argument("package", help="Package reference (id@version)")
        parser.add_argument("--direct", action="store_true", help="Only direct dependencies")

    async def execute(self, explorer: FhirPackageExplorer, args: Namespace) -> int:
        if args.direct:
            packages = await explorer.get_direct_dependencies(args.package)
        else:
            packages = await explorer.expand_package_dependencies(args.package)
        if args.format == "json":
            _print_json([p.to_dict() for p in packages])
            return 0
        for package in packages:
            print(f"[fpe:deps] {package}")
        return 0


@fpecommand(name="manifest")
class ManifestCommand(_ExplorerCommand):
    """Print the package.json manifest of a package."""

    @classmethod
    def configure(cls, parser: ArgumentParser) -> None:
        super().configure(parser)
        parser.add_argument("package", help="Package reference (id@version)")

    async def execute(self, explorer: FhirPackageExplorer, args: Namespace) -> int:
        _print_json(await explorer.get_package_manifest(args.package))
        return 0

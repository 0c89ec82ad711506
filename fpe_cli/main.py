"""Entry point for the ``fpe`` command line."""

from __future__ import annotations

import argparse
import inspect
import sys
from typing import Sequence, Type

from .commands import COMMANDS, CommandNotFoundError, FpeCommand, resolve_command

CLI_VERSION = "0.1.0"


def main(argv: Sequence[str] | None = None) -> int:
    """Resolve and run an fpe command."""

    tokens = list(argv) if argv is not None else list(sys.argv[1:])
    if not tokens or tokens[0] in ("-h", "--help", "help"):
        return _print_overview()

    if "--version" in tokens:
        print(f"fpe v{CLI_VERSION}")
        return 0

    name, command_args = tokens[0], tokens[1:]
    try:
        target = resolve_command(name)
    except CommandNotFoundError as exc:
        print(str(exc))
        return 1

    parser = argparse.ArgumentParser(prog=f"fpe {name}", description=_command_description(target))
    target.configure(parser)
    try:
        parsed_args = parser.parse_args(command_args)
    except SystemExit as exc:
        return _exit_code(exc.code)

    return target().run(parsed_args)


def _print_overview() -> int:
    """Show the global help listing."""

    print("Usage: fpe <command> [args...]\n")
    print("Commands:")
    for name in sorted(COMMANDS):
        lines = _command_description(COMMANDS[name]).splitlines()
        short = lines[0] if lines else ""
        print(f"  {name:<12} {short}")
    print("\nRun 'fpe <command> --help' for command options.")
    return 0


def _command_description(target: Type[FpeCommand]) -> str:
    doc = inspect.getdoc(target) or ""
    return doc.strip()


def _exit_code(code: int | str | None) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1

"""Logging capability injected into the explorer."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

__all__ = ["Logger", "NullLogger", "default_logger"]

DEFAULT_LOGGER_NAME = "fpe_core.explorer"


@runtime_checkable
class Logger(Protocol):
    """Severity-levelled logging operations; ``logging.Logger`` satisfies it."""

    def debug(self, msg: str, *args: Any) -> None: ...

    def info(self, msg: str, *args: Any) -> None: ...

    def warning(self, msg: str, *args: Any) -> None: ...

    def error(self, msg: str, *args: Any) -> None: ...


class NullLogger:
    """Logger that discards every record."""

    def debug(self, msg: str, *args: Any) -> None:
        pass

    def info(self, msg: str, *args: Any) -> None:
        pass

    def warning(self, msg: str, *args: Any) -> None:
        pass

    def error(self, msg: str, *args: Any) -> None:
        pass


def default_logger() -> logging.Logger:
    # silent unless the application configures logging (see fpe_core.__init__)
    return logging.getLogger(DEFAULT_LOGGER_NAME)

"""Pluggable logger used by the push path for informational and fatal messages."""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Logger(Protocol):
    """Two-level logger: informational messages and fatal errors.

    ``fatal`` is called for steady-state write failures and for samples that
    cannot be converted into points.  Whether the process survives is up to
    the implementation.  Arguments are turned into text with ``str()``, which
    implementations only need to do when the message is actually emitted.
    """

    def info(self, *args: Any) -> None:
        """Log an informational message."""

    def fatal(self, *args: Any) -> None:
        """Log a fatal error."""


def _join(args: tuple[Any, ...]) -> str:
    return " ".join(str(a) for a in args)


class DefaultLogger:
    """Logs informational messages at DEBUG and exits the process on fatal."""

    def info(self, *args: Any) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s", _join(args))

    def fatal(self, *args: Any) -> None:
        logger.critical("%s", _join(args))
        logging.shutdown()
        # sys.exit() would only end the calling worker thread
        os._exit(1)


class LoggingLogger:
    """Non-terminating logger for callers that want the process to keep running."""

    def __init__(self, name: str = "runtime_metrics", level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self._level = level

    def info(self, *args: Any) -> None:
        if self._logger.isEnabledFor(self._level):
            self._logger.log(self._level, "%s", _join(args))

    def fatal(self, *args: Any) -> None:
        self._logger.error("%s", _join(args))

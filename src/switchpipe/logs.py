"""Logging adapters for the log-sink and console-echo collaborators.

Library modules log through ``logging.getLogger(__name__)``. These handlers
route the ``switchpipe`` logger hierarchy to an optional ``(severity, message)``
sink and to the console.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from collections.abc import Callable

    from switchpipe.config import SwitchPipeConfig

    LogSink = Callable[[int, str], None]

_ROOT_LOGGER_NAME = "switchpipe"
_installed: list[logging.Handler] = []


class SinkHandler(logging.Handler):
    """Logging handler that forwards formatted records to a sink callable."""

    def __init__(self, sink: LogSink) -> None:
        super().__init__()
        self._sink = sink

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._sink(record.levelno, self.format(record))
        except Exception:
            self.handleError(record)


class ConsoleEchoHandler(logging.Handler):
    """Echo records to stderr.

    With console logging enabled every record is echoed; otherwise only
    records more severe than WARNING reach the console.
    """

    def __init__(self, *, echo_all: bool) -> None:
        super().__init__()
        self.echo_all = echo_all

    def emit(self, record: logging.LogRecord) -> None:
        if not self.echo_all and record.levelno <= logging.WARNING:
            return
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def configure_logging(
    config: SwitchPipeConfig,
    sink: LogSink | None = None,
) -> list[logging.Handler]:
    """Attach the sink and console handlers to the ``switchpipe`` logger.

    Idempotent: handlers from a previous call are replaced.
    """
    reset_logging()
    logger = logging.getLogger(_ROOT_LOGGER_NAME)

    console = ConsoleEchoHandler(echo_all=config.log_to_console)
    console.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    handlers: list[logging.Handler] = [console]

    if sink is not None:
        sink_handler = SinkHandler(sink)
        sink_handler.setFormatter(logging.Formatter("%(message)s"))
        handlers.append(sink_handler)

    for handler in handlers:
        logger.addHandler(handler)
    _installed.extend(handlers)

    if config.log_to_console or sink is not None:
        logger.setLevel(min(config.advanced.progress_level, logging.INFO))
    return handlers


def reset_logging() -> None:
    """Detach handlers installed by :func:`configure_logging`."""
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    for handler in _installed:
        logger.removeHandler(handler)
    _installed.clear()
    logger.setLevel(logging.NOTSET)


def progress(
    logger: logging.Logger,
    config: SwitchPipeConfig,
    msg: str,
    *args: object,
) -> None:
    """Log a routine progress message at the configured level."""
    logger.log(config.advanced.progress_level, msg, *args)


__all__ = [
    "ConsoleEchoHandler",
    "SinkHandler",
    "configure_logging",
    "progress",
    "reset_logging",
]

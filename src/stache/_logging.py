"""Logging utilities for Stache.

This module provides a standalone structlog logger factory for template
engines. Each logger is self-contained and does not modify global structlog
configuration.

Engines that log to the same file share one append handle. Handles stay open
for the life of the process and are closed at exit, or earlier through
:func:`close_log_files`.
"""

import atexit
import logging
import sys
import threading
from os import getenv
from pathlib import Path
from typing import Literal, TextIO, cast

import structlog
from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]

DEBUG_ENV = "STACHE_DEBUG"
LEVEL_ENV = "STACHE_LOG_LEVEL"

_log_files: dict[Path, TextIO] = {}
_log_files_lock = threading.Lock()


def resolve_log_level(level: str | None = None) -> int:
    """Resolve the effective engine log level.

    Precedence: a set ``STACHE_DEBUG`` forces DEBUG; then ``level`` when it
    names a known level; then ``STACHE_LOG_LEVEL`` when it names one; then
    INFO.

    Args:
        level: Configured level name such as "debug" or "WARNING".

    Returns:
        The logging level as an integer.
    """
    if getenv(DEBUG_ENV):
        return logging.DEBUG

    known = logging.getLevelNamesMapping()
    for candidate in (level, getenv(LEVEL_ENV)):
        if candidate and candidate.upper() in known:
            return known[candidate.upper()]
    return logging.INFO


def _shared_log_file(log_file: str) -> TextIO:
    path = Path(log_file).resolve()
    with _log_files_lock:
        handle = _log_files.get(path)
        if handle is None or handle.closed:
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = path.open("a", encoding="utf-8")
            _log_files[path] = handle
        return handle


def close_log_files() -> None:
    """Close every shared log file handle.

    Loggers created before the call must not be used afterwards; new loggers
    reopen their file.
    """
    with _log_files_lock:
        for handle in _log_files.values():
            handle.close()
        _log_files.clear()


_ = atexit.register(close_log_files)


def create_engine_logger(
    level: str | None = None,
    *,
    log_format: LogFormatType = "text",
    log_file: str = "",
) -> FilteringBoundLogger:
    """Create a logger for a template engine.

    Args:
        level: Optional log level name; see :func:`resolve_log_level`.
        log_format: Output format, either "json" or "text".
        log_file: Log file opened in append mode and shared with other
            loggers on the same path. Logs go to stderr when empty.

    Returns:
        A configured FilteringBoundLogger instance.
    """
    output = _shared_log_file(log_file) if log_file else sys.stderr

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.WriteLogger(file=output),
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(resolve_log_level(level)),
            context_class=dict,
        ),
    )


def null_logger() -> FilteringBoundLogger:
    """Create a logger that discards every event."""
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.ReturnLogger(),
            processors=[],
            wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
            context_class=dict,
        ),
    )

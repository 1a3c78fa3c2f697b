"""
Structured logging configuration.

Uses structlog for machine-readable, context-rich logging.
Supports JSON output and key=value text output, written to the console or
to a date-named file under the configured log directory. Records emitted
through the standard library (SQLAlchemy, uvicorn) are rendered by the same
sink so the whole process shares one destination and one encoding.
"""

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

import structlog
from structlog.types import Processor

from infra.config import LogSettings


TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Stdlib handler installed by the last init_logger() call
_handler: Optional[logging.Handler] = None


@dataclass(frozen=True)
class LogSink:
    """
    The installed logging sink.

    Holds the bound logger together with the destination, encoding and
    minimum level it was built from. Pass it to the other initializers
    instead of looking the logger up globally.
    """
    logger: Any
    level: int
    format: str
    stream: TextIO
    path: Optional[Path] = None

    @property
    def is_console(self) -> bool:
        return self.path is None

    def close(self) -> None:
        """
        Close the log file. Console sinks leave stdout open.

        Closing the installed sink also uninstalls it, so records emitted
        afterwards go to structlog's default console output instead of a
        closed file.
        """
        global _handler

        if self.path is None:
            return
        if _handler is not None and getattr(_handler, "stream", None) is self.stream:
            logging.getLogger().removeHandler(_handler)
            _handler = None
            structlog.reset_defaults()
        self.stream.close()


def parse_level(value: str) -> int:
    """Map a configured level name to a logging level, defaulting to INFO."""
    return LEVELS.get(value, logging.INFO)


def log_file_name(now: Optional[datetime] = None) -> str:
    return f"{(now or datetime.now()):%Y-%m-%d}.log"


def _open_log_file(path: str, flags: int) -> int:
    return os.open(path, flags, 0o644)


def open_log_output(directory: str) -> tuple[TextIO, Optional[Path]]:
    """
    Open the log destination.

    Returns stdout when no directory is configured. Otherwise creates the
    directory and opens today's file for appending. Any filesystem error
    falls back to stdout after printing a plain diagnostic, because no
    logger exists yet at this point.
    """
    if not directory:
        return sys.stdout, None

    try:
        os.makedirs(directory, mode=0o755, exist_ok=True)
    except OSError as e:
        print(f"Failed to create log directory: {e}, using console output")
        return sys.stdout, None

    path = Path(directory) / log_file_name()
    try:
        stream = open(path, "a", encoding="utf-8", opener=_open_log_file)
    except OSError as e:
        print(f"Failed to open log file: {e}, using console output")
        return sys.stdout, None

    return stream, path


def _renderer(fmt: str) -> Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.processors.LogfmtRenderer(
        key_order=["time", "level", "msg"],
        drop_missing=True,
        bool_as_flag=False,
    )


def init_logger(conf: LogSettings) -> LogSink:
    """
    Build the logging sink from settings and install it as the default.

    Never fails: an unusable log directory degrades to console output.
    Calling it again replaces the previously installed sink. Call-site
    capture is not enabled.

    Args:
        conf: The ``log`` section of the settings

    Returns:
        The installed sink
    """
    global _handler

    level = parse_level(conf.level)
    fmt = "json" if conf.format == "json" else "text"
    stream, path = open_log_output(conf.directory)
    renderer = _renderer(fmt)

    # Shared processors for structlog and stdlib records
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt=TIME_FORMAT, utc=False, key="time"),
    ]

    if fmt == "json":
        tracebacks: Processor = structlog.processors.dict_tracebacks
    else:
        tracebacks = structlog.processors.format_exc_info

    processors = shared_processors + [
        structlog.processors.StackInfoRenderer(),
        tracebacks,
        structlog.processors.EventRenamer("msg"),
        renderer,
    ]
    wrapper_class = structlog.make_filtering_bound_logger(level)

    structlog.configure(
        processors=processors,
        wrapper_class=wrapper_class,
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=stream),
        # Module-level loggers must follow a replaced sink
        cache_logger_on_first_use=False,
    )

    # Route standard library logging through the same renderer
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors + [structlog.stdlib.add_logger_name],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                tracebacks,
                structlog.processors.EventRenamer("msg"),
                renderer,
            ],
        )
    )
    root_logger = logging.getLogger()
    if _handler is not None:
        root_logger.removeHandler(_handler)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    _handler = handler

    logger = structlog.wrap_logger(
        structlog.WriteLogger(stream),
        processors=processors,
        wrapper_class=wrapper_class,
        context_class=dict,
    ).bind()

    return LogSink(logger=logger, level=level, format=fmt, stream=stream, path=path)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)
        **initial_context: Initial context values to bind

    Returns:
        A bound logger with the given context

    Usage:
        logger = get_logger(__name__, component="cache")
        logger.info("Redis connected", addr="127.0.0.1:6379")
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger

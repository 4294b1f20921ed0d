"""Structured logging setup for Host Hardener."""

import logging
import sys
from typing import Optional, TextIO

import structlog

from host_hardener.config import LoggingConfig

_log_stream: Optional[TextIO] = None


def configure_logging(
    config: LoggingConfig, verbose: bool = False, quiet: bool = False
) -> None:
    """Configure structlog for console or file output.

    Args:
        config: Logging section of the configuration
        verbose: Force DEBUG level
        quiet: Only log errors
    """
    global _log_stream

    level_name = config.level
    if verbose:
        level_name = "DEBUG"
    elif quiet:
        level_name = "ERROR"
    level = getattr(logging, level_name)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.file is not None:
        if _log_stream is not None:
            _log_stream.close()
        _log_stream = open(config.file, "a", encoding="utf-8")
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
        factory = structlog.WriteLoggerFactory(file=_log_stream)
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
        factory = structlog.PrintLoggerFactory(file=sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=factory,
        cache_logger_on_first_use=False,
    )

"""
Logging Configuration for Sales Analytics Reports

structlog events are rendered by the stdlib logging handler on stderr, so the
report paths printed on stdout stay machine readable.
"""

import logging
import sys
from typing import List, Optional, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

from sales_analytics.config.settings import get_settings

LOG_FORMATS = ("json", "text")


def _shared_processors() -> List:
    """Processors applied to structlog and foreign (stdlib) records alike"""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str, stream: TextIO):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Route structlog through the root logger.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Override renderer, "json" or "text"
    """
    monitoring = get_settings().monitoring
    level_name = (log_level or monitoring.log_level).upper()
    log_format = (log_format or monitoring.log_format).lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unsupported log format: {log_format}. Use one of {list(LOG_FORMATS)}")

    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    shared = _shared_processors()
    structlog.configure(
        processors=shared + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(
        processor=_renderer(log_format, sys.stderr),
        foreign_pre_chain=shared,
    ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    structlog.get_logger(__name__).debug("Logging configured", level=level_name, format=log_format)


def bind_run_context(**fields) -> None:
    """Attach fields (input directory, report date) to every later log event"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**fields)

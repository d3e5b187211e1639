"""Logging configuration utilities."""

import logging
import sys
from typing import Optional, TextIO

import structlog

from .config import settings


def _renderer(log_format: str):
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def configure_logging(
    level: int | str | None = None,
    stream: Optional[TextIO] = None,
    log_format: Optional[str] = None,
) -> None:
    """Route structlog through stdlib logging.

    The service logs JSON lines to stdout. The CLI passes ``stream=sys.stderr``
    because stdout carries the extracted CSS.
    """

    log_level = level or (logging.DEBUG if settings.debug else logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(log_format or settings.log_format),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=stream or sys.stdout,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or "critcss")

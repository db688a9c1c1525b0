"""Centralised logging configuration with JSON output."""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

import structlog

from .config import settings

DEFAULT_LOG_LEVEL = "INFO"

_configured = False


def _configure_structlog(level: str, json_output: bool) -> None:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(level: Optional[str] = None, force: bool = False) -> None:
    """Initialise stdlib + structlog logging.

    Console rendering in development, JSON everywhere else.
    """

    global _configured
    if _configured and not force:
        return

    level = (level or settings.log_level or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )
    _configure_structlog(level, json_output=settings.environment != "development")
    _configured = True


def get_logger(name: str, **initial_values: Dict[str, Any]) -> structlog.stdlib.BoundLogger:
    """Return a bound structured logger."""

    configure_logging()
    logger = structlog.get_logger(name).bind(service=settings.service_name)
    if initial_values:
        return logger.bind(**initial_values)
    return logger


__all__ = ["configure_logging", "get_logger"]

"""Structured logging setup (structlog over stdlib logging)."""

from __future__ import annotations

import logging
import sys

import structlog

LOG_FORMATS = ("plain", "json")


def configure_logging(level: str = "INFO", fmt: str = "plain") -> None:
    """Configure structlog once for the whole process.

    ``fmt`` selects the renderer: ``plain`` for a console-friendly line,
    ``json`` for one JSON object per event.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"unknown log format {fmt!r}, expected one of {LOG_FORMATS}")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

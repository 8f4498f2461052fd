"""structlog setup for services embedding the aggregation core.

Library modules log through the standard :mod:`logging` module. Service
entry points call :func:`configure_logging` once at startup so that both
structlog events and stdlib records go to stderr with the same level.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: int = logging.INFO, json: bool = True) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Minimum level emitted by both loggers.
        json: Render JSON lines (for log shippers). When False, events are
            rendered for a terminal with ``structlog.dev.ConsoleRenderer``.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )

    structlog.get_logger(__name__).debug(
        "logging_configured", level=logging.getLevelName(level), json=json
    )

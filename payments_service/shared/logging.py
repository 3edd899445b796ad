"""structlog setup shared by the API and the server entrypoint."""
from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Render JSON log lines with ISO timestamps, filtered at ``level``."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=False,
    )

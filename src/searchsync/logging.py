"""Structured logging for the API server and the operator CLI."""

import logging
import sys
from typing import TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

SERVICE_NAME = "searchsync"

# Replaced by RequestLoggingMiddleware
_SILENCED_LOGGERS = ("uvicorn.access",)
_PROPAGATED_LOGGERS = ("uvicorn", "uvicorn.error")


def _add_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _processors(json: bool) -> list[Processor]:
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if json:
        return [
            *shared,
            _add_service,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        *shared,
        structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    ]


def configure_logging(debug: bool = False, json: bool = True) -> None:
    """Configure structlog and route stdlib loggers through it.

    The server logs JSON lines to stdout. The CLI logs human-readable
    lines to stderr so command output on stdout stays clean.

    Args:
        debug: Enable debug-level logging when True.
        json: JSON lines for the server, console lines for the CLI.
    """
    level = logging.DEBUG if debug else logging.INFO
    stream: TextIO = sys.stdout if json else sys.stderr

    structlog.configure(
        processors=_processors(json),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level, handlers=[logging.StreamHandler(stream)])

    for name in _PROPAGATED_LOGGERS:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    for name in _SILENCED_LOGGERS:
        logging.getLogger(name).disabled = True

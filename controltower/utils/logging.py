"""
Logging setup for the Control Tower service.

Every event is a snake_case name plus keyword context. Request handlers bind
request_id (and the tenant once resolved) into contextvars so engine and
storage events emitted during the request carry them without passing loggers
around.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from controltower import __version__
from controltower.config import Settings, get_settings

SERVICE_NAME = "control-tower"

# Third-party loggers that are too chatty at info level
QUIET_LOGGERS = ("uvicorn.access", "httpx")


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mirror the level as `severity` for log collectors that key on it."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def add_service_info(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp every event with the service name and release."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def _select_renderer(settings: Settings) -> Processor:
    if settings.log_format == "json" and not settings.dev_mode:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=not settings.testing)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Route structlog through stdlib logging with the service processor chain.

    JSON lines in production; console output in dev mode or when LOG_FORMAT is
    console. Safe to call more than once.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_info,
            add_severity,
            _select_renderer(settings),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request_context(request_id: str, **context: Any) -> None:
    """Start a fresh per-request logging context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

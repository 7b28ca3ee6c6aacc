"""Logging setup for the service.

Module loggers use stdlib logging (logging.getLogger(__name__) with
extra={...}); app.main uses structlog. Both end up in one root handler
whose structlog ProcessorFormatter renders the record, extra fields
included: JSON lines in production, a readable console format otherwise.

Secrets never belong in a log line. As a backstop, event keys that look
like credentials are redacted before rendering.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor

from app.core.config import settings

_REDACTED = "***REDACTED***"
_SENSITIVE_KEY_PARTS = ("password", "token", "secret", "authorization", "cookie")
_STRUCTURAL_KEYS = frozenset({"event", "level", "logger", "timestamp"})


def redact_sensitive_fields(
    _logger: object, _method_name: str, event_dict: EventDict
) -> EventDict:
    for key in list(event_dict):
        if key in _STRUCTURAL_KEYS:
            continue
        if any(part in key.lower() for part in _SENSITIVE_KEY_PARTS):
            event_dict[key] = _REDACTED
    return event_dict


def _renderer() -> list[Processor]:
    if settings.environment == "production":
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=False)]


def configure_logging() -> None:
    """Configure stdlib logging and structlog from settings.

    Safe to call more than once (each create_app() calls it): the root
    handler installed here replaces the one from the previous call.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_sensitive_fields,
    ]

    formatter = structlog.stdlib.ProcessorFormatter(
        # Records from plain stdlib loggers: lift extra={...} into the event
        foreign_pre_chain=[structlog.stdlib.ExtraAdder(), *shared],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer(),
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.set_name("account-service")

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == "account-service":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("app").setLevel(level)
    # httpx logs every request URL at INFO, which includes OAuth callback codes
    logging.getLogger("httpx").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

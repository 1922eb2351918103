"""Structured logging configuration with structlog."""

import logging

import structlog

from waitlist.config import Settings
from waitlist.users.service import mask_email

_EMAIL_KEYS = frozenset({"email", "referrer_email", "referee_email"})


def mask_email_fields(
    _logger: object, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Never let a full waitlist email reach the log sink."""
    for key in _EMAIL_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, str) and "@" in value and "***@" not in value:
            event_dict[key] = mask_email(value)
    return event_dict


def setup_logging(settings: Settings) -> None:
    """JSON lines in deployed environments, a console renderer for local dev."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            mask_email_fields,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.WARNING))
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)

"""
Structured logging configuration using structlog.

Production renders one JSON object per line; development uses the console
renderer. Every record carries whatever request context is bound in
contextvars: the middleware binds request_id/method/path, and the auth
dependency adds actor_id/actor_role once the caller is known.

Booking records are full of Decimal amounts, dates and status enums, which
are flattened to plain strings before rendering so the JSON output stays
stable ("150.00", "2024-01-03", "confirmed").
"""

import logging
import sys
from datetime import date
from decimal import Decimal
from enum import Enum

import structlog

from autofleet.core.config import get_settings

_configured = False

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "aiosqlite", "asyncpg")


def flatten_domain_values(logger, method_name, event_dict):
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, date):
            event_dict[key] = value.isoformat()
        elif isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def setup_logging() -> None:
    global _configured
    if _configured:
        return

    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        flatten_domain_values,
    ]

    if settings.ENVIRONMENT == "production":
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=settings.DEBUG)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def bind_actor(user_id: int, role: str) -> None:
    """Attach the authenticated caller to every later record of this request."""
    structlog.contextvars.bind_contextvars(actor_id=user_id, actor_role=role)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

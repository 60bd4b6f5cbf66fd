"""
Logging configuration for InfoRx Interpreter.

Structured logging with structlog: JSON in production, console output
in debug. Request identity is bound through contextvars so every event
emitted while handling a request carries its request_id.

Medical text and API keys must never reach the log. Callers log lengths
and identifiers; the redaction processor masks anything that slips
through under a sensitive key.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from app.config import settings

REDACTED = "[redacted]"

SENSITIVE_KEYS = frozenset({
    "api_key",
    "xi-api-key",
    "authorization",
    "text",
    "summary",
    "original_text",
    "input_text",
})


def redact_sensitive(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask secrets and medical text passed as event fields."""
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS or key.lower().endswith("_api_key"):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    log_level: Optional[str] = None,
    json_format: bool = True
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level (defaults to settings.log_level)
        json_format: Whether to output JSON (True) or console format (False)
    """
    level = log_level or settings.log_level
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_format:
        processors: list[Processor] = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True)
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def bind_request_context(**fields: Any) -> None:
    """Attach request identity to every event logged in this context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in fields.items() if value is not None}
    )


def get_logger(name: str = "inforx") -> structlog.BoundLogger:
    """Get a structured logger bound to a component name."""
    return structlog.get_logger(name)


configure_logging(
    log_level=settings.log_level,
    json_format=not settings.debug
)

"""
MindMate Logging Configuration

Structured logging built on structlog:
- JSON output for staging/production log aggregation
- Console output for development and tests
- Correlation ID binding for request tracing
- Redaction of secrets and of free-text health content

PRIVACY: Check-in notes and model prompts describe a person's mental
state. They are replaced before any renderer sees the event.
"""

import logging
import sys
from typing import Any

import structlog

from mindmate import __version__
from mindmate.config.settings import Settings


SECRET_KEY_FRAGMENTS: frozenset[str] = frozenset({
    "password",
    "token",
    "secret",
    "api_key",
    "authorization",
    "credential",
    "dsn",
})

# Exact keys whose values hold user-written or model-written text
HEALTH_TEXT_KEYS: frozenset[str] = frozenset({
    "notes",
    "check_in_notes",
    "checkInNotes",
    "prompt",
    "raw_text",
    "mood_description",
})

REDACTED = "[REDACTED]"

NOISY_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "openai",
    "aiosqlite",
    "sqlalchemy.engine",
)


def _scrub(key: str, value: Any) -> Any:
    lowered = key.lower()
    if key in HEALTH_TEXT_KEYS or any(f in lowered for f in SECRET_KEY_FRAGMENTS):
        return REDACTED
    if isinstance(value, dict):
        return {k: _scrub(str(k), v) for k, v in value.items()}
    if isinstance(value, list):
        return [_scrub(key, item) for item in value]
    return value


def redact_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """
    Redact secrets and health free text from a log event.

    Keys are matched recursively through nested dicts and lists, so
    a reasoning payload logged as a whole is scrubbed as well.
    """
    return {key: _scrub(key, value) for key, value in event_dict.items()}


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Stamp every entry with the service name and version."""
    event_dict.setdefault("service", "mindmate-backend")
    event_dict.setdefault("version", __version__)
    return event_dict


def build_processors(human_readable: bool) -> list[Any]:
    """Assemble the processor chain for the given output mode."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_data,
        add_service_context,
    ]

    if human_readable:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    else:
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])

    return processors


def configure_logging(settings: Settings) -> None:
    """
    Configure application logging.

    Should be called once during application startup, before the
    first logger is bound.

    Args:
        settings: Application settings
    """
    human_readable = settings.env in ("development", "test")
    level = getattr(logging, settings.log_level.upper())

    structlog.configure(
        processors=build_processors(human_readable),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


def bind_correlation_id(correlation_id: str) -> None:
    """Attach a request correlation ID to every entry in this context."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_context() -> None:
    """Clear all context variables (call at end of request)."""
    structlog.contextvars.clear_contextvars()

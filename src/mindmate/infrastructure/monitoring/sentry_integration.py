"""
Sentry Error Tracking Integration

Error tracking for the API, the daily sweep and the escalation
scheduler. Events are scrubbed before they leave the process.

PRIVACY: Check-in notes, reasoning payloads and model output describe a
person's mental state and are stripped along with credentials.
"""

import re
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from mindmate import __version__
from mindmate.config.logging_config import get_logger

logger = get_logger(__name__)

SECRET_VALUE_PATTERNS = [
    re.compile(r"password[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+", re.IGNORECASE),
    re.compile(r"api[_-]?key[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
]

SCRUBBED_KEYS = frozenset({
    "password",
    "token",
    "secret",
    "api_key",
    "authorization",
    "dsn",
    "notes",
    "check_in_notes",
    "checkinnotes",
    "reasoning_data",
    "reasoningdata",
    "prompt",
    "raw_text",
})


def _scrub(value: Any, key: str = "") -> Any:
    normalized = key.lower().replace("-", "_")
    if normalized and any(k in normalized for k in SCRUBBED_KEYS):
        return "[REDACTED]"
    if isinstance(value, dict):
        return {k: _scrub(v, str(k)) for k, v in value.items()}
    if isinstance(value, list):
        return [_scrub(item) for item in value]
    if isinstance(value, str):
        for pattern in SECRET_VALUE_PATTERNS:
            value = pattern.sub("[REDACTED]", value)
    return value


def before_send(event: dict, hint: dict) -> Optional[dict]:
    """Scrub request bodies, headers, breadcrumbs and extras."""
    request = event.get("request")
    if isinstance(request, dict):
        for section in ("data", "headers"):
            if section in request:
                request[section] = _scrub(request[section])

    for breadcrumb in event.get("breadcrumbs", {}).get("values", []):
        if isinstance(breadcrumb.get("data"), dict):
            breadcrumb["data"] = _scrub(breadcrumb["data"])

    if "extra" in event:
        event["extra"] = _scrub(event["extra"])

    return event


def init_sentry(
    dsn: str,
    environment: str = "development",
    traces_sample_rate: float = 0.1,
) -> bool:
    """
    Initialize Sentry error tracking.

    Returns:
        True if Sentry was initialized, False when no DSN is configured
    """
    if not dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=f"mindmate@{__version__}",
        traces_sample_rate=traces_sample_rate,
        before_send=before_send,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            AsyncioIntegration(),
            LoggingIntegration(level=None, event_level=None),
        ],
        send_default_pii=False,
        max_breadcrumbs=50,
    )

    logger.info("Sentry initialized", environment=environment)
    return True


def capture_exception_with_context(
    exception: BaseException,
    user_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> Optional[str]:
    """
    Capture an exception tagged with the affected user.

    Returns:
        Sentry event ID, or None when Sentry is disabled
    """
    with sentry_sdk.new_scope() as scope:
        if user_id:
            scope.set_tag("user_id", user_id)
        for key, value in _scrub(extra or {}).items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_exception(exception)


def capture_support_event(message: str, extra: Optional[dict] = None) -> None:
    """
    Record a support-flow event worth a human look.

    Used when a request exhausts every tier without a helper.
    """
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("category", "support")
        for key, value in _scrub(extra or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_message(message, level="warning")

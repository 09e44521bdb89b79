"""Monitoring infrastructure package."""

from mindmate.infrastructure.monitoring.sentry_integration import (
    capture_exception_with_context,
    capture_support_event,
    init_sentry,
)

__all__ = [
    "capture_exception_with_context",
    "capture_support_event",
    "init_sentry",
]

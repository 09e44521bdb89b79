"""Notification infrastructure package."""

from mindmate.infrastructure.notifications.dispatcher import (
    NotificationDispatcher,
    NotificationSender,
    build_support_received_notification,
    build_support_request_notification,
)

__all__ = [
    "NotificationDispatcher",
    "NotificationSender",
    "build_support_received_notification",
    "build_support_request_notification",
]

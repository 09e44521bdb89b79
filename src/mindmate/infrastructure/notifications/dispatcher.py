"""
Notification Dispatch

Fire-and-forget delivery of support notifications. The dispatcher
persists an in-app notification row in its own transaction; push
transport is an external collaborator that reads those rows.

ARCHITECTURE: ``notify`` never raises. A failed delivery is logged,
counted and reported as False so one bad recipient cannot stop the
rest of a fan-out or the status transition that triggered it.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from mindmate.config.logging_config import get_logger
from mindmate.domain.enums import NotificationType, SupportTier
from mindmate.domain.models import Notification
from mindmate.infrastructure.database.connection import DatabaseManager
from mindmate.infrastructure.database.repositories import NotificationRepository
from mindmate.infrastructure.metrics import track_notification

logger = get_logger(__name__)


ACTION_ROUTES: dict[NotificationType, str] = {
    NotificationType.BUDDY_SUPPORT: "/buddy-support",
    NotificationType.COMMUNITY_SUPPORT: "/community-support",
    NotificationType.GLOBAL_SUPPORT: "/global-support",
    NotificationType.SUPPORT_RECEIVED: "/support-statistics",
}

_TIER_MESSAGES: dict[SupportTier, tuple[NotificationType, str, str]] = {
    SupportTier.BUDDY: (
        NotificationType.BUDDY_SUPPORT,
        "Buddy Support Request",
        "Someone in your support network might need help",
    ),
    SupportTier.COMMUNITY: (
        NotificationType.COMMUNITY_SUPPORT,
        "Community Support Request",
        "A member of your community might need help",
    ),
    SupportTier.GLOBAL: (
        NotificationType.GLOBAL_SUPPORT,
        "Global Support Request",
        "A user on the platform might need support",
    ),
}


def build_support_request_notification(
    recipient_id: UUID,
    tier: SupportTier,
    requester_id: UUID,
    assessment_id: UUID,
    reminder: bool = False,
) -> Notification:
    """Notification asking a member of ``tier`` to help ``requester_id``."""
    notification_type, title, body = _TIER_MESSAGES[tier]
    if reminder:
        title = f"Reminder: {title}"
    return Notification(
        user_id=recipient_id,
        notification_type=notification_type,
        title=title,
        body=body,
        data={
            "tier": tier.value,
            "requesterId": str(requester_id),
            "assessmentId": str(assessment_id),
        },
    )


def build_support_received_notification(
    requester_id: UUID,
    provider_id: UUID,
    assessment_id: UUID,
    tier: SupportTier,
) -> Notification:
    """Notification telling the requester that help has arrived."""
    return Notification(
        user_id=requester_id,
        notification_type=NotificationType.SUPPORT_RECEIVED,
        title="Support Is On The Way",
        body="Someone has reached out to support you",
        data={
            "tier": tier.value,
            "providerId": str(provider_id),
            "assessmentId": str(assessment_id),
        },
    )


class NotificationSender(ABC):
    """Anything that can deliver a Notification."""

    @abstractmethod
    async def notify(self, notification: Notification) -> bool:
        """
        Deliver one notification.

        Returns:
            True on success. Implementations must not raise.
        """


class NotificationDispatcher(NotificationSender):
    """
    Persists notifications as in-app records.

    Usage:
        dispatcher = NotificationDispatcher(db)
        delivered = await dispatcher.notify(notification)
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def notify(self, notification: Notification) -> bool:
        try:
            async with self._db.session() as session:
                await NotificationRepository(session).add(
                    notification,
                    action_route=ACTION_ROUTES.get(notification.notification_type),
                )
        except Exception as e:
            logger.error(
                "Notification delivery failed",
                user_id=str(notification.user_id),
                type=notification.notification_type.value,
                error=str(e),
            )
            track_notification(notification.notification_type.value, delivered=False)
            return False

        logger.info(
            "Notification delivered",
            user_id=str(notification.user_id),
            type=notification.notification_type.value,
        )
        track_notification(notification.notification_type.value, delivered=True)
        return True


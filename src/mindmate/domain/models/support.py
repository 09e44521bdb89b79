"""
Support Domain Models

Counters, history and request views for peer support.

ARCHITECTURE: SupportStatistics is read-only here. Counter updates are
issued by the repository as per-column atomic increments, never by
mutating and saving one of these objects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from mindmate.domain.enums import (
    MentalHealthStatus,
    NotificationType,
    SupportDirection,
    SupportRequestStatus,
    SupportTier,
)


@dataclass
class SupportCounters:
    """Per-direction counters. last_at is the newest event time."""

    total: int = 0
    buddy_tier: int = 0
    community_tier: int = 0
    global_tier: int = 0
    last_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "buddyTier": self.buddy_tier,
            "communityTier": self.community_tier,
            "globalTier": self.global_tier,
            "lastAt": self.last_at.isoformat() if self.last_at else None,
        }


@dataclass
class SupportHistoryEntry:
    """One line of the append-only support log."""

    direction: SupportDirection
    tier: SupportTier
    timestamp: datetime
    counterpart_id: UUID
    assessment_id: UUID

    def to_dict(self) -> dict:
        return {
            "type": self.direction.value,
            "tier": self.tier.value,
            "timestamp": self.timestamp.isoformat(),
            "userId": str(self.counterpart_id),
            "assessmentId": str(self.assessment_id),
        }


@dataclass
class SupportStatistics:
    """
    Aggregated support activity for one user.

    Attributes:
        provided: Support this user gave
        received: Support this user got
        history: Most recent log entries, newest first
        impact_score: 0-100 score derived from the two totals
    """

    user_id: UUID
    provided: SupportCounters = field(default_factory=SupportCounters)
    received: SupportCounters = field(default_factory=SupportCounters)
    history: list[SupportHistoryEntry] = field(default_factory=list)
    impact_score: int = 0

    def to_dict(self) -> dict:
        return {
            "userId": str(self.user_id),
            "providedSupport": self.provided.to_dict(),
            "receivedSupport": self.received.to_dict(),
            "supportHistory": [entry.to_dict() for entry in self.history],
            "supportImpact": self.impact_score,
        }


@dataclass
class SupportRequest:
    """An open support request as seen by a potential helper."""

    assessment_id: UUID
    user_id: UUID
    status: SupportRequestStatus
    mental_health_status: MentalHealthStatus
    assessed_at: datetime
    requested_at: Optional[datetime] = None
    support_reason: Optional[str] = None
    username: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "assessmentId": str(self.assessment_id),
            "userId": str(self.user_id),
            "username": self.username,
            "supportRequestStatus": self.status.value,
            "mentalHealthStatus": self.mental_health_status.value,
            "timestamp": self.assessed_at.isoformat(),
            "supportRequestTime": self.requested_at.isoformat() if self.requested_at else None,
            "supportReason": self.support_reason,
        }


@dataclass
class Notification:
    """
    In-app notification raised by the support flow.

    Attributes:
        user_id: Recipient
        notification_type: Category, drives the client's action route
        data: Metadata such as the assessment id
    """

    user_id: UUID
    notification_type: NotificationType
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

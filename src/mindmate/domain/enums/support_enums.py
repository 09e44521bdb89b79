"""
Support Escalation Enumerations

A support request widens through three tiers of potential helpers:
the user's buddies, their communities, then everyone on the platform.
"""

from enum import StrEnum
from typing import Optional


class SupportTier(StrEnum):
    """Concentric circles of potential support providers."""

    BUDDY = "buddy"
    COMMUNITY = "community"
    GLOBAL = "global"

    @property
    def requested_status(self) -> "SupportRequestStatus":
        """Status an assessment holds while this tier is being asked."""
        return _TIER_TO_STATUS[self]

    @property
    def next_tier(self) -> Optional["SupportTier"]:
        """The wider tier, or None for GLOBAL."""
        return _NEXT_TIER[self]


class SupportRequestStatus(StrEnum):
    """
    Support request state machine.

    none -> buddyRequested -> communityRequested -> globalRequested
    -> supportProvided. supportProvided is terminal and may be reached
    from any requested state.
    """

    NONE = "none"
    """No support has been requested."""

    BUDDY_REQUESTED = "buddyRequested"
    """Buddies were notified and the buddy timer is running."""

    COMMUNITY_REQUESTED = "communityRequested"
    """Community members were notified."""

    GLOBAL_REQUESTED = "globalRequested"
    """The platform-wide pool was notified."""

    SUPPORT_PROVIDED = "supportProvided"
    """Someone responded. Terminal."""

    @property
    def tier(self) -> Optional[SupportTier]:
        """Tier credited when support is provided from this status."""
        return _STATUS_TO_TIER.get(self)

    @property
    def is_open(self) -> bool:
        """Whether a request is waiting for a helper."""
        return self in _STATUS_TO_TIER


class NotificationType(StrEnum):
    """In-app notification categories raised by the support flow."""

    BUDDY_SUPPORT = "buddy_support"
    COMMUNITY_SUPPORT = "community_support"
    GLOBAL_SUPPORT = "global_support"
    SUPPORT_RECEIVED = "support_received"


class SupportDirection(StrEnum):
    """Side of a support event recorded in the history log."""

    PROVIDED = "provided"
    RECEIVED = "received"


_TIER_TO_STATUS = {
    SupportTier.BUDDY: SupportRequestStatus.BUDDY_REQUESTED,
    SupportTier.COMMUNITY: SupportRequestStatus.COMMUNITY_REQUESTED,
    SupportTier.GLOBAL: SupportRequestStatus.GLOBAL_REQUESTED,
}

_STATUS_TO_TIER = {status: tier for tier, status in _TIER_TO_STATUS.items()}

_NEXT_TIER = {
    SupportTier.BUDDY: SupportTier.COMMUNITY,
    SupportTier.COMMUNITY: SupportTier.GLOBAL,
    SupportTier.GLOBAL: None,
}

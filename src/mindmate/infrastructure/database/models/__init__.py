"""
Database ORM models package.
"""

from mindmate.infrastructure.database.models.assessment_model import AssessmentModel, BaselineModel
from mindmate.infrastructure.database.models.health_signal_model import CheckInModel, HealthSampleModel
from mindmate.infrastructure.database.models.support_model import (
    NotificationModel,
    SupportHistoryModel,
    SupportStatisticsModel,
)
from mindmate.infrastructure.database.models.user_model import (
    BuddyPeerModel,
    CommunityMembershipModel,
    UserModel,
)

__all__ = [
    "AssessmentModel",
    "BaselineModel",
    "BuddyPeerModel",
    "CheckInModel",
    "CommunityMembershipModel",
    "HealthSampleModel",
    "NotificationModel",
    "SupportHistoryModel",
    "SupportStatisticsModel",
    "UserModel",
]

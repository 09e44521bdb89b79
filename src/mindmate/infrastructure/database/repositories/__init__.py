"""
Database repositories package.
"""

from mindmate.infrastructure.database.repositories.assessment_repository import (
    AssessmentRepository,
    BaselineRepository,
    SupportState,
)
from mindmate.infrastructure.database.repositories.base import BaseRepository
from mindmate.infrastructure.database.repositories.health_signal_repository import (
    HealthSignalRepository,
)
from mindmate.infrastructure.database.repositories.support_repository import (
    NotificationRepository,
    SupportStatisticsRepository,
)
from mindmate.infrastructure.database.repositories.user_repository import UserRepository

__all__ = [
    "AssessmentRepository",
    "BaselineRepository",
    "BaseRepository",
    "HealthSignalRepository",
    "NotificationRepository",
    "SupportState",
    "SupportStatisticsRepository",
    "UserRepository",
]

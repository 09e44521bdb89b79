"""Domain enums package."""

from mindmate.domain.enums.assessment_enums import (
    ActivityLevel,
    AnalysisType,
    MentalHealthStatus,
    ParseOutcome,
    SleepQuality,
)
from mindmate.domain.enums.support_enums import (
    NotificationType,
    SupportDirection,
    SupportRequestStatus,
    SupportTier,
)

__all__ = [
    "ActivityLevel",
    "AnalysisType",
    "MentalHealthStatus",
    "ParseOutcome",
    "SleepQuality",
    "NotificationType",
    "SupportDirection",
    "SupportRequestStatus",
    "SupportTier",
]

"""Domain models package."""

from mindmate.domain.models.assessment import (
    AnalysisResult,
    Assessment,
    Baseline,
    DataPoints,
    HeuristicDraft,
    ReasoningData,
    SweepReport,
)
from mindmate.domain.models.health_signals import (
    ALL_HISTORY,
    ActivityRecord,
    CheckIn,
    ExerciseEntry,
    HealthSample,
    Mood,
    SignalWindow,
    SleepRecord,
)
from mindmate.domain.models.support import (
    Notification,
    SupportCounters,
    SupportHistoryEntry,
    SupportRequest,
    SupportStatistics,
)

__all__ = [
    # Assessment models
    "AnalysisResult",
    "Assessment",
    "Baseline",
    "DataPoints",
    "HeuristicDraft",
    "ReasoningData",
    "SweepReport",
    # Health signal models
    "ALL_HISTORY",
    "ActivityRecord",
    "CheckIn",
    "ExerciseEntry",
    "HealthSample",
    "Mood",
    "SignalWindow",
    "SleepRecord",
    # Support models
    "Notification",
    "SupportCounters",
    "SupportHistoryEntry",
    "SupportRequest",
    "SupportStatistics",
]

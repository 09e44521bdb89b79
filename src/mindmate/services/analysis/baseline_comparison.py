"""
Baseline Comparison

Compares a recent analysis against the user's current baseline. The
result is stored on the assessment and shown to the user.
"""

from typing import Optional

from mindmate.domain.enums import ActivityLevel, SleepQuality
from mindmate.domain.models import Baseline, ReasoningData

MOOD_CHANGE_THRESHOLD = 0.15

_ORDINAL: dict[str, int] = {
    SleepQuality.POOR.value: 1,
    SleepQuality.FAIR.value: 2,
    SleepQuality.GOOD.value: 3,
    ActivityLevel.LOW.value: 1,
    ActivityLevel.MODERATE.value: 2,
    ActivityLevel.HIGH.value: 3,
}


def compare_levels(recent: Optional[str], baseline: Optional[str]) -> Optional[str]:
    """Compare two ordinal levels (sleep quality or activity level)."""
    if recent is None or baseline is None:
        return None
    recent_rank = _ORDINAL.get(recent)
    baseline_rank = _ORDINAL.get(baseline)
    if recent_rank is None or baseline_rank is None:
        return None
    if recent_rank > baseline_rank:
        return "Improved compared to baseline"
    if recent_rank < baseline_rank:
        return "Declined compared to baseline"
    return "Consistent with baseline"


def compare_mood(recent: Optional[float], baseline: Optional[float]) -> Optional[str]:
    """Mood change relative to baseline, reported past a 15% threshold."""
    if recent is None or baseline is None or baseline == 0:
        return None
    change = (recent - baseline) / baseline
    if abs(change) < MOOD_CHANGE_THRESHOLD:
        return "Mood consistent with baseline"
    direction = "improved" if change > 0 else "decreased"
    return f"Mood {direction} by {abs(change) * 100:.0f}% compared to baseline"


def compare_to_baseline(recent: ReasoningData, baseline: Baseline) -> dict[str, Optional[str]]:
    normal = baseline.metrics
    return {
        "baselineId": str(baseline.id),
        "sleepQualityChange": compare_levels(
            recent.sleep_quality.value if recent.sleep_quality else None,
            normal.sleep_quality.value if normal.sleep_quality else None,
        ),
        "activityChange": compare_levels(
            recent.activity_level.value if recent.activity_level else None,
            normal.activity_level.value if normal.activity_level else None,
        ),
        "moodChange": compare_mood(recent.check_in_mood, normal.check_in_mood),
    }

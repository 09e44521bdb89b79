"""
Heuristic Preprocessor

Deterministic metrics and a rule-based status for a signal window.
The draft fills gaps the model leaves and is kept next to the model's
opinion as a cross-check.

SAFETY_CRITICAL: A metric with no underlying data is None, never zero.
A zero would read as "the user slept 0 hours" downstream.

Rules:
    critical   if average mood < 2
    declining  if average sleep < 5h or more than two significant changes
    stable     otherwise
"""

from collections import Counter
from statistics import fmean
from typing import Optional, Sequence

from mindmate.domain.enums import ActivityLevel, MentalHealthStatus, SleepQuality
from mindmate.domain.models import (
    CheckIn,
    DataPoints,
    HealthSample,
    HeuristicDraft,
    ReasoningData,
    SignalWindow,
)

# Counting order for the dominant sleep quality. The first category to
# reach the maximum count wins, so ties resolve towards the worse quality.
SLEEP_QUALITY_ORDER: tuple[SleepQuality, ...] = (
    SleepQuality.POOR,
    SleepQuality.FAIR,
    SleepQuality.GOOD,
)

HIGH_ACTIVITY_STEPS = 10_000
HIGH_ACTIVITY_EXERCISE_MINUTES = 150
MODERATE_ACTIVITY_STEPS = 5_000
MODERATE_ACTIVITY_EXERCISE_MINUTES = 75

CRITICAL_MOOD_THRESHOLD = 2.0
DECLINING_SLEEP_HOURS = 5.0
MAX_CHANGES_BEFORE_DECLINING = 2

# Trend detection
TREND_MIN_SAMPLES = 7
TREND_RECENT_DAYS = 3
TREND_PREVIOUS_DAYS = 4
SLEEP_CHANGE_HOURS = 1.5
STEPS_CHANGE_RATIO = 0.3
MOOD_TREND_MIN_CHECK_INS = 4
MOOD_TREND_WINDOW = 2
MOOD_CHANGE_POINTS = 1.0

BASE_CONFIDENCE = 0.3
COMPLETENESS_CONFIDENCE_WEIGHT = 0.4


def average_sleep_hours(samples: Sequence[HealthSample]) -> Optional[float]:
    hours = [s.sleep_hours for s in samples if s.sleep_hours is not None]
    return fmean(hours) if hours else None


def dominant_sleep_quality(samples: Sequence[HealthSample]) -> Optional[SleepQuality]:
    counts = Counter(s.sleep.quality for s in samples if s.sleep and s.sleep.quality)
    dominant: Optional[SleepQuality] = None
    best = 0
    for quality in SLEEP_QUALITY_ORDER:
        if counts[quality] > best:
            dominant, best = quality, counts[quality]
    return dominant


def classify_activity(samples: Sequence[HealthSample]) -> Optional[ActivityLevel]:
    """
    Activity level over samples carrying any steps or exercise.

    Returns None when no sample has activity data at all.
    """
    active = [s for s in samples if s.has_activity]
    if not active:
        return None

    avg_steps = sum(s.steps for s in active) / len(active)
    exercise_minutes = sum(s.exercise_seconds for s in active) / 60

    if avg_steps > HIGH_ACTIVITY_STEPS or exercise_minutes > HIGH_ACTIVITY_EXERCISE_MINUTES:
        return ActivityLevel.HIGH
    if avg_steps > MODERATE_ACTIVITY_STEPS or exercise_minutes > MODERATE_ACTIVITY_EXERCISE_MINUTES:
        return ActivityLevel.MODERATE
    return ActivityLevel.LOW


def average_mood(check_ins: Sequence[CheckIn]) -> Optional[float]:
    return fmean(c.mood.score for c in check_ins) if check_ins else None


def latest_note(check_ins: Sequence[CheckIn]) -> Optional[str]:
    """Most recent non-empty note, falling back to the mood description."""
    for check_in in sorted(check_ins, key=lambda c: c.timestamp, reverse=True):
        if check_in.text:
            return check_in.text
    return None


def recent_exercise_minutes(samples: Sequence[HealthSample]) -> Optional[float]:
    days = [s for s in samples if s.exercises]
    if not days:
        return None
    return round(sum(s.exercise_seconds for s in days) / 60, 1)


def average_steps(samples: Sequence[HealthSample]) -> Optional[float]:
    steps = [s.steps for s in samples if s.steps > 0]
    return float(round(fmean(steps))) if steps else None


def detect_significant_changes(
    samples: Sequence[HealthSample],
    check_ins: Sequence[CheckIn],
) -> list[str]:
    """
    Compare the most recent days and check-ins against the ones before.

    Sleep and steps need at least seven days of samples (latest three vs
    the four before). Mood needs four check-ins (latest two vs the two
    before).
    """
    changes: list[str] = []

    if len(samples) >= TREND_MIN_SAMPLES:
        newest_first = sorted(samples, key=lambda s: s.day, reverse=True)
        recent = newest_first[:TREND_RECENT_DAYS]
        previous = newest_first[TREND_RECENT_DAYS:TREND_RECENT_DAYS + TREND_PREVIOUS_DAYS]

        recent_sleep = average_sleep_hours(recent)
        previous_sleep = average_sleep_hours(previous)
        if recent_sleep is not None and previous_sleep is not None:
            delta = recent_sleep - previous_sleep
            if abs(delta) > SLEEP_CHANGE_HOURS:
                direction = "decreased" if delta < 0 else "increased"
                changes.append(
                    f"Sleep {direction} by {abs(delta):.1f} hours compared to previous days"
                )

        recent_steps = average_steps(recent)
        previous_steps = average_steps(previous)
        if recent_steps is not None and previous_steps:
            ratio = (recent_steps - previous_steps) / previous_steps
            if abs(ratio) > STEPS_CHANGE_RATIO:
                direction = "decreased" if ratio < 0 else "increased"
                changes.append(
                    f"Activity {direction} by {abs(ratio) * 100:.0f}% compared to previous days"
                )

    if len(check_ins) >= MOOD_TREND_MIN_CHECK_INS:
        newest_first = sorted(check_ins, key=lambda c: c.timestamp, reverse=True)
        recent_mood = average_mood(newest_first[:MOOD_TREND_WINDOW])
        previous_mood = average_mood(newest_first[MOOD_TREND_WINDOW:MOOD_TREND_WINDOW * 2])
        delta = recent_mood - previous_mood
        if abs(delta) >= MOOD_CHANGE_POINTS:
            direction = "declined" if delta < 0 else "improved"
            changes.append(
                f"Mood {direction} by {abs(delta):.1f} points compared to previous check-ins"
            )

    return changes


def data_completeness(window: SignalWindow) -> float:
    """Observed sample days over requested window days, capped at 1."""
    observed_days = len({s.day for s in window.samples})
    return round(min(observed_days / window.requested_days, 1.0), 2)


def count_data_points(window: SignalWindow) -> DataPoints:
    return DataPoints(
        total_days=len({s.day for s in window.samples}),
        days_with_sleep_data=sum(1 for s in window.samples if s.sleep is not None),
        days_with_activity_data=sum(1 for s in window.samples if s.has_activity),
        check_ins_count=len(window.check_ins),
    )


class HeuristicPreprocessor:
    """
    Builds a HeuristicDraft from a SignalWindow.

    Pure: no I/O, no clock, same input gives the same draft.
    """

    def analyze(self, window: SignalWindow) -> HeuristicDraft:
        samples = window.samples
        check_ins = window.check_ins

        sleep_hours = average_sleep_hours(samples)
        mood = average_mood(check_ins)
        changes = detect_significant_changes(samples, check_ins)
        completeness = data_completeness(window)

        if mood is not None and mood < CRITICAL_MOOD_THRESHOLD:
            status = MentalHealthStatus.CRITICAL
        elif (sleep_hours is not None and sleep_hours < DECLINING_SLEEP_HOURS) or (
            len(changes) > MAX_CHANGES_BEFORE_DECLINING
        ):
            status = MentalHealthStatus.DECLINING
        else:
            status = MentalHealthStatus.STABLE

        reasoning = ReasoningData(
            sleep_hours=round(sleep_hours, 1) if sleep_hours is not None else None,
            sleep_quality=dominant_sleep_quality(samples),
            activity_level=classify_activity(samples),
            check_in_mood=round(mood, 1) if mood is not None else None,
            check_in_notes=latest_note(check_ins),
            recent_exercise_minutes=recent_exercise_minutes(samples),
            steps_per_day=average_steps(samples),
            significant_changes=changes,
            additional_factors={
                "dataCompleteness": completeness,
                "samplesAnalyzed": len(samples),
                "checkInsAnalyzed": len(check_ins),
            },
        )

        return HeuristicDraft(
            status=status,
            confidence_score=round(BASE_CONFIDENCE + COMPLETENESS_CONFIDENCE_WEIGHT * completeness, 2),
            reasoning=reasoning,
            needs_support=status == MentalHealthStatus.CRITICAL,
            data_completeness=completeness,
        )

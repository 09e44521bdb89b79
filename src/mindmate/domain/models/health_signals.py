"""
Health Signal Domain Models

Raw inputs to the analysis pipeline: one HealthSample per user per
calendar day, and append-only mood CheckIns.

PRIVACY: Check-in notes are free text written by the user and must
never be logged.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Final, Optional
from uuid import UUID, uuid4

from mindmate.domain.enums import AnalysisType, SleepQuality


# Window sentinel meaning "from the epoch"
ALL_HISTORY: Final = None


@dataclass
class SleepRecord:
    """Sleep summary for one night."""

    duration_seconds: Optional[int] = None
    quality: Optional[SleepQuality] = None

    def to_dict(self) -> dict:
        return {
            "durationInSeconds": self.duration_seconds,
            "quality": self.quality.value if self.quality else None,
        }


@dataclass
class ActivityRecord:
    """Daily activity summary as reported by the device."""

    steps: Optional[int] = None
    exercise_seconds: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "totalSteps": self.steps,
            "totalExerciseSeconds": self.exercise_seconds,
        }


@dataclass
class ExerciseEntry:
    """A single recorded workout."""

    name: str = ""
    duration_seconds: int = 0
    calories: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "durationInSeconds": self.duration_seconds,
            "calories": self.calories,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExerciseEntry":
        return cls(
            name=data.get("name", ""),
            duration_seconds=int(data.get("durationInSeconds") or 0),
            calories=data.get("calories"),
        )


@dataclass
class HealthSample:
    """
    One user's health data for one calendar day.

    Every part is optional: samples are upserted incrementally while
    the device syncs during the day.

    Attributes:
        user_id: Owner of the sample
        day: Calendar day the sample covers
        sleep: Sleep summary, if recorded
        activity: Step/exercise summary, if recorded
        exercises: Individual workouts
    """

    user_id: UUID
    day: date
    sleep: Optional[SleepRecord] = None
    activity: Optional[ActivityRecord] = None
    exercises: list[ExerciseEntry] = field(default_factory=list)
    last_synced_at: Optional[datetime] = None

    @property
    def sleep_hours(self) -> Optional[float]:
        """Sleep duration in hours, or None without a recorded duration."""
        if self.sleep is None or self.sleep.duration_seconds is None:
            return None
        return self.sleep.duration_seconds / 3600

    @property
    def steps(self) -> int:
        if self.activity is None or self.activity.steps is None:
            return 0
        return self.activity.steps

    @property
    def exercise_seconds(self) -> int:
        """Device total if present, otherwise the sum of workout entries."""
        if self.activity is not None and self.activity.exercise_seconds is not None:
            return self.activity.exercise_seconds
        return sum(entry.duration_seconds for entry in self.exercises)

    @property
    def has_activity(self) -> bool:
        return self.steps > 0 or bool(self.exercises) or self.exercise_seconds > 0

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "sleep": self.sleep.to_dict() if self.sleep else None,
            "summary": self.activity.to_dict() if self.activity else None,
            "exercises": [entry.to_dict() for entry in self.exercises],
        }


@dataclass
class Mood:
    """Mood part of a check-in. Score is on a 1-5 scale."""

    score: float
    label: str = ""
    description: Optional[str] = None


@dataclass
class CheckIn:
    """
    A mood check-in. Append-only.

    Attributes:
        id: Check-in identifier
        user_id: Author
        timestamp: When the check-in was submitted
        mood: Score, label and optional description
        notes: Optional free-text notes
    """

    user_id: UUID
    timestamp: datetime
    mood: Mood
    notes: Optional[str] = None
    id: UUID = field(default_factory=uuid4)

    @property
    def text(self) -> Optional[str]:
        """Notes if non-empty, otherwise the mood description."""
        for candidate in (self.notes, self.mood.description):
            if candidate and candidate.strip():
                return candidate.strip()
        return None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "timestamp": self.timestamp.isoformat(),
            "mood": {
                "score": self.mood.score,
                "label": self.mood.label,
                "description": self.mood.description,
            },
            "notes": self.notes,
        }


@dataclass
class SignalWindow:
    """
    Everything the collector returned for one pipeline run.

    Samples and check-ins are in ascending time order. ``start`` and
    ``end`` are the resolved query bounds; for an all-history window
    ``start`` is the earliest observation (or ``end`` with no data).
    """

    user_id: UUID
    analysis_type: AnalysisType
    start: datetime
    end: datetime
    samples: list[HealthSample] = field(default_factory=list)
    check_ins: list[CheckIn] = field(default_factory=list)
    window_days: Optional[int] = ALL_HISTORY

    @property
    def requested_days(self) -> int:
        """Length of the window in calendar days, at least 1."""
        if self.window_days is not None:
            return self.window_days
        return max((self.end.date() - self.start.date()).days + 1, 1)

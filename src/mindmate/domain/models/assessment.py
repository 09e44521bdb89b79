"""
Assessment Domain Models

Results of the analysis pipeline.

ARCHITECTURE:
- AnalysisResult is the working shape shared by the heuristic
  preprocessor, the response parser and the merger. Every field is
  optional so "the model omitted it" stays distinguishable from a value.
- Assessment and Baseline are the persisted entities. They are created
  only by pipeline runs; an Assessment is later mutated only by the
  escalation engine.

Wire names (camelCase) match the structured-output contract given to
the model and the payloads the mobile client reads.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from mindmate.domain.enums import (
    ActivityLevel,
    AnalysisType,
    MentalHealthStatus,
    ParseOutcome,
    SleepQuality,
    SupportRequestStatus,
)


@dataclass
class ReasoningData:
    """
    Evidence behind an assessment.

    Attributes:
        sleep_hours: Average sleep per night
        sleep_quality: Dominant sleep quality
        activity_level: Coarse activity classification
        check_in_mood: Average mood score (1-5)
        check_in_notes: Most relevant free-text note
        recent_exercise_minutes: Exercise minutes over the window
        steps_per_day: Average steps on days with steps
        significant_changes: Human-readable trend notes
        additional_factors: Free-form extras
    """

    sleep_hours: Optional[float] = None
    sleep_quality: Optional[SleepQuality] = None
    activity_level: Optional[ActivityLevel] = None
    check_in_mood: Optional[float] = None
    check_in_notes: Optional[str] = None
    recent_exercise_minutes: Optional[float] = None
    steps_per_day: Optional[float] = None
    significant_changes: Optional[list[str]] = None
    additional_factors: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "sleepHours": self.sleep_hours,
            "sleepQuality": self.sleep_quality.value if self.sleep_quality else None,
            "activityLevel": self.activity_level.value if self.activity_level else None,
            "checkInMood": self.check_in_mood,
            "checkInNotes": self.check_in_notes,
            "recentExerciseMinutes": self.recent_exercise_minutes,
            "stepsPerDay": self.steps_per_day,
            "significantChanges": list(self.significant_changes or []),
            "additionalFactors": dict(self.additional_factors),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ReasoningData":
        data = data or {}
        quality = data.get("sleepQuality")
        level = data.get("activityLevel")
        return cls(
            sleep_hours=data.get("sleepHours"),
            sleep_quality=SleepQuality(quality) if quality else None,
            activity_level=ActivityLevel(level) if level else None,
            check_in_mood=data.get("checkInMood"),
            check_in_notes=data.get("checkInNotes"),
            recent_exercise_minutes=data.get("recentExerciseMinutes"),
            steps_per_day=data.get("stepsPerDay"),
            significant_changes=list(data.get("significantChanges") or []),
            additional_factors=dict(data.get("additionalFactors") or {}),
        )


@dataclass
class AnalysisResult:
    """
    A (possibly partial) assessment.

    Produced by the heuristic preprocessor (always complete), by the
    response parser (partial) and by the merger (complete).
    """

    status: Optional[MentalHealthStatus] = None
    confidence_score: Optional[float] = None
    reasoning: ReasoningData = field(default_factory=ReasoningData)
    needs_support: Optional[bool] = None
    support_reason: Optional[str] = None
    support_tips: Optional[list[str]] = None

    def to_dict(self) -> dict:
        return {
            "mentalHealthStatus": self.status.value if self.status else None,
            "confidenceScore": self.confidence_score,
            "reasoningData": self.reasoning.to_dict(),
            "needsSupport": self.needs_support,
            "supportReason": self.support_reason,
            "supportTips": list(self.support_tips or []),
        }


@dataclass
class HeuristicDraft(AnalysisResult):
    """
    Deterministic draft from the heuristic preprocessor.

    data_completeness is observed days / requested window days.
    """

    data_completeness: float = 0.0


@dataclass
class Assessment:
    """
    Persisted mental-health assessment.

    SAFETY_CRITICAL: Assessments with analysis_type=BASELINE never carry
    an active escalation, whatever needs_support says.

    Attributes:
        support_request_status: Escalation state machine field
        escalation_due_at: When the current tier times out (None when
            no timer is pending)
        parse_outcome: Trust level of the model response behind it
        baseline_comparison: Comparison against the baseline current at
            analysis time, if there was one
    """

    user_id: UUID
    status: MentalHealthStatus
    confidence_score: float
    analysis_type: AnalysisType
    reasoning: ReasoningData = field(default_factory=ReasoningData)
    needs_support: bool = False
    support_request_status: SupportRequestStatus = SupportRequestStatus.NONE
    support_request_time: Optional[datetime] = None
    support_provided_by: Optional[UUID] = None
    support_provided_time: Optional[datetime] = None
    support_reason: Optional[str] = None
    support_tips: list[str] = field(default_factory=list)
    parse_outcome: ParseOutcome = ParseOutcome.STRICT
    baseline_comparison: Optional[dict[str, Optional[str]]] = None
    escalation_due_at: Optional[datetime] = None
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self, include_support_details: bool = True) -> dict:
        data = {
            "id": str(self.id),
            "userId": str(self.user_id),
            "timestamp": self.timestamp.isoformat(),
            "mentalHealthStatus": self.status.value,
            "confidenceScore": self.confidence_score,
            "reasoningData": self.reasoning.to_dict(),
            "needsSupport": self.needs_support,
            "analysisType": self.analysis_type.value,
            "parseOutcome": self.parse_outcome.value,
            "baselineComparison": self.baseline_comparison,
        }
        if include_support_details:
            data.update({
                "supportRequestStatus": self.support_request_status.value,
                "supportRequestTime": _iso(self.support_request_time),
                "supportProvidedBy": str(self.support_provided_by) if self.support_provided_by else None,
                "supportProvidedTime": _iso(self.support_provided_time),
                "supportReason": self.support_reason,
                "supportTips": list(self.support_tips),
            })
        return data


@dataclass
class DataPoints:
    """How much data a baseline was built from."""

    total_days: int = 0
    days_with_sleep_data: int = 0
    days_with_activity_data: int = 0
    check_ins_count: int = 0

    def to_dict(self) -> dict:
        return {
            "totalDays": self.total_days,
            "daysWithSleepData": self.days_with_sleep_data,
            "daysWithActivityData": self.days_with_activity_data,
            "checkInsCount": self.check_ins_count,
        }


@dataclass
class Baseline:
    """
    Long-run characterization of a user's normal pattern.

    The current baseline is the one with the latest established_at.
    Older baselines are retained as history and never deleted.

    Attributes:
        metrics: Long-run metrics in the reasoning-data shape
        exercise_minutes_per_week: Exercise scaled to a 7-day week
        raw_assessment: The merged model/heuristic result it came from
    """

    user_id: UUID
    metrics: ReasoningData
    confidence_score: float
    data_points: DataPoints = field(default_factory=DataPoints)
    exercise_minutes_per_week: Optional[float] = None
    raw_assessment: dict = field(default_factory=dict)
    parse_outcome: ParseOutcome = ParseOutcome.STRICT
    id: UUID = field(default_factory=uuid4)
    established_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "userId": str(self.user_id),
            "establishedAt": self.established_at.isoformat(),
            "baselineMetrics": {
                **self.metrics.to_dict(),
                "exerciseMinutesPerWeek": self.exercise_minutes_per_week,
            },
            "confidenceScore": self.confidence_score,
            "dataPoints": self.data_points.to_dict(),
            "parseOutcome": self.parse_outcome.value,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class SweepReport:
    """Outcome of one daily sweep."""

    analyzed: int = 0
    failed: int = 0
    support_requested: int = 0

    def to_dict(self) -> dict:
        return {
            "analyzed": self.analyzed,
            "failed": self.failed,
            "supportRequested": self.support_requested,
        }

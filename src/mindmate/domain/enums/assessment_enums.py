"""
Assessment Enumerations

Value sets shared by the heuristic preprocessor, the response parser
and the persistence layer. String values are the wire values that the
generative model is asked to emit and that the mobile client reads.
"""

from enum import StrEnum


class MentalHealthStatus(StrEnum):
    """
    Overall mental-health classification of an assessment.

    SAFETY_NOTE: CRITICAL always implies needs_support, whatever the
    model itself reported.
    """

    STABLE = "stable"
    """Signals are within the user's normal range."""

    DECLINING = "declining"
    """Sleep, activity or mood are trending worse."""

    CRITICAL = "critical"
    """Signals indicate acute distress; support must be offered."""


class AnalysisType(StrEnum):
    """Which pipeline entry point produced a result."""

    BASELINE = "baseline"
    """Long-run characterization. Never escalates."""

    RECENT = "recent"
    """Short-horizon, recency-weighted analysis. May escalate."""


class SleepQuality(StrEnum):
    """Self-reported or device-derived sleep quality."""

    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"


class ActivityLevel(StrEnum):
    """Coarse activity classification derived from steps and exercise."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class ParseOutcome(StrEnum):
    """
    Trust level of a parsed model response.

    Persisted alongside every assessment so degraded results can be
    found and audited later.
    """

    STRICT = "strict"
    """The first brace block parsed as JSON."""

    REPAIRED = "repaired"
    """Fields were recovered by pattern extraction or structural repair."""

    FAILED = "failed"
    """Nothing usable was found; fixed defaults were returned."""

"""
Prompt Formatter

Builds the natural-language analysis request sent to the generative
model, branching on analysis type.

ARCHITECTURE:
- Every prompt states that missing data is not a negative signal.
- Data is summarized with check-in text first, then sleep, then
  activity: what the user wrote carries the most weight.
- The response contract names every field and its allowed values. Mood
  is requested as a 1-5 number only.
- Recent prompts add recency weighting, a baseline comparison block and
  the rules that force needsSupport=true.
- Baseline prompts forbid any support recommendation.

CLINICAL_REVIEW_REQUIRED: The support rules below decide when peers
are contacted and should be reviewed with the care team.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from mindmate.domain.enums import ActivityLevel, AnalysisType, MentalHealthStatus, SleepQuality
from mindmate.domain.models import Baseline, HeuristicDraft, SignalWindow


@dataclass
class AnalysisPrompt:
    """
    Complete prompt ready for a provider.

    Attributes:
        text: Full instruction and data text
        analysis_type: Which entry point built it
        temperature: Suggested temperature (None = provider default)
        max_tokens: Suggested response budget (None = provider default)
    """

    text: str
    analysis_type: AnalysisType
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def to_messages(self) -> list[dict]:
        """Chat-style messages for chat-completion providers."""
        return [{"role": "user", "content": self.text}]


MISSING_DATA_NOTE = (
    "IMPORTANT: Missing data points are NOT negative signals. Users do not "
    "always wear their device or check in. Draw conclusions only from data "
    "that is present, and lower your confidenceScore when data is sparse."
)

BASELINE_RULES = (
    "This is a BASELINE analysis. Characterize what is normal for this user "
    "over the whole period. Do NOT recommend support: needsSupport must be "
    "false, and supportReason and supportTips must be omitted."
)

RECENCY_GUIDANCE = (
    "Weight the data by recency: today's data counts about 3 times as much "
    "as data from 3 days ago, and yesterday's about 2 times as much."
)

SUPPORT_RULES: tuple[str, ...] = (
    'mentalHealthStatus is "critical"',
    "the check-in notes contain distress language (hopelessness, feeling "
    "overwhelmed, not coping, self-harm, wanting to disappear)",
    "there is a large negative deviation from the baseline",
    "two or more negative trend changes are happening at the same time",
)

_STATUS_VALUES = " | ".join(f'"{s.value}"' for s in MentalHealthStatus)
_SLEEP_VALUES = " | ".join(f'"{q.value}"' for q in SleepQuality)
_ACTIVITY_VALUES = " | ".join(f'"{a.value}"' for a in ActivityLevel)

RESPONSE_CONTRACT = f"""Respond with ONE JSON object and nothing else. Fields:
{{
  "mentalHealthStatus": {_STATUS_VALUES},
  "confidenceScore": number between 0 and 1,
  "reasoningData": {{
    "sleepHours": number or null,
    "sleepQuality": {_SLEEP_VALUES} | null,
    "activityLevel": {_ACTIVITY_VALUES} | null,
    "checkInMood": number from 1 to 5 or null (a number, never a word),
    "checkInNotes": string or null,
    "recentExerciseMinutes": number or null,
    "stepsPerDay": number or null,
    "significantChanges": [string],
    "additionalFactors": {{}}
  }},
  "needsSupport": true | false,
  "supportReason": string (only when needsSupport is true),
  "supportTips": [string] (only when needsSupport is true)
}}
needsSupport belongs at the top level, not inside reasoningData."""


class PromptFormatter:
    """
    Formats signal windows into analysis prompts.

    Usage:
        formatter = PromptFormatter()
        prompt = formatter.format(window, draft, baseline=current_baseline)
    """

    def __init__(self, temperature: Optional[float] = None, max_tokens: Optional[int] = None) -> None:
        self._temperature = temperature
        self._max_tokens = max_tokens

    def format(
        self,
        window: SignalWindow,
        draft: HeuristicDraft,
        baseline: Optional[Baseline] = None,
    ) -> AnalysisPrompt:
        """
        Build the prompt for ``window``.

        ``baseline`` is only rendered for recent analyses.
        """
        is_recent = window.analysis_type == AnalysisType.RECENT

        sections = [
            self._introduction(window),
            MISSING_DATA_NOTE,
            self._data_summary(window, relative_days=is_recent),
        ]

        if is_recent:
            sections.append(RECENCY_GUIDANCE)
            if baseline is not None:
                sections.append(self._baseline_block(baseline, draft))
            sections.append(self._support_rules())
        else:
            sections.append(BASELINE_RULES)

        sections.append(RESPONSE_CONTRACT)

        return AnalysisPrompt(
            text="\n\n".join(sections),
            analysis_type=window.analysis_type,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

    def _introduction(self, window: SignalWindow) -> str:
        period = f"{window.start.date().isoformat()} to {window.end.date().isoformat()}"
        if window.analysis_type == AnalysisType.RECENT:
            return (
                "You are a mental health analysis assistant. Assess this user's "
                f"current wellbeing from their last {window.requested_days} days "
                f"of data ({period})."
            )
        return (
            "You are a mental health analysis assistant. Establish this user's "
            f"baseline: their normal sleep, activity and mood patterns ({period})."
        )

    def _data_summary(self, window: SignalWindow, relative_days: bool) -> str:
        reference = window.end.date()

        def label(day: date) -> str:
            if not relative_days:
                return day.isoformat()
            age = (reference - day).days
            if age <= 0:
                return "today"
            if age == 1:
                return "yesterday"
            return f"{age} days ago"

        lines = [
            f"USER DATA ({len(window.samples)} days with health data, "
            f"{len(window.check_ins)} check-ins)"
        ]

        # Check-in text first: it carries the most signal
        lines.append("Check-ins (notes have the highest priority):")
        if window.check_ins:
            for check_in in reversed(window.check_ins):
                entry = (
                    f"- {label(check_in.timestamp.date())}: mood {check_in.mood.score:g}/5"
                    f" ({check_in.mood.label or 'unlabelled'})"
                )
                if check_in.text:
                    entry += f', notes: "{check_in.text}"'
                lines.append(entry)
        else:
            lines.append("- no check-ins")

        lines.append("Sleep:")
        sleep_days = [s for s in window.samples if s.sleep is not None]
        for sample in reversed(sleep_days):
            hours = f"{sample.sleep_hours:.1f} hours" if sample.sleep_hours is not None else "duration unknown"
            quality = sample.sleep.quality.value if sample.sleep.quality else "unknown"
            lines.append(f"- {label(sample.day)}: {hours}, quality {quality}")
        if not sleep_days:
            lines.append("- no sleep data")

        lines.append("Activity:")
        active_days = [s for s in window.samples if s.has_activity]
        for sample in reversed(active_days):
            entry = f"- {label(sample.day)}: {sample.steps} steps, {sample.exercise_seconds // 60} exercise minutes"
            if sample.exercises:
                names = ", ".join(e.name for e in sample.exercises if e.name)
                if names:
                    entry += f" ({names})"
            lines.append(entry)
        if not active_days:
            lines.append("- no activity data")

        return "\n".join(lines)

    def _baseline_block(self, baseline: Baseline, draft: HeuristicDraft) -> str:
        normal = baseline.metrics
        recent = draft.reasoning

        def show(value: Optional[object], unit: str = "") -> str:
            if value is None:
                return "unknown"
            if hasattr(value, "value"):
                value = value.value
            return f"{value}{unit}"

        lines = [
            f"BASELINE COMPARISON (baseline established {baseline.established_at.date().isoformat()} "
            f"from {baseline.data_points.total_days} days of data):",
            f"- Sleep: baseline {show(normal.sleep_hours, 'h')} ({show(normal.sleep_quality)})"
            f" | recent {show(recent.sleep_hours, 'h')} ({show(recent.sleep_quality)})",
            f"- Activity: baseline {show(normal.activity_level)}, {show(normal.steps_per_day)} steps/day"
            f" | recent {show(recent.activity_level)}, {show(recent.steps_per_day)} steps/day",
            f"- Mood: baseline {show(normal.check_in_mood, '/5')} | recent {show(recent.check_in_mood, '/5')}",
        ]
        if normal.significant_changes:
            lines.append(f"- Baseline patterns: {'; '.join(normal.significant_changes)}")
        lines.append("Treat a large negative deviation from the baseline as a warning sign.")
        return "\n".join(lines)

    def _support_rules(self) -> str:
        rules = "\n".join(f"- {rule}" for rule in SUPPORT_RULES)
        return (
            "SUPPORT RULES: set needsSupport to true if ANY of the following holds:\n"
            f"{rules}\n"
            "When needsSupport is true, give a short supportReason and 2-3 practical supportTips."
        )

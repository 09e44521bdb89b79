"""
Response Merger

Reconciles the parsed model output with the heuristic draft.

Field merge is right-biased: the model's value wins, and the heuristic
fills each field the model omitted. Extras are unioned with model keys
winning.

SAFETY_CRITICAL: A critical merged status always needs support. The
merger forces needs_support=True and fills in a default reason and
tips when the model gave none, whatever the model said.
"""

from typing import Optional, TypeVar

from mindmate.config.logging_config import get_logger
from mindmate.domain.enums import MentalHealthStatus, ParseOutcome
from mindmate.domain.models import AnalysisResult, HeuristicDraft, ReasoningData
from mindmate.services.analysis.response_parser import ParsedResponse

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_SUPPORT_REASON = (
    "Your recent sleep, activity and check-ins suggest you may be going "
    "through a difficult time."
)

DEFAULT_SUPPORT_TIPS: tuple[str, ...] = (
    "Reach out to someone you trust and tell them how you are feeling.",
    "Take a short walk or spend a few minutes on slow, deep breathing.",
    "Keep a regular sleep schedule over the next few nights.",
)


def _prefer(model_value: Optional[T], heuristic_value: Optional[T]) -> Optional[T]:
    return model_value if model_value is not None else heuristic_value


def merge_reasoning(model: ReasoningData, heuristic: ReasoningData) -> ReasoningData:
    return ReasoningData(
        sleep_hours=_prefer(model.sleep_hours, heuristic.sleep_hours),
        sleep_quality=_prefer(model.sleep_quality, heuristic.sleep_quality),
        activity_level=_prefer(model.activity_level, heuristic.activity_level),
        check_in_mood=_prefer(model.check_in_mood, heuristic.check_in_mood),
        check_in_notes=_prefer(model.check_in_notes, heuristic.check_in_notes),
        recent_exercise_minutes=_prefer(model.recent_exercise_minutes, heuristic.recent_exercise_minutes),
        steps_per_day=_prefer(model.steps_per_day, heuristic.steps_per_day),
        significant_changes=list(_prefer(model.significant_changes, heuristic.significant_changes) or []),
        additional_factors={**heuristic.additional_factors, **model.additional_factors},
    )


class ResponseMerger:
    """
    Produces the final AnalysisResult for a pipeline run.

    A FAILED parse carries fixed defaults rather than an opinion, so in
    that case the heuristic status and needs_support stand.
    """

    def merge(self, parsed: ParsedResponse, draft: HeuristicDraft) -> AnalysisResult:
        model = parsed.result

        if parsed.outcome == ParseOutcome.FAILED:
            status = draft.status
            needs_support = draft.needs_support
        else:
            status = _prefer(model.status, draft.status)
            needs_support = _prefer(model.needs_support, draft.needs_support)

        reasoning = merge_reasoning(model.reasoning, draft.reasoning)
        reasoning.additional_factors = {
            "heuristicStatus": draft.status.value if draft.status else None,
            "parseOutcome": parsed.outcome.value,
            **reasoning.additional_factors,
        }

        merged = AnalysisResult(
            status=status or MentalHealthStatus.STABLE,
            confidence_score=_prefer(model.confidence_score, draft.confidence_score),
            reasoning=reasoning,
            needs_support=bool(needs_support),
            support_reason=model.support_reason,
            support_tips=list(model.support_tips) if model.support_tips else None,
        )

        return enforce_critical_support(merged)


def enforce_critical_support(result: AnalysisResult) -> AnalysisResult:
    """Force support for a critical status, filling reason and tips."""
    if result.status != MentalHealthStatus.CRITICAL:
        return result

    if not result.needs_support:
        logger.warning("Critical status without support request, forcing needs_support")
    result.needs_support = True
    if not result.support_reason:
        result.support_reason = DEFAULT_SUPPORT_REASON
    if not result.support_tips:
        result.support_tips = list(DEFAULT_SUPPORT_TIPS)
    return result

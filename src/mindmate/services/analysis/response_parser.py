"""
Resilient Response Parser

Turns free model text into a structured, best-effort AnalysisResult.

ARCHITECTURE: Three paths, reported as a ParseOutcome tag.
1. STRICT: the first balanced brace block parses as JSON.
2. REPAIRED: JSON needed a light fix (trailing commas, a field nested
   one level too deep), or fields were pulled out by pattern matching
   because the block is not valid JSON.
3. FAILED: nothing usable; fixed defaults (stable, 0.5, no support).

SAFETY_CRITICAL: ``parse`` never raises. Every caller gets a result.

Brace scanning (``find_brace_block``):
- Starts at the first ``{`` at or after the given offset.
- Counts depth over ``{``/``}``; braces inside double-quoted strings
  (with backslash escapes) are ignored.
- Returns the span up to and including the ``}`` that brings depth back
  to zero. Nested blocks are part of the outer span.
- If the text ends before depth returns to zero, the span is returned
  with ``end=None`` (unterminated); pattern extraction then runs over
  everything from the opening brace to the end of the text.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from mindmate.config.logging_config import get_logger
from mindmate.domain.enums import ActivityLevel, MentalHealthStatus, ParseOutcome, SleepQuality
from mindmate.domain.models import AnalysisResult, ReasoningData

logger = get_logger(__name__)


DEFAULT_FAILED_CONFIDENCE = 0.5
NEUTRAL_MOOD = 3.0

MOOD_VOCABULARY: dict[str, float] = {
    "very poor": 1.0,
    "very low": 1.0,
    "very bad": 1.0,
    "terrible": 1.0,
    "poor": 2.0,
    "low": 2.0,
    "bad": 2.0,
    "fair": 3.0,
    "neutral": 3.0,
    "okay": 3.0,
    "ok": 3.0,
    "average": 3.0,
    "good": 4.0,
    "very good": 5.0,
    "great": 5.0,
    "excellent": 5.0,
}

REASONING_KEY = "reasoningData"
FACTORS_KEY = "additionalFactors"

# Top-level fields a model sometimes writes inside reasoningData
PROMOTABLE_KEYS: tuple[str, ...] = (
    "needsSupport",
    "mentalHealthStatus",
    "confidenceScore",
    "supportReason",
    "supportTips",
)

TOP_SCALAR_KEYS: tuple[str, ...] = (
    "mentalHealthStatus",
    "confidenceScore",
    "needsSupport",
    "supportReason",
)

REASONING_SCALAR_KEYS: tuple[str, ...] = (
    "sleepHours",
    "sleepQuality",
    "activityLevel",
    "checkInMood",
    "checkInNotes",
    "recentExerciseMinutes",
    "stepsPerDay",
)

_SCALAR_VALUE = r'("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?|(?i:true|false|null))'
_STRING_ITEM = re.compile(r'"((?:[^"\\]|\\.)*)"')
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_MOOD_NUMBER = re.compile(r"^(-?\d+(?:\.\d+)?)\s*(?:/\s*5)?$")


@dataclass(frozen=True)
class BraceSpan:
    """Location of a brace block. ``end`` is exclusive, None if unterminated."""

    start: int
    end: Optional[int]

    @property
    def closed(self) -> bool:
        return self.end is not None

    def slice(self, text: str) -> str:
        return text[self.start:self.end] if self.end is not None else text[self.start:]


@dataclass
class ParsedResponse:
    """
    Tagged parse result.

    Attributes:
        outcome: STRICT, REPAIRED or FAILED
        result: Extracted fields (None where the model gave nothing)
        notes: What was repaired or why parsing failed
    """

    outcome: ParseOutcome
    result: AnalysisResult
    notes: list[str] = field(default_factory=list)

    @property
    def is_degraded(self) -> bool:
        return self.outcome != ParseOutcome.STRICT


def find_brace_block(text: str, start: int = 0) -> Optional[BraceSpan]:
    """Find the first balanced ``{...}`` block at or after ``start``."""
    open_at = text.find("{", start)
    if open_at < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(open_at, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return BraceSpan(open_at, index + 1)

    return BraceSpan(open_at, None)


# =============================================================================
# VALUE NORMALIZATION
# =============================================================================

def normalize_mood(value: Any) -> Optional[float]:
    """
    Map a mood value onto the 1-5 scale.

    Numbers and numeric strings are clamped to 1-5, known words are
    looked up, unknown words are neutral (3). None and empty strings
    stay None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _clamp_mood(float(value))
    if isinstance(value, str):
        text = value.strip().lower()
        if not text or text == "null":
            return None
        number = _MOOD_NUMBER.match(text)
        if number:
            return _clamp_mood(float(number.group(1)))
        return MOOD_VOCABULARY.get(text, NEUTRAL_MOOD)
    return NEUTRAL_MOOD


def _clamp_mood(score: float) -> Optional[float]:
    if math.isnan(score):
        return None
    return min(max(score, 1.0), 5.0)


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes"):
            return True
        if lowered in ("false", "no"):
            return False
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    return None


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def _as_confidence(value: Any) -> Optional[float]:
    number = _as_number(value)
    if number is None:
        return None
    # Some models answer in percent
    if 1.0 < number <= 100.0:
        number /= 100.0
    return min(max(number, 0.0), 1.0)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text if text and text.lower() != "null" else None


def _as_text_list(value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return None


def _as_enum(enum_cls: Any, value: Any) -> Optional[Any]:
    text = _as_text(value)
    if text is None:
        return None
    try:
        return enum_cls(text.lower())
    except ValueError:
        return None


# =============================================================================
# PARSER
# =============================================================================

class ResponseParser:
    """
    Parses model output into a ParsedResponse.

    Usage:
        parsed = ResponseParser().parse(response.content)
        if parsed.outcome == ParseOutcome.FAILED:
            ...
    """

    def parse(self, text: Optional[str]) -> ParsedResponse:
        try:
            parsed = self._parse(text or "")
        except Exception as e:
            # Last line of defence: a parser bug must not fail the pipeline
            logger.error("Response parser crashed, using defaults", error=str(e))
            parsed = self._failed(f"parser error: {type(e).__name__}")
        return parsed

    def _parse(self, text: str) -> ParsedResponse:
        span = find_brace_block(text)

        if span is not None and span.closed:
            block = span.slice(text)
            data = _load_object(block)
            if data is not None:
                notes: list[str] = []
                result = self._from_mapping(data, notes)
                outcome = ParseOutcome.REPAIRED if notes else ParseOutcome.STRICT
                return ParsedResponse(outcome, result, notes)

            data = _load_object(_TRAILING_COMMA.sub(r"\1", block))
            if data is not None:
                notes = ["removed trailing commas"]
                return ParsedResponse(ParseOutcome.REPAIRED, self._from_mapping(data, notes), notes)

        segment = span.slice(text) if span is not None else text
        notes = ["structured parse failed, extracted fields by pattern"]
        result, found = self._extract(segment, notes)
        if found:
            return ParsedResponse(ParseOutcome.REPAIRED, result, notes)

        reason = "no brace block" if span is None else "no extractable fields"
        return self._failed(reason)

    def _failed(self, reason: str) -> ParsedResponse:
        result = AnalysisResult(
            status=MentalHealthStatus.STABLE,
            confidence_score=DEFAULT_FAILED_CONFIDENCE,
            reasoning=ReasoningData(additional_factors={"parseError": reason}),
            needs_support=False,
        )
        return ParsedResponse(ParseOutcome.FAILED, result, [reason])

    # -------------------------------------------------------------------------
    # Structured path
    # -------------------------------------------------------------------------

    def _from_mapping(self, data: dict, notes: list[str]) -> AnalysisResult:
        reasoning_raw = data.get(REASONING_KEY)
        reasoning_raw = reasoning_raw if isinstance(reasoning_raw, dict) else {}

        top = dict(data)
        for key in PROMOTABLE_KEYS:
            if key not in top and key in reasoning_raw:
                top[key] = reasoning_raw[key]
                notes.append(f"promoted {key} from {REASONING_KEY}")

        factors = reasoning_raw.get(FACTORS_KEY)
        return self._build(
            top=top,
            reasoning=reasoning_raw,
            changes=_as_text_list(reasoning_raw.get("significantChanges")),
            tips=_as_text_list(top.get("supportTips")),
            factors=factors if isinstance(factors, dict) else {},
            notes=notes,
        )

    # -------------------------------------------------------------------------
    # Pattern path
    # -------------------------------------------------------------------------

    def _extract(self, segment: str, notes: list[str]) -> tuple[AnalysisResult, bool]:
        nested_span = _find_named_object(segment, REASONING_KEY)
        if nested_span is not None:
            nested = nested_span.slice(segment)
            top_text = segment[:nested_span.start] + (
                segment[nested_span.end:] if nested_span.end is not None else ""
            )
        else:
            nested = ""
            top_text = segment

        top = _extract_scalars(top_text, TOP_SCALAR_KEYS)
        reasoning = _extract_scalars(nested, REASONING_SCALAR_KEYS)

        for key in TOP_SCALAR_KEYS:
            if key not in top:
                value = _extract_scalar(nested, key)
                if value is not _MISSING:
                    top[key] = value
                    notes.append(f"promoted {key} from {REASONING_KEY}")

        tips = _extract_string_array(top_text, "supportTips")
        if tips is None:
            tips = _extract_string_array(nested, "supportTips")
        changes = _extract_string_array(nested, "significantChanges")

        factors: dict = {}
        factors_span = _find_named_object(nested, FACTORS_KEY)
        if factors_span is not None and factors_span.closed:
            factors = _load_object(factors_span.slice(nested)) or {}

        found = bool(top or reasoning or tips or changes or factors)
        result = self._build(
            top=top,
            reasoning=reasoning,
            changes=changes,
            tips=tips,
            factors=factors,
            notes=notes,
        )
        return result, found

    # -------------------------------------------------------------------------
    # Shared
    # -------------------------------------------------------------------------

    def _build(
        self,
        *,
        top: dict,
        reasoning: dict,
        changes: Optional[list[str]],
        tips: Optional[list[str]],
        factors: dict,
        notes: list[str],
    ) -> AnalysisResult:
        status = _as_enum(MentalHealthStatus, top.get("mentalHealthStatus"))
        if status is None and _as_text(top.get("mentalHealthStatus")) is not None:
            notes.append("ignored unknown mentalHealthStatus")

        return AnalysisResult(
            status=status,
            confidence_score=_as_confidence(top.get("confidenceScore")),
            needs_support=_as_bool(top.get("needsSupport")),
            support_reason=_as_text(top.get("supportReason")),
            support_tips=tips,
            reasoning=ReasoningData(
                sleep_hours=_as_number(reasoning.get("sleepHours")),
                sleep_quality=_as_enum(SleepQuality, reasoning.get("sleepQuality")),
                activity_level=_as_enum(ActivityLevel, reasoning.get("activityLevel")),
                check_in_mood=normalize_mood(reasoning.get("checkInMood")),
                check_in_notes=_as_text(reasoning.get("checkInNotes")),
                recent_exercise_minutes=_as_number(reasoning.get("recentExerciseMinutes")),
                steps_per_day=_as_number(reasoning.get("stepsPerDay")),
                significant_changes=changes,
                additional_factors=dict(factors),
            ),
        )


_MISSING = object()


def _load_object(block: str) -> Optional[dict]:
    try:
        data = json.loads(block)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _key_pattern(key: str) -> str:
    return rf"""["']?{re.escape(key)}["']?\s*:\s*"""


def _find_named_object(text: str, key: str) -> Optional[BraceSpan]:
    """Span of the object value of ``key``, if the value is an object."""
    match = re.search(_key_pattern(key) + r"(?=\{)", text)
    if match is None:
        return None
    return find_brace_block(text, match.end())


def _extract_scalar(text: str, key: str) -> Any:
    if not text:
        return _MISSING
    match = re.search(_key_pattern(key) + _SCALAR_VALUE, text)
    if match is None:
        return _MISSING

    raw = match.group(1)
    lowered = raw.lower()
    if lowered == "null":
        return None
    if lowered in ("true", "false"):
        return lowered == "true"
    if raw.startswith('"'):
        try:
            return json.loads(raw)
        except ValueError:
            return raw[1:-1]
    return float(raw)


def _extract_scalars(text: str, keys: tuple[str, ...]) -> dict:
    found = {}
    for key in keys:
        value = _extract_scalar(text, key)
        if value is not _MISSING:
            found[key] = value
    return found


def _extract_string_array(text: str, key: str) -> Optional[list[str]]:
    if not text:
        return None
    match = re.search(_key_pattern(key) + r"\[(.*?)\]", text, re.DOTALL)
    if match is None:
        return None
    items = []
    for item in _STRING_ITEM.findall(match.group(1)):
        try:
            items.append(json.loads(f'"{item}"'))
        except ValueError:
            items.append(item)
    return [item.strip() for item in items if item.strip()]

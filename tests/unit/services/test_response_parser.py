"""
Unit Tests for Response Parser

Model output is untrusted text. These tests cover the strict path, the
repair paths and the fixed defaults of a failed parse.
"""

import pytest

from mindmate.domain.enums import ActivityLevel, MentalHealthStatus, ParseOutcome, SleepQuality
from mindmate.services.analysis import response_parser
from mindmate.services.analysis.response_parser import (
    BraceSpan,
    ResponseParser,
    find_brace_block,
    normalize_mood,
)


@pytest.fixture
def parser() -> ResponseParser:
    return ResponseParser()


class TestStrictParsing:
    """Well-formed JSON responses."""

    def test_parses_object_surrounded_by_prose(self, parser: ResponseParser) -> None:
        """Test parsing an object surrounded by prose."""
        text = (
            "Here is my analysis:\n"
            '{"mentalHealthStatus": "stable", "confidenceScore": 0.82, '
            '"reasoningData": {"sleepHours": 7.5, "sleepQuality": "good", '
            '"activityLevel": "moderate", "checkInMood": 4, '
            '"significantChanges": ["Sleep improved"]}, "needsSupport": false}\n'
            "Let me know if you need anything else."
        )

        parsed = parser.parse(text)

        assert parsed.outcome == ParseOutcome.STRICT
        assert parsed.is_degraded is False
        assert parsed.result.status == MentalHealthStatus.STABLE
        assert parsed.result.confidence_score == pytest.approx(0.82)
        assert parsed.result.needs_support is False
        assert parsed.result.reasoning.sleep_hours == 7.5
        assert parsed.result.reasoning.sleep_quality == SleepQuality.GOOD
        assert parsed.result.reasoning.activity_level == ActivityLevel.MODERATE
        assert parsed.result.reasoning.check_in_mood == 4.0
        assert parsed.result.reasoning.significant_changes == ["Sleep improved"]

    def test_omitted_fields_stay_undefined(self, parser: ResponseParser) -> None:
        """Test that omitted fields stay undefined."""
        parsed = parser.parse('{"mentalHealthStatus": "declining"}')

        assert parsed.outcome == ParseOutcome.STRICT
        assert parsed.result.confidence_score is None
        assert parsed.result.needs_support is None
        assert parsed.result.reasoning.sleep_hours is None

    def test_percent_confidence_is_scaled(self, parser: ResponseParser) -> None:
        """Test that percent confidence is scaled."""
        parsed = parser.parse('{"mentalHealthStatus": "stable", "confidenceScore": 85}')

        assert parsed.result.confidence_score == pytest.approx(0.85)

    def test_unknown_status_is_ignored(self, parser: ResponseParser) -> None:
        """Test that an unknown status is ignored."""
        parsed = parser.parse('{"mentalHealthStatus": "thriving", "needsSupport": false}')

        assert parsed.result.status is None
        assert parsed.outcome == ParseOutcome.REPAIRED
        assert "ignored unknown mentalHealthStatus" in parsed.notes

    def test_support_fields_are_read(self, parser: ResponseParser) -> None:
        """Test that support fields are read."""
        parsed = parser.parse(
            '{"mentalHealthStatus": "declining", "needsSupport": true, '
            '"supportReason": "Mood is dropping", "supportTips": ["Call a friend", "Go outside"]}'
        )

        assert parsed.result.needs_support is True
        assert parsed.result.support_reason == "Mood is dropping"
        assert parsed.result.support_tips == ["Call a friend", "Go outside"]


class TestRepairedParsing:
    """Responses that need repair still yield their fields."""

    def test_trailing_commas_are_removed(self, parser: ResponseParser) -> None:
        """Test that trailing commas are removed."""
        parsed = parser.parse(
            '{"mentalHealthStatus": "declining", "supportTips": ["Rest",], "needsSupport": true,}'
        )

        assert parsed.outcome == ParseOutcome.REPAIRED
        assert parsed.notes == ["removed trailing commas"]
        assert parsed.result.status == MentalHealthStatus.DECLINING
        assert parsed.result.needs_support is True
        assert parsed.result.support_tips == ["Rest"]

    def test_unparsable_block_falls_back_to_pattern_extraction(self, parser: ResponseParser) -> None:
        """Test fallback to pattern extraction."""
        text = '{"mentalHealthStatus": "declining" "needsSupport": true, "confidenceScore": 0.8}'

        parsed = parser.parse(text)

        assert parsed.outcome == ParseOutcome.REPAIRED
        assert parsed.result.status == MentalHealthStatus.DECLINING
        assert parsed.result.needs_support is True
        assert parsed.result.confidence_score == pytest.approx(0.8)
        assert "structured parse failed, extracted fields by pattern" in parsed.notes

    def test_unterminated_block_is_extracted(self, parser: ResponseParser) -> None:
        """Test that an unterminated block is extracted."""
        parsed = parser.parse('Result: {"mentalHealthStatus": "critical", "needsSupport": true')

        assert parsed.outcome == ParseOutcome.REPAIRED
        assert parsed.result.status == MentalHealthStatus.CRITICAL
        assert parsed.result.needs_support is True

    def test_needs_support_is_promoted_from_reasoning(self, parser: ResponseParser) -> None:
        """Test that needsSupport is promoted from reasoningData."""
        parsed = parser.parse(
            '{"mentalHealthStatus": "declining", "reasoningData": {"needsSupport": true, "sleepHours": 5}}'
        )

        assert parsed.outcome == ParseOutcome.REPAIRED
        assert parsed.result.needs_support is True
        assert parsed.result.reasoning.sleep_hours == 5.0
        assert "promoted needsSupport from reasoningData" in parsed.notes

    def test_top_level_value_wins_over_nested(self, parser: ResponseParser) -> None:
        """Test that a top-level value wins over a nested one."""
        parsed = parser.parse(
            '{"needsSupport": false, "reasoningData": {"needsSupport": true}}'
        )

        assert parsed.result.needs_support is False
        assert parsed.outcome == ParseOutcome.STRICT

    def test_pattern_path_promotes_nested_fields(self, parser: ResponseParser) -> None:
        """Test that the pattern path promotes nested fields."""
        text = (
            '{"mentalHealthStatus": "declining", "reasoningData": {"sleepHours": 5 '
            '"needsSupport": true, "checkInMood": "poor"}, "confidenceScore": 0.6}'
        )

        parsed = parser.parse(text)

        assert parsed.outcome == ParseOutcome.REPAIRED
        assert parsed.result.status == MentalHealthStatus.DECLINING
        assert parsed.result.needs_support is True
        assert parsed.result.confidence_score == pytest.approx(0.6)
        assert parsed.result.reasoning.sleep_hours == 5.0
        assert parsed.result.reasoning.check_in_mood == 2.0


class TestFailedParsing:
    """Nothing usable in the text yields fixed defaults, never an exception."""

    @pytest.mark.parametrize(
        ("text", "reason"),
        [
            ("I am unable to help with that.", "no brace block"),
            ("", "no brace block"),
            (None, "no brace block"),
            ("{ hello there }", "no extractable fields"),
        ],
    )
    def test_defaults(self, parser: ResponseParser, text, reason: str) -> None:
        """Test fixed defaults when nothing is usable."""
        parsed = parser.parse(text)

        assert parsed.outcome == ParseOutcome.FAILED
        assert parsed.result.status == MentalHealthStatus.STABLE
        assert parsed.result.confidence_score == 0.5
        assert parsed.result.needs_support is False
        assert parsed.result.reasoning.additional_factors == {"parseError": reason}

    def test_json_array_is_not_an_object(self, parser: ResponseParser) -> None:
        """Test that a JSON array is not an object."""
        parsed = parser.parse('["stable", 0.9]')

        assert parsed.outcome == ParseOutcome.FAILED


class TestMoodNormalization:
    """Mood values always land on the 1-5 scale."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("very good", 5.0),
            ("fair", 3.0),
            ("Poor", 2.0),
            ("garbage-label", 3.0),
            ("4", 4.0),
            ("4/5", 4.0),
            (4, 4.0),
            (2.5, 2.5),
            (9, 5.0),
            (0, 1.0),
            (None, None),
            ("", None),
            ("null", None),
        ],
    )
    def test_normalize_mood(self, value, expected) -> None:
        """Test mood normalization."""
        assert normalize_mood(value) == expected


class TestBraceScanner:
    """Brace matching respects JSON strings."""

    def test_no_brace(self) -> None:
        """Test text without a brace."""
        assert find_brace_block("plain text") is None

    def test_balanced_block(self) -> None:
        """Test a balanced block."""
        text = 'before {"a": {"b": 1}} after'

        span = find_brace_block(text)

        assert span == BraceSpan(7, 22)
        assert span.slice(text) == '{"a": {"b": 1}}'

    def test_braces_inside_strings_are_ignored(self) -> None:
        """Test that braces inside strings are ignored."""
        text = '{"note": "a } and a \\" quote {"} tail'

        span = find_brace_block(text)

        assert span.closed
        assert span.slice(text) == '{"note": "a } and a \\" quote {"}'

    def test_unterminated_block(self) -> None:
        """Test an unterminated block."""
        span = find_brace_block('x {"a": {"b": 1}')

        assert span == BraceSpan(2, None)
        assert span.closed is False


class RecordingLogger:
    """Collects (level, event) pairs."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def warning(self, event: str, **kwargs) -> None:
        self.events.append(("warning", event))

    def error(self, event: str, **kwargs) -> None:
        self.events.append(("error", event))


class TestLogging:
    """Degraded parses are reported by the caller, not the parser."""

    def test_degraded_parse_logs_nothing(self, parser: ResponseParser, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that repaired and failed parses do not emit their own warning."""
        recorder = RecordingLogger()
        monkeypatch.setattr(response_parser, "logger", recorder)

        assert parser.parse('{"mentalHealthStatus": "declining",}').outcome == ParseOutcome.REPAIRED
        assert parser.parse("no json here").outcome == ParseOutcome.FAILED

        assert recorder.events == []

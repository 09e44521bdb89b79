"""
Integration Tests for the Analysis Pipeline

Full runs from stored signals to stored assessments, with a fake model
endpoint and a recording notifier in place of the real ones.
"""

import json
from datetime import timedelta
from typing import Optional
from uuid import uuid4

import pytest

from mindmate.config.settings import AnalysisSettings, EscalationSettings
from mindmate.domain.enums import (
    AnalysisType,
    MentalHealthStatus,
    ParseOutcome,
    SleepQuality,
    SupportRequestStatus,
)
from mindmate.domain.errors import NotFoundError
from mindmate.infrastructure.database import DatabaseManager
from mindmate.infrastructure.llm import TransportError
from mindmate.services.analysis.analysis_pipeline import (
    BASELINE_ESTABLISHED_NOTE,
    LIMITED_DATA_NOTE,
    AnalysisPipeline,
)
from mindmate.services.analysis.heuristic_preprocessor import HeuristicPreprocessor
from mindmate.services.analysis.prompt_formatter import PromptFormatter
from mindmate.services.analysis.response_merger import ResponseMerger
from mindmate.services.analysis.response_parser import ResponseParser
from mindmate.services.analysis.signal_collector import SignalCollector, first_sample_day
from mindmate.services.support import EscalationEngine, SupportNetwork
from tests.conftest import (
    NOW,
    FakeLLMProvider,
    FrozenClock,
    RecordingNotifier,
    add_check_in,
    add_sample,
    create_user,
    make_buddies,
)

DECLINING_RESPONSE = json.dumps({
    "mentalHealthStatus": "declining",
    "confidenceScore": 0.8,
    "reasoningData": {
        "sleepHours": 5.2,
        "sleepQuality": "poor",
        "checkInMood": 2,
        "significantChanges": ["Sleep decreased"],
    },
    "needsSupport": True,
    "supportReason": "Sleep and mood are both down",
    "supportTips": ["Reach out to a friend", "Keep a regular bedtime"],
})

STABLE_RESPONSE = json.dumps({
    "mentalHealthStatus": "stable",
    "confidenceScore": 0.7,
    "reasoningData": {"sleepHours": 7.4, "sleepQuality": "good", "checkInMood": 4},
    "needsSupport": False,
})


class FlakyLLMProvider(FakeLLMProvider):
    """Fails on the listed call numbers (1-based)."""

    def __init__(self, content: str, fail_on: set[int], error: Optional[Exception] = None) -> None:
        super().__init__(content)
        self.fail_on = fail_on
        self.failure = error or TransportError("endpoint down", provider="fake")
        self.calls = 0

    async def generate(self, prompt):
        self.calls += 1
        if self.calls in self.fail_on:
            self.prompts.append(prompt)
            raise self.failure
        return await super().generate(prompt)


def build_pipeline(
    db: DatabaseManager,
    llm: FakeLLMProvider,
    notifier: RecordingNotifier,
    clock: FrozenClock,
    settings: Optional[AnalysisSettings] = None,
) -> AnalysisPipeline:
    engine = EscalationEngine(
        db, SupportNetwork(db), notifier, EscalationSettings(scheduler_enabled=False), clock=clock
    )
    return AnalysisPipeline(
        db=db,
        collector=SignalCollector(db, clock=clock),
        preprocessor=HeuristicPreprocessor(),
        formatter=PromptFormatter(),
        llm=llm,
        parser=ResponseParser(),
        merger=ResponseMerger(),
        escalation=engine,
        settings=settings or AnalysisSettings(),
        clock=clock,
    )


async def seed_recent_days(db: DatabaseManager, user_id, hours: float = 5.0) -> None:
    for days_ago in range(3):
        await add_sample(
            db,
            user_id,
            NOW.date() - timedelta(days=days_ago),
            sleep_hours=hours,
            quality=SleepQuality.POOR,
            steps=3000,
        )
    await add_check_in(db, user_id, NOW - timedelta(hours=2), 2, notes="Feeling overwhelmed")


class TestAnalyzeRecent:

    async def test_declining_user_with_two_buddies(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test that a declining user with two buddies opens a buddy request."""
        user = await create_user(db, "river")
        buddy_a = await create_user(db, "sky")
        buddy_b = await create_user(db, "sol")
        await make_buddies(db, user, buddy_a, buddy_b)
        await seed_recent_days(db, user)
        llm = FakeLLMProvider(DECLINING_RESPONSE)
        pipeline = build_pipeline(db, llm, notifier, clock)

        assessment = await pipeline.analyze_recent(user)

        assert assessment.status == MentalHealthStatus.DECLINING
        assert assessment.needs_support is True
        assert assessment.analysis_type == AnalysisType.RECENT
        assert assessment.parse_outcome == ParseOutcome.STRICT
        assert assessment.support_request_status == SupportRequestStatus.BUDDY_REQUESTED
        assert assessment.support_tips == ["Reach out to a friend", "Keep a regular bedtime"]
        assert assessment.reasoning.additional_factors["comparedToBaseline"] is False
        assert assessment.baseline_comparison is None
        assert sorted(notifier.recipients()) == sorted([buddy_a, buddy_b])

        prompt = llm.prompts[0]
        assert prompt.analysis_type == AnalysisType.RECENT
        assert "Feeling overwhelmed" in prompt.text

    async def test_stable_user_opens_no_request(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test that a stable answer opens no support request."""
        user = await create_user(db, "wren")
        buddy = await create_user(db, "yew")
        await make_buddies(db, user, buddy)
        await seed_recent_days(db, user, hours=7.5)
        pipeline = build_pipeline(db, FakeLLMProvider(STABLE_RESPONSE), notifier, clock)

        assessment = await pipeline.analyze_recent(user)

        assert assessment.status == MentalHealthStatus.STABLE
        assert assessment.support_request_status == SupportRequestStatus.NONE
        assert notifier.attempts == []

    async def test_garbage_response_falls_back_to_heuristic(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test that an unusable answer falls back to the heuristic."""
        user = await create_user(db, "ash")
        await add_check_in(db, user, NOW - timedelta(hours=3), 1)
        await add_check_in(db, user, NOW - timedelta(hours=20), 1)
        pipeline = build_pipeline(db, FakeLLMProvider("I cannot answer that."), notifier, clock)

        assessment = await pipeline.analyze_recent(user)

        assert assessment.parse_outcome == ParseOutcome.FAILED
        assert assessment.status == MentalHealthStatus.CRITICAL
        assert assessment.needs_support is True
        assert assessment.support_reason
        # No buddies, no community: the request waits at the community tier
        assert assessment.support_request_status == SupportRequestStatus.COMMUNITY_REQUESTED

    async def test_comparison_against_current_baseline(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test comparison against the current baseline."""
        user = await create_user(db, "elm")
        await seed_recent_days(db, user)
        llm = FakeLLMProvider(STABLE_RESPONSE)
        pipeline = build_pipeline(db, llm, notifier, clock)
        outcome = await pipeline.establish_baseline(user)

        llm.content = DECLINING_RESPONSE
        clock.advance(hours=1)
        assessment = await pipeline.analyze_recent(user)

        assert assessment.baseline_comparison == {
            "baselineId": str(outcome.baseline.id),
            "sleepQualityChange": "Declined compared to baseline",
            "activityChange": "Consistent with baseline",
            "moodChange": "Mood decreased by 50% compared to baseline",
        }
        assert assessment.reasoning.additional_factors["comparedToBaseline"] is True
        assert "BASELINE COMPARISON" in llm.prompts[-1].text

    async def test_transport_error_stores_nothing(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test that a transport error stores no assessment."""
        user = await create_user(db, "oak")
        llm = FakeLLMProvider(error=TransportError("endpoint down", provider="fake"))
        pipeline = build_pipeline(db, llm, notifier, clock)

        with pytest.raises(TransportError):
            await pipeline.analyze_recent(user)

        assert await pipeline.get_latest_assessment(user) is None

    async def test_unknown_user(self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock) -> None:
        """Test that analysing an unknown user raises NotFoundError."""
        llm = FakeLLMProvider(STABLE_RESPONSE)
        pipeline = build_pipeline(db, llm, notifier, clock)

        with pytest.raises(NotFoundError):
            await pipeline.analyze_recent(uuid4())
        assert llm.prompts == []


class TestEstablishBaseline:

    async def test_no_data(self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock) -> None:
        """Test that a baseline without data is stored with a limited-data note."""
        user = await create_user(db, "fern")
        buddy = await create_user(db, "moss")
        await make_buddies(db, user, buddy)
        pipeline = build_pipeline(db, FakeLLMProvider("{}"), notifier, clock)

        outcome = await pipeline.establish_baseline(user)

        assert outcome.baseline.data_points.total_days == 0
        assert outcome.note == LIMITED_DATA_NOTE
        assert outcome.assessment.analysis_type == AnalysisType.BASELINE
        assert outcome.assessment.needs_support is False
        assert outcome.assessment.support_request_status == SupportRequestStatus.NONE
        assert notifier.attempts == []

    async def test_never_requests_support(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test that a baseline run never requests support."""
        user = await create_user(db, "pine")
        buddy = await create_user(db, "reed")
        await make_buddies(db, user, buddy)
        critical = json.dumps({
            "mentalHealthStatus": "critical",
            "needsSupport": True,
            "supportReason": "Very low mood",
        })
        pipeline = build_pipeline(db, FakeLLMProvider(critical), notifier, clock)

        outcome = await pipeline.establish_baseline(user)

        assert outcome.assessment.status == MentalHealthStatus.CRITICAL
        assert outcome.assessment.needs_support is False
        assert outcome.assessment.support_reason is None
        assert outcome.assessment.support_tips == []
        assert notifier.attempts == []
        latest = await pipeline.get_latest_assessment(user)
        assert latest.support_request_status == SupportRequestStatus.NONE

    async def test_full_history(self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock) -> None:
        """Test that a baseline covers the whole history."""
        user = await create_user(db, "sage")
        for days_ago in range(10):
            await add_sample(
                db,
                user,
                NOW.date() - timedelta(days=days_ago * 10),
                sleep_hours=7,
                steps=6000,
                exercise_minutes=30,
            )
        llm = FakeLLMProvider(STABLE_RESPONSE)
        pipeline = build_pipeline(db, llm, notifier, clock)

        outcome = await pipeline.establish_baseline(user)

        assert outcome.baseline.data_points.total_days == 10
        assert outcome.baseline.data_points.days_with_sleep_data == 10
        assert outcome.baseline.exercise_minutes_per_week == 210.0
        assert outcome.note == BASELINE_ESTABLISHED_NOTE
        assert outcome.baseline.metrics.sleep_quality == SleepQuality.GOOD
        assert llm.prompts[0].analysis_type == AnalysisType.BASELINE
        assert (await pipeline.get_latest_baseline(user)).id == outcome.baseline.id

        data = await pipeline.get_baseline_analyzed_data(user)
        assert data["analysisType"] == "baseline"
        assert data["period"]["totalDays"] == 10
        assert data["healthData"][0]["date"] == NOW.date().isoformat()

    async def test_history_is_kept(self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock) -> None:
        """Test that earlier baselines are kept."""
        user = await create_user(db, "teak")
        pipeline = build_pipeline(db, FakeLLMProvider(STABLE_RESPONSE), notifier, clock)

        first = await pipeline.establish_baseline(user)
        clock.advance(days=1)
        second = await pipeline.establish_baseline(user)

        history = await pipeline.get_baseline_history(user)
        assert [b.id for b in history] == [second.baseline.id, first.baseline.id]


class TestDailySweep:

    async def test_one_failure_does_not_stop_the_sweep(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test that one failing user does not stop the sweep."""
        for name in ("ada", "bob", "cid"):
            await create_user(db, name)
        llm = FlakyLLMProvider(STABLE_RESPONSE, fail_on={1})
        pipeline = build_pipeline(db, llm, notifier, clock)

        report = await pipeline.run_daily_analysis()

        assert report.analyzed == 2
        assert report.failed == 1
        assert report.support_requested == 0
        assert llm.calls == 3

    async def test_unexpected_errors_are_isolated_too(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test that unexpected errors are isolated per user too."""
        for name in ("dan", "eve"):
            await create_user(db, name)
        llm = FlakyLLMProvider(DECLINING_RESPONSE, fail_on={2}, error=RuntimeError("boom"))
        pipeline = build_pipeline(db, llm, notifier, clock)

        report = await pipeline.run_daily_analysis()

        assert report.to_dict() == {"analyzed": 1, "failed": 1, "supportRequested": 1}


class TestQueries:

    async def test_stats(self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock) -> None:
        """Test assessment statistics over a period."""
        user = await create_user(db, "gil")
        llm = FakeLLMProvider(STABLE_RESPONSE)
        pipeline = build_pipeline(db, llm, notifier, clock)
        await pipeline.establish_baseline(user)
        clock.advance(hours=1)
        await pipeline.analyze_recent(user)
        llm.content = DECLINING_RESPONSE
        clock.advance(hours=1)
        await pipeline.analyze_recent(user)

        stats = await pipeline.get_assessment_stats(user, days=30)

        assert stats["totalAssessments"] == 3
        assert stats["statusDistribution"] == {"stable": 2, "declining": 1, "critical": 0}
        assert stats["analysisTypeDistribution"] == {"baseline": 1, "recent": 2}
        assert stats["averageMood"] == 3.3
        assert [t["status"] for t in stats["trends"]] == ["stable", "stable", "declining"]
        assert stats["baseline"]["sleepQuality"] == "good"
        assert stats["period"]["days"] == 30

    async def test_empty_stats(self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock) -> None:
        """Test statistics for a user without assessments."""
        user = await create_user(db, "hu")
        pipeline = build_pipeline(db, FakeLLMProvider(), notifier, clock)

        stats = await pipeline.get_assessment_stats(user)

        assert stats["totalAssessments"] == 0
        assert stats["averageConfidence"] == 0
        assert stats["baseline"] is None
        assert stats["trends"] == []

    async def test_history_filters_by_type(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test filtering history by analysis type."""
        user = await create_user(db, "io")
        pipeline = build_pipeline(db, FakeLLMProvider(STABLE_RESPONSE), notifier, clock)
        await pipeline.establish_baseline(user)
        clock.advance(minutes=5)
        recent = await pipeline.analyze_recent(user)

        history = await pipeline.get_assessment_history(user, analysis_type=AnalysisType.RECENT)
        everything = await pipeline.get_assessment_history(user)

        assert [a.id for a in history] == [recent.id]
        assert len(everything) == 2
        assert everything[0].id == recent.id

    async def test_recent_analyzed_data(
        self, db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock
    ) -> None:
        """Test the analyzed data behind the latest recent assessment."""
        user = await create_user(db, "jun")
        pipeline = build_pipeline(db, FakeLLMProvider(STABLE_RESPONSE), notifier, clock)

        assert await pipeline.get_recent_analyzed_data(user) is None

        await seed_recent_days(db, user, hours=7)
        await pipeline.analyze_recent(user)
        data = await pipeline.get_recent_analyzed_data(user)

        assert data["analysisType"] == "recent"
        assert len(data["healthData"]) == 3
        assert data["healthData"][0]["date"] == NOW.date().isoformat()
        assert data["checkIns"][0]["notes"] == "Feeling overwhelmed"


class TestSignalCollector:

    async def test_recent_window_excludes_day_before_start(self, db: DatabaseManager, clock: FrozenClock) -> None:
        """Test that the day before now - N days is not collected."""
        user = await create_user(db, "wren")
        await add_sample(db, user, NOW.date() - timedelta(days=3), sleep_hours=2.0)
        await add_sample(db, user, NOW.date() - timedelta(days=2), sleep_hours=7.0)
        await add_sample(db, user, NOW.date(), sleep_hours=7.0)

        window = await SignalCollector(db, clock=clock).collect(user, 3, AnalysisType.RECENT)

        assert [s.day for s in window.samples] == [NOW.date() - timedelta(days=2), NOW.date()]

    async def test_midnight_start_keeps_its_day(self, db: DatabaseManager) -> None:
        """Test that a window starting exactly at midnight includes that day."""
        user = await create_user(db, "ash")
        midnight = FrozenClock(NOW.replace(hour=0))
        await add_sample(db, user, NOW.date() - timedelta(days=3), sleep_hours=6.0)

        window = await SignalCollector(db, clock=midnight).collect(user, 3, AnalysisType.RECENT)

        assert [s.day for s in window.samples] == [NOW.date() - timedelta(days=3)]

    def test_first_sample_day(self) -> None:
        """Test rounding of the window start to a whole day."""
        assert first_sample_day(NOW - timedelta(days=3)) == NOW.date() - timedelta(days=2)
        assert first_sample_day(NOW.replace(hour=0)) == NOW.date()

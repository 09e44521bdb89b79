"""
Integration Tests for the Escalation Engine

Runs the tiered support state machine against an in-memory database
with a frozen clock, so timers fire only when the test advances time.
"""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest

from mindmate.config.settings import EscalationSettings
from mindmate.domain.enums import (
    AnalysisType,
    MentalHealthStatus,
    NotificationType,
    SupportRequestStatus,
    SupportTier,
)
from mindmate.domain.errors import NotFoundError
from mindmate.domain.models import Assessment
from mindmate.infrastructure.database import DatabaseManager
from mindmate.infrastructure.database.repositories import AssessmentRepository
from mindmate.services.support import EscalationEngine, SupportNetwork, SupportStatisticsService
from tests.conftest import (
    NOW,
    FrozenClock,
    RecordingNotifier,
    create_user,
    join_community,
    make_buddies,
)

SETTINGS = EscalationSettings(
    buddy_timeout_minutes=120,
    community_timeout_minutes=240,
    global_timeout_minutes=480,
    scheduler_enabled=False,
)


async def add_assessment(
    db: DatabaseManager,
    user_id: UUID,
    analysis_type: AnalysisType = AnalysisType.RECENT,
) -> UUID:
    assessment = Assessment(
        user_id=user_id,
        status=MentalHealthStatus.DECLINING,
        confidence_score=0.8,
        analysis_type=analysis_type,
        needs_support=True,
        support_reason="Low mood for several days",
        timestamp=NOW,
    )
    async with db.session() as session:
        await AssessmentRepository(session).add(assessment)
    return assessment.id


async def load(db: DatabaseManager, assessment_id: UUID) -> Assessment:
    async with db.session() as session:
        return await AssessmentRepository(session).get(assessment_id)


@pytest.fixture
def engine(db: DatabaseManager, notifier: RecordingNotifier, clock: FrozenClock) -> EscalationEngine:
    return EscalationEngine(db, SupportNetwork(db), notifier, SETTINGS, clock=clock)


class TestInitiation:
    """Opening a support request."""

    async def test_buddies_are_notified_first(
        self, db: DatabaseManager, engine: EscalationEngine, notifier: RecordingNotifier
    ) -> None:
        """Test that buddies are notified first."""
        user = await create_user(db, "alex")
        buddy_a = await create_user(db, "bo")
        buddy_b = await create_user(db, "cy")
        await make_buddies(db, user, buddy_a, buddy_b)
        assessment_id = await add_assessment(db, user)

        status = await engine.initiate_support_request(user, assessment_id)

        assert status == SupportRequestStatus.BUDDY_REQUESTED
        assert sorted(notifier.recipients()) == sorted([buddy_a, buddy_b])
        assert all(n.notification_type == NotificationType.BUDDY_SUPPORT for n in notifier.attempts)

        stored = await load(db, assessment_id)
        assert stored.support_request_status == SupportRequestStatus.BUDDY_REQUESTED
        assert stored.support_request_time == NOW
        assert stored.escalation_due_at == NOW + timedelta(minutes=120)

    async def test_no_buddies_skips_to_community(
        self, db: DatabaseManager, engine: EscalationEngine, notifier: RecordingNotifier
    ) -> None:
        """Test that a user without buddies goes straight to the community tier."""
        user = await create_user(db, "dee")
        neighbour = await create_user(db, "eli")
        community = uuid4()
        await join_community(db, community, user, neighbour)
        assessment_id = await add_assessment(db, user)

        status = await engine.initiate_support_request(user, assessment_id)

        assert status == SupportRequestStatus.COMMUNITY_REQUESTED
        assert notifier.recipients() == [neighbour]
        assert not [n for n in notifier.attempts if n.notification_type == NotificationType.BUDDY_SUPPORT]

        stored = await load(db, assessment_id)
        assert stored.escalation_due_at == NOW + timedelta(minutes=240)

    async def test_empty_community_still_holds_its_timeout(
        self, db: DatabaseManager, engine: EscalationEngine, notifier: RecordingNotifier
    ) -> None:
        """Test that an empty community still waits out its timeout."""
        user = await create_user(db, "fay")
        assessment_id = await add_assessment(db, user)

        status = await engine.initiate_support_request(user, assessment_id)

        assert status == SupportRequestStatus.COMMUNITY_REQUESTED
        assert notifier.attempts == []

    async def test_notifier_failure_does_not_block_others(
        self, db: DatabaseManager, clock: FrozenClock
    ) -> None:
        """Test that one failed notification does not block the others."""
        user = await create_user(db, "gus")
        broken = await create_user(db, "hal")
        healthy = await create_user(db, "ivy")
        await make_buddies(db, user, broken, healthy)
        assessment_id = await add_assessment(db, user)
        notifier = RecordingNotifier(fail_for={broken})
        engine = EscalationEngine(db, SupportNetwork(db), notifier, SETTINGS, clock=clock)

        status = await engine.initiate_support_request(user, assessment_id)

        assert status == SupportRequestStatus.BUDDY_REQUESTED
        assert sorted(notifier.recipients()) == sorted([broken, healthy])

    async def test_second_initiation_is_a_no_op(
        self, db: DatabaseManager, engine: EscalationEngine, notifier: RecordingNotifier
    ) -> None:
        """Test that initiating twice is a no-op."""
        user = await create_user(db, "jo")
        buddy = await create_user(db, "kim")
        await make_buddies(db, user, buddy)
        assessment_id = await add_assessment(db, user)

        await engine.initiate_support_request(user, assessment_id)
        status = await engine.initiate_support_request(user, assessment_id)

        assert status == SupportRequestStatus.BUDDY_REQUESTED
        assert len(notifier.attempts) == 1

    async def test_baseline_assessment_is_never_escalated(
        self, db: DatabaseManager, engine: EscalationEngine, notifier: RecordingNotifier
    ) -> None:
        """Test that baseline assessments are never escalated."""
        user = await create_user(db, "lee")
        buddy = await create_user(db, "max")
        await make_buddies(db, user, buddy)
        assessment_id = await add_assessment(db, user, AnalysisType.BASELINE)

        status = await engine.initiate_support_request(user, assessment_id)

        assert status == SupportRequestStatus.NONE
        assert notifier.attempts == []

    async def test_missing_assessment(self, engine: EscalationEngine) -> None:
        """Test that initiating for an unknown assessment raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await engine.initiate_support_request(uuid4(), uuid4())


class TestTimers:
    """Durable tier timers and the reconciliation pass."""

    async def test_buddy_timeout_escalates_to_community(
        self,
        db: DatabaseManager,
        engine: EscalationEngine,
        notifier: RecordingNotifier,
        clock: FrozenClock,
    ) -> None:
        """Test that an expired buddy timer escalates to the community tier."""
        user = await create_user(db, "ned")
        buddy = await create_user(db, "ola")
        neighbour = await create_user(db, "pat")
        await make_buddies(db, user, buddy)
        await join_community(db, uuid4(), user, neighbour)
        assessment_id = await add_assessment(db, user)
        await engine.initiate_support_request(user, assessment_id)

        clock.advance(minutes=119)
        assert await engine.process_due_escalations() == 0

        clock.advance(minutes=2)
        assert await engine.process_due_escalations() == 1

        stored = await load(db, assessment_id)
        assert stored.support_request_status == SupportRequestStatus.COMMUNITY_REQUESTED
        assert stored.escalation_due_at == clock.now + timedelta(minutes=240)
        assert notifier.recipients() == [buddy, neighbour]

    async def test_timer_is_stale_after_support(
        self,
        db: DatabaseManager,
        engine: EscalationEngine,
        notifier: RecordingNotifier,
        clock: FrozenClock,
    ) -> None:
        """Test that a timer firing after support was provided does nothing."""
        user = await create_user(db, "quin")
        buddy = await create_user(db, "rae")
        await make_buddies(db, user, buddy)
        assessment_id = await add_assessment(db, user)
        await engine.initiate_support_request(user, assessment_id)
        assert await engine.record_support_provided(assessment_id, buddy)

        clock.advance(hours=5)

        assert await engine.process_due_escalations() == 0
        assert await engine.escalate(assessment_id, SupportTier.BUDDY) is False
        stored = await load(db, assessment_id)
        assert stored.support_request_status == SupportRequestStatus.SUPPORT_PROVIDED
        assert stored.escalation_due_at is None

    async def test_global_timeout_sends_one_reminder(
        self,
        db: DatabaseManager,
        engine: EscalationEngine,
        notifier: RecordingNotifier,
        clock: FrozenClock,
    ) -> None:
        """Test that the global timeout sends exactly one reminder."""
        user = await create_user(db, "sam")
        other = await create_user(db, "tia")
        assessment_id = await add_assessment(db, user)

        # No buddies and no community: community tier, then global
        await engine.initiate_support_request(user, assessment_id)
        clock.advance(minutes=241)
        assert await engine.process_due_escalations() == 1
        assert (await load(db, assessment_id)).support_request_status == SupportRequestStatus.GLOBAL_REQUESTED
        assert notifier.recipients() == [other]

        clock.advance(minutes=481)
        assert await engine.process_due_escalations() == 1
        assert notifier.attempts[-1].title.startswith("Reminder: ")

        stored = await load(db, assessment_id)
        assert stored.support_request_status == SupportRequestStatus.GLOBAL_REQUESTED
        assert stored.escalation_due_at is None

        clock.advance(days=1)
        assert await engine.process_due_escalations() == 0
        assert len(notifier.attempts) == 2

    async def test_schedule_escalation_override(self, db: DatabaseManager, engine: EscalationEngine) -> None:
        """Test that an explicit delay overrides the tier timeout."""
        user = await create_user(db, "uma")
        buddy = await create_user(db, "vic")
        await make_buddies(db, user, buddy)
        assessment_id = await add_assessment(db, user)
        await engine.initiate_support_request(user, assessment_id)

        due = await engine.schedule_escalation(assessment_id, SupportTier.BUDDY, delay=timedelta(minutes=5))

        assert due == NOW + timedelta(minutes=5)
        assert (await load(db, assessment_id)).escalation_due_at == due
        assert await engine.schedule_escalation(assessment_id, SupportTier.GLOBAL) is None


class TestRecordSupportProvided:
    """Crediting a helper."""

    async def test_credits_both_sides_once(
        self, db: DatabaseManager, engine: EscalationEngine, notifier: RecordingNotifier
    ) -> None:
        """Test that helper and requester are each credited once."""
        user = await create_user(db, "wes")
        buddy = await create_user(db, "xan")
        await make_buddies(db, user, buddy)
        assessment_id = await add_assessment(db, user)
        await engine.initiate_support_request(user, assessment_id)

        assert await engine.record_support_provided(assessment_id, buddy) is True
        assert await engine.record_support_provided(assessment_id, buddy) is False

        stored = await load(db, assessment_id)
        assert stored.support_request_status == SupportRequestStatus.SUPPORT_PROVIDED
        assert stored.support_provided_by == buddy
        assert stored.support_provided_time == NOW

        stats = SupportStatisticsService(db, SupportNetwork(db))
        helper_stats = await stats.get_statistics(buddy)
        requester_stats = await stats.get_statistics(user)
        assert helper_stats.provided.total == 1
        assert helper_stats.provided.buddy_tier == 1
        assert helper_stats.received.total == 0
        assert requester_stats.received.total == 1
        assert requester_stats.received.buddy_tier == 1
        assert [e.counterpart_id for e in helper_stats.history] == [user]
        assert [e.counterpart_id for e in requester_stats.history] == [buddy]

        received = notifier.attempts[-1]
        assert received.user_id == user
        assert received.notification_type == NotificationType.SUPPORT_RECEIVED

    async def test_credited_tier_follows_status(
        self, db: DatabaseManager, engine: EscalationEngine, clock: FrozenClock
    ) -> None:
        """Test that the credited tier follows the request status."""
        user = await create_user(db, "yara")
        neighbour = await create_user(db, "zed")
        await join_community(db, uuid4(), user, neighbour)
        assessment_id = await add_assessment(db, user)
        await engine.initiate_support_request(user, assessment_id)

        assert await engine.record_support_provided(assessment_id, neighbour)

        stats = await SupportStatisticsService(db, SupportNetwork(db)).get_statistics(neighbour)
        assert stats.provided.community_tier == 1
        assert stats.provided.buddy_tier == 0

    async def test_missing_assessment(self, db: DatabaseManager, engine: EscalationEngine) -> None:
        """Test that support for an unknown assessment is rejected."""
        helper = await create_user(db, "abe")

        assert await engine.record_support_provided(uuid4(), helper) is False

        stats = await SupportStatisticsService(db, SupportNetwork(db)).get_statistics(helper)
        assert stats.provided.total == 0
        assert stats.history == []

    async def test_no_open_request(self, db: DatabaseManager, engine: EscalationEngine) -> None:
        """Test that support without an open request is rejected."""
        user = await create_user(db, "bea")
        helper = await create_user(db, "cal")
        assessment_id = await add_assessment(db, user)

        assert await engine.record_support_provided(assessment_id, helper) is False

    async def test_cannot_answer_own_request(self, db: DatabaseManager, engine: EscalationEngine) -> None:
        """Test that users cannot answer their own request."""
        user = await create_user(db, "dot")
        buddy = await create_user(db, "ed")
        await make_buddies(db, user, buddy)
        assessment_id = await add_assessment(db, user)
        await engine.initiate_support_request(user, assessment_id)

        assert await engine.record_support_provided(assessment_id, user) is False
        assert (await load(db, assessment_id)).support_request_status == SupportRequestStatus.BUDDY_REQUESTED

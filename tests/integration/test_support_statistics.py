"""Integration tests for support statistics and open-request listing."""

from uuid import uuid4

import pytest

from mindmate.config.settings import EscalationSettings
from mindmate.domain.enums import AnalysisType, MentalHealthStatus, SupportRequestStatus, SupportTier
from mindmate.domain.models import Assessment
from mindmate.infrastructure.database import DatabaseManager
from mindmate.infrastructure.database.repositories import AssessmentRepository
from mindmate.services.support import EscalationEngine, SupportNetwork, SupportStatisticsService
from tests.conftest import NOW, FrozenClock, RecordingNotifier, create_user, join_community, make_buddies


@pytest.fixture
def network(db: DatabaseManager) -> SupportNetwork:
    return SupportNetwork(db)


@pytest.fixture
def service(db: DatabaseManager, network: SupportNetwork) -> SupportStatisticsService:
    return SupportStatisticsService(db, network)


async def open_request(db: DatabaseManager, network: SupportNetwork, clock: FrozenClock, user_id) -> Assessment:
    assessment = Assessment(
        user_id=user_id,
        status=MentalHealthStatus.CRITICAL,
        confidence_score=0.9,
        analysis_type=AnalysisType.RECENT,
        needs_support=True,
        support_reason="Notes mention not coping",
        timestamp=NOW,
    )
    async with db.session() as session:
        await AssessmentRepository(session).add(assessment)

    engine = EscalationEngine(
        db, network, RecordingNotifier(), EscalationSettings(scheduler_enabled=False), clock=clock
    )
    await engine.initiate_support_request(user_id, assessment.id)
    return assessment


class TestGetStatistics:

    async def test_user_without_activity_gets_zeros(self, db: DatabaseManager, service: SupportStatisticsService) -> None:
        """Test that a user with no support activity gets zeros."""
        user = await create_user(db, "new-user")

        stats = await service.get_statistics(user)

        assert stats.provided.total == 0
        assert stats.received.total == 0
        assert stats.history == []
        assert stats.impact_score == 0
        assert stats.to_dict()["supportImpact"] == 0


class TestActiveSupportRequests:

    async def test_empty_eligible_set_returns_nothing(
        self, db: DatabaseManager, service: SupportStatisticsService
    ) -> None:
        """Test that no eligible requesters yields no requests."""
        helper = await create_user(db, "lonely-helper")

        assert await service.get_active_support_requests(SupportTier.BUDDY, helper) == []
        assert await service.get_active_support_requests(SupportTier.COMMUNITY, helper) == []

    async def test_buddy_sees_buddy_request(
        self,
        db: DatabaseManager,
        service: SupportStatisticsService,
        network: SupportNetwork,
        clock: FrozenClock,
    ) -> None:
        """Test that a buddy sees an open buddy request."""
        user = await create_user(db, "asker")
        buddy = await create_user(db, "buddy")
        stranger = await create_user(db, "stranger")
        await make_buddies(db, user, buddy)
        assessment = await open_request(db, network, clock, user)

        requests = await service.get_active_support_requests(SupportTier.BUDDY, buddy)

        assert [r.assessment_id for r in requests] == [assessment.id]
        assert requests[0].username == "asker"
        assert requests[0].status == SupportRequestStatus.BUDDY_REQUESTED
        assert requests[0].support_reason == "Notes mention not coping"
        assert await service.get_active_support_requests(SupportTier.BUDDY, stranger) == []
        assert await service.get_active_support_requests(SupportTier.COMMUNITY, buddy) == []

    async def test_community_member_sees_community_request(
        self,
        db: DatabaseManager,
        service: SupportStatisticsService,
        network: SupportNetwork,
        clock: FrozenClock,
    ) -> None:
        """Test that a community member sees an open community request."""
        user = await create_user(db, "asker")
        member = await create_user(db, "member")
        await join_community(db, uuid4(), user, member)
        assessment = await open_request(db, network, clock, user)

        requests = await service.get_active_support_requests(SupportTier.COMMUNITY, member)

        assert [r.assessment_id for r in requests] == [assessment.id]
        assert await service.get_active_support_requests(SupportTier.COMMUNITY, user) == []

"""
Support Statistics

Read side of peer support: per-user counters, the impact score, and the
list of open requests a helper can answer.
"""

from uuid import UUID

from mindmate.config.logging_config import get_logger
from mindmate.domain.enums import SupportTier
from mindmate.domain.models import SupportRequest, SupportStatistics
from mindmate.infrastructure.database.connection import DatabaseManager
from mindmate.infrastructure.database.repositories import (
    AssessmentRepository,
    SupportStatisticsRepository,
)
from mindmate.services.support.support_network import SupportNetwork

logger = get_logger(__name__)

IMPACT_CAP = 20
PROVIDED_WEIGHT = 0.6
RECEIVED_WEIGHT = 0.4


def calculate_impact_score(provided_total: int, received_total: int) -> int:
    """
    0-100 score. Giving weighs more than receiving; each side saturates
    at 20 events.
    """
    provided = min(provided_total, IMPACT_CAP) / IMPACT_CAP
    received = min(received_total, IMPACT_CAP) / IMPACT_CAP
    return round(100 * (PROVIDED_WEIGHT * provided + RECEIVED_WEIGHT * received))


class SupportStatisticsService:
    """
    Usage:
        service = SupportStatisticsService(db, network)
        stats = await service.get_statistics(user_id)
        requests = await service.get_active_support_requests(SupportTier.BUDDY, helper_id)
    """

    def __init__(self, db: DatabaseManager, network: SupportNetwork, history_limit: int = 20) -> None:
        self._db = db
        self._network = network
        self._history_limit = history_limit

    async def get_statistics(self, user_id: UUID) -> SupportStatistics:
        """Counters, recent history and impact. Zeros for a user with no activity."""
        async with self._db.session() as session:
            repo = SupportStatisticsRepository(session)
            counters = await repo.get_counters(user_id)
            history = await repo.get_history(user_id, limit=self._history_limit)

        if counters is None:
            return SupportStatistics(user_id=user_id, history=history)

        provided, received = counters
        return SupportStatistics(
            user_id=user_id,
            provided=provided,
            received=received,
            history=history,
            impact_score=calculate_impact_score(provided.total, received.total),
        )

    async def get_active_support_requests(
        self,
        tier: SupportTier,
        requesting_user_id: UUID,
        limit: int = 50,
    ) -> list[SupportRequest]:
        """
        Open requests at ``tier`` that ``requesting_user_id`` may answer.

        Returns an empty list without querying assessments when the
        helper has nobody eligible at this tier.
        """
        eligible = await self._network.eligible_requesters(tier, requesting_user_id)
        if not eligible:
            logger.debug("No eligible requesters", tier=tier.value, user_id=str(requesting_user_id))
            return []

        async with self._db.session() as session:
            return await AssessmentRepository(session).get_open_requests(
                eligible, tier.requested_status, limit=limit
            )

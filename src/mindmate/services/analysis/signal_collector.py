"""
Health Signal Collector

Read-only range query over a user's samples and check-ins for one
pipeline run.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Optional
from uuid import UUID

from mindmate.config.logging_config import get_logger
from mindmate.domain.enums import AnalysisType
from mindmate.domain.models import ALL_HISTORY, SignalWindow
from mindmate.infrastructure.database.connection import DatabaseManager
from mindmate.infrastructure.database.repositories import HealthSignalRepository

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1)


def first_sample_day(start: datetime) -> date:
    """First whole day on or after start. Samples are keyed by day at midnight."""
    if start.time() == time.min:
        return start.date()
    return start.date() + timedelta(days=1)


class SignalCollector:
    """
    Collects the signals for an analysis window.

    A window is either a positive day count, covering
    [now - N days, now], or ALL_HISTORY, covering [epoch, now].
    """

    def __init__(
        self,
        db: DatabaseManager,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._db = db
        self._clock = clock

    async def collect(
        self,
        user_id: UUID,
        window_days: Optional[int],
        analysis_type: AnalysisType,
    ) -> SignalWindow:
        """
        Load samples and check-ins in the window, oldest first.

        Raises:
            ValueError: If window_days is not positive
        """
        if window_days is not ALL_HISTORY and window_days <= 0:
            raise ValueError(f"window_days must be positive, got {window_days}")

        end = self._clock()
        start = EPOCH if window_days is ALL_HISTORY else end - timedelta(days=window_days)

        async with self._db.session() as session:
            repo = HealthSignalRepository(session)
            samples = await repo.get_samples(user_id, first_sample_day(start), end.date())
            check_ins = await repo.get_check_ins(user_id, start, end)

        if window_days is ALL_HISTORY:
            observed = [datetime.combine(s.day, datetime.min.time()) for s in samples[:1]]
            observed += [c.timestamp for c in check_ins[:1]]
            start = min(observed) if observed else end

        logger.debug(
            "Signals collected",
            user_id=str(user_id),
            analysis_type=analysis_type.value,
            samples=len(samples),
            check_ins=len(check_ins),
        )

        return SignalWindow(
            user_id=user_id,
            analysis_type=analysis_type,
            start=start,
            end=end,
            samples=samples,
            check_ins=check_ins,
            window_days=window_days,
        )

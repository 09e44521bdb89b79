"""
Support Statistics and Notification Repositories

CONCURRENCY: A provider's flow and a requester's flow may update the
same statistics row at the same time. Counters are therefore changed
with ``UPDATE ... SET col = col + 1`` and never by read-modify-write.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from mindmate.domain.enums import SupportDirection, SupportTier
from mindmate.domain.models import (
    Notification,
    SupportCounters,
    SupportHistoryEntry,
)
from mindmate.infrastructure.database.models.support_model import (
    NotificationModel,
    SupportHistoryModel,
    SupportStatisticsModel,
)
from mindmate.infrastructure.database.repositories.base import BaseRepository


_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# direction -> (column prefix, last-at column)
_DIRECTION_COLUMNS = {
    SupportDirection.PROVIDED: ("provided", "last_provided_at"),
    SupportDirection.RECEIVED: ("received", "last_received_at"),
}


class SupportStatisticsRepository(BaseRepository[SupportStatisticsModel]):
    """Repository for per-user support counters and the history log."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(SupportStatisticsModel, session)

    async def ensure_row(self, user_id: UUID) -> None:
        """Create the user's counter row if it does not exist yet."""
        dialect = self._session.bind.dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Unsupported database dialect: {dialect}")

        await self._session.execute(
            insert(SupportStatisticsModel)
            .values(user_id=user_id)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )

    async def increment(
        self,
        user_id: UUID,
        direction: SupportDirection,
        tier: SupportTier,
        at: datetime,
    ) -> None:
        """Atomically bump total and tier counters and stamp last-at."""
        await self.ensure_row(user_id)

        prefix, last_at_column = _DIRECTION_COLUMNS[direction]
        total_column = getattr(SupportStatisticsModel, f"{prefix}_total")
        tier_column = getattr(SupportStatisticsModel, f"{prefix}_{tier.value}")

        await self._session.execute(
            update(SupportStatisticsModel)
            .where(SupportStatisticsModel.user_id == user_id)
            .values({
                total_column: total_column + 1,
                tier_column: tier_column + 1,
                getattr(SupportStatisticsModel, last_at_column): at,
            })
            .execution_options(synchronize_session=False)
        )

    async def append_history(self, user_id: UUID, entry: SupportHistoryEntry) -> None:
        self._session.add(SupportHistoryModel(
            user_id=user_id,
            direction=entry.direction.value,
            tier=entry.tier.value,
            timestamp=entry.timestamp,
            counterpart_id=entry.counterpart_id,
            assessment_id=entry.assessment_id,
        ))
        await self._session.flush()

    async def get_counters(
        self,
        user_id: UUID,
    ) -> Optional[tuple[SupportCounters, SupportCounters]]:
        """(provided, received) counters, or None without a row."""
        result = await self._session.execute(
            select(SupportStatisticsModel).where(SupportStatisticsModel.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        # Counters change under us via bulk UPDATE; never trust a cached instance
        await self._session.refresh(row)
        return (
            SupportCounters(
                total=row.provided_total,
                buddy_tier=row.provided_buddy,
                community_tier=row.provided_community,
                global_tier=row.provided_global,
                last_at=row.last_provided_at,
            ),
            SupportCounters(
                total=row.received_total,
                buddy_tier=row.received_buddy,
                community_tier=row.received_community,
                global_tier=row.received_global,
                last_at=row.last_received_at,
            ),
        )

    async def get_history(self, user_id: UUID, *, limit: int = 20) -> list[SupportHistoryEntry]:
        """History entries newest first."""
        result = await self._session.execute(
            select(SupportHistoryModel)
            .where(SupportHistoryModel.user_id == user_id)
            .order_by(SupportHistoryModel.timestamp.desc())
            .limit(limit)
        )
        return [
            SupportHistoryEntry(
                direction=SupportDirection(row.direction),
                tier=SupportTier(row.tier),
                timestamp=row.timestamp,
                counterpart_id=row.counterpart_id,
                assessment_id=row.assessment_id,
            )
            for row in result.scalars().all()
        ]


class NotificationRepository(BaseRepository[NotificationModel]):
    """Repository for persisted in-app notifications."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(NotificationModel, session)

    async def add(
        self,
        notification: Notification,
        action_route: Optional[str] = None,
    ) -> NotificationModel:
        related_id = notification.data.get("assessmentId")
        return await self.create(NotificationModel(
            user_id=notification.user_id,
            type=notification.notification_type.value,
            title=notification.title,
            message=notification.body,
            action_route=action_route,
            related_id=str(related_id) if related_id else None,
            data=dict(notification.data),
        ))

"""
Health Signal Repository

Range queries over daily samples and check-ins. The analysis pipeline
only reads; ``upsert_sample`` and ``add_check_in`` exist for device-sync
adapters and for seeding.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindmate.domain.enums import SleepQuality
from mindmate.domain.models import (
    ActivityRecord,
    CheckIn,
    ExerciseEntry,
    HealthSample,
    Mood,
    SleepRecord,
)
from mindmate.infrastructure.database.models.health_signal_model import (
    CheckInModel,
    HealthSampleModel,
)
from mindmate.infrastructure.database.repositories.base import BaseRepository


class HealthSignalRepository(BaseRepository[HealthSampleModel]):
    """Repository for samples and check-ins."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(HealthSampleModel, session)

    async def get_samples(
        self,
        user_id: UUID,
        start_day: date,
        end_day: date,
    ) -> list[HealthSample]:
        """Samples with start_day <= day <= end_day, oldest first."""
        result = await self._session.execute(
            select(HealthSampleModel)
            .where(
                HealthSampleModel.user_id == user_id,
                HealthSampleModel.day >= start_day,
                HealthSampleModel.day <= end_day,
            )
            .order_by(HealthSampleModel.day)
        )
        return [_sample_from_row(row) for row in result.scalars().all()]

    async def get_check_ins(
        self,
        user_id: UUID,
        start: datetime,
        end: datetime,
    ) -> list[CheckIn]:
        """Check-ins with start <= timestamp <= end, oldest first."""
        result = await self._session.execute(
            select(CheckInModel)
            .where(
                CheckInModel.user_id == user_id,
                CheckInModel.timestamp >= start,
                CheckInModel.timestamp <= end,
            )
            .order_by(CheckInModel.timestamp)
        )
        return [_check_in_from_row(row) for row in result.scalars().all()]

    async def upsert_sample(
        self,
        user_id: UUID,
        day: date,
        *,
        sleep: Optional[SleepRecord] = None,
        activity: Optional[ActivityRecord] = None,
        exercises: Optional[list[ExerciseEntry]] = None,
    ) -> HealthSample:
        """
        Merge partial data into the user's row for ``day``.

        Only the parts that are given (and their non-None fields)
        overwrite stored values.
        """
        result = await self._session.execute(
            select(HealthSampleModel).where(
                HealthSampleModel.user_id == user_id,
                HealthSampleModel.day == day,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = HealthSampleModel(user_id=user_id, day=day, exercises=[])
            self._session.add(row)

        if sleep is not None:
            if sleep.duration_seconds is not None:
                row.sleep_duration_seconds = sleep.duration_seconds
            if sleep.quality is not None:
                row.sleep_quality = sleep.quality.value
        if activity is not None:
            if activity.steps is not None:
                row.steps = activity.steps
            if activity.exercise_seconds is not None:
                row.exercise_seconds = activity.exercise_seconds
        if exercises is not None:
            row.exercises = [entry.to_dict() for entry in exercises]

        row.last_synced_at = datetime.utcnow()
        await self._session.flush()
        return _sample_from_row(row)

    async def add_check_in(self, check_in: CheckIn) -> CheckIn:
        self._session.add(CheckInModel(
            id=check_in.id,
            user_id=check_in.user_id,
            timestamp=check_in.timestamp,
            mood_score=check_in.mood.score,
            mood_label=check_in.mood.label,
            mood_description=check_in.mood.description,
            notes=check_in.notes,
        ))
        await self._session.flush()
        return check_in


def _sample_from_row(row: HealthSampleModel) -> HealthSample:
    sleep = None
    if row.sleep_duration_seconds is not None or row.sleep_quality is not None:
        sleep = SleepRecord(
            duration_seconds=row.sleep_duration_seconds,
            quality=SleepQuality(row.sleep_quality) if row.sleep_quality else None,
        )

    activity = None
    if row.steps is not None or row.exercise_seconds is not None:
        activity = ActivityRecord(steps=row.steps, exercise_seconds=row.exercise_seconds)

    return HealthSample(
        user_id=row.user_id,
        day=row.day,
        sleep=sleep,
        activity=activity,
        exercises=[ExerciseEntry.from_dict(entry) for entry in (row.exercises or [])],
        last_synced_at=row.last_synced_at,
    )


def _check_in_from_row(row: CheckInModel) -> CheckIn:
    return CheckIn(
        id=row.id,
        user_id=row.user_id,
        timestamp=row.timestamp,
        mood=Mood(
            score=row.mood_score,
            label=row.mood_label,
            description=row.mood_description,
        ),
        notes=row.notes,
    )

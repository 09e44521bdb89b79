"""
Assessment and Baseline Repositories

SAFETY_CRITICAL: Every support-status write is a conditional UPDATE
guarded on the status the caller expects to replace. The affected row
count tells the caller whether it won the transition; a lost race is a
normal outcome, not an error.
"""

from datetime import datetime
from typing import Any, NamedTuple, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindmate.domain.enums import (
    AnalysisType,
    MentalHealthStatus,
    ParseOutcome,
    SupportRequestStatus,
)
from mindmate.domain.models import (
    Assessment,
    Baseline,
    DataPoints,
    ReasoningData,
    SupportRequest,
)
from mindmate.infrastructure.database.models.assessment_model import (
    AssessmentModel,
    BaselineModel,
)
from mindmate.infrastructure.database.models.user_model import UserModel
from mindmate.infrastructure.database.repositories.base import BaseRepository


class SupportState(NamedTuple):
    """Freshly read escalation columns of one assessment."""

    assessment_id: UUID
    user_id: UUID
    status: SupportRequestStatus
    analysis_type: AnalysisType
    escalation_due_at: Optional[datetime]


class AssessmentRepository(BaseRepository[AssessmentModel]):
    """Repository for assessments and their support state."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(AssessmentModel, session)

    async def add(self, assessment: Assessment) -> Assessment:
        await self.create(_assessment_to_row(assessment))
        return assessment

    async def get(self, assessment_id: UUID) -> Optional[Assessment]:
        row = await self.get_by_id(assessment_id)
        return _assessment_from_row(row) if row else None

    async def get_latest(
        self,
        user_id: UUID,
        analysis_type: Optional[AnalysisType] = None,
    ) -> Optional[Assessment]:
        history = await self.get_history(user_id, limit=1, analysis_type=analysis_type)
        return history[0] if history else None

    async def get_history(
        self,
        user_id: UUID,
        *,
        limit: int = 10,
        analysis_type: Optional[AnalysisType] = None,
        since: Optional[datetime] = None,
    ) -> list[Assessment]:
        """Assessments newest first."""
        query = select(AssessmentModel).where(AssessmentModel.user_id == user_id)
        if analysis_type is not None:
            query = query.where(AssessmentModel.analysis_type == analysis_type.value)
        if since is not None:
            query = query.where(AssessmentModel.timestamp >= since)
        query = query.order_by(AssessmentModel.timestamp.desc()).limit(limit)

        result = await self._session.execute(query)
        return [_assessment_from_row(row) for row in result.scalars().all()]

    async def get_support_state(self, assessment_id: UUID) -> Optional[SupportState]:
        """
        Read the escalation columns straight from the database.

        Column selects bypass the identity map, so this always sees the
        latest committed status.
        """
        result = await self._session.execute(
            select(
                AssessmentModel.id,
                AssessmentModel.user_id,
                AssessmentModel.support_request_status,
                AssessmentModel.analysis_type,
                AssessmentModel.escalation_due_at,
            ).where(AssessmentModel.id == assessment_id)
        )
        row = result.one_or_none()
        return _support_state(row) if row else None

    async def transition_status(
        self,
        assessment_id: UUID,
        expected: SupportRequestStatus,
        new: SupportRequestStatus,
        **values: Any,
    ) -> bool:
        """
        Move ``expected`` -> ``new`` if the row still holds ``expected``.

        Extra keyword arguments are written in the same statement.

        Returns:
            True if this call performed the transition
        """
        result = await self._session.execute(
            update(AssessmentModel)
            .where(
                AssessmentModel.id == assessment_id,
                AssessmentModel.support_request_status == expected.value,
            )
            .values(support_request_status=new.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_escalation_due(
        self,
        assessment_id: UUID,
        expected: SupportRequestStatus,
        due_at: Optional[datetime],
    ) -> bool:
        """Set or clear the timer, guarded on the current status."""
        result = await self._session.execute(
            update(AssessmentModel)
            .where(
                AssessmentModel.id == assessment_id,
                AssessmentModel.support_request_status == expected.value,
            )
            .values(escalation_due_at=due_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_due_escalations(self, now: datetime, limit: int = 100) -> list[SupportState]:
        """Recent assessments whose tier timer has expired, oldest due first."""
        open_statuses = [s.value for s in SupportRequestStatus if s.is_open]
        result = await self._session.execute(
            select(
                AssessmentModel.id,
                AssessmentModel.user_id,
                AssessmentModel.support_request_status,
                AssessmentModel.analysis_type,
                AssessmentModel.escalation_due_at,
            )
            .where(
                AssessmentModel.escalation_due_at.is_not(None),
                AssessmentModel.escalation_due_at <= now,
                AssessmentModel.analysis_type == AnalysisType.RECENT.value,
                AssessmentModel.support_request_status.in_(open_statuses),
            )
            .order_by(AssessmentModel.escalation_due_at)
            .limit(limit)
        )
        return [_support_state(row) for row in result.all()]

    async def get_open_requests(
        self,
        user_ids: Sequence[UUID],
        status: SupportRequestStatus,
        limit: int = 50,
    ) -> list[SupportRequest]:
        """Open requests from ``user_ids`` in ``status``, newest first."""
        result = await self._session.execute(
            select(AssessmentModel, UserModel.username)
            .join(UserModel, UserModel.id == AssessmentModel.user_id)
            .where(
                AssessmentModel.user_id.in_(list(user_ids)),
                AssessmentModel.needs_support.is_(True),
                AssessmentModel.support_request_status == status.value,
            )
            .order_by(AssessmentModel.timestamp.desc())
            .limit(limit)
        )
        return [
            SupportRequest(
                assessment_id=row.id,
                user_id=row.user_id,
                status=SupportRequestStatus(row.support_request_status),
                mental_health_status=MentalHealthStatus(row.status),
                assessed_at=row.timestamp,
                requested_at=row.support_request_time,
                support_reason=row.support_reason,
                username=username,
            )
            for row, username in result.all()
        ]


class BaselineRepository(BaseRepository[BaselineModel]):
    """Repository for baselines. Append-only."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(BaselineModel, session)

    async def add(self, baseline: Baseline) -> Baseline:
        await self.create(BaselineModel(
            id=baseline.id,
            user_id=baseline.user_id,
            established_at=baseline.established_at,
            metrics=baseline.metrics.to_dict(),
            exercise_minutes_per_week=baseline.exercise_minutes_per_week,
            confidence_score=baseline.confidence_score,
            raw_assessment=baseline.raw_assessment,
            parse_outcome=baseline.parse_outcome.value,
            total_days=baseline.data_points.total_days,
            days_with_sleep_data=baseline.data_points.days_with_sleep_data,
            days_with_activity_data=baseline.data_points.days_with_activity_data,
            check_ins_count=baseline.data_points.check_ins_count,
        ))
        return baseline

    async def get_latest(self, user_id: UUID) -> Optional[Baseline]:
        history = await self.get_history(user_id, limit=1)
        return history[0] if history else None

    async def get_history(self, user_id: UUID, *, limit: int = 10) -> list[Baseline]:
        """Baselines newest first."""
        result = await self._session.execute(
            select(BaselineModel)
            .where(BaselineModel.user_id == user_id)
            .order_by(BaselineModel.established_at.desc())
            .limit(limit)
        )
        return [_baseline_from_row(row) for row in result.scalars().all()]


def _support_state(row: Any) -> SupportState:
    return SupportState(
        assessment_id=row.id,
        user_id=row.user_id,
        status=SupportRequestStatus(row.support_request_status),
        analysis_type=AnalysisType(row.analysis_type),
        escalation_due_at=row.escalation_due_at,
    )


def _assessment_to_row(assessment: Assessment) -> AssessmentModel:
    return AssessmentModel(
        id=assessment.id,
        user_id=assessment.user_id,
        timestamp=assessment.timestamp,
        status=assessment.status.value,
        confidence_score=assessment.confidence_score,
        reasoning_data=assessment.reasoning.to_dict(),
        analysis_type=assessment.analysis_type.value,
        parse_outcome=assessment.parse_outcome.value,
        baseline_comparison=assessment.baseline_comparison,
        needs_support=assessment.needs_support,
        support_request_status=assessment.support_request_status.value,
        support_request_time=assessment.support_request_time,
        support_provided_by=assessment.support_provided_by,
        support_provided_time=assessment.support_provided_time,
        support_reason=assessment.support_reason,
        support_tips=list(assessment.support_tips),
        escalation_due_at=assessment.escalation_due_at,
    )


def _assessment_from_row(row: AssessmentModel) -> Assessment:
    return Assessment(
        id=row.id,
        user_id=row.user_id,
        timestamp=row.timestamp,
        status=MentalHealthStatus(row.status),
        confidence_score=row.confidence_score,
        reasoning=ReasoningData.from_dict(row.reasoning_data),
        analysis_type=AnalysisType(row.analysis_type),
        parse_outcome=ParseOutcome(row.parse_outcome),
        baseline_comparison=row.baseline_comparison,
        needs_support=row.needs_support,
        support_request_status=SupportRequestStatus(row.support_request_status),
        support_request_time=row.support_request_time,
        support_provided_by=row.support_provided_by,
        support_provided_time=row.support_provided_time,
        support_reason=row.support_reason,
        support_tips=list(row.support_tips or []),
        escalation_due_at=row.escalation_due_at,
    )


def _baseline_from_row(row: BaselineModel) -> Baseline:
    return Baseline(
        id=row.id,
        user_id=row.user_id,
        established_at=row.established_at,
        metrics=ReasoningData.from_dict(row.metrics),
        exercise_minutes_per_week=row.exercise_minutes_per_week,
        confidence_score=row.confidence_score,
        raw_assessment=row.raw_assessment or {},
        parse_outcome=ParseOutcome(row.parse_outcome),
        data_points=DataPoints(
            total_days=row.total_days,
            days_with_sleep_data=row.days_with_sleep_data,
            days_with_activity_data=row.days_with_activity_data,
            check_ins_count=row.check_ins_count,
        ),
    )

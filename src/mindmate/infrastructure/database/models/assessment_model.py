"""
Assessment and Baseline Database Models

SAFETY_CRITICAL: support_request_status is the authoritative record of
where a support request stands. It is only ever changed through
conditional updates guarded on the expected previous status.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mindmate.infrastructure.database.connection import Base, JSONType


class AssessmentModel(Base):
    """
    Assessment table ORM model.

    Table: assessments
    """

    __tablename__ = "assessments"
    __table_args__ = (
        Index("ix_assessments_user_timestamp", "user_id", "timestamp"),
        Index("ix_assessments_escalation_due", "escalation_due_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning_data: Mapped[dict] = mapped_column(JSONType, default=dict)
    analysis_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    parse_outcome: Mapped[str] = mapped_column(String(20), nullable=False, default="strict")
    baseline_comparison: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Support request state machine
    needs_support: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    support_request_status: Mapped[str] = mapped_column(
        String(30),
        default="none",
        nullable=False,
        index=True,
    )
    support_request_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    support_provided_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    support_provided_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    support_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    support_tips: Mapped[list] = mapped_column(JSONType, default=list)
    escalation_due_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        doc="When the current tier times out; NULL when no timer is pending"
    )


class BaselineModel(Base):
    """
    Baseline table ORM model. Rows are never deleted.

    Table: baselines
    """

    __tablename__ = "baselines"
    __table_args__ = (
        Index("ix_baselines_user_established", "user_id", "established_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    established_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    metrics: Mapped[dict] = mapped_column(JSONType, default=dict)
    exercise_minutes_per_week: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    raw_assessment: Mapped[dict] = mapped_column(JSONType, default=dict)
    parse_outcome: Mapped[str] = mapped_column(String(20), nullable=False, default="strict")

    total_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    days_with_sleep_data: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    days_with_activity_data: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    check_ins_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

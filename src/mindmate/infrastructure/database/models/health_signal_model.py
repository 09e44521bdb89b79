"""
Health Signal Database Models

Daily health samples and mood check-ins. Ingestion belongs to the
device-sync service; the analysis pipeline only reads these tables.

PRIVACY: Check-in notes are free text and must never be logged.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mindmate.infrastructure.database.connection import Base, JSONType


class HealthSampleModel(Base):
    """
    One row per user per calendar day.

    Table: health_samples
    """

    __tablename__ = "health_samples"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_health_samples_user_day"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    sleep_duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sleep_quality: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    steps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    exercise_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    exercises: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        doc="Workout entries: name, durationInSeconds, calories"
    )

    last_synced_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


class CheckInModel(Base):
    """
    Append-only mood check-ins.

    Table: check_ins
    """

    __tablename__ = "check_ins"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    mood_score: Mapped[float] = mapped_column(Float, nullable=False)
    mood_label: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    mood_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

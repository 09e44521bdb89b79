"""
Support Statistics and Notification Database Models

CONCURRENCY: support_statistics rows are written by both the provider's
and the requester's flows. Counters are one column each so they can be
incremented with single-statement atomic updates.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mindmate.infrastructure.database.connection import Base, JSONType


class SupportStatisticsModel(Base):
    """
    Per-user support counters.

    Table: support_statistics
    """

    __tablename__ = "support_statistics"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    provided_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    provided_buddy: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    provided_community: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    provided_global: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_provided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    received_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    received_buddy: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    received_community: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    received_global: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_received_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class SupportHistoryModel(Base):
    """
    Append-only support log.

    Table: support_history
    """

    __tablename__ = "support_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    tier: Mapped[str] = mapped_column(String(10), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    counterpart_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    assessment_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)


class NotificationModel(Base):
    """
    In-app notifications raised by the support flow.

    Table: notifications
    """

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    action_route: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    related_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    data: Mapped[dict] = mapped_column(JSONType, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

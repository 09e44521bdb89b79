"""Tests configuration and fixtures."""

from datetime import date, datetime, timedelta
from typing import AsyncGenerator, Optional
from uuid import UUID

import pytest

from mindmate.config import Settings
from mindmate.config.settings import DatabaseSettings, EscalationSettings
from mindmate.domain.enums import SleepQuality
from mindmate.domain.models import (
    ActivityRecord,
    CheckIn,
    ExerciseEntry,
    Mood,
    Notification,
    SleepRecord,
)
from mindmate.infrastructure.database import DatabaseManager
from mindmate.infrastructure.database.repositories import (
    HealthSignalRepository,
    UserRepository,
)
from mindmate.infrastructure.llm import LLMProvider, LLMResponse, TransportError
from mindmate.infrastructure.notifications import NotificationSender
from mindmate.services.analysis.prompt_formatter import AnalysisPrompt

NOW = datetime(2026, 3, 10, 12, 0, 0)
ADMIN_ID = UUID("00000000-0000-4000-8000-00000000a11d")


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeLLMProvider(LLMProvider):
    """Returns canned text and records every prompt it was sent."""

    def __init__(self, content: str = "{}", error: Optional[Exception] = None) -> None:
        self.content = content
        self.error = error
        self.prompts: list[AnalysisPrompt] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def default_model(self) -> str:
        return "fake-model"

    async def generate(self, prompt: AnalysisPrompt) -> LLMResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.content, model=self.default_model, provider=self.provider_name)

    async def health_check(self) -> bool:
        return self.error is None


class RecordingNotifier(NotificationSender):
    """Records notification attempts; fails for users listed in ``fail_for``."""

    def __init__(self, fail_for: Optional[set[UUID]] = None) -> None:
        self.attempts: list[Notification] = []
        self.fail_for = fail_for or set()

    async def notify(self, notification: Notification) -> bool:
        self.attempts.append(notification)
        if notification.user_id in self.fail_for:
            raise RuntimeError("push gateway unavailable")
        return True

    def recipients(self) -> list[UUID]:
        return [n.user_id for n in self.attempts]


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an in-memory SQLite database, no background loops."""
    return Settings(
        env="test",
        debug=False,
        database=DatabaseSettings(url="sqlite+aiosqlite:///:memory:"),
        escalation=EscalationSettings(scheduler_enabled=False),
        admin_user_ids=[ADMIN_ID],
    )


@pytest.fixture
async def db(test_settings: Settings) -> AsyncGenerator[DatabaseManager, None]:
    manager = DatabaseManager(test_settings.database)
    await manager.initialize()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# Seed helpers

async def create_user(db: DatabaseManager, username: str) -> UUID:
    async with db.session() as session:
        user = await UserRepository(session).create_user(username)
        return user.id


async def make_buddies(db: DatabaseManager, user_id: UUID, *peer_ids: UUID) -> None:
    async with db.session() as session:
        repo = UserRepository(session)
        for peer_id in peer_ids:
            await repo.add_buddy_pair(user_id, peer_id)


async def join_community(db: DatabaseManager, community_id: UUID, *user_ids: UUID) -> None:
    async with db.session() as session:
        repo = UserRepository(session)
        for user_id in user_ids:
            await repo.join_community(user_id, community_id)


async def add_sample(
    db: DatabaseManager,
    user_id: UUID,
    day: date,
    *,
    sleep_hours: Optional[float] = None,
    quality: Optional[SleepQuality] = None,
    steps: Optional[int] = None,
    exercise_minutes: Optional[int] = None,
) -> None:
    sleep = None
    if sleep_hours is not None or quality is not None:
        sleep = SleepRecord(
            duration_seconds=int(sleep_hours * 3600) if sleep_hours is not None else None,
            quality=quality,
        )
    exercises = None
    if exercise_minutes:
        exercises = [ExerciseEntry(name="Walk", duration_seconds=exercise_minutes * 60)]

    async with db.session() as session:
        await HealthSignalRepository(session).upsert_sample(
            user_id,
            day,
            sleep=sleep,
            activity=ActivityRecord(steps=steps) if steps is not None else None,
            exercises=exercises,
        )


async def add_check_in(
    db: DatabaseManager,
    user_id: UUID,
    timestamp: datetime,
    score: float,
    notes: Optional[str] = None,
) -> None:
    async with db.session() as session:
        await HealthSignalRepository(session).add_check_in(
            CheckIn(user_id=user_id, timestamp=timestamp, mood=Mood(score=score), notes=notes)
        )

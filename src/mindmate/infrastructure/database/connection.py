"""
Database Connection Management

Async SQLAlchemy connection handling with:
- Connection pooling (PostgreSQL/asyncpg)
- Single shared connection for in-memory SQLite (tests, local runs)
- Health checks
- Transaction management

SECURITY: Connection strings contain credentials and must
never be logged.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import JSON, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from mindmate.config.logging_config import get_logger
from mindmate.config.settings import DatabaseSettings

logger = get_logger(__name__)


# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base shared by every MindMate table."""


class DatabaseManager:
    """
    Manages database connections and sessions.

    Usage:
        db = DatabaseManager(settings.database)
        await db.initialize()
        async with db.session() as session:
            # use session
        await db.close()
    """

    def __init__(self, settings: DatabaseSettings, echo: bool = False) -> None:
        """Initialize database manager (connection not established)."""
        self._settings = settings
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _engine_options(self, url: str) -> dict[str, Any]:
        if url.startswith("sqlite"):
            # In-memory databases live on exactly one connection
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        return {
            "pool_size": self._settings.pool_size,
            "max_overflow": self._settings.max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }

    async def initialize(self) -> None:
        """Create the engine and session factory; a second call is a no-op."""
        if self._engine is not None:
            logger.warning("Database already initialized")
            return

        url = self._settings.async_url
        self._engine = create_async_engine(url, echo=self._echo, **self._engine_options(url))
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine initialized", dialect=self._engine.dialect.name)

    async def create_all(self) -> None:
        """Create every table. Migrations own the schema in production."""
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        # Register every mapped table on the metadata
        import mindmate.infrastructure.database.models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose of the engine. Called from the application lifespan."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session that commits on success.

        Any exception rolls the transaction back and propagates.

        Yields:
            AsyncSession: Database session
        """
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Run a trivial query; False when the database cannot be reached."""
        if self._engine is None:
            return False

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

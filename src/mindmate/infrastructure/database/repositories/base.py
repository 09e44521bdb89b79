"""
Base Repository Pattern

Generic async data access shared by all repositories.
Repositories flush but never commit: the enclosing
DatabaseManager.session() owns the transaction.
"""

from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mindmate.infrastructure.database.connection import Base

# Type variable for model types
ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Generic base repository with async CRUD operations.

    Usage:
        class AssessmentRepository(BaseRepository[AssessmentModel]):
            pass

        repo = AssessmentRepository(session)
        row = await repo.get_by_id(assessment_id)
    """

    def __init__(self, model: Type[ModelT], session: AsyncSession) -> None:
        """
        Initialize repository with model class and session.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self._model = model
        self._session = session

    async def get_by_id(self, id: UUID) -> Optional[ModelT]:
        """
        Get entity by primary key ID.

        Returns:
            Entity if found, None otherwise
        """
        result = await self._session.execute(
            select(self._model).where(self._model.id == id)
        )
        return result.scalar_one_or_none()

    async def create(self, entity: ModelT) -> ModelT:
        """
        Add a new entity and flush it so generated values are populated.
        """
        self._session.add(entity)
        await self._session.flush()
        return entity

    async def exists(self, id: UUID) -> bool:
        result = await self._session.execute(
            select(func.count()).select_from(self._model).where(self._model.id == id)
        )
        return result.scalar_one() > 0

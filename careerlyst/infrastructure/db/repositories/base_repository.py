"""
Base Repository for Careerlyst

Generic async read repository over a request-scoped session. Repositories
that need their own transaction boundaries (reservations, upserts) use
``get_session_context`` directly instead.
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Optional, Type
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


ModelType = TypeVar("ModelType", bound=SQLModel)


class IReadRepository(ABC, Generic[ModelType]):
    """Interface for read operations."""

    @abstractmethod
    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Get a single record by ID."""
        pass


class BaseRepository(IReadRepository[ModelType], Generic[ModelType]):
    """
    Generic async repository bound to one SQLModel table.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Get a single record by its primary key."""
        return await self._session.get(self._model, id)

"""Base repository with shared get-by-ID patterns.

Subclasses specify model_class, id_column, and not_found_error; the base
provides the common implementations over an ``AsyncSession``.

Override _base_query() to apply default filters.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import Base
from ..exceptions import ConfigApiException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., ConfigOverride)
        id_column:       Name of the primary-key column (default "id")
        not_found_error: Exception class to raise from get_by_id
    """

    model_class: Type[ModelT]
    id_column: str = "id"
    not_found_error: Type[ConfigApiException]

    def __init__(self, db: AsyncSession):
        self.db = db

    def _base_query(self) -> Select:
        """Base query for get_by_id / get_by_id_optional."""
        return select(self.model_class).execution_options(populate_existing=True)

    async def get_by_id(self, entity_id: Any) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = await self.get_by_id_optional(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity

    async def get_by_id_optional(self, entity_id: Any) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        col = getattr(self.model_class, self.id_column)
        result = await self.db.execute(self._base_query().where(col == entity_id))
        return result.scalars().first()

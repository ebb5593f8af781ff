from typing import Generic, TypeVar, Type, Optional, List, Any, Dict
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from smeta.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository for task-scoped pipeline records.

    Every pipeline table hangs off a generation task, so lookups here are
    expressed as equality filters and task_id is the usual scope.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    def _filtered(self, query, filters: Dict[str, Any]):
        for field, value in filters.items():
            query = query.where(getattr(self.model, field) == value)
        return query

    async def get_by_id(self, id: UUID) -> Optional[ModelType]:
        """Get a record by its ID.

        Args:
            id: The UUID of the record

        Returns:
            The record if found, None otherwise
        """
        try:
            query = select(self.model).where(self.model.id == id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving {self.model.__name__} by ID {id}: {str(e)}",
                exc_info=True
            )
            raise

    async def find_one(self, **filters: Any) -> Optional[ModelType]:
        """Get the single record matching all equality filters."""
        result = await self.session.execute(self._filtered(select(self.model), filters))
        return result.scalar_one_or_none()

    async def find_many(self, order_by=None, limit: Optional[int] = None, **filters: Any) -> List[ModelType]:
        """Get records matching all equality filters.

        Args:
            order_by: Optional column or ordering expression
            limit: Maximum number of records to return
            **filters: field_name=value pairs

        Returns:
            Matching records
        """
        query = self._filtered(select(self.model), filters)
        if order_by is not None:
            query = query.order_by(order_by)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create(self, **kwargs) -> ModelType:
        """Create a new record and commit.

        Args:
            **kwargs: Fields and values for the new record

        Returns:
            The created record
        """
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error creating {self.model.__name__}: {str(e)}",
                exc_info=True
            )
            raise

    async def upsert(self, key: Dict[str, Any], values: Dict[str, Any], commit: bool = True) -> ModelType:
        """Overwrite the record identified by key, or insert it.

        Args:
            key: Equality filters naming at most one record (a unique constraint)
            values: Fields to write
            commit: Commit immediately; pass False when saving a batch

        Returns:
            The stored record
        """
        try:
            instance = await self.find_one(**key)
            if instance:
                for field, value in values.items():
                    setattr(instance, field, value)
            else:
                instance = self.model(**key, **values)
                self.session.add(instance)

            await self.session.flush()
            if commit:
                await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error saving {self.model.__name__} {key}: {str(e)}",
                exc_info=True
            )
            raise


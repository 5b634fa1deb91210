"""
Base Repository Pattern

Purpose
-------
Type-safe, generic repository abstraction over SQLAlchemy 2.0 async
sessions. Repositories encapsulate data access for one ORM model and leave
transactions to the caller (``DatabaseService.get_transaction``).

Design Notes
------------
- Structured debug logging for every operation
- Optional SELECT FOR UPDATE on lookups used before a mutation
- No business logic (pure data access)

Usage
-----
    from mahoya.database.models import D20RollRecord
    from mahoya.modules.shared import BaseRepository

    class D20RollRepository(BaseRepository[D20RollRecord]):
        async def find_by_user(self, session, user_id):
            return await self.find_one_where(
                session, D20RollRecord.user_id == user_id
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    def _debug(self, operation: str, **context: Any) -> None:
        self.log.debug(
            f"Repository.{operation}: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, **context},
        )

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Get a single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value
            for_update: If True, use SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(self.model_class.id == id_value)  # type: ignore
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._debug("get", id=id_value, found=instance is not None, locked=for_update)
        return instance

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._debug("find_one_where", found=instance is not None, locked=for_update)
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ordering clauses
            limit: Optional maximum number of results

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self._debug("find_many_where", found_count=len(instances), limit=limit)
        return instances

    async def exists(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> bool:
        """Check if any record matching conditions exists."""
        return await self.count(session, *conditions) > 0

    async def count(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self._debug("count", count=count)
        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        """Add a new instance to the session."""
        session.add(instance)
        self._debug("add")
        return instance

    async def delete_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """
        Delete every record matching conditions.

        Returns:
            Number of deleted rows
        """
        result = await session.execute(sa_delete(self.model_class).where(*conditions))
        deleted = result.rowcount or 0

        self._debug("delete_where", deleted=deleted)
        return deleted

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes to the database."""
        await session.flush()
        self._debug("flush")

    async def refresh(self, session: AsyncSession, instance: T) -> T:
        """Refresh an instance from the database."""
        await session.refresh(instance)
        self._debug("refresh")
        return instance

from __future__ import annotations

from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from starter_api.database import Base

ModelT = TypeVar("ModelT", bound=Base)


class SQLRepository(Generic[ModelT]):
    """Common CRUD for a single mapped table."""

    model: Type[ModelT]
    # Columns that are safe to sort by; guards against arbitrary attribute access.
    sortable_columns: frozenset[str] = frozenset({"created_at"})

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _base_query(self) -> Select:
        return select(self.model)

    async def get_by_id(self, entity_id: Any) -> Optional[ModelT]:
        stmt = self._base_query().where(self.model.id == entity_id)
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def create(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def update(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)
        await self.session.flush()

    def order_by(self, stmt: Select, sort_by: str, sort_order: str) -> Select:
        """
        Apply ORDER BY for *sort_by*; unknown columns fall back to
        ``created_at``.  ``id`` breaks ties so pages stay stable.
        """
        column_name = sort_by if sort_by in self.sortable_columns else "created_at"
        column = getattr(self.model, column_name)
        direction = desc if sort_order == "desc" else asc
        return stmt.order_by(direction(column), direction(self.model.id))

    async def paginate(
        self,
        stmt: Select,
        conditions: Sequence[Any],
        offset: int,
        limit: int,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[ModelT], int]:
        """
        Run a COUNT and a page query sharing *conditions*.

        Two SQL statements are issued:
        1. COUNT over the filtered table.
        2. SELECT with ORDER BY / LIMIT / OFFSET.
        """
        count_q = select(func.count()).select_from(self.model).where(*conditions)
        total: int = (await self.session.execute(count_q)).scalar_one()

        page_q = self.order_by(stmt.where(*conditions), sort_by, sort_order)
        result = await self.session.execute(page_q.offset(offset).limit(limit))
        return list(result.unique().scalars().all()), total

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select, update

from starter_api.models import Article, Category
from starter_api.repositories.base import SQLRepository


class CategoryRepository(SQLRepository[Category]):
    model = Category
    sortable_columns = frozenset({"created_at", "name", "slug"})

    async def get_by_slug(self, slug: str) -> Optional[Category]:
        result = await self.session.execute(select(Category).where(Category.slug == slug))
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[Category]:
        stmt = select(Category).where(func.lower(Category.name) == name.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list(
        self,
        offset: int = 0,
        limit: int = 20,
        sort_by: str = "name",
        sort_order: str = "asc",
    ) -> tuple[list[Category], int]:
        return await self.paginate(select(Category), [], offset, limit, sort_by, sort_order)

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Category))
        return result.scalar_one()

    async def count_articles(self, category_id: int) -> int:
        stmt = select(func.count()).select_from(Article).where(Article.category_id == category_id)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def detach_articles(self, category_id: int) -> None:
        """Clear ``category_id`` on the category's articles before it is deleted."""
        await self.session.execute(
            update(Article)
            .where(Article.category_id == category_id)
            .values(category_id=None)
            .execution_options(synchronize_session=False)
        )

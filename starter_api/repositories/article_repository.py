"""
Article data access.

Relationships on ``Article`` are ``lazy="raise"``, so every read that
needs the author or category loads them explicitly with ``joinedload``.
``populate_existing`` makes a re-read refresh objects that are already in
the identity map, including a changed ``category_id``.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.attributes import set_committed_value

from starter_api.models import Article
from starter_api.repositories.base import SQLRepository


@dataclass
class ArticleFilter:
    q: Optional[str] = None
    status: Optional[str] = None
    author_id: Optional[uuid.UUID] = None
    category_id: Optional[int] = None

    def conditions(self) -> list:
        conditions = []
        if self.q:
            conditions.append(
                or_(
                    Article.title.icontains(self.q, autoescape=True),
                    Article.content.icontains(self.q, autoescape=True),
                )
            )
        if self.status:
            conditions.append(Article.status == self.status)
        if self.author_id is not None:
            conditions.append(Article.author_id == self.author_id)
        if self.category_id is not None:
            conditions.append(Article.category_id == self.category_id)
        return conditions


class ArticleRepository(SQLRepository[Article]):
    model = Article
    sortable_columns = frozenset({"created_at", "published_at", "view_count", "title"})

    def _base_query(self) -> Select:
        return (
            select(Article)
            .options(joinedload(Article.author), joinedload(Article.category))
            .execution_options(populate_existing=True)
        )

    async def get_by_slug(self, slug: str) -> Optional[Article]:
        result = await self.session.execute(self._base_query().where(Article.slug == slug))
        return result.unique().scalar_one_or_none()

    async def slug_exists(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(func.count()).select_from(Article).where(Article.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Article.id != exclude_id)
        return (await self.session.execute(stmt)).scalar_one() > 0

    async def search(
        self,
        filters: ArticleFilter,
        offset: int = 0,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[Article], int]:
        return await self.paginate(
            self._base_query(), filters.conditions(), offset, limit, sort_by, sort_order
        )

    async def increment_views(self, article: Article) -> None:
        """Atomically bump ``view_count`` and mirror it on *article*."""
        await self.session.execute(
            update(Article)
            .where(Article.id == article.id)
            .values(view_count=Article.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(article, "view_count", article.view_count + 1)

    async def reload(self, article: Article) -> Optional[Article]:
        """Flush pending changes and re-read *article* with its relationships."""
        await self.session.flush()
        return await self.get_by_id(article.id)

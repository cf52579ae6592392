"""
Category service.

The public category list is small and read on every page render, so it
goes through the cache-aside pattern (Redis, then the database).  Every
write purges all cached pages.
"""
import logging
from typing import Optional

from starter_api.cache import CacheManager, cache
from starter_api.config import settings
from starter_api.errors import ConflictError, NotFoundError, ValidationError
from starter_api.models import Category
from starter_api.repositories import CategoryRepository
from starter_api.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    Page,
    PageRequest,
    to_page,
)
from starter_api.validators import slugify, validate_optional_text, validate_slug, validate_text

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, categories: CategoryRepository, list_cache: CacheManager = cache) -> None:
        self.categories = categories
        self.cache = list_cache

    async def create(self, data: CategoryCreate) -> Category:
        name = validate_text(data.name, "name", 1, 100)
        slug = self._resolve_slug(data.slug, name)
        await self._ensure_unique(name, slug)

        category = await self.categories.create(
            Category(
                name=name,
                slug=slug,
                description=validate_optional_text(data.description, "description", 2000),
            )
        )
        await self.cache.invalidate_categories()
        return category

    async def get(self, category_id: int) -> Category:
        category = await self.categories.get_by_id(category_id)
        if category is None:
            raise NotFoundError("category not found")
        return category

    async def get_by_slug(self, slug: str) -> Category:
        category = await self.categories.get_by_slug(slug)
        if category is None:
            raise NotFoundError("category not found")
        return category

    async def list(self, page: PageRequest) -> Page:
        cache_key = (
            f"categories:list:{page.page}:{page.page_size}:{page.sort_by}:{page.sort_order}"
        )
        cached = await self.cache.get(cache_key)
        if cached:
            return Page[CategoryResponse].model_validate(cached)

        rows, total = await self.categories.list(
            page.offset, page.page_size, page.sort_by, page.sort_order
        )
        result = to_page(CategoryResponse, rows, total, page)
        await self.cache.set(
            cache_key,
            result.model_dump(mode="json"),
            ttl=int(settings.cache.default_ttl.total_seconds()),
        )
        return result

    async def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = await self.get(category_id)
        changes = data.model_dump(exclude_unset=True)

        name = category.name
        slug = category.slug
        if "name" in changes:
            name = validate_text(changes["name"], "name", 1, 100)
        if "slug" in changes:
            slug = self._resolve_slug(changes["slug"], name)
        await self._ensure_unique(name, slug, exclude_id=category.id)

        category.name = name
        category.slug = slug
        if "description" in changes:
            category.description = validate_optional_text(
                changes["description"], "description", 2000
            )

        await self.categories.update(category)
        await self.cache.invalidate_categories()
        return category

    async def delete(self, category_id: int) -> None:
        category = await self.get(category_id)
        attached = await self.categories.count_articles(category.id)
        if attached:
            await self.categories.detach_articles(category.id)
            logger.info("Detached %d articles from category %d", attached, category.id)
        await self.categories.delete(category)
        await self.cache.invalidate_categories()

    @staticmethod
    def _resolve_slug(slug: Optional[str], name: str) -> str:
        if slug:
            return validate_slug(slug)
        derived = slugify(name)
        if not derived:
            raise ValidationError("slug could not be derived from name", field="slug")
        return derived

    async def _ensure_unique(
        self, name: str, slug: str, exclude_id: Optional[int] = None
    ) -> None:
        existing = await self.categories.get_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError("category name already exists").with_field("field", "name")
        existing = await self.categories.get_by_slug(slug)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError("category slug already exists").with_field("field", "slug")

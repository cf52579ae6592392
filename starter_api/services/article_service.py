"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Articles are always created as drafts.  The status only moves
  ``draft -> published`` (which requires a featured image and stamps
  ``published_at``) and ``published -> archived``.  Archived articles are
  read-only.
- Drafts and archived articles are visible to their author only; anyone
  else gets a 404 rather than a 403 so their existence is not leaked.
- Slugs are derived from the title and made unique by appending ``-2``,
  ``-3`` and so on.
- Service methods flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging
from typing import Optional

from starter_api.database import utcnow
from starter_api.errors import BusinessLogicError, ForbiddenError, NotFoundError, ValidationError
from starter_api.models import Article, ArticleStatus, User
from starter_api.repositories import ArticleFilter, ArticleRepository, CategoryRepository
from starter_api.schemas import (
    ArticleCreate,
    ArticleSummary,
    ArticleUpdate,
    Page,
    PageRequest,
    to_page,
)
from starter_api.validators import (
    MAX_INT,
    slugify,
    validate_optional_text,
    validate_text,
    validate_url,
)

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 100_000
SLUG_BASE_LENGTH = 240

_ALLOWED_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        (ArticleStatus.DRAFT.value, ArticleStatus.PUBLISHED.value),
        (ArticleStatus.PUBLISHED.value, ArticleStatus.ARCHIVED.value),
    }
)


class ArticleService:
    def __init__(self, articles: ArticleRepository, categories: CategoryRepository) -> None:
        self.articles = articles
        self.categories = categories

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, article_id: int, viewer: Optional[User] = None) -> Article:
        """
        Return the article, counting a view when it is published.
        Unpublished articles are only returned to their author.
        """
        article = self._visible_to(await self.articles.get_by_id(article_id), viewer)
        if article.status == ArticleStatus.PUBLISHED.value:
            await self.articles.increment_views(article)
        return article

    async def get_by_slug(self, slug: str, viewer: Optional[User] = None) -> Article:
        article = self._visible_to(await self.articles.get_by_slug(slug), viewer)
        if article.status == ArticleStatus.PUBLISHED.value:
            await self.articles.increment_views(article)
        return article

    async def list_published(self, filters: ArticleFilter, page: PageRequest) -> Page:
        filters.status = ArticleStatus.PUBLISHED.value
        return await self._search(filters, page)

    async def list_mine(self, author: User, filters: ArticleFilter, page: PageRequest) -> Page:
        filters.author_id = author.id
        return await self._search(filters, page)

    async def _search(self, filters: ArticleFilter, page: PageRequest) -> Page:
        rows, total = await self.articles.search(
            filters, page.offset, page.page_size, page.sort_by, page.sort_order
        )
        return to_page(ArticleSummary, rows, total, page)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, author: User, data: ArticleCreate) -> Article:
        title = validate_text(data.title, "title", 1, 200)
        article = Article(
            title=title,
            slug=await self._unique_slug(title),
            content=validate_text(data.content, "content", 1, MAX_CONTENT_LENGTH),
            excerpt=validate_optional_text(data.excerpt, "excerpt", 500),
            featured_image=self._featured_image(data.featured_image),
            category_id=await self._category_id(data.category_id),
            status=ArticleStatus.DRAFT.value,
            view_count=0,
            author_id=author.id,
        )
        await self.articles.create(article)
        logger.info(
            "Article created", extra={"article_id": article.id, "author_id": str(author.id)}
        )
        return await self.articles.reload(article)

    async def update(self, article_id: int, author: User, data: ArticleUpdate) -> Article:
        """Apply only the fields present in the request payload."""
        article = await self._owned(article_id, author)
        if article.status == ArticleStatus.ARCHIVED.value:
            raise BusinessLogicError("archived articles cannot be edited")

        changes = data.model_dump(exclude_unset=True)
        if "title" in changes:
            title = validate_text(changes["title"], "title", 1, 200)
            if title != article.title:
                article.slug = await self._unique_slug(title, exclude_id=article.id)
            article.title = title
        if "content" in changes:
            article.content = validate_text(changes["content"], "content", 1, MAX_CONTENT_LENGTH)
        if "excerpt" in changes:
            article.excerpt = validate_optional_text(changes["excerpt"], "excerpt", 500)
        if "featured_image" in changes:
            image = self._featured_image(changes["featured_image"])
            if image is None and article.status == ArticleStatus.PUBLISHED.value:
                raise BusinessLogicError("published articles must keep a featured image")
            article.featured_image = image
        if "category_id" in changes:
            article.category_id = await self._category_id(changes["category_id"])

        await self.articles.update(article)
        return await self.articles.reload(article)

    async def publish(self, article_id: int, author: User) -> Article:
        article = await self._owned(article_id, author)
        self._check_transition(article, ArticleStatus.PUBLISHED)
        if not article.featured_image:
            raise BusinessLogicError("featured image is required to publish").with_field(
                "field", "featured_image"
            )
        article.status = ArticleStatus.PUBLISHED.value
        article.published_at = utcnow()
        await self.articles.update(article)
        logger.info("Article published", extra={"article_id": article.id})
        return await self.articles.reload(article)

    async def archive(self, article_id: int, author: User) -> Article:
        article = await self._owned(article_id, author)
        self._check_transition(article, ArticleStatus.ARCHIVED)
        article.status = ArticleStatus.ARCHIVED.value
        await self.articles.update(article)
        logger.info("Article archived", extra={"article_id": article.id})
        return await self.articles.reload(article)

    async def delete(self, article_id: int, author: User) -> None:
        article = await self._owned(article_id, author)
        await self.articles.delete(article)
        logger.info("Article deleted", extra={"article_id": article_id})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _visible_to(article: Optional[Article], viewer: Optional[User]) -> Article:
        if article is None:
            raise NotFoundError("article not found")
        if article.status != ArticleStatus.PUBLISHED.value and (
            viewer is None or viewer.id != article.author_id
        ):
            raise NotFoundError("article not found")
        return article

    async def _owned(self, article_id: int, author: User) -> Article:
        article = await self.articles.get_by_id(article_id)
        if article is None:
            raise NotFoundError("article not found")
        if article.author_id != author.id:
            raise ForbiddenError("you can only modify your own articles")
        return article

    @staticmethod
    def _check_transition(article: Article, target: ArticleStatus) -> None:
        if (article.status, target.value) not in _ALLOWED_TRANSITIONS:
            raise BusinessLogicError(
                f"cannot change article status from {article.status} to {target.value}"
            )

    @staticmethod
    def _featured_image(value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return validate_url(value, "featured_image")

    async def _category_id(self, category_id: Optional[int]) -> Optional[int]:
        if category_id is None:
            return None
        if not 1 <= category_id <= MAX_INT:
            raise ValidationError("category does not exist", field="category_id")
        if await self.categories.get_by_id(category_id) is None:
            raise ValidationError("category does not exist", field="category_id")
        return category_id

    async def _unique_slug(self, title: str, exclude_id: Optional[int] = None) -> str:
        base = slugify(title)[:SLUG_BASE_LENGTH].strip("-") or "article"
        slug = base
        suffix = 2
        while await self.articles.slug_exists(slug, exclude_id=exclude_id):
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

import uuid
from typing import Optional

from fastapi import APIRouter, Query

from starter_api.dependencies import (
    ArticleServiceDep,
    CurrentUser,
    OptionalUser,
    Pagination,
    ResourceId,
)
from starter_api.models import ArticleStatus
from starter_api.repositories import ArticleFilter
from starter_api.schemas import (
    APIResponse,
    ArticleCreate,
    ArticleDetail,
    ArticleSummary,
    ArticleUpdate,
    Page,
    success,
)
from starter_api.validators import MAX_INT

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

STATUS_PATTERN = "^(" + "|".join(s.value for s in ArticleStatus) + ")$"


@router.get("", response_model=APIResponse[Page[ArticleSummary]])
async def list_articles(
    pagination: Pagination,
    articles: ArticleServiceDep,
    q: Optional[str] = Query(None, max_length=200, description="Search title and content."),
    category_id: Optional[int] = Query(None, ge=1, le=MAX_INT),
    author_id: Optional[uuid.UUID] = Query(None),
):
    filters = ArticleFilter(q=q, category_id=category_id, author_id=author_id)
    return success(await articles.list_published(filters, pagination))


@router.get("/mine", response_model=APIResponse[Page[ArticleSummary]])
async def list_my_articles(
    pagination: Pagination,
    user: CurrentUser,
    articles: ArticleServiceDep,
    q: Optional[str] = Query(None, max_length=200),
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    category_id: Optional[int] = Query(None, ge=1, le=MAX_INT),
):
    filters = ArticleFilter(q=q, status=status, category_id=category_id)
    return success(await articles.list_mine(user, filters, pagination))


@router.get("/slug/{slug}", response_model=APIResponse[ArticleDetail])
async def get_article_by_slug(slug: str, viewer: OptionalUser, articles: ArticleServiceDep):
    return success(ArticleDetail.model_validate(await articles.get_by_slug(slug, viewer)))


@router.get("/{article_id}", response_model=APIResponse[ArticleDetail])
async def get_article(article_id: ResourceId, viewer: OptionalUser, articles: ArticleServiceDep):
    return success(ArticleDetail.model_validate(await articles.get(article_id, viewer)))


@router.post("", status_code=201, response_model=APIResponse[ArticleDetail])
async def create_article(data: ArticleCreate, user: CurrentUser, articles: ArticleServiceDep):
    article = await articles.create(user, data)
    return success(ArticleDetail.model_validate(article), "Article created")


@router.put("/{article_id}", response_model=APIResponse[ArticleDetail])
async def update_article(
    article_id: ResourceId, data: ArticleUpdate, user: CurrentUser, articles: ArticleServiceDep
):
    article = await articles.update(article_id, user, data)
    return success(ArticleDetail.model_validate(article), "Article updated")


@router.delete("/{article_id}", status_code=204)
async def delete_article(article_id: ResourceId, user: CurrentUser, articles: ArticleServiceDep):
    await articles.delete(article_id, user)


@router.post("/{article_id}/publish", response_model=APIResponse[ArticleDetail])
async def publish_article(article_id: ResourceId, user: CurrentUser, articles: ArticleServiceDep):
    article = await articles.publish(article_id, user)
    return success(ArticleDetail.model_validate(article), "Article published")


@router.post("/{article_id}/archive", response_model=APIResponse[ArticleDetail])
async def archive_article(article_id: ResourceId, user: CurrentUser, articles: ArticleServiceDep):
    article = await articles.archive(article_id, user)
    return success(ArticleDetail.model_validate(article), "Article archived")

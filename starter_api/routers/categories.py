from fastapi import APIRouter

from starter_api.dependencies import CategoryServiceDep, CurrentUser, Pagination, ResourceId
from starter_api.schemas import (
    APIResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    Page,
    success,
)

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


@router.get("", response_model=APIResponse[Page[CategoryResponse]])
async def list_categories(pagination: Pagination, categories: CategoryServiceDep):
    return success(await categories.list(pagination))


@router.get("/slug/{slug}", response_model=APIResponse[CategoryResponse])
async def get_category_by_slug(slug: str, categories: CategoryServiceDep):
    return success(CategoryResponse.model_validate(await categories.get_by_slug(slug)))


@router.get("/{category_id}", response_model=APIResponse[CategoryResponse])
async def get_category(category_id: ResourceId, categories: CategoryServiceDep):
    return success(CategoryResponse.model_validate(await categories.get(category_id)))


@router.post("", status_code=201, response_model=APIResponse[CategoryResponse])
async def create_category(data: CategoryCreate, user: CurrentUser, categories: CategoryServiceDep):
    category = await categories.create(data)
    return success(CategoryResponse.model_validate(category), "Category created")


@router.put("/{category_id}", response_model=APIResponse[CategoryResponse])
async def update_category(
    category_id: ResourceId, data: CategoryUpdate, user: CurrentUser, categories: CategoryServiceDep
):
    category = await categories.update(category_id, data)
    return success(CategoryResponse.model_validate(category), "Category updated")


@router.delete("/{category_id}", status_code=204)
async def delete_category(category_id: ResourceId, user: CurrentUser, categories: CategoryServiceDep):
    await categories.delete(category_id)

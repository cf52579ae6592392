from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Query

from starter_api.dependencies import CurrentUser, Pagination, ProductServiceDep, ResourceId
from starter_api.repositories import ProductFilter
from starter_api.schemas import (
    APIResponse,
    Page,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    StockAdjustment,
    success,
)

router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.get("", response_model=APIResponse[Page[ProductResponse]])
async def list_products(
    pagination: Pagination,
    products: ProductServiceDep,
    q: Optional[str] = Query(None, max_length=200, description="Search name, SKU and description."),
    min_price: Optional[Decimal] = Query(None),
    max_price: Optional[Decimal] = Query(None),
    in_stock: Optional[bool] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    filters = ProductFilter(
        q=q, min_price=min_price, max_price=max_price, in_stock=in_stock, is_active=is_active
    )
    return success(await products.list(filters, pagination))


@router.get("/{product_id}", response_model=APIResponse[ProductResponse])
async def get_product(product_id: ResourceId, products: ProductServiceDep):
    return success(ProductResponse.model_validate(await products.get(product_id)))


@router.post("", status_code=201, response_model=APIResponse[ProductResponse])
async def create_product(data: ProductCreate, user: CurrentUser, products: ProductServiceDep):
    product = await products.create(data)
    return success(ProductResponse.model_validate(product), "Product created")


@router.put("/{product_id}", response_model=APIResponse[ProductResponse])
async def update_product(
    product_id: ResourceId, data: ProductUpdate, user: CurrentUser, products: ProductServiceDep
):
    product = await products.update(product_id, data)
    return success(ProductResponse.model_validate(product), "Product updated")


@router.delete("/{product_id}", status_code=204)
async def delete_product(product_id: ResourceId, user: CurrentUser, products: ProductServiceDep):
    await products.delete(product_id)


@router.post("/{product_id}/stock", response_model=APIResponse[ProductResponse])
async def adjust_stock(
    product_id: ResourceId, data: StockAdjustment, user: CurrentUser, products: ProductServiceDep
):
    product = await products.adjust_stock(product_id, data.delta, data.reason)
    return success(ProductResponse.model_validate(product), "Stock adjusted")

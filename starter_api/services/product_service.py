"""
Product service: catalogue CRUD with soft delete and stock adjustment.

SKUs are normalised to uppercase and stay reserved after a product is
soft-deleted, matching the unique index on the column.
"""
import logging
from typing import Optional

from starter_api.errors import BusinessLogicError, ConflictError, NotFoundError, ValidationError
from starter_api.models import Product
from starter_api.repositories import ProductFilter, ProductRepository
from starter_api.schemas import (
    Page,
    PageRequest,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    to_page,
)
from starter_api.validators import (
    validate_optional_text,
    validate_price,
    validate_sku,
    validate_stock,
    validate_text,
)

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, products: ProductRepository) -> None:
        self.products = products

    async def create(self, data: ProductCreate) -> Product:
        sku = validate_sku(data.sku)
        product = Product(
            name=validate_text(data.name, "name", 1, 200),
            sku=sku,
            description=validate_optional_text(data.description, "description", 5000),
            price=validate_price(data.price),
            stock=validate_stock(data.stock),
            is_active=data.is_active,
        )
        await self._ensure_sku_free(sku)
        return await self.products.create(product)

    async def get(self, product_id: int) -> Product:
        product = await self.products.get_by_id(product_id)
        if product is None:
            raise NotFoundError("product not found")
        return product

    async def list(self, filters: ProductFilter, page: PageRequest) -> Page:
        if filters.min_price is not None:
            filters.min_price = validate_price(filters.min_price)
        if filters.max_price is not None:
            filters.max_price = validate_price(filters.max_price)
        if (
            filters.min_price is not None
            and filters.max_price is not None
            and filters.min_price > filters.max_price
        ):
            raise ValidationError("min_price must not exceed max_price", field="min_price")

        rows, total = await self.products.search(
            filters, page.offset, page.page_size, page.sort_by, page.sort_order
        )
        return to_page(ProductResponse, rows, total, page)

    async def update(self, product_id: int, data: ProductUpdate) -> Product:
        """Apply only the fields present in the request payload."""
        product = await self.get(product_id)
        changes = data.model_dump(exclude_unset=True)

        if "name" in changes:
            product.name = validate_text(changes["name"], "name", 1, 200)
        if "sku" in changes:
            sku = validate_sku(changes["sku"])
            if sku != product.sku:
                await self._ensure_sku_free(sku)
            product.sku = sku
        if "description" in changes:
            product.description = validate_optional_text(changes["description"], "description", 5000)
        if "price" in changes:
            product.price = validate_price(changes["price"])
        if "stock" in changes:
            product.stock = validate_stock(changes["stock"])
        if "is_active" in changes:
            if changes["is_active"] is None:
                raise ValidationError("is_active must be true or false", field="is_active")
            product.is_active = changes["is_active"]

        return await self.products.update(product)

    async def delete(self, product_id: int) -> None:
        product = await self.get(product_id)
        await self.products.soft_delete(product)
        logger.info("Product deleted", extra={"product_id": product_id, "sku": product.sku})

    async def adjust_stock(
        self, product_id: int, delta: int, reason: Optional[str] = None
    ) -> Product:
        """Add *delta* (negative to remove) to the stock level."""
        product = await self.products.adjust_stock(product_id, delta)
        if product is None:
            current = await self.products.fetch_current(product_id)
            if current is None:
                raise NotFoundError("product not found")
            if current.stock + delta < 0:
                raise BusinessLogicError("insufficient stock").with_fields(
                    {"available": current.stock, "requested": -delta}
                )
            raise BusinessLogicError("stock level too large").with_fields(
                {"available": current.stock, "requested": delta}
            )
        logger.info(
            "Stock adjusted",
            extra={
                "product_id": product_id,
                "delta": delta,
                "stock": product.stock,
                "reason": reason,
            },
        )
        return product

    async def _ensure_sku_free(self, sku: str) -> None:
        if await self.products.get_by_sku(sku, include_deleted=True) is not None:
            raise ConflictError("product with this SKU already exists").with_field("field", "sku")

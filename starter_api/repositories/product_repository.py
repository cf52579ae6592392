from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Select, cast, or_, select, update

from starter_api.database import utcnow
from starter_api.models import Product
from starter_api.repositories.base import SQLRepository
from starter_api.validators import MAX_INT


@dataclass
class ProductFilter:
    q: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    in_stock: Optional[bool] = None
    is_active: Optional[bool] = None

    def conditions(self) -> list:
        conditions = [Product.deleted_at.is_(None)]
        if self.q:
            conditions.append(
                or_(
                    Product.name.icontains(self.q, autoescape=True),
                    Product.sku.icontains(self.q, autoescape=True),
                    Product.description.icontains(self.q, autoescape=True),
                )
            )
        if self.min_price is not None:
            conditions.append(Product.price >= self.min_price)
        if self.max_price is not None:
            conditions.append(Product.price <= self.max_price)
        if self.in_stock is True:
            conditions.append(Product.stock > 0)
        elif self.in_stock is False:
            conditions.append(Product.stock == 0)
        if self.is_active is not None:
            conditions.append(Product.is_active.is_(self.is_active))
        return conditions


class ProductRepository(SQLRepository[Product]):
    """Products are soft-deleted; reads never return rows with ``deleted_at`` set."""

    model = Product
    sortable_columns = frozenset({"created_at", "name", "price", "stock", "sku"})

    def _base_query(self) -> Select:
        return select(Product).where(Product.deleted_at.is_(None))

    async def get_by_sku(self, sku: str, include_deleted: bool = False) -> Optional[Product]:
        stmt = select(Product) if include_deleted else self._base_query()
        result = await self.session.execute(stmt.where(Product.sku == sku))
        return result.scalar_one_or_none()

    async def search(
        self,
        filters: ProductFilter,
        offset: int = 0,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[Product], int]:
        return await self.paginate(
            select(Product), filters.conditions(), offset, limit, sort_by, sort_order
        )

    async def soft_delete(self, product: Product) -> None:
        product.deleted_at = utcnow()
        await self.session.flush()

    async def fetch_current(self, product_id: int) -> Optional[Product]:
        """Re-read a live product, overwriting any stale copy in the session."""
        stmt = (
            self._base_query()
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def adjust_stock(self, product_id: int, delta: int) -> Optional[Product]:
        """
        Add *delta* to the stock of a live product in a single UPDATE, so
        concurrent adjustments cannot overwrite each other.

        Returns the refreshed product, or ``None`` when no row matched:
        the product is missing or deleted, or the new level would leave
        ``0..MAX_INT``.
        """
        level = cast(Product.stock, BigInteger) + delta
        result = await self.session.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.deleted_at.is_(None),
                level >= 0,
                level <= MAX_INT,
            )
            .values(stock=level)
            .returning(Product.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            return None
        return await self.fetch_current(product_id)

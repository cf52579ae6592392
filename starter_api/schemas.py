import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from starter_api.validators import MAX_INT

T = TypeVar("T")


# --- Envelope ---

class ErrorInfo(BaseModel):
    code: str
    message: str
    details: str | None = None
    fields: dict[str, Any] | None = None


class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str = "OK"
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: ErrorInfo


def success(data: Any = None, message: str = "OK") -> APIResponse:
    return APIResponse(success=True, message=message, data=data)


# --- Pagination ---

@dataclass
class PageRequest:
    page: int = 1
    page_size: int = 20
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and page size."""
        return (self.page - 1) * self.page_size


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    pages: int


def to_page(schema: Type[BaseModel], rows: Iterable[Any], total: int, request: PageRequest) -> Page:
    """Build a ``Page`` of *schema* items from ORM rows."""
    return Page[schema](
        items=[schema.model_validate(row) for row in rows],
        total=total,
        page=request.page,
        page_size=request.page_size,
        pages=math.ceil(total / request.page_size) if total > 0 else 0,
    )


# --- User ---

class UserSummary(BaseModel):
    id: uuid.UUID
    username: str
    full_name: str | None = None
    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserSummary):
    email: str
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class UserUpdate(BaseModel):
    username: str | None = Field(None, max_length=50)
    full_name: str | None = Field(None, max_length=150)


# --- Auth ---

class RegisterRequest(BaseModel):
    email: str = Field(max_length=255)
    username: str = Field(max_length=50)
    password: str = Field(max_length=72)
    full_name: str | None = Field(None, max_length=150)


class LoginRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=72)


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: int
    token_type: str = "Bearer"


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenPairResponse


# --- Category ---

class CategorySummary(BaseModel):
    id: int
    name: str
    slug: str
    model_config = ConfigDict(from_attributes=True)


class CategoryCreate(BaseModel):
    name: str = Field(max_length=100)
    slug: str | None = Field(None, max_length=120)
    description: str | None = None


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, max_length=100)
    slug: str | None = Field(None, max_length=120)
    description: str | None = None


class CategoryResponse(CategorySummary):
    description: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(max_length=200)
    content: str
    excerpt: str | None = Field(None, max_length=500)
    featured_image: str | None = Field(None, max_length=500)
    category_id: int | None = None


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, max_length=200)
    content: str | None = None
    excerpt: str | None = Field(None, max_length=500)
    featured_image: str | None = Field(None, max_length=500)
    category_id: int | None = None


class ArticleSummary(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: str | None
    featured_image: str | None
    status: str
    published_at: datetime | None
    view_count: int
    author_id: uuid.UUID
    category_id: int | None
    author: UserSummary | None = None
    category: CategorySummary | None = None
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleSummary):
    content: str


# --- Product ---

class ProductCreate(BaseModel):
    name: str = Field(max_length=200)
    sku: str = Field(max_length=64)
    description: str | None = None
    price: Decimal
    stock: int = 0
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: str | None = Field(None, max_length=200)
    sku: str | None = Field(None, max_length=64)
    description: str | None = None
    price: Decimal | None = None
    stock: int | None = None
    is_active: bool | None = None


class StockAdjustment(BaseModel):
    delta: int = Field(ge=-MAX_INT, le=MAX_INT)
    reason: str | None = Field(None, max_length=200)


class ProductResponse(BaseModel):
    id: int
    name: str
    sku: str
    description: str | None
    price: Decimal
    stock: int
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Health ---

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: dict = {}
    cache: dict = {}

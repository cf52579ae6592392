from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Path, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from starter_api.config import settings
from starter_api.database import get_db
from starter_api.errors import UnauthorizedError
from starter_api.models import User
from starter_api.repositories import (
    ArticleRepository,
    CategoryRepository,
    ProductRepository,
    SessionRepository,
    UserRepository,
)
from starter_api.schemas import PageRequest
from starter_api.security import JWTManager, PasswordHasher
from starter_api.services.article_service import ArticleService
from starter_api.services.auth_service import AuthContext, AuthService
from starter_api.services.category_service import CategoryService
from starter_api.services.product_service import ProductService
from starter_api.services.user_service import UserService
from starter_api.validators import MAX_INT


class PaginationParams(PageRequest):
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1, at most ``MAX_INT``).
    page_size:
        Number of items per page, clamped to ``server.max_page_size``
        regardless of the value supplied by the caller.
    sort_by:
        Column name to sort by.  Repositories map it onto a whitelist and
        fall back to ``created_at`` for anything else.
    sort_order:
        ``"asc"`` or ``"desc"`` (enforced by the regex pattern).
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, le=MAX_INT, description="Page number (1-based)."),
        page_size: int = Query(
            settings.server.default_page_size,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort_by: str = Query("created_at", description="Column name to sort results by."),
        sort_order: str = Query(
            "desc", pattern="^(asc|desc)$", description="Sort direction: 'asc' or 'desc'."
        ),
    ) -> None:
        # server.max_page_size may be lower than the schema limit.
        super().__init__(
            page=page,
            page_size=min(page_size, settings.server.max_page_size),
            sort_by=sort_by,
            sort_order=sort_order,
        )


Pagination = Annotated[PaginationParams, Depends()]
ResourceId = Annotated[int, Path(ge=1, le=MAX_INT)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Security singletons
# ---------------------------------------------------------------------------

@lru_cache
def get_jwt_manager() -> JWTManager:
    return JWTManager.from_settings(settings.jwt)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.auth.bcrypt_rounds)


# ---------------------------------------------------------------------------
# Services (one instance per request, sharing the request's session)
# ---------------------------------------------------------------------------

def get_auth_service(
    db: DbSession,
    jwt_manager: Annotated[JWTManager, Depends(get_jwt_manager)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> AuthService:
    return AuthService(
        UserRepository(db),
        SessionRepository(db),
        jwt_manager,
        hasher,
        session_ttl=settings.auth.session_ttl,
    )


def get_user_service(db: DbSession) -> UserService:
    return UserService(UserRepository(db), SessionRepository(db))


def get_category_service(db: DbSession) -> CategoryService:
    return CategoryService(CategoryRepository(db))


def get_article_service(db: DbSession) -> ArticleService:
    return ArticleService(ArticleRepository(db), CategoryRepository(db))


def get_product_service(db: DbSession) -> ProductService:
    return ProductService(ProductRepository(db))


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
CategoryServiceDep = Annotated[CategoryService, Depends(get_category_service)]
ArticleServiceDep = Annotated[ArticleService, Depends(get_article_service)]
ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)
BearerCredentials = Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)]


async def require_auth(
    request: Request, credentials: BearerCredentials, auth_service: AuthServiceDep
) -> AuthContext:
    """
    Resolve the ``Authorization: Bearer`` token to a user and session,
    failing with 401 when it is missing or no longer valid.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authorization token required")

    context = await auth_service.validate_token(credentials.credentials)
    request.state.user = context.user
    request.state.session = context.session
    request.state.claims = context.claims
    return context


async def optional_auth(
    request: Request, credentials: BearerCredentials, auth_service: AuthServiceDep
) -> Optional[AuthContext]:
    """Like ``require_auth``, but anonymous or invalid callers yield ``None``."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await require_auth(request, credentials, auth_service)
    except UnauthorizedError:
        return None


def get_current_user(context: Annotated[AuthContext, Depends(require_auth)]) -> User:
    return context.user


def get_optional_user(
    context: Annotated[Optional[AuthContext], Depends(optional_auth)],
) -> Optional[User]:
    return context.user if context else None


CurrentAuth = Annotated[AuthContext, Depends(require_auth)]
CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]


def client_info(request: Request) -> tuple[Optional[str], Optional[str]]:
    """Return ``(user_agent, ip_address)`` for session bookkeeping."""
    user_agent = request.headers.get("user-agent")
    ip_address = request.client.host if request.client else None
    return user_agent, ip_address

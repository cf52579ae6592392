# Repositories package.
#
# One class per table, constructed with the request's AsyncSession:
#
#   user_repository       - User and Session (login sessions)
#   category_repository   - Category
#   article_repository    - Article search, eager-loaded reads, view counter
#   product_repository    - Product search and soft delete
#
# Repositories flush but never commit; the ``get_db`` dependency owns the
# transaction boundary.
from starter_api.repositories.article_repository import ArticleFilter, ArticleRepository
from starter_api.repositories.category_repository import CategoryRepository
from starter_api.repositories.product_repository import ProductFilter, ProductRepository
from starter_api.repositories.user_repository import SessionRepository, UserRepository

__all__ = [
    "ArticleFilter",
    "ArticleRepository",
    "CategoryRepository",
    "ProductFilter",
    "ProductRepository",
    "SessionRepository",
    "UserRepository",
]

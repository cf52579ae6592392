# Services package.
#
# Each module exposes one class holding the business rules of a single
# aggregate; classes are constructed per request with their repositories:
#
#   auth_service       - register / login / refresh / logout, token checks
#   user_service       - profile reads and self-service updates
#   category_service   - CRUD + cached public list for Category
#   article_service    - CRUD, visibility and status workflow for Article
#   product_service    - CRUD, soft delete and stock for Product
#
# Services flush but never commit, so the router layer controls the
# transaction boundary via the ``get_db`` dependency.

# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single entity:
#
#   article_service : CRUD + pagination + cache + tag association for Article
#   comment_service : CRUD for Comment
#   tag_service     : CRUD + per-tag article counts for Tag
#   role_service    : CRUD + default tiers for Role
#   user_service    : CRUD + credential checks for User
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.

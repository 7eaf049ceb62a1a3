# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single aggregate:
#
#   auth_service     : registration, login, password reset
#   user_service     : profile reads/updates, soft delete
#   category_service : category CRUD
#   post_service     : post CRUD, tag replacement, cache-aside reads
#   comment_service  : one-level threaded comments
#   file_service     : upload metadata + stored bytes
#   stats_service    : admin dashboard snapshot
#
# Service functions accept an AsyncSession (or, for stats, the session
# factory) as their first argument so that the router layer controls the
# transaction boundary via the ``get_db`` dependency.  Ownership checks
# happen here, after the resource is loaded, through ``ensure_can_mutate``.

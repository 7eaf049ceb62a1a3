from fastapi import Query

from devnews.config import settings


class PaginationParams:
    """
    Query parameters shared by the paginated listings (``GET /api/posts``
    and the admin ``GET /api/users``).

    ``page`` is 1-based.  ``page_size`` defaults to
    ``settings.DEFAULT_PAGE_SIZE``; values above ``settings.MAX_PAGE_SIZE`` are a 400.
    ``sort_by`` is only honoured by listings that whitelist columns; the
    user listing always returns newest first.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1),
        page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
        sort_by: str = Query("created_at"),
        sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    ) -> None:
        self.page = page
        self.page_size = page_size
        self.sort_by = sort_by
        self.sort_order = sort_order

"""
Pagination, search and sorting query parameters shared by list endpoints
"""
import math
from typing import Optional

from fastapi import Query

from .config import settings


class PaginationParams:
    """
    FastAPI dependency collecting ?page=&limit=&search=&sortBy=&order=

    Usage:
        @router.get("/")
        async def list_items(pagination: PaginationParams = Depends()):
            ...
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)"),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
        search: Optional[str] = Query(None, max_length=255, description="Free text search"),
        sort_by: Optional[str] = Query(None, alias="sortBy", description="Field to sort by"),
        order: str = Query("DESC", pattern="(?i)^(asc|desc)$", description="Sort direction"),
    ):
        self.page = page
        self.limit = limit
        self.search = search.strip() if search and search.strip() else None
        self.sort_by = sort_by
        self.order = order.upper()

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination_meta(total: int, page: int, limit: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def paginated(items: list, total: int, params: PaginationParams, **extra) -> dict:
    """Standard success envelope for list endpoints"""
    response = {
        "status": "success",
        "data": items,
        "count": len(items),
        "pagination": pagination_meta(total, params.page, params.limit),
    }
    response.update(extra)
    return response

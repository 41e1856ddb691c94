from fastapi import Query

from app.config import settings
from app.interfaces.api.v1.schemas.pagination import PaginationParams


def get_pagination_params(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    search: str | None = Query(default=None, description="Case-insensitive substring match"),
) -> PaginationParams:
    search_term = (search or "").strip() or None
    return PaginationParams(offset=offset, limit=limit, search=search_term)

from math import ceil
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from app.interfaces.api.v1.schemas.pagination import PaginationMeta


def apply_search_filter(query: Select, search: str | None, search_columns: list[Any]) -> Select:
    if not search or not search_columns:
        return query
    pattern = f"%{search}%"
    return query.where(or_(*(column.ilike(pattern) for column in search_columns)))


def count_rows(db: Session, query: Select) -> int:
    return db.execute(select(func.count()).select_from(query.order_by(None).subquery())).scalar_one()


def _page_count(rows: int, limit: int) -> int:
    return ceil(rows / limit) if rows > 0 else 0


def paginate_scalars(
    db: Session,
    base_query: Select,
    *,
    offset: int,
    limit: int,
    search: str | None,
    search_columns: list[Any],
) -> tuple[list[Any], PaginationMeta]:
    """Page ``base_query`` after applying ``search``; ``total`` ignores the search, ``filtered_total`` does not."""
    filtered_query = apply_search_filter(base_query, search, search_columns)
    total = count_rows(db, base_query)
    filtered_total = count_rows(db, filtered_query)
    items = list(db.execute(filtered_query.offset(offset).limit(limit)).scalars().all())

    meta = PaginationMeta(
        offset=offset,
        limit=limit,
        total=total,
        filtered_total=filtered_total,
        total_pages=_page_count(total, limit),
        filtered_total_pages=_page_count(filtered_total, limit),
        current_page=offset // limit + 1 if filtered_total > 0 else 0,
        has_next=offset + limit < filtered_total,
        has_prev=offset > 0,
    )
    return items, meta


def count_grouped(db: Session, base_query: Select, column: Any) -> dict[Any, int]:
    """Count rows of ``base_query`` per distinct value of ``column``."""
    subquery = base_query.order_by(None).subquery()
    grouped_column = subquery.c[column.key]
    rows = db.execute(select(grouped_column, func.count()).group_by(grouped_column)).all()
    return {value: count for value, count in rows}

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.application.services.fee_category_service import (
    create_fee_category,
    get_fee_category_stats,
    list_fee_categories_query,
    serialize_fee_category_response,
)
from app.application.services.pagination_service import paginate_scalars
from app.domain.roles import SCHOOL_READ_ROLES, SCHOOL_WRITE_ROLES
from app.infrastructure.db.models import FeeCategory
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_school_id, require_roles
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.fee_category import (
    FeeCategoryCreate,
    FeeCategoryListResponse,
    FeeCategoryResponse,
)
from app.interfaces.api.v1.schemas.pagination import PaginationParams

router = APIRouter(prefix="/fee-categories", tags=["fee-categories"])


@router.get(
    "",
    response_model=FeeCategoryListResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="List fee categories",
    description="List the fee category catalog of the caller's school with mandatory/recurring counts.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Insufficient school role"}},
)
def get_fee_categories(
    school_id: int = Depends(get_current_school_id),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    items, meta = paginate_scalars(
        db=db,
        base_query=list_fee_categories_query(school_id=school_id),
        offset=pagination.offset,
        limit=pagination.limit,
        search=pagination.search,
        search_columns=[FeeCategory.name, FeeCategory.description],
    )
    return {
        "items": [serialize_fee_category_response(item) for item in items],
        "pagination": meta,
        "stats": get_fee_category_stats(db, school_id=school_id),
    }


@router.post(
    "",
    response_model=FeeCategoryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Create fee category",
    description="Add a category to the school's fee catalog (school admin only).",
    responses={
        400: {"description": "Invalid category"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        409: {"description": "Category name already used"},
    },
)
def create_fee_category_endpoint(
    payload: FeeCategoryCreate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    category = create_fee_category(db=db, school_id=school_id, payload=payload)
    return serialize_fee_category_response(category)

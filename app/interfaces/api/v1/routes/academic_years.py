from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.application.services.academic_year_service import (
    create_academic_year,
    list_academic_years_query,
    serialize_academic_year_response,
)
from app.application.services.pagination_service import paginate_scalars
from app.domain.roles import SCHOOL_READ_ROLES, SCHOOL_WRITE_ROLES
from app.infrastructure.db.models import AcademicYear
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_school_id, require_roles
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.academic_year import (
    AcademicYearCreate,
    AcademicYearListResponse,
    AcademicYearResponse,
)
from app.interfaces.api.v1.schemas.pagination import PaginationParams

router = APIRouter(prefix="/academic-years", tags=["academic-years"])


@router.get(
    "",
    response_model=AcademicYearListResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="List academic years",
    description="List the academic years of the caller's school, newest first.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Insufficient school role"}},
)
def get_academic_years(
    school_id: int = Depends(get_current_school_id),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    items, meta = paginate_scalars(
        db=db,
        base_query=list_academic_years_query(school_id=school_id),
        offset=pagination.offset,
        limit=pagination.limit,
        search=pagination.search,
        search_columns=[AcademicYear.name],
    )
    return {"items": [serialize_academic_year_response(item) for item in items], "pagination": meta}


@router.post(
    "",
    response_model=AcademicYearResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Create academic year",
    description="Create an academic year with its term count (school admin only).",
    responses={
        400: {"description": "Invalid dates or name"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        409: {"description": "Academic year name already used"},
    },
)
def create_academic_year_endpoint(
    payload: AcademicYearCreate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    academic_year = create_academic_year(db=db, school_id=school_id, payload=payload)
    return serialize_academic_year_response(academic_year)

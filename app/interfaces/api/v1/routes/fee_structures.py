from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.application.services.fee_structure_service import (
    change_fee_structure_status,
    create_fee_structure,
    delete_fee_structure,
    get_fee_structure_by_id,
    get_fee_structure_stats,
    list_fee_structures_query,
    serialize_fee_structure_detail_response,
    serialize_fee_structure_response,
    update_fee_structure,
)
from app.application.services.pagination_service import paginate_scalars
from app.domain.fee_enums import FeeStructureStatus, ProgramType
from app.domain.roles import SCHOOL_READ_ROLES, SCHOOL_WRITE_ROLES
from app.infrastructure.db.models import FeeStructure
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_school_id, require_roles
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.fee_structure import (
    FeeStructureCreate,
    FeeStructureDetailResponse,
    FeeStructureListResponse,
    FeeStructureResponse,
    FeeStructureStatusUpdate,
    FeeStructureUpdate,
)
from app.interfaces.api.v1.schemas.pagination import PaginationParams

router = APIRouter(prefix="/fee-structures", tags=["fee-structures"])

NOT_FOUND_DETAIL = "Fee structure not found"


def _structure_or_404(db: Session, structure_id: int, school_id: int) -> FeeStructure:
    structure = get_fee_structure_by_id(db=db, structure_id=structure_id, school_id=school_id)
    if structure is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)
    return structure


@router.get(
    "",
    response_model=FeeStructureListResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="List fee structures",
    description="List fee structures of the caller's school. Grade filtering ignores case.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Insufficient school role"}},
)
def get_fee_structures(
    academic_year_id: int | None = Query(default=None),
    grade_level: str | None = Query(default=None),
    program_type: ProgramType | None = Query(default=None),
    structure_status: FeeStructureStatus | None = Query(default=None, alias="status"),
    school_id: int = Depends(get_current_school_id),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    base_query = list_fee_structures_query(
        school_id=school_id,
        academic_year_id=academic_year_id,
        grade_level=grade_level,
        program_type=program_type,
        status=structure_status,
    )
    items, meta = paginate_scalars(
        db=db,
        base_query=base_query,
        offset=pagination.offset,
        limit=pagination.limit,
        search=pagination.search,
        search_columns=[FeeStructure.name, FeeStructure.grade_level],
    )
    return {
        "items": [serialize_fee_structure_response(item) for item in items],
        "pagination": meta,
        "stats": get_fee_structure_stats(db, base_query),
    }


@router.post(
    "",
    response_model=FeeStructureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Create fee structure",
    description=(
        "Create a fee structure with its category items in one step (school admin only). "
        "Category amounts must add up to the total within one cent."
    ),
    responses={
        400: {"description": "Invalid structure or category amounts"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": "Academic year or category not found"},
        409: {"description": "A structure already covers this grade/program in the academic year"},
    },
)
def create_fee_structure_endpoint(
    payload: FeeStructureCreate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    structure = create_fee_structure(db=db, school_id=school_id, payload=payload)
    return serialize_fee_structure_response(structure)


@router.get(
    "/{structure_id}",
    response_model=FeeStructureDetailResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="Get fee structure",
    description="Fetch one fee structure with its items and payment schedules.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": NOT_FOUND_DETAIL},
    },
)
def get_fee_structure_endpoint(
    structure_id: int,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    structure = _structure_or_404(db, structure_id, school_id)
    return serialize_fee_structure_detail_response(structure)


@router.put(
    "/{structure_id}",
    response_model=FeeStructureResponse,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Update fee structure",
    description=(
        "Replace the structure fields and its full category list (school admin only). "
        "Generated payment schedules are recomputed when the total or academic year changes."
    ),
    responses={
        400: {"description": "Invalid structure or category amounts"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": NOT_FOUND_DETAIL},
        409: {"description": "Conflicting structure or archived structure"},
    },
)
def update_fee_structure_endpoint(
    structure_id: int,
    payload: FeeStructureUpdate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    structure = _structure_or_404(db, structure_id, school_id)
    updated = update_fee_structure(db=db, structure=structure, payload=payload)
    return serialize_fee_structure_response(updated)


@router.post(
    "/{structure_id}/status",
    response_model=FeeStructureResponse,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Change fee structure status",
    description="Publish or archive a fee structure. Archived structures cannot be reopened.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": NOT_FOUND_DETAIL},
        409: {"description": "Transition not allowed"},
    },
)
def change_fee_structure_status_endpoint(
    structure_id: int,
    payload: FeeStructureStatusUpdate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    structure = _structure_or_404(db, structure_id, school_id)
    updated = change_fee_structure_status(db=db, structure=structure, target=payload.status)
    return serialize_fee_structure_response(updated)


@router.delete(
    "/{structure_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Delete fee structure",
    description="Delete a fee structure. Published structures with assignments must be archived instead.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": NOT_FOUND_DETAIL},
        409: {"description": "Structure is in use"},
    },
)
def delete_fee_structure_endpoint(
    structure_id: int,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    structure = _structure_or_404(db, structure_id, school_id)
    delete_fee_structure(db=db, structure=structure)

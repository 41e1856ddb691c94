from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.application.errors import ForbiddenError, PartialFailureError
from app.application.services.assignment_service import (
    cancel_assignment,
    create_assignment,
    get_assignment_by_id,
    get_assignment_stats,
    list_assignments_query,
    serialize_assignment_response,
)
from app.application.services.auto_assign_service import auto_assign_fees
from app.application.services.pagination_service import paginate_scalars
from app.domain.assignment_status import AssignmentStatus
from app.domain.roles import SCHOOL_READ_ROLES, SCHOOL_WRITE_ROLES
from app.infrastructure.db.models import Student, UserProfile
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_school_id, require_roles
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.assignment import (
    AutoAssignRequest,
    AutoAssignResponse,
    StudentFeeAssignmentCreate,
    StudentFeeAssignmentListResponse,
    StudentFeeAssignmentResponse,
)
from app.interfaces.api.v1.schemas.pagination import PaginationParams

router = APIRouter(prefix="/fee-assignments", tags=["fee-assignments"])


@router.post(
    "/auto-assign",
    response_model=AutoAssignResponse,
    summary="Assign a fee structure to eligible students",
    description=(
        "Match active students whose grade equals the structure grade and create one assignment per "
        "student and schedule. Students already holding an active assignment for the structure are skipped. "
        "With `dry_run` nothing is written; dry runs are open to school staff, real runs need a school admin. "
        "When some insert batches fail the response is 207 with the created count and batch errors."
    ),
    responses={
        207: {"description": "Some assignment batches failed; committed batches are kept"},
        400: {"description": "Structure and academic year do not match"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": "Structure, academic year or schedules not found"},
    },
)
def auto_assign_endpoint(
    payload: AutoAssignRequest,
    profile: UserProfile = Depends(require_roles(SCHOOL_READ_ROLES)),
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    if not payload.dry_run and profile.role not in SCHOOL_WRITE_ROLES:
        raise ForbiddenError("Only school admins can create fee assignments")

    result = auto_assign_fees(
        db=db,
        school_id=school_id,
        academic_year_id=payload.academic_year_id,
        structure_id=payload.structure_id,
        schedule_ids=payload.schedule_ids,
        dry_run=payload.dry_run,
    )
    if result.is_partial:
        raise PartialFailureError(
            result.message,
            created_count=result.created_count,
            errors=result.errors,
            summary=result.summary,
        )
    return result.as_response()


@router.get(
    "",
    response_model=StudentFeeAssignmentListResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="List fee assignments",
    description="List student fee assignments of the caller's school. Search matches student names and codes.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Insufficient school role"}},
)
def get_fee_assignments(
    student_id: int | None = Query(default=None),
    academic_year_id: int | None = Query(default=None),
    structure_id: int | None = Query(default=None),
    assignment_status: AssignmentStatus | None = Query(default=None, alias="status"),
    school_id: int = Depends(get_current_school_id),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    base_query = list_assignments_query(
        school_id=school_id,
        academic_year_id=academic_year_id,
        structure_id=structure_id,
        student_id=student_id,
        status=assignment_status,
    )
    items, meta = paginate_scalars(
        db=db,
        base_query=base_query,
        offset=pagination.offset,
        limit=pagination.limit,
        search=pagination.search,
        search_columns=[Student.first_name, Student.last_name, Student.student_code],
    )
    return {
        "items": [serialize_assignment_response(item) for item in items],
        "pagination": meta,
        "stats": get_assignment_stats(db, base_query),
    }


@router.post(
    "",
    response_model=StudentFeeAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Assign a fee structure to one student",
    description="Create a single assignment for a student and schedule (school admin only).",
    responses={
        400: {"description": "Structure and academic year do not match"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": "Student, structure, schedule or academic year not found"},
        409: {"description": "Student already assigned to this structure"},
    },
)
def create_fee_assignment_endpoint(
    payload: StudentFeeAssignmentCreate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    assignment = create_assignment(db=db, school_id=school_id, payload=payload)
    return serialize_assignment_response(assignment)


@router.post(
    "/{assignment_id}/cancel",
    response_model=StudentFeeAssignmentResponse,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Cancel fee assignment",
    description="Cancel an active assignment. Completed or cancelled assignments cannot change.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": "Fee assignment not found"},
        409: {"description": "Assignment is not active"},
    },
)
def cancel_fee_assignment_endpoint(
    assignment_id: int,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    assignment = get_assignment_by_id(db=db, assignment_id=assignment_id, school_id=school_id)
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fee assignment not found")
    cancelled = cancel_assignment(db=db, assignment=assignment)
    return serialize_assignment_response(cancelled)

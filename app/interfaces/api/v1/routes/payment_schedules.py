from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.application.services.pagination_service import paginate_scalars
from app.application.services.payment_schedule_service import (
    create_payment_schedule,
    get_payment_schedule_stats,
    list_payment_schedules_query,
    preview_payment_schedule,
    serialize_payment_schedule_response,
)
from app.application.services.tenant_lookup_service import get_schedule_in_school
from app.domain.installments import ScheduleType
from app.domain.roles import SCHOOL_READ_ROLES, SCHOOL_WRITE_ROLES
from app.infrastructure.db.models import PaymentSchedule
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_school_id, require_roles
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.pagination import PaginationParams
from app.interfaces.api.v1.schemas.payment_schedule import (
    PaymentScheduleCreate,
    PaymentScheduleListResponse,
    PaymentSchedulePreviewResponse,
    PaymentScheduleResponse,
)

router = APIRouter(prefix="/payment-schedules", tags=["payment-schedules"])


@router.get(
    "",
    response_model=PaymentScheduleListResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="List payment schedules",
    description="List payment schedules of the caller's school, optionally for one fee structure.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Insufficient school role"}},
)
def get_payment_schedules(
    structure_id: int | None = Query(default=None),
    schedule_type: ScheduleType | None = Query(default=None),
    school_id: int = Depends(get_current_school_id),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    base_query = list_payment_schedules_query(
        school_id=school_id,
        structure_id=structure_id,
        schedule_type=schedule_type,
    )
    items, meta = paginate_scalars(
        db=db,
        base_query=base_query,
        offset=pagination.offset,
        limit=pagination.limit,
        search=pagination.search,
        search_columns=[PaymentSchedule.currency],
    )
    return {
        "items": [serialize_payment_schedule_response(item) for item in items],
        "pagination": meta,
        "stats": get_payment_schedule_stats(db, base_query),
    }


@router.post(
    "/preview",
    response_model=PaymentSchedulePreviewResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="Preview payment schedule",
    description="Compute the installments a schedule would have without saving anything.",
    responses={
        400: {"description": "Invalid discount or installments"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": "Fee structure not found"},
    },
)
def preview_payment_schedule_endpoint(
    payload: PaymentScheduleCreate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    return preview_payment_schedule(db=db, school_id=school_id, payload=payload)


@router.post(
    "",
    response_model=PaymentScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(SCHOOL_WRITE_ROLES))],
    summary="Create payment schedule",
    description=(
        "Attach an upfront, per-term, monthly or custom schedule to a fee structure (school admin only). "
        "Generated schedules derive installments from the academic year calendar."
    ),
    responses={
        400: {"description": "Invalid discount or installments"},
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": "Fee structure not found"},
        409: {"description": "Fee structure is archived"},
    },
)
def create_payment_schedule_endpoint(
    payload: PaymentScheduleCreate,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    schedule = create_payment_schedule(db=db, school_id=school_id, payload=payload)
    return serialize_payment_schedule_response(schedule)


@router.get(
    "/{schedule_id}",
    response_model=PaymentScheduleResponse,
    dependencies=[Depends(require_roles(SCHOOL_READ_ROLES))],
    summary="Get payment schedule",
    description="Fetch one payment schedule with its installments.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Insufficient school role"},
        404: {"description": "Payment schedule not found"},
    },
)
def get_payment_schedule_endpoint(
    schedule_id: int,
    school_id: int = Depends(get_current_school_id),
    db: Session = Depends(get_db),
):
    schedule = get_schedule_in_school(db=db, schedule_id=schedule_id, school_id=school_id)
    return serialize_payment_schedule_response(schedule)

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.domain.assignment_status import AssignmentStatus
from app.domain.installments import ScheduleType
from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class StudentFeeAssignmentCreate(BaseModel):
    student_id: int
    structure_id: int
    schedule_id: int
    academic_year_id: int


class StudentFeeAssignmentResponse(BaseModel):
    id: int
    school_id: int
    student_id: int
    structure_id: int
    schedule_id: int
    academic_year_id: int
    total_due: Decimal
    paid_amount: Decimal
    status: AssignmentStatus
    created_at: datetime
    updated_at: datetime


class StudentFeeAssignmentStats(BaseModel):
    total: int
    active: int
    completed: int
    cancelled: int


class StudentFeeAssignmentListResponse(BaseModel):
    items: list[StudentFeeAssignmentResponse]
    pagination: PaginationMeta
    stats: StudentFeeAssignmentStats


class AutoAssignRequest(BaseModel):
    academic_year_id: int
    structure_id: int
    schedule_ids: list[int] = Field(min_length=1)
    dry_run: bool = False


class AutoAssignRow(BaseModel):
    student_id: int
    student_name: str
    student_code: str
    grade_level: str
    structure_name: str
    schedule_id: int
    schedule_type: ScheduleType
    structure_total_amount: Decimal
    amount_due: Decimal
    status: str


class AutoAssignSummary(BaseModel):
    total_students: int
    new_assignments: int
    existing_assignments: int
    schedules_count: int
    total_assignments: int
    created_assignments: int | None = None


class AutoAssignResponse(BaseModel):
    outcome: str
    assignments: list[AutoAssignRow]
    summary: AutoAssignSummary
    message: str

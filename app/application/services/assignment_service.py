from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.application.errors import ConflictError, NotFoundError, ValidationError
from app.application.services.pagination_service import count_grouped
from app.application.services.payment_schedule_service import schedule_amount_due
from app.application.services.tenant_lookup_service import (
    get_academic_year_in_school,
    get_schedule_in_school,
    get_structure_in_school,
    get_student_in_school,
)
from app.domain.assignment_status import AssignmentStatus, can_transition_assignment
from app.domain.fee_enums import FeeStructureStatus
from app.domain.student_status import StudentStatus
from app.infrastructure.db.models import Student, StudentFeeAssignment
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.schemas.assignment import StudentFeeAssignmentCreate

logger = get_logger(__name__)


def serialize_assignment_response(assignment: StudentFeeAssignment) -> dict:
    return {
        "id": assignment.id,
        "school_id": assignment.school_id,
        "student_id": assignment.student_id,
        "structure_id": assignment.structure_id,
        "schedule_id": assignment.schedule_id,
        "academic_year_id": assignment.academic_year_id,
        "total_due": assignment.total_due,
        "paid_amount": assignment.paid_amount,
        "status": assignment.status,
        "created_at": assignment.created_at,
        "updated_at": assignment.updated_at,
    }


def get_assignment_by_id(db: Session, assignment_id: int, school_id: int) -> StudentFeeAssignment | None:
    return db.execute(
        select(StudentFeeAssignment).where(
            StudentFeeAssignment.id == assignment_id,
            StudentFeeAssignment.school_id == school_id,
        )
    ).scalar_one_or_none()


def list_assignments_query(
    *,
    school_id: int,
    academic_year_id: int | None = None,
    structure_id: int | None = None,
    student_id: int | None = None,
    status: AssignmentStatus | None = None,
):
    query = (
        select(StudentFeeAssignment)
        .join(Student, Student.id == StudentFeeAssignment.student_id)
        .where(StudentFeeAssignment.school_id == school_id)
    )
    if academic_year_id is not None:
        query = query.where(StudentFeeAssignment.academic_year_id == academic_year_id)
    if structure_id is not None:
        query = query.where(StudentFeeAssignment.structure_id == structure_id)
    if student_id is not None:
        query = query.where(StudentFeeAssignment.student_id == student_id)
    if status is not None:
        query = query.where(StudentFeeAssignment.status == status)
    return query.order_by(StudentFeeAssignment.id.desc())


def get_assignment_stats(db: Session, base_query) -> dict:
    by_status = count_grouped(db, base_query, StudentFeeAssignment.status)
    return {
        "total": sum(by_status.values()),
        "active": by_status.get(AssignmentStatus.active, 0),
        "completed": by_status.get(AssignmentStatus.completed, 0),
        "cancelled": by_status.get(AssignmentStatus.cancelled, 0),
    }


def create_assignment(db: Session, school_id: int, payload: StudentFeeAssignmentCreate) -> StudentFeeAssignment:
    student = get_student_in_school(db=db, student_id=payload.student_id, school_id=school_id)
    academic_year = get_academic_year_in_school(db=db, academic_year_id=payload.academic_year_id, school_id=school_id)
    structure = get_structure_in_school(db=db, structure_id=payload.structure_id, school_id=school_id)
    schedule = get_schedule_in_school(db=db, schedule_id=payload.schedule_id, school_id=school_id)
    if schedule.structure_id != structure.id:
        raise NotFoundError("Payment schedule not found")
    if structure.academic_year_id != academic_year.id:
        raise ValidationError("Fee structure does not belong to this academic year", field="academic_year_id")
    if structure.status == FeeStructureStatus.archived:
        raise ConflictError("Cannot assign an archived fee structure")
    if not schedule.is_active:
        raise ValidationError("Payment schedule is inactive", field="schedule_id")
    if student.status != StudentStatus.active:
        raise ValidationError(f"Student is {student.status.value}", field="student_id")

    existing = db.execute(
        select(StudentFeeAssignment.id).where(
            StudentFeeAssignment.student_id == student.id,
            StudentFeeAssignment.structure_id == structure.id,
            StudentFeeAssignment.academic_year_id == academic_year.id,
            StudentFeeAssignment.status == AssignmentStatus.active,
        ).limit(1)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Student already has an active assignment for this fee structure")

    assignment = StudentFeeAssignment(
        school_id=school_id,
        student_id=student.id,
        structure_id=structure.id,
        schedule_id=schedule.id,
        academic_year_id=academic_year.id,
        total_due=schedule_amount_due(schedule),
        status=AssignmentStatus.active,
    )
    db.add(assignment)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Student already has an active assignment for this fee structure") from exc
    db.refresh(assignment)
    logger.info(
        "fee_assignment_created",
        school_id=school_id,
        assignment_id=assignment.id,
        student_id=student.id,
        structure_id=structure.id,
        schedule_id=schedule.id,
    )
    return assignment


def cancel_assignment(db: Session, assignment: StudentFeeAssignment) -> StudentFeeAssignment:
    if not can_transition_assignment(assignment.status, AssignmentStatus.cancelled):
        raise ConflictError(f"Cannot cancel a {assignment.status.value} assignment")
    assignment.status = AssignmentStatus.cancelled
    db.commit()
    db.refresh(assignment)
    logger.info("fee_assignment_cancelled", school_id=assignment.school_id, assignment_id=assignment.id)
    return assignment

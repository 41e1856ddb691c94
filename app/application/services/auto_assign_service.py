from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.application.errors import ConflictError, NotFoundError, ValidationError
from app.application.services.eligibility_service import resolve_eligible_students
from app.application.services.payment_schedule_service import schedule_amount_due
from app.application.services.tenant_lookup_service import get_academic_year_in_school, get_structure_in_school
from app.config import settings
from app.domain.assignment_status import AssignmentStatus
from app.domain.fee_enums import FeeStructureStatus
from app.infrastructure.db.models import FeeStructure, PaymentSchedule, Student, StudentFeeAssignment
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)

OUTCOME_PREVIEW = "preview"
OUTCOME_CREATED = "created"
OUTCOME_NOTHING_TO_ASSIGN = "nothing_to_assign"
OUTCOME_PARTIAL = "partial"


@dataclass
class AssignmentResult:
    outcome: str
    message: str
    summary: dict
    assignments: list[dict] = field(default_factory=list)
    created_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return self.outcome == OUTCOME_PARTIAL

    def as_response(self) -> dict:
        return {
            "outcome": self.outcome,
            "assignments": self.assignments,
            "summary": self.summary,
            "message": self.message,
        }


def _load_schedules(db: Session, structure: FeeStructure, schedule_ids: list[int]) -> list[PaymentSchedule]:
    requested_ids = list(dict.fromkeys(schedule_ids))
    schedules = {
        schedule.id: schedule
        for schedule in db.execute(
            select(PaymentSchedule).where(
                PaymentSchedule.id.in_(requested_ids),
                PaymentSchedule.structure_id == structure.id,
                PaymentSchedule.school_id == structure.school_id,
            )
        )
        .scalars()
        .all()
    }
    missing_ids = [schedule_id for schedule_id in requested_ids if schedule_id not in schedules]
    if missing_ids:
        raise NotFoundError(f"Payment schedules not found: {', '.join(str(value) for value in missing_ids)}")
    inactive_ids = [schedule_id for schedule_id in requested_ids if not schedules[schedule_id].is_active]
    if inactive_ids:
        raise ValidationError(
            f"Payment schedules are inactive: {', '.join(str(value) for value in inactive_ids)}",
            field="schedule_ids",
        )
    return [schedules[schedule_id] for schedule_id in requested_ids]


def _already_assigned_student_ids(
    db: Session, *, student_ids: list[int], structure_id: int, academic_year_id: int
) -> set[int]:
    if not student_ids:
        return set()
    return set(
        db.execute(
            select(StudentFeeAssignment.student_id).where(
                StudentFeeAssignment.student_id.in_(student_ids),
                StudentFeeAssignment.structure_id == structure_id,
                StudentFeeAssignment.academic_year_id == academic_year_id,
                StudentFeeAssignment.status == AssignmentStatus.active,
            )
        )
        .scalars()
        .all()
    )


def _preview_row(student: Student, structure: FeeStructure, schedule: PaymentSchedule, amount_due: Decimal) -> dict:
    return {
        "student_id": student.id,
        "student_name": f"{student.first_name} {student.last_name}",
        "student_code": student.student_code,
        "grade_level": student.grade_level,
        "structure_name": structure.name,
        "schedule_id": schedule.id,
        "schedule_type": schedule.schedule_type,
        "structure_total_amount": structure.total_amount,
        "amount_due": amount_due,
        "status": AssignmentStatus.active.value,
    }


def _student_batches(students: list[Student], schedules_count: int, batch_size: int) -> list[list[Student]]:
    """Pack students so no batch exceeds the row limit and no student is split across batches."""
    students_per_batch = max(1, batch_size // schedules_count)
    return [students[index : index + students_per_batch] for index in range(0, len(students), students_per_batch)]


def insert_assignment_batch(db: Session, rows: list[dict]) -> None:
    db.execute(insert(StudentFeeAssignment), rows)
    db.commit()


def auto_assign_fees(
    db: Session,
    *,
    school_id: int,
    academic_year_id: int,
    structure_id: int,
    schedule_ids: list[int],
    dry_run: bool = False,
    batch_size: int | None = None,
) -> AssignmentResult:
    structure = get_structure_in_school(db=db, structure_id=structure_id, school_id=school_id)
    schedules = _load_schedules(db, structure, schedule_ids)
    academic_year = get_academic_year_in_school(db=db, academic_year_id=academic_year_id, school_id=school_id)
    if structure.academic_year_id != academic_year.id:
        raise ValidationError("Fee structure does not belong to this academic year", field="academic_year_id")
    if structure.status == FeeStructureStatus.archived:
        raise ConflictError("Cannot assign an archived fee structure")

    candidates = resolve_eligible_students(
        db,
        school_id=school_id,
        grade_level=structure.grade_level,
        program_type=structure.program_type,
    )
    already_assigned = _already_assigned_student_ids(
        db,
        student_ids=[student.id for student in candidates],
        structure_id=structure.id,
        academic_year_id=academic_year.id,
    )
    to_assign = [student for student in candidates if student.id not in already_assigned]
    amounts_due = {schedule.id: schedule_amount_due(schedule) for schedule in schedules}

    summary = {
        "total_students": len(candidates),
        "new_assignments": len(to_assign),
        "existing_assignments": len(already_assigned),
        "schedules_count": len(schedules),
        "total_assignments": len(to_assign) * len(schedules),
    }
    log_context = {
        "school_id": school_id,
        "structure_id": structure.id,
        "academic_year_id": academic_year.id,
        "dry_run": dry_run,
        **summary,
    }

    if dry_run:
        logger.info("auto_assign_previewed", **log_context)
        return AssignmentResult(
            outcome=OUTCOME_PREVIEW,
            message=(
                f"Dry run: Would assign fees to {len(to_assign)} students "
                f"across {len(schedules)} payment schedules"
            ),
            summary=summary,
            assignments=[
                _preview_row(student, structure, schedule, amounts_due[schedule.id])
                for student in to_assign
                for schedule in schedules
            ],
        )

    if not to_assign:
        message = (
            "No students found matching the criteria"
            if not candidates
            else "All matching students already have fee assignments for this academic year"
        )
        logger.info("auto_assign_nothing_to_assign", **log_context)
        return AssignmentResult(outcome=OUTCOME_NOTHING_TO_ASSIGN, message=message, summary=summary)

    rows_per_batch = batch_size or settings.assignment_batch_size
    created_count = 0
    errors: list[str] = []
    created_rows: list[dict] = []
    for batch_number, batch in enumerate(_student_batches(to_assign, len(schedules), rows_per_batch), start=1):
        rows = [
            {
                "school_id": school_id,
                "student_id": student.id,
                "structure_id": structure.id,
                "schedule_id": schedule.id,
                "academic_year_id": academic_year.id,
                "total_due": amounts_due[schedule.id],
                "paid_amount": Decimal("0.00"),
                "status": AssignmentStatus.active,
            }
            for student in batch
            for schedule in schedules
        ]
        try:
            insert_assignment_batch(db, rows)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "auto_assign_batch_failed",
                school_id=school_id,
                structure_id=structure.id,
                batch_number=batch_number,
                rows_count=len(rows),
                error=str(exc),
            )
            errors.append(f"Batch {batch_number}: failed to create {len(rows)} assignments")
            continue
        created_count += len(rows)
        created_rows.extend(
            _preview_row(student, structure, schedule, amounts_due[schedule.id])
            for student in batch
            for schedule in schedules
        )

    summary["created_assignments"] = created_count
    if errors:
        logger.warning(
            "auto_assign_partially_failed",
            created_count=created_count,
            failed_batches=len(errors),
            **log_context,
        )
        return AssignmentResult(
            outcome=OUTCOME_PARTIAL,
            message=f"Created {created_count} assignments, {len(errors)} batches failed",
            summary=summary,
            assignments=created_rows,
            created_count=created_count,
            errors=errors,
        )

    logger.info("auto_assign_completed", created_count=created_count, **log_context)
    return AssignmentResult(
        outcome=OUTCOME_CREATED,
        message=f"Successfully assigned fees to {len(to_assign)} students across {len(schedules)} payment schedules",
        summary=summary,
        assignments=created_rows,
        created_count=created_count,
    )

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.domain.fee_enums import ProgramType
from app.domain.student_status import StudentStatus
from app.infrastructure.db.models import Student
from app.infrastructure.logging import get_logger

ALL_GRADES = "all"
logger = get_logger(__name__)


def normalize_grade_level(grade_level: str | None) -> str | None:
    if grade_level is None:
        return None
    normalized = grade_level.strip().lower()
    return normalized or None


def resolve_eligible_students(
    db: Session,
    *,
    school_id: int,
    grade_level: str | None = None,
    program_type: ProgramType | None = None,
) -> list[Student]:
    """Active students of a school whose grade matches ``grade_level`` ignoring case.

    Roster grade labels are inconsistently cased ("Grade 10", "GRADE 10"), so both
    sides are lower-cased before comparing. A missing grade or the "all" label
    selects every active student. ``program_type`` belongs to the fee structure,
    not the student, so it is only recorded in the log.
    """
    query = select(Student).where(Student.school_id == school_id, Student.status == StudentStatus.active)
    normalized_grade = normalize_grade_level(grade_level)
    if normalized_grade is not None and normalized_grade != ALL_GRADES:
        query = query.where(func.lower(func.trim(Student.grade_level)) == normalized_grade)

    students = list(db.execute(query.order_by(Student.id)).scalars().all())
    logger.info(
        "eligible_students_resolved",
        school_id=school_id,
        grade_level=normalized_grade,
        program_type=program_type.value if program_type is not None else None,
        students_count=len(students),
    )
    return students

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.errors import ConflictError, ValidationError
from app.infrastructure.db.models import AcademicYear
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.schemas.academic_year import AcademicYearCreate

logger = get_logger(__name__)


def serialize_academic_year_response(academic_year: AcademicYear) -> dict:
    return {
        "id": academic_year.id,
        "school_id": academic_year.school_id,
        "name": academic_year.name,
        "start_date": academic_year.start_date,
        "end_date": academic_year.end_date,
        "term_count": academic_year.term_count,
        "created_at": academic_year.created_at,
        "updated_at": academic_year.updated_at,
    }


def list_academic_years_query(*, school_id: int):
    return (
        select(AcademicYear)
        .where(AcademicYear.school_id == school_id)
        .order_by(AcademicYear.start_date.desc(), AcademicYear.id.desc())
    )


def create_academic_year(db: Session, school_id: int, payload: AcademicYearCreate) -> AcademicYear:
    name = payload.name.strip()
    if not name:
        raise ValidationError("Academic year name is required", field="name")
    if payload.start_date >= payload.end_date:
        raise ValidationError("Academic year must start before it ends", field="end_date")

    existing = db.execute(
        select(AcademicYear).where(AcademicYear.school_id == school_id, AcademicYear.name == name)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Academic year already exists")

    academic_year = AcademicYear(
        school_id=school_id,
        name=name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        term_count=payload.term_count,
    )
    db.add(academic_year)
    db.commit()
    db.refresh(academic_year)
    logger.info("academic_year_created", school_id=school_id, academic_year_id=academic_year.id)
    return academic_year

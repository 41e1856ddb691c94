from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.errors import NotFoundError
from app.infrastructure.db.models import AcademicYear, FeeStructure, PaymentSchedule, Student


def get_academic_year_in_school(db: Session, academic_year_id: int, school_id: int) -> AcademicYear:
    academic_year = db.execute(
        select(AcademicYear).where(AcademicYear.id == academic_year_id, AcademicYear.school_id == school_id)
    ).scalar_one_or_none()
    if academic_year is None:
        raise NotFoundError("Academic year not found")
    return academic_year


def get_structure_in_school(db: Session, structure_id: int, school_id: int) -> FeeStructure:
    structure = db.execute(
        select(FeeStructure).where(FeeStructure.id == structure_id, FeeStructure.school_id == school_id)
    ).scalar_one_or_none()
    if structure is None:
        raise NotFoundError("Fee structure not found")
    return structure


def get_schedule_in_school(db: Session, schedule_id: int, school_id: int) -> PaymentSchedule:
    schedule = db.execute(
        select(PaymentSchedule)
        .join(FeeStructure, FeeStructure.id == PaymentSchedule.structure_id)
        .where(PaymentSchedule.id == schedule_id, FeeStructure.school_id == school_id)
    ).scalar_one_or_none()
    if schedule is None:
        raise NotFoundError("Payment schedule not found")
    return schedule


def get_student_in_school(db: Session, student_id: int, school_id: int) -> Student:
    student = db.execute(
        select(Student).where(Student.id == student_id, Student.school_id == school_id)
    ).scalar_one_or_none()
    if student is None:
        raise NotFoundError("Student not found")
    return student

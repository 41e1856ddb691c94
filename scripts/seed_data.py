from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.services.fee_structure_service import create_fee_structure
from app.application.services.payment_schedule_service import create_payment_schedule
from app.application.services.security_service import hash_password
from app.domain.fee_enums import FeeCategoryType, FeeStructureStatus, ProgramType
from app.domain.installments import ScheduleType
from app.domain.roles import UserRole
from app.infrastructure.db.models import AcademicYear, FeeCategory, FeeStructure, School, Student, User, UserProfile
from app.infrastructure.db.session import SessionLocal
from app.infrastructure.logging import configure_logging
from app.interfaces.api.v1.schemas.fee_structure import FeeStructureCreate, FeeStructureItemInput
from app.interfaces.api.v1.schemas.payment_schedule import PaymentScheduleCreate

GRADES = ["Grade 7", "Grade 8"]
STUDENTS_PER_GRADE = 5


def create_school_if_missing(db: Session, name: str, slug: str) -> School:
    school = db.execute(select(School).where(School.slug == slug)).scalar_one_or_none()
    if school is not None:
        return school
    school = School(name=name, slug=slug, is_active=True)
    db.add(school)
    db.flush()
    return school


def create_user_if_missing(
    db: Session,
    *,
    email: str,
    password: str,
    school_id: int | None,
    role: UserRole,
    name: tuple[str, str],
) -> User:
    existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing is not None:
        return existing
    user = User(email=email, hashed_password=hash_password(password), is_active=True)
    user.profile = UserProfile(school_id=school_id, first_name=name[0], last_name=name[1], role=role)
    db.add(user)
    db.flush()
    return user


def create_academic_year_if_missing(db: Session, school_id: int, name: str, start: date, end: date) -> AcademicYear:
    existing = db.execute(
        select(AcademicYear).where(AcademicYear.school_id == school_id, AcademicYear.name == name)
    ).scalar_one_or_none()
    if existing is not None:
        return existing
    academic_year = AcademicYear(school_id=school_id, name=name, start_date=start, end_date=end, term_count=3)
    db.add(academic_year)
    db.flush()
    return academic_year


def create_category_if_missing(
    db: Session,
    *,
    school_id: int,
    name: str,
    category_type: FeeCategoryType,
    is_mandatory: bool,
    is_recurring: bool,
) -> FeeCategory:
    existing = db.execute(
        select(FeeCategory).where(FeeCategory.school_id == school_id, FeeCategory.name == name)
    ).scalar_one_or_none()
    if existing is not None:
        return existing
    category = FeeCategory(
        school_id=school_id,
        name=name,
        category_type=category_type,
        is_mandatory=is_mandatory,
        is_recurring=is_recurring,
    )
    db.add(category)
    db.flush()
    return category


def create_students_if_missing(db: Session, school: School) -> None:
    for grade_index, grade_level in enumerate(GRADES, start=7):
        for number in range(1, STUDENTS_PER_GRADE + 1):
            code = f"{school.slug.upper()}-{grade_index}{number:02d}"
            existing = db.execute(
                select(Student).where(Student.school_id == school.id, Student.student_code == code)
            ).scalar_one_or_none()
            if existing is not None:
                continue
            db.add(
                Student(
                    school_id=school.id,
                    student_code=code,
                    first_name=f"Student{number}",
                    last_name=grade_level.replace(" ", ""),
                    grade_level=grade_level,
                )
            )


def seed_structure_if_missing(
    db: Session,
    *,
    school_id: int,
    academic_year: AcademicYear,
    grade_level: str,
    tuition: FeeCategory,
    activities: FeeCategory,
) -> None:
    existing = db.execute(
        select(FeeStructure).where(
            FeeStructure.academic_year_id == academic_year.id,
            FeeStructure.grade_level == grade_level,
        )
    ).scalar_one_or_none()
    if existing is not None:
        return
    structure = create_fee_structure(
        db=db,
        school_id=school_id,
        payload=FeeStructureCreate(
            name=f"{grade_level} fees {academic_year.name}",
            academic_year_id=academic_year.id,
            grade_level=grade_level,
            program_type=ProgramType.secondary,
            total_amount=Decimal("300000.00"),
            status=FeeStructureStatus.published,
            categories=[
                FeeStructureItemInput(category_id=tuition.id, amount=Decimal("270000.00")),
                FeeStructureItemInput(category_id=activities.id, amount=Decimal("30000.00")),
            ],
        ),
    )
    for schedule_type, discount in [(ScheduleType.upfront, Decimal("5")), (ScheduleType.per_term, Decimal("0"))]:
        create_payment_schedule(
            db=db,
            school_id=school_id,
            payload=PaymentScheduleCreate(
                structure_id=structure.id,
                schedule_type=schedule_type,
                discount_percentage=discount,
            ),
        )


def main() -> None:
    configure_logging()
    db = SessionLocal()
    try:
        north_school = create_school_if_missing(db=db, name="North High", slug="north-high")
        south_school = create_school_if_missing(db=db, name="South High", slug="south-high")

        for school in (north_school, south_school):
            create_user_if_missing(
                db=db,
                email=f"admin@{school.slug}.example.com",
                password="admin123",
                school_id=school.id,
                role=UserRole.school_admin,
                name=("Admin", school.name),
            )
            create_user_if_missing(
                db=db,
                email=f"staff@{school.slug}.example.com",
                password="staff123",
                school_id=school.id,
                role=UserRole.school_staff,
                name=("Staff", school.name),
            )
            create_students_if_missing(db=db, school=school)
        db.commit()

        academic_year = create_academic_year_if_missing(
            db=db,
            school_id=north_school.id,
            name="2026-2027",
            start=date(2026, 9, 1),
            end=date(2027, 6, 30),
        )
        tuition = create_category_if_missing(
            db=db,
            school_id=north_school.id,
            name="Tuition",
            category_type=FeeCategoryType.tuition,
            is_mandatory=True,
            is_recurring=True,
        )
        activities = create_category_if_missing(
            db=db,
            school_id=north_school.id,
            name="Activities",
            category_type=FeeCategoryType.additional,
            is_mandatory=False,
            is_recurring=False,
        )
        db.commit()

        for grade_level in GRADES:
            seed_structure_if_missing(
                db=db,
                school_id=north_school.id,
                academic_year=academic_year,
                grade_level=grade_level,
                tuition=tuition,
                activities=activities,
            )
    finally:
        db.close()


if __name__ == "__main__":
    main()

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.domain.assignment_status import AssignmentStatus
from app.domain.fee_enums import FeeCategoryType, FeeStructureStatus, ProgramType
from app.domain.installments import ScheduleType
from app.domain.roles import UserRole
from app.domain.student_status import StudentStatus
from app.infrastructure.db.session import Base


def _enum_column(enum_cls: type, name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda members: [member.value for member in members])


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TenantScopedMixin:
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)


class School(TimestampMixin, Base):
    __tablename__ = "schools"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    academic_years: Mapped[list["AcademicYear"]] = relationship(
        "AcademicYear",
        back_populates="school",
        cascade="all, delete-orphan",
    )
    students: Mapped[list["Student"]] = relationship(
        "Student",
        back_populates="school",
        cascade="all, delete-orphan",
    )


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    profile: Mapped["UserProfile"] = relationship(
        "UserProfile", back_populates="user", uselist=False, cascade="all,delete"
    )


class UserProfile(TimestampMixin, Base):
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    school_id: Mapped[int | None] = mapped_column(
        ForeignKey("schools.id", ondelete="SET NULL"), nullable=True, index=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(_enum_column(UserRole, "user_role"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="profile")


class AcademicYear(TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "academic_years"
    __table_args__ = (UniqueConstraint("school_id", "name", name="uq_academic_year_school_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    term_count: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    school: Mapped[School] = relationship("School", back_populates="academic_years")


class FeeCategory(TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "fee_categories"
    __table_args__ = (UniqueConstraint("school_id", "name", name="uq_fee_category_school_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    category_type: Mapped[FeeCategoryType] = mapped_column(
        _enum_column(FeeCategoryType, "fee_category_type"), nullable=False, default=FeeCategoryType.tuition
    )


class FeeStructure(TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "fee_structures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    academic_year_id: Mapped[int] = mapped_column(
        ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    grade_level: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    program_type: Mapped[ProgramType] = mapped_column(
        _enum_column(ProgramType, "program_type"), nullable=False, index=True
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[FeeStructureStatus] = mapped_column(
        _enum_column(FeeStructureStatus, "fee_structure_status"),
        nullable=False,
        default=FeeStructureStatus.draft,
        index=True,
    )

    academic_year: Mapped[AcademicYear] = relationship("AcademicYear")
    items: Mapped[list["FeeStructureItem"]] = relationship(
        "FeeStructureItem",
        back_populates="structure",
        cascade="all, delete-orphan",
        order_by="FeeStructureItem.id",
    )
    schedules: Mapped[list["PaymentSchedule"]] = relationship(
        "PaymentSchedule",
        back_populates="structure",
        cascade="all, delete-orphan",
        order_by="PaymentSchedule.id",
    )


# grade labels compare case and whitespace insensitively
Index(
    "uq_fee_structure_year_grade_program",
    FeeStructure.academic_year_id,
    func.lower(func.trim(FeeStructure.grade_level)),
    FeeStructure.program_type,
    unique=True,
)


class FeeStructureItem(TimestampMixin, Base):
    __tablename__ = "fee_structure_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    structure_id: Mapped[int] = mapped_column(
        ForeignKey("fee_structures.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("fee_categories.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_modes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    structure: Mapped[FeeStructure] = relationship("FeeStructure", back_populates="items")
    category: Mapped[FeeCategory] = relationship("FeeCategory")


class PaymentSchedule(TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "payment_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    structure_id: Mapped[int] = mapped_column(
        ForeignKey("fee_structures.id", ondelete="CASCADE"), nullable=False, index=True
    )
    schedule_type: Mapped[ScheduleType] = mapped_column(
        _enum_column(ScheduleType, "schedule_type"), nullable=False, index=True
    )
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    structure: Mapped[FeeStructure] = relationship("FeeStructure", back_populates="schedules")
    installments: Mapped[list["PaymentInstallment"]] = relationship(
        "PaymentInstallment",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="PaymentInstallment.installment_number",
    )


class PaymentInstallment(TimestampMixin, Base):
    __tablename__ = "payment_installments"
    __table_args__ = (
        UniqueConstraint("schedule_id", "installment_number", name="uq_payment_installment_schedule_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    schedule_id: Mapped[int] = mapped_column(
        ForeignKey("payment_schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    schedule: Mapped[PaymentSchedule] = relationship("PaymentSchedule", back_populates="installments")


class Student(TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("school_id", "student_code", name="uq_student_school_code"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_code: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade_level: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    status: Mapped[StudentStatus] = mapped_column(
        _enum_column(StudentStatus, "student_status"), nullable=False, default=StudentStatus.active, index=True
    )

    school: Mapped[School] = relationship("School", back_populates="students")


class StudentFeeAssignment(TenantScopedMixin, TimestampMixin, Base):
    __tablename__ = "student_fee_assignments"
    __table_args__ = (
        Index(
            "uq_student_fee_assignment_active",
            "student_id",
            "structure_id",
            "schedule_id",
            "academic_year_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    structure_id: Mapped[int] = mapped_column(
        ForeignKey("fee_structures.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    schedule_id: Mapped[int] = mapped_column(
        ForeignKey("payment_schedules.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    academic_year_id: Mapped[int] = mapped_column(
        ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    total_due: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[AssignmentStatus] = mapped_column(
        _enum_column(AssignmentStatus, "assignment_status"),
        nullable=False,
        default=AssignmentStatus.active,
        index=True,
    )

    student: Mapped[Student] = relationship("Student")
    structure: Mapped[FeeStructure] = relationship("FeeStructure")
    schedule: Mapped[PaymentSchedule] = relationship("PaymentSchedule")

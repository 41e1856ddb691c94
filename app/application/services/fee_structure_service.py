from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.application.errors import ConflictError, NotFoundError, ValidationError
from app.application.services.eligibility_service import normalize_grade_level
from app.application.services.pagination_service import count_grouped
from app.application.services.payment_schedule_service import (
    amounts_reconcile,
    ensure_schedules_reconcile,
    regenerate_structure_schedules,
    serialize_payment_schedule_response,
)
from app.application.services.tenant_lookup_service import get_academic_year_in_school
from app.domain.assignment_status import AssignmentStatus
from app.domain.fee_enums import FeeStructureStatus, ProgramType, can_transition_structure
from app.domain.installments import ZERO, quantize_money
from app.infrastructure.db.models import FeeCategory, FeeStructure, FeeStructureItem, StudentFeeAssignment
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.schemas.fee_structure import FeeStructureCreate, FeeStructureItemInput, FeeStructureUpdate

logger = get_logger(__name__)


def serialize_fee_structure_response(structure: FeeStructure) -> dict:
    return {
        "id": structure.id,
        "school_id": structure.school_id,
        "academic_year_id": structure.academic_year_id,
        "name": structure.name,
        "grade_level": structure.grade_level,
        "program_type": structure.program_type,
        "total_amount": structure.total_amount,
        "status": structure.status,
        "items": [
            {
                "id": item.id,
                "category_id": item.category_id,
                "category_name": item.category.name,
                "amount": item.amount,
                "is_mandatory": item.is_mandatory,
                "is_recurring": item.is_recurring,
                "payment_modes": list(item.payment_modes or []),
            }
            for item in structure.items
        ],
        "created_at": structure.created_at,
        "updated_at": structure.updated_at,
    }


def serialize_fee_structure_detail_response(structure: FeeStructure) -> dict:
    payload = serialize_fee_structure_response(structure)
    payload["schedules"] = [serialize_payment_schedule_response(schedule) for schedule in structure.schedules]
    return payload


def get_fee_structure_by_id(db: Session, structure_id: int, school_id: int) -> FeeStructure | None:
    return db.execute(
        select(FeeStructure).where(FeeStructure.id == structure_id, FeeStructure.school_id == school_id)
    ).scalar_one_or_none()


def list_fee_structures_query(
    *,
    school_id: int,
    academic_year_id: int | None = None,
    grade_level: str | None = None,
    program_type: ProgramType | None = None,
    status: FeeStructureStatus | None = None,
):
    query = select(FeeStructure).where(FeeStructure.school_id == school_id)
    if academic_year_id is not None:
        query = query.where(FeeStructure.academic_year_id == academic_year_id)
    normalized_grade = normalize_grade_level(grade_level)
    if normalized_grade is not None:
        query = query.where(func.lower(func.trim(FeeStructure.grade_level)) == normalized_grade)
    if program_type is not None:
        query = query.where(FeeStructure.program_type == program_type)
    if status is not None:
        query = query.where(FeeStructure.status == status)
    return query.order_by(FeeStructure.id.desc())


def get_fee_structure_stats(db: Session, base_query) -> dict:
    by_status = count_grouped(db, base_query, FeeStructure.status)
    return {
        "total": sum(by_status.values()),
        "draft": by_status.get(FeeStructureStatus.draft, 0),
        "published": by_status.get(FeeStructureStatus.published, 0),
        "archived": by_status.get(FeeStructureStatus.archived, 0),
    }


def _validate_payload(payload: FeeStructureUpdate) -> tuple[str, str]:
    name = payload.name.strip()
    grade_level = payload.grade_level.strip()
    if not name:
        raise ValidationError("Fee structure name is required", field="name")
    if not grade_level:
        raise ValidationError("Grade level is required", field="grade_level")
    if payload.total_amount <= ZERO:
        raise ValidationError("Total amount must be greater than zero", field="total_amount")
    if not payload.categories:
        raise ValidationError("At least one fee category is required", field="categories")

    category_ids = [category.category_id for category in payload.categories]
    if len(set(category_ids)) != len(category_ids):
        raise ValidationError("Each fee category can only appear once", field="categories")
    if any(category.amount < ZERO for category in payload.categories):
        raise ValidationError("Category amounts cannot be negative", field="categories")

    category_total = sum((category.amount for category in payload.categories), Decimal("0"))
    if not amounts_reconcile(category_total, payload.total_amount):
        raise ValidationError("Category amounts must sum to total amount", field="categories")
    return name, grade_level


def _load_categories(db: Session, school_id: int, items: list[FeeStructureItemInput]) -> dict[int, FeeCategory]:
    category_ids = [item.category_id for item in items]
    categories = {
        category.id: category
        for category in db.execute(
            select(FeeCategory).where(FeeCategory.id.in_(category_ids), FeeCategory.school_id == school_id)
        )
        .scalars()
        .all()
    }
    missing_ids = [category_id for category_id in category_ids if category_id not in categories]
    if missing_ids:
        raise NotFoundError(f"Fee categories not found: {', '.join(str(value) for value in missing_ids)}")
    return categories


def _ensure_unique_scope(
    db: Session,
    *,
    academic_year_id: int,
    grade_level: str,
    program_type: ProgramType,
    exclude_id: int | None = None,
) -> None:
    """One structure per (year, grade, program); "all" and grade-specific never share a year."""
    same_year = select(FeeStructure).where(FeeStructure.academic_year_id == academic_year_id)
    if exclude_id is not None:
        same_year = same_year.where(FeeStructure.id != exclude_id)

    duplicate = db.execute(
        same_year.where(
            func.lower(func.trim(FeeStructure.grade_level)) == normalize_grade_level(grade_level),
            FeeStructure.program_type == program_type,
        ).limit(1)
    ).scalar_one_or_none()
    if duplicate is not None:
        raise ConflictError(
            f"A fee structure already exists for {grade_level} ({program_type.value}) in this academic year"
        )

    if program_type == ProgramType.all:
        grade_specific = db.execute(
            same_year.where(FeeStructure.program_type != ProgramType.all).limit(1)
        ).scalar_one_or_none()
        if grade_specific is not None:
            raise ConflictError(
                'Cannot create an "all programs" fee structure because program-specific structures '
                "already exist for this academic year"
            )
    else:
        all_programs = db.execute(
            same_year.where(FeeStructure.program_type == ProgramType.all).limit(1)
        ).scalar_one_or_none()
        if all_programs is not None:
            raise ConflictError(
                'Cannot create a program-specific fee structure because an "all programs" structure '
                "already exists for this academic year"
            )


def _build_items(items: list[FeeStructureItemInput], categories: dict[int, FeeCategory]) -> list[FeeStructureItem]:
    built = []
    for item in items:
        category = categories[item.category_id]
        built.append(
            FeeStructureItem(
                category_id=category.id,
                amount=quantize_money(item.amount),
                is_mandatory=item.is_mandatory if item.is_mandatory is not None else category.is_mandatory,
                is_recurring=item.is_recurring if item.is_recurring is not None else category.is_recurring,
                payment_modes=list(item.payment_modes),
            )
        )
    return built


def create_fee_structure(db: Session, school_id: int, payload: FeeStructureCreate) -> FeeStructure:
    name, grade_level = _validate_payload(payload)
    if payload.status == FeeStructureStatus.archived:
        raise ValidationError("A fee structure cannot be created archived", field="status")
    get_academic_year_in_school(db=db, academic_year_id=payload.academic_year_id, school_id=school_id)
    categories = _load_categories(db, school_id, payload.categories)
    _ensure_unique_scope(
        db,
        academic_year_id=payload.academic_year_id,
        grade_level=grade_level,
        program_type=payload.program_type,
    )

    structure = FeeStructure(
        school_id=school_id,
        academic_year_id=payload.academic_year_id,
        name=name,
        grade_level=grade_level,
        program_type=payload.program_type,
        total_amount=quantize_money(payload.total_amount),
        status=payload.status,
    )
    try:
        db.add(structure)
        db.flush()
        structure.items.extend(_build_items(payload.categories, categories))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("fee_structure_create_failed", school_id=school_id, grade_level=grade_level)
        raise
    db.refresh(structure)
    logger.info(
        "fee_structure_created",
        school_id=school_id,
        structure_id=structure.id,
        academic_year_id=structure.academic_year_id,
        grade_level=structure.grade_level,
        program_type=structure.program_type.value,
        total_amount=str(structure.total_amount),
    )
    return structure


def count_active_assignments(db: Session, structure_id: int) -> int:
    return db.execute(
        select(func.count(StudentFeeAssignment.id)).where(
            StudentFeeAssignment.structure_id == structure_id,
            StudentFeeAssignment.status == AssignmentStatus.active,
        )
    ).scalar_one()


def update_fee_structure(db: Session, structure: FeeStructure, payload: FeeStructureUpdate) -> FeeStructure:
    name, grade_level = _validate_payload(payload)
    if structure.status == FeeStructureStatus.archived:
        raise ConflictError("Archived fee structures cannot be edited")
    academic_year = get_academic_year_in_school(
        db=db, academic_year_id=payload.academic_year_id, school_id=structure.school_id
    )
    categories = _load_categories(db, structure.school_id, payload.categories)
    _ensure_unique_scope(
        db,
        academic_year_id=payload.academic_year_id,
        grade_level=grade_level,
        program_type=payload.program_type,
        exclude_id=structure.id,
    )

    next_total = quantize_money(payload.total_amount)
    total_changed = next_total != structure.total_amount
    year_changed = payload.academic_year_id != structure.academic_year_id
    scope_changed = (
        year_changed
        or normalize_grade_level(grade_level) != normalize_grade_level(structure.grade_level)
        or payload.program_type != structure.program_type
    )
    if (total_changed or scope_changed) and count_active_assignments(db, structure.id):
        field = "total_amount" if total_changed else "scope"
        logger.warning(
            "fee_structure_update_blocked",
            school_id=structure.school_id,
            structure_id=structure.id,
            changed=field,
        )
        raise ConflictError(
            "Cannot change the total, academic year, grade or program of a fee structure "
            "with active student assignments. Archive it instead."
        )
    if total_changed:
        ensure_schedules_reconcile(structure, next_total)

    structure.name = name
    structure.academic_year_id = payload.academic_year_id
    structure.grade_level = grade_level
    structure.program_type = payload.program_type
    structure.total_amount = next_total
    structure.items.clear()
    structure.items.extend(_build_items(payload.categories, categories))
    if total_changed or year_changed:
        regenerate_structure_schedules(db, structure, academic_year)

    db.commit()
    db.refresh(structure)
    logger.info(
        "fee_structure_updated",
        school_id=structure.school_id,
        structure_id=structure.id,
        total_changed=total_changed,
        schedules_regenerated=total_changed or year_changed,
    )
    return structure


def change_fee_structure_status(db: Session, structure: FeeStructure, target: FeeStructureStatus) -> FeeStructure:
    if structure.status == target:
        return structure
    if not can_transition_structure(structure.status, target):
        raise ConflictError(f"Cannot move fee structure from {structure.status.value} to {target.value}")
    previous = structure.status
    structure.status = target
    db.commit()
    db.refresh(structure)
    logger.info(
        "fee_structure_status_changed",
        school_id=structure.school_id,
        structure_id=structure.id,
        previous_status=previous.value,
        status=target.value,
    )
    return structure


def delete_fee_structure(db: Session, structure: FeeStructure) -> None:
    assignments = list(
        db.execute(select(StudentFeeAssignment).where(StudentFeeAssignment.structure_id == structure.id))
        .scalars()
        .all()
    )
    if assignments and structure.status == FeeStructureStatus.published:
        raise ConflictError(
            "Cannot delete a published fee structure with student assignments. Archive it instead."
        )
    if any(assignment.paid_amount > ZERO for assignment in assignments):
        raise ConflictError("Cannot delete a fee structure with recorded payments. Archive it instead.")

    school_id, structure_id = structure.school_id, structure.id
    for assignment in assignments:
        db.delete(assignment)
    db.delete(structure)
    db.commit()
    logger.info(
        "fee_structure_deleted",
        school_id=school_id,
        structure_id=structure_id,
        removed_assignments=len(assignments),
    )

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.errors import ConflictError, ValidationError
from app.application.services.pagination_service import count_grouped
from app.infrastructure.db.models import FeeCategory
from app.interfaces.api.v1.schemas.fee_category import FeeCategoryCreate


def serialize_fee_category_response(category: FeeCategory) -> dict:
    return {
        "id": category.id,
        "school_id": category.school_id,
        "name": category.name,
        "description": category.description,
        "is_mandatory": category.is_mandatory,
        "is_recurring": category.is_recurring,
        "category_type": category.category_type,
        "created_at": category.created_at,
        "updated_at": category.updated_at,
    }


def list_fee_categories_query(*, school_id: int):
    return select(FeeCategory).where(FeeCategory.school_id == school_id).order_by(FeeCategory.id)


def get_fee_category_stats(db: Session, *, school_id: int) -> dict:
    base_query = list_fee_categories_query(school_id=school_id)
    mandatory = count_grouped(db, base_query, FeeCategory.is_mandatory)
    recurring = count_grouped(db, base_query, FeeCategory.is_recurring)
    return {
        "total": sum(mandatory.values()),
        "mandatory": mandatory.get(True, 0),
        "recurring": recurring.get(True, 0),
    }


def create_fee_category(db: Session, school_id: int, payload: FeeCategoryCreate) -> FeeCategory:
    name = payload.name.strip()
    if not name:
        raise ValidationError("Fee category name is required", field="name")

    existing = db.execute(
        select(FeeCategory).where(FeeCategory.school_id == school_id, FeeCategory.name == name)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("A fee category with this name already exists")

    category = FeeCategory(
        school_id=school_id,
        name=name,
        description=payload.description,
        is_mandatory=payload.is_mandatory,
        is_recurring=payload.is_recurring,
        category_type=payload.category_type,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    return category

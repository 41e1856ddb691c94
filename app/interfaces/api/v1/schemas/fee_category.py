from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.domain.fee_enums import FeeCategoryType
from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class FeeCategoryBase(BaseModel):
    name: str
    description: str | None = None
    is_mandatory: bool = False
    is_recurring: bool = False
    category_type: FeeCategoryType = FeeCategoryType.tuition


class FeeCategoryCreate(FeeCategoryBase):
    pass


class FeeCategoryResponse(FeeCategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    created_at: datetime
    updated_at: datetime


class FeeCategoryStats(BaseModel):
    total: int
    mandatory: int
    recurring: int


class FeeCategoryListResponse(BaseModel):
    items: list[FeeCategoryResponse]
    pagination: PaginationMeta
    stats: FeeCategoryStats

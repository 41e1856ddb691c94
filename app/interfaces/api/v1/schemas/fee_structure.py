from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.domain.fee_enums import FeeStructureStatus, ProgramType
from app.interfaces.api.v1.schemas.pagination import PaginationMeta
from app.interfaces.api.v1.schemas.payment_schedule import PaymentScheduleResponse


class FeeStructureItemInput(BaseModel):
    category_id: int
    amount: Decimal
    is_mandatory: bool | None = None
    is_recurring: bool | None = None
    payment_modes: list[str] = Field(default_factory=list)


class FeeStructureUpdate(BaseModel):
    name: str
    academic_year_id: int
    grade_level: str
    program_type: ProgramType
    total_amount: Decimal
    categories: list[FeeStructureItemInput] = Field(default_factory=list)


class FeeStructureCreate(FeeStructureUpdate):
    status: FeeStructureStatus = FeeStructureStatus.draft


class FeeStructureStatusUpdate(BaseModel):
    status: FeeStructureStatus


class FeeStructureItemResponse(BaseModel):
    id: int
    category_id: int
    category_name: str
    amount: Decimal
    is_mandatory: bool
    is_recurring: bool
    payment_modes: list[str]


class FeeStructureResponse(BaseModel):
    id: int
    school_id: int
    academic_year_id: int
    name: str
    grade_level: str
    program_type: ProgramType
    total_amount: Decimal
    status: FeeStructureStatus
    items: list[FeeStructureItemResponse]
    created_at: datetime
    updated_at: datetime


class FeeStructureDetailResponse(FeeStructureResponse):
    schedules: list[PaymentScheduleResponse]


class FeeStructureStats(BaseModel):
    total: int
    draft: int
    published: int
    archived: int


class FeeStructureListResponse(BaseModel):
    items: list[FeeStructureResponse]
    pagination: PaginationMeta
    stats: FeeStructureStats

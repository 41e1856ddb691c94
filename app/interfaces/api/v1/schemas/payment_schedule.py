from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.domain.installments import ScheduleType
from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class InstallmentInput(BaseModel):
    label: str
    amount: Decimal
    due_date: date


class PaymentScheduleCreate(BaseModel):
    structure_id: int
    schedule_type: ScheduleType
    discount_percentage: Decimal = Decimal("0")
    currency: str = Field(default="USD", min_length=3, max_length=3)
    is_active: bool = True
    installments: list[InstallmentInput] = Field(default_factory=list)


class InstallmentResponse(BaseModel):
    installment_number: int
    label: str
    amount: Decimal
    due_date: date


class PaymentSchedulePreviewResponse(BaseModel):
    structure_id: int
    schedule_type: ScheduleType
    currency: str
    discount_percentage: Decimal
    total_amount: Decimal
    discounted_total: Decimal
    amount_due: Decimal
    installments: list[InstallmentResponse]


class PaymentScheduleResponse(PaymentSchedulePreviewResponse):
    id: int
    school_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PaymentScheduleStats(BaseModel):
    total: int
    active: int
    upfront: int
    per_term: int
    monthly: int
    custom: int


class PaymentScheduleListResponse(BaseModel):
    items: list[PaymentScheduleResponse]
    pagination: PaginationMeta
    stats: PaymentScheduleStats

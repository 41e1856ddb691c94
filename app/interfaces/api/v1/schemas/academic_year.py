from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class AcademicYearBase(BaseModel):
    name: str
    start_date: date
    end_date: date
    term_count: int = Field(default=3, ge=1, le=12)


class AcademicYearCreate(AcademicYearBase):
    pass


class AcademicYearResponse(AcademicYearBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    created_at: datetime
    updated_at: datetime


class AcademicYearListResponse(BaseModel):
    items: list[AcademicYearResponse]
    pagination: PaginationMeta

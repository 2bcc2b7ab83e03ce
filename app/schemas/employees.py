from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from app.db.models.employees import EmploymentStatus, EmploymentType
from app.schemas.base import CamelModel
from app.schemas.day_schedules import HHMM_PATTERN


class EmployeeBase(CamelModel):
    user_id: int
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    employment_status: EmploymentStatus = EmploymentStatus.ACTIVE
    weekly_hours_quota: float = Field(ge=0, le=168)
    default_start_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    default_end_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)


class EmployeeCreate(EmployeeBase):
    pass


class EmployeeUpdate(CamelModel):
    employment_type: Optional[EmploymentType] = None
    employment_status: Optional[EmploymentStatus] = None
    weekly_hours_quota: Optional[float] = Field(default=None, ge=0, le=168)
    default_start_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    default_end_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)

    @field_validator("employment_type", "employment_status", "weekly_hours_quota")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class EmployeeResponse(EmployeeBase):
    id: int
    created_at: datetime
    updated_at: datetime

from datetime import date, datetime
from typing import ClassVar, Dict, Optional

from pydantic import field_validator, model_validator

from app.schemas.base import CamelModel
from app.schemas.edits import EditEnvelope


class TemplateAssignmentBase(CamelModel):
    user_id: int
    template_id: int
    start_date: date
    end_date: Optional[date] = None
    priority: int = 0
    is_active: bool = True

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class TemplateAssignmentCreate(TemplateAssignmentBase):
    pass


class TemplateAssignmentUpdate(EditEnvelope):
    template_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None

    EDITABLE: ClassVar[Dict[str, str]] = {
        "template_id": "templateId",
        "start_date": "startDate",
        "end_date": "endDate",
        "priority": "priority",
        "is_active": "isActive",
    }

    # omitted means unchanged; only endDate may be cleared
    @field_validator("template_id", "start_date", "priority", "is_active")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class TemplateAssignmentResponse(TemplateAssignmentBase):
    id: int
    created_at: datetime
    updated_at: datetime

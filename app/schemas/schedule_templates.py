from datetime import datetime
from typing import ClassVar, Dict, List, Optional

from pydantic import Field

from app.schemas.base import CamelModel
from app.schemas.day_schedules import TimeBlockSchema
from app.schemas.edits import EditEnvelope


class DayPatternSchema(CamelModel):
    is_working: bool = False
    time_blocks: List[TimeBlockSchema] = Field(default_factory=list)


class ScheduleTemplateBase(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    is_global: bool = False
    is_default: bool = False
    # weekday 0 (Monday) .. 6 (Sunday)
    pattern: Dict[int, DayPatternSchema] = Field(default_factory=dict)


class ScheduleTemplateCreate(ScheduleTemplateBase):
    pass


class ScheduleTemplateUpdate(EditEnvelope):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_global: Optional[bool] = None
    is_default: Optional[bool] = None
    pattern: Optional[Dict[int, DayPatternSchema]] = None

    EDITABLE: ClassVar[Dict[str, str]] = {
        "name": "name",
        "description": "description",
        "is_global": "isGlobal",
        "is_default": "isDefault",
        "pattern": "pattern",
    }


class ScheduleTemplateResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    is_global: bool
    is_default: bool
    # stored form: {"0": {"isWorking": ..., "timeBlocks": [...]}}
    pattern: dict
    created_by_user_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

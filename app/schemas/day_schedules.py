import datetime as dt
from typing import ClassVar, Dict, List, Optional

from pydantic import AliasChoices, Field, computed_field, field_serializer, field_validator

from app.schemas.base import CamelModel, round_hours
from app.schemas.edits import EditEnvelope, SnapshotEnvelope
from app.services.conflicts import ResolutionStrategy


HHMM_PATTERN = r"^(?:[01]\d|2[0-3]):[0-5]\d$|^24:00$"


class TimeBlockSchema(CamelModel):
    start: str = Field(pattern=HHMM_PATTERN, validation_alias=AliasChoices("start", "startTime", "start_time"))
    end: str = Field(pattern=HHMM_PATTERN, validation_alias=AliasChoices("end", "endTime", "end_time"))


class DayScheduleUpdate(EditEnvelope):
    is_working: Optional[bool] = None
    time_blocks: Optional[List[TimeBlockSchema]] = None

    EDITABLE: ClassVar[Dict[str, str]] = {"is_working": "isWorking", "time_blocks": "timeBlocks"}


class WeekDayEdit(SnapshotEnvelope):
    is_working: Optional[bool] = None
    time_blocks: Optional[List[TimeBlockSchema]] = None

    EDITABLE: ClassVar[Dict[str, str]] = DayScheduleUpdate.EDITABLE


class WeekScheduleUpdate(CamelModel):
    # Monday first; fields left out of a day keep their stored value
    days: List[WeekDayEdit] = Field(min_length=7, max_length=7)
    strategy: Optional[ResolutionStrategy] = None


class DayScheduleResponse(CamelModel):
    id: Optional[int] = None
    user_id: int
    date: dt.date
    is_working: bool
    time_blocks: List[TimeBlockSchema]
    source: str
    template_id: Optional[int] = None
    assignment_id: Optional[int] = None

    @field_validator("source", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)

    @computed_field
    @property
    def hours(self) -> float:
        if not self.is_working:
            return 0.0
        minutes = 0
        for block in self.time_blocks:
            sh, sm = block.start.split(":")
            eh, em = block.end.split(":")
            minutes += (int(eh) * 60 + int(em)) - (int(sh) * 60 + int(sm))
        return round_hours(minutes / 60)


class MemberWeekResponse(CamelModel):
    user_id: int
    user_name: str
    weekly_quota: float
    total_booked: float
    status: str
    days: List[DayScheduleResponse]

    @field_serializer("weekly_quota", "total_booked")
    def round_value(self, value: float) -> float:
        return round_hours(value)


class ScheduleAuditResponse(CamelModel):
    id: int
    day_schedule_id: Optional[int] = None
    user_id: int
    date: dt.date
    week_start: dt.date
    action: str
    changed_by: Optional[int] = None
    changed_by_name: Optional[str] = None
    old_value: Optional[dict] = None
    new_value: dict
    changed_at: dt.datetime

    @field_validator("action", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)

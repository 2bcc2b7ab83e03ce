from datetime import date
from typing import List

from pydantic import field_serializer, field_validator

from app.schemas.base import CamelModel, round_hours


class _HoursModel(CamelModel):
    @field_validator("status", mode="before", check_fields=False)
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class HoursSummaryResponse(_HoursModel):
    week_start: date
    weekly_quota: float
    total_booked: float
    expected_hours: float
    difference: float
    status: str
    working_days: int
    days: List[float]

    @field_serializer("weekly_quota", "total_booked", "expected_hours", "difference")
    def round_value(self, value: float) -> float:
        return round_hours(value)

    @field_serializer("days")
    def round_days(self, value: List[float]) -> List[float]:
        return [round_hours(v) for v in value]


class WeekBreakdownResponse(_HoursModel):
    week_start: date
    week_end: date
    total_booked: float
    expected_hours: float
    working_days: int
    working_days_in_month: int
    fraction: float
    difference: float
    status: str

    @field_serializer("total_booked", "expected_hours", "difference")
    def round_value(self, value: float) -> float:
        return round_hours(value)

    @field_serializer("fraction")
    def round_fraction(self, value: float) -> float:
        return round(value, 2)


class MonthSummaryResponse(_HoursModel):
    year: int
    month: int
    weekly_quota: float
    total_quota: float
    total_booked: float
    expected_hours: float
    difference: float
    status: str
    working_days_count: int
    total_weeks: float
    weeks: List[WeekBreakdownResponse]

    @field_serializer("weekly_quota", "total_quota", "total_booked", "expected_hours", "difference")
    def round_value(self, value: float) -> float:
        return round_hours(value)

    @field_serializer("total_weeks")
    def round_weeks(self, value: float) -> float:
        return round(value, 2)


class EmployeeHoursOverview(_HoursModel):
    user_id: int
    name: str
    weekly_quota: float
    current_week_hours: float
    difference: float
    status: str

    @field_serializer("weekly_quota", "current_week_hours", "difference")
    def round_value(self, value: float) -> float:
        return round_hours(value)

"""
Internal data types for schedule resolution and hours accounting.
decoupled from SQLAlchemy models so the engine stays pure and testable.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional


class DaySource(str, Enum):
    TEMPLATE = "template"
    MANUAL = "manual"


class HoursStatus(str, Enum):
    OVER = "over"
    UNDER = "under"
    EXACT = "exact"


@dataclass(frozen=True)
class TimeBlock:
    """A contiguous work interval inside a single day, HH:MM strings."""
    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / 60

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


def to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


@dataclass
class DayPattern:
    is_working: bool
    time_blocks: list[TimeBlock] = field(default_factory=list)


@dataclass
class Template:
    id: int
    name: str
    pattern: dict  # raw stored JSON, parsed per weekday at resolution time


@dataclass
class Assignment:
    id: int
    user_id: int
    template_id: int
    start_date: date
    end_date: Optional[date] = None  # None = open-ended
    priority: int = 0
    is_active: bool = True

    def covers(self, day: date) -> bool:
        if not self.is_active or day < self.start_date:
            return False
        return self.end_date is None or day <= self.end_date

    @property
    def span_days(self) -> Optional[int]:
        if self.end_date is None:
            return None
        return (self.end_date - self.start_date).days


@dataclass
class EmployeeProfile:
    """Employment record consumed from HR; only what the engine needs."""
    user_id: int
    name: str
    weekly_hours_quota: float
    default_start_time: Optional[str] = None
    default_end_time: Optional[str] = None

    @property
    def has_legacy_hours(self) -> bool:
        return bool(self.default_start_time and self.default_end_time)


@dataclass
class ResolvedDay:
    """A concrete day schedule, stored or freshly materialized."""
    user_id: int
    date: date
    is_working: bool
    time_blocks: list[TimeBlock] = field(default_factory=list)
    source: DaySource = DaySource.TEMPLATE
    template_id: Optional[int] = None
    assignment_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def hours(self) -> float:
        if not self.is_working:
            return 0.0
        return sum(b.duration_minutes for b in self.time_blocks) / 60

    @classmethod
    def empty(cls, user_id: int, day: date) -> "ResolvedDay":
        return cls(user_id=user_id, date=day, is_working=False)


@dataclass
class HoursSummary:
    week_start: date
    weekly_quota: float
    total_booked: float
    expected_hours: float
    difference: float
    status: HoursStatus
    working_days: int = 0
    days: list[float] = field(default_factory=list)  # booked hours Mon..Sun


@dataclass
class WeekBreakdown:
    """One ISO week's contribution to a month summary."""
    week_start: date
    total_booked: float
    expected_hours: float
    working_days: int  # planned working days of the whole week
    working_days_in_month: int  # in-month, holidays removed
    fraction: float  # share of the week counted towards the month
    difference: float
    status: HoursStatus

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)


@dataclass
class MonthSummary:
    year: int
    month: int
    weekly_quota: float
    total_quota: float
    total_booked: float
    expected_hours: float
    difference: float
    status: HoursStatus
    working_days_count: int
    total_weeks: float
    weeks: list[WeekBreakdown] = field(default_factory=list)


@dataclass
class ScheduleContext:
    """All data needed to resolve one user's days over a date range."""
    profile: EmployeeProfile
    start: date
    end: date  # inclusive
    assignments: list[Assignment]
    templates: dict[int, Template]
    existing_days: dict[date, ResolvedDay] = field(default_factory=dict)
    holidays: set[date] = field(default_factory=set)

    def dates(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range((self.end - self.start).days + 1)]

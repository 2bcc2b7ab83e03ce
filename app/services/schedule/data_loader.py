"""
Data loader for schedule resolution.
Fetches assignments, templates, stored days and holidays and converts
them to internal types.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError
from app.db.models.day_schedules import DaySchedules, DayScheduleSource
from app.db.models.employees import Employees, EmploymentStatus
from app.db.models.public_holidays import PublicHolidays
from app.db.models.schedule_templates import ScheduleTemplates
from app.db.models.template_assignments import TemplateAssignments
from app.db.models.users import Users

from .types import (
    Assignment,
    DaySource,
    EmployeeProfile,
    ResolvedDay,
    ScheduleContext,
    Template,
)
from .time_blocks import block_from_raw


def load_profile(db: Session, user_id: int) -> EmployeeProfile:
    """Load the employment profile for a user."""
    row = db.execute(
        select(Employees, Users).join(Users, Users.id == Employees.user_id).where(Employees.user_id == user_id)
    ).first()
    if row is None:
        raise NotFoundError(f"No employee record for user {user_id}")
    employee, user = row
    return _to_profile(employee, user)


def _to_profile(employee: Employees, user: Users) -> EmployeeProfile:
    return EmployeeProfile(
        user_id=user.id,
        name=user.name,
        weekly_hours_quota=float(employee.weekly_hours_quota),
        default_start_time=employee.default_start_time,
        default_end_time=employee.default_end_time,
    )


def load_active_profiles(db: Session) -> list[EmployeeProfile]:
    """Active employees of active users, ordered by name."""
    stmt = (
        select(Employees, Users)
        .join(Users, Users.id == Employees.user_id)
        .where(
            and_(
                Employees.employment_status == EmploymentStatus.ACTIVE,
                Users.is_active == True,
            )
        )
        .order_by(Users.name)
    )
    return [_to_profile(emp, user) for emp, user in db.execute(stmt).all()]


def to_assignment(row: TemplateAssignments) -> Assignment:
    return Assignment(
        id=row.id,
        user_id=row.user_id,
        template_id=row.template_id,
        start_date=row.start_date,
        end_date=row.end_date,
        priority=row.priority,
        is_active=row.is_active,
    )


def load_assignments(db: Session, user_id: int, start: date, end: date) -> list[Assignment]:
    """Active assignments of a user that overlap [start, end]."""
    stmt = select(TemplateAssignments).where(
        and_(
            TemplateAssignments.user_id == user_id,
            TemplateAssignments.is_active == True,
            TemplateAssignments.start_date <= end,
            or_(TemplateAssignments.end_date.is_(None), TemplateAssignments.end_date >= start),
        )
    )
    return [to_assignment(r) for r in db.execute(stmt).scalars().all()]


def load_templates(db: Session, template_ids: set[int]) -> dict[int, Template]:
    if not template_ids:
        return {}
    stmt = select(ScheduleTemplates).where(ScheduleTemplates.id.in_(template_ids))
    return {
        t.id: Template(id=t.id, name=t.name, pattern=t.pattern)
        for t in db.execute(stmt).scalars().all()
    }


def to_resolved_day(row: DaySchedules) -> ResolvedDay:
    """Stored row to internal type. Stored blocks were validated on write."""
    return ResolvedDay(
        id=row.id,
        user_id=row.user_id,
        date=row.date,
        is_working=row.is_working,
        time_blocks=[block_from_raw(b) for b in row.time_blocks or []],
        source=DaySource(row.source.value if isinstance(row.source, DayScheduleSource) else row.source),
        template_id=row.template_id,
        assignment_id=row.assignment_id,
    )


def load_day_rows(db: Session, user_id: int, start: date, end: date) -> dict[date, DaySchedules]:
    stmt = select(DaySchedules).where(
        and_(
            DaySchedules.user_id == user_id,
            DaySchedules.date >= start,
            DaySchedules.date <= end,
        )
    )
    return {r.date: r for r in db.execute(stmt).scalars().all()}


def load_holidays(db: Session, start: date, end: date, country_code: Optional[str] = None) -> set[date]:
    """
    Public holiday dates in [start, end], recurring holidays expanded
    onto every year of the range.
    """
    country_code = country_code or settings.HOLIDAY_COUNTRY_CODE
    stmt = select(PublicHolidays).where(
        and_(
            PublicHolidays.country_code == country_code,
            or_(
                PublicHolidays.is_recurring == True,
                and_(PublicHolidays.date >= start, PublicHolidays.date <= end),
            ),
        )
    )
    holidays = set()
    for h in db.execute(stmt).scalars().all():
        if not h.is_recurring:
            holidays.add(h.date)
            continue
        for year in range(start.year, end.year + 1):
            try:
                occurrence = h.date.replace(year=year)
            except ValueError:
                # Feb 29 in a non-leap year
                continue
            if start <= occurrence <= end:
                holidays.add(occurrence)
    return holidays


def load_schedule_context(db: Session, user_id: int, start: date, end: date) -> ScheduleContext:
    """
    Load all data needed to resolve a user's days in [start, end].

    returns ScheduleContext for a given user/range
    """
    if end < start:
        raise ValueError(f"end {end} is before start {start}")

    profile = load_profile(db, user_id)
    assignments = load_assignments(db, user_id, start, end)
    templates = load_templates(db, {a.template_id for a in assignments})
    rows = load_day_rows(db, user_id, start, end)

    return ScheduleContext(
        profile=profile,
        start=start,
        end=end,
        assignments=assignments,
        templates=templates,
        existing_days={d: to_resolved_day(r) for d, r in rows.items()},
        holidays=load_holidays(db, start, end),
    )

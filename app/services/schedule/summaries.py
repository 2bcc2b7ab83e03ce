"""
Read-only aggregation over resolved days: week/month hours summaries and
team views. Nothing here writes rows or consults edit locks, so a read
during an edit sees the last committed state.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ScheduleValidationError

from .data_loader import load_active_profiles, load_schedule_context
from .hours import compute_month_summary, compute_week_summary, month_week_starts
from .materializer import resolve_context
from .resolver import is_planned_working_day
from .types import EmployeeProfile, HoursSummary, MonthSummary, ResolvedDay, ScheduleContext


@dataclass
class MemberWeek:
    profile: EmployeeProfile
    days: list[ResolvedDay]
    summary: HoursSummary


def planned_days(context: ScheduleContext) -> set[date]:
    return {
        d for d in context.dates()
        if is_planned_working_day(d, context.assignments, context.templates, settings.STANDARD_WORKING_DAYS)
    }


def _week_from_context(context: ScheduleContext, week_start: date) -> tuple[list[ResolvedDay], HoursSummary]:
    days = resolve_context(context)
    summary = compute_week_summary(
        week_start,
        days,
        context.profile.weekly_hours_quota,
        planned_days(context),
        context.holidays,
        settings.HOURS_EPSILON,
    )
    return days, summary


def week_summary(db: Session, user_id: int, week_start: date) -> HoursSummary:
    context = load_schedule_context(db, user_id, week_start, week_start + timedelta(days=6))
    return _week_from_context(context, week_start)[1]


def month_summary(db: Session, user_id: int, year: int, month: int) -> MonthSummary:
    if month < 1 or month > 12:
        raise ScheduleValidationError(f"Month must be 1-12, got {month}")

    # load whole boundary weeks so their planned working days are known
    starts = month_week_starts(year, month)
    context = load_schedule_context(db, user_id, starts[0], starts[-1] + timedelta(days=6))
    days = resolve_context(context)
    return compute_month_summary(
        year,
        month,
        {d.date: d for d in days},
        context.profile.weekly_hours_quota,
        planned_days(context),
        context.holidays,
        settings.HOURS_EPSILON,
    )


def team_week(db: Session, week_start: date, user_ids: Optional[list[int]] = None) -> list[MemberWeek]:
    """Resolved week for every active employee. Never creates rows."""
    members = []
    for profile in load_active_profiles(db):
        if user_ids is not None and profile.user_id not in user_ids:
            continue
        context = load_schedule_context(db, profile.user_id, week_start, week_start + timedelta(days=6))
        days, summary = _week_from_context(context, week_start)
        members.append(MemberWeek(profile=profile, days=days, summary=summary))
    return members

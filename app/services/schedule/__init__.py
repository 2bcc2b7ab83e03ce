"""
Schedule service package.

Usage:
    from datetime import date
    from app.services.schedule import resolve_week, week_summary

    # Resolve (and lazily persist) a user's week
    days = resolve_week(db, user_id=1, week_start=date(2025, 1, 20))

    # Hours against the weekly quota
    summary = week_summary(db, user_id=1, week_start=date(2025, 1, 20))

    # Or load context separately for inspection/testing
    from app.services.schedule import load_schedule_context, resolve_context

    context = load_schedule_context(db, 1, date(2025, 1, 20), date(2025, 1, 26))
    days = resolve_context(context)
"""

from .types import (
    TimeBlock,
    DayPattern,
    DaySource,
    Template,
    Assignment,
    EmployeeProfile,
    ResolvedDay,
    HoursStatus,
    HoursSummary,
    WeekBreakdown,
    MonthSummary,
    ScheduleContext,
)
from .data_loader import load_schedule_context
from .resolver import resolve_day, select_assignment, reconcile_day
from .hours import compute_week_summary, compute_month_summary, week_start_for
from .materializer import (
    resolve_context,
    resolve_days,
    resolve_week,
    resolve_single_day,
    apply_manual_edit,
    apply_week_edits,
    resync_day_row,
)
from .summaries import week_summary, month_summary, team_week
from .audit import load_week_audit, record_change

__all__ = [
    # Types
    "TimeBlock",
    "DayPattern",
    "DaySource",
    "Template",
    "Assignment",
    "EmployeeProfile",
    "ResolvedDay",
    "HoursStatus",
    "HoursSummary",
    "WeekBreakdown",
    "MonthSummary",
    "ScheduleContext",
    # Main entry points
    "resolve_week",
    "resolve_single_day",
    "apply_manual_edit",
    "apply_week_edits",
    "resync_day_row",
    "week_summary",
    "month_summary",
    "team_week",
    "load_week_audit",
    # Lower-level functions
    "load_schedule_context",
    "record_change",
    "resolve_context",
    "resolve_days",
    "resolve_day",
    "select_assignment",
    "reconcile_day",
    "compute_week_summary",
    "compute_month_summary",
    "week_start_for",
]

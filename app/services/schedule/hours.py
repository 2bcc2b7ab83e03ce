"""
Hours accounting.
Aggregates resolved days into weekly and monthly summaries against the
employment quota. Sums stay at full float precision; rounding belongs
to the response layer.
"""

import calendar
from datetime import date, timedelta
from typing import Iterable, Mapping

from .types import HoursStatus, HoursSummary, MonthSummary, ResolvedDay, WeekBreakdown


DEFAULT_EPSILON = 0.05


def classify(difference: float, epsilon: float = DEFAULT_EPSILON) -> HoursStatus:
    """exact within epsilon hours, otherwise over/under by sign."""
    if abs(difference) <= epsilon:
        return HoursStatus.EXACT
    return HoursStatus.OVER if difference > 0 else HoursStatus.UNDER


def week_start_for(day: date) -> date:
    """Monday of the ISO week containing `day`."""
    return day - timedelta(days=day.weekday())


def week_dates(week_start: date) -> list[date]:
    return [week_start + timedelta(days=i) for i in range(7)]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def month_week_starts(year: int, month: int) -> list[date]:
    """Mondays of every ISO week that overlaps the month."""
    first, last = month_bounds(year, month)
    monday = week_start_for(first)
    starts = []
    while monday <= last:
        starts.append(monday)
        monday += timedelta(days=7)
    return starts


def day_hours(day: ResolvedDay) -> float:
    return day.hours


def compute_week_summary(
    week_start: date,
    days: Iterable[ResolvedDay],
    weekly_quota: float,
    planned_days: set[date],
    holidays: set[date],
    epsilon: float = DEFAULT_EPSILON,
) -> HoursSummary:
    """
    Weekly summary: booked hours over the 7 days vs the weekly quota.

    expected_hours is the quota scaled by the share of planned working
    days that are not public holidays.
    """
    dates = week_dates(week_start)
    by_date = {d.date: d for d in days}
    per_day = [day_hours(by_date[d]) if d in by_date else 0.0 for d in dates]
    total_booked = sum(per_day)

    planned = [d for d in dates if d in planned_days]
    working = [d for d in planned if d not in holidays]
    expected = weekly_quota * len(working) / len(planned) if planned else 0.0

    difference = total_booked - weekly_quota
    return HoursSummary(
        week_start=week_start,
        weekly_quota=weekly_quota,
        total_booked=total_booked,
        expected_hours=expected,
        difference=difference,
        status=classify(difference, epsilon),
        working_days=len(working),
        days=per_day,
    )


def compute_week_breakdown(
    week_start: date,
    year: int,
    month: int,
    days_by_date: Mapping[date, ResolvedDay],
    weekly_quota: float,
    planned_days: set[date],
    holidays: set[date],
    epsilon: float = DEFAULT_EPSILON,
) -> WeekBreakdown:
    """
    One week's share of a month. Boundary weeks are prorated by the
    in-month part of their planned working days, holidays removed.
    """
    dates = week_dates(week_start)
    in_month = [d for d in dates if d.year == year and d.month == month]

    planned_week = [d for d in dates if d in planned_days]
    planned_in_month = [d for d in planned_week if d in in_month]
    working_in_month = [d for d in planned_in_month if d not in holidays]

    if planned_week:
        expected = weekly_quota * len(working_in_month) / len(planned_week)
        fraction = len(planned_in_month) / len(planned_week)
    else:
        expected = 0.0
        fraction = len(in_month) / 7

    booked = sum(day_hours(days_by_date[d]) for d in in_month if d in days_by_date)
    difference = booked - expected
    return WeekBreakdown(
        week_start=week_start,
        total_booked=booked,
        expected_hours=expected,
        working_days=len(planned_week),
        working_days_in_month=len(working_in_month),
        fraction=fraction,
        difference=difference,
        status=classify(difference, epsilon),
    )


def compute_month_summary(
    year: int,
    month: int,
    days_by_date: Mapping[date, ResolvedDay],
    weekly_quota: float,
    planned_days: set[date],
    holidays: set[date],
    epsilon: float = DEFAULT_EPSILON,
) -> MonthSummary:
    """Month summary as the sum of its prorated ISO weeks."""
    weeks = [
        compute_week_breakdown(ws, year, month, days_by_date, weekly_quota, planned_days, holidays, epsilon)
        for ws in month_week_starts(year, month)
    ]

    expected = sum(w.expected_hours for w in weeks)
    total_booked = sum(w.total_booked for w in weeks)
    difference = total_booked - expected
    return MonthSummary(
        year=year,
        month=month,
        weekly_quota=weekly_quota,
        total_quota=expected,
        total_booked=total_booked,
        expected_hours=expected,
        difference=difference,
        status=classify(difference, epsilon),
        working_days_count=sum(w.working_days_in_month for w in weeks),
        total_weeks=sum(w.fraction for w in weeks),
        weeks=weeks,
    )

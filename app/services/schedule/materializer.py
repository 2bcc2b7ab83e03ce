"""
Daily schedule materializer.
Persists resolved or manually edited days. Rows are created lazily on
first resolution and are only ever overwritten, never deleted.
"""

import logging
from datetime import date, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, ScheduleValidationError
from app.db.models.day_schedules import DaySchedules, DayScheduleSource
from app.db.models.schedule_audit import AuditAction

from .audit import record_change
from .data_loader import load_day_rows, load_schedule_context, to_resolved_day
from .resolver import reconcile_day, resolve_day
from .time_blocks import blocks_to_dicts
from .types import ResolvedDay, ScheduleContext


logger = logging.getLogger(__name__)

# API field name -> column
DAY_EDIT_FIELDS = {
    "isWorking": "is_working",
    "timeBlocks": "time_blocks",
}


def snapshot_day(row: DaySchedules) -> dict:
    """Current editable state keyed by API field names, for conflict diffs."""
    return {
        "isWorking": row.is_working,
        "timeBlocks": list(row.time_blocks or []),
    }


def resolve_context(
    context: ScheduleContext,
    resync: bool = False,
    standard_days: Optional[Iterable[int]] = None,
) -> list[ResolvedDay]:
    standard_days = list(standard_days if standard_days is not None else settings.STANDARD_WORKING_DAYS)
    return [
        resolve_day(
            context.profile,
            d,
            context.assignments,
            context.templates,
            existing=context.existing_days.get(d),
            resync=resync,
            standard_days=standard_days,
        )
        for d in context.dates()
    ]


def _write_day(row: DaySchedules, day: ResolvedDay, updated_by: Optional[int]) -> None:
    row.is_working = day.is_working
    row.time_blocks = blocks_to_dicts(day.time_blocks)
    row.source = DayScheduleSource(day.source.value)
    row.template_id = day.template_id
    row.assignment_id = day.assignment_id
    if updated_by is not None:
        row.last_updated_by = updated_by


def _differs(row: DaySchedules, day: ResolvedDay) -> bool:
    return (
        row.is_working != day.is_working
        or list(row.time_blocks or []) != blocks_to_dicts(day.time_blocks)
        or row.source.value != day.source.value
        or row.template_id != day.template_id
        or row.assignment_id != day.assignment_id
    )


def resolve_days(
    db: Session,
    user_id: int,
    start: date,
    end: date,
    persist: bool = False,
    updated_by: Optional[int] = None,
    is_locked: Optional[Callable[[int], bool]] = None,
) -> list[ResolvedDay]:
    """
    Resolve every day in [start, end] for a user.

    With persist=False this is a pure read: missing days are resolved in
    memory only. With persist=True missing rows are created and stale
    template-sourced rows are refreshed; manual rows are left untouched,
    and so is any row for which is_locked(day_id) holds.
    """
    context = load_schedule_context(db, user_id, start, end)
    days = resolve_context(context)
    if not persist:
        return days

    rows = {}
    existing_rows = load_day_rows(db, user_id, start, end)
    for day in days:
        row = existing_rows.get(day.date)
        if row is None:
            row = DaySchedules(user_id=user_id, date=day.date)
            _write_day(row, day, updated_by)
            db.add(row)
            logger.info("Created day schedule for user %s on %s (source=%s)", user_id, day.date, day.source.value)
        elif row.source == DayScheduleSource.TEMPLATE and _differs(row, day):
            if is_locked is not None and is_locked(row.id):
                logger.info("Day %s is being edited, refresh deferred", row.id)
            else:
                _write_day(row, day, updated_by)
                logger.info("Refreshed template day for user %s on %s", user_id, day.date)
        rows[day.date] = row

    try:
        db.commit()
    except IntegrityError:
        # a concurrent request created the same (user, date) rows first
        db.rollback()
        logger.info("Lost lazy-creation race for user %s %s..%s, re-reading", user_id, start, end)
        return resolve_days(db, user_id, start, end, persist=False)
    for row in rows.values():
        db.refresh(row)
    return [to_resolved_day(rows[d.date]) for d in days]


def resolve_week(
    db: Session,
    user_id: int,
    week_start: date,
    persist: bool = True,
    is_locked: Optional[Callable[[int], bool]] = None,
) -> list[ResolvedDay]:
    return resolve_days(db, user_id, week_start, week_start + timedelta(days=6), persist=persist, is_locked=is_locked)


def resolve_single_day(
    db: Session,
    user_id: int,
    day: date,
    resync: bool = False,
    is_locked: Optional[Callable[[int], bool]] = None,
) -> ResolvedDay:
    """
    resolveDay(userId, date): the day's schedule, materialized on demand.
    resync discards a manual record and reverts to template resolution.
    """
    if resync:
        row = get_day_row_for_date(db, user_id, day)
        if row is not None:
            return to_resolved_day(resync_day_row(db, row))
    return resolve_days(db, user_id, day, day, persist=True, is_locked=is_locked)[0]


def get_day_row(db: Session, day_id: int) -> DaySchedules:
    row = db.query(DaySchedules).filter(DaySchedules.id == day_id).first()
    if not row:
        raise NotFoundError(f"Schedule day {day_id} not found")
    return row


def get_day_row_for_date(db: Session, user_id: int, day: date) -> Optional[DaySchedules]:
    return db.query(DaySchedules).filter(DaySchedules.user_id == user_id, DaySchedules.date == day).first()


def _apply_patch(
    db: Session,
    row: DaySchedules,
    changes: dict,
    updated_by: Optional[int],
    action: AuditAction,
) -> bool:
    """Write an edit to the row and its audit entry without committing."""
    patch = {DAY_EDIT_FIELDS[k]: v for k, v in changes.items() if k in DAY_EDIT_FIELDS}
    if not patch:
        return False

    before = snapshot_day(row)
    existing = to_resolved_day(row)
    edited = reconcile_day(existing, existing, patch=patch)
    _write_day(row, edited, updated_by)
    record_change(db, row, action, before, snapshot_day(row), updated_by)
    return True


def apply_manual_edit(db: Session, row: DaySchedules, changes: dict, updated_by: Optional[int] = None) -> DaySchedules:
    """
    Apply an edit keyed by API field names. The day becomes manual and
    is no longer overwritten by the resolver. An empty edit is a no-op.
    """
    if not _apply_patch(db, row, changes, updated_by, AuditAction.MANUAL_EDIT):
        return row
    db.commit()
    db.refresh(row)
    logger.info(
        "Manual edit on day %s (user %s, %s) by user %s",
        row.id, row.user_id, row.date, updated_by,
    )
    return row


def apply_week_edits(
    db: Session,
    rows: dict[int, DaySchedules],
    changes_by_id: dict[int, dict],
    updated_by: Optional[int] = None,
) -> list[DaySchedules]:
    """
    Apply edits to several stored days in one transaction: if any day's
    edit is invalid, none is written. Returns the rows ordered by date.
    """
    try:
        edited = [
            day_id for day_id, changes in changes_by_id.items()
            if _apply_patch(db, rows[day_id], changes, updated_by, AuditAction.WEEK_EDIT)
        ]
        db.commit()
    except ScheduleValidationError:
        db.rollback()
        raise
    for row in rows.values():
        db.refresh(row)
    logger.info("Week edit by user %s changed days %s", updated_by, sorted(edited))
    return sorted(rows.values(), key=lambda r: r.date)


def resync_day_row(db: Session, row: DaySchedules, updated_by: Optional[int] = None) -> DaySchedules:
    """Drop the manual flag and re-resolve the stored day from its assignments."""
    before = snapshot_day(row)
    context = load_schedule_context(db, row.user_id, row.date, row.date)
    day = resolve_context(context, resync=True)[0]
    _write_day(row, day, updated_by)
    record_change(db, row, AuditAction.RESYNC, before, snapshot_day(row), updated_by)
    db.commit()
    db.refresh(row)
    logger.info("Resynced day %s (user %s, %s) from templates", row.id, row.user_id, row.date)
    return row

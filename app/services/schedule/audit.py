"""
Change history for stored days.
Entries are added to the caller's session and committed with the edit
they describe.
"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from app.db.models.day_schedules import DaySchedules
from app.db.models.schedule_audit import AuditAction, ScheduleAudit
from app.db.models.users import Users


def record_change(
    db: Session,
    row: DaySchedules,
    action: AuditAction,
    old_value: Optional[dict],
    new_value: dict,
    changed_by: Optional[int],
) -> ScheduleAudit:
    entry = ScheduleAudit(
        day_schedule_id=row.id,
        user_id=row.user_id,
        date=row.date,
        week_start=row.date - timedelta(days=row.date.weekday()),
        action=action,
        changed_by=changed_by,
        old_value=old_value,
        new_value=new_value,
    )
    db.add(entry)
    return entry


def load_week_audit(db: Session, user_id: int, week_start: date) -> list[tuple[ScheduleAudit, Optional[str]]]:
    """Entries for one user's week, newest first, with the changer's name."""
    changer = aliased(Users)
    stmt = (
        select(ScheduleAudit, changer.name)
        .outerjoin(changer, changer.id == ScheduleAudit.changed_by)
        .where(ScheduleAudit.user_id == user_id, ScheduleAudit.week_start == week_start)
        .order_by(ScheduleAudit.changed_at.desc(), ScheduleAudit.id.desc())
    )
    return [(entry, name) for entry, name in db.execute(stmt).all()]

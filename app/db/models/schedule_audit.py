from typing import Optional
import datetime as dt
from enum import Enum
from sqlalchemy import Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class AuditAction(str, Enum):
    MANUAL_EDIT = "manual_edit"
    WEEK_EDIT = "week_edit"
    RESYNC = "resync"


class ScheduleAudit(Base):
    __tablename__ = "schedule_audit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    day_schedule_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("day_schedules.id", ondelete="SET NULL"), nullable=True)
    # whose schedule changed
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    week_start: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, name="schedule_audit_action_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    changed_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    old_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict] = mapped_column(JSON, nullable=False)
    changed_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

from typing import Optional
import datetime as dt
from enum import Enum
from sqlalchemy import Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, JSON, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class DayScheduleSource(str, Enum):
    TEMPLATE = "template"
    MANUAL = "manual"


class DaySchedules(Base):
    __tablename__ = "day_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_working: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_blocks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    source: Mapped[DayScheduleSource] = mapped_column(
        SQLEnum(DayScheduleSource, name="day_schedule_source_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=DayScheduleSource.TEMPLATE,
    )
    template_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("schedule_templates.id", ondelete="SET NULL"), nullable=True)
    assignment_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("template_assignments.id", ondelete="SET NULL"), nullable=True)
    last_updated_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uix_day_schedules_user_date"),
    )

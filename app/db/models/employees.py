from typing import Optional
from sqlalchemy import Integer, DateTime, Float, String, func, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from enum import Enum
from app.db.database import Base

class EmploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    LEAVER = "LEAVER"
    ON_LEAVE = "ON_LEAVE"

class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    MINIJOB = "MINIJOB"

class Employees(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    employment_type: Mapped[EmploymentType] = mapped_column(SQLEnum(EmploymentType, name="employment_type_enum"), nullable=False, default=EmploymentType.FULL_TIME)
    employment_status: Mapped[EmploymentStatus] = mapped_column(SQLEnum(EmploymentStatus, name="employment_status_enum"), nullable=False, default=EmploymentStatus.ACTIVE)
    weekly_hours_quota: Mapped[float] = mapped_column(Float, nullable=False, default=40.0)
    # legacy per-user defaults, used when no template assignment governs a day
    default_start_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    default_end_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

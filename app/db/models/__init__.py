from app.db.database import Base

# Import models
from app.db.models.users import Users
from app.db.models.employees import Employees, EmploymentStatus, EmploymentType
from app.db.models.schedule_templates import ScheduleTemplates
from app.db.models.template_assignments import TemplateAssignments
from app.db.models.day_schedules import DaySchedules, DayScheduleSource
from app.db.models.schedule_audit import ScheduleAudit, AuditAction
from app.db.models.public_holidays import PublicHolidays

__all__ = [
    "Base",
    # Models
    "Users",
    "Employees",
    "ScheduleTemplates",
    "TemplateAssignments",
    "DaySchedules",
    "ScheduleAudit",
    "PublicHolidays",
    # Enums
    "EmploymentStatus",
    "EmploymentType",
    "DayScheduleSource",
    "AuditAction",
]

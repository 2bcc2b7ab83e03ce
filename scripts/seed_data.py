"""
Seed script for the ShiftLedger development database.

- Drops and recreates every table from the SQLAlchemy models, so ids
  start at 1 in insertion order
- 4 users with employment profiles (40h, 30h, 20h, legacy 9-17)
- A standard Mon-Fri template, a part-time Mon-Wed template and a
  seasonal Saturday template assigned with a higher priority
- German fixed public holidays as recurring entries

There is no login flow; bearer tokens for each user are printed at the end.

Run with: python -m scripts.seed_data
"""

import sys
from datetime import date, timedelta

from app.core.security import create_access_token
from app.db.database import Base, SessionLocal, engine
from app.db.models import (
    Employees,
    EmploymentType,
    PublicHolidays,
    ScheduleTemplates,
    TemplateAssignments,
    Users,
)
from app.services.schedule.time_blocks import validate_pattern


def reset_tables():
    """Drop and recreate all tables."""
    print("Recreating tables...")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("Tables ready.")


def get_current_week_monday():
    """Get the Monday of the current week."""
    today = date.today()
    return today - timedelta(days=today.weekday())


def working_day(*blocks):
    return {"isWorking": True, "timeBlocks": [{"start": s, "end": e} for s, e in blocks]}


OFF = {"isWorking": False, "timeBlocks": []}


def seed_users(db):
    """Seed users: 1 team lead, 3 employees."""
    print("Seeding users...")

    users = [
        Users(email="lead@shiftledger.dev", name="Lena Lead", is_active=True),
        Users(email="alice@shiftledger.dev", name="Alice Smith", is_active=True),
        Users(email="bob@shiftledger.dev", name="Bob Jones", is_active=True),
        # legacy account, no template assignment
        Users(email="carol@shiftledger.dev", name="Carol White", is_active=True),
    ]
    db.add_all(users)
    db.commit()
    print(f"  Created {len(users)} users.")


def seed_employees(db):
    print("Seeding employees...")

    employees = [
        Employees(user_id=1, employment_type=EmploymentType.FULL_TIME, weekly_hours_quota=40.0),
        Employees(user_id=2, employment_type=EmploymentType.PART_TIME, weekly_hours_quota=30.0),
        Employees(user_id=3, employment_type=EmploymentType.PART_TIME, weekly_hours_quota=20.0),
        Employees(
            user_id=4,
            employment_type=EmploymentType.FULL_TIME,
            weekly_hours_quota=40.0,
            default_start_time="09:00",
            default_end_time="17:00",
        ),
    ]
    db.add_all(employees)
    db.commit()
    print(f"  Created {len(employees)} employees.")


def seed_templates(db):
    print("Seeding schedule templates...")

    full_week = working_day(("08:00", "12:00"), ("13:00", "17:00"))
    templates = [
        ScheduleTemplates(
            name="Standard 40h",
            description="Mon-Fri 08:00-17:00 with a lunch break",
            is_global=True,
            is_default=True,
            pattern=validate_pattern({"0": full_week, "1": full_week, "2": full_week, "3": full_week, "4": full_week, "5": OFF, "6": OFF}),
            created_by_user_id=1,
        ),
        ScheduleTemplates(
            name="Part-time Mon-Wed",
            description="Three long days",
            is_global=True,
            pattern=validate_pattern({
                "0": working_day(("08:00", "12:00"), ("12:30", "16:30")),
                "1": working_day(("08:00", "12:00"), ("12:30", "16:30")),
                "2": working_day(("08:00", "12:00")),
                "3": OFF, "4": OFF, "5": OFF, "6": OFF,
            }),
            created_by_user_id=1,
        ),
        ScheduleTemplates(
            name="Seasonal Saturday",
            description="Mon-Thu plus Saturday mornings",
            pattern=validate_pattern({
                "0": full_week, "1": full_week, "2": full_week, "3": full_week,
                "4": OFF,
                "5": working_day(("09:00", "13:00")),
                "6": OFF,
            }),
            created_by_user_id=1,
        ),
    ]
    db.add_all(templates)
    db.commit()
    print(f"  Created {len(templates)} templates.")


def seed_assignments(db):
    print("Seeding template assignments...")

    monday = get_current_week_monday()
    assignments = [
        TemplateAssignments(user_id=1, template_id=1, start_date=monday - timedelta(weeks=52)),
        TemplateAssignments(user_id=2, template_id=1, start_date=monday - timedelta(weeks=52)),
        # higher priority overlay for the next four weeks
        TemplateAssignments(user_id=2, template_id=3, start_date=monday, end_date=monday + timedelta(weeks=4, days=-1), priority=10),
        TemplateAssignments(user_id=3, template_id=2, start_date=monday - timedelta(weeks=12)),
    ]
    db.add_all(assignments)
    db.commit()
    print(f"  Created {len(assignments)} assignments.")


def seed_public_holidays(db):
    print("Seeding public holidays...")

    year = date.today().year
    fixed = [
        (date(year, 1, 1), "Neujahr"),
        (date(year, 5, 1), "Tag der Arbeit"),
        (date(year, 10, 3), "Tag der Deutschen Einheit"),
        (date(year, 12, 25), "1. Weihnachtstag"),
        (date(year, 12, 26), "2. Weihnachtstag"),
    ]
    holidays = [
        PublicHolidays(date=d, name=name, is_recurring=True, country_code="DE")
        for d, name in fixed
    ]
    db.add_all(holidays)
    db.commit()
    print(f"  Created {len(holidays)} public holidays.")


def main():
    """Main seed function."""
    print("\n" + "="*50)
    print("ShiftLedger Database Seeder")
    print("="*50 + "\n")

    response = input("This will DELETE ALL EXISTING DATA. Continue? (yes/no): ")
    if response.lower() != "yes":
        print("Aborted.")
        sys.exit(0)

    reset_tables()
    db = SessionLocal()

    try:
        seed_users(db)
        seed_employees(db)
        seed_templates(db)
        seed_assignments(db)
        seed_public_holidays(db)

        print("\n" + "="*50)
        print("Seeding complete!")
        print("="*50)
        print("\nBearer tokens:")
        for user in db.query(Users).order_by(Users.id).all():
            print(f"  {user.id} {user.name}: {create_access_token({'sub': user.id, 'email': user.email})}")
        print("="*50 + "\n")

    except Exception as e:
        db.rollback()
        print(f"\nError during seeding: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()

import pytest
from datetime import date

from app.services.schedule.types import Assignment, EmployeeProfile, Template


def get_test_monday() -> date:
    # returns a fixed Monday for deterministic tests
    return date(2025, 1, 20)


def working(*blocks) -> dict:
    return {"isWorking": True, "timeBlocks": [{"start": s, "end": e} for s, e in blocks]}


OFF = {"isWorking": False, "timeBlocks": []}


@pytest.fixture
def monday() -> date:
    return get_test_monday()


@pytest.fixture
def profile() -> EmployeeProfile:
    return EmployeeProfile(user_id=1, name="Alice", weekly_hours_quota=40.0)


@pytest.fixture
def legacy_profile() -> EmployeeProfile:
    # no assignments, only the old per-user default hours
    return EmployeeProfile(
        user_id=2, name="Bob", weekly_hours_quota=40.0,
        default_start_time="09:00", default_end_time="17:00",
    )


@pytest.fixture
def standard_template() -> Template:
    # Mon-Fri 08:00-12:00 + 13:00-17:00 = 8h/day
    day = working(("08:00", "12:00"), ("13:00", "17:00"))
    return Template(id=1, name="Standard", pattern={str(i): day for i in range(5)} | {"5": OFF, "6": OFF})


@pytest.fixture
def short_template() -> Template:
    # every day 09:00-13:00 = 4h/day, including weekends
    return Template(id=2, name="Short", pattern={str(i): working(("09:00", "13:00")) for i in range(7)})


@pytest.fixture
def templates(standard_template, short_template) -> dict[int, Template]:
    return {standard_template.id: standard_template, short_template.id: short_template}


@pytest.fixture
def open_assignment() -> Assignment:
    return Assignment(id=1, user_id=1, template_id=1, start_date=date(2024, 1, 1))

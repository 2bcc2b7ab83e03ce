import pytest
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db, get_coordinator
from app.core.security import create_access_token
from app.db.models import (
    Base,
    Employees,
    ScheduleTemplates,
    TemplateAssignments,
    Users,
)
from app.main import app
from app.services.conflicts import EditCoordinator, LockStore
from app.services.schedule.time_blocks import validate_pattern

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_test_monday() -> date:
    # returns a fixed Monday for deterministic tests
    return date(2025, 1, 20)


def auth_headers(user: Users) -> dict:
    token = create_access_token({"sub": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def monday() -> date:
    return get_test_monday()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def coordinator(clock) -> EditCoordinator:
    return EditCoordinator(LockStore(clock=clock), ttl_seconds=120)


@pytest.fixture
def client(db, coordinator):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def alice(db) -> Users:
    user = Users(email="alice@example.com", name="Alice", is_active=True)
    db.add(user)
    db.commit()
    db.add(Employees(user_id=user.id, weekly_hours_quota=40.0))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def bob(db) -> Users:
    user = Users(email="bob@example.com", name="Bob", is_active=True)
    db.add(user)
    db.commit()
    db.add(Employees(user_id=user.id, weekly_hours_quota=20.0))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def alice_headers(alice) -> dict:
    return auth_headers(alice)


@pytest.fixture
def bob_headers(bob) -> dict:
    return auth_headers(bob)


@pytest.fixture
def standard_template(db, alice) -> ScheduleTemplates:
    # Mon-Fri 08:00-12:00 + 13:00-17:00 = 8h/day
    day = {"isWorking": True, "timeBlocks": [{"start": "08:00", "end": "12:00"}, {"start": "13:00", "end": "17:00"}]}
    off = {"isWorking": False, "timeBlocks": []}
    template = ScheduleTemplates(
        name="Standard 40h",
        is_global=True,
        pattern=validate_pattern({str(i): day for i in range(5)} | {"5": off, "6": off}),
        created_by_user_id=alice.id,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@pytest.fixture
def alice_assignment(db, alice, standard_template) -> TemplateAssignments:
    assignment = TemplateAssignments(
        user_id=alice.id, template_id=standard_template.id, start_date=date(2020, 1, 1),
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment

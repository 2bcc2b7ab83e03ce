import pytest

from app.services.conflicts import EditCoordinator, LockStore


@pytest.fixture
def store(clock) -> LockStore:
    return LockStore(clock=clock)


@pytest.fixture
def coordinator(store) -> EditCoordinator:
    return EditCoordinator(store, ttl_seconds=120)


@pytest.fixture
def record() -> dict:
    # stands in for the stored entity, keyed by API field names
    return {"isWorking": True, "timeBlocks": [{"start": "08:00", "end": "16:00"}], "name": "Mon"}


@pytest.fixture
def apply_to(record):
    def apply(changes: dict) -> dict:
        record.update(changes)
        return dict(record)
    return apply

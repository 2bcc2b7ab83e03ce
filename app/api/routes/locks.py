from typing import List, Literal
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_current_user, get_coordinator
from app.db.models.users import Users
from app.schemas.locks import EditLockResponse
from app.services.conflicts import EditCoordinator, EditLock

router = APIRouter(prefix="/schedule/locks", tags=["locks"])

ResourceType = Literal["day", "template", "assignment"]


def _lock_response(lock: EditLock, coordinator: EditCoordinator, viewer: Users) -> EditLockResponse:
    return EditLockResponse(
        resource_type=lock.resource_type,
        resource_id=lock.resource_id,
        holder_user_id=lock.holder_user_id,
        holder_name=lock.holder_name,
        state=lock.state.value,
        expires_in=coordinator.expires_in_ms(lock),
        lock_token=lock.token if lock.holder_user_id == viewer.id else None,
    )


@router.get("", response_model=List[EditLockResponse])
def list_locks(
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    return [_lock_response(lock, coordinator, current_user) for lock in coordinator.active_locks()]


@router.post("/{resource_type}/{resource_id}", response_model=EditLockResponse)
def acquire_lock(
    resource_type: ResourceType,
    resource_id: int,
    force: bool = False,
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    lock = coordinator.acquire(resource_type, resource_id, current_user.id, current_user.name, force=force)
    return _lock_response(lock, coordinator, current_user)


@router.get("/{resource_type}/{resource_id}", response_model=EditLockResponse)
def get_lock(
    resource_type: ResourceType,
    resource_id: int,
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    lock = coordinator.get_lock(resource_type, resource_id)
    if not lock:
        raise HTTPException(status_code=404, detail="No active lock")
    return _lock_response(lock, coordinator, current_user)


@router.delete("/{resource_type}/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_lock(
    resource_type: ResourceType,
    resource_id: int,
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    if not coordinator.cancel(resource_type, resource_id, current_user.id):
        raise HTTPException(status_code=404, detail="You hold no lock on this resource")

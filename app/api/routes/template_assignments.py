import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_current_user, get_coordinator
from app.core.errors import LockContention, ScheduleValidationError
from app.db.models.schedule_templates import ScheduleTemplates
from app.db.models.template_assignments import TemplateAssignments
from app.db.models.users import Users
from app.schemas.template_assignments import (
    TemplateAssignmentCreate,
    TemplateAssignmentUpdate,
    TemplateAssignmentResponse,
)
from app.services.conflicts import EditCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedule/template-assignments", tags=["template-assignments"])

ASSIGNMENT_RESOURCE = "assignment"

# API field name -> column
ASSIGNMENT_EDIT_FIELDS = {
    "templateId": "template_id",
    "startDate": "start_date",
    "endDate": "end_date",
    "priority": "priority",
    "isActive": "is_active",
}


def _check_template(db: Session, template_id: int) -> None:
    if not db.query(ScheduleTemplates).filter(ScheduleTemplates.id == template_id).first():
        raise HTTPException(status_code=404, detail="Template not found")


def _get_assignment(db: Session, assignment_id: int) -> TemplateAssignments:
    assignment = db.query(TemplateAssignments).filter(TemplateAssignments.id == assignment_id).first()
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment


def _check_range(start_date: date, end_date: Optional[date]) -> None:
    if end_date is not None and end_date < start_date:
        raise ScheduleValidationError("endDate must not be before startDate")


def snapshot_assignment(assignment: TemplateAssignments) -> dict:
    return {api_name: getattr(assignment, column) for api_name, column in ASSIGNMENT_EDIT_FIELDS.items()}


def _parse_dates(values: Optional[dict]) -> Optional[dict]:
    """Snapshots arrive as JSON, dates as ISO strings."""
    if not values:
        return values
    values = dict(values)
    for key in ("startDate", "endDate"):
        if isinstance(values.get(key), str):
            try:
                values[key] = date.fromisoformat(values[key])
            except ValueError:
                raise ScheduleValidationError(f"baseSnapshot.{key} is not a date")
    return values


@router.post("", response_model=TemplateAssignmentResponse, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: TemplateAssignmentCreate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    user = db.query(Users).filter(Users.id == payload.user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    _check_template(db, payload.template_id)

    assignment = TemplateAssignments(**payload.model_dump())
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    logger.info(
        "Assigned template %s to user %s from %s (priority %s)",
        assignment.template_id, assignment.user_id, assignment.start_date, assignment.priority,
    )
    return assignment


@router.get("", response_model=List[TemplateAssignmentResponse])
def list_assignments(
    user_id: Optional[int] = Query(default=None, alias="userId"),
    template_id: Optional[int] = Query(default=None, alias="templateId"),
    active_only: bool = Query(default=False, alias="activeOnly"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    query = db.query(TemplateAssignments)

    #optional filters
    if user_id:
        query = query.filter(TemplateAssignments.user_id == user_id)
    if template_id:
        query = query.filter(TemplateAssignments.template_id == template_id)
    if active_only:
        today = date.today()
        query = query.filter(
            TemplateAssignments.is_active.is_(True),
            or_(TemplateAssignments.end_date.is_(None), TemplateAssignments.end_date >= today),
        )

    return query.order_by(TemplateAssignments.start_date, TemplateAssignments.id).offset(skip).limit(limit).all()


@router.get("/{assignment_id}", response_model=TemplateAssignmentResponse)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    return _get_assignment(db, assignment_id)


@router.put("/{assignment_id}", response_model=TemplateAssignmentResponse)
def update_assignment(
    assignment_id: int,
    payload: TemplateAssignmentUpdate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    assignment = _get_assignment(db, assignment_id)
    changes = payload.changes()
    if "templateId" in changes:
        _check_template(db, changes["templateId"])
    _check_range(changes.get("startDate", assignment.start_date), changes.get("endDate", assignment.end_date))

    def apply(to_apply: dict) -> TemplateAssignments:
        # a user-choice merge can combine dates from both sides
        _check_range(to_apply.get("startDate", assignment.start_date), to_apply.get("endDate", assignment.end_date))
        for api_name, value in to_apply.items():
            setattr(assignment, ASSIGNMENT_EDIT_FIELDS[api_name], value)
        db.commit()
        db.refresh(assignment)
        logger.info("Assignment %s updated by user %s: %s", assignment.id, current_user.id, sorted(to_apply))
        return assignment

    return coordinator.submit(
        ASSIGNMENT_RESOURCE,
        assignment.id,
        current_user.id,
        current_user.name,
        current=snapshot_assignment(assignment),
        changes=changes,
        apply=apply,
        base_snapshot=_parse_dates(payload.base_snapshot),
        strategy=payload.strategy,
        choices=payload.choices,
        lock_token=payload.lock_token,
    )


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    assignment = _get_assignment(db, assignment_id)

    lock = coordinator.get_lock(ASSIGNMENT_RESOURCE, assignment.id)
    if lock and lock.holder_user_id != current_user.id:
        raise LockContention(lock.holder_user_id, lock.holder_name, coordinator.expires_in_ms(lock))

    db.delete(assignment)
    db.commit()
    logger.info("Assignment %s deleted by user %s", assignment_id, current_user.id)
    if lock:
        coordinator.cancel(ASSIGNMENT_RESOURCE, assignment_id, current_user.id)

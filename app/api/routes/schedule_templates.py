from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_current_user, get_coordinator
from app.core.errors import LockContention
from app.db.models.schedule_templates import ScheduleTemplates
from app.db.models.template_assignments import TemplateAssignments
from app.db.models.users import Users
from app.schemas.schedule_templates import ScheduleTemplateCreate, ScheduleTemplateUpdate, ScheduleTemplateResponse
from app.services.conflicts import EditCoordinator
from app.services.schedule.time_blocks import validate_pattern

router = APIRouter(prefix="/schedule/templates", tags=["schedule-templates"])

TEMPLATE_RESOURCE = "template"

# API field name -> column
TEMPLATE_EDIT_FIELDS = {
    "name": "name",
    "description": "description",
    "isGlobal": "is_global",
    "isDefault": "is_default",
    "pattern": "pattern",
}


def _get_template(db: Session, template_id: int) -> ScheduleTemplates:
    template = db.query(ScheduleTemplates).filter(ScheduleTemplates.id == template_id).first()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


def snapshot_template(template: ScheduleTemplates) -> dict:
    return {api_name: getattr(template, column) for api_name, column in TEMPLATE_EDIT_FIELDS.items()}


def _normalize_pattern(values: Optional[dict]) -> Optional[dict]:
    if values and values.get("pattern") is not None:
        values = dict(values)
        values["pattern"] = validate_pattern(values["pattern"])
    return values


@router.post("", response_model=ScheduleTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: ScheduleTemplateCreate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    data = payload.model_dump()
    data["pattern"] = validate_pattern(data["pattern"])

    template = ScheduleTemplates(**data, created_by_user_id=current_user.id)
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@router.get("", response_model=List[ScheduleTemplateResponse])
def list_templates(
    is_global: Optional[bool] = Query(default=None, alias="isGlobal"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    query = db.query(ScheduleTemplates)
    if is_global is not None:
        query = query.filter(ScheduleTemplates.is_global == is_global)
    return query.order_by(ScheduleTemplates.name).offset(skip).limit(limit).all()


@router.get("/{template_id}", response_model=ScheduleTemplateResponse)
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    return _get_template(db, template_id)


@router.put("/{template_id}", response_model=ScheduleTemplateResponse)
def update_template(
    template_id: int,
    payload: ScheduleTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    template = _get_template(db, template_id)
    changes = _normalize_pattern(payload.changes(ScheduleTemplateUpdate.EDITABLE))

    def apply(to_apply: dict) -> ScheduleTemplates:
        for api_name, value in to_apply.items():
            setattr(template, TEMPLATE_EDIT_FIELDS[api_name], value)
        db.commit()
        db.refresh(template)
        return template

    return coordinator.submit(
        TEMPLATE_RESOURCE,
        template.id,
        current_user.id,
        current_user.name,
        current=snapshot_template(template),
        changes=changes,
        apply=apply,
        base_snapshot=_normalize_pattern(payload.base_snapshot),
        strategy=payload.strategy,
        choices=payload.choices,
        lock_token=payload.lock_token,
    )


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    template = _get_template(db, template_id)

    lock = coordinator.get_lock(TEMPLATE_RESOURCE, template.id)
    if lock and lock.holder_user_id != current_user.id:
        raise LockContention(lock.holder_user_id, lock.holder_name, coordinator.expires_in_ms(lock))

    in_use = db.query(TemplateAssignments).filter(
        TemplateAssignments.template_id == template.id,
        TemplateAssignments.is_active.is_(True),
    ).count()
    if in_use:
        raise HTTPException(status_code=400, detail=f"Template is used by {in_use} active assignment(s)")

    # inactive assignments carry no schedule, drop them with the template
    db.query(TemplateAssignments).filter(TemplateAssignments.template_id == template.id).delete()
    db.delete(template)
    db.commit()
    if lock:
        coordinator.cancel(TEMPLATE_RESOURCE, template_id, current_user.id)

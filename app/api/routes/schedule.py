from datetime import date, timedelta
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_current_user, get_coordinator, target_user_id
from app.db.models.users import Users
from app.schemas.day_schedules import (
    DayScheduleResponse,
    DayScheduleUpdate,
    MemberWeekResponse,
    ScheduleAuditResponse,
    WeekScheduleUpdate,
)
from app.schemas.hours import EmployeeHoursOverview, HoursSummaryResponse, MonthSummaryResponse
from app.services.conflicts import EditCoordinator, ResourceEdit
from app.services.schedule import load_week_audit, month_summary, resolve_week, team_week, week_start_for, week_summary
from app.services.schedule.data_loader import load_day_rows, to_resolved_day
from app.services.schedule.materializer import (
    apply_manual_edit,
    apply_week_edits,
    get_day_row,
    resync_day_row,
    snapshot_day,
)
from app.services.schedule.time_blocks import blocks_to_dicts, validate_blocks

router = APIRouter(prefix="/schedule", tags=["schedule"])

DAY_RESOURCE = "day"


def _normalize_blocks(values: dict) -> dict:
    """Sorted {start, end} blocks, so diffs compare like with like."""
    if values and values.get("timeBlocks") is not None:
        values = dict(values)
        values["timeBlocks"] = blocks_to_dicts(validate_blocks(values["timeBlocks"]))
    return values


def _day_locked(coordinator: EditCoordinator):
    # template refreshes must not rewrite a day someone is editing
    return lambda day_id: coordinator.is_locked(DAY_RESOURCE, day_id)


@router.get("/week/{week_start}", response_model=List[DayScheduleResponse])
def get_week(
    week_start: date,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    days = resolve_week(
        db,
        target_user_id(user_id, current_user),
        week_start_for(week_start),
        is_locked=_day_locked(coordinator),
    )
    return [DayScheduleResponse.model_validate(d) for d in days]


@router.put("/week/{week_start}", response_model=List[DayScheduleResponse])
def update_week(
    week_start: date,
    payload: WeekScheduleUpdate,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    """Edit all seven days at once; every day is written or none is."""
    owner = target_user_id(user_id, current_user)
    monday = week_start_for(week_start)
    resolve_week(db, owner, monday, is_locked=_day_locked(coordinator))
    rows = load_day_rows(db, owner, monday, monday + timedelta(days=6))

    edits = []
    rows_by_id = {}
    for offset, day_edit in enumerate(payload.days):
        row = rows[monday + timedelta(days=offset)]
        rows_by_id[row.id] = row
        edits.append(ResourceEdit(
            resource_id=row.id,
            current=snapshot_day(row),
            changes=_normalize_blocks(day_edit.changes()),
            base_snapshot=_normalize_blocks(day_edit.base_snapshot),
            choices=day_edit.choices,
            lock_token=day_edit.lock_token,
        ))

    updated = coordinator.submit_many(
        DAY_RESOURCE,
        current_user.id,
        current_user.name,
        edits,
        apply=lambda changes_by_id: apply_week_edits(db, rows_by_id, changes_by_id, current_user.id),
        strategy=payload.strategy,
    )
    return [DayScheduleResponse.model_validate(to_resolved_day(row)) for row in updated]


@router.get("/audit/{week_start}", response_model=List[ScheduleAuditResponse])
def get_week_audit(
    week_start: date,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    entries = load_week_audit(db, target_user_id(user_id, current_user), week_start_for(week_start))
    return [
        ScheduleAuditResponse.model_validate(entry).model_copy(update={"changed_by_name": name})
        for entry, name in entries
    ]


@router.put("/day/{day_id}", response_model=DayScheduleResponse)
def update_day(
    day_id: int,
    payload: DayScheduleUpdate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    row = get_day_row(db, day_id)
    changes = _normalize_blocks(payload.changes())

    updated = coordinator.submit(
        DAY_RESOURCE,
        row.id,
        current_user.id,
        current_user.name,
        current=snapshot_day(row),
        changes=changes,
        apply=lambda to_apply: apply_manual_edit(db, row, to_apply, current_user.id),
        base_snapshot=_normalize_blocks(payload.base_snapshot),
        strategy=payload.strategy,
        choices=payload.choices,
        lock_token=payload.lock_token,
    )
    return DayScheduleResponse.model_validate(updated)


@router.post("/day/{day_id}/resync", response_model=DayScheduleResponse)
def resync_day(
    day_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
    coordinator: EditCoordinator = Depends(get_coordinator),
):
    row = get_day_row(db, day_id)
    updated = coordinator.submit(
        DAY_RESOURCE,
        row.id,
        current_user.id,
        current_user.name,
        current=snapshot_day(row),
        changes={},
        apply=lambda _: resync_day_row(db, row, current_user.id),
    )
    return DayScheduleResponse.model_validate(updated)


@router.get("/hours-summary/month/{year}/{month}", response_model=MonthSummaryResponse)
def get_month_summary(
    year: int,
    month: int,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    return MonthSummaryResponse.model_validate(
        month_summary(db, target_user_id(user_id, current_user), year, month)
    )


@router.get("/hours-summary/{week_start}", response_model=HoursSummaryResponse)
def get_week_summary(
    week_start: date,
    user_id: Optional[int] = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    return HoursSummaryResponse.model_validate(
        week_summary(db, target_user_id(user_id, current_user), week_start_for(week_start))
    )


@router.get("/team-week/{week_start}", response_model=List[MemberWeekResponse])
def get_team_week(
    week_start: date,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    members = team_week(db, week_start_for(week_start))
    return [
        MemberWeekResponse(
            user_id=m.profile.user_id,
            user_name=m.profile.name,
            weekly_quota=m.profile.weekly_hours_quota,
            total_booked=m.summary.total_booked,
            status=m.summary.status.value,
            days=[DayScheduleResponse.model_validate(d) for d in m.days],
        )
        for m in members
    ]


@router.get("/users", response_model=List[EmployeeHoursOverview])
def get_users_overview(
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    """Every active employee with this week's booked hours against quota."""
    members = team_week(db, week_start_for(date.today()))
    return [
        EmployeeHoursOverview(
            user_id=m.profile.user_id,
            name=m.profile.name,
            weekly_quota=m.profile.weekly_hours_quota,
            current_week_hours=m.summary.total_booked,
            difference=m.summary.difference,
            status=m.summary.status,
        )
        for m in members
    ]

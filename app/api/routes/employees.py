import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_current_user
from app.db.models.employees import Employees, EmploymentStatus
from app.db.models.users import Users
from app.schemas.employees import EmployeeCreate, EmployeeUpdate, EmployeeResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["employees"])


def _get_employee(db: Session, employee_id: int) -> Employees:
    employee = db.get(Employees, employee_id)
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


@router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: EmployeeCreate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    if db.get(Users, payload.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    # one employment profile per user
    if db.query(Employees).filter(Employees.user_id == payload.user_id).first():
        raise HTTPException(status_code=400, detail="User already has an employee record")

    employee = Employees(**payload.model_dump())
    db.add(employee)
    db.commit()
    db.refresh(employee)
    logger.info(
        "Employee profile for user %s created (%s, %sh/week)",
        employee.user_id, employee.employment_type.value, employee.weekly_hours_quota,
    )
    return employee


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    employment_status: Optional[EmploymentStatus] = Query(default=None, alias="employmentStatus"),
    include_leavers: bool = Query(default=False, alias="includeLeavers"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    """Current staff by default; leavers only when asked for."""
    query = db.query(Employees)
    if employment_status:
        query = query.filter(Employees.employment_status == employment_status)
    elif not include_leavers:
        query = query.filter(Employees.employment_status != EmploymentStatus.LEAVER)
    return query.order_by(Employees.id).offset(skip).limit(limit).all()


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    return _get_employee(db, employee_id)


@router.put("/{employee_id}", response_model=EmployeeResponse)
def update_employee(
    employee_id: int,
    payload: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    employee = _get_employee(db, employee_id)
    changes = payload.model_dump(exclude_unset=True)
    for column, value in changes.items():
        setattr(employee, column, value)
    db.commit()
    db.refresh(employee)
    logger.info("Employee %s updated by user %s: %s", employee.id, current_user.id, sorted(changes))
    return employee


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    """
    Mark the employee as a leaver. The profile stays so their stored days,
    summaries and audit history keep resolving.
    """
    employee = _get_employee(db, employee_id)
    if employee.employment_status != EmploymentStatus.LEAVER:
        employee.employment_status = EmploymentStatus.LEAVER
        db.commit()
        logger.info("Employee %s (user %s) marked as leaver by user %s", employee.id, employee.user_id, current_user.id)

import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_current_user
from app.db.models.public_holidays import PublicHolidays
from app.db.models.users import Users
from app.schemas.public_holidays import (
    PublicHolidayBulkCreate,
    PublicHolidayBulkResponse,
    PublicHolidayCreate,
    PublicHolidayResponse,
    PublicHolidayUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public-holidays", tags=["public-holidays"])


@router.post("", response_model=PublicHolidayResponse, status_code=status.HTTP_201_CREATED)
def create_holiday(
    payload: PublicHolidayCreate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    holiday = PublicHolidays(**payload.model_dump())
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    return holiday


@router.post("/bulk", response_model=PublicHolidayBulkResponse, status_code=status.HTTP_201_CREATED)
def create_holidays_bulk(
    payload: PublicHolidayBulkCreate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    """Create many holidays in one transaction, skipping dates already on file for the country."""
    dates = {h.date for h in payload.holidays}
    seen = {
        (h.date, h.country_code)
        for h in db.query(PublicHolidays).filter(PublicHolidays.date.in_(dates)).all()
    }

    inserted, skipped = [], []
    for item in payload.holidays:
        key = (item.date, item.country_code)
        if key in seen:
            skipped.append(item)
            continue
        seen.add(key)
        holiday = PublicHolidays(**item.model_dump())
        db.add(holiday)
        inserted.append(holiday)

    db.commit()
    for holiday in inserted:
        db.refresh(holiday)
    logger.info("Bulk holidays by user %s: %s inserted, %s skipped", current_user.id, len(inserted), len(skipped))
    return PublicHolidayBulkResponse(
        inserted=[PublicHolidayResponse.model_validate(h) for h in inserted],
        skipped=skipped,
    )


@router.get("", response_model=List[PublicHolidayResponse])
def list_holidays(
    year: Optional[int] = None,
    country_code: Optional[str] = Query(default=None, alias="countryCode"),
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    query = db.query(PublicHolidays)
    if year:
        # recurring holidays apply to every year
        query = query.filter(
            or_(
                PublicHolidays.is_recurring.is_(True),
                and_(PublicHolidays.date >= date(year, 1, 1), PublicHolidays.date <= date(year, 12, 31)),
            )
        )
    if country_code:
        query = query.filter(PublicHolidays.country_code == country_code)
    return query.order_by(PublicHolidays.date).all()


@router.get("/{holiday_id}", response_model=PublicHolidayResponse)
def get_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    holiday = db.query(PublicHolidays).filter(PublicHolidays.id == holiday_id).first()
    if not holiday:
        raise HTTPException(status_code=404, detail="Public holiday not found")
    return holiday


@router.put("/{holiday_id}", response_model=PublicHolidayResponse)
def update_holiday(
    holiday_id: int,
    payload: PublicHolidayUpdate,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    holiday = db.query(PublicHolidays).filter(PublicHolidays.id == holiday_id).first()
    if not holiday:
        raise HTTPException(status_code=404, detail="Public holiday not found")

    update_data = payload.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(holiday, field, value)

    db.commit()
    db.refresh(holiday)
    return holiday


@router.delete("/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_holiday(
    holiday_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user),
):
    holiday = db.query(PublicHolidays).filter(PublicHolidays.id == holiday_id).first()
    if not holiday:
        raise HTTPException(status_code=404, detail="Public holiday not found")

    db.delete(holiday)
    db.commit()

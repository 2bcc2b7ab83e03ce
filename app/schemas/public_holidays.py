import datetime as dt
from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel


class PublicHolidayBase(CamelModel):
    date: dt.date
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    is_recurring: bool = False
    country_code: str = Field(default="DE", min_length=2, max_length=2)
    region: Optional[str] = None


class PublicHolidayCreate(PublicHolidayBase):
    pass


class PublicHolidayUpdate(CamelModel):
    date: Optional[dt.date] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_recurring: Optional[bool] = None
    country_code: Optional[str] = Field(default=None, min_length=2, max_length=2)
    region: Optional[str] = None


class PublicHolidayResponse(PublicHolidayBase):
    id: int
    created_at: dt.datetime


class PublicHolidayBulkCreate(CamelModel):
    holidays: List[PublicHolidayCreate] = Field(min_length=1)


class PublicHolidayBulkResponse(CamelModel):
    inserted: List[PublicHolidayResponse]
    # already present for that date and country
    skipped: List[PublicHolidayCreate]

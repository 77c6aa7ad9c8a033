"""Holiday Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CustomHolidayCreate(BaseModel):
    """Body for POST /holidays/custom."""

    holiday_date: date
    name: str = Field(default="", max_length=200)


class CustomHolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    holiday_date: date
    name: str
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


class NationalHolidayOut(BaseModel):
    holiday_date: date
    name: str

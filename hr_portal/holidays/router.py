"""Holiday router — national calendar and institution closed days."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.auth.dependencies import get_current_user, require_role
from hr_portal.common.constants import UserRole
from hr_portal.core_hr.models import Employee
from hr_portal.database import get_db
from hr_portal.holidays.schemas import (
    CustomHolidayCreate,
    CustomHolidayOut,
    NationalHolidayOut,
)
from hr_portal.holidays.service import HolidayService

router = APIRouter(prefix="", tags=["holidays"])


# ── GET /national/{year} ────────────────────────────────────────────

@router.get("/national/{year}", response_model=list[NationalHolidayOut])
async def national_holidays(
    year: int = Path(..., ge=1900, le=2099),
    employee: Employee = Depends(get_current_user),
):
    """Romanian legal holidays for a year, moving feasts included."""
    return HolidayService.list_national(year)


# ── GET /custom ─────────────────────────────────────────────────────

@router.get("/custom", response_model=list[CustomHolidayOut])
async def list_custom_holidays(
    year: Optional[int] = Query(None, ge=1900, le=2099),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.list_custom(db, year=year)


# ── POST /custom ────────────────────────────────────────────────────

@router.post(
    "/custom",
    response_model=CustomHolidayOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_custom_holiday(
    body: CustomHolidayCreate,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Declare an institution closed day (HR only)."""
    return await HolidayService.add_custom(db, employee.id, body)


# ── DELETE /custom/{id} ─────────────────────────────────────────────

@router.delete("/custom/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_custom_holiday(
    holiday_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    await HolidayService.delete_custom(db, employee.id, holiday_id)

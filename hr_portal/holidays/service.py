"""Holiday service — institution closed days and the national calendar view."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import extract, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.audit import emit_audit_event
from hr_portal.common.constants import AuditAction
from hr_portal.common.exceptions import ConflictError, NotFoundException
from hr_portal.holidays.calendar import national_holidays
from hr_portal.holidays.models import CustomHoliday
from hr_portal.holidays.schemas import CustomHolidayCreate, NationalHolidayOut

logger = logging.getLogger(__name__)


class HolidayService:
    """Async operations over the custom-holiday list."""

    @staticmethod
    async def list_custom(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
    ) -> Sequence[CustomHoliday]:
        query = select(CustomHoliday).order_by(CustomHoliday.holiday_date)
        if year is not None:
            query = query.where(extract("year", CustomHoliday.holiday_date) == year)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def load_custom_map(
        db: AsyncSession,
        start: date,
        end: date,
    ) -> dict[date, str]:
        """``{date: name}`` of custom holidays within ``[start, end]``."""
        if end < start:
            return {}
        result = await db.execute(
            select(CustomHoliday.holiday_date, CustomHoliday.name).where(
                CustomHoliday.holiday_date >= start,
                CustomHoliday.holiday_date <= end,
            )
        )
        return {row.holiday_date: row.name for row in result.all()}

    @staticmethod
    async def add_custom(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: CustomHolidayCreate,
    ) -> CustomHoliday:
        existing = await db.execute(
            select(CustomHoliday.id).where(CustomHoliday.holiday_date == data.holiday_date)
        )
        if existing.scalar() is not None:
            raise ConflictError("holiday_date", data.holiday_date.isoformat())

        holiday = CustomHoliday(
            holiday_date=data.holiday_date,
            name=data.name.strip(),
            created_by=actor_id,
        )
        db.add(holiday)
        await db.flush()

        logger.info("Custom holiday %s (%r) added by %s", holiday.holiday_date, holiday.name, actor_id)
        await emit_audit_event(
            db,
            action=AuditAction.custom_holiday_add,
            entity_type="custom_holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values={"holiday_date": holiday.holiday_date.isoformat(), "name": holiday.name},
        )
        return holiday

    @staticmethod
    async def delete_custom(
        db: AsyncSession,
        actor_id: uuid.UUID,
        holiday_id: uuid.UUID,
    ) -> None:
        holiday = await db.get(CustomHoliday, holiday_id)
        if holiday is None:
            raise NotFoundException("CustomHoliday", str(holiday_id))

        old_values = {"holiday_date": holiday.holiday_date.isoformat(), "name": holiday.name}
        await db.delete(holiday)
        await db.flush()

        logger.info("Custom holiday %s removed by %s", old_values["holiday_date"], actor_id)
        await emit_audit_event(
            db,
            action=AuditAction.custom_holiday_delete,
            entity_type="custom_holiday",
            entity_id=holiday_id,
            actor_id=actor_id,
            old_values=old_values,
        )

    @staticmethod
    def list_national(year: int) -> list[NationalHolidayOut]:
        return [
            NationalHolidayOut(holiday_date=day, name=name)
            for day, name in national_holidays(year).items()
        ]

"""Validation shared by submission and HR edits."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.constants import DATE_FORMAT, OPEN_LEAVE_STATUSES
from hr_portal.common.exceptions import ValidationException
from hr_portal.config import settings
from hr_portal.core_hr.service import DirectoryService
from hr_portal.holidays.service import HolidayService
from hr_portal.leave.models import LeaveRequest
from hr_portal.leave.working_days import WorkingDaysResult, compute_working_days


class RequestValidator:

    @staticmethod
    def check_range(start: date, end: date, *, year: Optional[int] = None) -> None:
        """Order, span, single calendar year and (for edits) the ledger year."""
        if end < start:
            raise ValidationException({
                "end_date": [
                    f"End date {end.strftime(DATE_FORMAT)} is before "
                    f"start date {start.strftime(DATE_FORMAT)}."
                ],
            })
        if (end - start).days + 1 > settings.MAX_LEAVE_SPAN_DAYS:
            raise ValidationException({
                "end_date": [f"A leave request cannot span more than {settings.MAX_LEAVE_SPAN_DAYS} days."],
            })
        if start.year != end.year:
            raise ValidationException({
                "end_date": ["A leave request must lie within one calendar year; split it at 31 December."],
            })
        if year is not None and start.year != year:
            raise ValidationException({
                "start_date": [f"The request belongs to the {year} ledger and cannot be moved to {start.year}."],
            })

    @staticmethod
    async def count_days(db: AsyncSession, start: date, end: date) -> WorkingDaysResult:
        """Working days with institution closed days applied; rejects zero counts."""
        custom = await HolidayService.load_custom_map(db, start, end)
        calc = compute_working_days(start, end, custom)
        if calc.count <= 0:
            raise ValidationException({
                "dates": ["No working days found in the selected range "
                          "(all days are weekends or holidays)."],
            })
        return calc

    @staticmethod
    async def check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(list(OPEN_LEAVE_STATUSES)),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query)).scalar_one() > 0:
            raise ValidationException({
                "dates": ["You already have a pending or approved leave request overlapping these dates."],
            })

    @staticmethod
    async def check_replacement(
        db: AsyncSession,
        employee_id: uuid.UUID,
        replacement_id: Optional[uuid.UUID],
    ) -> None:
        """The replacement must be an active colleague from the same department."""
        if replacement_id is None:
            return
        if replacement_id == employee_id:
            raise ValidationException({"replacement_id": ["You cannot be your own replacement."]})
        colleagues = await DirectoryService.get_colleagues(db, employee_id)
        if replacement_id not in {c.id for c in colleagues}:
            raise ValidationException({
                "replacement_id": ["The replacement must be an active colleague from your department."],
            })

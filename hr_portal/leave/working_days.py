"""Working-day calculator.

Walks an inclusive date range once, in ascending order, and counts the days
that are not off according to :mod:`hr_portal.holidays.calendar`. Every
excluded day is reported with the reason it was excluded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from hr_portal.common.constants import CUSTOM_HOLIDAY_REASON, DATE_FORMAT, WEEKEND_REASON
from hr_portal.holidays.calendar import (
    CustomHolidays,
    is_weekend,
    national_holidays,
    normalize_custom_holidays,
)


@dataclass(frozen=True)
class ExcludedDay:
    day: date
    reason: str


@dataclass
class WorkingDaysResult:
    count: int
    excluded: list[ExcludedDay] = field(default_factory=list)
    diagnostic: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid_range(self) -> bool:
        return self.diagnostic is None


def compute_working_days(
    start: date,
    end: date,
    custom_holidays: CustomHolidays = None,
) -> WorkingDaysResult:
    """Count working days in ``[start, end]``.

    ``end < start`` yields a zero count with a diagnostic instead of raising;
    a range made only of days off is a valid zero-count result.

    Reason precedence for an excluded day: national holiday name, then the
    custom holiday name (or the generic institution label), then weekend.
    """
    if end < start:
        return WorkingDaysResult(
            count=0,
            diagnostic=(
                f"End date {end.strftime(DATE_FORMAT)} is before "
                f"start date {start.strftime(DATE_FORMAT)}."
            ),
        )

    custom = normalize_custom_holidays(custom_holidays)
    result = WorkingDaysResult(count=0)

    current = start
    while current <= end:
        national_name = national_holidays(current.year).get(current)

        if national_name is not None:
            result.excluded.append(ExcludedDay(current, national_name))
            result.warnings.append(
                f"{current.strftime(DATE_FORMAT)} is a public holiday "
                f"({national_name}) and is not counted."
            )
        elif current in custom:
            result.excluded.append(
                ExcludedDay(current, custom[current] or CUSTOM_HOLIDAY_REASON)
            )
        elif is_weekend(current):
            result.excluded.append(ExcludedDay(current, WEEKEND_REASON))
        else:
            result.count += 1
        current += timedelta(days=1)

    return result

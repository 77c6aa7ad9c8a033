"""Holiday calendar — Romanian legal holidays plus institution closed days.

Pure functions, no I/O. National holidays are generated per year from a rule
table: fixed feasts by month/day, moving feasts as offsets from Orthodox
Easter. Institution closed days are supplied by the caller, either as a
``{date: name}`` mapping or as a plain collection of dates / ISO strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from hr_portal.common.constants import CUSTOM_HOLIDAY_REASON

CustomHolidays = Union[Mapping[Union[date, str], str], Iterable[Union[date, str]], None]

SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class HolidayRule:
    """One legal holiday: either a fixed ``month``/``day`` or an Easter offset."""

    name: str
    month: Optional[int] = None
    day: Optional[int] = None
    easter_offset: Optional[int] = None
    since: Optional[int] = None

    def resolve(self, year: int, easter: date) -> Optional[date]:
        if self.since is not None and year < self.since:
            return None
        if self.easter_offset is not None:
            return easter + timedelta(days=self.easter_offset)
        return date(year, self.month, self.day)  # type: ignore[arg-type]


# Codul muncii, art. 139
NATIONAL_HOLIDAY_RULES: tuple[HolidayRule, ...] = (
    HolidayRule("Anul Nou", month=1, day=1),
    HolidayRule("Anul Nou", month=1, day=2),
    HolidayRule("Boboteaza", month=1, day=6, since=2024),
    HolidayRule("Sfântul Ioan Botezătorul", month=1, day=7, since=2024),
    HolidayRule("Ziua Unirii Principatelor Române", month=1, day=24),
    HolidayRule("Vinerea Mare", easter_offset=-2, since=2018),
    HolidayRule("Sâmbăta Mare", easter_offset=-1, since=2025),
    HolidayRule("Paștele", easter_offset=0),
    HolidayRule("A doua zi de Paște", easter_offset=1),
    HolidayRule("Ziua Muncii", month=5, day=1),
    HolidayRule("Ziua Copilului", month=6, day=1, since=2017),
    HolidayRule("Rusaliile", easter_offset=49),
    HolidayRule("A doua zi de Rusalii", easter_offset=50),
    HolidayRule("Adormirea Maicii Domnului", month=8, day=15),
    HolidayRule("Sfântul Andrei", month=11, day=30),
    HolidayRule("Ziua Națională a României", month=12, day=1),
    HolidayRule("Crăciunul", month=12, day=25),
    HolidayRule("A doua zi de Crăciun", month=12, day=26),
)


def orthodox_easter(year: int) -> date:
    """Orthodox Easter Sunday as a Gregorian date (Meeus Julian algorithm)."""
    a = year % 4
    b = year % 7
    c = year % 19
    d = (19 * c + 15) % 30
    e = (2 * a + 4 * b - d + 34) % 7
    month = (d + e + 114) // 31
    day = ((d + e + 114) % 31) + 1
    julian_to_gregorian = year // 100 - year // 400 - 2
    return date(year, month, day) + timedelta(days=julian_to_gregorian)


@lru_cache(maxsize=64)
def national_holidays(year: int) -> Mapping[date, str]:
    """Return ``{date: name}`` of legal holidays for *year* (read-only).

    When two feasts fall on the same day their names are joined in rule order.
    """
    easter = orthodox_easter(year)
    result: dict[date, str] = {}
    for rule in NATIONAL_HOLIDAY_RULES:
        day = rule.resolve(year, easter)
        if day is None or day.year != year:
            continue
        if day in result and rule.name not in result[day]:
            result[day] = f"{result[day]} / {rule.name}"
        else:
            result.setdefault(day, rule.name)
    return MappingProxyType(dict(sorted(result.items())))


def normalize_custom_holidays(custom_holidays: CustomHolidays) -> dict[date, str]:
    """Coerce any accepted custom-holiday shape into ``{date: name}``."""
    if not custom_holidays:
        return {}
    if isinstance(custom_holidays, Mapping):
        items = custom_holidays.items()
    else:
        items = ((d, "") for d in custom_holidays)
    normalized: dict[date, str] = {}
    for raw_day, name in items:
        day = date.fromisoformat(raw_day) if isinstance(raw_day, str) else raw_day
        normalized[day] = (name or "").strip()
    return normalized


def is_weekend(day: date) -> bool:
    return day.weekday() in (SATURDAY, SUNDAY)


def is_national_holiday(day: date) -> bool:
    return day in national_holidays(day.year)


def holiday_name(day: date, custom_holidays: CustomHolidays = None) -> Optional[str]:
    """Name of the holiday on *day*, or None.

    National holidays take precedence; an unnamed custom holiday is reported
    with the generic institution label.
    """
    name = national_holidays(day.year).get(day)
    if name is not None:
        return name
    custom = normalize_custom_holidays(custom_holidays)
    if day in custom:
        return custom[day] or CUSTOM_HOLIDAY_REASON
    return None


def is_day_off(day: date, custom_holidays: CustomHolidays = None) -> bool:
    """Weekend, national holiday or institution closed day."""
    if is_weekend(day) or is_national_holiday(day):
        return True
    return day in normalize_custom_holidays(custom_holidays)

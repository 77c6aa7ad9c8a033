"""Tests for the holiday calendar — Orthodox Easter, legal holidays, custom days."""

from __future__ import annotations

from datetime import date

import pytest

from hr_portal.holidays.calendar import (
    holiday_name,
    is_day_off,
    is_national_holiday,
    is_weekend,
    national_holidays,
    normalize_custom_holidays,
    orthodox_easter,
)


# ═════════════════════════════════════════════════════════════════════
# ORTHODOX EASTER
# ═════════════════════════════════════════════════════════════════════


class TestOrthodoxEaster:

    @pytest.mark.parametrize("year, expected", [
        (2021, date(2021, 5, 2)),
        (2022, date(2022, 4, 24)),
        (2023, date(2023, 4, 16)),
        (2024, date(2024, 5, 5)),
        (2025, date(2025, 4, 20)),
        (2026, date(2026, 4, 12)),
        (2027, date(2027, 5, 2)),
        (2028, date(2028, 4, 16)),
        (2030, date(2030, 4, 28)),
    ])
    def test_known_dates(self, year, expected):
        assert orthodox_easter(year) == expected

    def test_always_a_sunday(self):
        for year in range(2000, 2100):
            assert orthodox_easter(year).weekday() == 6


# ═════════════════════════════════════════════════════════════════════
# NATIONAL HOLIDAYS
# ═════════════════════════════════════════════════════════════════════


class TestNationalHolidays:

    def test_2026_full_calendar(self):
        holidays = national_holidays(2026)
        assert len(holidays) == 17
        assert holidays[date(2026, 1, 1)] == "Anul Nou"
        assert holidays[date(2026, 1, 24)] == "Ziua Unirii Principatelor Române"
        assert holidays[date(2026, 4, 10)] == "Vinerea Mare"
        assert holidays[date(2026, 4, 11)] == "Sâmbăta Mare"
        assert holidays[date(2026, 4, 12)] == "Paștele"
        assert holidays[date(2026, 4, 13)] == "A doua zi de Paște"
        assert holidays[date(2026, 5, 31)] == "Rusaliile"
        assert holidays[date(2026, 12, 1)] == "Ziua Națională a României"

    def test_coinciding_feasts_are_joined(self):
        """Whit Monday 2026 falls on Children's Day: one date, both names."""
        assert national_holidays(2026)[date(2026, 6, 1)] == "Ziua Copilului / A doua zi de Rusalii"

    def test_epiphany_days_only_from_2024(self):
        assert date(2023, 1, 6) not in national_holidays(2023)
        assert date(2023, 1, 7) not in national_holidays(2023)
        assert national_holidays(2024)[date(2024, 1, 6)] == "Boboteaza"
        assert national_holidays(2024)[date(2024, 1, 7)] == "Sfântul Ioan Botezătorul"

    def test_2023_calendar_size(self):
        assert len(national_holidays(2023)) == 15

    def test_good_friday_from_2018(self):
        assert date(2017, 4, 14) not in national_holidays(2017)
        assert national_holidays(2018)[date(2018, 4, 6)] == "Vinerea Mare"

    def test_childrens_day_from_2017(self):
        assert date(2016, 6, 1) not in national_holidays(2016)
        assert date(2017, 6, 1) in national_holidays(2017)

    def test_result_is_read_only_and_sorted(self):
        holidays = national_holidays(2025)
        with pytest.raises(TypeError):
            holidays[date(2025, 3, 3)] = "x"  # type: ignore[index]
        assert list(holidays) == sorted(holidays)

    def test_is_national_holiday(self):
        assert is_national_holiday(date(2025, 12, 25))
        assert is_national_holiday(date(2025, 4, 21))
        assert not is_national_holiday(date(2025, 4, 22))


# ═════════════════════════════════════════════════════════════════════
# DAY-OFF CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════


class TestDayOff:

    def test_weekend(self):
        assert is_weekend(date(2026, 3, 7))
        assert is_weekend(date(2026, 3, 8))
        assert not is_weekend(date(2026, 3, 9))

    def test_plain_workday(self):
        assert not is_day_off(date(2026, 3, 4))

    def test_custom_holiday_as_set_of_dates(self):
        assert is_day_off(date(2026, 3, 4), {date(2026, 3, 4)})

    def test_custom_holiday_as_iso_strings(self):
        assert is_day_off(date(2026, 3, 4), ["2026-03-04"])

    def test_custom_holiday_as_mapping(self):
        assert is_day_off(date(2026, 3, 4), {date(2026, 3, 4): "Zi liberă"})

    def test_normalize_strips_names(self):
        assert normalize_custom_holidays({"2026-03-04": "  Zi liberă "}) == {
            date(2026, 3, 4): "Zi liberă",
        }
        assert normalize_custom_holidays(None) == {}


class TestHolidayName:

    def test_national_name_wins_over_custom(self):
        assert holiday_name(date(2026, 12, 25), {date(2026, 12, 25): "Închis"}) == "Crăciunul"

    def test_named_custom_holiday(self):
        assert holiday_name(date(2026, 3, 4), {date(2026, 3, 4): "Ziua instituției"}) == "Ziua instituției"

    def test_unnamed_custom_holiday_gets_generic_label(self):
        assert holiday_name(date(2026, 3, 4), [date(2026, 3, 4)]) == "institution holiday"

    def test_no_holiday(self):
        assert holiday_name(date(2026, 3, 4)) is None
        assert holiday_name(date(2026, 3, 7)) is None

"""Tests for the working-day calculator."""

from __future__ import annotations

from datetime import date, timedelta

from hr_portal.leave.working_days import ExcludedDay, compute_working_days


class TestCountWorkingDays:

    def test_plain_week(self):
        result = compute_working_days(date(2026, 3, 2), date(2026, 3, 6))
        assert result.count == 5
        assert result.excluded == []
        assert result.warnings == []
        assert result.is_valid_range

    def test_single_day(self):
        assert compute_working_days(date(2026, 3, 4), date(2026, 3, 4)).count == 1

    def test_spans_a_weekend(self):
        result = compute_working_days(date(2026, 3, 2), date(2026, 3, 10))
        assert result.count == 7
        assert result.excluded == [
            ExcludedDay(date(2026, 3, 7), "weekend"),
            ExcludedDay(date(2026, 3, 8), "weekend"),
        ]

    def test_easter_week(self):
        result = compute_working_days(date(2026, 4, 6), date(2026, 4, 17))
        assert result.count == 8
        reasons = {e.day: e.reason for e in result.excluded}
        assert reasons == {
            date(2026, 4, 10): "Vinerea Mare",
            date(2026, 4, 11): "Sâmbăta Mare",
            date(2026, 4, 12): "Paștele",
            date(2026, 4, 13): "A doua zi de Paște",
        }

    def test_new_year_and_epiphany(self):
        assert compute_working_days(date(2026, 1, 1), date(2026, 1, 9)).count == 3

    def test_only_days_off_is_zero_without_diagnostic(self):
        result = compute_working_days(date(2026, 3, 7), date(2026, 3, 8))
        assert result.count == 0
        assert result.diagnostic is None
        assert len(result.excluded) == 2


class TestInvertedRange:

    def test_end_before_start(self):
        result = compute_working_days(date(2026, 3, 6), date(2026, 3, 2))
        assert result.count == 0
        assert result.excluded == []
        assert not result.is_valid_range
        assert result.diagnostic == "End date 02.03.2026 is before start date 06.03.2026."


class TestExclusionReasons:

    def test_custom_holiday_name(self):
        result = compute_working_days(
            date(2026, 3, 2), date(2026, 3, 6), {date(2026, 3, 4): "Ziua instituției"},
        )
        assert result.count == 4
        assert result.excluded == [ExcludedDay(date(2026, 3, 4), "Ziua instituției")]
        assert result.warnings == []

    def test_unnamed_custom_holiday(self):
        result = compute_working_days(date(2026, 3, 2), date(2026, 3, 6), ["2026-03-04"])
        assert result.excluded == [ExcludedDay(date(2026, 3, 4), "institution holiday")]

    def test_national_beats_custom(self):
        result = compute_working_days(
            date(2026, 12, 1), date(2026, 12, 1), {date(2026, 12, 1): "Închis"},
        )
        assert result.excluded == [ExcludedDay(date(2026, 12, 1), "Ziua Națională a României")]

    def test_custom_beats_weekend(self):
        result = compute_working_days(
            date(2026, 3, 7), date(2026, 3, 7), {date(2026, 3, 7): "Inventar"},
        )
        assert result.excluded == [ExcludedDay(date(2026, 3, 7), "Inventar")]

    def test_national_holiday_on_weekend_is_reported_by_name(self):
        # 15 August 2026 is a Saturday
        result = compute_working_days(date(2026, 8, 15), date(2026, 8, 15))
        assert result.excluded == [ExcludedDay(date(2026, 8, 15), "Adormirea Maicii Domnului")]

    def test_public_holiday_warning(self):
        result = compute_working_days(date(2026, 11, 30), date(2026, 12, 2))
        assert result.count == 1
        assert result.warnings == [
            "30.11.2026 is a public holiday (Sfântul Andrei) and is not counted.",
            "01.12.2026 is a public holiday (Ziua Națională a României) and is not counted.",
        ]


class TestMonotonicity:

    def test_extending_the_range_never_lowers_the_count(self):
        start = date(2026, 1, 1)
        previous = 0
        for offset in range(0, 120):
            count = compute_working_days(start, start + timedelta(days=offset)).count
            assert count >= previous
            previous = count

    def test_adding_a_custom_holiday_never_raises_the_count(self):
        start, end = date(2026, 5, 4), date(2026, 5, 29)
        base = compute_working_days(start, end).count
        assert compute_working_days(start, end, [date(2026, 5, 12)]).count == base - 1
        assert compute_working_days(start, end, [date(2026, 5, 16)]).count == base

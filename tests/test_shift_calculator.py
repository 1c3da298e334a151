"""Tests for the per-day shift calculator."""

from datetime import date

import pytest

from shiftpay.calculators.shift_calculator import (
    calculate_shift_hours,
    count_working_days,
    is_working_day,
    parse_clock,
)
from shiftpay.calculators.types import DayType, NightStatus
from shiftpay.errors import ValidationError
from shiftpay.repositories.records import TimesheetRecord


class TestParseClock:
    """Test "HH:MM" parsing."""

    def test_parses_minutes_since_midnight(self):
        assert parse_clock("00:00") == 0
        assert parse_clock("09:30") == 570
        assert parse_clock("24:00") == 1440

    def test_ignores_seconds(self):
        assert parse_clock("18:00:59") == 1080

    @pytest.mark.parametrize("value", ["9am", "25:00", "12:60", "", "12"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValidationError):
            parse_clock(value)


class TestWorkDay:
    """Test work-day splitting at the overtime cutoff."""

    def test_missing_clock_in_is_all_zero(self):
        """An unworked day has no minutes and no night status."""
        hours = calculate_shift_hours(None, "18:00", 60)

        assert hours.total_minutes == 0
        assert hours.billable_minutes == 0
        assert hours.regular_minutes == 0
        assert hours.overtime_minutes == 0
        assert hours.night_status is None
        assert hours.day_type == DayType.WORK

    def test_standard_day(self):
        hours = calculate_shift_hours("09:00", "18:00", 60)

        assert hours.total_minutes == 540
        assert hours.regular_minutes == 480
        assert hours.overtime_minutes == 0
        assert hours.billable_minutes == 480
        assert hours.night_status is None

    def test_overtime_until_dinner_window(self):
        hours = calculate_shift_hours("09:00", "20:00", 60)

        assert hours.regular_minutes == 480
        assert hours.overtime_minutes == 120
        assert hours.billable_minutes == 600
        assert hours.dinner_break_deduction == 0
        assert hours.night_status == NightStatus.NIGHT_SHIFT

    def test_dinner_window_comes_off_overtime(self):
        hours = calculate_shift_hours("09:00", "22:00", 60)

        assert hours.dinner_break_deduction == 60
        assert hours.regular_minutes == 480
        assert hours.overtime_minutes == 180
        assert hours.billable_minutes == 660
        assert hours.night_status == NightStatus.NIGHT_SHIFT

    def test_overnight_shift(self):
        """End before start wraps past midnight."""
        hours = calculate_shift_hours("18:00", "02:00", 0)

        assert hours.total_minutes == 480
        assert hours.regular_minutes == 0
        assert hours.overtime_minutes == 420
        assert hours.dinner_break_deduction == 60
        assert hours.night_status == NightStatus.EXTENDED_NIGHT

    def test_break_spills_into_overtime(self):
        hours = calculate_shift_hours("17:00", "20:00", 90)

        assert hours.regular_minutes == 0
        assert hours.overtime_minutes == 90
        assert hours.billable_minutes == 90

    def test_night_status_cleared_without_overtime(self):
        """A late shift whose overtime is eaten by the break gets no night badge."""
        hours = calculate_shift_hours("17:00", "20:00", 180)

        assert hours.overtime_minutes == 0
        assert hours.night_status is None

    def test_zero_length_shift(self):
        hours = calculate_shift_hours("09:00", "09:00", 0)

        assert hours.total_minutes == 0
        assert hours.billable_minutes == 0
        assert hours.night_status is None

    def test_custom_cutoff(self):
        hours = calculate_shift_hours("09:00", "18:00", 0, ot_cutoff="17:00")

        assert hours.regular_minutes == 480
        assert hours.overtime_minutes == 60

    def test_unknown_day_type_rejected(self):
        with pytest.raises(ValidationError):
            calculate_shift_hours("09:00", "18:00", 0, "Holiday")


class TestTravelDay:
    """Test travel days, which have no overtime split."""

    def test_travel_day(self):
        hours = calculate_shift_hours("06:00", "14:00", 30, DayType.TRAVEL)

        assert hours.regular_minutes == 450
        assert hours.billable_minutes == 450
        assert hours.overtime_minutes == 0
        assert hours.dinner_break_deduction == 0
        assert hours.night_status == NightStatus.TRAVEL

    def test_travel_accepts_plain_string(self):
        hours = calculate_shift_hours("06:00", "22:00", 0, "Travel")

        assert hours.billable_minutes == 960
        assert hours.overtime_minutes == 0


class TestWorkingDays:
    """Test presence counting used by pay and bonus accrual."""

    def test_clock_in_or_planned_shift_counts(self):
        entries = [
            TimesheetRecord(employee_id=1, date=date(2025, 12, 8), clock_in="09:00"),
            TimesheetRecord(employee_id=1, date=date(2025, 12, 9), shift_start="09:00"),
            TimesheetRecord(employee_id=1, date=date(2025, 12, 10)),
        ]

        assert is_working_day(entries[0]) is True
        assert is_working_day(entries[1]) is True
        assert is_working_day(entries[2]) is False
        assert count_working_days(entries) == 2

    def test_empty_inputs(self):
        assert count_working_days(None) == 0
        assert count_working_days([]) == 0
        assert is_working_day(None) is False

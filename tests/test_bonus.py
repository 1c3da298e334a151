"""Tests for attendance bonus accrual."""

from datetime import date
from decimal import Decimal

from shiftpay.calculators.bonus import accrual_window, summarize_bonus
from shiftpay.repositories.records import (
    DEFAULT_BONUS_SETTING,
    BonusSetting,
    TimesheetRecord,
    WithdrawalRecord,
)


def withdrawal(amount: str, day: date, status: str = "approved") -> WithdrawalRecord:
    return WithdrawalRecord(id=1, employee_id=1, amount=Decimal(amount), date=day, status=status)


class TestAccrualWindow:
    """Test the window whose working days accrue bonus."""

    def test_window_ends_at_period_end(self):
        assert accrual_window(DEFAULT_BONUS_SETTING, date(2025, 12, 21)) == (
            date(2025, 4, 1),
            date(2025, 12, 21),
        )

    def test_window_clamped_to_setting_end(self):
        assert accrual_window(DEFAULT_BONUS_SETTING, date(2026, 4, 12)) == (
            date(2025, 4, 1),
            date(2026, 3, 31),
        )


class TestSummarizeBonus:
    """Test year-to-date accrual, withdrawals and balance."""

    def test_balance(self):
        entries = [
            TimesheetRecord(employee_id=1, date=date(2025, 12, 8), clock_in="09:00"),
            TimesheetRecord(employee_id=1, date=date(2025, 12, 9), clock_in="09:00"),
            TimesheetRecord(employee_id=1, date=date(2025, 12, 10), shift_start="09:00"),
            TimesheetRecord(employee_id=1, date=date(2025, 12, 11)),
        ]
        withdrawals = [
            withdrawal("50", date(2025, 12, 1)),
            withdrawal("20", date(2025, 12, 2), status="rejected"),
            withdrawal("10", date(2026, 1, 5)),
        ]

        summary = summarize_bonus(entries, withdrawals, DEFAULT_BONUS_SETTING, date(2025, 12, 21))

        assert summary.ytd_days == 3
        assert summary.ytd_accrued == Decimal("105")
        assert summary.total_withdrawn == Decimal("50")
        assert summary.balance == Decimal("55")

    def test_pending_withdrawals_count(self):
        setting = BonusSetting(date(2025, 4, 1), date(2026, 3, 31), Decimal("40"))

        summary = summarize_bonus(
            [], [withdrawal("30", date(2025, 12, 1), status="pending")], setting, date(2025, 12, 21)
        )

        assert summary.ytd_accrued == Decimal("0")
        assert summary.balance == Decimal("-30")


class TestBonusSetting:
    """Test the stored representation."""

    def test_from_dict_accepts_stored_shape(self):
        setting = BonusSetting.from_dict(
            {"start_date": "2025-04-01", "end_date": "2026-03-31", "amount_per_day": 35}
        )

        assert setting == DEFAULT_BONUS_SETTING
        assert setting.to_dict()["amount_per_day"] == "35"

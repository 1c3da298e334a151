"""Attendance bonus accrual."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from shiftpay.calculators.shift_calculator import count_working_days
from shiftpay.calculators.types import BonusSummary

if TYPE_CHECKING:
    from shiftpay.repositories.records import BonusSetting, TimesheetRecord, WithdrawalRecord


def accrual_window(setting: BonusSetting, period_end: date) -> tuple[date, date]:
    """Date range whose working days accrue bonus up to ``period_end``."""
    return setting.start_date, min(period_end, setting.end_date)


def summarize_bonus(
    entries: Iterable[TimesheetRecord],
    withdrawals: Iterable[WithdrawalRecord],
    setting: BonusSetting,
    period_end: date,
) -> BonusSummary:
    """Year-to-date bonus accrued, withdrawn and left as of ``period_end``.

    ``entries`` should already be limited to :func:`accrual_window`.
    Rejected withdrawals and those dated after the period are ignored.
    """
    ytd_days = count_working_days(entries)
    ytd_accrued = Decimal(ytd_days) * Decimal(setting.amount_per_day)
    total_withdrawn = sum(
        (
            Decimal(w.amount or 0)
            for w in withdrawals
            if w.status != "rejected" and w.date <= period_end
        ),
        Decimal("0"),
    )
    return BonusSummary(
        ytd_days=ytd_days,
        ytd_accrued=ytd_accrued,
        total_withdrawn=total_withdrawn,
        balance=ytd_accrued - total_withdrawn,
    )

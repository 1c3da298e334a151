"""Payroll calculation engine."""

from shiftpay.calculators.bonus import summarize_bonus
from shiftpay.calculators.pay_calculator import PayCalculator, round_currency
from shiftpay.calculators.reconciler import classify_deductions, summarize_loan
from shiftpay.calculators.shift_calculator import (
    calculate_shift_hours,
    count_working_days,
    is_working_day,
)

__all__ = [
    "PayCalculator",
    "calculate_shift_hours",
    "classify_deductions",
    "count_working_days",
    "is_working_day",
    "round_currency",
    "summarize_bonus",
    "summarize_loan",
]

"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Union


class DayType(str, Enum):
    """Kind of day a timesheet entry records."""

    WORK = "Work"
    TRAVEL = "Travel"


class NightStatus(str, Enum):
    """Badge attached to a shift that ran late."""

    NIGHT_SHIFT = "Night Shift"
    EXTENDED_NIGHT = "Extended Night"
    TRAVEL = "Travel"


class DeductionType(str, Enum):
    """Deduction categories."""

    ADVANCE = "advance"
    LOAN = "loan"
    PENALTY = "penalty"
    CUSTOM = "custom"


class PayrollStatus(str, Enum):
    """Payroll entry status values."""

    PENDING = "Pending"
    PAID = "Paid"


@dataclass(frozen=True)
class ShiftHours:
    """Minutes breakdown for a single day's shift."""

    total_minutes: int = 0
    billable_minutes: int = 0
    regular_minutes: int = 0
    overtime_minutes: int = 0
    night_status: NightStatus | None = None
    dinner_break_deduction: int = 0
    day_type: DayType = DayType.WORK


# === Pay models ===


@dataclass(frozen=True)
class PerShift:
    """Fixed wage per standard shift."""

    amount: Decimal


@dataclass(frozen=True)
class Hourly:
    """Wage per regular hour."""

    rate: Decimal


@dataclass(frozen=True)
class Monthly:
    """Flat monthly salary."""

    salary: Decimal


PayModel = Union[PerShift, Hourly, Monthly]


@dataclass(frozen=True)
class PayComputation:
    """Figures produced by the pay aggregator for one employee and period."""

    gross_pay: Decimal
    overtime_pay: Decimal
    deductions: Decimal
    advance_deductions: Decimal
    loan_deductions: Decimal
    net_pay: Decimal
    hourly_rate: Decimal
    total_regular_minutes: int
    total_overtime_minutes: int
    total_billable_minutes: int
    working_days: int
    per_shift_amount: Decimal | None = None


@dataclass(frozen=True)
class DeductionBreakdown:
    """Deduction totals by type."""

    total: Decimal = Decimal("0")
    advance: Decimal = Decimal("0")
    loan: Decimal = Decimal("0")
    penalty: Decimal = Decimal("0")
    custom: Decimal = Decimal("0")


@dataclass(frozen=True)
class LoanSummary:
    """Running balance of a loan as seen from one pay period."""

    loan_date: date
    original_amount: Decimal
    opening_balance: Decimal
    current_deduction: Decimal
    remaining_balance: Decimal


@dataclass(frozen=True)
class BonusSummary:
    """Year-to-date attendance bonus position."""

    ytd_days: int
    ytd_accrued: Decimal
    total_withdrawn: Decimal
    balance: Decimal

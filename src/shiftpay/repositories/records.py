"""Plain records exchanged between the engine and its data store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from shiftpay.calculators.types import (
    DayType,
    DeductionType,
    Hourly,
    Monthly,
    PayModel,
    PayrollStatus,
    PerShift,
)
from shiftpay.errors import ValidationError


@dataclass(frozen=True)
class EmployeeRecord:
    """Employee as seen by the payroll engine (read-only)."""

    id: int
    name: str
    role: str | None = None
    image: str | None = None
    contact: str | None = None
    status: str = "Active"
    per_shift_amount: Decimal | None = None
    hourly_rate: Decimal | None = None
    salary: Decimal | None = None
    shift_start: str | None = None
    shift_end: str | None = None
    break_time: int = 0

    def pay_model(self) -> PayModel:
        """Resolve the authoritative pay model.

        Precedence is per-shift amount, then hourly rate, then monthly
        salary. An employee with none of them cannot be paid.
        """
        if self.per_shift_amount:
            return PerShift(Decimal(self.per_shift_amount))
        if self.hourly_rate:
            return Hourly(Decimal(self.hourly_rate))
        if self.salary:
            return Monthly(Decimal(self.salary))
        raise ValidationError(
            f"Employee {self.id} has no pay model "
            "(per-shift amount, hourly rate or salary required)"
        )


@dataclass(frozen=True)
class TimesheetRecord:
    """One day of clock times for one employee."""

    employee_id: int
    date: date
    clock_in: str | None = None
    clock_out: str | None = None
    break_minutes: int = 0
    day_type: DayType = DayType.WORK
    shift_start: str | None = None
    shift_end: str | None = None
    id: int | None = None

    @property
    def effective_clock_in(self) -> str | None:
        return self.clock_in or self.shift_start

    @property
    def effective_clock_out(self) -> str | None:
        return self.clock_out or self.shift_end


@dataclass(frozen=True)
class DeductionRecord:
    """A deduction against an employee's pay."""

    employee_id: int
    amount: Decimal
    type: DeductionType
    date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    description: str | None = None
    status: str = "active"
    linked_advance_id: int | None = None
    id: int | None = None

    @property
    def effective_end(self) -> date | None:
        """Last day of the period this deduction belongs to."""
        return self.period_end or self.date


@dataclass(frozen=True)
class LoanRecord:
    """A loan repaid through loan-type deductions."""

    id: int
    employee_id: int
    amount: Decimal
    date: date
    status: str = "active"


@dataclass(frozen=True)
class WithdrawalRecord:
    """A withdrawal against the accrued attendance bonus."""

    id: int
    employee_id: int
    amount: Decimal
    date: date
    status: str = "pending"
    notes: str | None = None


@dataclass(frozen=True)
class BonusSetting:
    """Daily attendance bonus rate and the window it applies to."""

    start_date: date
    end_date: date
    amount_per_day: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "amount_per_day": str(self.amount_per_day),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BonusSetting:
        return cls(
            start_date=date.fromisoformat(str(data["start_date"])),
            end_date=date.fromisoformat(str(data["end_date"])),
            amount_per_day=Decimal(str(data["amount_per_day"])),
        )


DEFAULT_BONUS_SETTING = BonusSetting(
    start_date=date(2025, 4, 1),
    end_date=date(2026, 3, 31),
    amount_per_day=Decimal("35"),
)


@dataclass(frozen=True)
class PeriodLock:
    """Admin override pinning the current pay period."""

    start: date
    end: date
    locked_by: str
    locked_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "locked_by": self.locked_by,
            "locked_at": self.locked_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PeriodLock:
        return cls(
            start=date.fromisoformat(data["start"]),
            end=date.fromisoformat(data["end"]),
            locked_by=data["locked_by"],
            locked_at=datetime.fromisoformat(data["locked_at"]),
        )


# Fields compared when deciding whether a recalculation changed anything
FINANCIAL_FIELDS = (
    "gross_pay",
    "overtime_pay",
    "deductions",
    "advance_deductions",
    "loan_deductions",
    "net_pay",
    "hourly_rate",
    "per_shift_amount",
    "total_billable_minutes",
    "total_regular_minutes",
    "total_overtime_minutes",
    "working_days",
)


@dataclass(frozen=True)
class PayrollRecord:
    """Ledger row: one employee's pay for one period.

    Instances are immutable; changes produce a new record via
    ``dataclasses.replace``.
    """

    employee_id: int
    period_start: date
    period_end: date
    gross_pay: Decimal = Decimal("0")
    overtime_pay: Decimal = Decimal("0")
    deductions: Decimal = Decimal("0")
    advance_deductions: Decimal = Decimal("0")
    loan_deductions: Decimal = Decimal("0")
    net_pay: Decimal = Decimal("0")
    status: PayrollStatus = PayrollStatus.PENDING
    paid_at: datetime | None = None
    total_billable_minutes: int = 0
    total_regular_minutes: int = 0
    total_overtime_minutes: int = 0
    working_days: int = 0
    hourly_rate: Decimal = Decimal("0")
    per_shift_amount: Decimal | None = None
    calculated_at: datetime | None = None
    id: int | None = None

    @property
    def is_frozen(self) -> bool:
        return self.status == PayrollStatus.PAID

    def financials(self) -> tuple[Any, ...]:
        """Financial figures, for change detection."""
        return tuple(getattr(self, name) for name in FINANCIAL_FIELDS)

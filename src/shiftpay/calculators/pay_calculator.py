"""Pay aggregation for one employee over one period."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from shiftpay.calculators.reconciler import classify_deductions
from shiftpay.calculators.shift_calculator import calculate_shift_hours, count_working_days
from shiftpay.calculators.types import (
    Hourly,
    Monthly,
    PayComputation,
    PerShift,
    ShiftHours,
)

if TYPE_CHECKING:
    from shiftpay.repositories.records import DeductionRecord, EmployeeRecord, TimesheetRecord

DEFAULT_SHIFT_START = "09:00"
DEFAULT_SHIFT_END = "18:00"
DEFAULT_DAILY_HOURS = Decimal("8")
SALARY_DAYS_PER_MONTH = Decimal("30")
SALARY_HOURS_PER_DAY = Decimal("8")
RATE_PRECISION = Decimal("0.0001")


def round_currency(value: Decimal) -> Decimal:
    """Round to a whole currency unit, halves rounding up (towards +inf)."""
    return (value + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR)


@dataclass(frozen=True)
class ProcessedDay:
    """A timesheet entry with its shift calculation."""

    entry: TimesheetRecord
    hours: ShiftHours


class PayCalculator:
    """Turns a period's timesheets and deductions into pay figures.

    Pipeline:
    1) Run each entry through the shift calculator (OT cutoff = employee shift end)
    2) Sum regular, overtime and billable minutes; count working days
    3) Gross by pay model (per-shift pro-rated, hourly, or flat monthly)
    4) Round gross, add overtime premium
    5) Net out active deductions
    """

    def __init__(
        self,
        default_ot_cutoff: str = "18:00",
        dinner_start: str = "20:00",
        dinner_end: str = "21:00",
        overtime_multiplier: Decimal = Decimal("1.5"),
    ):
        self.default_ot_cutoff = default_ot_cutoff
        self.dinner_start = dinner_start
        self.dinner_end = dinner_end
        self.overtime_multiplier = overtime_multiplier

    @classmethod
    def from_settings(cls, settings) -> PayCalculator:
        return cls(
            default_ot_cutoff=settings.ot_cutoff,
            dinner_start=settings.dinner_start,
            dinner_end=settings.dinner_end,
            overtime_multiplier=settings.overtime_multiplier,
        )

    def process_day(self, employee: EmployeeRecord, entry: TimesheetRecord) -> ProcessedDay:
        """Calculate one timesheet entry against the employee's shift."""
        hours = calculate_shift_hours(
            entry.effective_clock_in,
            entry.effective_clock_out,
            entry.break_minutes,
            entry.day_type,
            employee.shift_end or self.default_ot_cutoff,
            self.dinner_start,
            self.dinner_end,
        )
        return ProcessedDay(entry=entry, hours=hours)

    def standard_shift_minutes(self, employee: EmployeeRecord) -> int:
        """Billable minutes of the employee's own configured shift."""
        standard = calculate_shift_hours(
            employee.shift_start or DEFAULT_SHIFT_START,
            employee.shift_end or DEFAULT_SHIFT_END,
            employee.break_time or 0,
            ot_cutoff=self.default_ot_cutoff,
            dinner_start=self.dinner_start,
            dinner_end=self.dinner_end,
        )
        return standard.billable_minutes

    def compute(
        self,
        employee: EmployeeRecord,
        timesheets: Sequence[TimesheetRecord],
        deductions: Sequence[DeductionRecord],
    ) -> PayComputation:
        """Compute pay figures. Raises ValidationError if no pay model is set."""
        pay_model = employee.pay_model()

        days = [self.process_day(employee, entry) for entry in timesheets]
        regular_minutes = sum(d.hours.regular_minutes for d in days)
        overtime_minutes = sum(d.hours.overtime_minutes for d in days)
        billable_minutes = sum(d.hours.billable_minutes for d in days)
        working_days = count_working_days(timesheets)

        per_shift_amount: Decimal | None = None
        if isinstance(pay_model, PerShift):
            per_shift_amount = pay_model.amount
            standard_minutes = self.standard_shift_minutes(employee)
            daily_hours = Decimal(standard_minutes) / 60 or DEFAULT_DAILY_HOURS
            hourly_rate = pay_model.amount / daily_hours

            base_pay = pay_model.amount * working_days
            expected_minutes = standard_minutes * working_days
            if expected_minutes > 0:
                gross = base_pay * Decimal(regular_minutes) / Decimal(expected_minutes)
            else:
                gross = base_pay

        elif isinstance(pay_model, Hourly):
            hourly_rate = pay_model.rate
            gross = hourly_rate * Decimal(regular_minutes) / 60

        elif isinstance(pay_model, Monthly):
            # Flat salary regardless of days worked
            hourly_rate = pay_model.salary / SALARY_DAYS_PER_MONTH / SALARY_HOURS_PER_DAY
            gross = pay_model.salary

        else:
            raise TypeError(f"Unsupported pay model: {pay_model!r}")

        gross = round_currency(gross)
        overtime_pay = round_currency(
            Decimal(overtime_minutes) / 60 * hourly_rate * self.overtime_multiplier
        )
        gross += overtime_pay

        breakdown = classify_deductions(deductions)
        net = round_currency(gross - breakdown.total)

        return PayComputation(
            gross_pay=gross,
            overtime_pay=overtime_pay,
            deductions=breakdown.total,
            advance_deductions=breakdown.advance,
            loan_deductions=breakdown.loan,
            net_pay=net,
            hourly_rate=hourly_rate.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP),
            total_regular_minutes=regular_minutes,
            total_overtime_minutes=overtime_minutes,
            total_billable_minutes=billable_minutes,
            working_days=working_days,
            per_shift_amount=per_shift_amount,
        )

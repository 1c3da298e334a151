"""Advances and period deductions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from shiftpay.calculators.types import DeductionType
from shiftpay.errors import InvariantViolationError, PayrollError, ValidationError
from shiftpay.repositories.records import DeductionRecord, PayrollRecord
from shiftpay.services.payroll_service import PayrollService
from shiftpay.services.period_service import PayPeriod, PeriodService, validate_range

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeductionLine:
    """One deduction to record against a period."""

    type: DeductionType
    amount: Decimal
    description: str | None = None


@dataclass(frozen=True)
class AdvanceResult:
    deduction: DeductionRecord
    period: PayPeriod
    entry: PayrollRecord | None


class DeductionService:
    """Writes deductions and keeps the affected ledger entry current.

    Deductions are never written into a period whose entry is Paid. The
    period check, the write and the recalculation run under the entry's key
    lock, so a concurrent mark_paid cannot land between them.
    """

    def __init__(self, payroll: PayrollService, periods: PeriodService | None = None):
        self.payroll = payroll
        self.repository = payroll.repository
        self.periods = periods or PeriodService(payroll.repository, payroll.settings)

    async def _assert_period_open(self, employee_id: int, start: date, end: date) -> None:
        entry = await self.payroll.load(
            "payroll_entry",
            employee_id,
            self.repository.get_payroll_entry(employee_id, start, end),
        )
        if entry is not None and entry.is_frozen:
            raise InvariantViolationError(
                f"Period already paid: employee {employee_id} "
                f"{start.isoformat()}..{end.isoformat()}"
            )

    async def issue_advance(
        self,
        employee_id: int,
        amount: Decimal,
        date_issued: date,
        reason: str | None = None,
        period: PayPeriod | None = None,
    ) -> AdvanceResult:
        """Record an advance as a deduction and recalculate its period.

        Without an explicit period the advance lands in the rolling period
        containing ``date_issued``. A failed recalculation is logged and the
        advance is kept.
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError(f"Advance amount must be positive, got {amount}")
        if period is None:
            period = self.periods.rolling_period(date_issued)
        validate_range(period.start, period.end)

        employee = await self.payroll.require_employee(employee_id)
        async with self.payroll.locks.hold((employee_id, period.start, period.end)):
            await self._assert_period_open(employee_id, period.start, period.end)

            deduction = await self.payroll.load(
                "deductions_write",
                employee_id,
                self.repository.add_deduction(
                    DeductionRecord(
                        employee_id=employee_id,
                        amount=amount,
                        type=DeductionType.ADVANCE,
                        date=date_issued,
                        period_start=period.start,
                        period_end=period.end,
                        description=reason or f"Advance Salary - {date_issued.isoformat()}",
                    )
                ),
            )
            logger.info(
                "Advance of %s issued to employee %s for %s..%s",
                amount,
                employee_id,
                period.start,
                period.end,
            )

            entry = None
            try:
                entry = await self.payroll.recalculate_locked(employee, period.start, period.end)
            except PayrollError:
                logger.exception(
                    "Recalculation after advance failed for employee %s", employee_id
                )
        return AdvanceResult(deduction=deduction, period=period, entry=entry)

    async def replace_period_deductions(
        self,
        employee_id: int,
        start: date,
        end: date,
        lines: Sequence[DeductionLine],
    ) -> tuple[list[DeductionRecord], PayrollRecord]:
        """Cancel the period's active deductions, record ``lines`` instead, recalculate."""
        validate_range(start, end)
        for line in lines:
            if Decimal(line.amount) < 0:
                raise ValidationError(f"Deduction amount must not be negative, got {line.amount}")

        employee = await self.payroll.require_employee(employee_id)
        replacements = [
            DeductionRecord(
                employee_id=employee_id,
                amount=Decimal(line.amount),
                type=DeductionType(line.type),
                period_start=start,
                period_end=end,
                description=line.description,
            )
            for line in lines
        ]
        async with self.payroll.locks.hold((employee_id, start, end)):
            await self._assert_period_open(employee_id, start, end)
            cancelled, saved = await self.payroll.load(
                "deductions_write",
                employee_id,
                self.repository.replace_period_deductions(employee_id, start, end, replacements),
            )
            logger.info(
                "Replaced %d deductions with %d for employee %s (%s..%s)",
                cancelled,
                len(saved),
                employee_id,
                start,
                end,
            )
            entry = await self.payroll.recalculate_locked(employee, start, end)
        return saved, entry

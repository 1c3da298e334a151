"""Loan balance reads and settlement."""

from __future__ import annotations

import logging
from datetime import date

from shiftpay.calculators import summarize_loan
from shiftpay.calculators.types import LoanSummary
from shiftpay.services.payroll_service import PayrollService
from shiftpay.services.period_service import validate_range

logger = logging.getLogger(__name__)


class LoanService:
    def __init__(self, payroll: PayrollService):
        self.payroll = payroll
        self.repository = payroll.repository

    async def summarize(self, employee_id: int, start: date, end: date) -> LoanSummary | None:
        """Balance of the employee's active loan as seen from [start, end], if any."""
        validate_range(start, end)
        load = self.payroll.load
        loan = await load("loans", employee_id, self.repository.get_active_loan(employee_id))
        if loan is None:
            return None
        all_loan_deductions = await load(
            "deductions", employee_id, self.repository.get_loan_deductions(employee_id)
        )
        current = await load(
            "deductions", employee_id, self.repository.get_deductions(employee_id, start, end)
        )
        return summarize_loan(loan, all_loan_deductions, current, start)

    async def close_loan_if_settled(
        self, employee_id: int, start: date, end: date, actor: str | None = None
    ) -> bool:
        """Close the active loan once this period's repayment clears it.

        Returns True if a loan was closed.
        """
        await self.payroll.require_employee(employee_id)
        summary = await self.summarize(employee_id, start, end)
        if summary is None or summary.remaining_balance > 0:
            return False

        loan = await self.payroll.load(
            "loans", employee_id, self.repository.get_active_loan(employee_id)
        )
        await self.payroll.load("loans_write", employee_id, self.repository.close_loan(loan.id))
        await self.payroll.audit(
            "loan_closed",
            actor,
            {"employee_id": employee_id, "loan_id": loan.id, "period_end": end.isoformat()},
        )
        logger.info("Loan %s for employee %s settled and closed", loan.id, employee_id)
        return True

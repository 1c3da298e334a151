"""In-memory repository for local runs and tests."""

from __future__ import annotations

import copy
import itertools
from collections.abc import Sequence
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any

from shiftpay.calculators.types import DeductionType, PayrollStatus
from shiftpay.repositories.records import (
    DeductionRecord,
    EmployeeRecord,
    LoanRecord,
    PayrollRecord,
    TimesheetRecord,
    WithdrawalRecord,
)


def deduction_anchor(deduction: DeductionRecord) -> date | None:
    """Day that places a deduction inside a pay period.

    The period a deduction was written against wins over the day it was
    issued; undated-period deductions fall back to their date.
    """
    return deduction.period_start or deduction.date


class InMemoryPayrollRepository:
    """Dictionary-backed implementation of PayrollRepository."""

    def __init__(self) -> None:
        self.employees: dict[int, EmployeeRecord] = {}
        self.timesheets: list[TimesheetRecord] = []
        self.deductions: list[DeductionRecord] = []
        self.loans: dict[int, LoanRecord] = {}
        self.withdrawals: list[WithdrawalRecord] = []
        self.payroll: dict[int, PayrollRecord] = {}
        self.settings: dict[str, Any] = {}
        self.audit_log: list[dict[str, Any]] = []
        self._ids = itertools.count(1)

    # === Seeding helpers ===

    def add_employee(self, employee: EmployeeRecord) -> EmployeeRecord:
        self.employees[employee.id] = employee
        return employee

    def add_timesheet(self, entry: TimesheetRecord) -> TimesheetRecord:
        entry = replace(entry, id=entry.id or next(self._ids))
        self.timesheets = [
            t
            for t in self.timesheets
            if not (t.employee_id == entry.employee_id and t.date == entry.date)
        ]
        self.timesheets.append(entry)
        return entry

    def add_loan(self, loan: LoanRecord) -> LoanRecord:
        self.loans[loan.id] = loan
        return loan

    def add_withdrawal(self, withdrawal: WithdrawalRecord) -> WithdrawalRecord:
        self.withdrawals.append(withdrawal)
        return withdrawal

    # === Employees ===

    async def get_employee(self, employee_id: int) -> EmployeeRecord | None:
        return self.employees.get(employee_id)

    async def get_employees(self, employee_ids: Sequence[int]) -> list[EmployeeRecord]:
        return [self.employees[i] for i in employee_ids if i in self.employees]

    async def list_employee_ids(self, status: str | None = "Active") -> list[int]:
        return sorted(
            e.id for e in self.employees.values() if status is None or e.status == status
        )

    # === Timesheets ===

    async def get_timesheet_entries(
        self, employee_id: int, start: date, end: date
    ) -> list[TimesheetRecord]:
        return self._timesheets_in_range([employee_id], start, end)

    async def get_timesheet_entries_for_employees(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[TimesheetRecord]:
        return self._timesheets_in_range(employee_ids, start, end)

    def _timesheets_in_range(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[TimesheetRecord]:
        wanted = set(employee_ids)
        return sorted(
            (t for t in self.timesheets if t.employee_id in wanted and start <= t.date <= end),
            key=lambda t: (t.employee_id, t.date),
        )

    # === Deductions and loans ===

    async def get_deductions(
        self, employee_id: int, start: date, end: date
    ) -> list[DeductionRecord]:
        return self._deductions_in_range([employee_id], start, end)

    async def get_deductions_for_employees(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[DeductionRecord]:
        return self._deductions_in_range(employee_ids, start, end)

    def _deductions_in_range(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[DeductionRecord]:
        wanted = set(employee_ids)
        return [
            d
            for d in self.deductions
            if d.employee_id in wanted
            and d.status == "active"
            and deduction_anchor(d) is not None
            and start <= deduction_anchor(d) <= end
        ]

    async def get_loan_deductions(self, employee_id: int) -> list[DeductionRecord]:
        return [
            d
            for d in self.deductions
            if d.employee_id == employee_id
            and d.type == DeductionType.LOAN
            and d.status == "active"
        ]

    async def add_deduction(self, deduction: DeductionRecord) -> DeductionRecord:
        deduction = replace(deduction, id=deduction.id or next(self._ids))
        self.deductions.append(deduction)
        return deduction

    async def replace_period_deductions(
        self,
        employee_id: int,
        start: date,
        end: date,
        deductions: Sequence[DeductionRecord],
    ) -> tuple[int, list[DeductionRecord]]:
        cancelled = 0
        kept = []
        for d in self.deductions:
            anchor = deduction_anchor(d)
            if (
                d.employee_id == employee_id
                and d.status == "active"
                and anchor is not None
                and start <= anchor <= end
            ):
                d = replace(d, status="cancelled")
                cancelled += 1
            kept.append(d)
        saved = [replace(d, id=d.id or next(self._ids)) for d in deductions]
        self.deductions = kept + saved
        return cancelled, saved

    async def get_active_loan(self, employee_id: int) -> LoanRecord | None:
        for loan in self.loans.values():
            if loan.employee_id == employee_id and loan.status == "active":
                return loan
        return None

    async def close_loan(self, loan_id: int) -> None:
        self.loans[loan_id] = replace(self.loans[loan_id], status="closed")

    # === Payroll ledger ===

    async def get_payroll_entry(
        self, employee_id: int, start: date, end: date, for_update: bool = False
    ) -> PayrollRecord | None:
        for entry in self.payroll.values():
            if (
                entry.employee_id == employee_id
                and entry.period_start == start
                and entry.period_end == end
            ):
                return entry
        return None

    async def get_payroll_entry_by_id(self, entry_id: int) -> PayrollRecord | None:
        return self.payroll.get(entry_id)

    async def get_payroll_entries(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[PayrollRecord]:
        wanted = set(employee_ids)
        return [
            e
            for e in self.payroll.values()
            if e.employee_id in wanted and e.period_start == start and e.period_end == end
        ]

    async def find_paid_entries_covering(self, employee_id: int, day: date) -> list[PayrollRecord]:
        return [
            e
            for e in self.payroll.values()
            if e.employee_id == employee_id
            and e.status == PayrollStatus.PAID
            and e.period_start <= day <= e.period_end
        ]

    async def get_paid_history(self, employee_id: int) -> list[PayrollRecord]:
        paid = [
            e
            for e in self.payroll.values()
            if e.employee_id == employee_id and e.status == PayrollStatus.PAID
        ]
        return sorted(paid, key=lambda e: e.period_start, reverse=True)

    async def upsert_payroll_entry(self, entry: PayrollRecord) -> PayrollRecord:
        if entry.id is None:
            existing = await self.get_payroll_entry(
                entry.employee_id, entry.period_start, entry.period_end
            )
            entry = replace(entry, id=existing.id if existing else next(self._ids))
        self.payroll[entry.id] = entry
        return entry

    # === Bonus and settings ===

    async def get_bonus_withdrawals(self, employee_id: int) -> list[WithdrawalRecord]:
        return sorted(
            (w for w in self.withdrawals if w.employee_id == employee_id),
            key=lambda w: w.date,
            reverse=True,
        )

    async def get_setting(self, key: str) -> Any | None:
        return copy.deepcopy(self.settings.get(key))

    async def save_setting(self, key: str, value: Any | None) -> None:
        self.settings[key] = copy.deepcopy(value)

    async def record_audit(
        self, action: str, actor: str | None, details: dict[str, Any] | None = None
    ) -> None:
        self.audit_log.append(
            {
                "action": action,
                "actor": actor,
                "details": details,
                "created_at": datetime.now(timezone.utc),
            }
        )

"""Data store contract consumed by the payroll engine."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Protocol

from shiftpay.repositories.records import (
    BonusSetting,
    DeductionRecord,
    EmployeeRecord,
    LoanRecord,
    PayrollRecord,
    TimesheetRecord,
    WithdrawalRecord,
)

PERIOD_LOCK_KEY = "locked_payroll_period"
BONUS_SETTING_KEY = "bonus"


class PayrollRepository(Protocol):
    """Repository-style access to employees, timesheets, deductions and the ledger.

    Range arguments are inclusive. Deduction reads return active
    deductions only.
    """

    # === Employees ===

    async def get_employee(self, employee_id: int) -> EmployeeRecord | None: ...

    async def get_employees(self, employee_ids: Sequence[int]) -> list[EmployeeRecord]: ...

    async def list_employee_ids(self, status: str | None = "Active") -> list[int]: ...

    # === Timesheets ===

    async def get_timesheet_entries(
        self, employee_id: int, start: date, end: date
    ) -> list[TimesheetRecord]: ...

    async def get_timesheet_entries_for_employees(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[TimesheetRecord]: ...

    # === Deductions and loans ===

    async def get_deductions(
        self, employee_id: int, start: date, end: date
    ) -> list[DeductionRecord]: ...

    async def get_deductions_for_employees(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[DeductionRecord]: ...

    async def get_loan_deductions(self, employee_id: int) -> list[DeductionRecord]: ...

    async def add_deduction(self, deduction: DeductionRecord) -> DeductionRecord: ...

    async def replace_period_deductions(
        self,
        employee_id: int,
        start: date,
        end: date,
        deductions: Sequence[DeductionRecord],
    ) -> tuple[int, list[DeductionRecord]]:
        """Cancel the period's active deductions and add new ones in one write.

        Returns the number cancelled and the saved deductions.
        """
        ...

    async def get_active_loan(self, employee_id: int) -> LoanRecord | None: ...

    async def close_loan(self, loan_id: int) -> None: ...

    # === Payroll ledger ===

    async def get_payroll_entry(
        self, employee_id: int, start: date, end: date, for_update: bool = False
    ) -> PayrollRecord | None: ...

    async def get_payroll_entry_by_id(self, entry_id: int) -> PayrollRecord | None: ...

    async def get_payroll_entries(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[PayrollRecord]: ...

    async def find_paid_entries_covering(
        self, employee_id: int, day: date
    ) -> list[PayrollRecord]: ...

    async def get_paid_history(self, employee_id: int) -> list[PayrollRecord]: ...

    async def upsert_payroll_entry(self, entry: PayrollRecord) -> PayrollRecord: ...

    # === Bonus and settings ===

    async def get_bonus_withdrawals(self, employee_id: int) -> list[WithdrawalRecord]: ...

    async def get_setting(self, key: str) -> Any | None: ...

    async def save_setting(self, key: str, value: Any | None) -> None: ...

    async def record_audit(
        self, action: str, actor: str | None, details: dict[str, Any] | None = None
    ) -> None: ...


async def load_bonus_setting(repository: PayrollRepository) -> BonusSetting | None:
    """Read the stored bonus setting, if any."""
    value = await repository.get_setting(BONUS_SETTING_KEY)
    return BonusSetting.from_dict(value) if value else None

"""SQLAlchemy implementation of the payroll repository."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.calculators.types import DayType, DeductionType, PayrollStatus
from shiftpay.models import (
    AuditEvent,
    BonusWithdrawal,
    Deduction,
    Employee,
    Loan,
    PayrollEntry,
    Setting,
    TimesheetEntry,
)
from shiftpay.repositories.records import (
    DeductionRecord,
    EmployeeRecord,
    LoanRecord,
    PayrollRecord,
    TimesheetRecord,
    WithdrawalRecord,
)

# Columns written on upsert (everything but the primary key)
_PAYROLL_COLUMNS = (
    "employee_id",
    "period_start",
    "period_end",
    "gross_pay",
    "overtime_pay",
    "deductions",
    "advance_deductions",
    "loan_deductions",
    "net_pay",
    "status",
    "paid_at",
    "total_billable_minutes",
    "total_regular_minutes",
    "total_overtime_minutes",
    "working_days",
    "hourly_rate",
    "per_shift_amount",
    "calculated_at",
)


class SqlPayrollRepository:
    """PayrollRepository backed by an AsyncSession.

    Each write commits its own transaction so that a ledger row is durable
    before the caller releases its per-period lock. A failed write rolls the
    session back, so the next write on the same session starts clean.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    # === Employees ===

    async def get_employee(self, employee_id: int) -> EmployeeRecord | None:
        employee = await self.session.get(Employee, employee_id)
        return _employee_record(employee) if employee else None

    async def get_employees(self, employee_ids: Sequence[int]) -> list[EmployeeRecord]:
        if not employee_ids:
            return []
        result = await self.session.execute(
            select(Employee).where(Employee.id.in_(list(employee_ids)))
        )
        return [_employee_record(e) for e in result.scalars().all()]

    async def list_employee_ids(self, status: str | None = "Active") -> list[int]:
        query = select(Employee.id).order_by(Employee.id)
        if status is not None:
            query = query.where(Employee.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    # === Timesheets ===

    async def get_timesheet_entries(
        self, employee_id: int, start: date, end: date
    ) -> list[TimesheetRecord]:
        return await self._timesheets([employee_id], start, end)

    async def get_timesheet_entries_for_employees(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[TimesheetRecord]:
        if not employee_ids:
            return []
        return await self._timesheets(employee_ids, start, end)

    async def _timesheets(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[TimesheetRecord]:
        result = await self.session.execute(
            select(TimesheetEntry)
            .where(
                TimesheetEntry.employee_id.in_(list(employee_ids)),
                TimesheetEntry.work_date >= start,
                TimesheetEntry.work_date <= end,
            )
            .order_by(TimesheetEntry.employee_id, TimesheetEntry.work_date)
        )
        return [_timesheet_record(t) for t in result.scalars().all()]

    # === Deductions and loans ===

    async def get_deductions(
        self, employee_id: int, start: date, end: date
    ) -> list[DeductionRecord]:
        return await self._deductions([employee_id], start, end)

    async def get_deductions_for_employees(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[DeductionRecord]:
        if not employee_ids:
            return []
        return await self._deductions(employee_ids, start, end)

    async def _deductions(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[DeductionRecord]:
        anchor = _deduction_anchor()
        result = await self.session.execute(
            select(Deduction)
            .where(
                Deduction.employee_id.in_(list(employee_ids)),
                Deduction.status == "active",
                anchor >= start,
                anchor <= end,
            )
            .order_by(Deduction.id)
        )
        return [_deduction_record(d) for d in result.scalars().all()]

    async def get_loan_deductions(self, employee_id: int) -> list[DeductionRecord]:
        result = await self.session.execute(
            select(Deduction).where(
                Deduction.employee_id == employee_id,
                Deduction.type == DeductionType.LOAN.value,
                Deduction.status == "active",
            )
        )
        return [_deduction_record(d) for d in result.scalars().all()]

    async def add_deduction(self, deduction: DeductionRecord) -> DeductionRecord:
        async with self._transaction():
            row = _deduction_row(deduction)
            self.session.add(row)
            await self.session.flush()
            record = _deduction_record(row)
        return record

    async def replace_period_deductions(
        self,
        employee_id: int,
        start: date,
        end: date,
        deductions: Sequence[DeductionRecord],
    ) -> tuple[int, list[DeductionRecord]]:
        anchor = _deduction_anchor()
        async with self._transaction():
            result = await self.session.execute(
                update(Deduction)
                .where(
                    Deduction.employee_id == employee_id,
                    Deduction.status == "active",
                    anchor >= start,
                    anchor <= end,
                )
                .values(status="cancelled")
                .execution_options(synchronize_session=False)
            )
            rows = [_deduction_row(d) for d in deductions]
            self.session.add_all(rows)
            await self.session.flush()
            saved = [_deduction_record(row) for row in rows]
        return result.rowcount or 0, saved

    async def get_active_loan(self, employee_id: int) -> LoanRecord | None:
        result = await self.session.execute(
            select(Loan)
            .where(Loan.employee_id == employee_id, Loan.status == "active")
            .order_by(Loan.loan_date.desc())
            .limit(1)
        )
        loan = result.scalar_one_or_none()
        return _loan_record(loan) if loan else None

    async def close_loan(self, loan_id: int) -> None:
        async with self._transaction():
            await self.session.execute(
                update(Loan).where(Loan.id == loan_id).values(status="closed")
            )

    # === Payroll ledger ===

    async def get_payroll_entry(
        self, employee_id: int, start: date, end: date, for_update: bool = False
    ) -> PayrollRecord | None:
        query = select(PayrollEntry).where(
            PayrollEntry.employee_id == employee_id,
            PayrollEntry.period_start == start,
            PayrollEntry.period_end == end,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        entry = result.scalar_one_or_none()
        return _payroll_record(entry) if entry else None

    async def get_payroll_entry_by_id(self, entry_id: int) -> PayrollRecord | None:
        entry = await self.session.get(PayrollEntry, entry_id)
        return _payroll_record(entry) if entry else None

    async def get_payroll_entries(
        self, employee_ids: Sequence[int], start: date, end: date
    ) -> list[PayrollRecord]:
        if not employee_ids:
            return []
        result = await self.session.execute(
            select(PayrollEntry).where(
                PayrollEntry.employee_id.in_(list(employee_ids)),
                PayrollEntry.period_start == start,
                PayrollEntry.period_end == end,
            )
        )
        return [_payroll_record(e) for e in result.scalars().all()]

    async def find_paid_entries_covering(self, employee_id: int, day: date) -> list[PayrollRecord]:
        result = await self.session.execute(
            select(PayrollEntry).where(
                PayrollEntry.employee_id == employee_id,
                PayrollEntry.status == PayrollStatus.PAID.value,
                PayrollEntry.period_start <= day,
                PayrollEntry.period_end >= day,
            )
        )
        return [_payroll_record(e) for e in result.scalars().all()]

    async def get_paid_history(self, employee_id: int) -> list[PayrollRecord]:
        result = await self.session.execute(
            select(PayrollEntry)
            .where(
                PayrollEntry.employee_id == employee_id,
                PayrollEntry.status == PayrollStatus.PAID.value,
            )
            .order_by(PayrollEntry.period_start.desc())
        )
        return [_payroll_record(e) for e in result.scalars().all()]

    async def upsert_payroll_entry(self, entry: PayrollRecord) -> PayrollRecord:
        async with self._transaction():
            row: PayrollEntry | None = None
            if entry.id is not None:
                row = await self.session.get(PayrollEntry, entry.id)
            if row is None:
                result = await self.session.execute(
                    select(PayrollEntry).where(
                        PayrollEntry.employee_id == entry.employee_id,
                        PayrollEntry.period_start == entry.period_start,
                        PayrollEntry.period_end == entry.period_end,
                    )
                )
                row = result.scalar_one_or_none()
            if row is None:
                row = PayrollEntry()
                self.session.add(row)

            for column in _PAYROLL_COLUMNS:
                value = getattr(entry, column)
                if column == "status":
                    value = PayrollStatus(value).value
                setattr(row, column, value)

            await self.session.flush()
            record = _payroll_record(row)
        return record

    # === Bonus and settings ===

    async def get_bonus_withdrawals(self, employee_id: int) -> list[WithdrawalRecord]:
        result = await self.session.execute(
            select(BonusWithdrawal)
            .where(BonusWithdrawal.employee_id == employee_id)
            .order_by(BonusWithdrawal.withdrawal_date.desc())
        )
        return [
            WithdrawalRecord(
                id=w.id,
                employee_id=w.employee_id,
                amount=w.amount,
                date=w.withdrawal_date,
                status=w.status,
                notes=w.notes,
            )
            for w in result.scalars().all()
        ]

    async def get_setting(self, key: str) -> Any | None:
        setting = await self.session.get(Setting, key)
        return setting.value if setting else None

    async def save_setting(self, key: str, value: Any | None) -> None:
        async with self._transaction():
            setting = await self.session.get(Setting, key)
            if setting is None:
                setting = Setting(key=key)
                self.session.add(setting)
            setting.value = value
            setting.updated_at = datetime.now(timezone.utc)

    async def record_audit(
        self, action: str, actor: str | None, details: dict[str, Any] | None = None
    ) -> None:
        async with self._transaction():
            self.session.add(AuditEvent(action=action, actor=actor, details=details))


def _deduction_anchor():
    """Day that places a deduction inside a pay period.

    The period a deduction was written against wins over its issue date.
    """
    return func.coalesce(Deduction.period_start, Deduction.deduction_date)


# === Row to record mapping ===


def _deduction_row(deduction: DeductionRecord) -> Deduction:
    return Deduction(
        employee_id=deduction.employee_id,
        deduction_date=deduction.date,
        period_start=deduction.period_start,
        period_end=deduction.period_end,
        type=DeductionType(deduction.type).value,
        amount=deduction.amount,
        description=deduction.description,
        status=deduction.status,
        linked_advance_id=deduction.linked_advance_id,
    )


def _employee_record(row: Employee) -> EmployeeRecord:
    return EmployeeRecord(
        id=row.id,
        name=row.name,
        role=row.role,
        image=row.image,
        contact=row.contact,
        status=row.status,
        per_shift_amount=row.per_shift_amount,
        hourly_rate=row.hourly_rate,
        salary=row.salary,
        shift_start=row.shift_start,
        shift_end=row.shift_end,
        break_time=row.break_time or 0,
    )


def _timesheet_record(row: TimesheetEntry) -> TimesheetRecord:
    return TimesheetRecord(
        id=row.id,
        employee_id=row.employee_id,
        date=row.work_date,
        clock_in=row.clock_in,
        clock_out=row.clock_out,
        break_minutes=row.break_minutes or 0,
        day_type=DayType(row.day_type or DayType.WORK),
        shift_start=row.shift_start,
        shift_end=row.shift_end,
    )


def _deduction_record(row: Deduction) -> DeductionRecord:
    return DeductionRecord(
        id=row.id,
        employee_id=row.employee_id,
        amount=row.amount,
        type=DeductionType(row.type),
        date=row.deduction_date,
        period_start=row.period_start,
        period_end=row.period_end,
        description=row.description,
        status=row.status,
        linked_advance_id=row.linked_advance_id,
    )


def _loan_record(row: Loan) -> LoanRecord:
    return LoanRecord(
        id=row.id,
        employee_id=row.employee_id,
        amount=row.amount,
        date=row.loan_date,
        status=row.status,
    )


def _payroll_record(row: PayrollEntry) -> PayrollRecord:
    return PayrollRecord(
        id=row.id,
        employee_id=row.employee_id,
        period_start=row.period_start,
        period_end=row.period_end,
        gross_pay=row.gross_pay,
        overtime_pay=row.overtime_pay,
        deductions=row.deductions,
        advance_deductions=row.advance_deductions,
        loan_deductions=row.loan_deductions,
        net_pay=row.net_pay,
        status=PayrollStatus(row.status),
        paid_at=row.paid_at,
        total_billable_minutes=row.total_billable_minutes,
        total_regular_minutes=row.total_regular_minutes,
        total_overtime_minutes=row.total_overtime_minutes,
        working_days=row.working_days,
        hourly_rate=row.hourly_rate,
        per_shift_amount=row.per_shift_amount,
        calculated_at=row.calculated_at,
    )

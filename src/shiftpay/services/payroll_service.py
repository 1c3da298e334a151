"""Payroll service - orchestrates calculation and the period ledger."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, TypeVar

from shiftpay.calculators import PayCalculator, summarize_bonus, summarize_loan
from shiftpay.calculators.bonus import accrual_window
from shiftpay.calculators.types import (
    BonusSummary,
    DeductionType,
    LoanSummary,
    PayComputation,
    PayrollStatus,
    ShiftHours,
)
from shiftpay.config import Settings, get_settings
from shiftpay.errors import (
    DataSourceError,
    InvariantViolationError,
    NotFoundError,
    PayrollError,
    ValidationError,
)
from shiftpay.repositories.base import PayrollRepository, load_bonus_setting
from shiftpay.repositories.records import (
    DEFAULT_BONUS_SETTING,
    DeductionRecord,
    EmployeeRecord,
    PayrollRecord,
    TimesheetRecord,
)
from shiftpay.services.ledger_lock import KeyedLock
from shiftpay.services.period_service import validate_range
from shiftpay.services.state_machine import InvalidTransitionError, PayrollStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")

MISSING_CLOCK = "-"


@dataclass(frozen=True)
class BatchFailure:
    """One employee that could not be processed in a bulk operation."""

    employee_id: int
    code: str
    reason: str


@dataclass
class BatchResult:
    """Outcome of a bulk operation: successful entries plus per-employee failures."""

    entries: list[PayrollRecord] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    def fail(self, employee_id: int, exc: Exception) -> None:
        if isinstance(exc, PayrollError):
            self.failures.append(BatchFailure(employee_id, exc.code, exc.message))
        else:
            self.failures.append(BatchFailure(employee_id, "internal_error", str(exc)))


@dataclass(frozen=True)
class PayslipDay:
    """A timesheet day with its shift calculation merged in."""

    date: date
    clock_in: str
    clock_out: str
    break_minutes: int
    hours: ShiftHours


@dataclass(frozen=True)
class PayslipDetail:
    """Everything needed to render one payslip."""

    entry: PayrollRecord
    employee: EmployeeRecord
    timesheet: list[PayslipDay]
    advances: list[DeductionRecord]
    loans: list[DeductionRecord]
    loan_summary: LoanSummary | None
    bonus: BonusSummary


class PayrollService:
    """Service for computing and managing payroll entries.

    Operations:
    - recalculate: compute one employee's pay for a period and upsert it
    - recalculate_bulk: same for many employees, sharing store reads
    - mark_paid: final recalculation, then freeze (Pending -> Paid)
    - mark_unpaid: reopen a frozen entry (Paid -> Pending)
    - adjust: explicit recalculation of a Paid entry, audited
    - get_payslip_detail / get_history: read views over the ledger

    Every read-modify-write of a ledger row runs under a per
    (employee, period) lock from ``locks``; pass the application-wide
    registry so concurrent requests share it.
    """

    def __init__(
        self,
        repository: PayrollRepository,
        settings: Settings | None = None,
        locks: KeyedLock | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.calculator = PayCalculator.from_settings(self.settings)
        self.locks = locks if locks is not None else KeyedLock()

    async def load(self, collaborator: str, employee_id: Any, awaitable: Awaitable[T]) -> T:
        """Await a store call, wrapping failures as DataSourceError."""
        try:
            return await awaitable
        except PayrollError:
            raise
        except Exception as exc:
            raise DataSourceError(collaborator, employee_id, str(exc)) from exc

    async def require_employee(self, employee_id: int) -> EmployeeRecord:
        employee = await self.load(
            "employee", employee_id, self.repository.get_employee(employee_id)
        )
        if employee is None:
            raise NotFoundError("employee", employee_id)
        return employee

    # === Calculation ===

    async def recalculate(self, employee_id: int, start: date, end: date) -> PayrollRecord:
        """Compute and upsert one employee's entry for [start, end].

        A Paid entry is returned unchanged. The entry is only written when
        its figures differ from what is stored.
        """
        validate_range(start, end)
        employee = await self.require_employee(employee_id)
        async with self.locks.hold((employee_id, start, end)):
            return await self.recalculate_locked(employee, start, end)

    async def calculate(self, employee_id: int, start: date, end: date) -> PayrollRecord:
        """Preview entry point; identical to recalculate."""
        return await self.recalculate(employee_id, start, end)

    async def recalculate_locked(
        self,
        employee: EmployeeRecord,
        start: date,
        end: date,
        timesheets: Sequence[TimesheetRecord] | None = None,
        deductions: Sequence[DeductionRecord] | None = None,
    ) -> PayrollRecord:
        """Recalculate with the caller already holding the entry's key lock."""
        existing = await self.load(
            "payroll_entry",
            employee.id,
            self.repository.get_payroll_entry(employee.id, start, end, for_update=True),
        )
        if existing is not None and not PayrollStateMachine.can_calculate(existing.status):
            return existing

        computation = await self._compute(employee, start, end, timesheets, deductions)
        candidate = self._build_entry(employee.id, start, end, computation, existing)
        return await self._write_if_changed(candidate, existing)

    async def _compute(
        self,
        employee: EmployeeRecord,
        start: date,
        end: date,
        timesheets: Sequence[TimesheetRecord] | None = None,
        deductions: Sequence[DeductionRecord] | None = None,
    ) -> PayComputation:
        if timesheets is None:
            timesheets = await self.load(
                "timesheets",
                employee.id,
                self.repository.get_timesheet_entries(employee.id, start, end),
            )
        if deductions is None:
            deductions = await self.load(
                "deductions",
                employee.id,
                self.repository.get_deductions(employee.id, start, end),
            )
        return self.calculator.compute(employee, timesheets, deductions)

    def _build_entry(
        self,
        employee_id: int,
        start: date,
        end: date,
        computation: PayComputation,
        existing: PayrollRecord | None,
    ) -> PayrollRecord:
        return PayrollRecord(
            id=existing.id if existing else None,
            employee_id=employee_id,
            period_start=start,
            period_end=end,
            gross_pay=computation.gross_pay,
            overtime_pay=computation.overtime_pay,
            deductions=computation.deductions,
            advance_deductions=computation.advance_deductions,
            loan_deductions=computation.loan_deductions,
            net_pay=computation.net_pay,
            status=existing.status if existing else PayrollStatus.PENDING,
            paid_at=existing.paid_at if existing else None,
            total_billable_minutes=computation.total_billable_minutes,
            total_regular_minutes=computation.total_regular_minutes,
            total_overtime_minutes=computation.total_overtime_minutes,
            working_days=computation.working_days,
            hourly_rate=computation.hourly_rate,
            per_shift_amount=computation.per_shift_amount,
            calculated_at=datetime.now(timezone.utc),
        )

    async def _write_if_changed(
        self, candidate: PayrollRecord, existing: PayrollRecord | None
    ) -> PayrollRecord:
        if existing is not None and existing.financials() == candidate.financials():
            return existing
        saved = await self.load(
            "payroll_entry_write",
            candidate.employee_id,
            self.repository.upsert_payroll_entry(candidate),
        )
        logger.debug(
            "Payroll entry %s written for employee %s (%s..%s), net %s",
            saved.id,
            saved.employee_id,
            saved.period_start,
            saved.period_end,
            saved.net_pay,
        )
        return saved

    async def recalculate_bulk(
        self,
        employee_ids: Sequence[int],
        start: date,
        end: date,
        force: bool = False,
    ) -> BatchResult:
        """Recalculate many employees for one period.

        Employees, existing entries, timesheets and deductions are each read
        once for the whole batch. Existing entries are served as-is unless
        ``force`` is set; Paid entries are never recomputed. Failures are
        collected per employee.
        """
        validate_range(start, end)
        result = BatchResult()
        ids = list(dict.fromkeys(employee_ids))
        if not ids:
            return result

        employees = {
            e.id: e
            for e in await self.load("employees", None, self.repository.get_employees(ids))
        }
        existing = {
            e.employee_id: e
            for e in await self.load(
                "payroll_entries", None, self.repository.get_payroll_entries(ids, start, end)
            )
        }

        to_compute = [
            i
            for i in ids
            if i in employees
            and (i not in existing or (force and not existing[i].is_frozen))
        ]
        timesheets: dict[int, list[TimesheetRecord]] = defaultdict(list)
        deductions: dict[int, list[DeductionRecord]] = defaultdict(list)
        if to_compute:
            for entry in await self.load(
                "timesheets",
                None,
                self.repository.get_timesheet_entries_for_employees(to_compute, start, end),
            ):
                timesheets[entry.employee_id].append(entry)
            for deduction in await self.load(
                "deductions",
                None,
                self.repository.get_deductions_for_employees(to_compute, start, end),
            ):
                deductions[deduction.employee_id].append(deduction)

        computing = set(to_compute)
        for employee_id in ids:
            if employee_id not in employees:
                result.fail(employee_id, NotFoundError("employee", employee_id))
                continue
            if employee_id not in computing:
                result.entries.append(existing[employee_id])
                continue
            try:
                async with self.locks.hold((employee_id, start, end)):
                    entry = await self.recalculate_locked(
                        employees[employee_id],
                        start,
                        end,
                        timesheets[employee_id],
                        deductions[employee_id],
                    )
            except PayrollError as exc:
                logger.warning("Bulk recalculation failed for employee %s: %s", employee_id, exc)
                result.fail(employee_id, exc)
            except Exception as exc:
                logger.exception("Bulk recalculation crashed for employee %s", employee_id)
                result.fail(employee_id, exc)
            else:
                result.entries.append(entry)

        logger.info(
            "Bulk recalculation %s..%s: %d entries, %d failures",
            start,
            end,
            len(result.entries),
            len(result.failures),
        )
        return result

    # === Status transitions ===

    async def mark_paid(
        self, employee_ids: Sequence[int], start: date, end: date, actor: str | None = None
    ) -> BatchResult:
        """Recalculate one last time, then freeze each employee's entry."""
        validate_range(start, end)
        result = BatchResult()
        for employee_id in dict.fromkeys(employee_ids):
            try:
                entry = await self._mark_paid_one(employee_id, start, end, actor)
            except PayrollError as exc:
                logger.warning("Mark paid failed for employee %s: %s", employee_id, exc)
                result.fail(employee_id, exc)
            except Exception as exc:
                logger.exception("Mark paid crashed for employee %s", employee_id)
                result.fail(employee_id, exc)
            else:
                result.entries.append(entry)
        return result

    async def _mark_paid_one(
        self, employee_id: int, start: date, end: date, actor: str | None
    ) -> PayrollRecord:
        employee = await self.require_employee(employee_id)
        async with self.locks.hold((employee_id, start, end)):
            entry = await self.recalculate_locked(employee, start, end)
            if entry.is_frozen:
                return entry

            errors = PayrollStateMachine.validate_entry_for_transition(entry, PayrollStatus.PAID)
            if errors:
                raise InvalidTransitionError(
                    entry.status.value, PayrollStatus.PAID.value, "; ".join(errors)
                )

            paid = replace(entry, status=PayrollStatus.PAID, paid_at=datetime.now(timezone.utc))
            paid = await self.load(
                "payroll_entry_write", employee_id, self.repository.upsert_payroll_entry(paid)
            )

        await self._audit_status_change(
            "payroll_marked_paid",
            actor,
            {
                "employee_id": employee_id,
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "net_pay": str(paid.net_pay),
            },
        )
        logger.info("Payroll entry %s marked paid by %s", paid.id, actor or "unknown")
        return paid

    async def mark_unpaid(
        self, employee_ids: Sequence[int], start: date, end: date, actor: str | None = None
    ) -> BatchResult:
        """Reopen Paid entries; their figures are kept until the next recalculation."""
        validate_range(start, end)
        result = BatchResult()
        for employee_id in dict.fromkeys(employee_ids):
            try:
                entry = await self._mark_unpaid_one(employee_id, start, end, actor)
            except PayrollError as exc:
                logger.warning("Mark unpaid failed for employee %s: %s", employee_id, exc)
                result.fail(employee_id, exc)
            except Exception as exc:
                logger.exception("Mark unpaid crashed for employee %s", employee_id)
                result.fail(employee_id, exc)
            else:
                result.entries.append(entry)
        return result

    async def _mark_unpaid_one(
        self, employee_id: int, start: date, end: date, actor: str | None
    ) -> PayrollRecord:
        async with self.locks.hold((employee_id, start, end)):
            entry = await self.load(
                "payroll_entry",
                employee_id,
                self.repository.get_payroll_entry(employee_id, start, end, for_update=True),
            )
            if entry is None:
                raise NotFoundError(
                    "payroll entry",
                    f"employee {employee_id} for {start.isoformat()}..{end.isoformat()}",
                )
            PayrollStateMachine.validate_transition(entry.status, PayrollStatus.PENDING)

            reopened = replace(entry, status=PayrollStatus.PENDING, paid_at=None)
            reopened = await self.load(
                "payroll_entry_write", employee_id, self.repository.upsert_payroll_entry(reopened)
            )

        await self._audit_status_change(
            "payroll_marked_unpaid",
            actor,
            {
                "employee_id": employee_id,
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
            },
        )
        logger.info("Payroll entry %s reopened by %s", reopened.id, actor or "unknown")
        return reopened

    async def adjust(self, entry_id: int, reason: str, actor: str | None = None) -> PayrollRecord:
        """Recompute a Paid entry from current data without reopening it.

        Status and paid_at are kept. An audit event records the figures
        before and after, whether or not they changed.
        """
        if not reason or not reason.strip():
            raise ValidationError("An adjustment requires a reason")

        entry = await self._get_entry(entry_id)
        if not PayrollStateMachine.are_results_immutable(entry.status):
            raise ValidationError(
                f"Payroll entry {entry_id} is {entry.status.value}; only paid entries are adjusted"
            )

        employee = await self.require_employee(entry.employee_id)
        key = (entry.employee_id, entry.period_start, entry.period_end)
        async with self.locks.hold(key):
            before = await self.load(
                "payroll_entry",
                entry.employee_id,
                self.repository.get_payroll_entry(
                    entry.employee_id, entry.period_start, entry.period_end, for_update=True
                ),
            )
            if before is None or not before.is_frozen:
                raise ValidationError(f"Payroll entry {entry_id} is no longer paid")

            computation = await self._compute(employee, before.period_start, before.period_end)
            candidate = self._build_entry(
                before.employee_id, before.period_start, before.period_end, computation, before
            )
            after = await self._write_if_changed(candidate, before)

        await self.audit(
            "payroll_adjusted",
            actor,
            {
                "entry_id": after.id,
                "reason": reason,
                "changed": after is not before,
                "before": _figures(before),
                "after": _figures(after),
            },
        )
        logger.info("Paid payroll entry %s adjusted by %s: %s", after.id, actor or "unknown", reason)
        return after

    async def audit(self, action: str, actor: str | None, details: dict[str, Any]) -> None:
        await self.load(
            "audit_log",
            details.get("employee_id"),
            self.repository.record_audit(action, actor, details),
        )

    async def _audit_status_change(
        self, action: str, actor: str | None, details: dict[str, Any]
    ) -> None:
        # The status change is already committed at this point
        try:
            await self.audit(action, actor, details)
        except PayrollError:
            logger.exception(
                "Audit %s failed for employee %s", action, details.get("employee_id")
            )

    # === Reads ===

    async def _get_entry(self, entry_id: int) -> PayrollRecord:
        entry = await self.load(
            "payroll_entry", None, self.repository.get_payroll_entry_by_id(entry_id)
        )
        if entry is None:
            raise NotFoundError("payroll entry", entry_id)
        return entry

    async def get_history(self, employee_id: int) -> list[PayrollRecord]:
        """Paid entries for an employee, newest period first."""
        return await self.load(
            "payroll_history", employee_id, self.repository.get_paid_history(employee_id)
        )

    async def assert_timesheet_mutable(self, employee_id: int, day: date) -> None:
        """Raise InvariantViolationError if ``day`` falls in a Paid period."""
        paid = await self.load(
            "payroll_entries",
            employee_id,
            self.repository.find_paid_entries_covering(employee_id, day),
        )
        if paid:
            entry = paid[0]
            raise InvariantViolationError(
                f"Period already paid: timesheet for employee {employee_id} on "
                f"{day.isoformat()} belongs to {entry.period_start.isoformat()}.."
                f"{entry.period_end.isoformat()}"
            )

    async def get_payslip_detail(self, entry_id: int) -> PayslipDetail:
        """Entry plus everything a payslip shows.

        A Pending entry is recalculated first so the payslip reflects
        current data.
        """
        entry = await self._get_entry(entry_id)
        if entry.status != PayrollStatus.PAID:
            entry = await self.recalculate(entry.employee_id, entry.period_start, entry.period_end)

        employee_id = entry.employee_id
        employee = await self.require_employee(employee_id)
        timesheets = await self.load(
            "timesheets",
            employee_id,
            self.repository.get_timesheet_entries(employee_id, entry.period_start, entry.period_end),
        )
        deductions = await self.load(
            "deductions",
            employee_id,
            self.repository.get_deductions(employee_id, entry.period_start, entry.period_end),
        )

        days = sorted(
            (self._payslip_day(employee, t) for t in timesheets), key=lambda d: d.date
        )

        loan_summary = None
        loan = await self.load("loans", employee_id, self.repository.get_active_loan(employee_id))
        if loan is not None:
            all_loan_deductions = await self.load(
                "deductions", employee_id, self.repository.get_loan_deductions(employee_id)
            )
            loan_summary = summarize_loan(loan, all_loan_deductions, deductions, entry.period_start)

        return PayslipDetail(
            entry=entry,
            employee=employee,
            timesheet=days,
            advances=[d for d in deductions if d.type == DeductionType.ADVANCE],
            loans=[d for d in deductions if d.type == DeductionType.LOAN],
            loan_summary=loan_summary,
            bonus=await self.get_bonus_summary(employee_id, entry.period_end),
        )

    def _payslip_day(self, employee: EmployeeRecord, entry: TimesheetRecord) -> PayslipDay:
        processed = self.calculator.process_day(employee, entry)
        return PayslipDay(
            date=entry.date,
            clock_in=entry.effective_clock_in or MISSING_CLOCK,
            clock_out=entry.effective_clock_out or MISSING_CLOCK,
            break_minutes=entry.break_minutes,
            hours=processed.hours,
        )

    async def get_bonus_summary(self, employee_id: int, period_end: date) -> BonusSummary:
        """Year-to-date attendance bonus as of ``period_end``."""
        setting = (
            await self.load("settings", employee_id, load_bonus_setting(self.repository))
            or DEFAULT_BONUS_SETTING
        )
        window_start, window_end = accrual_window(setting, period_end)
        entries: list[TimesheetRecord] = []
        if window_start <= window_end:
            entries = await self.load(
                "timesheets",
                employee_id,
                self.repository.get_timesheet_entries(employee_id, window_start, window_end),
            )
        withdrawals = await self.load(
            "bonus_withdrawals", employee_id, self.repository.get_bonus_withdrawals(employee_id)
        )
        return summarize_bonus(entries, withdrawals, setting, period_end)


def _figures(entry: PayrollRecord) -> dict[str, str]:
    return {
        "gross_pay": str(entry.gross_pay),
        "overtime_pay": str(entry.overtime_pay),
        "deductions": str(entry.deductions),
        "net_pay": str(entry.net_pay),
    }

"""Integration tests for the SQLAlchemy repository.

The payroll service runs against a real database here, so these cover
the query filters and the ledger row round trip.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import event, func, select

from shiftpay.calculators.types import DeductionType, PayrollStatus
from shiftpay.models import AuditEvent, Deduction, Loan, PayrollEntry
from shiftpay.repositories.base import PERIOD_LOCK_KEY
from shiftpay.repositories.records import DeductionRecord
from shiftpay.repositories.sql import SqlPayrollRepository
from shiftpay.services.payroll_service import PayrollService

from ..conftest import PERIOD_END, PERIOD_START, make_settings
from .conftest import HOURLY_EMPLOYEE_ID, INACTIVE_EMPLOYEE_ID, PER_SHIFT_EMPLOYEE_ID

pytestmark = [pytest.mark.asyncio, pytest.mark.usefixtures("seeded_db")]


@pytest.fixture
def repository(db_session) -> SqlPayrollRepository:
    return SqlPayrollRepository(db_session)


@pytest.fixture
def service(repository) -> PayrollService:
    return PayrollService(repository, make_settings())


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


class RejectedWrite(Exception):
    pass


def reject_insert(model, predicate):
    """Make inserts of ``model`` rows matching ``predicate`` fail during flush."""

    def listener(mapper, connection, target):
        if predicate(target):
            raise RejectedWrite(f"insert rejected for {target!r}")

    event.listen(model, "before_insert", listener)
    return listener


class TestEmployeesAndTimesheets:
    """Test employee and timesheet reads."""

    async def test_employee_mapping(self, repository: SqlPayrollRepository):
        employee = await repository.get_employee(PER_SHIFT_EMPLOYEE_ID)

        assert employee.name == "Alice"
        assert employee.contact == "555-0101"
        assert employee.per_shift_amount == Decimal("500")
        assert employee.break_time == 60
        assert await repository.get_employee(404) is None

    async def test_active_employee_ids(self, repository: SqlPayrollRepository):
        assert await repository.list_employee_ids() == [PER_SHIFT_EMPLOYEE_ID, HOURLY_EMPLOYEE_ID]
        assert INACTIVE_EMPLOYEE_ID in await repository.list_employee_ids(None)

    async def test_timesheet_range_is_inclusive(self, repository: SqlPayrollRepository):
        entries = await repository.get_timesheet_entries(
            PER_SHIFT_EMPLOYEE_ID, date(2025, 12, 9), date(2025, 12, 11)
        )

        assert [e.date for e in entries] == [
            date(2025, 12, 9),
            date(2025, 12, 10),
            date(2025, 12, 11),
        ]
        assert entries[0].clock_in == "09:00"

    async def test_bulk_timesheets(self, repository: SqlPayrollRepository):
        entries = await repository.get_timesheet_entries_for_employees(
            [PER_SHIFT_EMPLOYEE_ID, HOURLY_EMPLOYEE_ID], PERIOD_START, PERIOD_END
        )

        assert len(entries) == 20
        assert await repository.get_timesheet_entries_for_employees([], PERIOD_START, PERIOD_END) == []


class TestDeductions:
    """Test deduction anchoring and replacement."""

    async def test_anchored_by_period_start_or_date(self, repository: SqlPayrollRepository):
        dated = await repository.add_deduction(
            DeductionRecord(
                employee_id=PER_SHIFT_EMPLOYEE_ID,
                amount=Decimal("100"),
                type=DeductionType.ADVANCE,
                date=date(2025, 12, 15),
            )
        )
        by_period = await repository.add_deduction(
            DeductionRecord(
                employee_id=PER_SHIFT_EMPLOYEE_ID,
                amount=Decimal("200"),
                type=DeductionType.LOAN,
                period_start=PERIOD_START,
                period_end=PERIOD_END,
            )
        )
        await repository.add_deduction(
            DeductionRecord(
                employee_id=PER_SHIFT_EMPLOYEE_ID,
                amount=Decimal("300"),
                type=DeductionType.PENALTY,
                date=date(2025, 12, 22),
            )
        )
        await repository.add_deduction(
            DeductionRecord(
                employee_id=PER_SHIFT_EMPLOYEE_ID,
                amount=Decimal("400"),
                type=DeductionType.ADVANCE,
                date=date(2025, 12, 15),
                period_start=date(2025, 12, 22),
                period_end=date(2026, 1, 4),
            )
        )

        found = await repository.get_deductions(PER_SHIFT_EMPLOYEE_ID, PERIOD_START, PERIOD_END)

        assert [d.id for d in found] == [dated.id, by_period.id]
        assert found[0].date == date(2025, 12, 15)
        assert found[1].type == DeductionType.LOAN

    async def test_replace_period_deductions(self, repository, session_factory):
        for amount in ("10", "20"):
            await repository.add_deduction(
                DeductionRecord(
                    employee_id=PER_SHIFT_EMPLOYEE_ID,
                    amount=Decimal(amount),
                    type=DeductionType.CUSTOM,
                    period_start=PERIOD_START,
                    period_end=PERIOD_END,
                )
            )

        cancelled, saved = await repository.replace_period_deductions(
            PER_SHIFT_EMPLOYEE_ID,
            PERIOD_START,
            PERIOD_END,
            [
                DeductionRecord(
                    employee_id=PER_SHIFT_EMPLOYEE_ID,
                    amount=Decimal("30"),
                    type=DeductionType.PENALTY,
                    period_start=PERIOD_START,
                    period_end=PERIOD_END,
                )
            ],
        )

        assert cancelled == 2
        assert [d.amount for d in saved] == [Decimal("30")]
        found = await repository.get_deductions(PER_SHIFT_EMPLOYEE_ID, PERIOD_START, PERIOD_END)
        assert [d.id for d in found] == [saved[0].id]
        async with session_factory() as session:
            statuses = (await session.scalars(select(Deduction.status).order_by(Deduction.id))).all()
        assert statuses == ["cancelled", "cancelled", "active"]

    async def test_failed_replace_keeps_old_deductions(self, repository, session_factory):
        """Cancellation and inserts commit together or not at all."""
        kept = await repository.add_deduction(
            DeductionRecord(
                employee_id=PER_SHIFT_EMPLOYEE_ID,
                amount=Decimal("10"),
                type=DeductionType.CUSTOM,
                period_start=PERIOD_START,
                period_end=PERIOD_END,
            )
        )
        listener = reject_insert(Deduction, lambda row: row.amount == Decimal("666"))
        try:
            with pytest.raises(RejectedWrite):
                await repository.replace_period_deductions(
                    PER_SHIFT_EMPLOYEE_ID,
                    PERIOD_START,
                    PERIOD_END,
                    [
                        DeductionRecord(
                            employee_id=PER_SHIFT_EMPLOYEE_ID,
                            amount=Decimal(amount),
                            type=DeductionType.PENALTY,
                            period_start=PERIOD_START,
                            period_end=PERIOD_END,
                        )
                        for amount in ("5", "666")
                    ],
                )
        finally:
            event.remove(Deduction, "before_insert", listener)

        found = await repository.get_deductions(PER_SHIFT_EMPLOYEE_ID, PERIOD_START, PERIOD_END)
        assert [d.id for d in found] == [kept.id]
        assert await count_rows(session_factory, Deduction) == 1


class TestLoans:
    async def test_active_loan_and_close(self, repository, session_factory):
        async with session_factory() as session:
            session.add(
                Loan(
                    employee_id=PER_SHIFT_EMPLOYEE_ID,
                    amount=Decimal("3000"),
                    loan_date=date(2025, 11, 1),
                )
            )
            await session.commit()

        loan = await repository.get_active_loan(PER_SHIFT_EMPLOYEE_ID)
        assert loan.amount == Decimal("3000")
        assert loan.date == date(2025, 11, 1)

        await repository.close_loan(loan.id)

        assert await repository.get_active_loan(PER_SHIFT_EMPLOYEE_ID) is None


class TestLedger:
    """Test the payroll ledger through the service."""

    async def test_recalculate_persists_one_row(self, service: PayrollService, session_factory):
        first = await service.recalculate(PER_SHIFT_EMPLOYEE_ID, PERIOD_START, PERIOD_END)
        second = await service.recalculate(PER_SHIFT_EMPLOYEE_ID, PERIOD_START, PERIOD_END)

        assert second.id == first.id
        assert first.net_pay == Decimal("5000")
        assert await count_rows(session_factory, PayrollEntry) == 1

    async def test_row_round_trip(self, service: PayrollService, session_factory):
        entry = await service.recalculate(HOURLY_EMPLOYEE_ID, PERIOD_START, PERIOD_END)

        async with session_factory() as session:
            reread = await SqlPayrollRepository(session).get_payroll_entry_by_id(entry.id)

        assert reread.financials() == entry.financials()
        assert reread.status == PayrollStatus.PENDING
        assert reread.hourly_rate == Decimal("100")
        assert reread.per_shift_amount is None

    async def test_mark_paid_and_history(self, service: PayrollService, session_factory):
        result = await service.mark_paid(
            [PER_SHIFT_EMPLOYEE_ID], PERIOD_START, PERIOD_END, "admin"
        )

        async with session_factory() as session:
            repository = SqlPayrollRepository(session)
            history = await repository.get_paid_history(PER_SHIFT_EMPLOYEE_ID)
            covering = await repository.find_paid_entries_covering(
                PER_SHIFT_EMPLOYEE_ID, date(2025, 12, 12)
            )

        assert result.failures == []
        assert [e.id for e in history] == [result.entries[0].id]
        assert history[0].status == PayrollStatus.PAID
        assert history[0].paid_at is not None
        assert len(covering) == 1
        assert await count_rows(session_factory, AuditEvent) == 1

    async def test_paid_entry_frozen_against_new_deductions(self, service, repository):
        paid = (await service.mark_paid([PER_SHIFT_EMPLOYEE_ID], PERIOD_START, PERIOD_END)).entries[0]
        await repository.add_deduction(
            DeductionRecord(
                employee_id=PER_SHIFT_EMPLOYEE_ID,
                amount=Decimal("700"),
                type=DeductionType.PENALTY,
                date=date(2025, 12, 10),
            )
        )

        again = await service.recalculate(PER_SHIFT_EMPLOYEE_ID, PERIOD_START, PERIOD_END)

        assert again.net_pay == paid.net_pay
        assert again.status == PayrollStatus.PAID

    async def test_bulk_recalculation(self, service: PayrollService):
        result = await service.recalculate_bulk(
            [PER_SHIFT_EMPLOYEE_ID, HOURLY_EMPLOYEE_ID], PERIOD_START, PERIOD_END
        )

        by_id = {e.employee_id: e for e in result.entries}
        assert by_id[PER_SHIFT_EMPLOYEE_ID].net_pay == Decimal("5000")
        assert by_id[HOURLY_EMPLOYEE_ID].net_pay == Decimal("8000")

    async def test_failed_write_does_not_poison_batch(self, service: PayrollService, session_factory):
        """One employee's failed flush is rolled back; the next employee still gets written."""
        listener = reject_insert(
            PayrollEntry, lambda row: row.employee_id == PER_SHIFT_EMPLOYEE_ID
        )
        try:
            result = await service.recalculate_bulk(
                [PER_SHIFT_EMPLOYEE_ID, HOURLY_EMPLOYEE_ID], PERIOD_START, PERIOD_END
            )
        finally:
            event.remove(PayrollEntry, "before_insert", listener)

        assert [e.employee_id for e in result.entries] == [HOURLY_EMPLOYEE_ID]
        assert [(f.employee_id, f.code) for f in result.failures] == [
            (PER_SHIFT_EMPLOYEE_ID, "data_source_unavailable")
        ]
        async with session_factory() as session:
            stored = (await session.scalars(select(PayrollEntry.employee_id))).all()
        assert stored == [HOURLY_EMPLOYEE_ID]


class TestSettings:
    async def test_json_setting_round_trip(self, repository: SqlPayrollRepository):
        value = {"start": "2025-12-01", "end": "2025-12-31", "locked_by": "admin"}

        await repository.save_setting(PERIOD_LOCK_KEY, value)
        assert await repository.get_setting(PERIOD_LOCK_KEY) == value

        await repository.save_setting(PERIOD_LOCK_KEY, None)
        assert await repository.get_setting(PERIOD_LOCK_KEY) is None

    async def test_missing_setting(self, repository: SqlPayrollRepository):
        assert await repository.get_setting("nope") is None

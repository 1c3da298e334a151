"""Pytest fixtures for shiftpay tests."""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from shiftpay.calculators.types import DayType
from shiftpay.config import Settings
from shiftpay.repositories.memory import InMemoryPayrollRepository
from shiftpay.repositories.records import EmployeeRecord, TimesheetRecord
from shiftpay.services.payroll_service import PayrollService

PERIOD_START = date(2025, 12, 8)
PERIOD_END = date(2025, 12, 21)


def make_settings(**overrides) -> Settings:
    """Settings with the production defaults and no environment lookups."""
    values = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "engine_version": "test",
        "host": "127.0.0.1",
        "port": 8000,
        "debug": False,
        "log_level": "DEBUG",
        "ot_cutoff": "18:00",
        "dinner_start": "20:00",
        "dinner_end": "21:00",
        "overtime_multiplier": Decimal("1.5"),
        "period_anchor": date(2025, 12, 8),
        "period_length_days": 14,
    }
    values.update(overrides)
    return Settings(**values)


def make_employee(employee_id: int = 1, **overrides) -> EmployeeRecord:
    values = {
        "id": employee_id,
        "name": f"Employee {employee_id}",
        "role": "Technician",
        "shift_start": "09:00",
        "shift_end": "18:00",
        "break_time": 60,
        "per_shift_amount": Decimal("500"),
    }
    values.update(overrides)
    return EmployeeRecord(**values)


def seed_days(
    repository: InMemoryPayrollRepository,
    employee_id: int,
    first_day: date,
    count: int,
    clock_in: str | None = "09:00",
    clock_out: str | None = "18:00",
    break_minutes: int = 60,
    day_type: DayType = DayType.WORK,
) -> list[TimesheetRecord]:
    """Seed ``count`` consecutive days of identical clock times."""
    return [
        repository.add_timesheet(
            TimesheetRecord(
                employee_id=employee_id,
                date=first_day + timedelta(days=offset),
                clock_in=clock_in,
                clock_out=clock_out,
                break_minutes=break_minutes,
                day_type=day_type,
            )
        )
        for offset in range(count)
    ]


class CountingRepository(InMemoryPayrollRepository):
    """In-memory repository that counts store calls.

    Ledger reads yield to the event loop so concurrent callers interleave.
    """

    def __init__(self) -> None:
        super().__init__()
        self.calls: Counter[str] = Counter()

    async def get_employee(self, employee_id):
        self.calls["get_employee"] += 1
        return await super().get_employee(employee_id)

    async def get_timesheet_entries(self, employee_id, start, end):
        self.calls["get_timesheet_entries"] += 1
        return await super().get_timesheet_entries(employee_id, start, end)

    async def get_timesheet_entries_for_employees(self, employee_ids, start, end):
        self.calls["get_timesheet_entries_for_employees"] += 1
        return await super().get_timesheet_entries_for_employees(employee_ids, start, end)

    async def get_deductions(self, employee_id, start, end):
        self.calls["get_deductions"] += 1
        return await super().get_deductions(employee_id, start, end)

    async def get_deductions_for_employees(self, employee_ids, start, end):
        self.calls["get_deductions_for_employees"] += 1
        return await super().get_deductions_for_employees(employee_ids, start, end)

    async def get_payroll_entry(self, employee_id, start, end, for_update=False):
        self.calls["get_payroll_entry"] += 1
        await asyncio.sleep(0)
        return await super().get_payroll_entry(employee_id, start, end, for_update)

    async def upsert_payroll_entry(self, entry):
        self.calls["upsert_payroll_entry"] += 1
        await asyncio.sleep(0)
        return await super().upsert_payroll_entry(entry)

    @property
    def store_calls(self) -> int:
        return sum(self.calls.values())


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def repository() -> CountingRepository:
    return CountingRepository()


@pytest_asyncio.fixture
async def service(repository: CountingRepository, settings: Settings) -> PayrollService:
    return PayrollService(repository, settings)

"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shiftpay.config import Settings, get_settings
from shiftpay.database import init_db
from shiftpay.repositories.base import PayrollRepository
from shiftpay.repositories.sql import SqlPayrollRepository
from shiftpay.services.ledger_lock import KeyedLock
from shiftpay.services.payroll_service import PayrollService
from shiftpay.services.period_service import PeriodService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_repository(db: DbSession) -> PayrollRepository:
    """Repository dependency; overridden in tests."""
    return SqlPayrollRepository(db)


def get_ledger_locks(request: Request) -> KeyedLock:
    return request.app.state.ledger_locks


# Type aliases for cleaner dependency injection
Repository = Annotated[PayrollRepository, Depends(get_repository)]
AppSettings = Annotated[Settings, Depends(get_settings)]
LedgerLocks = Annotated[KeyedLock, Depends(get_ledger_locks)]


def get_payroll_service(
    repository: Repository, settings: AppSettings, locks: LedgerLocks
) -> PayrollService:
    return PayrollService(repository, settings, locks)


def get_period_service(repository: Repository, settings: AppSettings) -> PeriodService:
    return PeriodService(repository, settings)


Payroll = Annotated[PayrollService, Depends(get_payroll_service)]
Periods = Annotated[PeriodService, Depends(get_period_service)]

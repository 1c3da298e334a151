"""Integration test fixtures with a real (SQLite) database."""

from collections.abc import AsyncGenerator
from datetime import timedelta
from decimal import Decimal

import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shiftpay.api.app import create_app
from shiftpay.api.dependencies import get_db_session
from shiftpay.config import get_settings
from shiftpay.database import create_schema
from shiftpay.models import Employee, TimesheetEntry

from ..conftest import PERIOD_START, make_settings

# Fixture ids
PER_SHIFT_EMPLOYEE_ID = 1
HOURLY_EMPLOYEE_ID = 2
INACTIVE_EMPLOYEE_ID = 3


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Engine over a fresh database file with the schema created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shiftpay.db'}", echo=False)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for integration tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def seeded_db(session_factory) -> None:
    """Two active employees with ten standard days in the first period, one inactive."""
    async with session_factory() as session:
        session.add_all(
            [
                Employee(
                    id=PER_SHIFT_EMPLOYEE_ID,
                    name="Alice",
                    role="Technician",
                    contact="555-0101",
                    per_shift_amount=Decimal("500"),
                    shift_start="09:00",
                    shift_end="18:00",
                    break_time=60,
                ),
                Employee(
                    id=HOURLY_EMPLOYEE_ID,
                    name="Bob",
                    hourly_rate=Decimal("100"),
                    shift_start="09:00",
                    shift_end="18:00",
                    break_time=60,
                ),
                Employee(
                    id=INACTIVE_EMPLOYEE_ID,
                    name="Carol",
                    status="Inactive",
                    per_shift_amount=Decimal("400"),
                ),
            ]
        )
        await session.flush()
        for employee_id in (PER_SHIFT_EMPLOYEE_ID, HOURLY_EMPLOYEE_ID):
            session.add_all(
                TimesheetEntry(
                    employee_id=employee_id,
                    work_date=PERIOD_START + timedelta(days=offset),
                    clock_in="09:00",
                    clock_out="18:00",
                    break_minutes=60,
                )
                for offset in range(10)
            )
        await session.commit()


@pytest_asyncio.fixture
async def app(session_factory, seeded_db) -> FastAPI:
    """Application wired to the test database."""
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_settings] = lambda: make_settings()
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

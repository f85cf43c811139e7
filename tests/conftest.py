"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ph_payroll.config import Settings
from ph_payroll.models import (
    Base,
    Employee,
    EmployeeCompensation,
    PayrollCycle,
    PayrollPeriod,
    WorkSchedule,
)
from ph_payroll.seeds import seed_contribution_tables

# In-memory SQLite shared by every session of a test through one connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    """Settings for tests; one worker because every session shares a connection."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="1.0.0-test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        max_concurrency=1,
    )


@pytest.fixture
async def contribution_tables(session: AsyncSession) -> list[str]:
    """Seed the 2025 SSS, PhilHealth, Pag-IBIG and BIR tables."""
    seeded = await seed_contribution_tables(session)
    await session.commit()
    return seeded


@pytest.fixture
async def work_schedule(session: AsyncSession) -> WorkSchedule:
    """Day shift 09:00-18:00 with a one-hour lunch at noon."""
    schedule = WorkSchedule(
        name="Regular Day Shift",
        start_time=time(9, 0),
        end_time=time(18, 0),
        break_start=time(12, 0),
        break_minutes=60,
        grace_minutes=0,
        rest_days=[5, 6],
    )
    session.add(schedule)
    await session.commit()
    return schedule


@pytest.fixture
async def monthly_cycle(session: AsyncSession) -> PayrollCycle:
    cycle = PayrollCycle(name="Monthly", cycle_type="monthly")
    session.add(cycle)
    await session.commit()
    return cycle


@pytest.fixture
async def semi_monthly_cycle(session: AsyncSession) -> PayrollCycle:
    cycle = PayrollCycle(name="Semi-Monthly", cycle_type="semi_monthly")
    session.add(cycle)
    await session.commit()
    return cycle


@pytest.fixture
async def employee(
    session: AsyncSession, work_schedule: WorkSchedule, monthly_cycle: PayrollCycle
) -> Employee:
    """Monthly-paid employee earning 30,000 from 2025."""
    employee = Employee(
        employee_number="EMP-0001",
        first_name="Maria",
        last_name="Santos",
        department_name="Finance",
        position_name="Accountant",
        status="active",
        work_schedule_id=work_schedule.work_schedule_id,
        payroll_cycle_id=monthly_cycle.payroll_cycle_id,
    )
    session.add(employee)
    await session.flush()
    session.add(
        EmployeeCompensation(
            employee_id=employee.employee_id,
            basic_pay=Decimal("30000.00"),
            pay_type="monthly",
            effective_from=date(2025, 1, 1),
        )
    )
    await session.commit()
    return employee


@pytest.fixture
async def open_period(session: AsyncSession, monthly_cycle: PayrollCycle) -> PayrollPeriod:
    """January 2025 on the monthly cycle, open for computation."""
    period = PayrollPeriod(
        payroll_cycle_id=monthly_cycle.payroll_cycle_id,
        name="January 2025",
        period_type="regular",
        year=2025,
        period_number=1,
        cutoff_start=date(2025, 1, 1),
        cutoff_end=date(2025, 1, 31),
        pay_date=date(2025, 1, 30),
        status="open",
    )
    session.add(period)
    await session.commit()
    return period

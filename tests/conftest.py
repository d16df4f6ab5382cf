"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
Seed helpers commit so that batch jobs, which open their own sessions,
see the data.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Iterable, Optional

import bcrypt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ems.common.constants import UserRole
from ems.database import Base, get_db, get_session_factory
from ems.main import create_app

# Import ALL model modules so metadata.create_all sees every table
import ems.auth.models  # noqa: F401
import ems.leave.models  # noqa: F401
import ems.personnel.models  # noqa: F401

from ems.auth.models import UserAccount
from ems.auth.service import create_session
from ems.leave.balance import get_balance
from ems.leave.models import LeaveBalance
from ems.personnel.models import PersonnelCompany, PersonnelEmployee, TimecardEntry

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import INET, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

TEST_PASSWORD = "correct horse battery"
_TEST_PASSWORD_HASH = bcrypt.hashpw(TEST_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Clear slowapi counters so login limits do not leak between tests."""
    from ems.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def _override_get_session_factory() -> async_sessionmaker[AsyncSession]:
    return TestSessionFactory


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependencies overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_session_factory] = _override_get_session_factory
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

async def seed_employee(
    db: AsyncSession,
    emp_id: int,
    *,
    emp_code: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "Employee",
    company_name: Optional[str] = None,
) -> PersonnelEmployee:
    company_id = None
    if company_name:
        company = PersonnelCompany(id=emp_id, company_name=company_name)
        db.add(company)
        await db.flush()
        company_id = company.id
    employee = PersonnelEmployee(
        id=emp_id,
        emp_code=emp_code or f"E{emp_id:04d}",
        first_name=first_name,
        last_name=last_name,
        email=f"emp{emp_id}@example.com",
        company_id=company_id,
    )
    db.add(employee)
    await db.commit()
    return employee


async def seed_account(
    db: AsyncSession,
    emp_id: int,
    *,
    role: UserRole = UserRole.employee,
    email: Optional[str] = None,
    is_active: bool = True,
) -> UserAccount:
    account = UserAccount(
        emp_id=emp_id,
        email=email or f"user{emp_id}@example.com",
        password_hash=_TEST_PASSWORD_HASH,
        role=role,
        first_name="Test",
        last_name=f"User{emp_id}",
        is_active=is_active,
    )
    db.add(account)
    await db.commit()
    return account


async def auth_headers_for(db: AsyncSession, account: UserAccount) -> dict[str, str]:
    """Bearer headers backed by a live session row."""
    token, _ = await create_session(db, account, "127.0.0.1", "pytest")
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


async def seed_balance(db: AsyncSession, emp_id: int, **counters: int) -> LeaveBalance:
    """Insert a balance row; ``counters`` are column values like ``casual_available=10``."""
    balance = LeaveBalance(emp_id=emp_id, **counters)
    db.add(balance)
    await db.commit()
    return balance


async def seed_timecards(
    db: AsyncSession,
    emp_id: int,
    days: Iterable[date],
    *,
    present: Optional[bool] = True,
    clock_in: bool = True,
) -> None:
    for day in days:
        stamp = datetime(day.year, day.month, day.day, 9, 0, 0)
        db.add(
            TimecardEntry(
                emp_id=emp_id,
                att_date=day,
                weekday=day.isoweekday(),
                check_in=stamp,
                check_out=stamp + timedelta(hours=8),
                clock_in=stamp if clock_in else None,
                clock_out=stamp + timedelta(hours=8) if clock_in else None,
                present=present,
                full_attendance=bool(present),
            )
        )
    await db.commit()


def weekdays_in_month(year: int, month: int, count: int) -> list[date]:
    """First *count* Monday-Friday dates of the month."""
    days: list[date] = []
    day = date(year, month, 1)
    while len(days) < count:
        if day.weekday() < 5:
            days.append(day)
        day += timedelta(days=1)
    return days


def weekends_in_month(year: int, month: int) -> list[date]:
    days: list[date] = []
    day = date(year, month, 1)
    while day.month == month:
        if day.weekday() >= 5:
            days.append(day)
        day += timedelta(days=1)
    return days


async def fetch_balance(emp_id: int) -> Optional[LeaveBalance]:
    """Read a balance row through a fresh session."""
    async with TestSessionFactory() as session:
        return await get_balance(session, emp_id)


# ── Account fixtures ────────────────────────────────────────────────

EMPLOYEE_ID = 101
OTHER_EMPLOYEE_ID = 102
HR_ID = 900


@pytest.fixture
async def employee_account(db) -> UserAccount:
    await seed_employee(db, EMPLOYEE_ID, company_name="Head Office")
    return await seed_account(db, EMPLOYEE_ID, role=UserRole.employee)


@pytest.fixture
async def hr_account(db) -> UserAccount:
    await seed_employee(db, HR_ID)
    return await seed_account(db, HR_ID, role=UserRole.hr, email="hr@example.com")


@pytest.fixture
async def employee_headers(db, employee_account) -> dict[str, str]:
    return await auth_headers_for(db, employee_account)


@pytest.fixture
async def hr_headers(db, hr_account) -> dict[str, str]:
    return await auth_headers_for(db, hr_account)

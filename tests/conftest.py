"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hr_portal.common.constants import UserRole
from hr_portal.config import settings
from hr_portal.database import Base, get_db
from hr_portal.main import create_app

# Import ALL model modules so every table is registered on Base.metadata
import hr_portal.auth.models  # noqa: F401
import hr_portal.common.audit  # noqa: F401
import hr_portal.core_hr.models  # noqa: F401
import hr_portal.holidays.models  # noqa: F401
import hr_portal.leave.models  # noqa: F401
import hr_portal.notifications.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
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


# SAVEPOINT support: let SQLAlchemy emit BEGIN instead of the driver
@event.listens_for(engine.sync_engine, "connect")
def _sqlite_connect(dbapi_conn, connection_record):
    dbapi_conn.isolation_level = None


@event.listens_for(engine.sync_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


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
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hr_portal.common.rate_limit import limiter

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


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
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

def _make_department(
    *,
    name: str = "Secretariat",
    code: str = "SEC",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        code=code,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Ana",
    last_name: str = "Popescu",
    department_id: Optional[uuid.UUID] = None,
    position: str = "Inspector",
    is_active: bool = True,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{code}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{code.lower()}@institutie.ro",
        department_id=department_id,
        position=position,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


@pytest.fixture
async def test_department(db) -> dict:
    """Insert a test department and return its data dict."""
    from hr_portal.core_hr.models import Department

    data = _make_department()
    db.add(Department(**data))
    await db.flush()
    return data


@pytest.fixture
async def test_employee(db, test_department) -> dict:
    """Insert an active employee in test_department."""
    from hr_portal.core_hr.models import Employee

    data = _make_employee(department_id=test_department["id"])
    db.add(Employee(**data))
    await db.flush()
    return data


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}


@pytest.fixture
async def auth_headers(test_employee) -> dict[str, str]:
    """Bearer auth headers for test_employee with the employee role."""
    return auth_headers_for(test_employee["id"])


# ── Org seeding (directory + roles) ─────────────────────────────────

async def _seed_department(db: AsyncSession, *, name: str = "Secretariat", code: str = "SEC"):
    from hr_portal.core_hr.models import Department

    dept = Department(**_make_department(name=name, code=code))
    db.add(dept)
    await db.flush()
    return dept


async def _seed_employee(
    db: AsyncSession,
    *,
    department_id: Optional[uuid.UUID] = None,
    first_name: str = "Ana",
    last_name: str = "Popescu",
    roles: tuple[UserRole, ...] = (),
    is_active: bool = True,
):
    from hr_portal.auth.models import RoleAssignment
    from hr_portal.core_hr.models import Employee

    emp = Employee(**_make_employee(
        first_name=first_name,
        last_name=last_name,
        department_id=department_id,
        is_active=is_active,
    ))
    db.add(emp)
    await db.flush()
    for role in roles:
        db.add(RoleAssignment(
            id=uuid.uuid4(),
            employee_id=emp.id,
            role=role,
            is_active=True,
            assigned_at=datetime.now(timezone.utc),
        ))
    await db.flush()
    return emp


class Org:
    """A department with an applicant, a colleague and every approver role."""

    def __init__(self, department, employee, colleague, director, head, hr):
        self.department = department
        self.employee = employee
        self.colleague = colleague
        self.director = director
        self.head = head
        self.hr = hr


async def _seed_org(db: AsyncSession) -> Org:
    dept = await _seed_department(db)
    return Org(
        department=dept,
        employee=await _seed_employee(db, department_id=dept.id),
        colleague=await _seed_employee(
            db, department_id=dept.id, first_name="Ioana", last_name="Ionescu",
        ),
        director=await _seed_employee(
            db, first_name="Mihai", last_name="Dumitrescu", roles=(UserRole.director,),
        ),
        head=await _seed_employee(
            db, department_id=dept.id, first_name="Elena", last_name="Stan",
            roles=(UserRole.department_head,),
        ),
        hr=await _seed_employee(
            db, first_name="Radu", last_name="Marin", roles=(UserRole.hr_admin,),
        ),
    )


@pytest.fixture
async def org(db) -> Org:
    return await _seed_org(db)

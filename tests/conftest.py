"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ["SMTP_HOST"] = ""

import uuid
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from wardstaff.auth.service import Actor, create_session, hash_password
from wardstaff.common.constants import UserRole
from wardstaff.database import Base, get_db
from wardstaff.main import create_app
from wardstaff.notifications.mailer import MailResult

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import wardstaff.auth.models  # noqa: F401
import wardstaff.staff.models  # noqa: F401
import wardstaff.attendance.models  # noqa: F401
import wardstaff.leave.models  # noqa: F401
import wardstaff.disciplinary.models  # noqa: F401
import wardstaff.notifications.models  # noqa: F401
import wardstaff.common.audit  # noqa: F401

from wardstaff.staff.models import Department, StaffMember

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


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


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

DEFAULT_PASSWORD = "Ward#Pass2024"
# PBKDF2 is slow; every factory-made account shares one hash.
_DEFAULT_HASH = hash_password(DEFAULT_PASSWORD)


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
    from wardstaff.common.rate_limit import limiter

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


# ── Mail capture ────────────────────────────────────────────────────

@pytest.fixture
def sent_mail():
    """Patch the mailer used by notifications; yields the AsyncMock."""

    async def _fake_send(to, subject, html_body):
        return MailResult(success=True, recipient=to, message_id="<test@ward>")

    with patch(
        "wardstaff.notifications.service.send_mail",
        new=AsyncMock(side_effect=_fake_send),
    ) as mock:
        yield mock


# ── Model factories ─────────────────────────────────────────────────

async def make_department(
    db: AsyncSession,
    *,
    name: str = "Public Health",
    code: str = "PH",
    is_active: bool = True,
) -> Department:
    dept = Department(id=uuid.uuid4(), name=name, code=code, is_active=is_active)
    db.add(dept)
    await db.commit()
    return dept


async def make_staff(
    db: AsyncSession,
    *,
    role: UserRole = UserRole.staff,
    first_name: str = "Test",
    last_name: str = "Staff",
    email: Optional[str] = None,
    employee_id: Optional[str] = None,
    department_id: Optional[uuid.UUID] = None,
    supervisor_id: Optional[uuid.UUID] = None,
    position: str = "Clerk Officer",
    is_active: bool = True,
) -> StaffMember:
    """Insert a committed staff member whose password is ``DEFAULT_PASSWORD``."""
    suffix = uuid.uuid4().hex[:6]
    staff = StaffMember(
        id=uuid.uuid4(),
        employee_id=employee_id or f"WS-{suffix.upper()}",
        email=email or f"{role.value}.{suffix}@ward.local",
        password_hash=_DEFAULT_HASH,
        role=role,
        first_name=first_name,
        last_name=last_name,
        department_id=department_id,
        supervisor_id=supervisor_id,
        position=position,
        date_of_joining=date(2023, 1, 9),
        is_active=is_active,
    )
    db.add(staff)
    await db.commit()
    return staff


# ── Auth helpers ────────────────────────────────────────────────────

def actor_for(staff: StaffMember) -> Actor:
    return Actor.for_staff(staff)


async def auth_headers_for(db: AsyncSession, staff: StaffMember) -> dict[str, str]:
    """Return Bearer headers backed by a persisted session."""
    token, _ = await create_session(db, staff, "127.0.0.1", "pytest")
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def department(db) -> Department:
    return await make_department(db)


@pytest.fixture
async def admin(db) -> StaffMember:
    return await make_staff(db, role=UserRole.admin, first_name="Ada", last_name="Admin")


@pytest.fixture
async def clerk(db) -> StaffMember:
    return await make_staff(db, role=UserRole.clerk, first_name="Cleo", last_name="Clerk")


@pytest.fixture
async def supervisor(db, department) -> StaffMember:
    return await make_staff(
        db, role=UserRole.supervisor, first_name="Sam", last_name="Supervisor",
        department_id=department.id, position="Ward Supervisor",
    )


@pytest.fixture
async def staff_member(db, department, supervisor) -> StaffMember:
    """A staff member reporting to ``supervisor``."""
    return await make_staff(
        db, first_name="Jane", last_name="Wanjiru",
        department_id=department.id, supervisor_id=supervisor.id,
    )


@pytest.fixture
async def outsider(db) -> StaffMember:
    """A staff member outside the supervisor's team."""
    return await make_staff(db, first_name="Otis", last_name="Outsider")


@pytest.fixture
async def admin_headers(db, admin) -> dict[str, str]:
    return await auth_headers_for(db, admin)


@pytest.fixture
async def clerk_headers(db, clerk) -> dict[str, str]:
    return await auth_headers_for(db, clerk)


@pytest.fixture
async def supervisor_headers(db, supervisor) -> dict[str, str]:
    return await auth_headers_for(db, supervisor)


@pytest.fixture
async def staff_headers(db, staff_member) -> dict[str, str]:
    return await auth_headers_for(db, staff_member)

"""Common utilities tests — filters, sorting, search, pagination, audit
helpers and the problem+json error format.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.common.audit import AuditTrail, create_audit_entry, jsonable
from wardstaff.common.constants import LeaveStatus, UserRole
from wardstaff.common.exceptions import ConflictError, InvalidTransitionError, NotFoundException
from wardstaff.common.filters import _get_column, apply_filters, apply_search, apply_sorting
from wardstaff.common.pagination import PaginationParams, build_meta, paginate
from wardstaff.config import settings
from wardstaff.database import engine_options
from wardstaff.staff.models import StaffMember
from tests.conftest import make_staff


async def _seed_named(db: AsyncSession, *names: str) -> list[StaffMember]:
    return [await make_staff(db, first_name=n) for n in names]


# ═════════════════════════════════════════════════════════════════════
# Filters
# ═════════════════════════════════════════════════════════════════════


class TestApplyFilters:

    async def test_filter_by_equality(self, db: AsyncSession):
        await _seed_named(db, "Alice", "Bob")

        query = apply_filters(select(StaffMember), StaffMember, {"first_name": "Alice"})
        rows = (await db.execute(query)).scalars().all()
        assert [s.first_name for s in rows] == ["Alice"]

    async def test_none_values_skipped(self, db: AsyncSession):
        await _seed_named(db, "Alice")

        query = apply_filters(
            select(StaffMember), StaffMember, {"first_name": None, "is_active": True},
        )
        assert len((await db.execute(query)).scalars().all()) == 1

    async def test_enum_equality(self, db: AsyncSession):
        await make_staff(db, role=UserRole.clerk)
        await make_staff(db, role=UserRole.staff)

        query = apply_filters(select(StaffMember), StaffMember, {"role": UserRole.clerk})
        rows = (await db.execute(query)).scalars().all()
        assert [s.role for s in rows] == [UserRole.clerk]

    async def test_ilike_suffix(self, db: AsyncSession):
        await _seed_named(db, "Alexander", "Bobby")

        query = apply_filters(select(StaffMember), StaffMember, {"first_name__ilike": "ALEX"})
        rows = (await db.execute(query)).scalars().all()
        assert [s.first_name for s in rows] == ["Alexander"]

    async def test_from_to_range(self, db: AsyncSession):
        for name, joined in (("E1", date(2022, 1, 1)), ("E2", date(2023, 6, 1)), ("E3", date(2024, 1, 1))):
            staff = await make_staff(db, first_name=name)
            staff.date_of_joining = joined
        await db.flush()

        query = apply_filters(select(StaffMember), StaffMember, {
            "date_of_joining__from": date(2023, 1, 1),
            "date_of_joining__to": date(2023, 12, 31),
        })
        rows = (await db.execute(query)).scalars().all()
        assert [s.first_name for s in rows] == ["E2"]

    async def test_in_suffix(self, db: AsyncSession):
        await _seed_named(db, "Alice", "Bob", "Charlie")

        query = apply_filters(
            select(StaffMember), StaffMember, {"first_name__in": ["Alice", "Charlie"]},
        )
        rows = (await db.execute(query)).scalars().all()
        assert {s.first_name for s in rows} == {"Alice", "Charlie"}

    async def test_unknown_column_ignored(self, db: AsyncSession):
        await _seed_named(db, "Alice")

        query = apply_filters(select(StaffMember), StaffMember, {"nonexistent_field": "x"})
        assert len((await db.execute(query)).scalars().all()) == 1


class TestApplySearch:

    async def test_matches_any_column(self, db: AsyncSession):
        alice, _ = await _seed_named(db, "Alice", "Bob")

        query = apply_search(
            select(StaffMember), StaffMember, alice.employee_id.lower(),
            ["first_name", "employee_id"],
        )
        rows = (await db.execute(query)).scalars().all()
        assert [s.id for s in rows] == [alice.id]

    def test_blank_search_is_noop(self):
        query = select(StaffMember)
        assert apply_search(query, StaffMember, "   ", ["first_name"]) is query


class TestApplySorting:

    async def test_ascending(self, db: AsyncSession):
        await _seed_named(db, "Charlie", "Alice", "Bob")

        query = apply_sorting(select(StaffMember), StaffMember, "first_name")
        rows = (await db.execute(query)).scalars().all()
        assert [s.first_name for s in rows] == ["Alice", "Bob", "Charlie"]

    async def test_descending(self, db: AsyncSession):
        await _seed_named(db, "Charlie", "Alice", "Bob")

        query = apply_sorting(select(StaffMember), StaffMember, "-first_name")
        rows = (await db.execute(query)).scalars().all()
        assert [s.first_name for s in rows] == ["Charlie", "Bob", "Alice"]

    def test_none_is_noop(self):
        query = select(StaffMember)
        assert apply_sorting(query, StaffMember, None) is query

    def test_unknown_column_is_noop(self):
        query = select(StaffMember)
        assert apply_sorting(query, StaffMember, "-password_salt") is query


class TestGetColumn:

    def test_existing_column(self):
        assert _get_column(StaffMember, "first_name") is not None

    def test_property_is_not_a_column(self):
        assert _get_column(StaffMember, "full_name") is None

    def test_missing_column(self):
        assert _get_column(StaffMember, "totally_fake_column") is None


# ═════════════════════════════════════════════════════════════════════
# Pagination
# ═════════════════════════════════════════════════════════════════════


class TestPagination:

    def test_meta_for_middle_page(self):
        meta = build_meta(PaginationParams(page=2, page_size=10, sort=None), 35)
        assert meta.total_pages == 4
        assert meta.has_next is True
        assert meta.has_prev is True

    def test_meta_for_empty_result(self):
        meta = build_meta(PaginationParams(page=1, page_size=10, sort=None), 0)
        assert meta.total_pages == 0
        assert meta.has_next is False

    async def test_paginate_with_sort(self, db: AsyncSession):
        await _seed_named(db, *(f"P{i}" for i in range(5)))

        params = PaginationParams(page=1, page_size=3, sort="-first_name")
        result = await paginate(db, select(StaffMember), params, model=StaffMember)
        assert [s.first_name for s in result.data] == ["P4", "P3", "P2"]
        assert result.meta.total == 5

    async def test_paginate_last_page(self, db: AsyncSession):
        await _seed_named(db, *(f"Q{i}" for i in range(5)))

        params = PaginationParams(page=2, page_size=3, sort=None)
        result = await paginate(db, select(StaffMember), params, model=StaffMember)
        assert len(result.data) == 2
        assert result.meta.has_prev is True
        assert result.meta.has_next is False

    async def test_page_size_over_max_is_422(self, client, clerk_headers):
        resp = await client.get("/api/v1/staff?page_size=1000", headers=clerk_headers)
        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")
        assert "page_size" in resp.json()["errors"]


# ═════════════════════════════════════════════════════════════════════
# Audit
# ═════════════════════════════════════════════════════════════════════


class _Colour(enum.Enum):
    red = "red"


class TestAudit:

    def test_jsonable_coerces_values(self):
        ident = uuid.uuid4()
        out = jsonable({
            "id": ident,
            "day": date(2024, 5, 6),
            "at": datetime(2024, 5, 6, 8, 30, tzinfo=timezone.utc),
            "hours": Decimal("8.50"),
            "status": LeaveStatus.approved,
            "colour": _Colour.red,
            "note": "kept",
        })
        assert out == {
            "id": str(ident),
            "day": "2024-05-06",
            "at": "2024-05-06T08:30:00+00:00",
            "hours": 8.5,
            "status": "approved",
            "colour": "red",
            "note": "kept",
        }

    def test_jsonable_none(self):
        assert jsonable(None) is None

    async def test_create_audit_entry(self, db: AsyncSession, admin):
        target = uuid.uuid4()
        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_application",
            entity_id=target,
            actor_id=admin.id,
            old_values={"status": LeaveStatus.pending},
            new_values={"status": LeaveStatus.approved},
        )
        entry = (
            await db.execute(select(AuditTrail).where(AuditTrail.entity_id == target))
        ).scalars().one()
        assert entry.actor_id == admin.id
        assert entry.old_values == {"status": "pending"}
        assert entry.new_values == {"status": "approved"}


# ═════════════════════════════════════════════════════════════════════
# Error format
# ═════════════════════════════════════════════════════════════════════


class TestExceptions:

    def test_not_found_detail(self):
        exc = NotFoundException("StaffMember", "abc")
        assert exc.status_code == 404
        assert "abc" in exc.detail

    def test_conflict_is_409(self):
        assert ConflictError("email", "a@ward.local").status_code == 409

    def test_invalid_transition_carries_status(self):
        exc = InvalidTransitionError("LeaveApplication", "approved", "pending")
        assert exc.status_code == 409
        assert exc.errors == {"status": ["Current status is 'approved'."]}

    async def test_problem_json_shape(self, client, clerk_headers):
        resp = await client.get(f"/api/v1/staff/{uuid.uuid4()}", headers=clerk_headers)
        body = resp.json()
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")
        assert set(body) >= {"type", "title", "status", "detail", "instance"}
        assert body["type"].endswith("/not-found")
        assert body["instance"].startswith("/api/v1/staff/")

    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"


# ═════════════════════════════════════════════════════════════════════
# Engine options
# ═════════════════════════════════════════════════════════════════════


class TestEngineOptions:

    def test_postgres_gets_pool_settings(self):
        options = engine_options("postgresql+asyncpg://ward:pw@db:5432/ward_staff")
        assert options["pool_size"] == settings.DB_POOL_SIZE
        assert options["max_overflow"] == settings.DB_MAX_OVERFLOW
        assert options["pool_pre_ping"] is True
        assert options["echo"] is settings.DB_ECHO

    def test_sqlite_keeps_default_pool(self):
        options = engine_options("sqlite+aiosqlite:///./ward.db")
        assert "pool_size" not in options
        assert "max_overflow" not in options

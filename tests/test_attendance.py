"""Attendance module tests — marking, overwrite semantics, bulk marking,
hours calculation, statistics, visibility and API endpoints.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from wardstaff.attendance.models import AttendanceRecord
from wardstaff.attendance.schemas import (
    AttendanceMarkRequest,
    BulkAttendanceEntry,
    BulkAttendanceRequest,
)
from wardstaff.attendance.service import AttendanceService, compute_hours_worked
from wardstaff.common.constants import AttendanceStatus
from wardstaff.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from wardstaff.common.pagination import PaginationParams
from tests.conftest import TestSessionFactory, actor_for

DAY = date(2024, 5, 6)


def _mark(staff_id, status=AttendanceStatus.present, on=DAY, **kw) -> AttendanceMarkRequest:
    return AttendanceMarkRequest(staff_id=staff_id, date=on, status=status, **kw)


def _at(hour: int, minute: int = 0, on: date = DAY) -> datetime:
    return datetime(on.year, on.month, on.day, hour, minute, tzinfo=timezone.utc)


def _page() -> PaginationParams:
    return PaginationParams(page=1, page_size=50, sort=None)


# ═════════════════════════════════════════════════════════════════════
# 1. compute_hours_worked — pure logic
# ═════════════════════════════════════════════════════════════════════


class TestHoursWorked:

    def test_full_shift(self):
        assert compute_hours_worked(_at(8), _at(17)) == Decimal("9.00")

    def test_rounds_to_two_places(self):
        assert compute_hours_worked(_at(8), _at(8, 20)) == Decimal("0.33")

    def test_missing_checkout(self):
        assert compute_hours_worked(_at(8), None) is None

    def test_naive_treated_as_utc(self):
        naive = datetime(2024, 5, 6, 8, 0)
        assert compute_hours_worked(naive, _at(10)) == Decimal("2.00")


# ═════════════════════════════════════════════════════════════════════
# 2. Marking
# ═════════════════════════════════════════════════════════════════════


class TestMark:

    async def test_mark_creates_record(self, db, staff_member, clerk):
        out = await AttendanceService.mark(
            db, actor_for(clerk),
            _mark(staff_member.id, check_in_time=_at(8), check_out_time=_at(16, 30)),
        )
        assert out.status == AttendanceStatus.present
        assert out.hours_worked == Decimal("8.50")
        assert out.marked_by == clerk.id
        assert out.staff.id == staff_member.id

    async def test_remark_overwrites_single_record(self, db, staff_member, clerk):
        """Present then absent for the same day leaves one record, absent."""
        actor = actor_for(clerk)
        first = await AttendanceService.mark(db, actor, _mark(staff_member.id))
        second = await AttendanceService.mark(
            db, actor, _mark(staff_member.id, AttendanceStatus.absent),
        )
        await db.commit()

        assert second.id == first.id
        async with TestSessionFactory() as fresh:
            rows = (await fresh.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.staff_id == staff_member.id,
                    AttendanceRecord.date == DAY,
                )
            )).scalars().all()
        assert len(rows) == 1
        assert rows[0].status == AttendanceStatus.absent

    async def test_remark_keeps_recorded_times(self, db, staff_member, clerk):
        actor = actor_for(clerk)
        await AttendanceService.mark(
            db, actor, _mark(staff_member.id, check_in_time=_at(8), check_out_time=_at(12)),
        )
        out = await AttendanceService.mark(db, actor, _mark(staff_member.id, AttendanceStatus.late))
        assert out.status == AttendanceStatus.late
        assert out.check_in_time.hour == 8
        assert out.check_out_time.hour == 12
        assert out.hours_worked == Decimal("4.00")

    async def test_remark_with_checkout_only_recomputes_hours(self, db, staff_member, clerk):
        actor = actor_for(clerk)
        await AttendanceService.mark(db, actor, _mark(staff_member.id, check_in_time=_at(8)))
        out = await AttendanceService.mark(
            db, actor, _mark(staff_member.id, check_out_time=_at(17, 15)),
        )
        assert out.check_in_time.hour == 8
        assert out.hours_worked == Decimal("9.25")

    async def test_checkout_before_recorded_checkin_rejected(self, db, staff_member, clerk):
        actor = actor_for(clerk)
        await AttendanceService.mark(db, actor, _mark(staff_member.id, check_in_time=_at(14)))
        with pytest.raises(ValidationException) as exc:
            await AttendanceService.mark(
                db, actor, _mark(staff_member.id, check_out_time=_at(9)),
            )
        assert "check_out_time" in exc.value.errors

    async def test_future_date_rejected(self, db, staff_member, clerk):
        with pytest.raises(ValidationException):
            await AttendanceService.mark(
                db, actor_for(clerk), _mark(staff_member.id, on=date.today() + timedelta(days=1)),
            )

    async def test_checkout_before_checkin_rejected(self, db, staff_member, clerk):
        with pytest.raises(ValidationException) as exc:
            await AttendanceService.mark(
                db, actor_for(clerk),
                _mark(staff_member.id, check_in_time=_at(17), check_out_time=_at(8)),
            )
        assert "check_out_time" in exc.value.errors

    async def test_unknown_staff(self, db, clerk):
        with pytest.raises(NotFoundException):
            await AttendanceService.mark(db, actor_for(clerk), _mark(uuid.uuid4()))

    async def test_supervisor_marks_direct_report(self, db, staff_member, supervisor):
        out = await AttendanceService.mark(db, actor_for(supervisor), _mark(staff_member.id))
        assert out.marked_by == supervisor.id

    async def test_supervisor_cannot_mark_outside_team(self, db, outsider, supervisor):
        with pytest.raises(ForbiddenException):
            await AttendanceService.mark(db, actor_for(supervisor), _mark(outsider.id))


# ═════════════════════════════════════════════════════════════════════
# 3. Bulk marking
# ═════════════════════════════════════════════════════════════════════


class TestBulkMark:

    async def test_best_effort(self, db, staff_member, outsider, clerk):
        """Failed entries are reported; the rest are saved."""
        unknown = uuid.uuid4()
        result = await AttendanceService.mark_bulk(
            db, actor_for(clerk),
            BulkAttendanceRequest(
                date=DAY,
                entries=[
                    BulkAttendanceEntry(staff_id=staff_member.id, status=AttendanceStatus.present),
                    BulkAttendanceEntry(staff_id=unknown, status=AttendanceStatus.present),
                    BulkAttendanceEntry(
                        staff_id=outsider.id, status=AttendanceStatus.late,
                        check_in_time=_at(12), check_out_time=_at(9),
                    ),
                ],
            ),
        )
        await db.commit()

        assert result.success == 1
        assert result.failed == 2
        assert {e.staff_id for e in result.errors} == {unknown, outsider.id}

        async with TestSessionFactory() as fresh:
            count = (await fresh.execute(
                select(func.count()).select_from(AttendanceRecord)
            )).scalar()
        assert count == 1

    async def test_bulk_overwrites_existing(self, db, staff_member, clerk):
        actor = actor_for(clerk)
        await AttendanceService.mark(db, actor, _mark(staff_member.id))
        result = await AttendanceService.mark_bulk(
            db, actor,
            BulkAttendanceRequest(
                date=DAY,
                entries=[BulkAttendanceEntry(staff_id=staff_member.id, status=AttendanceStatus.leave)],
            ),
        )
        assert result.success == 1
        assert result.results[0].status == AttendanceStatus.leave

    async def test_bulk_keeps_recorded_times(self, db, staff_member, clerk):
        actor = actor_for(clerk)
        await AttendanceService.mark(
            db, actor, _mark(staff_member.id, check_in_time=_at(8), check_out_time=_at(17)),
        )
        result = await AttendanceService.mark_bulk(
            db, actor,
            BulkAttendanceRequest(
                date=DAY,
                entries=[BulkAttendanceEntry(staff_id=staff_member.id, status=AttendanceStatus.late)],
            ),
        )
        out = result.results[0]
        assert out.status == AttendanceStatus.late
        assert out.check_in_time is not None
        assert out.hours_worked == Decimal("9.00")


# ═════════════════════════════════════════════════════════════════════
# 4. Listing and statistics
# ═════════════════════════════════════════════════════════════════════


class TestReadAttendance:

    async def test_staff_sees_only_own(self, db, staff_member, outsider, clerk):
        actor = actor_for(clerk)
        await AttendanceService.mark(db, actor, _mark(staff_member.id))
        await AttendanceService.mark(db, actor, _mark(outsider.id))

        page = await AttendanceService.list_records(db, actor_for(staff_member), _page())
        assert page.meta.total == 1
        assert page.data[0].staff_id == staff_member.id

        with pytest.raises(ForbiddenException):
            await AttendanceService.list_records(
                db, actor_for(staff_member), _page(), staff_id=outsider.id,
            )

    async def test_supervisor_sees_team_and_self(self, db, staff_member, outsider, supervisor, clerk):
        actor = actor_for(clerk)
        for sid in (staff_member.id, outsider.id, supervisor.id):
            await AttendanceService.mark(db, actor, _mark(sid))

        page = await AttendanceService.list_records(db, actor_for(supervisor), _page())
        assert {r.staff_id for r in page.data} == {staff_member.id, supervisor.id}

    async def test_stats(self, db, staff_member, clerk):
        actor = actor_for(clerk)
        await AttendanceService.mark(
            db, actor, _mark(staff_member.id, check_in_time=_at(8), check_out_time=_at(16)),
        )
        day2 = DAY + timedelta(days=1)
        await AttendanceService.mark(
            db, actor,
            _mark(staff_member.id, on=day2, check_in_time=_at(8, on=day2), check_out_time=_at(18, on=day2)),
        )
        await AttendanceService.mark(
            db, actor, _mark(staff_member.id, AttendanceStatus.absent, on=DAY + timedelta(days=2)),
        )
        await AttendanceService.mark(
            db, actor, _mark(staff_member.id, AttendanceStatus.late, on=DAY + timedelta(days=3)),
        )

        stats = await AttendanceService.stats(
            db, actor, from_date=DAY, to_date=DAY + timedelta(days=6), staff_id=staff_member.id,
        )
        assert stats.total_records == 4
        assert stats.counts["present"] == 2
        assert stats.counts["absent"] == 1
        assert stats.attendance_percentage == 50.0
        assert stats.average_hours == 9.0
        assert len(stats.daily) == 4

    async def test_stats_empty_range(self, db, clerk):
        stats = await AttendanceService.stats(db, actor_for(clerk), from_date=DAY, to_date=DAY)
        assert stats.total_records == 0
        assert stats.attendance_percentage == 0
        assert stats.average_hours == 0

    async def test_stats_bad_range(self, db, clerk):
        with pytest.raises(ValidationException):
            await AttendanceService.stats(
                db, actor_for(clerk), from_date=DAY, to_date=DAY - timedelta(days=1),
            )


# ═════════════════════════════════════════════════════════════════════
# 5. API endpoints
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceAPI:

    async def test_mark_and_remark(self, client, clerk_headers, staff_member):
        for status in ("present", "absent"):
            resp = await client.post(
                "/api/v1/attendance",
                json={"staff_id": str(staff_member.id), "date": DAY.isoformat(), "status": status},
                headers=clerk_headers,
            )
            assert resp.status_code == 200, resp.text

        resp = await client.get(
            "/api/v1/attendance",
            params={"date": DAY.isoformat(), "staff_id": str(staff_member.id)},
            headers=clerk_headers,
        )
        body = resp.json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["status"] == "absent"

    async def test_off_duty_value(self, client, clerk_headers, staff_member):
        resp = await client.post(
            "/api/v1/attendance",
            json={"staff_id": str(staff_member.id), "date": DAY.isoformat(), "status": "off-duty"},
            headers=clerk_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "off-duty"

    async def test_staff_cannot_mark(self, client, staff_headers, staff_member):
        resp = await client.post(
            "/api/v1/attendance",
            json={"staff_id": str(staff_member.id), "date": DAY.isoformat(), "status": "present"},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    async def test_supervisor_cannot_bulk(self, client, supervisor_headers, staff_member):
        resp = await client.post(
            "/api/v1/attendance/bulk",
            json={"date": DAY.isoformat(), "entries": [{"staff_id": str(staff_member.id), "status": "present"}]},
            headers=supervisor_headers,
        )
        assert resp.status_code == 403

    async def test_bulk_endpoint(self, client, clerk_headers, staff_member):
        resp = await client.post(
            "/api/v1/attendance/bulk",
            json={
                "date": DAY.isoformat(),
                "entries": [
                    {"staff_id": str(staff_member.id), "status": "present"},
                    {"staff_id": str(uuid.uuid4()), "status": "present"},
                ],
            },
            headers=clerk_headers,
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["success"] == 1
        assert body["failed"] == 1

    async def test_unauthenticated(self, client):
        resp = await client.get("/api/v1/attendance")
        assert resp.status_code == 401

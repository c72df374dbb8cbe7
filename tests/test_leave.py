"""Leave module tests — day counting, apply/decide/cancel workflow,
balance aggregation, visibility and API endpoints.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from wardstaff.common.constants import LEAVE_ALLOCATIONS, LeaveStatus, LeaveType, UserRole
from wardstaff.common.exceptions import (
    ForbiddenException,
    InvalidTransitionError,
    ValidationException,
)
from wardstaff.leave.models import LeaveApplication
from wardstaff.leave.schemas import LeaveApplyRequest
from wardstaff.leave.service import LeaveService, count_leave_days
from tests.conftest import TestSessionFactory, actor_for, make_staff


def _request(
    start: date = date(2024, 6, 10),
    end: date = date(2024, 6, 12),
    leave_type: LeaveType = LeaveType.annual,
    reason: str = "Family visit",
) -> LeaveApplyRequest:
    return LeaveApplyRequest(leave_type=leave_type, start_date=start, end_date=end, reason=reason)


def _balance_item(balance, leave_type: LeaveType):
    return next(b for b in balance.balances if b.leave_type == leave_type)


# ═════════════════════════════════════════════════════════════════════
# 1. count_leave_days — pure logic
# ═════════════════════════════════════════════════════════════════════


class TestCountLeaveDays:

    def test_inclusive_range(self):
        assert count_leave_days(date(2024, 6, 10), date(2024, 6, 12)) == 3

    def test_single_day(self):
        assert count_leave_days(date(2024, 6, 10), date(2024, 6, 10)) == 1

    def test_spans_month_boundary(self):
        assert count_leave_days(date(2024, 1, 30), date(2024, 2, 2)) == 4

    def test_leap_february(self):
        assert count_leave_days(date(2024, 2, 1), date(2024, 2, 29)) == 29


# ═════════════════════════════════════════════════════════════════════
# 2. Apply
# ═════════════════════════════════════════════════════════════════════


class TestApply:

    async def test_apply_persists_day_count(self, db, staff_member):
        """Annual 2024-06-10..2024-06-12 is stored as 3 pending days."""
        out = await LeaveService.apply(db, actor_for(staff_member), _request())
        await db.commit()

        assert out.number_of_days == 3
        assert out.status == LeaveStatus.pending
        assert out.staff_id == staff_member.id

        async with TestSessionFactory() as fresh:
            row = await fresh.get(LeaveApplication, out.id)
            assert row.number_of_days == (row.end_date - row.start_date).days + 1

    async def test_end_before_start_rejected(self, db, staff_member):
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply(
                db, actor_for(staff_member), _request(date(2024, 6, 12), date(2024, 6, 10)),
            )
        assert "end_date" in exc.value.errors

    async def test_blank_reason_rejected(self, db, staff_member):
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply(db, actor_for(staff_member), _request(reason="   "))
        assert "reason" in exc.value.errors

    async def test_overlapping_application_accepted(self, db, staff_member):
        actor = actor_for(staff_member)
        await LeaveService.apply(db, actor, _request())
        second = await LeaveService.apply(
            db, actor,
            _request(date(2024, 6, 11), date(2024, 6, 11), leave_type=LeaveType.sick, reason="Clinic"),
        )
        assert second.status == LeaveStatus.pending
        assert second.number_of_days == 1

    async def test_supervisor_notified(self, db, staff_member, supervisor, sent_mail):
        await LeaveService.apply(db, actor_for(staff_member), _request())
        sent_mail.assert_awaited_once()
        to, subject, body = sent_mail.await_args.args
        assert to == supervisor.email
        assert staff_member.first_name in body

    async def test_no_supervisor_no_mail(self, db, outsider, sent_mail):
        await LeaveService.apply(db, actor_for(outsider), _request())
        sent_mail.assert_not_awaited()


# ═════════════════════════════════════════════════════════════════════
# 3. Decide
# ═════════════════════════════════════════════════════════════════════


class TestDecide:

    async def test_supervisor_approves_direct_report(self, db, staff_member, supervisor):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        out = await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(supervisor))

        assert out.status == LeaveStatus.approved
        assert out.approved_by == supervisor.id
        assert out.decided_at is not None

    async def test_reject_records_reason(self, db, staff_member, clerk):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        out = await LeaveService.decide(
            db, leave.id, LeaveStatus.rejected, actor_for(clerk),
            rejection_reason="Short staffed that week",
        )
        assert out.status == LeaveStatus.rejected
        assert out.rejection_reason == "Short staffed that week"

    @pytest.mark.parametrize("first", [LeaveStatus.approved, LeaveStatus.rejected])
    async def test_decided_leave_cannot_be_decided_again(self, db, staff_member, clerk, first):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        await LeaveService.decide(db, leave.id, first, actor_for(clerk))
        with pytest.raises(InvalidTransitionError):
            await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(clerk))

    async def test_cancelled_leave_cannot_be_decided(self, db, staff_member, clerk):
        actor = actor_for(staff_member)
        leave = await LeaveService.apply(db, actor, _request())
        await LeaveService.cancel(db, leave.id, actor)
        with pytest.raises(InvalidTransitionError):
            await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(clerk))

    async def test_supervisor_cannot_decide_outside_team(self, db, outsider, supervisor):
        leave = await LeaveService.apply(db, actor_for(outsider), _request())
        with pytest.raises(ForbiddenException):
            await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(supervisor))

    async def test_staff_cannot_decide(self, db, staff_member, outsider):
        leave = await LeaveService.apply(db, actor_for(outsider), _request())
        with pytest.raises(ForbiddenException):
            await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(staff_member))

    async def test_nobody_decides_own_leave(self, db, admin):
        leave = await LeaveService.apply(db, actor_for(admin), _request())
        with pytest.raises(ForbiddenException):
            await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(admin))

    async def test_invalid_decision_value(self, db, staff_member, clerk):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        with pytest.raises(ValidationException):
            await LeaveService.decide(db, leave.id, LeaveStatus.cancelled, actor_for(clerk))

    async def test_applicant_notified_of_decision(self, db, staff_member, clerk, sent_mail):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        sent_mail.reset_mock()
        await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(clerk))
        to, subject, _ = sent_mail.await_args.args
        assert to == staff_member.email
        assert "approved" in subject.lower()


# ═════════════════════════════════════════════════════════════════════
# 4. Cancel
# ═════════════════════════════════════════════════════════════════════


class TestCancel:

    async def test_owner_cancels_pending(self, db, staff_member):
        actor = actor_for(staff_member)
        leave = await LeaveService.apply(db, actor, _request())
        out = await LeaveService.cancel(db, leave.id, actor)
        assert out.status == LeaveStatus.cancelled
        assert out.cancelled_at is not None

    async def test_non_owner_cannot_cancel(self, db, staff_member, admin):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        with pytest.raises(ForbiddenException):
            await LeaveService.cancel(db, leave.id, actor_for(admin))

    async def test_approved_leave_cannot_be_cancelled(self, db, staff_member, clerk):
        actor = actor_for(staff_member)
        leave = await LeaveService.apply(db, actor, _request())
        await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(clerk))
        with pytest.raises(InvalidTransitionError):
            await LeaveService.cancel(db, leave.id, actor)


# ═════════════════════════════════════════════════════════════════════
# 5. Balance
# ═════════════════════════════════════════════════════════════════════


class TestBalance:

    async def test_fresh_balance_equals_allocation(self, db, staff_member):
        balance = await LeaveService.balance(db, staff_member.id, 2024)
        for item in balance.balances:
            assert item.used == 0
            assert item.remaining == LEAVE_ALLOCATIONS[item.leave_type]
            assert item.exceeded is False

    async def test_approval_reduces_remaining(self, db, staff_member, clerk):
        """Approving a 3-day annual leave drops remaining by 3."""
        before = _balance_item(await LeaveService.balance(db, staff_member.id, 2024), LeaveType.annual)

        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        pending = _balance_item(await LeaveService.balance(db, staff_member.id, 2024), LeaveType.annual)
        assert pending.remaining == before.remaining
        assert pending.pending == 3

        await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(clerk))
        after = _balance_item(await LeaveService.balance(db, staff_member.id, 2024), LeaveType.annual)
        assert after.remaining == before.remaining - 3
        assert after.used == 3

    async def test_rejected_leave_not_counted(self, db, staff_member, clerk):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        await LeaveService.decide(db, leave.id, LeaveStatus.rejected, actor_for(clerk))
        item = _balance_item(await LeaveService.balance(db, staff_member.id, 2024), LeaveType.annual)
        assert item.used == 0
        assert item.pending == 0

    async def test_exceeded_flag(self, db, staff_member, clerk):
        """Usage beyond the allocation goes negative and is flagged."""
        leave = await LeaveService.apply(
            db, actor_for(staff_member),
            _request(date(2024, 3, 1), date(2024, 3, 10), leave_type=LeaveType.compassionate),
        )
        await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(clerk))
        item = _balance_item(
            await LeaveService.balance(db, staff_member.id, 2024), LeaveType.compassionate,
        )
        assert item.remaining == LEAVE_ALLOCATIONS[LeaveType.compassionate] - 10
        assert item.remaining < 0
        assert item.exceeded is True

    async def test_other_year_not_counted(self, db, staff_member, clerk):
        leave = await LeaveService.apply(db, actor_for(staff_member), _request())
        await LeaveService.decide(db, leave.id, LeaveStatus.approved, actor_for(clerk))
        item = _balance_item(await LeaveService.balance(db, staff_member.id, 2025), LeaveType.annual)
        assert item.used == 0

    async def test_staff_cannot_view_other_balance(self, db, staff_member, outsider):
        with pytest.raises(ForbiddenException):
            await LeaveService.balance_for(db, actor_for(staff_member), outsider.id, 2024)


# ═════════════════════════════════════════════════════════════════════
# 6. Visibility and stats
# ═════════════════════════════════════════════════════════════════════


class TestVisibility:

    async def test_get_own_and_forbidden_for_others(self, db, staff_member, outsider):
        leave = await LeaveService.apply(db, actor_for(outsider), _request())
        assert (await LeaveService.get(db, leave.id, actor_for(outsider))).id == leave.id
        with pytest.raises(ForbiddenException):
            await LeaveService.get(db, leave.id, actor_for(staff_member))

    async def test_stats_counts(self, db, staff_member, clerk):
        actor = actor_for(staff_member)
        first = await LeaveService.apply(db, actor, _request())
        await LeaveService.apply(db, actor, _request(date(2024, 7, 1), date(2024, 7, 2), LeaveType.sick))
        await LeaveService.decide(db, first.id, LeaveStatus.approved, actor_for(clerk))

        stats = await LeaveService.stats(db, actor_for(clerk), staff_id=staff_member.id, year=2024)
        assert stats.total == 2
        assert stats.counts["approved"] == 1
        assert stats.counts["pending"] == 1
        assert stats.days_by_type["annual"].approved == 3
        assert stats.days_by_type["sick"].pending == 2


# ═════════════════════════════════════════════════════════════════════
# 7. API endpoints
# ═════════════════════════════════════════════════════════════════════


class TestLeaveAPI:

    async def test_apply_and_approve_flow(
        self, client, staff_headers, supervisor_headers, staff_member,
    ):
        resp = await client.post(
            "/api/v1/leaves",
            json={
                "leave_type": "annual",
                "start_date": "2024-06-10",
                "end_date": "2024-06-12",
                "reason": "Family visit",
            },
            headers=staff_headers,
        )
        assert resp.status_code == 201, resp.text
        leave = resp.json()
        assert leave["number_of_days"] == 3
        assert leave["staff"]["id"] == str(staff_member.id)

        resp = await client.put(
            f"/api/v1/leaves/{leave['id']}/status",
            json={"status": "approved"},
            headers=supervisor_headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "approved"

        resp = await client.put(
            f"/api/v1/leaves/{leave['id']}/status",
            json={"status": "rejected"},
            headers=supervisor_headers,
        )
        assert resp.status_code == 409
        assert resp.headers["content-type"].startswith("application/problem+json")
        assert resp.json()["type"].endswith("/invalid-transition")

        resp = await client.get(
            "/api/v1/leaves/balance", params={"year": 2024}, headers=staff_headers,
        )
        annual = next(b for b in resp.json()["balances"] if b["leave_type"] == "annual")
        assert annual["remaining"] == LEAVE_ALLOCATIONS[LeaveType.annual] - 3

    async def test_missing_fields_is_422(self, client, staff_headers):
        resp = await client.post(
            "/api/v1/leaves", json={"leave_type": "annual"}, headers=staff_headers,
        )
        assert resp.status_code == 422
        assert "start_date" in resp.json()["errors"]

    async def test_clerk_cannot_apply(self, client, clerk_headers):
        resp = await client.post(
            "/api/v1/leaves",
            json={
                "leave_type": "annual",
                "start_date": "2024-06-10",
                "end_date": "2024-06-12",
                "reason": "x",
            },
            headers=clerk_headers,
        )
        assert resp.status_code == 403

    async def test_list_scoped_to_team(self, client, db, supervisor_headers, staff_member, outsider):
        await LeaveService.apply(db, actor_for(staff_member), _request())
        await LeaveService.apply(db, actor_for(outsider), _request())
        await db.commit()

        resp = await client.get("/api/v1/leaves", headers=supervisor_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["staff_id"] == str(staff_member.id)

    async def test_unknown_leave_is_404(self, client, staff_headers):
        resp = await client.get(f"/api/v1/leaves/{uuid.uuid4()}", headers=staff_headers)
        assert resp.status_code == 404

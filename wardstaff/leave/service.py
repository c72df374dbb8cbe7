"""Leave service layer — applications, decisions, cancellation, balances.

Business logic:
  - Inclusive day count: ``(end_date - start_date).days + 1``
  - Only pending applications may be decided or cancelled
  - Balance is recomputed by aggregation per calendar year of ``start_date``
    against a fixed allocation per leave type; no carry-over
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wardstaff.auth.service import Actor
from wardstaff.common.audit import create_audit_entry
from wardstaff.common.constants import (
    LEAVE_ALLOCATIONS,
    Capability,
    LeaveStatus,
    LeaveType,
)
from wardstaff.common.exceptions import (
    ForbiddenException,
    InvalidTransitionError,
    NotFoundException,
    ValidationException,
)
from wardstaff.common.pagination import PaginatedResponse, PaginationParams, paginate
from wardstaff.leave.models import LeaveApplication
from wardstaff.leave.schemas import (
    LeaveApplyRequest,
    LeaveBalanceItem,
    LeaveBalanceResponse,
    LeaveOut,
    LeaveStats,
    LeaveTypeDays,
)
from wardstaff.notifications.service import notify_leave_application, notify_leave_decision
from wardstaff.staff.models import StaffMember
from wardstaff.staff.service import visible_staff_ids

logger = logging.getLogger(__name__)

_DECISIONS = {LeaveStatus.approved, LeaveStatus.rejected}


def count_leave_days(start_date: date, end_date: date) -> int:
    """Inclusive number of calendar days in the range."""
    return (end_date - start_date).days + 1


def _year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: apply, decide, cancel, list, balance, stats."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load(db: AsyncSession, leave_id: uuid.UUID) -> LeaveApplication:
        result = await db.execute(
            select(LeaveApplication)
            .where(LeaveApplication.id == leave_id)
            .options(
                selectinload(LeaveApplication.staff),
                selectinload(LeaveApplication.approver),
            )
            .execution_options(populate_existing=True)
        )
        leave = result.scalars().first()
        if leave is None:
            raise NotFoundException("LeaveApplication", str(leave_id))
        return leave

    @staticmethod
    async def _visible(db: AsyncSession, actor: Actor) -> Optional[list[uuid.UUID]]:
        return await visible_staff_ids(
            db, actor,
            all_cap=Capability.leave_read_all,
            team_cap=Capability.leave_read_team,
            own_cap=Capability.leave_read_own,
        )

    # ─────────────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply(
        db: AsyncSession,
        actor: Actor,
        data: LeaveApplyRequest,
    ) -> LeaveOut:
        """Create a pending application for the actor and notify their supervisor."""

        errors: dict[str, list[str]] = {}
        if data.end_date < data.start_date:
            errors["end_date"] = ["End date cannot be before start date."]
        if not data.reason or not data.reason.strip():
            errors["reason"] = ["A reason is required."]
        if errors:
            raise ValidationException(errors)

        leave = LeaveApplication(
            staff_id=actor.id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            number_of_days=count_leave_days(data.start_date, data.end_date),
            reason=data.reason.strip(),
            status=LeaveStatus.pending,
        )
        db.add(leave)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_application",
            entity_id=leave.id,
            actor_id=actor.id,
            new_values={
                "leave_type": leave.leave_type,
                "start_date": leave.start_date,
                "end_date": leave.end_date,
                "number_of_days": leave.number_of_days,
            },
        )
        logger.info(
            "leave %s applied by %s: %s %d day(s)",
            leave.id, actor.id, leave.leave_type.value, leave.number_of_days,
        )

        applicant = (
            await db.execute(
                select(StaffMember)
                .where(StaffMember.id == actor.id)
                .options(selectinload(StaffMember.supervisor))
            )
        ).scalars().first()
        await notify_leave_application(db, leave, applicant)

        return LeaveOut.model_validate(await LeaveService._load(db, leave.id))

    # ─────────────────────────────────────────────────────────────────
    # Decide (approve / reject)
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        leave_id: uuid.UUID,
        decision: LeaveStatus,
        actor: Actor,
        *,
        rejection_reason: Optional[str] = None,
    ) -> LeaveOut:
        """Approve or reject a pending application.

        Clerks and admins may decide any application; supervisors only
        those of their direct reports.  Nobody decides their own.
        """
        if decision not in _DECISIONS:
            raise ValidationException(
                {"status": ["Decision must be 'approved' or 'rejected'."]}
            )

        leave = await LeaveService._load(db, leave_id)

        if leave.status != LeaveStatus.pending:
            raise InvalidTransitionError("LeaveApplication", leave.status, decision)

        if leave.staff_id == actor.id:
            raise ForbiddenException("You cannot decide your own leave application.")
        if not actor.can(Capability.leave_decide_any):
            if not (
                actor.can(Capability.leave_decide_team)
                and leave.staff.supervisor_id == actor.id
            ):
                raise ForbiddenException(
                    "You are not authorized to decide this leave application."
                )

        now = datetime.now(timezone.utc)
        old_status = leave.status
        leave.status = decision
        leave.approved_by = actor.id
        leave.decided_at = now
        if decision == LeaveStatus.rejected:
            leave.rejection_reason = (rejection_reason or "").strip() or None
        leave.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="approve" if decision == LeaveStatus.approved else "reject",
            entity_type="leave_application",
            entity_id=leave.id,
            actor_id=actor.id,
            old_values={"status": old_status},
            new_values={"status": decision, "rejection_reason": leave.rejection_reason},
        )
        logger.info("leave %s %s by %s", leave.id, decision.value, actor.id)

        await notify_leave_decision(db, leave, leave.staff)
        return LeaveOut.model_validate(await LeaveService._load(db, leave.id))

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Actor,
    ) -> LeaveOut:
        """Cancel the actor's own pending application."""

        leave = await LeaveService._load(db, leave_id)

        if leave.staff_id != actor.id:
            raise ForbiddenException("You can only cancel your own leave applications.")
        if leave.status != LeaveStatus.pending:
            raise InvalidTransitionError("LeaveApplication", leave.status, LeaveStatus.cancelled)

        now = datetime.now(timezone.utc)
        leave.status = LeaveStatus.cancelled
        leave.cancelled_at = now
        leave.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_application",
            entity_id=leave.id,
            actor_id=actor.id,
            old_values={"status": LeaveStatus.pending},
            new_values={"status": LeaveStatus.cancelled},
        )
        logger.info("leave %s cancelled by %s", leave.id, actor.id)
        return LeaveOut.model_validate(await LeaveService._load(db, leave.id))

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get(db: AsyncSession, leave_id: uuid.UUID, actor: Actor) -> LeaveOut:
        leave = await LeaveService._load(db, leave_id)
        allowed = await LeaveService._visible(db, actor)
        if allowed is not None and leave.staff_id not in allowed:
            raise ForbiddenException("You cannot view this leave application.")
        return LeaveOut.model_validate(leave)

    @staticmethod
    async def list_applications(
        db: AsyncSession,
        actor: Actor,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveType] = None,
        staff_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> PaginatedResponse:
        """List applications visible to *actor*, newest first.

        The date range selects applications overlapping ``[from_date, to_date]``.
        """
        query = select(LeaveApplication).options(
            selectinload(LeaveApplication.staff),
            selectinload(LeaveApplication.approver),
        ).order_by(LeaveApplication.created_at.desc())

        allowed = await LeaveService._visible(db, actor)
        if allowed is not None:
            query = query.where(LeaveApplication.staff_id.in_(allowed))

        if status:
            query = query.where(LeaveApplication.status == status)
        if leave_type:
            query = query.where(LeaveApplication.leave_type == leave_type)
        if staff_id:
            query = query.where(LeaveApplication.staff_id == staff_id)
        if department_id:
            query = query.where(
                LeaveApplication.staff_id.in_(
                    select(StaffMember.id).where(StaffMember.department_id == department_id)
                )
            )
        if from_date:
            query = query.where(LeaveApplication.end_date >= from_date)
        if to_date:
            query = query.where(LeaveApplication.start_date <= to_date)

        page = await paginate(db, query, pagination, model=LeaveApplication)
        return PaginatedResponse[LeaveOut](
            data=[LeaveOut.model_validate(r) for r in page.data],
            meta=page.meta,
        )

    # ─────────────────────────────────────────────────────────────────
    # Balance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def balance(
        db: AsyncSession,
        staff_id: uuid.UUID,
        year: int,
    ) -> LeaveBalanceResponse:
        """Per-type allocation, usage and remaining days for *year*.

        ``remaining`` is allowed to go negative; ``exceeded`` flags it.
        """
        if await db.get(StaffMember, staff_id) is None:
            raise NotFoundException("StaffMember", str(staff_id))

        start, end = _year_bounds(year)
        result = await db.execute(
            select(
                LeaveApplication.leave_type,
                LeaveApplication.status,
                func.coalesce(func.sum(LeaveApplication.number_of_days), 0),
            )
            .where(
                LeaveApplication.staff_id == staff_id,
                LeaveApplication.status.in_([LeaveStatus.approved, LeaveStatus.pending]),
                and_(LeaveApplication.start_date >= start, LeaveApplication.start_date <= end),
            )
            .group_by(LeaveApplication.leave_type, LeaveApplication.status)
        )
        totals: dict[tuple[LeaveType, LeaveStatus], int] = {
            (lt, st): int(days) for lt, st, days in result.all()
        }

        balances = []
        for leave_type, allocated in LEAVE_ALLOCATIONS.items():
            used = totals.get((leave_type, LeaveStatus.approved), 0)
            remaining = allocated - used
            balances.append(
                LeaveBalanceItem(
                    leave_type=leave_type,
                    allocated=allocated,
                    used=used,
                    pending=totals.get((leave_type, LeaveStatus.pending), 0),
                    remaining=remaining,
                    exceeded=remaining < 0,
                )
            )
        return LeaveBalanceResponse(staff_id=staff_id, year=year, balances=balances)

    @staticmethod
    async def balance_for(
        db: AsyncSession,
        actor: Actor,
        staff_id: Optional[uuid.UUID],
        year: Optional[int],
    ) -> LeaveBalanceResponse:
        """Balance with visibility checks; defaults to the actor and current year."""
        target = staff_id or actor.id
        if target != actor.id:
            allowed = await LeaveService._visible(db, actor)
            if allowed is not None and target not in allowed:
                raise ForbiddenException("You cannot view this staff member's leave balance.")
        return await LeaveService.balance(db, target, year or date.today().year)

    # ─────────────────────────────────────────────────────────────────
    # Statistics
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def stats(
        db: AsyncSession,
        actor: Actor,
        *,
        staff_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
    ) -> LeaveStats:
        """Counts per status plus approved / pending days per leave type."""
        query = select(
            LeaveApplication.leave_type,
            LeaveApplication.status,
            func.count(),
            func.coalesce(func.sum(LeaveApplication.number_of_days), 0),
        ).group_by(LeaveApplication.leave_type, LeaveApplication.status)

        allowed = await LeaveService._visible(db, actor)
        if allowed is not None:
            if staff_id is not None and staff_id not in allowed:
                raise ForbiddenException("You cannot view this staff member's leave.")
            query = query.where(LeaveApplication.staff_id.in_(allowed))
        if staff_id is not None:
            query = query.where(LeaveApplication.staff_id == staff_id)
        if year is not None:
            start, end = _year_bounds(year)
            query = query.where(
                LeaveApplication.start_date >= start,
                LeaveApplication.start_date <= end,
            )

        counts = {s.value: 0 for s in LeaveStatus}
        days = {t.value: LeaveTypeDays() for t in LeaveType}
        for leave_type, status, n, total_days in (await db.execute(query)).all():
            counts[status.value] += n
            if status == LeaveStatus.approved:
                days[leave_type.value].approved += int(total_days)
            elif status == LeaveStatus.pending:
                days[leave_type.value].pending += int(total_days)

        return LeaveStats(
            staff_id=staff_id,
            year=year,
            total=sum(counts.values()),
            counts=counts,
            days_by_type=days,
        )

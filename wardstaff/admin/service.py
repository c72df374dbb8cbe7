"""Admin service — dashboard counters and audit-log browsing."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from wardstaff.admin.schemas import AuditLogItem, DashboardResponse, DepartmentHeadcount
from wardstaff.attendance.models import AttendanceRecord
from wardstaff.common.audit import AuditTrail
from wardstaff.common.constants import AttendanceStatus, CaseStatus, LeaveStatus
from wardstaff.common.exceptions import ValidationException
from wardstaff.common.pagination import PaginatedResponse, PaginationParams, build_meta
from wardstaff.disciplinary.models import DisciplinaryCase
from wardstaff.leave.models import LeaveApplication
from wardstaff.staff.models import Department, StaffMember


class AdminService:
    """Static service class for admin read models."""

    # ── Dashboard ───────────────────────────────────────────────────

    @staticmethod
    async def dashboard(db: AsyncSession, today: Optional[date] = None) -> DashboardResponse:
        """Counts across staff, attendance, leave and disciplinary data for *today*."""
        today = today or date.today()

        async def _count(query) -> int:
            return (await db.execute(query)).scalar() or 0

        staff_counts = dict(
            (await db.execute(
                select(StaffMember.is_active, func.count()).group_by(StaffMember.is_active)
            )).all()
        )
        departments = await _count(
            select(func.count(Department.id)).where(Department.is_active.is_(True))
        )

        attendance = dict(
            (await db.execute(
                select(AttendanceRecord.status, func.count())
                .where(AttendanceRecord.date == today)
                .group_by(AttendanceRecord.status)
            )).all()
        )
        on_leave = await _count(
            select(func.count(LeaveApplication.id)).where(
                LeaveApplication.status == LeaveStatus.approved,
                LeaveApplication.start_date <= today,
                LeaveApplication.end_date >= today,
            )
        )
        pending = await _count(
            select(func.count(LeaveApplication.id)).where(
                LeaveApplication.status == LeaveStatus.pending
            )
        )
        open_cases = await _count(
            select(func.count(DisciplinaryCase.id)).where(
                DisciplinaryCase.status.in_([CaseStatus.open, CaseStatus.under_review])
            )
        )
        appealed = await _count(
            select(func.count(DisciplinaryCase.id)).where(
                DisciplinaryCase.status == CaseStatus.appealed
            )
        )

        headcount_rows = (await db.execute(
            select(Department.id, Department.name, func.count(StaffMember.id))
            .outerjoin(
                StaffMember,
                (StaffMember.department_id == Department.id) & StaffMember.is_active.is_(True),
            )
            .where(Department.is_active.is_(True))
            .group_by(Department.id, Department.name)
            .order_by(Department.name)
        )).all()

        return DashboardResponse(
            as_of=today,
            total_staff=staff_counts.get(True, 0),
            inactive_staff=staff_counts.get(False, 0),
            departments=departments,
            present_today=(
                attendance.get(AttendanceStatus.present, 0)
                + attendance.get(AttendanceStatus.late, 0)
            ),
            absent_today=attendance.get(AttendanceStatus.absent, 0),
            on_leave_today=on_leave,
            pending_leave=pending,
            open_cases=open_cases,
            appealed_cases=appealed,
            headcount=[
                DepartmentHeadcount(department_id=d_id, department_name=name, count=n)
                for d_id, name, n in headcount_rows
            ],
        )

    # ── Audit log ───────────────────────────────────────────────────

    @staticmethod
    async def audit_log(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        actor_id: Optional[uuid.UUID] = None,
        action: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> PaginatedResponse:
        """Newest-first audit entries with the acting staff member's name."""
        if from_date and to_date and from_date > to_date:
            raise ValidationException({"from_date": ["from_date must be on or before to_date."]})

        Actor = aliased(StaffMember, flat=True)
        conditions = []
        if entity_type:
            conditions.append(AuditTrail.entity_type == entity_type)
        if entity_id:
            conditions.append(AuditTrail.entity_id == entity_id)
        if actor_id:
            conditions.append(AuditTrail.actor_id == actor_id)
        if action:
            conditions.append(AuditTrail.action == action)
        if from_date:
            conditions.append(
                AuditTrail.created_at >= datetime.combine(from_date, time.min, tzinfo=timezone.utc)
            )
        if to_date:
            conditions.append(
                AuditTrail.created_at <= datetime.combine(to_date, time.max, tzinfo=timezone.utc)
            )

        total = (await db.execute(
            select(func.count(AuditTrail.id)).where(*conditions)
        )).scalar() or 0

        rows = (await db.execute(
            select(AuditTrail, Actor.first_name, Actor.last_name)
            .outerjoin(Actor, AuditTrail.actor_id == Actor.id)
            .where(*conditions)
            .order_by(AuditTrail.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )).all()

        items = [
            AuditLogItem(
                id=entry.id,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                actor_id=entry.actor_id,
                actor_name=f"{first} {last}" if first else None,
                old_values=entry.old_values,
                new_values=entry.new_values,
                created_at=entry.created_at,
            )
            for entry, first, last in rows
        ]
        return PaginatedResponse[AuditLogItem](data=items, meta=build_meta(pagination, total))

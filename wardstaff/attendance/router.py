"""Attendance router — mark, bulk mark, list, statistics."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.attendance.schemas import (
    AttendanceMarkRequest,
    AttendanceOut,
    AttendanceStats,
    BulkAttendanceRequest,
    BulkAttendanceResponse,
)
from wardstaff.attendance.service import AttendanceService
from wardstaff.auth.dependencies import get_current_actor, require_capability
from wardstaff.auth.service import Actor
from wardstaff.common.constants import AttendanceStatus, Capability
from wardstaff.common.pagination import PaginatedResponse, PaginationParams
from wardstaff.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


# ── POST / — mark one staff member ─────────────────────────────────

@router.post("", response_model=AttendanceOut)
async def mark_attendance(
    body: AttendanceMarkRequest,
    actor: Actor = Depends(
        require_capability(Capability.attendance_mark_any, Capability.attendance_mark_team)
    ),
    db: AsyncSession = Depends(get_db),
):
    """Create or overwrite the attendance record for (staff, date)."""
    return await AttendanceService.mark(db, actor, body)


# ── POST /bulk — mark many for one date ────────────────────────────

@router.post("/bulk", response_model=BulkAttendanceResponse)
async def mark_bulk(
    body: BulkAttendanceRequest,
    actor: Actor = Depends(require_capability(Capability.attendance_mark_bulk)),
    db: AsyncSession = Depends(get_db),
):
    """Best-effort: failed entries are listed in ``errors``; the rest are saved."""
    return await AttendanceService.mark_bulk(db, actor, body)


# ── GET / — list records ───────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[AttendanceOut])
async def list_attendance(
    pagination: PaginationParams = Depends(),
    staff_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    on_date: Optional[date] = Query(None, alias="date"),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    status: Optional[AttendanceStatus] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Staff see their own records, supervisors their team, clerks and admins everyone."""
    return await AttendanceService.list_records(
        db,
        actor,
        pagination,
        staff_id=staff_id,
        department_id=department_id,
        on_date=on_date,
        from_date=from_date,
        to_date=to_date,
        status=status,
    )


# ── GET /stats ──────────────────────────────────────────────────────
# Registered before /{record_id} so "stats" is not parsed as a UUID.

@router.get("/stats", response_model=AttendanceStats)
async def attendance_stats(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    staff_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.stats(
        db,
        actor,
        from_date=from_date,
        to_date=to_date,
        staff_id=staff_id,
        department_id=department_id,
    )


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{record_id}", response_model=AttendanceOut)
async def get_attendance(
    record_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_record(db, actor, record_id)

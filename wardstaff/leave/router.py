"""Leave router — apply, decide, cancel, list, balance, statistics.

All endpoints require authentication; visibility and decision rights follow
the caller's capabilities.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.auth.dependencies import get_current_actor, require_capability
from wardstaff.auth.service import Actor
from wardstaff.common.constants import Capability, LeaveStatus, LeaveType
from wardstaff.common.pagination import PaginatedResponse, PaginationParams
from wardstaff.database import get_db
from wardstaff.leave.schemas import (
    LeaveApplyRequest,
    LeaveBalanceResponse,
    LeaveDecisionRequest,
    LeaveOut,
    LeaveStats,
)
from wardstaff.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST / — apply ──────────────────────────────────────────────────

@router.post("", response_model=LeaveOut, status_code=201)
async def apply_leave(
    body: LeaveApplyRequest,
    actor: Actor = Depends(require_capability(Capability.leave_apply)),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. The application starts as pending."""
    return await LeaveService.apply(db, actor, body)


# ── GET / — list ────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[LeaveOut])
async def list_leaves(
    pagination: PaginationParams = Depends(),
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    staff_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Staff see their own applications, supervisors their team, clerks and admins all."""
    return await LeaveService.list_applications(
        db,
        actor,
        pagination,
        status=status,
        leave_type=leave_type,
        staff_id=staff_id,
        department_id=department_id,
        from_date=from_date,
        to_date=to_date,
    )


# ── GET /balance ────────────────────────────────────────────────────

@router.get("/balance", response_model=LeaveBalanceResponse)
async def leave_balance(
    staff_id: Optional[uuid.UUID] = Query(None, description="Defaults to the caller"),
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Defaults to the current year"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.balance_for(db, actor, staff_id, year)


# ── GET /stats ──────────────────────────────────────────────────────

@router.get("/stats", response_model=LeaveStats)
async def leave_stats(
    staff_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.stats(db, actor, staff_id=staff_id, year=year)


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{leave_id}", response_model=LeaveOut)
async def get_leave(
    leave_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get(db, leave_id, actor)


# ── PUT /{id}/status — approve or reject ───────────────────────────

@router.put("/{leave_id}/status", response_model=LeaveOut)
async def decide_leave(
    leave_id: uuid.UUID,
    body: LeaveDecisionRequest,
    actor: Actor = Depends(
        require_capability(Capability.leave_decide_any, Capability.leave_decide_team)
    ),
    db: AsyncSession = Depends(get_db),
):
    """Approve or reject a pending application (409 once it has left pending)."""
    return await LeaveService.decide(
        db,
        leave_id,
        LeaveStatus(body.status),
        actor,
        rejection_reason=body.rejection_reason,
    )


# ── PUT /{id}/cancel ────────────────────────────────────────────────

@router.put("/{leave_id}/cancel", response_model=LeaveOut)
async def cancel_leave(
    leave_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Cancel one of the caller's own pending applications."""
    return await LeaveService.cancel(db, leave_id, actor)

"""Auth router — password login, logout, current user profile, password change."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.auth.dependencies import get_current_actor, get_current_user
from wardstaff.auth.schemas import (
    ChangePasswordRequest,
    DeptBrief,
    LoginRequest,
    MeResponse,
    TokenResponse,
    UserInfo,
)
from wardstaff.auth.service import (
    Actor,
    authenticate,
    change_password,
    create_session,
    hash_token,
    revoke_all_sessions,
    revoke_session,
)
from wardstaff.common.audit import create_audit_entry
from wardstaff.common.rate_limit import limiter
from wardstaff.config import settings
from wardstaff.database import get_db
from wardstaff.staff.models import StaffMember

router = APIRouter(prefix="", tags=["auth"])


def _client(request: Request) -> tuple[str | None, str | None]:
    ip = request.client.host if request.client else None
    return ip, request.headers.get("user-agent")


# ── POST /login ─────────────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    staff = await authenticate(db, body.email, body.password)

    ip, user_agent = _client(request)
    access_token, expires_in = await create_session(db, staff, ip, user_agent)

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=staff.id,
        actor_id=staff.id,
        new_values={"ip": ip, "user_agent": user_agent},
        ip_address=ip,
        user_agent=user_agent,
    )

    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
        user=UserInfo(
            id=staff.id,
            employee_id=staff.employee_id,
            name=staff.full_name,
            email=staff.email,
            role=staff.role.value,
            department=staff.department.name if staff.department else None,
            position=staff.position,
        ),
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    staff: StaffMember = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    token = request.headers.get("Authorization", "").removeprefix("Bearer ")
    await revoke_session(db, hash_token(token))

    ip, user_agent = _client(request)
    await create_audit_entry(
        db,
        action="logout",
        entity_type="user_session",
        entity_id=staff.id,
        actor_id=staff.id,
        ip_address=ip,
        user_agent=user_agent,
    )
    return {"message": "Logged out successfully"}


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(
    staff: StaffMember = Depends(get_current_user),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(func.count()).select_from(StaffMember).where(
            StaffMember.supervisor_id == staff.id,
            StaffMember.is_active.is_(True),
        ),
    )
    direct_reports_count = result.scalar() or 0

    dept = None
    if staff.department:
        dept = DeptBrief(
            id=staff.department.id,
            name=staff.department.name,
            code=staff.department.code,
        )

    return MeResponse(
        id=staff.id,
        employee_id=staff.employee_id,
        name=staff.full_name,
        email=staff.email,
        role=actor.role.value,
        capabilities=sorted(c.value for c in actor.capabilities),
        position=staff.position,
        department=dept,
        supervisor_id=staff.supervisor_id,
        direct_reports_count=direct_reports_count,
    )


# ── PUT /password ───────────────────────────────────────────────────

@router.put("/password")
async def update_password(
    body: ChangePasswordRequest,
    request: Request,
    staff: StaffMember = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change the caller's password and revoke all of its sessions."""
    await change_password(db, staff, body.current_password, body.new_password)
    await revoke_all_sessions(db, staff.id)

    ip, user_agent = _client(request)
    await create_audit_entry(
        db,
        action="password_change",
        entity_type="staff_member",
        entity_id=staff.id,
        actor_id=staff.id,
        ip_address=ip,
        user_agent=user_agent,
    )
    return {"message": "Password updated. Please sign in again."}

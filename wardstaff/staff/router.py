"""Staff directory router — staff member and department endpoints.

Routes:
    /staff                     — List, create staff
    /staff/supervised          — Caller's direct reports
    /staff/me                  — Own profile (read / contact-detail update)
    /staff/{id}                — Get, update, deactivate
    /staff/{id}/reactivate     — Undo a deactivation
    /staff/{id}/role           — Change role
    /staff/{id}/supervisor     — Assign or clear supervisor
    /departments               — List, create departments
    /departments/{id}          — Get, update, deactivate
    /departments/{id}/staff    — Department members
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.auth.dependencies import get_current_actor, require_capability
from wardstaff.auth.service import Actor
from wardstaff.common.constants import Capability, UserRole
from wardstaff.common.pagination import PaginatedResponse, PaginationParams
from wardstaff.database import get_db
from wardstaff.staff.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    ProfileUpdate,
    RoleChangeRequest,
    StaffCreate,
    StaffDetail,
    StaffResponse,
    StaffUpdate,
    SupervisorAssignRequest,
)
from wardstaff.staff.service import DepartmentService, StaffService


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

staff_router = APIRouter(prefix="", tags=["staff"])
departments_router = APIRouter(prefix="", tags=["departments"])

_manage_staff = require_capability(Capability.staff_manage)
_manage_departments = require_capability(Capability.department_manage)


# ═════════════════════════════════════════════════════════════════════
# Staff Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /staff — List staff ─────────────────────────────────────────

@staff_router.get("", response_model=PaginatedResponse[StaffResponse])
async def list_staff(
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email or employee ID"),
    department_id: Optional[uuid.UUID] = Query(None),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    supervisor_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """List staff visible to the caller (all, direct reports, or self)."""
    result = await StaffService.list_staff(
        db,
        actor,
        pagination,
        search=search,
        department_id=department_id,
        role=role,
        is_active=is_active,
        supervisor_id=supervisor_id,
    )
    return PaginatedResponse[StaffResponse](
        data=[StaffResponse.model_validate(s) for s in result.data],
        meta=result.meta,
    )


# ── GET /staff/supervised — Direct reports ─────────────────────────

@staff_router.get("/supervised", response_model=list[StaffResponse])
async def supervised_staff(
    actor: Actor = Depends(require_capability(Capability.staff_read_team)),
    db: AsyncSession = Depends(get_db),
):
    reports = await StaffService.get_direct_reports(db, actor.id)
    return [StaffResponse.model_validate(s) for s in reports]


# ── GET /staff/me — Own profile ─────────────────────────────────────

@staff_router.get("/me", response_model=StaffDetail)
async def my_profile(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await StaffService.get_staff(db, actor, actor.id)


# ── PUT /staff/me — Update own contact details ─────────────────────

@staff_router.put("/me", response_model=StaffDetail)
async def update_my_profile(
    body: ProfileUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await StaffService.update_staff(
        db, actor.id, StaffUpdate(**body.model_dump(exclude_unset=True)), actor_id=actor.id,
    )


# ── POST /staff — Create staff member ───────────────────────────────

@staff_router.post("", response_model=StaffDetail, status_code=201)
async def create_staff(
    body: StaffCreate,
    actor: Actor = Depends(_manage_staff),
    db: AsyncSession = Depends(get_db),
):
    return await StaffService.create_staff(db, body, actor_id=actor.id)


# ── GET /staff/{id} ─────────────────────────────────────────────────

@staff_router.get("/{staff_id}", response_model=StaffDetail)
async def get_staff(
    staff_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await StaffService.get_staff(db, actor, staff_id)


# ── PUT /staff/{id} ─────────────────────────────────────────────────

@staff_router.put("/{staff_id}", response_model=StaffDetail)
async def update_staff(
    staff_id: uuid.UUID,
    body: StaffUpdate,
    actor: Actor = Depends(_manage_staff),
    db: AsyncSession = Depends(get_db),
):
    return await StaffService.update_staff(db, staff_id, body, actor_id=actor.id)


# ── DELETE /staff/{id} — Deactivate ─────────────────────────────────

@staff_router.delete("/{staff_id}", response_model=StaffDetail)
async def deactivate_staff(
    staff_id: uuid.UUID,
    actor: Actor = Depends(_manage_staff),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the record stays, the account can no longer sign in."""
    return await StaffService.set_active(db, staff_id, False, actor_id=actor.id)


# ── POST /staff/{id}/reactivate ─────────────────────────────────────

@staff_router.post("/{staff_id}/reactivate", response_model=StaffDetail)
async def reactivate_staff(
    staff_id: uuid.UUID,
    actor: Actor = Depends(_manage_staff),
    db: AsyncSession = Depends(get_db),
):
    return await StaffService.set_active(db, staff_id, True, actor_id=actor.id)


# ── PATCH /staff/{id}/role ──────────────────────────────────────────

@staff_router.patch("/{staff_id}/role", response_model=StaffDetail)
async def change_role(
    staff_id: uuid.UUID,
    body: RoleChangeRequest,
    actor: Actor = Depends(_manage_staff),
    db: AsyncSession = Depends(get_db),
):
    return await StaffService.change_role(db, staff_id, body.role, actor_id=actor.id)


# ── PUT /staff/{id}/supervisor ──────────────────────────────────────

@staff_router.put("/{staff_id}/supervisor", response_model=StaffDetail)
async def assign_supervisor(
    staff_id: uuid.UUID,
    body: SupervisorAssignRequest,
    actor: Actor = Depends(_manage_staff),
    db: AsyncSession = Depends(get_db),
):
    """Assign a supervisor, or clear it with ``{"supervisor_id": null}``."""
    return await StaffService.assign_supervisor(
        db, staff_id, body.supervisor_id, actor_id=actor.id,
    )


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /departments ────────────────────────────────────────────────

@departments_router.get("", response_model=list[DepartmentResponse])
async def list_departments(
    is_active: Optional[bool] = Query(True, description="Defaults to active departments"),
    search: Optional[str] = Query(None),
    actor: Actor = Depends(require_capability(Capability.department_read)),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.list_departments(db, is_active=is_active, search=search)


# ── POST /departments ───────────────────────────────────────────────

@departments_router.post("", response_model=DepartmentResponse, status_code=201)
async def create_department(
    body: DepartmentCreate,
    actor: Actor = Depends(_manage_departments),
    db: AsyncSession = Depends(get_db),
):
    """Create a department; the code defaults to the name's initials."""
    return await DepartmentService.create_department(db, body, actor_id=actor.id)


# ── GET /departments/{id} ───────────────────────────────────────────

@departments_router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: uuid.UUID,
    actor: Actor = Depends(require_capability(Capability.department_read)),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.get_department(db, department_id)


# ── GET /departments/{id}/staff ─────────────────────────────────────

@departments_router.get("/{department_id}/staff", response_model=list[StaffResponse])
async def department_staff(
    department_id: uuid.UUID,
    include_inactive: bool = Query(False),
    actor: Actor = Depends(
        require_capability(Capability.staff_read_all, Capability.staff_read_team)
    ),
    db: AsyncSession = Depends(get_db),
):
    members = await DepartmentService.list_members(
        db, department_id, include_inactive=include_inactive,
    )
    return [StaffResponse.model_validate(m) for m in members]


# ── PUT /departments/{id} ───────────────────────────────────────────

@departments_router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    actor: Actor = Depends(_manage_departments),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.update_department(db, department_id, body, actor_id=actor.id)


# ── DELETE /departments/{id} — Deactivate ──────────────────────────

@departments_router.delete("/{department_id}", response_model=DepartmentResponse)
async def delete_department(
    department_id: uuid.UUID,
    actor: Actor = Depends(_manage_departments),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a department; refused while it still has active staff."""
    return await DepartmentService.delete_department(db, department_id, actor_id=actor.id)

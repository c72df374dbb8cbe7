"""Staff directory service layer — async CRUD + business logic.

Uses:
  - ``paginate()`` from wardstaff.common.pagination
  - ``apply_filters / apply_search`` from wardstaff.common.filters
  - ``create_audit_entry`` from wardstaff.common.audit
  - ``NotFoundException / ConflictError`` from wardstaff.common.exceptions
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wardstaff.auth.service import Actor, hash_password, revoke_all_sessions
from wardstaff.common.audit import create_audit_entry
from wardstaff.common.constants import Capability, UserRole
from wardstaff.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from wardstaff.common.filters import apply_filters, apply_search
from wardstaff.common.pagination import PaginatedResponse, PaginationParams, paginate
from wardstaff.notifications.service import notify_welcome
from wardstaff.staff.models import Department, StaffMember
from wardstaff.staff.schemas import (
    DepartmentBrief,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    StaffBrief,
    StaffCreate,
    StaffDetail,
    StaffUpdate,
)

logger = logging.getLogger(__name__)

SUPERVISOR_ROLES = (UserRole.supervisor, UserRole.admin)


# ═════════════════════════════════════════════════════════════════════
# Visibility
# ═════════════════════════════════════════════════════════════════════


async def direct_report_ids(db: AsyncSession, supervisor_id: uuid.UUID) -> list[uuid.UUID]:
    """IDs of staff whose supervisor is *supervisor_id* (active or not)."""
    result = await db.execute(
        select(StaffMember.id).where(StaffMember.supervisor_id == supervisor_id)
    )
    return [row[0] for row in result.all()]


async def visible_staff_ids(
    db: AsyncSession,
    actor: Actor,
    *,
    all_cap: Capability,
    team_cap: Capability,
    own_cap: Optional[Capability] = None,
) -> Optional[list[uuid.UUID]]:
    """Resolve which staff records *actor* may read.

    Returns ``None`` for unrestricted access, otherwise the list of
    permitted staff IDs (the actor's own ID is included when *own_cap* is
    held, and always alongside team access).
    """
    if actor.can(all_cap):
        return None
    if actor.can(team_cap):
        return [actor.id, *await direct_report_ids(db, actor.id)]
    if own_cap is None or actor.can(own_cap):
        return [actor.id]
    raise ForbiddenException()


async def ensure_supervises(
    db: AsyncSession,
    actor: Actor,
    staff_id: uuid.UUID,
    *,
    any_cap: Capability,
    team_cap: Capability,
    action: str,
) -> None:
    """Raise 403 unless *actor* holds *any_cap*, or *team_cap* over *staff_id*."""
    if actor.can(any_cap):
        return
    if actor.can(team_cap):
        result = await db.execute(
            select(StaffMember.supervisor_id).where(StaffMember.id == staff_id)
        )
        if result.scalar() == actor.id:
            return
        raise ForbiddenException(f"You can only {action} for staff you supervise.")
    raise ForbiddenException()


# ═════════════════════════════════════════════════════════════════════
# StaffService
# ═════════════════════════════════════════════════════════════════════


class StaffService:
    """Async CRUD operations for staff members."""

    @staticmethod
    async def _load(db: AsyncSession, staff_id: uuid.UUID) -> StaffMember:
        result = await db.execute(
            select(StaffMember)
            .where(StaffMember.id == staff_id)
            .options(
                selectinload(StaffMember.department),
                selectinload(StaffMember.supervisor),
            )
            .execution_options(populate_existing=True)
        )
        staff = result.scalars().first()
        if staff is None:
            raise NotFoundException("StaffMember", str(staff_id))
        return staff

    @staticmethod
    async def _build_detail(db: AsyncSession, staff: StaffMember) -> StaffDetail:
        count_result = await db.execute(
            select(func.count())
            .select_from(StaffMember)
            .where(
                StaffMember.supervisor_id == staff.id,
                StaffMember.is_active.is_(True),
            )
        )
        detail = StaffDetail.model_validate(staff, from_attributes=True)
        detail.direct_reports_count = count_result.scalar() or 0
        if staff.department:
            detail.department = DepartmentBrief.model_validate(staff.department)
        if staff.supervisor:
            detail.supervisor = StaffBrief.model_validate(staff.supervisor)
        return detail

    @staticmethod
    async def _check_unique(
        db: AsyncSession,
        *,
        employee_id: Optional[str] = None,
        email: Optional[str] = None,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        for field, column, value in (
            ("employee_id", StaffMember.employee_id, employee_id),
            ("email", func.lower(StaffMember.email), email.lower() if email else None),
        ):
            if value is None:
                continue
            query = select(StaffMember.id).where(column == value)
            if exclude_id is not None:
                query = query.where(StaffMember.id != exclude_id)
            if (await db.execute(query)).scalar() is not None:
                raise ConflictError(field, value)

    @staticmethod
    async def _check_department(db: AsyncSession, department_id: Optional[uuid.UUID]) -> Optional[Department]:
        if department_id is None:
            return None
        department = await db.get(Department, department_id)
        if department is None:
            raise NotFoundException("Department", str(department_id))
        if not department.is_active:
            raise ValidationException({"department_id": ["Department is inactive."]})
        return department

    @staticmethod
    async def _check_supervisor(db: AsyncSession, supervisor_id: uuid.UUID) -> StaffMember:
        supervisor = await db.get(StaffMember, supervisor_id)
        if supervisor is None:
            raise NotFoundException("StaffMember", str(supervisor_id))
        if not supervisor.is_active or supervisor.role not in SUPERVISOR_ROLES:
            raise ValidationException(
                {"supervisor_id": ["Supervisor must be an active supervisor or admin."]}
            )
        return supervisor

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_staff(
        db: AsyncSession,
        actor: Actor,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        supervisor_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        """Return a paginated, filtered, searchable staff list."""

        allowed = await visible_staff_ids(
            db, actor,
            all_cap=Capability.staff_read_all,
            team_cap=Capability.staff_read_team,
            own_cap=Capability.profile_read_own,
        )

        query = select(StaffMember).order_by(StaffMember.last_name, StaffMember.first_name)
        if allowed is not None:
            query = query.where(StaffMember.id.in_(allowed))

        filters: dict[str, Any] = {
            "department_id": department_id,
            "role": role,
            "is_active": is_active,
            "supervisor_id": supervisor_id,
        }
        query = apply_filters(query, StaffMember, filters)
        query = apply_search(
            query, StaffMember, search,
            ["first_name", "last_name", "email", "employee_id"],
        )

        return await paginate(db, query, pagination, model=StaffMember)

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_staff(
        db: AsyncSession,
        actor: Actor,
        staff_id: uuid.UUID,
    ) -> StaffDetail:
        staff = await StaffService._load(db, staff_id)
        if staff.id != actor.id and not actor.can(Capability.staff_read_all):
            if not (actor.can(Capability.staff_read_team) and staff.supervisor_id == actor.id):
                raise ForbiddenException("You can only view your own profile or your team.")
        return await StaffService._build_detail(db, staff)

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_staff(
        db: AsyncSession,
        data: StaffCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> StaffDetail:
        """Create a staff member and send the welcome email."""

        await StaffService._check_unique(db, employee_id=data.employee_id, email=data.email)
        department = await StaffService._check_department(db, data.department_id)
        if data.supervisor_id is not None:
            await StaffService._check_supervisor(db, data.supervisor_id)

        values = data.model_dump(exclude={"password", "date_of_joining"})
        staff = StaffMember(
            **values,
            password_hash=hash_password(data.password),
            date_of_joining=data.date_of_joining or date.today(),
        )
        db.add(staff)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="staff_member",
            entity_id=staff.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json", exclude={"password"}),
        )
        logger.info("created staff member %s (%s)", staff.employee_id, staff.role.value)

        await notify_welcome(db, staff, department.name if department else None)
        return await StaffService._build_detail(db, await StaffService._load(db, staff.id))

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_staff(
        db: AsyncSession,
        staff_id: uuid.UUID,
        data: StaffUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> StaffDetail:
        """Partial-update an existing staff member."""

        staff = await StaffService._load(db, staff_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return await StaffService._build_detail(db, staff)

        if "email" in changes:
            await StaffService._check_unique(db, email=changes["email"], exclude_id=staff.id)
        if "department_id" in changes:
            await StaffService._check_department(db, changes["department_id"])

        old_values: dict[str, Any] = {}
        for field, value in changes.items():
            old_values[field] = getattr(staff, field, None)
            setattr(staff, field, value)
        staff.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="staff_member",
            entity_id=staff.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )
        return await StaffService._build_detail(db, await StaffService._load(db, staff.id))

    # ── Activation ──────────────────────────────────────────────────

    @staticmethod
    async def set_active(
        db: AsyncSession,
        staff_id: uuid.UUID,
        is_active: bool,
        *,
        actor_id: uuid.UUID,
    ) -> StaffDetail:
        """Deactivate (soft delete) or reactivate a staff member."""

        if staff_id == actor_id and not is_active:
            raise ValidationException({"staff_id": ["You cannot deactivate your own account."]})

        staff = await StaffService._load(db, staff_id)
        if staff.is_active == is_active:
            return await StaffService._build_detail(db, staff)

        staff.is_active = is_active
        staff.updated_at = datetime.now(timezone.utc)
        await db.flush()
        if not is_active:
            await revoke_all_sessions(db, staff.id)

        await create_audit_entry(
            db,
            action="reactivate" if is_active else "deactivate",
            entity_type="staff_member",
            entity_id=staff.id,
            actor_id=actor_id,
            old_values={"is_active": not is_active},
            new_values={"is_active": is_active},
        )
        logger.info("staff %s %s", staff.employee_id, "reactivated" if is_active else "deactivated")
        return await StaffService._build_detail(db, staff)

    # ── Role ────────────────────────────────────────────────────────

    @staticmethod
    async def change_role(
        db: AsyncSession,
        staff_id: uuid.UUID,
        role: UserRole,
        *,
        actor_id: uuid.UUID,
    ) -> StaffDetail:
        if staff_id == actor_id:
            raise ValidationException({"role": ["You cannot change your own role."]})

        staff = await StaffService._load(db, staff_id)
        old_role = staff.role
        if old_role == role:
            return await StaffService._build_detail(db, staff)

        staff.role = role
        staff.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="role_change",
            entity_type="staff_member",
            entity_id=staff.id,
            actor_id=actor_id,
            old_values={"role": old_role.value},
            new_values={"role": role.value},
        )
        return await StaffService._build_detail(db, staff)

    # ── Supervisor ──────────────────────────────────────────────────

    @staticmethod
    async def assign_supervisor(
        db: AsyncSession,
        staff_id: uuid.UUID,
        supervisor_id: Optional[uuid.UUID],
        *,
        actor_id: uuid.UUID,
    ) -> StaffDetail:
        """Link *staff_id* to *supervisor_id*, or clear the link with ``None``.

        Only a staff member cannot supervise themself; longer cycles are
        not checked.
        """
        staff = await StaffService._load(db, staff_id)
        if supervisor_id is not None:
            if supervisor_id == staff.id:
                raise ValidationException(
                    {"supervisor_id": ["A staff member cannot supervise themself."]}
                )
            await StaffService._check_supervisor(db, supervisor_id)

        old_supervisor = staff.supervisor_id
        staff.supervisor_id = supervisor_id
        staff.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="assign_supervisor",
            entity_type="staff_member",
            entity_id=staff.id,
            actor_id=actor_id,
            old_values={"supervisor_id": str(old_supervisor) if old_supervisor else None},
            new_values={"supervisor_id": str(supervisor_id) if supervisor_id else None},
        )
        return await StaffService._build_detail(db, await StaffService._load(db, staff.id))

    # ── Direct reports ──────────────────────────────────────────────

    @staticmethod
    async def get_direct_reports(
        db: AsyncSession,
        supervisor_id: uuid.UUID,
        *,
        include_inactive: bool = False,
    ) -> Sequence[StaffMember]:
        query = (
            select(StaffMember)
            .where(StaffMember.supervisor_id == supervisor_id)
            .order_by(StaffMember.last_name, StaffMember.first_name)
        )
        if not include_inactive:
            query = query.where(StaffMember.is_active.is_(True))
        return (await db.execute(query)).scalars().all()


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


def derive_department_code(name: str) -> str:
    """Upper-cased initials of the words in *name* (``"Public Works"`` → ``"PW"``)."""
    words = [w for w in re.split(r"[^A-Za-z0-9]+", name) if w]
    return "".join(w[0] for w in words).upper()


class DepartmentService:
    """Async operations for departments."""

    @staticmethod
    async def _get(db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(
            select(Department)
            .where(Department.id == department_id)
            .options(selectinload(Department.manager))
        )
        department = result.scalars().first()
        if department is None:
            raise NotFoundException("Department", str(department_id))
        return department

    @staticmethod
    async def _active_staff_count(db: AsyncSession, department_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(StaffMember)
            .where(
                StaffMember.department_id == department_id,
                StaffMember.is_active.is_(True),
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def _build_response(db: AsyncSession, department: Department) -> DepartmentResponse:
        out = DepartmentResponse.model_validate(department)
        out.staff_count = await DepartmentService._active_staff_count(db, department.id)
        if department.manager:
            out.manager_name = department.manager.full_name
        return out

    @staticmethod
    async def _check_unique(
        db: AsyncSession,
        *,
        name: Optional[str] = None,
        code: Optional[str] = None,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        for field, column, value in (
            ("name", func.lower(Department.name), name.lower() if name else None),
            ("code", Department.code, code),
        ):
            if value is None:
                continue
            query = select(Department.id).where(column == value)
            if exclude_id is not None:
                query = query.where(Department.id != exclude_id)
            if (await db.execute(query)).scalar() is not None:
                raise ConflictError(field, value)

    @staticmethod
    async def _check_manager(db: AsyncSession, manager_id: Optional[uuid.UUID]) -> None:
        if manager_id is None:
            return
        manager = await db.get(StaffMember, manager_id)
        if manager is None:
            raise NotFoundException("StaffMember", str(manager_id))
        if not manager.is_active:
            raise ValidationException({"manager_id": ["Manager must be an active staff member."]})

    # ── List / get ──────────────────────────────────────────────────

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
        search: Optional[str] = None,
    ) -> list[DepartmentResponse]:
        query = select(Department).options(selectinload(Department.manager)).order_by(Department.name)
        if is_active is not None:
            query = query.where(Department.is_active == is_active)
        query = apply_search(query, Department, search, ["name", "code"])

        departments = (await db.execute(query)).scalars().all()
        return [await DepartmentService._build_response(db, d) for d in departments]

    @staticmethod
    async def get_department(db: AsyncSession, department_id: uuid.UUID) -> DepartmentResponse:
        department = await DepartmentService._get(db, department_id)
        return await DepartmentService._build_response(db, department)

    @staticmethod
    async def list_members(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        include_inactive: bool = False,
    ) -> Sequence[StaffMember]:
        await DepartmentService._get(db, department_id)
        query = (
            select(StaffMember)
            .where(StaffMember.department_id == department_id)
            .order_by(StaffMember.last_name, StaffMember.first_name)
        )
        if not include_inactive:
            query = query.where(StaffMember.is_active.is_(True))
        return (await db.execute(query)).scalars().all()

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        code = (data.code or derive_department_code(data.name)).strip().upper()
        if not code:
            raise ValidationException({"code": ["Could not derive a code from the name."]})

        await DepartmentService._check_unique(db, name=data.name, code=code)
        await DepartmentService._check_manager(db, data.manager_id)

        department = Department(
            name=data.name,
            code=code,
            description=data.description,
            manager_id=data.manager_id,
            color=data.color,
        )
        db.add(department)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json") | {"code": code},
        )
        return await DepartmentService.get_department(db, department.id)

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        department = await DepartmentService._get(db, department_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return await DepartmentService._build_response(db, department)

        if "code" in changes and changes["code"]:
            changes["code"] = changes["code"].strip().upper()
        if "name" in changes and changes["name"]:
            changes["name"] = changes["name"].strip()
        await DepartmentService._check_unique(
            db,
            name=changes.get("name"),
            code=changes.get("code"),
            exclude_id=department.id,
        )
        if "manager_id" in changes:
            await DepartmentService._check_manager(db, changes["manager_id"])
        if changes.get("is_active") is False:
            await DepartmentService._ensure_empty(db, department)

        old_values = {k: getattr(department, k) for k in changes}
        for field, value in changes.items():
            setattr(department, field, value)
        department.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return await DepartmentService.get_department(db, department.id)

    # ── Delete (deactivate) ─────────────────────────────────────────

    @staticmethod
    async def _ensure_empty(db: AsyncSession, department: Department) -> None:
        active = await DepartmentService._active_staff_count(db, department.id)
        if active:
            raise ValidationException(
                {"department": [
                    f"Cannot deactivate '{department.name}': {active} active staff "
                    "member(s) are still assigned."
                ]}
            )

    @staticmethod
    async def delete_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        """Deactivate a department; refused while active staff remain in it."""
        department = await DepartmentService._get(db, department_id)
        await DepartmentService._ensure_empty(db, department)

        department.is_active = False
        department.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return await DepartmentService._build_response(db, department)

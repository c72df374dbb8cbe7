"""Disciplinary service layer — case lifecycle, sanctions, responses, appeals.

Status moves forward only (open → under-review → resolved), except for the
appeal branch: a resolved case may be appealed once (resolved → appealed)
and the appeal decision returns it to resolved.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wardstaff.auth.service import Actor
from wardstaff.common.audit import create_audit_entry
from wardstaff.common.constants import (
    AppealDecision,
    Capability,
    CaseStatus,
    InfractionType,
    Sanction,
)
from wardstaff.common.exceptions import (
    ForbiddenException,
    InvalidTransitionError,
    NotFoundException,
    ValidationException,
)
from wardstaff.common.pagination import PaginatedResponse, PaginationParams, paginate
from wardstaff.disciplinary.models import DisciplinaryCase
from wardstaff.disciplinary.schemas import (
    AppealOut,
    CaseOpenRequest,
    CaseOut,
    CaseStats,
    CaseUpdateRequest,
)
from wardstaff.notifications.service import (
    notify_case_opened,
    notify_case_resolved,
    notify_sanction,
)
from wardstaff.staff.models import StaffMember
from wardstaff.staff.service import ensure_supervises, visible_staff_ids

logger = logging.getLogger(__name__)

# Transitions reachable through a direct status change.  ``appealed`` is
# entered only through :meth:`DisciplinaryService.appeal`.
ALLOWED_TRANSITIONS: dict[CaseStatus, frozenset[CaseStatus]] = {
    CaseStatus.open: frozenset({CaseStatus.under_review, CaseStatus.resolved}),
    CaseStatus.under_review: frozenset({CaseStatus.resolved}),
    CaseStatus.resolved: frozenset(),
    CaseStatus.appealed: frozenset({CaseStatus.resolved}),
}


def check_transition(current: CaseStatus, target: CaseStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError("DisciplinaryCase", current, target)


def build_case_out(case: DisciplinaryCase) -> CaseOut:
    out = CaseOut.model_validate(case)
    out.appeal = AppealOut(
        has_appealed=case.has_appealed,
        appeal_details=case.appeal_details,
        appeal_date=case.appeal_date,
        appeal_decision=case.appeal_decision,
        appeal_decision_details=case.appeal_decision_details,
        appeal_decided_by=case.appeal_decided_by,
        appeal_decision_date=case.appeal_decision_date,
    )
    return out


# ═════════════════════════════════════════════════════════════════════
# DisciplinaryService
# ═════════════════════════════════════════════════════════════════════


class DisciplinaryService:
    """Async disciplinary-case operations."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load(db: AsyncSession, case_id: uuid.UUID) -> DisciplinaryCase:
        result = await db.execute(
            select(DisciplinaryCase)
            .where(DisciplinaryCase.id == case_id)
            .options(
                selectinload(DisciplinaryCase.staff),
                selectinload(DisciplinaryCase.reporter),
            )
            .execution_options(populate_existing=True)
        )
        case = result.scalars().first()
        if case is None:
            raise NotFoundException("DisciplinaryCase", str(case_id))
        return case

    @staticmethod
    async def _ensure_manager(db: AsyncSession, actor: Actor, case: DisciplinaryCase) -> None:
        await ensure_supervises(
            db, actor, case.staff_id,
            any_cap=Capability.disciplinary_manage_any,
            team_cap=Capability.disciplinary_manage_team,
            action="manage disciplinary cases",
        )

    @staticmethod
    def _ensure_owner(actor: Actor, case: DisciplinaryCase, action: str) -> None:
        if case.staff_id != actor.id or not actor.can(Capability.disciplinary_respond):
            raise ForbiddenException(f"Only the staff member concerned can {action}.")

    @staticmethod
    async def _visible(db: AsyncSession, actor: Actor) -> Optional[list[uuid.UUID]]:
        return await visible_staff_ids(
            db, actor,
            all_cap=Capability.disciplinary_read_all,
            team_cap=Capability.disciplinary_read_team,
            own_cap=Capability.disciplinary_read_own,
        )

    @staticmethod
    def _mark_resolved(case: DisciplinaryCase, actor: Actor, now: datetime, action_taken: Optional[str]) -> None:
        if case.status == CaseStatus.appealed and case.appeal_decision is None:
            # closing an appeal without decide_appeal leaves the sanction standing
            case.appeal_decision = AppealDecision.dismissed
            case.appeal_decision_details = "Closed by resolution without a separate appeal decision."
            case.appeal_decided_by = actor.id
            case.appeal_decision_date = now
        case.status = CaseStatus.resolved
        case.resolved_at = now
        if action_taken:
            case.action_taken = action_taken
        case.action_taken_by = actor.id
        case.action_date = now

    # ─────────────────────────────────────────────────────────────────
    # Open
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def open_case(
        db: AsyncSession,
        actor: Actor,
        data: CaseOpenRequest,
    ) -> CaseOut:
        """Open a case against a staff member and send them the warning notice."""

        staff = await db.get(StaffMember, data.staff_id)
        if staff is None:
            raise NotFoundException("StaffMember", str(data.staff_id))
        if staff.id == actor.id:
            raise ValidationException({"staff_id": ["You cannot open a case against yourself."]})
        if not actor.can(Capability.disciplinary_read_all):
            await ensure_supervises(
                db, actor, staff.id,
                any_cap=Capability.disciplinary_manage_any,
                team_cap=Capability.disciplinary_manage_team,
                action="open disciplinary cases",
            )

        case = DisciplinaryCase(
            staff_id=staff.id,
            infraction_type=data.infraction_type,
            description=data.description.strip(),
            date_of_infraction=data.date_of_infraction,
            reported_by=actor.id,
            status=CaseStatus.open,
            has_appealed=False,
        )
        db.add(case)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            new_values={
                "staff_id": case.staff_id,
                "infraction_type": case.infraction_type,
                "date_of_infraction": case.date_of_infraction,
            },
        )
        logger.info("disciplinary case %s opened against %s by %s", case.id, staff.id, actor.id)

        await notify_case_opened(db, case, staff)
        return build_case_out(await DisciplinaryService._load(db, case.id))

    # ─────────────────────────────────────────────────────────────────
    # Update / status / sanction
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def update_case(
        db: AsyncSession,
        case_id: uuid.UUID,
        actor: Actor,
        data: CaseUpdateRequest,
    ) -> CaseOut:
        """Edit free-text fields; a changed ``status`` must follow the transition table."""

        case = await DisciplinaryService._load(db, case_id)
        await DisciplinaryService._ensure_manager(db, actor, case)

        changes = data.model_dump(exclude_unset=True)
        target = changes.pop("status", None)
        if target is not None and target != case.status:
            check_transition(case.status, target)

        now = datetime.now(timezone.utc)
        old_values = {k: getattr(case, k) for k in changes}
        old_values["status"] = case.status
        for field, value in changes.items():
            setattr(case, field, value)
        if "sanction" in changes:
            case.sanction_date = now
        if target is not None and target != case.status:
            if target == CaseStatus.resolved:
                DisciplinaryService._mark_resolved(case, actor, now, changes.get("action_taken"))
            else:
                case.status = target
        case.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values={**changes, "status": case.status},
        )
        if target == CaseStatus.resolved and old_values["status"] != CaseStatus.resolved:
            await notify_case_resolved(db, case, case.staff)
        return build_case_out(await DisciplinaryService._load(db, case.id))

    @staticmethod
    async def change_status(
        db: AsyncSession,
        case_id: uuid.UUID,
        actor: Actor,
        target: CaseStatus,
        *,
        action_taken: Optional[str] = None,
    ) -> CaseOut:
        """Move a case to *target*; same-status requests are invalid transitions."""
        if target == CaseStatus.resolved:
            return await DisciplinaryService.resolve(db, case_id, actor, action_taken=action_taken)

        case = await DisciplinaryService._load(db, case_id)
        await DisciplinaryService._ensure_manager(db, actor, case)
        check_transition(case.status, target)

        old_status = case.status
        case.status = target
        case.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="status_change",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            old_values={"status": old_status},
            new_values={"status": target},
        )
        logger.info("case %s %s -> %s", case.id, old_status.value, target.value)
        return build_case_out(await DisciplinaryService._load(db, case.id))

    @staticmethod
    async def set_sanction(
        db: AsyncSession,
        case_id: uuid.UUID,
        actor: Actor,
        sanction: Sanction,
        *,
        details: Optional[str] = None,
        remedial_measures: Optional[str] = None,
    ) -> CaseOut:
        """Record a sanction and notify the staff member."""

        case = await DisciplinaryService._load(db, case_id)
        await DisciplinaryService._ensure_manager(db, actor, case)

        now = datetime.now(timezone.utc)
        old_values = {"sanction": case.sanction, "sanction_details": case.sanction_details}
        case.sanction = sanction
        case.sanction_details = details
        if remedial_measures is not None:
            case.remedial_measures = remedial_measures
        case.sanction_date = now
        case.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="sanction",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values={"sanction": sanction, "sanction_details": details},
        )
        await notify_sanction(db, case, case.staff)
        return build_case_out(await DisciplinaryService._load(db, case.id))

    # ─────────────────────────────────────────────────────────────────
    # Resolve
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def resolve(
        db: AsyncSession,
        case_id: uuid.UUID,
        actor: Actor,
        *,
        action_taken: Optional[str] = None,
    ) -> CaseOut:
        """Resolve an open, under-review or appealed case.

        Resolving a case that is already resolved raises
        :class:`InvalidTransitionError`.
        """
        case = await DisciplinaryService._load(db, case_id)
        await DisciplinaryService._ensure_manager(db, actor, case)
        check_transition(case.status, CaseStatus.resolved)

        old_status = case.status
        now = datetime.now(timezone.utc)
        DisciplinaryService._mark_resolved(case, actor, now, action_taken)
        case.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="resolve",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            old_values={"status": old_status},
            new_values={"status": CaseStatus.resolved, "action_taken": case.action_taken},
        )
        logger.info("case %s resolved by %s", case.id, actor.id)

        await notify_case_resolved(db, case, case.staff)
        return build_case_out(await DisciplinaryService._load(db, case.id))

    # ─────────────────────────────────────────────────────────────────
    # Staff response
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def respond(
        db: AsyncSession,
        case_id: uuid.UUID,
        actor: Actor,
        response: str,
    ) -> CaseOut:
        """Record the staff member's written response; an open case moves to under-review."""

        case = await DisciplinaryService._load(db, case_id)
        DisciplinaryService._ensure_owner(actor, case, "respond to this case")
        if not response.strip():
            raise ValidationException({"response": ["Response cannot be blank."]})

        now = datetime.now(timezone.utc)
        old_status = case.status
        case.staff_response = response.strip()
        case.response_date = now
        if case.status == CaseStatus.open:
            case.status = CaseStatus.under_review
        case.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="respond",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            old_values={"status": old_status},
            new_values={"status": case.status},
        )
        return build_case_out(await DisciplinaryService._load(db, case.id))

    # ─────────────────────────────────────────────────────────────────
    # Appeal
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def appeal(
        db: AsyncSession,
        case_id: uuid.UUID,
        actor: Actor,
        appeal_details: str,
    ) -> CaseOut:
        """Lodge the single allowed appeal against a resolved case."""

        case = await DisciplinaryService._load(db, case_id)
        DisciplinaryService._ensure_owner(actor, case, "appeal this case")
        if case.has_appealed:
            raise ValidationException({"appeal": ["An appeal has already been lodged for this case."]})
        if case.status != CaseStatus.resolved:
            raise InvalidTransitionError("DisciplinaryCase", case.status, CaseStatus.appealed)
        if not appeal_details.strip():
            raise ValidationException({"appeal_details": ["Appeal details cannot be blank."]})

        now = datetime.now(timezone.utc)
        case.has_appealed = True
        case.appeal_details = appeal_details.strip()
        case.appeal_date = now
        case.status = CaseStatus.appealed
        case.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="appeal",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            old_values={"status": CaseStatus.resolved},
            new_values={"status": CaseStatus.appealed},
        )
        logger.info("case %s appealed by %s", case.id, actor.id)
        return build_case_out(await DisciplinaryService._load(db, case.id))

    @staticmethod
    async def decide_appeal(
        db: AsyncSession,
        case_id: uuid.UUID,
        actor: Actor,
        decision: AppealDecision,
        *,
        details: Optional[str] = None,
    ) -> CaseOut:
        """Decide a pending appeal.  The case returns to resolved; ``upheld`` lifts the sanction."""

        case = await DisciplinaryService._load(db, case_id)
        await DisciplinaryService._ensure_manager(db, actor, case)
        if case.status != CaseStatus.appealed:
            raise InvalidTransitionError("DisciplinaryCase", case.status, CaseStatus.resolved)

        now = datetime.now(timezone.utc)
        old_values = {"status": case.status, "sanction": case.sanction}
        case.appeal_decision = decision
        case.appeal_decision_details = details
        case.appeal_decided_by = actor.id
        case.appeal_decision_date = now
        if decision == AppealDecision.upheld:
            case.sanction = Sanction.none
            case.sanction_details = "Reversed on appeal."
            case.sanction_date = now
        case.status = CaseStatus.resolved
        case.resolved_at = now
        case.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="appeal_decision",
            entity_type="disciplinary_case",
            entity_id=case.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values={"status": case.status, "sanction": case.sanction, "decision": decision},
        )
        logger.info("appeal on case %s %s by %s", case.id, decision.value, actor.id)
        return build_case_out(await DisciplinaryService._load(db, case.id))

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get(db: AsyncSession, case_id: uuid.UUID, actor: Actor) -> CaseOut:
        case = await DisciplinaryService._load(db, case_id)
        allowed = await DisciplinaryService._visible(db, actor)
        if allowed is not None and case.staff_id not in allowed:
            raise ForbiddenException("You cannot view this disciplinary case.")
        return build_case_out(case)

    @staticmethod
    async def list_cases(
        db: AsyncSession,
        actor: Actor,
        pagination: PaginationParams,
        *,
        status: Optional[CaseStatus] = None,
        infraction_type: Optional[InfractionType] = None,
        staff_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        query = select(DisciplinaryCase).options(
            selectinload(DisciplinaryCase.staff),
            selectinload(DisciplinaryCase.reporter),
        ).order_by(DisciplinaryCase.created_at.desc())

        allowed = await DisciplinaryService._visible(db, actor)
        if allowed is not None:
            query = query.where(DisciplinaryCase.staff_id.in_(allowed))
        if status:
            query = query.where(DisciplinaryCase.status == status)
        if infraction_type:
            query = query.where(DisciplinaryCase.infraction_type == infraction_type)
        if staff_id:
            query = query.where(DisciplinaryCase.staff_id == staff_id)

        page = await paginate(db, query, pagination, model=DisciplinaryCase)
        return PaginatedResponse[CaseOut](
            data=[build_case_out(c) for c in page.data],
            meta=page.meta,
        )

    @staticmethod
    async def stats(db: AsyncSession, actor: Actor) -> CaseStats:
        """Case counts by status, infraction type and sanction."""
        allowed = await DisciplinaryService._visible(db, actor)

        def _grouped(column):
            query = select(column, func.count()).group_by(column)
            if allowed is not None:
                query = query.where(DisciplinaryCase.staff_id.in_(allowed))
            return query

        by_status = {s.value: 0 for s in CaseStatus}
        for status, n in (await db.execute(_grouped(DisciplinaryCase.status))).all():
            by_status[status.value] = n

        by_type = {t.value: 0 for t in InfractionType}
        for infraction, n in (await db.execute(_grouped(DisciplinaryCase.infraction_type))).all():
            by_type[infraction.value] = n

        by_sanction: dict[str, int] = {}
        for sanction, n in (await db.execute(_grouped(DisciplinaryCase.sanction))).all():
            if sanction is not None:
                by_sanction[sanction.value] = n

        appealed_q = select(func.count()).select_from(DisciplinaryCase).where(
            DisciplinaryCase.has_appealed.is_(True)
        )
        if allowed is not None:
            appealed_q = appealed_q.where(DisciplinaryCase.staff_id.in_(allowed))
        appealed = (await db.execute(appealed_q)).scalar() or 0

        return CaseStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_infraction_type=by_type,
            by_sanction=by_sanction,
            appealed=appealed,
        )

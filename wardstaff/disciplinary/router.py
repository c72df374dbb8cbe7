"""Disciplinary router — case lifecycle, sanctions, staff responses, appeals.

Endpoints (mounted at ``/api/v1/disciplinary``):
    POST   /                         open a case
    GET    /                         list visible cases
    GET    /stats                    counts by status / type / sanction
    GET    /{id}                     case detail
    PUT    /{id}                     edit case fields
    PUT    /{id}/status              status transition
    POST   /{id}/sanction            record a sanction
    POST   /{id}/response            staff member's written response
    POST   /{id}/appeal              lodge an appeal
    POST   /{id}/appeal/decision     decide an appeal
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.auth.dependencies import get_current_actor, require_capability
from wardstaff.auth.service import Actor
from wardstaff.common.constants import Capability, CaseStatus, InfractionType
from wardstaff.common.pagination import PaginatedResponse, PaginationParams
from wardstaff.database import get_db
from wardstaff.disciplinary.schemas import (
    AppealDecisionRequest,
    AppealRequest,
    CaseOpenRequest,
    CaseOut,
    CaseStats,
    CaseStatusRequest,
    CaseUpdateRequest,
    SanctionRequest,
    StaffResponseRequest,
)
from wardstaff.disciplinary.service import DisciplinaryService

router = APIRouter(prefix="", tags=["disciplinary"])

_manage = require_capability(
    Capability.disciplinary_manage_any, Capability.disciplinary_manage_team,
)


@router.post("", response_model=CaseOut, status_code=201)
async def open_case(
    body: CaseOpenRequest,
    actor: Actor = Depends(require_capability(Capability.disciplinary_open)),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.open_case(db, actor, body)


@router.get("", response_model=PaginatedResponse[CaseOut])
async def list_cases(
    pagination: PaginationParams = Depends(),
    status: Optional[CaseStatus] = Query(None),
    infraction_type: Optional[InfractionType] = Query(None),
    staff_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.list_cases(
        db, actor, pagination,
        status=status, infraction_type=infraction_type, staff_id=staff_id,
    )


@router.get("/stats", response_model=CaseStats)
async def case_stats(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.stats(db, actor)


@router.get("/{case_id}", response_model=CaseOut)
async def get_case(
    case_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.get(db, case_id, actor)


@router.put("/{case_id}", response_model=CaseOut)
async def update_case(
    case_id: uuid.UUID,
    body: CaseUpdateRequest,
    actor: Actor = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.update_case(db, case_id, actor, body)


@router.put("/{case_id}/status", response_model=CaseOut)
async def change_status(
    case_id: uuid.UUID,
    body: CaseStatusRequest,
    actor: Actor = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    """Forward-only; resolving an already resolved case is rejected with 409."""
    return await DisciplinaryService.change_status(
        db, case_id, actor, body.status, action_taken=body.action_taken,
    )


@router.post("/{case_id}/sanction", response_model=CaseOut)
async def set_sanction(
    case_id: uuid.UUID,
    body: SanctionRequest,
    actor: Actor = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.set_sanction(
        db, case_id, actor, body.sanction,
        details=body.sanction_details, remedial_measures=body.remedial_measures,
    )


@router.post("/{case_id}/response", response_model=CaseOut)
async def respond(
    case_id: uuid.UUID,
    body: StaffResponseRequest,
    actor: Actor = Depends(require_capability(Capability.disciplinary_respond)),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.respond(db, case_id, actor, body.response)


@router.post("/{case_id}/appeal", response_model=CaseOut)
async def appeal(
    case_id: uuid.UUID,
    body: AppealRequest,
    actor: Actor = Depends(require_capability(Capability.disciplinary_respond)),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.appeal(db, case_id, actor, body.appeal_details)


@router.post("/{case_id}/appeal/decision", response_model=CaseOut)
async def decide_appeal(
    case_id: uuid.UUID,
    body: AppealDecisionRequest,
    actor: Actor = Depends(_manage),
    db: AsyncSession = Depends(get_db),
):
    return await DisciplinaryService.decide_appeal(
        db, case_id, actor, body.decision, details=body.decision_details,
    )

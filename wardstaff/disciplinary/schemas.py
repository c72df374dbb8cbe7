"""Disciplinary Pydantic v2 schemas — request / response validation."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from wardstaff.common.constants import (
    AppealDecision,
    CaseStatus,
    InfractionType,
    Sanction,
)
from wardstaff.staff.schemas import StaffBrief


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class CaseOpenRequest(BaseModel):
    staff_id: uuid.UUID
    infraction_type: InfractionType
    description: str = Field(..., min_length=1, max_length=5000)
    date_of_infraction: date


class CaseUpdateRequest(BaseModel):
    """Free-text edits plus an optional status transition."""

    description: Optional[str] = Field(None, min_length=1, max_length=5000)
    sanction: Optional[Sanction] = None
    sanction_details: Optional[str] = None
    remedial_measures: Optional[str] = None
    action_taken: Optional[str] = None
    status: Optional[CaseStatus] = None


class CaseStatusRequest(BaseModel):
    status: CaseStatus
    action_taken: Optional[str] = None


class SanctionRequest(BaseModel):
    sanction: Sanction
    sanction_details: Optional[str] = None
    remedial_measures: Optional[str] = None


class StaffResponseRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=5000)


class AppealRequest(BaseModel):
    appeal_details: str = Field(..., min_length=1, max_length=5000)


class AppealDecisionRequest(BaseModel):
    decision: AppealDecision
    decision_details: Optional[str] = Field(None, max_length=5000)


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class AppealOut(BaseModel):
    has_appealed: bool = False
    appeal_details: Optional[str] = None
    appeal_date: Optional[datetime] = None
    appeal_decision: Optional[AppealDecision] = None
    appeal_decision_details: Optional[str] = None
    appeal_decided_by: Optional[uuid.UUID] = None
    appeal_decision_date: Optional[datetime] = None


class CaseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    staff_id: uuid.UUID
    infraction_type: InfractionType
    description: str
    date_of_infraction: date
    reported_by: uuid.UUID
    status: CaseStatus
    sanction: Optional[Sanction] = None
    sanction_details: Optional[str] = None
    sanction_date: Optional[datetime] = None
    remedial_measures: Optional[str] = None
    staff_response: Optional[str] = None
    response_date: Optional[datetime] = None
    action_taken: Optional[str] = None
    action_taken_by: Optional[uuid.UUID] = None
    action_date: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    appeal: AppealOut = Field(default_factory=AppealOut)
    staff: Optional[StaffBrief] = None
    reporter: Optional[StaffBrief] = None


class CaseStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_infraction_type: dict[str, int]
    by_sanction: dict[str, int]
    appealed: int

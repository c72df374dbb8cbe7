"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request            → request bodies (write)
  - *Out / *Response    → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from wardstaff.common.constants import LeaveStatus, LeaveType
from wardstaff.staff.schemas import StaffBrief


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class LeaveApplyRequest(BaseModel):
    """Payload for applying for leave (dates are inclusive)."""

    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(..., max_length=1000)


class LeaveDecisionRequest(BaseModel):
    status: Literal["approved", "rejected"]
    rejection_reason: Optional[str] = Field(None, max_length=1000)


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class LeaveOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    staff_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    number_of_days: int
    reason: str
    status: LeaveStatus
    approved_by: Optional[uuid.UUID] = None
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    staff: Optional[StaffBrief] = None
    approver: Optional[StaffBrief] = None


class LeaveBalanceItem(BaseModel):
    """Balance for one leave type; ``remaining`` may go negative."""

    leave_type: LeaveType
    allocated: int
    used: int
    pending: int
    remaining: int
    exceeded: bool


class LeaveBalanceResponse(BaseModel):
    staff_id: uuid.UUID
    year: int
    balances: list[LeaveBalanceItem]


class LeaveTypeDays(BaseModel):
    approved: int = 0
    pending: int = 0


class LeaveStats(BaseModel):
    staff_id: Optional[uuid.UUID] = None
    year: Optional[int] = None
    total: int
    counts: dict[str, int]
    days_by_type: dict[str, LeaveTypeDays]

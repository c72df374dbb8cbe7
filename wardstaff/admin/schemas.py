"""Admin Pydantic v2 schemas — dashboard counters and audit-log entries."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# ═════════════════════════════════════════════════════════════════════
# GET /dashboard
# ═════════════════════════════════════════════════════════════════════


class DepartmentHeadcount(BaseModel):
    department_id: uuid.UUID
    department_name: str
    count: int = 0


class DashboardResponse(BaseModel):
    """Headline counters for the admin dashboard."""

    as_of: date
    total_staff: int = Field(..., description="Active staff members")
    inactive_staff: int = 0
    departments: int = Field(..., description="Active departments")
    present_today: int = 0
    absent_today: int = 0
    on_leave_today: int = Field(0, description="Approved leave covering today")
    pending_leave: int = 0
    open_cases: int = Field(0, description="Disciplinary cases open or under review")
    appealed_cases: int = 0
    headcount: list[DepartmentHeadcount] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# GET /audit-log
# ═════════════════════════════════════════════════════════════════════


class AuditLogItem(BaseModel):
    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    actor_name: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    created_at: datetime


class SeedResult(BaseModel):
    message: str
    created: int

"""Report Pydantic schemas."""


import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from wardstaff.common.constants import ReportType


class ReportFilters(BaseModel):
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    department_id: Optional[uuid.UUID] = None


class ReportResponse(BaseModel):
    report_type: ReportType
    generated_at: datetime
    filters: ReportFilters
    columns: list[str]
    count: int
    rows: list[dict[str, Any]] = Field(default_factory=list)

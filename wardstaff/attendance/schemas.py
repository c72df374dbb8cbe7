"""Attendance Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request            → request bodies (write)
  - *Response / *Out    → response bodies (read)
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from wardstaff.common.constants import AttendanceStatus
from wardstaff.staff.schemas import StaffBrief


# ═════════════════════════════════════════════════════════════════════
# Marking
# ═════════════════════════════════════════════════════════════════════


class AttendanceMarkRequest(BaseModel):
    """Mark (or re-mark) one staff member for one day."""

    staff_id: uuid.UUID
    date: date
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    remarks: Optional[str] = Field(None, max_length=1000)


class BulkAttendanceEntry(BaseModel):
    staff_id: uuid.UUID
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    remarks: Optional[str] = Field(None, max_length=1000)


class BulkAttendanceRequest(BaseModel):
    """Apply statuses to many staff members for a single date."""

    date: date
    entries: list[BulkAttendanceEntry] = Field(..., min_length=1, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Records
# ═════════════════════════════════════════════════════════════════════


class AttendanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    staff_id: uuid.UUID
    date: date
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    hours_worked: Optional[Decimal] = None
    remarks: Optional[str] = None
    marked_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    staff: Optional[StaffBrief] = None


class BulkAttendanceError(BaseModel):
    staff_id: uuid.UUID
    error: str


class BulkAttendanceResponse(BaseModel):
    """Best-effort outcome: successful entries are kept even when others fail."""

    success: int
    failed: int
    results: list[AttendanceOut]
    errors: list[BulkAttendanceError]


# ═════════════════════════════════════════════════════════════════════
# Statistics
# ═════════════════════════════════════════════════════════════════════


class DailyAttendance(BaseModel):
    date: date
    total: int
    counts: dict[str, int]


class AttendanceStats(BaseModel):
    from_date: date
    to_date: date
    total_records: int
    counts: dict[str, int]
    attendance_percentage: float
    average_hours: float
    daily: list[DailyAttendance]

"""Report service — tabular exports of staff, attendance, leave and disciplinary data.

Each report is a list of flat rows sharing one column order, so the same
result can be returned as JSON or written out as CSV.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from wardstaff.attendance.models import AttendanceRecord
from wardstaff.common.audit import jsonable
from wardstaff.common.constants import ReportType
from wardstaff.common.exceptions import ValidationException
from wardstaff.disciplinary.models import DisciplinaryCase
from wardstaff.leave.models import LeaveApplication
from wardstaff.reports.schemas import ReportFilters, ReportResponse
from wardstaff.staff.models import StaffMember

logger = logging.getLogger(__name__)


STAFF_COLUMNS = [
    "employee_id", "first_name", "last_name", "email", "role", "position",
    "department", "supervisor", "date_of_joining", "is_active",
]
ATTENDANCE_COLUMNS = [
    "date", "employee_id", "staff_name", "department", "status",
    "check_in_time", "check_out_time", "hours_worked", "remarks",
]
LEAVE_COLUMNS = [
    "employee_id", "staff_name", "department", "leave_type", "start_date",
    "end_date", "number_of_days", "status", "approved_by", "decided_at",
    "rejection_reason",
]
DISCIPLINARY_COLUMNS = [
    "employee_id", "staff_name", "department", "infraction_type",
    "date_of_infraction", "status", "sanction", "sanction_date",
    "reported_by", "resolved_at", "has_appealed", "appeal_decision",
]


def _dept_name(staff: Optional[StaffMember]) -> Optional[str]:
    if staff is None or staff.department is None:
        return None
    return staff.department.name


def _full_name(staff: Optional[StaffMember]) -> Optional[str]:
    return staff.full_name if staff is not None else None


def _staff_row(s: StaffMember) -> dict[str, Any]:
    return {
        "employee_id": s.employee_id,
        "first_name": s.first_name,
        "last_name": s.last_name,
        "email": s.email,
        "role": s.role,
        "position": s.position,
        "department": _dept_name(s),
        "supervisor": _full_name(s.supervisor),
        "date_of_joining": s.date_of_joining,
        "is_active": s.is_active,
    }


def _attendance_row(r: AttendanceRecord) -> dict[str, Any]:
    return {
        "date": r.date,
        "employee_id": r.staff.employee_id,
        "staff_name": r.staff.full_name,
        "department": _dept_name(r.staff),
        "status": r.status,
        "check_in_time": r.check_in_time,
        "check_out_time": r.check_out_time,
        "hours_worked": r.hours_worked,
        "remarks": r.remarks,
    }


def _leave_row(l: LeaveApplication) -> dict[str, Any]:
    return {
        "employee_id": l.staff.employee_id,
        "staff_name": l.staff.full_name,
        "department": _dept_name(l.staff),
        "leave_type": l.leave_type,
        "start_date": l.start_date,
        "end_date": l.end_date,
        "number_of_days": l.number_of_days,
        "status": l.status,
        "approved_by": _full_name(l.approver),
        "decided_at": l.decided_at,
        "rejection_reason": l.rejection_reason,
    }


def _case_row(c: DisciplinaryCase) -> dict[str, Any]:
    return {
        "employee_id": c.staff.employee_id,
        "staff_name": c.staff.full_name,
        "department": _dept_name(c.staff),
        "infraction_type": c.infraction_type,
        "date_of_infraction": c.date_of_infraction,
        "status": c.status,
        "sanction": c.sanction,
        "sanction_date": c.sanction_date,
        "reported_by": _full_name(c.reporter),
        "resolved_at": c.resolved_at,
        "has_appealed": c.has_appealed,
        "appeal_decision": c.appeal_decision,
    }


class ReportService:
    """Build report rows and render them as JSON payloads or CSV text."""

    @staticmethod
    def _validate(filters: ReportFilters) -> None:
        if filters.from_date and filters.to_date and filters.from_date > filters.to_date:
            raise ValidationException({"from_date": ["from_date must be on or before to_date."]})

    @staticmethod
    def _staff_query(filters: ReportFilters) -> Select:
        query = (
            select(StaffMember)
            .options(
                selectinload(StaffMember.department),
                selectinload(StaffMember.supervisor),
            )
            .order_by(StaffMember.employee_id)
        )
        if filters.department_id:
            query = query.where(StaffMember.department_id == filters.department_id)
        if filters.from_date:
            query = query.where(StaffMember.date_of_joining >= filters.from_date)
        if filters.to_date:
            query = query.where(StaffMember.date_of_joining <= filters.to_date)
        return query

    @staticmethod
    def _owned_query(model: Any, date_column: Any, filters: ReportFilters, *extra_loads) -> Select:
        """Query *model* rows owned by a staff member, filtered by department and date."""
        query = select(model).options(
            selectinload(model.staff).selectinload(StaffMember.department),
            *extra_loads,
        )
        if filters.department_id:
            query = query.join(StaffMember, model.staff_id == StaffMember.id).where(
                StaffMember.department_id == filters.department_id
            )
        if filters.from_date:
            query = query.where(date_column >= filters.from_date)
        if filters.to_date:
            query = query.where(date_column <= filters.to_date)
        return query.order_by(date_column, model.created_at)

    @staticmethod
    async def build(
        db: AsyncSession,
        report_type: ReportType,
        filters: ReportFilters,
    ) -> ReportResponse:
        """Collect the rows for *report_type* under *filters*."""
        ReportService._validate(filters)

        columns: list[str]
        to_row: Callable[[Any], dict[str, Any]]
        if report_type == ReportType.staff:
            query = ReportService._staff_query(filters)
            columns, to_row = STAFF_COLUMNS, _staff_row
        elif report_type == ReportType.attendance:
            query = ReportService._owned_query(
                AttendanceRecord, AttendanceRecord.date, filters,
            )
            columns, to_row = ATTENDANCE_COLUMNS, _attendance_row
        elif report_type == ReportType.leave:
            query = ReportService._owned_query(
                LeaveApplication, LeaveApplication.start_date, filters,
                selectinload(LeaveApplication.approver),
            )
            columns, to_row = LEAVE_COLUMNS, _leave_row
        else:
            query = ReportService._owned_query(
                DisciplinaryCase, DisciplinaryCase.date_of_infraction, filters,
                selectinload(DisciplinaryCase.reporter),
            )
            columns, to_row = DISCIPLINARY_COLUMNS, _case_row

        records = (await db.execute(query)).scalars().all()
        rows = [jsonable(to_row(r)) for r in records]
        logger.info("%s report generated with %d rows", report_type.value, len(rows))

        return ReportResponse(
            report_type=report_type,
            generated_at=datetime.now(timezone.utc),
            filters=filters,
            columns=columns,
            count=len(rows),
            rows=rows,
        )

    @staticmethod
    def to_csv(report: ReportResponse) -> str:
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=report.columns, extrasaction="ignore")
        writer.writeheader()
        for row in report.rows:
            writer.writerow({k: "" if v is None else v for k, v in row.items()})
        return buf.getvalue()

    @staticmethod
    def filename(report: ReportResponse) -> str:
        stamp = report.generated_at.strftime("%Y%m%d")
        return f"{report.report_type.value}_report_{stamp}.csv"

"""Enums and constants for Ward Staff — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    admin = "admin"
    clerk = "clerk"
    supervisor = "supervisor"
    staff = "staff"


class Capability(str, enum.Enum):
    """Fine-grained permissions resolved from a role once per request."""

    profile_read_own = "profile:read_own"

    staff_read_team = "staff:read_team"
    staff_read_all = "staff:read_all"
    staff_manage = "staff:manage"

    department_read = "department:read"
    department_manage = "department:manage"

    attendance_read_own = "attendance:read_own"
    attendance_read_team = "attendance:read_team"
    attendance_read_all = "attendance:read_all"
    attendance_mark_team = "attendance:mark_team"
    attendance_mark_any = "attendance:mark_any"
    attendance_mark_bulk = "attendance:mark_bulk"

    leave_apply = "leave:apply"
    leave_read_own = "leave:read_own"
    leave_read_team = "leave:read_team"
    leave_read_all = "leave:read_all"
    leave_decide_team = "leave:decide_team"
    leave_decide_any = "leave:decide_any"

    disciplinary_read_own = "disciplinary:read_own"
    disciplinary_read_team = "disciplinary:read_team"
    disciplinary_read_all = "disciplinary:read_all"
    disciplinary_open = "disciplinary:open"
    disciplinary_manage_team = "disciplinary:manage_team"
    disciplinary_manage_any = "disciplinary:manage_any"
    disciplinary_respond = "disciplinary:respond"

    report_generate = "report:generate"
    email_send = "email:send"
    email_template_manage = "email_template:manage"
    audit_read = "audit:read"
    dashboard_admin = "dashboard:admin"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    leave = "leave"
    off_duty = "off-duty"
    sick = "sick"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    annual = "annual"
    sick = "sick"
    maternity = "maternity"
    paternity = "paternity"
    compassionate = "compassionate"
    study = "study"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


# ── Disciplinary ────────────────────────────────────────────────────

class InfractionType(str, enum.Enum):
    minor = "minor"
    major = "major"
    severe = "severe"


class CaseStatus(str, enum.Enum):
    open = "open"
    under_review = "under-review"
    resolved = "resolved"
    appealed = "appealed"


class Sanction(str, enum.Enum):
    warning = "warning"
    suspension = "suspension"
    demotion = "demotion"
    termination = "termination"
    none = "none"


class AppealDecision(str, enum.Enum):
    upheld = "upheld"
    dismissed = "dismissed"


# ── Reports ─────────────────────────────────────────────────────────

class ReportType(str, enum.Enum):
    staff = "staff"
    attendance = "attendance"
    leave = "leave"
    disciplinary = "disciplinary"


class ExportFormat(str, enum.Enum):
    json = "json"
    csv = "csv"


# ── Role-based capabilities ─────────────────────────────────────────

_STAFF_CAPABILITIES: frozenset[Capability] = frozenset({
    Capability.profile_read_own,
    Capability.department_read,
    Capability.attendance_read_own,
    Capability.leave_apply,
    Capability.leave_read_own,
    Capability.disciplinary_read_own,
    Capability.disciplinary_respond,
})

ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.staff: _STAFF_CAPABILITIES,
    UserRole.supervisor: _STAFF_CAPABILITIES | {
        Capability.staff_read_team,
        Capability.attendance_read_team,
        Capability.attendance_mark_team,
        Capability.leave_read_team,
        Capability.leave_decide_team,
        Capability.disciplinary_read_team,
        Capability.disciplinary_open,
        Capability.disciplinary_manage_team,
        Capability.email_send,
    },
    UserRole.clerk: frozenset({
        Capability.profile_read_own,
        Capability.staff_read_all,
        Capability.department_read,
        Capability.attendance_read_all,
        Capability.attendance_mark_any,
        Capability.attendance_mark_bulk,
        Capability.leave_read_all,
        Capability.leave_decide_any,
        Capability.disciplinary_read_all,
        Capability.disciplinary_open,
        Capability.report_generate,
        Capability.email_send,
    }),
    UserRole.admin: frozenset(Capability),
}

# Fixed per-type allocation in days per calendar year (no carry-over).
LEAVE_ALLOCATIONS: dict[LeaveType, int] = {
    LeaveType.annual: 21,
    LeaveType.sick: 30,
    LeaveType.maternity: 90,
    LeaveType.paternity: 14,
    LeaveType.compassionate: 7,
    LeaveType.study: 30,
}

# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%d/%m/%Y"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20

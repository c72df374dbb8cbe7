"""Common module — shared utilities for Ward Staff."""

from wardstaff.common.audit import AuditTrail, TimestampMixin, create_audit_entry
from wardstaff.common.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    LEAVE_ALLOCATIONS,
    MAX_PAGE_SIZE,
    ROLE_CAPABILITIES,
    AppealDecision,
    AttendanceStatus,
    Capability,
    CaseStatus,
    ExportFormat,
    InfractionType,
    LeaveStatus,
    LeaveType,
    ReportType,
    Sanction,
    UserRole,
)
from wardstaff.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidTransitionError,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from wardstaff.common.filters import apply_filters, apply_search, apply_sorting
from wardstaff.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    build_meta,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "TimestampMixin",
    "create_audit_entry",
    # Constants / Enums
    "AppealDecision",
    "AttendanceStatus",
    "Capability",
    "CaseStatus",
    "ExportFormat",
    "InfractionType",
    "LeaveStatus",
    "LeaveType",
    "ReportType",
    "Sanction",
    "UserRole",
    "LEAVE_ALLOCATIONS",
    "ROLE_CAPABILITIES",
    "DATE_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InvalidTransitionError",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    "apply_sorting",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "build_meta",
    "paginate",
]

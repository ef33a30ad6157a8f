"""Common module — shared utilities for the HR portal."""

from hrportal.common.audit import AuditTrail, TimestampMixin, create_audit_entry
from hrportal.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    AttendanceStatus,
    GenderType,
    LeaveStatus,
    NotificationPriority,
    ReportFormat,
    ReportType,
    ScheduleStatus,
    ShiftType,
    UserRole,
)
from hrportal.common.exceptions import (
    AppException,
    BusinessRuleError,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.pagination import (
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
    "AttendanceStatus",
    "GenderType",
    "LeaveStatus",
    "NotificationPriority",
    "ReportFormat",
    "ReportType",
    "ScheduleStatus",
    "ShiftType",
    "UserRole",
    "PERMISSIONS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "BusinessRuleError",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "build_meta",
    "paginate",
]

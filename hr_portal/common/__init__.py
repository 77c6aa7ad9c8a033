"""Common module — shared utilities for the HR portal leave core."""

from hr_portal.common.audit import AuditTrail, create_audit_entry, emit_audit_event
from hr_portal.common.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TIMEZONE,
    AuditAction,
    LeaveAction,
    LeaveStatus,
    NotificationType,
    SourcePolicy,
    UserRole,
)
from hr_portal.common.exceptions import (
    AppException,
    ConcurrentUpdateError,
    ConflictError,
    ForbiddenException,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundException,
    PolicyBucketExhaustedError,
    ValidationException,
    register_exception_handlers,
)
from hr_portal.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    "emit_audit_event",
    # Constants / Enums
    "AuditAction",
    "LeaveAction",
    "LeaveStatus",
    "NotificationType",
    "SourcePolicy",
    "UserRole",
    "DATE_FORMAT",
    "TIMEZONE",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConcurrentUpdateError",
    "ConflictError",
    "ForbiddenException",
    "InsufficientBalanceError",
    "InvalidTransitionError",
    "NotFoundException",
    "PolicyBucketExhaustedError",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]

"""Enums and constants for the HR portal — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    director = "director"
    department_head = "department_head"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending_director = "pending_director"
    pending_department_head = "pending_department_head"
    approved = "approved"
    rejected = "rejected"


TERMINAL_LEAVE_STATUSES = frozenset({LeaveStatus.approved, LeaveStatus.rejected})
OPEN_LEAVE_STATUSES = frozenset({
    LeaveStatus.pending_director,
    LeaveStatus.pending_department_head,
    LeaveStatus.approved,
})


class LeaveAction(str, enum.Enum):
    director_approve = "director_approve"
    department_head_approve = "department_head_approve"
    reject = "reject"


class SourcePolicy(str, enum.Enum):
    """Which ledger bucket absorbs a balance correction."""

    auto = "auto"
    carryover_only = "carryover_only"
    current_only = "current_only"


class CarryoverImportStatus(str, enum.Enum):
    success = "success"
    not_found = "not_found"
    error = "error"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    alert = "alert"


# ── Audit action kinds ──────────────────────────────────────────────

class AuditAction(str, enum.Enum):
    leave_submit = "leave_submit"
    leave_director_approve = "leave_director_approve"
    leave_approve = "leave_approve"
    leave_reject = "leave_reject"
    leave_edit = "leave_edit"
    leave_delete = "leave_delete"
    leave_reversal_skipped = "leave_reversal_skipped"
    leave_bonus_add = "leave_bonus_add"
    leave_bonus_delete = "leave_bonus_delete"
    bulk_leave_carryover_import = "bulk_leave_carryover_import"
    custom_holiday_add = "custom_holiday_add"
    custom_holiday_delete = "custom_holiday_delete"
    approver_assign = "approver_assign"
    delegation_create = "delegation_create"
    delegation_revoke = "delegation_revoke"


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%d.%m.%Y"          # Romanian format: 02.03.2026
TIMEZONE = "Europe/Bucharest"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
WEEKEND_REASON = "weekend"
CUSTOM_HOLIDAY_REASON = "institution holiday"

"""Leave ORM models: the three ledger buckets, LeaveRequest and approver routing.

Ledger buckets:
  - EmployeeLeaveAccount  → annual allocation and days used for one year
  - CarryoverGrant        → unused days moved from a prior year
  - BonusGrant            → additive special grants, never debited

``used_days`` and the carryover counters are written only by
:class:`hr_portal.leave.ledger.LeaveLedger`.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hr_portal.common.constants import LeaveStatus
from hr_portal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Ledger
# ═════════════════════════════════════════════════════════════════════


class EmployeeLeaveAccount(Base):
    __tablename__ = "employee_leave_accounts"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "year", name="uq_leave_account_employee_year"),
        sa.CheckConstraint("used_days >= 0", name="ck_leave_account_used_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    base_allocation_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=21)
    used_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<EmployeeLeaveAccount {self.employee_id} {self.year} "
            f"used={self.used_days}/{self.base_allocation_days}>"
        )


class CarryoverGrant(Base):
    __tablename__ = "leave_carryover_grants"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "from_year", "to_year", name="uq_leave_carryover",
        ),
        sa.CheckConstraint("used_days >= 0", name="ck_carryover_used_non_negative"),
        sa.CheckConstraint("remaining_days >= 0", name="ck_carryover_remaining_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    to_year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    initial_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    used_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    remaining_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )


class BonusGrant(Base):
    __tablename__ = "leave_bonus_grants"
    __table_args__ = (
        sa.CheckConstraint("bonus_days > 0", name="ck_bonus_days_positive"),
        sa.Index("ix_leave_bonus_employee_year", "employee_id", "year"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    bonus_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.String(300), nullable=False)
    legal_basis: Mapped[Optional[str]] = mapped_column(sa.String(300))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )


# ═════════════════════════════════════════════════════════════════════
# Leave request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.UniqueConstraint("year", "sequence", name="uq_leave_request_sequence"),
        sa.CheckConstraint("working_days > 0", name="ck_leave_request_days_positive"),
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    request_number: Mapped[str] = mapped_column(sa.String(30), unique=True, nullable=False)
    sequence: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Canonical link to the ledger, resolved once at submission
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employee_leave_accounts.id", ondelete="SET NULL"),
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    working_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    replacement_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending_director,
    )
    # Routed director-stage approver; None means any director may act
    approver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── Signatures ──────────────────────────────────────────────────
    employee_signed_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    director_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    director_signed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    department_head_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    department_head_signed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    rejected_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    # ── HR corrections ──────────────────────────────────────────────
    last_edited_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    last_edited_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.request_number} {self.status.value}>"


# ═════════════════════════════════════════════════════════════════════
# Approver routing
# ═════════════════════════════════════════════════════════════════════


class LeaveApprover(Base):
    """Designated director-stage approver for one employee."""

    __tablename__ = "leave_approvers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )


class DepartmentApprover(Base):
    """Fallback director-stage approver for everyone in a department."""

    __tablename__ = "leave_department_approvers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    department_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("departments.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )


class ApprovalDelegate(Base):
    """Temporary hand-over of an approver's authority to a colleague."""

    __tablename__ = "leave_approval_delegates"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_delegate_window"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    delegator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    delegate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

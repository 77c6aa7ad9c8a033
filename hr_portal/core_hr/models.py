"""Core HR ORM models: Department, Employee.

The portal's identity directory. Rosters are imported by an external
collaborator; the leave core only reads names, departments and positions.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_portal.database import Base

if TYPE_CHECKING:
    from hr_portal.auth.models import RoleAssignment


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base):
    """Organisational department (compartiment)."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    code: Mapped[Optional[str]] = mapped_column(sa.String(20), unique=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    employees: Mapped[list[Employee]] = relationship(
        back_populates="department", foreign_keys="Employee.department_id",
    )

    def __repr__(self) -> str:
        return f"<Department {self.name!r} ({self.code})>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Portal user / staff member."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[str] = mapped_column(
        sa.String(20), unique=True, nullable=False,
    )
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    position: Mapped[Optional[str]] = mapped_column(sa.String(150))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    department: Mapped[Optional[Department]] = relationship(
        back_populates="employees", foreign_keys=[department_id],
    )
    role_assignments: Mapped[list["RoleAssignment"]] = relationship(
        back_populates="employee",
        foreign_keys="RoleAssignment.employee_id",
    )

    # ── Helpers ─────────────────────────────────────────────────────

    @property
    def full_name(self) -> str:
        """Name in the institution's "Last First" order."""
        return f"{self.last_name} {self.first_name}".strip()

    def __repr__(self) -> str:
        return (
            f"<Employee {self.employee_code} "
            f"{self.first_name} {self.last_name}>"
        )

"""Auth ORM models: RoleAssignment."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_portal.common.constants import UserRole
from hr_portal.database import Base


class RoleAssignment(Base):
    __tablename__ = "role_assignments"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "role", name="uq_role_assignment"),
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
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role"), nullable=False
    )
    assigned_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)

    # Relationships
    employee: Mapped["Employee"] = relationship(
        back_populates="role_assignments", foreign_keys=[employee_id]
    )

"""Audit trail model and async helpers for recording ledger and workflow changes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from hr_portal.common.constants import AuditAction
from hr_portal.database import Base

logger = logging.getLogger(__name__)


# ── Immutable audit-trail table ─────────────────────────────────────

class AuditTrail(Base):
    """Append-only log of every ledger and workflow mutation."""

    __tablename__ = "audit_trail"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True,
    )
    old_values: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_audit_trail_actor_id", "actor_id"),
        Index("ix_audit_trail_entity", "entity_type", "entity_id"),
        Index("ix_audit_trail_created_at", "created_at"),
        Index("ix_audit_trail_action", "action"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditTrail {self.action} {self.entity_type}"
            f"/{self.entity_id} by {self.actor_id}>"
        )


# ── Helper to create an entry ───────────────────────────────────────

async def create_audit_entry(
    session: AsyncSession,
    *,
    action: AuditAction | str,
    entity_type: str,
    entity_id: Optional[uuid.UUID],
    actor_id: Optional[uuid.UUID] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
) -> AuditTrail:
    """
    Create and flush an audit-trail entry.

    Args:
        session: Async SQLAlchemy session.
        action: One of :class:`AuditAction` (leave_submit, leave_edit, ...).
        entity_type: e.g. "leave_request", "leave_bonus".
        entity_id: UUID of the affected entity (None for bulk operations).
        actor_id: UUID of the user performing the action.
        old_values: Facts before the mutation.
        new_values: Facts after the mutation.
    """
    entry = AuditTrail(
        actor_id=actor_id,
        action=action.value if isinstance(action, AuditAction) else action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_values=old_values,
        new_values=new_values,
    )
    session.add(entry)
    await session.flush()
    return entry


async def emit_audit_event(
    session: AsyncSession,
    *,
    action: AuditAction | str,
    entity_type: str,
    entity_id: Optional[uuid.UUID],
    actor_id: Optional[uuid.UUID] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
) -> Optional[AuditTrail]:
    """Record an audit entry without letting a sink failure undo the caller's work.

    The entry is written inside a SAVEPOINT; if it fails, only the savepoint
    is rolled back and the error is logged. Returns None on failure.
    """
    try:
        async with session.begin_nested():
            return await create_audit_entry(
                session,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                actor_id=actor_id,
                old_values=old_values,
                new_values=new_values,
            )
    except SQLAlchemyError:
        logger.exception(
            "Audit event %s for %s/%s could not be recorded",
            action, entity_type, entity_id,
        )
        return None

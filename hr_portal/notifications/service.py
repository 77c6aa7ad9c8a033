"""Notification service — the in-app sink plus leave workflow dispatchers.

Dispatchers write inside a SAVEPOINT so a failed notification never undoes
the workflow step that triggered it.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.constants import DATE_FORMAT, NotificationType
from hr_portal.notifications.models import Notification

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        recipient_id: uuid.UUID,
        *,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Sequence[Notification]:
        """Notifications for a recipient, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == recipient_id)
            .order_by(Notification.created_at.desc())
        )
        if entity_id is not None:
            query = query.where(Notification.entity_id == entity_id)
        return (await db.execute(query)).scalars().all()


async def _dispatch(db: AsyncSession, **kwargs) -> Optional[Notification]:
    try:
        async with db.begin_nested():
            return await NotificationService.create_notification(db, **kwargs)
    except SQLAlchemyError:
        logger.exception(
            "Notification %r for %s could not be delivered",
            kwargs.get("title"), kwargs.get("recipient_id"),
        )
        return None


def _period(leave_request) -> str:
    return (
        f"{leave_request.start_date.strftime(DATE_FORMAT)} – "
        f"{leave_request.end_date.strftime(DATE_FORMAT)}"
    )


# ── Leave workflow helpers ──────────────────────────────────────────


async def notify_leave_request(
    db: AsyncSession,
    leave_request,  # hr_portal.leave.models.LeaveRequest
    approver_id: uuid.UUID,
) -> Optional[Notification]:
    """Notify the approver that a new leave request needs review."""
    return await _dispatch(
        db,
        recipient_id=approver_id,
        type=NotificationType.action_required,
        title="New Leave Request",
        message=(
            f"Leave request {leave_request.request_number} for {_period(leave_request)} "
            f"({leave_request.working_days} working day(s)) requires your approval."
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_director_approved(
    db: AsyncSession,
    leave_request,  # hr_portal.leave.models.LeaveRequest
    department_head_id: uuid.UUID,
) -> Optional[Notification]:
    """Notify a department head that a request awaits their signature."""
    return await _dispatch(
        db,
        recipient_id=department_head_id,
        type=NotificationType.action_required,
        title="Leave Request Awaiting Department Head",
        message=(
            f"Leave request {leave_request.request_number} for {_period(leave_request)} "
            f"was approved by the director and requires your approval."
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_approved(
    db: AsyncSession,
    leave_request,  # hr_portal.leave.models.LeaveRequest
) -> Optional[Notification]:
    """Notify the employee that their leave request was approved."""
    return await _dispatch(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.approval,
        title="Leave Request Approved",
        message=(
            f"Your leave request {leave_request.request_number} for "
            f"{_period(leave_request)} has been approved."
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_rejected(
    db: AsyncSession,
    leave_request,  # hr_portal.leave.models.LeaveRequest
    reason: str,
) -> Optional[Notification]:
    """Notify the employee that their leave request was rejected."""
    return await _dispatch(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.alert,
        title="Leave Request Rejected",
        message=(
            f"Your leave request {leave_request.request_number} for "
            f"{_period(leave_request)} was rejected. Reason: {reason}"
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )

"""Two-stage approval state machine for leave requests.

    pending_director ──director_approve──▶ pending_department_head
    pending_department_head ──department_head_approve──▶ approved
    pending_director | pending_department_head ──reject──▶ rejected

Status changes are compare-and-set: the UPDATE only matches while the row is
still in the expected state with the working days that were read, so of two
concurrent actors exactly one wins and the debit never uses a stale count.
Entering ``approved`` debits the ledger in the same savepoint as the status
change; if the debit fails the request stays ``pending_department_head``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.audit import emit_audit_event
from hr_portal.common.constants import AuditAction, LeaveAction, LeaveStatus, UserRole
from hr_portal.common.exceptions import (
    AccountResolutionError,
    ConcurrentUpdateError,
    ForbiddenException,
    InvalidTransitionError,
    NotFoundException,
    ValidationException,
)
from hr_portal.core_hr.service import DirectoryService
from hr_portal.leave.approvers import ApproverService
from hr_portal.leave.ledger import LeaveLedger, LedgerMovement
from hr_portal.leave.models import LeaveRequest
from hr_portal.notifications.service import (
    notify_leave_approved,
    notify_leave_director_approved,
    notify_leave_rejected,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    action: LeaveAction
    sources: frozenset
    target: LeaveStatus
    audit_action: AuditAction


TRANSITIONS: dict[LeaveAction, Transition] = {
    LeaveAction.director_approve: Transition(
        LeaveAction.director_approve,
        frozenset({LeaveStatus.pending_director}),
        LeaveStatus.pending_department_head,
        AuditAction.leave_director_approve,
    ),
    LeaveAction.department_head_approve: Transition(
        LeaveAction.department_head_approve,
        frozenset({LeaveStatus.pending_department_head}),
        LeaveStatus.approved,
        AuditAction.leave_approve,
    ),
    LeaveAction.reject: Transition(
        LeaveAction.reject,
        frozenset({LeaveStatus.pending_director, LeaveStatus.pending_department_head}),
        LeaveStatus.rejected,
        AuditAction.leave_reject,
    ),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalWorkflow:
    """Advances leave requests through the approval stages."""

    @staticmethod
    async def load(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        lock: bool = False,
    ) -> LeaveRequest:
        leave = await db.get(
            LeaveRequest, request_id, populate_existing=True, with_for_update=lock,
        )
        if leave is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave

    @staticmethod
    def check_transition(leave: LeaveRequest, action: LeaveAction) -> Transition:
        """Return the transition for *action* or raise InvalidTransitionError."""
        transition = TRANSITIONS[action]
        if leave.status not in transition.sources:
            raise InvalidTransitionError(current=leave.status.value, action=action.value)
        return transition

    @staticmethod
    def _reject_self_signature(leave: LeaveRequest, actor_id: uuid.UUID) -> None:
        if leave.employee_id == actor_id:
            raise ForbiddenException("You cannot sign your own leave request.")

    @staticmethod
    async def _compare_and_set(
        db: AsyncSession,
        leave: LeaveRequest,
        transition: Transition,
        values: dict[str, Any],
    ) -> None:
        # working_days is part of the match so the debit uses the row's value
        expected = leave.status
        result = await db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == leave.id,
                LeaveRequest.status == expected,
                LeaveRequest.working_days == leave.working_days,
            )
            .values(status=transition.target, updated_at=_now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = (
                await db.execute(select(LeaveRequest.status).where(LeaveRequest.id == leave.id))
            ).scalar()
            if current == expected:
                raise ConcurrentUpdateError("LeaveRequest", leave.id)
            raise InvalidTransitionError(
                current=current.value if current is not None else "deleted",
                action=transition.action.value,
            )

    @staticmethod
    async def _on_enter(
        db: AsyncSession,
        leave: LeaveRequest,
        target: LeaveStatus,
    ) -> Optional[LedgerMovement]:
        """Side effects owned by the target state."""
        if target is not LeaveStatus.approved:
            return None

        account = await LeaveLedger.lock_account_by_id(db, leave.account_id)
        if account is None:
            raise AccountResolutionError(leave.request_number)
        return await LeaveLedger.debit(
            db, leave.employee_id, leave.year, leave.working_days, account=account,
        )

    @staticmethod
    async def _advance(
        db: AsyncSession,
        leave: LeaveRequest,
        transition: Transition,
        actor_id: uuid.UUID,
        values: dict[str, Any],
    ) -> Optional[LedgerMovement]:
        old_status = leave.status
        async with db.begin_nested():
            await ApprovalWorkflow._compare_and_set(db, leave, transition, values)
            movement = await ApprovalWorkflow._on_enter(db, leave, transition.target)
        await db.refresh(leave)

        logger.info(
            "Leave request %s: %s -> %s by %s",
            leave.request_number, old_status.value, leave.status.value, actor_id,
        )
        new_values: dict[str, Any] = {
            "status": leave.status.value,
            "working_days": leave.working_days,
        }
        if movement is not None:
            new_values["ledger"] = movement.as_dict()
        if leave.rejection_reason and transition.action is LeaveAction.reject:
            new_values["rejection_reason"] = leave.rejection_reason
        await emit_audit_event(
            db,
            action=transition.audit_action,
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor_id,
            old_values={"status": old_status.value},
            new_values=new_values,
        )
        return movement

    # ── Transitions ─────────────────────────────────────────────────

    @staticmethod
    async def director_approve(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveRequest:
        leave = await ApprovalWorkflow.load(db, request_id)
        transition = ApprovalWorkflow.check_transition(leave, LeaveAction.director_approve)
        ApprovalWorkflow._reject_self_signature(leave, actor_id)
        if not await ApproverService.can_sign_director_stage(db, actor_id, leave):
            raise ForbiddenException("You are not the designated approver for this leave request.")

        await ApprovalWorkflow._advance(
            db, leave, transition, actor_id,
            {"director_id": actor_id, "director_signed_at": _now()},
        )

        applicant = await DirectoryService.get_employee(db, leave.employee_id, active_only=False)
        heads = await DirectoryService.get_role_holders(
            db, UserRole.department_head, department_id=applicant.department_id,
        ) if applicant.department_id is not None else []
        for head in heads:
            if head.id != leave.employee_id:
                await notify_leave_director_approved(db, leave, head.id)
        return leave

    @staticmethod
    async def department_head_approve(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveRequest:
        leave = await ApprovalWorkflow.load(db, request_id)
        transition = ApprovalWorkflow.check_transition(leave, LeaveAction.department_head_approve)
        ApprovalWorkflow._reject_self_signature(leave, actor_id)
        applicant = await DirectoryService.get_employee(db, leave.employee_id, active_only=False)
        if not await ApproverService.can_sign_department_head_stage(db, actor_id, applicant):
            raise ForbiddenException("Only a head of the applicant's department can approve this stage.")

        await ApprovalWorkflow._advance(
            db, leave, transition, actor_id,
            {"department_head_id": actor_id, "department_head_signed_at": _now()},
        )
        await notify_leave_approved(db, leave)
        return leave

    @staticmethod
    async def reject(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str,
    ) -> LeaveRequest:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException({"reason": ["A rejection reason is required."]})

        leave = await ApprovalWorkflow.load(db, request_id)
        transition = ApprovalWorkflow.check_transition(leave, LeaveAction.reject)
        ApprovalWorkflow._reject_self_signature(leave, actor_id)
        if leave.status is LeaveStatus.pending_director:
            allowed = await ApproverService.can_sign_director_stage(db, actor_id, leave)
        else:
            applicant = await DirectoryService.get_employee(db, leave.employee_id, active_only=False)
            allowed = await ApproverService.can_sign_department_head_stage(db, actor_id, applicant)
        if not allowed:
            raise ForbiddenException("You cannot reject this leave request at its current stage.")

        await ApprovalWorkflow._advance(
            db, leave, transition, actor_id,
            {"rejected_by": actor_id, "rejected_at": _now(), "rejection_reason": reason},
        )
        await notify_leave_rejected(db, leave, reason)
        return leave

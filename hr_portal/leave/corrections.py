"""HR corrections: editing and deleting leave requests with ledger reconciliation.

Only approved requests have touched the ledger, so only they are reconciled:
an edit applies the working-day delta through the chosen source policy, a
delete reverts the request's days. Pending requests are re-validated against
the balance; rejected requests cannot be edited.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.audit import emit_audit_event
from hr_portal.common.constants import AuditAction, LeaveStatus, SourcePolicy
from hr_portal.common.exceptions import (
    AccountResolutionError,
    InsufficientBalanceError,
    InvalidTransitionError,
)
from hr_portal.config import settings
from hr_portal.leave.ledger import LeaveLedger, LedgerMovement
from hr_portal.leave.models import LeaveRequest
from hr_portal.leave.validation import RequestValidator
from hr_portal.leave.workflow import ApprovalWorkflow

logger = logging.getLogger(__name__)


@dataclass
class EditOutcome:
    leave_request: LeaveRequest
    old_working_days: int
    new_working_days: int
    delta: int
    source_policy: SourcePolicy
    movement: Optional[LedgerMovement] = None


@dataclass
class DeleteOutcome:
    request_id: uuid.UUID
    request_number: str
    reverted_days: int
    reversal_applied: bool
    movement: Optional[LedgerMovement] = None
    warning: Optional[str] = None


class LeaveCorrections:
    """Edit / delete with exactly-once ledger reconciliation."""

    @staticmethod
    async def edit(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        start_date: date,
        end_date: date,
        source_policy: Optional[SourcePolicy] = None,
        notes: Optional[str] = None,
    ) -> EditOutcome:
        policy = SourcePolicy(source_policy or settings.EDIT_DEFAULT_SOURCE_POLICY)
        leave = await ApprovalWorkflow.load(db, request_id, lock=True)
        if leave.status is LeaveStatus.rejected:
            raise InvalidTransitionError(current=leave.status.value, action="edit")

        RequestValidator.check_range(start_date, end_date, year=leave.year)
        calc = await RequestValidator.count_days(db, start_date, end_date)
        await RequestValidator.check_overlap(
            db, leave.employee_id, start_date, end_date, exclude_id=leave.id,
        )

        old_days = leave.working_days
        old_values = {
            "start_date": leave.start_date.isoformat(),
            "end_date": leave.end_date.isoformat(),
            "working_days": old_days,
        }
        delta = calc.count - old_days
        movement: Optional[LedgerMovement] = None

        async with db.begin_nested():
            if leave.status is LeaveStatus.approved:
                account = await LeaveLedger.lock_account_by_id(db, leave.account_id)
                if account is None:
                    raise AccountResolutionError(leave.request_number)
                movement = await LeaveLedger.apply_delta(
                    db, leave.employee_id, leave.year, delta, policy, account=account,
                )
            else:
                available = await LeaveLedger.available_balance(db, leave.employee_id, leave.year)
                if calc.count > available:
                    raise InsufficientBalanceError(requested=calc.count, available=available)

            leave.start_date = start_date
            leave.end_date = end_date
            leave.working_days = calc.count
            leave.last_edited_by = actor_id
            leave.last_edited_at = datetime.now(timezone.utc)
            if notes is not None:
                leave.notes = notes
            await db.flush()

        logger.info(
            "Leave request %s edited by %s: %s -> %s days (%s)",
            leave.request_number, actor_id, old_days, calc.count, policy.value,
        )
        new_values = {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "working_days": calc.count,
            "delta": delta,
            "source_policy": policy.value,
        }
        if movement is not None:
            new_values["ledger"] = movement.as_dict()
        await emit_audit_event(
            db,
            action=AuditAction.leave_edit,
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=new_values,
        )
        return EditOutcome(
            leave_request=leave,
            old_working_days=old_days,
            new_working_days=calc.count,
            delta=delta,
            source_policy=policy,
            movement=movement,
        )

    @staticmethod
    async def delete(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        source_policy: Optional[SourcePolicy] = None,
    ) -> DeleteOutcome:
        """Revert an approved request's days, then remove the request.

        When the ledger account cannot be resolved the request is still
        deleted; the skipped reversal is logged, audited and reported back.
        """
        policy = SourcePolicy(source_policy or settings.DELETE_DEFAULT_SOURCE_POLICY)
        leave = await ApprovalWorkflow.load(db, request_id, lock=True)
        snapshot = {
            "request_number": leave.request_number,
            "employee_id": str(leave.employee_id),
            "account_id": str(leave.account_id) if leave.account_id else None,
            "start_date": leave.start_date.isoformat(),
            "end_date": leave.end_date.isoformat(),
            "working_days": leave.working_days,
            "status": leave.status.value,
        }
        outcome = DeleteOutcome(
            request_id=leave.id,
            request_number=leave.request_number,
            reverted_days=0,
            reversal_applied=False,
        )

        async with db.begin_nested():
            if leave.status is LeaveStatus.approved:
                account = await LeaveLedger.lock_account_by_id(db, leave.account_id)
                if account is None:
                    outcome.warning = (
                        f"Leave account for request {leave.request_number} could not be "
                        f"resolved; {leave.working_days} day(s) were not returned to the balance."
                    )
                else:
                    outcome.movement = await LeaveLedger.apply_delta(
                        db, leave.employee_id, leave.year, -leave.working_days, policy,
                        account=account,
                    )
                    outcome.reverted_days = -outcome.movement.total
                    outcome.reversal_applied = True

            await db.delete(leave)
            await db.flush()

        if outcome.warning:
            logger.warning(outcome.warning)
            await emit_audit_event(
                db,
                action=AuditAction.leave_reversal_skipped,
                entity_type="leave_request",
                entity_id=outcome.request_id,
                actor_id=actor_id,
                old_values=snapshot,
                new_values={"reason": "account_unresolved"},
            )

        logger.info(
            "Leave request %s deleted by %s (reverted %s days)",
            outcome.request_number, actor_id, outcome.reverted_days,
        )
        new_values = {"source_policy": policy.value, "reversal_applied": outcome.reversal_applied}
        if outcome.movement is not None:
            new_values["ledger"] = outcome.movement.as_dict()
        await emit_audit_event(
            db,
            action=AuditAction.leave_delete,
            entity_type="leave_request",
            entity_id=outcome.request_id,
            actor_id=actor_id,
            old_values=snapshot,
            new_values=new_values,
        )
        return outcome

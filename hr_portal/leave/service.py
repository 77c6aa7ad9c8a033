"""Leave service — submission, approvals, corrections, balances and listings.

The facade the routers talk to. State transitions are delegated to
:class:`ApprovalWorkflow`, ledger arithmetic to :class:`LeaveLedger` and HR
corrections to :class:`LeaveCorrections`.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.audit import emit_audit_event
from hr_portal.common.constants import AuditAction, LeaveStatus, SourcePolicy, UserRole
from hr_portal.common.exceptions import (
    ConcurrentUpdateError,
    ForbiddenException,
    InsufficientBalanceError,
)
from hr_portal.common.pagination import PaginationMeta, PaginationParams, paginate
from hr_portal.config import settings
from hr_portal.core_hr.models import Employee
from hr_portal.core_hr.service import DirectoryService
from hr_portal.holidays.service import HolidayService
from hr_portal.leave.approvers import ApproverService
from hr_portal.leave.corrections import DeleteOutcome, EditOutcome, LeaveCorrections
from hr_portal.leave.ledger import BalanceBreakdown, LeaveLedger
from hr_portal.leave.models import LeaveRequest
from hr_portal.leave.schemas import LeaveRequestCreate
from hr_portal.leave.validation import RequestValidator
from hr_portal.leave.workflow import ApprovalWorkflow
from hr_portal.leave.working_days import WorkingDaysResult
from hr_portal.leave.working_days import compute_working_days as _compute_working_days
from hr_portal.notifications.service import notify_leave_request

logger = logging.getLogger(__name__)


class LeaveService:
    """Async leave operations."""

    # ── Calculator / balance ────────────────────────────────────────

    @staticmethod
    async def compute_working_days(
        db: AsyncSession,
        start_date: date,
        end_date: date,
    ) -> WorkingDaysResult:
        """Calculator preview with the institution's closed days applied."""
        custom = await HolidayService.load_custom_map(db, start_date, end_date)
        return _compute_working_days(start_date, end_date, custom)

    @staticmethod
    async def get_available_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> int:
        return await LeaveLedger.available_balance(db, employee_id, year)

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> BalanceBreakdown:
        await DirectoryService.get_employee(db, employee_id, active_only=False)
        return await LeaveLedger.balance_breakdown(db, employee_id, year)

    # ── Submission ──────────────────────────────────────────────────

    @staticmethod
    async def _next_sequence(db: AsyncSession, year: int) -> int:
        result = await db.execute(
            select(func.coalesce(func.max(LeaveRequest.sequence), 0)).where(
                LeaveRequest.year == year,
            )
        )
        return int(result.scalar_one()) + 1

    @staticmethod
    async def submit_leave_request(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> tuple[LeaveRequest, WorkingDaysResult]:
        """Create a request in ``pending_director``.

        Rejects zero-day ranges, overlaps with open requests, replacements
        outside the department and requests exceeding the available balance.
        The ledger is not touched until final approval.
        """
        employee = await DirectoryService.get_employee(db, employee_id)
        RequestValidator.check_range(data.start_date, data.end_date)
        await RequestValidator.check_replacement(db, employee_id, data.replacement_id)
        calc = await RequestValidator.count_days(db, data.start_date, data.end_date)
        await RequestValidator.check_overlap(db, employee_id, data.start_date, data.end_date)

        year = data.start_date.year
        account = await LeaveLedger.open_account(db, employee_id, year)
        available = await LeaveLedger.available_balance(db, employee_id, year)
        if calc.count > available:
            raise InsufficientBalanceError(requested=calc.count, available=available)

        approver_id = await ApproverService.resolve_approver(db, employee)
        sequence = await LeaveService._next_sequence(db, year)
        leave = LeaveRequest(
            request_number=f"{settings.REQUEST_NUMBER_PREFIX}-{year}-{sequence:04d}",
            sequence=sequence,
            year=year,
            employee_id=employee_id,
            account_id=account.id,
            start_date=data.start_date,
            end_date=data.end_date,
            working_days=calc.count,
            replacement_id=data.replacement_id,
            status=LeaveStatus.pending_director,
            approver_id=approver_id,
            notes=data.notes,
        )
        try:
            async with db.begin_nested():
                db.add(leave)
                await db.flush()
        except IntegrityError as exc:
            # Request number taken by a concurrent submission
            raise ConcurrentUpdateError("LeaveRequest", f"{year}/{sequence}") from exc

        logger.info(
            "Leave request %s submitted by %s: %s..%s, %s working days",
            leave.request_number, employee_id, leave.start_date, leave.end_date, leave.working_days,
        )
        await emit_audit_event(
            db,
            action=AuditAction.leave_submit,
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=employee_id,
            new_values={
                "request_number": leave.request_number,
                "start_date": leave.start_date.isoformat(),
                "end_date": leave.end_date.isoformat(),
                "working_days": leave.working_days,
                "status": leave.status.value,
            },
        )

        if approver_id is not None:
            await notify_leave_request(db, leave, approver_id)
        else:
            for director in await DirectoryService.get_role_holders(db, UserRole.director):
                if director.id != employee_id:
                    await notify_leave_request(db, leave, director.id)
        return leave, calc

    # ── Transitions ─────────────────────────────────────────────────

    @staticmethod
    async def approve_as_director(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveRequest:
        return await ApprovalWorkflow.director_approve(db, request_id, actor_id)

    @staticmethod
    async def approve_as_department_head(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveRequest:
        return await ApprovalWorkflow.department_head_approve(db, request_id, actor_id)

    @staticmethod
    async def reject(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str,
    ) -> LeaveRequest:
        return await ApprovalWorkflow.reject(db, request_id, actor_id, reason)

    # ── HR corrections ──────────────────────────────────────────────

    @staticmethod
    async def edit_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        start_date: date,
        end_date: date,
        source_policy: Optional[SourcePolicy] = None,
        notes: Optional[str] = None,
    ) -> EditOutcome:
        return await LeaveCorrections.edit(
            db, request_id, actor_id,
            start_date=start_date,
            end_date=end_date,
            source_policy=source_policy,
            notes=notes,
        )

    @staticmethod
    async def delete_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        source_policy: Optional[SourcePolicy] = None,
    ) -> DeleteOutcome:
        return await LeaveCorrections.delete(
            db, request_id, actor_id, source_policy=source_policy,
        )

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer_id: uuid.UUID,
        viewer_role: UserRole,
    ) -> LeaveRequest:
        """A request is visible to its owner, HR and the approver roles."""
        leave = await ApprovalWorkflow.load(db, request_id)
        if leave.employee_id == viewer_id or leave.replacement_id == viewer_id:
            return leave
        if viewer_role in (
            UserRole.hr_admin,
            UserRole.system_admin,
            UserRole.director,
            UserRole.department_head,
        ):
            return leave
        if viewer_id in (leave.approver_id, leave.director_id, leave.department_head_id):
            return leave
        raise ForbiddenException("You cannot view this leave request.")

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        params: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        year: Optional[int] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> tuple[Sequence[LeaveRequest], PaginationMeta]:
        query = select(LeaveRequest).order_by(LeaveRequest.created_at.desc())
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if department_id is not None:
            query = query.where(
                LeaveRequest.employee_id.in_(
                    select(Employee.id).where(Employee.department_id == department_id)
                )
            )
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if year is not None:
            query = query.where(LeaveRequest.year == year)
        if from_date is not None:
            query = query.where(LeaveRequest.end_date >= from_date)
        if to_date is not None:
            query = query.where(LeaveRequest.start_date <= to_date)
        return await paginate(db, query, params, model=LeaveRequest)

    @staticmethod
    async def list_pending_for(
        db: AsyncSession,
        actor_id: uuid.UUID,
    ) -> Sequence[LeaveRequest]:
        """Requests the actor (or someone they stand in for) can sign now."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.employee_id != actor_id)
            .order_by(LeaveRequest.created_at)
        )
        if await DirectoryService.has_role(db, actor_id, UserRole.system_admin):
            query = query.where(
                LeaveRequest.status.in_([
                    LeaveStatus.pending_director, LeaveStatus.pending_department_head,
                ])
            )
            return (await db.execute(query)).scalars().all()

        acting_as = await ApproverService.principals_of(db, actor_id) | {actor_id}
        conditions = [
            and_(
                LeaveRequest.status == LeaveStatus.pending_director,
                LeaveRequest.approver_id.in_(acting_as),
            ),
        ]
        if await ApproverService.holds_role_among(db, acting_as, UserRole.director):
            conditions.append(and_(
                LeaveRequest.status == LeaveStatus.pending_director,
                LeaveRequest.approver_id.is_(None),
            ))
        departments = await ApproverService.headed_departments(db, acting_as)
        if departments:
            conditions.append(and_(
                LeaveRequest.status == LeaveStatus.pending_department_head,
                LeaveRequest.employee_id.in_(
                    select(Employee.id).where(Employee.department_id.in_(departments))
                ),
            ))
        result = await db.execute(query.where(or_(*conditions)))
        return result.scalars().all()

    @staticmethod
    async def approval_history(
        db: AsyncSession,
        actor_id: uuid.UUID,
    ) -> Sequence[LeaveRequest]:
        """Requests the actor has signed or rejected, most recent first."""
        result = await db.execute(
            select(LeaveRequest)
            .where(
                or_(
                    LeaveRequest.director_id == actor_id,
                    LeaveRequest.department_head_id == actor_id,
                    LeaveRequest.rejected_by == actor_id,
                )
            )
            .order_by(LeaveRequest.updated_at.desc())
        )
        return result.scalars().all()

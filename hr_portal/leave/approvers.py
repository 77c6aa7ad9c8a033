"""Approver routing and delegation.

Director stage: a request is routed to the employee's designated approver,
falling back to the department's approver. Unrouted requests are open to any
director. Department-head stage: any department head of the applicant's
department. In both stages an active delegate may act for the principal.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.auth.models import RoleAssignment
from hr_portal.common.audit import emit_audit_event
from hr_portal.common.constants import TIMEZONE, AuditAction, UserRole
from hr_portal.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hr_portal.core_hr.models import Employee
from hr_portal.core_hr.service import DirectoryService
from hr_portal.leave.models import (
    ApprovalDelegate,
    DepartmentApprover,
    LeaveApprover,
    LeaveRequest,
)

logger = logging.getLogger(__name__)


def local_today() -> date:
    """Today's date in the institution's timezone."""
    return datetime.now(ZoneInfo(TIMEZONE)).date()


class ApproverService:
    """Who may sign which stage of a leave request."""

    # ── Routing ─────────────────────────────────────────────────────

    @staticmethod
    async def resolve_approver(
        db: AsyncSession,
        employee: Employee,
    ) -> Optional[uuid.UUID]:
        """Designated director-stage approver: per employee, then per department."""
        result = await db.execute(
            select(LeaveApprover.approver_id).where(LeaveApprover.employee_id == employee.id)
        )
        approver_id = result.scalar()
        if approver_id is not None:
            return approver_id

        if employee.department_id is None:
            return None
        result = await db.execute(
            select(DepartmentApprover.approver_id).where(
                DepartmentApprover.department_id == employee.department_id,
            )
        )
        return result.scalar()

    @staticmethod
    async def assign_employee_approver(
        db: AsyncSession,
        actor_id: uuid.UUID,
        employee_id: uuid.UUID,
        approver_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> LeaveApprover:
        if employee_id == approver_id:
            raise ValidationException({"approver_id": ["An employee cannot approve their own leave."]})
        await DirectoryService.get_employee(db, employee_id)
        await DirectoryService.get_employee(db, approver_id)

        mapping = (
            await db.execute(select(LeaveApprover).where(LeaveApprover.employee_id == employee_id))
        ).scalars().first()
        old_approver = mapping.approver_id if mapping else None
        if mapping is None:
            mapping = LeaveApprover(employee_id=employee_id, approver_id=approver_id, notes=notes)
            db.add(mapping)
        else:
            mapping.approver_id = approver_id
            mapping.notes = notes
        await db.flush()

        await emit_audit_event(
            db,
            action=AuditAction.approver_assign,
            entity_type="leave_approver",
            entity_id=mapping.id,
            actor_id=actor_id,
            old_values={"approver_id": str(old_approver)} if old_approver else None,
            new_values={"employee_id": str(employee_id), "approver_id": str(approver_id)},
        )
        return mapping

    @staticmethod
    async def assign_department_approver(
        db: AsyncSession,
        actor_id: uuid.UUID,
        department_id: uuid.UUID,
        approver_id: uuid.UUID,
    ) -> DepartmentApprover:
        await DirectoryService.get_employee(db, approver_id)

        mapping = (
            await db.execute(
                select(DepartmentApprover).where(DepartmentApprover.department_id == department_id)
            )
        ).scalars().first()
        old_approver = mapping.approver_id if mapping else None
        if mapping is None:
            mapping = DepartmentApprover(department_id=department_id, approver_id=approver_id)
            db.add(mapping)
        else:
            mapping.approver_id = approver_id
        await db.flush()

        await emit_audit_event(
            db,
            action=AuditAction.approver_assign,
            entity_type="leave_department_approver",
            entity_id=mapping.id,
            actor_id=actor_id,
            old_values={"approver_id": str(old_approver)} if old_approver else None,
            new_values={"department_id": str(department_id), "approver_id": str(approver_id)},
        )
        return mapping

    # ── Delegation ──────────────────────────────────────────────────

    @staticmethod
    async def create_delegation(
        db: AsyncSession,
        delegator_id: uuid.UUID,
        delegate_id: uuid.UUID,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> ApprovalDelegate:
        errors: dict[str, list[str]] = {}
        if delegate_id == delegator_id:
            errors["delegate_id"] = ["You cannot delegate approvals to yourself."]
        if end_date < start_date:
            errors["end_date"] = ["End date must be on or after the start date."]
        if errors:
            raise ValidationException(errors)
        await DirectoryService.get_employee(db, delegate_id)

        delegation = ApprovalDelegate(
            delegator_id=delegator_id,
            delegate_id=delegate_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            is_active=True,
        )
        db.add(delegation)
        await db.flush()

        logger.info(
            "Approvals of %s delegated to %s for %s..%s",
            delegator_id, delegate_id, start_date, end_date,
        )
        await emit_audit_event(
            db,
            action=AuditAction.delegation_create,
            entity_type="leave_approval_delegate",
            entity_id=delegation.id,
            actor_id=delegator_id,
            new_values={
                "delegate_id": str(delegate_id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        return delegation

    @staticmethod
    async def revoke_delegation(
        db: AsyncSession,
        actor_id: uuid.UUID,
        delegation_id: uuid.UUID,
        *,
        is_hr: bool = False,
    ) -> ApprovalDelegate:
        delegation = await db.get(ApprovalDelegate, delegation_id)
        if delegation is None:
            raise NotFoundException("ApprovalDelegate", str(delegation_id))
        if delegation.delegator_id != actor_id and not is_hr:
            raise ForbiddenException("Only the delegating approver or HR can revoke a delegation.")

        delegation.is_active = False
        await db.flush()
        await emit_audit_event(
            db,
            action=AuditAction.delegation_revoke,
            entity_type="leave_approval_delegate",
            entity_id=delegation.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return delegation

    @staticmethod
    async def list_delegations(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Sequence[ApprovalDelegate]:
        """Delegations given or received by the employee, newest first."""
        result = await db.execute(
            select(ApprovalDelegate)
            .where(
                or_(
                    ApprovalDelegate.delegator_id == employee_id,
                    ApprovalDelegate.delegate_id == employee_id,
                )
            )
            .order_by(ApprovalDelegate.start_date.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def principals_of(
        db: AsyncSession,
        delegate_id: uuid.UUID,
        on_date: Optional[date] = None,
    ) -> set[uuid.UUID]:
        """Approvers whose authority *delegate_id* holds on *on_date*."""
        on_date = on_date or local_today()
        result = await db.execute(
            select(ApprovalDelegate.delegator_id).where(
                ApprovalDelegate.delegate_id == delegate_id,
                ApprovalDelegate.is_active.is_(True),
                ApprovalDelegate.start_date <= on_date,
                ApprovalDelegate.end_date >= on_date,
            )
        )
        return set(result.scalars().all())

    # ── Stage authorization ─────────────────────────────────────────

    @staticmethod
    async def holds_role_among(
        db: AsyncSession,
        candidates: set[uuid.UUID],
        role: UserRole,
        *,
        department_id: Optional[uuid.UUID] = None,
    ) -> bool:
        if not candidates:
            return False
        query = (
            select(RoleAssignment.id)
            .join(Employee, Employee.id == RoleAssignment.employee_id)
            .where(
                RoleAssignment.employee_id.in_(candidates),
                RoleAssignment.role == role,
                RoleAssignment.is_active.is_(True),
                Employee.is_active.is_(True),
            )
            .limit(1)
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        return (await db.execute(query)).scalar() is not None

    @staticmethod
    async def can_sign_director_stage(
        db: AsyncSession,
        actor_id: uuid.UUID,
        leave_request: LeaveRequest,
    ) -> bool:
        if await DirectoryService.has_role(db, actor_id, UserRole.system_admin):
            return True
        principals = await ApproverService.principals_of(db, actor_id)
        if leave_request.approver_id is not None:
            return actor_id == leave_request.approver_id or leave_request.approver_id in principals
        return await ApproverService.holds_role_among(
            db, principals | {actor_id}, UserRole.director,
        )

    @staticmethod
    async def can_sign_department_head_stage(
        db: AsyncSession,
        actor_id: uuid.UUID,
        applicant: Employee,
    ) -> bool:
        if await DirectoryService.has_role(db, actor_id, UserRole.system_admin):
            return True
        if applicant.department_id is None:
            return False
        principals = await ApproverService.principals_of(db, actor_id)
        return await ApproverService.holds_role_among(
            db, principals | {actor_id}, UserRole.department_head,
            department_id=applicant.department_id,
        )

    @staticmethod
    async def headed_departments(
        db: AsyncSession,
        acting_as: set[uuid.UUID],
    ) -> set[uuid.UUID]:
        """Departments whose head is among *acting_as*."""
        if not acting_as:
            return set()
        result = await db.execute(
            select(Employee.department_id)
            .join(RoleAssignment, RoleAssignment.employee_id == Employee.id)
            .where(
                Employee.id.in_(acting_as),
                Employee.department_id.is_not(None),
                RoleAssignment.role == UserRole.department_head,
                RoleAssignment.is_active.is_(True),
            )
        )
        return set(result.scalars().all())

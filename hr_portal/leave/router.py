"""Leave router — working days, balances, requests, approvals, corrections, grants.

All endpoints require authentication. HR-specific endpoints enforce role
checks; approval endpoints authorize the actor against the request's stage.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.auth.dependencies import get_current_user, require_role
from hr_portal.common.constants import LeaveStatus, SourcePolicy, UserRole
from hr_portal.common.pagination import PaginatedResponse, PaginationParams
from hr_portal.core_hr.models import Employee
from hr_portal.database import get_db
from hr_portal.leave.approvers import ApproverService, local_today
from hr_portal.leave.grants import GrantService
from hr_portal.leave.schemas import (
    ApproverAssign,
    BalanceOut,
    BonusGrantCreate,
    BonusGrantOut,
    CarryoverGrantOut,
    CarryoverImportRequest,
    CarryoverImportResult,
    DelegationCreate,
    DelegationOut,
    DepartmentApproverOut,
    ExcludedDayOut,
    LeaveApproverOut,
    LeaveDeleteOut,
    LeaveEditOut,
    LeaveEditRequest,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveSubmissionOut,
    LedgerMovementOut,
    WorkingDaysOut,
    WorkingDaysRequest,
)
from hr_portal.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


def _balance_out(breakdown) -> BalanceOut:
    return BalanceOut(
        employee_id=breakdown.employee_id,
        year=breakdown.year,
        base_allocation_days=breakdown.base_allocation_days,
        carryover_remaining_days=breakdown.carryover_remaining_days,
        bonus_days=breakdown.bonus_days,
        used_days=breakdown.used_days,
        current_year_available=breakdown.current_year_available,
        available_days=breakdown.available_days,
    )


def _movement_out(movement) -> Optional[LedgerMovementOut]:
    return LedgerMovementOut.model_validate(movement) if movement is not None else None


# ── POST /working-days ──────────────────────────────────────────────

@router.post("/working-days", response_model=WorkingDaysOut)
async def working_days(
    body: WorkingDaysRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Preview the working-day count and the excluded days of a range."""
    result = await LeaveService.compute_working_days(db, body.start_date, body.end_date)
    return WorkingDaysOut.model_validate(result)


# ── GET /balance ────────────────────────────────────────────────────

@router.get("/balance", response_model=BalanceOut)
async def my_balance(
    year: Optional[int] = Query(None, ge=1900, le=2099),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's balance breakdown (current year by default)."""
    breakdown = await LeaveService.get_balance(db, employee.id, year or local_today().year)
    return _balance_out(breakdown)


@router.get("/balance/{employee_id}", response_model=BalanceOut)
async def employee_balance(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=2099),
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    breakdown = await LeaveService.get_balance(db, employee_id, year or local_today().year)
    return _balance_out(breakdown)


# ── POST /requests ──────────────────────────────────────────────────

@router.post(
    "/requests",
    response_model=LeaveSubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Validates range, replacement, overlap and balance."""
    leave, calc = await LeaveService.submit_leave_request(db, employee.id, body)
    return LeaveSubmissionOut(
        request=LeaveRequestOut.model_validate(leave),
        excluded=[ExcludedDayOut.model_validate(d) for d in calc.excluded],
        warnings=calc.warnings,
    )


# ── GET /requests/mine ──────────────────────────────────────────────

@router.get("/requests/mine", response_model=PaginatedResponse[LeaveRequestOut])
async def my_requests(
    status: Optional[LeaveStatus] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=2099),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await LeaveService.list_requests(
        db, pagination, employee_id=employee.id, status=status, year=year,
    )
    return {"data": [LeaveRequestOut.model_validate(r) for r in rows], "meta": meta}


# ── GET /requests (HR) ──────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def all_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=2099),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """All leave requests with filters (HR view)."""
    rows, meta = await LeaveService.list_requests(
        db,
        pagination,
        employee_id=employee_id,
        department_id=department_id,
        status=status,
        year=year,
        from_date=from_date,
        to_date=to_date,
    )
    return {"data": [LeaveRequestOut.model_validate(r) for r in rows], "meta": meta}


# ── GET /requests/pending ───────────────────────────────────────────

@router.get("/requests/pending", response_model=list[LeaveRequestOut])
async def pending_requests(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approval queue: requests the caller may sign, delegations included."""
    return await LeaveService.list_pending_for(db, employee.id)


# ── GET /requests/history ───────────────────────────────────────────

@router.get("/requests/history", response_model=list[LeaveRequestOut])
async def approval_history(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Requests the caller has signed or rejected."""
    return await LeaveService.approval_history(db, employee.id)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, request_id, employee.id, request.state.user_role)


# ── POST /requests/{id}/director-approval ───────────────────────────

@router.post("/requests/{request_id}/director-approval", response_model=LeaveRequestOut)
async def director_approval(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """First signature: pending_director → pending_department_head."""
    return await LeaveService.approve_as_director(db, request_id, employee.id)


# ── POST /requests/{id}/department-head-approval ────────────────────

@router.post("/requests/{request_id}/department-head-approval", response_model=LeaveRequestOut)
async def department_head_approval(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Final signature: pending_department_head → approved. Debits the ledger."""
    return await LeaveService.approve_as_department_head(db, request_id, employee.id)


# ── POST /requests/{id}/rejection ───────────────────────────────────

@router.post("/requests/{request_id}/rejection", response_model=LeaveRequestOut)
async def reject_request(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.reject(db, request_id, employee.id, body.reason)


# ── PATCH /requests/{id} (HR) ───────────────────────────────────────

@router.patch("/requests/{request_id}", response_model=LeaveEditOut)
async def edit_request(
    request_id: uuid.UUID,
    body: LeaveEditRequest,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Change a request's dates; approved requests reconcile the ledger delta."""
    outcome = await LeaveService.edit_leave_request(
        db, request_id, employee.id,
        start_date=body.start_date,
        end_date=body.end_date,
        source_policy=body.source_policy,
        notes=body.notes,
    )
    return LeaveEditOut(
        request=LeaveRequestOut.model_validate(outcome.leave_request),
        old_working_days=outcome.old_working_days,
        new_working_days=outcome.new_working_days,
        delta=outcome.delta,
        source_policy=outcome.source_policy,
        ledger=_movement_out(outcome.movement),
    )


# ── DELETE /requests/{id} (HR) ──────────────────────────────────────

@router.delete("/requests/{request_id}", response_model=LeaveDeleteOut)
async def delete_request(
    request_id: uuid.UUID,
    source_policy: Optional[SourcePolicy] = Query(None),
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a request, returning an approved request's days to the balance."""
    outcome = await LeaveService.delete_leave_request(
        db, request_id, employee.id, source_policy=source_policy,
    )
    return LeaveDeleteOut(
        request_id=outcome.request_id,
        request_number=outcome.request_number,
        reverted_days=outcome.reverted_days,
        reversal_applied=outcome.reversal_applied,
        ledger=_movement_out(outcome.movement),
        warning=outcome.warning,
    )


# ── Bonus grants (HR) ───────────────────────────────────────────────

@router.get("/bonuses", response_model=list[BonusGrantOut])
async def list_bonuses(
    employee_id: Optional[uuid.UUID] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=2099),
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    return await GrantService.list_bonuses(db, employee_id=employee_id, year=year)


@router.post("/bonuses", response_model=BonusGrantOut, status_code=status.HTTP_201_CREATED)
async def add_bonus(
    body: BonusGrantCreate,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    return await GrantService.add_bonus(db, employee.id, body)


@router.delete("/bonuses/{bonus_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bonus(
    bonus_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    await GrantService.delete_bonus(db, employee.id, bonus_id)


# ── Carryover (HR) ──────────────────────────────────────────────────

@router.post("/carryover/import", response_model=CarryoverImportResult)
async def import_carryover(
    body: CarryoverImportRequest,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    """Bulk upsert of prior-year carryover; reports a status per row."""
    return await GrantService.import_carryover(db, employee.id, body)


@router.get("/carryover/{employee_id}", response_model=list[CarryoverGrantOut])
async def list_carryover(
    employee_id: uuid.UUID,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    return await GrantService.list_carryover(db, employee_id)


# ── Approver routing (HR) ───────────────────────────────────────────

@router.put("/approvers/employees/{employee_id}", response_model=LeaveApproverOut)
async def assign_employee_approver(
    employee_id: uuid.UUID,
    body: ApproverAssign,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    return await ApproverService.assign_employee_approver(
        db, employee.id, employee_id, body.approver_id, body.notes,
    )


@router.put("/approvers/departments/{department_id}", response_model=DepartmentApproverOut)
async def assign_department_approver(
    department_id: uuid.UUID,
    body: ApproverAssign,
    employee: Employee = Depends(require_role(UserRole.hr_admin)),
    db: AsyncSession = Depends(get_db),
):
    return await ApproverService.assign_department_approver(
        db, employee.id, department_id, body.approver_id,
    )


# ── Delegations ─────────────────────────────────────────────────────

@router.get("/delegations", response_model=list[DelegationOut])
async def my_delegations(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ApproverService.list_delegations(db, employee.id)


@router.post("/delegations", response_model=DelegationOut, status_code=status.HTTP_201_CREATED)
async def create_delegation(
    body: DelegationCreate,
    employee: Employee = Depends(
        require_role(UserRole.director, UserRole.department_head, UserRole.hr_admin)
    ),
    db: AsyncSession = Depends(get_db),
):
    """Hand approval authority to a colleague for a date window."""
    return await ApproverService.create_delegation(
        db, employee.id, body.delegate_id, body.start_date, body.end_date, body.reason,
    )


@router.delete("/delegations/{delegation_id}", response_model=DelegationOut)
async def revoke_delegation(
    delegation_id: uuid.UUID,
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    is_hr = request.state.user_role in (UserRole.hr_admin, UserRole.system_admin)
    return await ApproverService.revoke_delegation(db, employee.id, delegation_id, is_hr=is_hr)

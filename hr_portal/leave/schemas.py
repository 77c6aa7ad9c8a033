"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hr_portal.common.constants import CarryoverImportStatus, LeaveStatus, SourcePolicy


# ═════════════════════════════════════════════════════════════════════
# Working days
# ═════════════════════════════════════════════════════════════════════


class WorkingDaysRequest(BaseModel):
    start_date: date
    end_date: date


class ExcludedDayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    reason: str


class WorkingDaysOut(BaseModel):
    """Calculator result; ``diagnostic`` is set when the range is inverted."""

    model_config = ConfigDict(from_attributes=True)

    count: int
    excluded: list[ExcludedDayOut] = []
    diagnostic: Optional[str] = None
    warnings: list[str] = []


# ═════════════════════════════════════════════════════════════════════
# Balance / ledger
# ═════════════════════════════════════════════════════════════════════


class BalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: uuid.UUID
    year: int
    base_allocation_days: int
    carryover_remaining_days: int
    bonus_days: int
    used_days: int
    current_year_available: int
    available_days: int


class LedgerMovementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_carryover: int = 0
    from_current: int = 0


# ═════════════════════════════════════════════════════════════════════
# Leave request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Body for POST /leave/requests."""

    start_date: date
    end_date: date
    replacement_id: Optional[uuid.UUID] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    request_number: str
    year: int
    employee_id: uuid.UUID
    account_id: Optional[uuid.UUID] = None
    start_date: date
    end_date: date
    working_days: int
    replacement_id: Optional[uuid.UUID] = None
    status: LeaveStatus
    approver_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    employee_signed_at: Optional[datetime] = None
    director_id: Optional[uuid.UUID] = None
    director_signed_at: Optional[datetime] = None
    department_head_id: Optional[uuid.UUID] = None
    department_head_signed_at: Optional[datetime] = None
    rejected_by: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    last_edited_by: Optional[uuid.UUID] = None
    last_edited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LeaveSubmissionOut(BaseModel):
    """Submitted request plus the calculator breakdown and holiday warnings."""

    request: LeaveRequestOut
    excluded: list[ExcludedDayOut] = []
    warnings: list[str] = []


class LeaveRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class LeaveEditRequest(BaseModel):
    """Body for PATCH /leave/requests/{id} (HR)."""

    start_date: date
    end_date: date
    source_policy: Optional[SourcePolicy] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class LeaveEditOut(BaseModel):
    request: LeaveRequestOut
    old_working_days: int
    new_working_days: int
    delta: int
    source_policy: SourcePolicy
    ledger: Optional[LedgerMovementOut] = None


class LeaveDeleteOut(BaseModel):
    request_id: uuid.UUID
    request_number: str
    reverted_days: int
    reversal_applied: bool
    ledger: Optional[LedgerMovementOut] = None
    warning: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Bonus grants
# ═════════════════════════════════════════════════════════════════════


class BonusGrantCreate(BaseModel):
    employee_id: uuid.UUID
    year: int = Field(..., ge=1900, le=2099)
    bonus_days: int = Field(..., gt=0, le=365)
    reason: str = Field(..., min_length=1, max_length=300)
    legal_basis: Optional[str] = Field(default=None, max_length=300)


class BonusGrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    year: int
    bonus_days: int
    reason: str
    legal_basis: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Carryover
# ═════════════════════════════════════════════════════════════════════


class CarryoverGrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    from_year: int
    to_year: int
    initial_days: int
    used_days: int
    remaining_days: int


class CarryoverImportRow(BaseModel):
    """One roster row: the employee (by id or code) and the days carried over."""

    employee_id: Optional[uuid.UUID] = None
    employee_code: Optional[str] = Field(default=None, max_length=20)
    remaining_days: int

    @model_validator(mode="after")
    def _needs_reference(self) -> "CarryoverImportRow":
        if self.employee_id is None and not self.employee_code:
            raise ValueError("Either employee_id or employee_code is required.")
        return self


class CarryoverImportRequest(BaseModel):
    from_year: int = Field(..., ge=1900, le=2099)
    to_year: int = Field(..., ge=1900, le=2099)
    rows: list[CarryoverImportRow] = Field(..., min_length=1)


class CarryoverImportRowResult(BaseModel):
    employee_ref: str
    employee_id: Optional[uuid.UUID] = None
    status: CarryoverImportStatus
    remaining_days: Optional[int] = None
    message: Optional[str] = None


class CarryoverImportResult(BaseModel):
    from_year: int
    to_year: int
    rows: list[CarryoverImportRowResult]
    success_count: int
    not_found_count: int
    error_count: int

    @classmethod
    def from_rows(
        cls,
        from_year: int,
        to_year: int,
        rows: list[CarryoverImportRowResult],
    ) -> "CarryoverImportResult":
        def _count(status: CarryoverImportStatus) -> int:
            return sum(1 for r in rows if r.status == status)

        return cls(
            from_year=from_year,
            to_year=to_year,
            rows=rows,
            success_count=_count(CarryoverImportStatus.success),
            not_found_count=_count(CarryoverImportStatus.not_found),
            error_count=_count(CarryoverImportStatus.error),
        )


# ═════════════════════════════════════════════════════════════════════
# Approver routing / delegation
# ═════════════════════════════════════════════════════════════════════


class ApproverAssign(BaseModel):
    approver_id: uuid.UUID
    notes: Optional[str] = Field(default=None, max_length=1000)


class LeaveApproverOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    approver_id: uuid.UUID
    notes: Optional[str] = None


class DepartmentApproverOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    department_id: uuid.UUID
    approver_id: uuid.UUID


class DelegationCreate(BaseModel):
    delegate_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = Field(default=None, max_length=1000)


class DelegationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    delegator_id: uuid.UUID
    delegate_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = None
    is_active: bool

"""Tests for common utilities — audit sink, pagination, problem details."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, patch

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.audit import AuditTrail, emit_audit_event
from hr_portal.common.constants import AuditAction, LeaveStatus
from hr_portal.common.exceptions import (
    AccountResolutionError,
    InvalidTransitionError,
    PolicyBucketExhaustedError,
)
from hr_portal.common.pagination import PaginationParams, paginate
from hr_portal.core_hr.models import Employee
from hr_portal.leave.models import LeaveRequest
from hr_portal.leave.schemas import LeaveRequestCreate
from hr_portal.leave.service import LeaveService
from hr_portal.notifications.service import notify_leave_request
from tests.conftest import Org, _seed_employee


def _params(page: int = 1, page_size: int = 2) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size, sort=None)


# ═════════════════════════════════════════════════════════════════════
# AUDIT SINK
# ═════════════════════════════════════════════════════════════════════


class TestAuditSink:

    async def test_entry_is_recorded(self, db: AsyncSession, org: Org):
        entry = await emit_audit_event(
            db,
            action=AuditAction.leave_edit,
            entity_type="leave_request",
            entity_id=org.employee.id,
            actor_id=org.hr.id,
            old_values={"working_days": 5},
            new_values={"working_days": 7},
        )
        assert entry is not None
        assert entry.action == "leave_edit"

    async def test_sink_failure_does_not_undo_the_mutation(self, db: AsyncSession, org: Org):
        failing = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk full")))
        with patch("hr_portal.common.audit.create_audit_entry", failing):
            leave, _ = await LeaveService.submit_leave_request(
                db, org.employee.id,
                LeaveRequestCreate(start_date=date(2026, 3, 2), end_date=date(2026, 3, 6)),
            )
        assert failing.await_count == 1
        stored = await db.get(LeaveRequest, leave.id)
        assert stored is not None
        assert stored.status == LeaveStatus.pending_director
        count = (await db.execute(select(func.count()).select_from(AuditTrail))).scalar_one()
        assert count == 0

    async def test_notification_failure_is_swallowed(self, db: AsyncSession, org: Org):
        leave, _ = await LeaveService.submit_leave_request(
            db, org.employee.id,
            LeaveRequestCreate(start_date=date(2026, 3, 2), end_date=date(2026, 3, 6)),
        )
        failing = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("locked")))
        with patch(
            "hr_portal.notifications.service.NotificationService.create_notification", failing,
        ):
            assert await notify_leave_request(db, leave, org.director.id) is None


# ═════════════════════════════════════════════════════════════════════
# PAGINATION
# ═════════════════════════════════════════════════════════════════════


class TestPaginate:

    async def test_first_page(self, db: AsyncSession):
        for name in ("Ana", "Bogdan", "Corina"):
            await _seed_employee(db, first_name=name)
        rows, meta = await paginate(
            db, select(Employee).order_by(Employee.first_name), _params(), model=Employee,
        )
        assert [r.first_name for r in rows] == ["Ana", "Bogdan"]
        assert meta.total == 3
        assert meta.total_pages == 2
        assert meta.has_next is True
        assert meta.has_prev is False

    async def test_last_page(self, db: AsyncSession):
        for name in ("Ana", "Bogdan", "Corina"):
            await _seed_employee(db, first_name=name)
        rows, meta = await paginate(
            db, select(Employee).order_by(Employee.first_name), _params(page=2), model=Employee,
        )
        assert [r.first_name for r in rows] == ["Corina"]
        assert meta.has_next is False
        assert meta.has_prev is True

    async def test_sort_param(self, db: AsyncSession):
        for name in ("Ana", "Bogdan", "Corina"):
            await _seed_employee(db, first_name=name)
        params = PaginationParams(page=1, page_size=10, sort="-first_name")
        rows, _ = await paginate(db, select(Employee), params, model=Employee)
        assert [r.first_name for r in rows] == ["Corina", "Bogdan", "Ana"]

    async def test_empty(self, db: AsyncSession):
        rows, meta = await paginate(db, select(Employee), _params(), model=Employee)
        assert list(rows) == []
        assert meta.total == 0
        assert meta.total_pages == 0


# ═════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═════════════════════════════════════════════════════════════════════


class TestLeaveExceptions:

    def test_invalid_transition_detail(self):
        exc = InvalidTransitionError(current="approved", action="department_head_approve")
        assert exc.status_code == 409
        assert exc.detail == "Cannot department_head_approve a leave request that is 'approved'."

    def test_policy_bucket_exhausted_reports_both_buckets(self):
        exc = PolicyBucketExhaustedError("carryover_only", current_available=16, carryover_remaining=1)
        assert exc.errors == {"current_available": ["16"], "carryover_remaining": ["1"]}
        assert "auto" in exc.detail

    def test_account_resolution_detail(self):
        exc = AccountResolutionError("CO-2026-0007")
        assert exc.status_code == 409
        assert exc.error_type == "account-unresolved"
        assert "CO-2026-0007" in exc.detail

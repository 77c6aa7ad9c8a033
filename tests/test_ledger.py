"""Tests for the leave ledger — balance derivation, debit/credit, policy deltas."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.constants import SourcePolicy
from hr_portal.common.exceptions import (
    InsufficientBalanceError,
    PolicyBucketExhaustedError,
    ValidationException,
)
from hr_portal.leave.ledger import LeaveLedger
from hr_portal.leave.models import BonusGrant, CarryoverGrant, EmployeeLeaveAccount
from tests.conftest import _seed_employee

YEAR = 2026


# ── Helpers ─────────────────────────────────────────────────────────


async def _seed_account(
    db: AsyncSession,
    employee_id: uuid.UUID,
    *,
    base: int = 21,
    used: int = 0,
    year: int = YEAR,
) -> EmployeeLeaveAccount:
    account = EmployeeLeaveAccount(
        employee_id=employee_id, year=year, base_allocation_days=base, used_days=used,
    )
    db.add(account)
    await db.flush()
    return account


async def _seed_carryover(
    db: AsyncSession,
    employee_id: uuid.UUID,
    *,
    initial: int,
    used: int = 0,
    from_year: int = YEAR - 1,
    to_year: int = YEAR,
) -> CarryoverGrant:
    grant = CarryoverGrant(
        employee_id=employee_id,
        from_year=from_year,
        to_year=to_year,
        initial_days=initial,
        used_days=used,
        remaining_days=initial - used,
    )
    db.add(grant)
    await db.flush()
    return grant


async def _seed_bonus(db: AsyncSession, employee_id: uuid.UUID, days: int, year: int = YEAR) -> BonusGrant:
    bonus = BonusGrant(employee_id=employee_id, year=year, bonus_days=days, reason="Vechime")
    db.add(bonus)
    await db.flush()
    return bonus


# ═════════════════════════════════════════════════════════════════════
# BALANCE
# ═════════════════════════════════════════════════════════════════════


class TestBalance:

    async def test_missing_account_reads_default_allocation(self, db: AsyncSession):
        emp = await _seed_employee(db)
        breakdown = await LeaveLedger.balance_breakdown(db, emp.id, YEAR)
        assert breakdown.base_allocation_days == 21
        assert breakdown.used_days == 0
        assert breakdown.available_days == 21
        assert await LeaveLedger.get_account(db, emp.id, YEAR) is None

    async def test_all_buckets_contribute(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_account(db, emp.id, base=25, used=7)
        await _seed_carryover(db, emp.id, initial=5, used=2)
        await _seed_carryover(db, emp.id, initial=4, from_year=YEAR - 2)
        await _seed_bonus(db, emp.id, 2)
        await _seed_bonus(db, emp.id, 1)

        breakdown = await LeaveLedger.balance_breakdown(db, emp.id, YEAR)
        assert breakdown.carryover_remaining_days == 7
        assert breakdown.bonus_days == 3
        assert breakdown.current_year_available == 25 + 3 - 7
        assert breakdown.available_days == 25 + 7 + 3 - 7

    async def test_other_years_are_ignored(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_account(db, emp.id, used=10, year=YEAR - 1)
        await _seed_carryover(db, emp.id, initial=3, from_year=YEAR, to_year=YEAR + 1)
        await _seed_bonus(db, emp.id, 4, year=YEAR - 1)
        assert await LeaveLedger.available_balance(db, emp.id, YEAR) == 21

    async def test_open_account_is_idempotent(self, db: AsyncSession):
        emp = await _seed_employee(db)
        first = await LeaveLedger.open_account(db, emp.id, YEAR)
        second = await LeaveLedger.open_account(db, emp.id, YEAR)
        assert first.id == second.id
        assert first.base_allocation_days == 21


# ═════════════════════════════════════════════════════════════════════
# DEBIT / CREDIT
# ═════════════════════════════════════════════════════════════════════


class TestDebit:

    async def test_debit_consumes_current_year(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id)
        movement = await LeaveLedger.debit(db, emp.id, YEAR, 5)
        assert movement.from_current == 5
        assert movement.from_carryover == 0
        assert account.used_days == 5
        assert await LeaveLedger.available_balance(db, emp.id, YEAR) == 16

    async def test_debit_opens_missing_account(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await LeaveLedger.debit(db, emp.id, YEAR, 3)
        account = await LeaveLedger.get_account(db, emp.id, YEAR)
        assert account is not None
        assert account.used_days == 3

    async def test_debit_draws_carryover_first(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=20)
        grant = await _seed_carryover(db, emp.id, initial=4)
        movement = await LeaveLedger.debit(db, emp.id, YEAR, 3)
        assert movement.from_carryover == 3
        assert movement.from_current == 0
        assert grant.remaining_days == 1
        assert grant.used_days == 3
        assert account.used_days == 20

    async def test_debit_overflow_lands_on_current_year(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id)
        grant = await _seed_carryover(db, emp.id, initial=3)
        movement = await LeaveLedger.debit(db, emp.id, YEAR, 5)
        assert movement.from_carryover == 3
        assert movement.from_current == 2
        assert grant.remaining_days == 0
        assert grant.used_days == 3
        assert account.used_days == 2
        assert await LeaveLedger.available_balance(db, emp.id, YEAR) == 19

    async def test_debit_takes_oldest_grant_first(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_account(db, emp.id)
        older = await _seed_carryover(db, emp.id, initial=2, from_year=YEAR - 2)
        newer = await _seed_carryover(db, emp.id, initial=2, from_year=YEAR - 1)
        await LeaveLedger.debit(db, emp.id, YEAR, 3)
        assert older.remaining_days == 0
        assert newer.remaining_days == 1

    async def test_debit_insufficient(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=18)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            await LeaveLedger.debit(db, emp.id, YEAR, 4)
        assert exc_info.value.requested == 4
        assert exc_info.value.available == 3
        assert account.used_days == 18

    async def test_debit_rejects_non_positive(self, db: AsyncSession):
        emp = await _seed_employee(db)
        with pytest.raises(ValidationException):
            await LeaveLedger.debit(db, emp.id, YEAR, 0)

    async def test_debit_bumps_version(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id)
        before = account.version
        await LeaveLedger.debit(db, emp.id, YEAR, 1)
        assert account.version == before + 1


class TestCredit:

    async def test_credit_returns_days(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=8)
        movement = await LeaveLedger.credit(db, emp.id, YEAR, 5)
        assert account.used_days == 3
        assert movement.from_current == -5

    async def test_credit_floors_at_zero(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=2)
        movement = await LeaveLedger.credit(db, emp.id, YEAR, 5)
        assert account.used_days == 0
        assert movement.from_current == -2


# ═════════════════════════════════════════════════════════════════════
# POLICY DELTAS
# ═════════════════════════════════════════════════════════════════════


class TestApplyDeltaAuto:

    async def test_positive_delta_drains_carryover_first(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=5)
        grant = await _seed_carryover(db, emp.id, initial=3)

        movement = await LeaveLedger.apply_delta(db, emp.id, YEAR, 2, SourcePolicy.auto)
        assert movement.from_carryover == 2
        assert movement.from_current == 0
        assert grant.remaining_days == 1
        assert grant.used_days == 2
        assert account.used_days == 5

    async def test_overflow_goes_to_current_year(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=5)
        grant = await _seed_carryover(db, emp.id, initial=3)

        movement = await LeaveLedger.apply_delta(db, emp.id, YEAR, 5, SourcePolicy.auto)
        assert movement.from_carryover == 3
        assert movement.from_current == 2
        assert grant.remaining_days == 0
        assert account.used_days == 7

    async def test_oldest_grant_consumed_first(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_account(db, emp.id)
        older = await _seed_carryover(db, emp.id, initial=2, from_year=YEAR - 2)
        newer = await _seed_carryover(db, emp.id, initial=2, from_year=YEAR - 1)

        await LeaveLedger.apply_delta(db, emp.id, YEAR, 3, SourcePolicy.auto)
        assert older.remaining_days == 0
        assert newer.remaining_days == 1

    async def test_negative_delta_refunds_current_year(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=5)
        grant = await _seed_carryover(db, emp.id, initial=3, used=1)

        movement = await LeaveLedger.apply_delta(db, emp.id, YEAR, -2, SourcePolicy.auto)
        assert movement.from_current == -2
        assert account.used_days == 3
        assert grant.remaining_days == 2

    async def test_zero_delta_is_a_no_op(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=5)
        movement = await LeaveLedger.apply_delta(db, emp.id, YEAR, 0)
        assert movement.total == 0
        assert account.used_days == 5


class TestApplyDeltaCurrentOnly:

    async def test_positive_delta_ignores_carryover(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=5)
        grant = await _seed_carryover(db, emp.id, initial=3)

        await LeaveLedger.apply_delta(db, emp.id, YEAR, 2, SourcePolicy.current_only)
        assert account.used_days == 7
        assert grant.remaining_days == 3

    async def test_refund_floors_at_zero(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=3)
        movement = await LeaveLedger.apply_delta(db, emp.id, YEAR, -5, SourcePolicy.current_only)
        assert account.used_days == 0
        assert movement.from_current == -3


class TestApplyDeltaCarryoverOnly:

    async def test_consumes_carryover(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=5)
        grant = await _seed_carryover(db, emp.id, initial=3)

        movement = await LeaveLedger.apply_delta(db, emp.id, YEAR, 3, SourcePolicy.carryover_only)
        assert movement.from_carryover == 3
        assert grant.remaining_days == 0
        assert account.used_days == 5

    async def test_refund_restores_carryover(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_account(db, emp.id)
        grant = await _seed_carryover(db, emp.id, initial=3, used=3)

        await LeaveLedger.apply_delta(db, emp.id, YEAR, -2, SourcePolicy.carryover_only)
        assert grant.used_days == 1
        assert grant.remaining_days == 2

    async def test_exhausted_bucket(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id, used=5)
        grant = await _seed_carryover(db, emp.id, initial=1)

        with pytest.raises(PolicyBucketExhaustedError) as exc_info:
            await LeaveLedger.apply_delta(db, emp.id, YEAR, 2, SourcePolicy.carryover_only)
        assert exc_info.value.carryover_remaining == 1
        assert exc_info.value.current_available == 16
        assert grant.remaining_days == 1
        assert account.used_days == 5

    async def test_no_grants(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_account(db, emp.id)
        with pytest.raises(PolicyBucketExhaustedError):
            await LeaveLedger.apply_delta(db, emp.id, YEAR, 1, SourcePolicy.carryover_only)

    async def test_refund_beyond_consumed(self, db: AsyncSession):
        emp = await _seed_employee(db)
        await _seed_account(db, emp.id)
        await _seed_carryover(db, emp.id, initial=3, used=1)
        with pytest.raises(PolicyBucketExhaustedError):
            await LeaveLedger.apply_delta(db, emp.id, YEAR, -2, SourcePolicy.carryover_only)


# ═════════════════════════════════════════════════════════════════════
# CARRYOVER GRANTS
# ═════════════════════════════════════════════════════════════════════


class TestGrantCarryover:

    async def test_new_grant(self, db: AsyncSession):
        emp = await _seed_employee(db)
        grant = await LeaveLedger.grant_carryover(db, emp.id, YEAR - 1, YEAR, 4)
        assert (grant.initial_days, grant.used_days, grant.remaining_days) == (4, 0, 4)
        assert await LeaveLedger.available_balance(db, emp.id, YEAR) == 25

    async def test_regrant_keeps_consumed_days(self, db: AsyncSession):
        emp = await _seed_employee(db)
        grant = await _seed_carryover(db, emp.id, initial=4, used=3)
        regranted = await LeaveLedger.grant_carryover(db, emp.id, YEAR - 1, YEAR, 2)
        assert regranted.id == grant.id
        assert regranted.used_days == 3
        assert regranted.remaining_days == 2
        assert regranted.initial_days == 5
        assert regranted.remaining_days == regranted.initial_days - regranted.used_days

    async def test_grant_runs_under_the_account_lock(self, db: AsyncSession):
        emp = await _seed_employee(db)
        account = await _seed_account(db, emp.id)
        before = account.version
        await LeaveLedger.grant_carryover(db, emp.id, YEAR - 1, YEAR, 1)
        assert account.version == before + 1

    async def test_negative_days_rejected(self, db: AsyncSession):
        emp = await _seed_employee(db)
        with pytest.raises(ValidationException):
            await LeaveLedger.grant_carryover(db, emp.id, YEAR - 1, YEAR, -1)

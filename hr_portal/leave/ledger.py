"""Leave balance ledger — the only writer of ``used_days`` and carryover counters.

Available balance is derived on every read and never cached::

    base_allocation_days + Σ carryover.remaining_days (to_year = year)
                         + Σ bonus.bonus_days (year) - used_days

Every mutation locks the employee's account row (``SELECT … FOR UPDATE``),
re-evaluates the balance under that lock and bumps the account's optimistic
version counter. A version mismatch surfaces as ConcurrentUpdateError.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from hr_portal.common.constants import SourcePolicy
from hr_portal.common.exceptions import (
    ConcurrentUpdateError,
    InsufficientBalanceError,
    PolicyBucketExhaustedError,
    ValidationException,
)
from hr_portal.config import settings
from hr_portal.leave.models import BonusGrant, CarryoverGrant, EmployeeLeaveAccount

logger = logging.getLogger(__name__)


@dataclass
class BalanceBreakdown:
    employee_id: uuid.UUID
    year: int
    base_allocation_days: int
    carryover_remaining_days: int
    bonus_days: int
    used_days: int

    @property
    def current_year_available(self) -> int:
        return self.base_allocation_days + self.bonus_days - self.used_days

    @property
    def available_days(self) -> int:
        return self.current_year_available + self.carryover_remaining_days


@dataclass
class LedgerMovement:
    """Days moved by one ledger call; positive consumes, negative refunds."""

    from_carryover: int = 0
    from_current: int = 0

    @property
    def total(self) -> int:
        return self.from_carryover + self.from_current

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class LeaveLedger:
    """Async ledger operations. Callers own the transaction."""

    # ── Account resolution ──────────────────────────────────────────

    @staticmethod
    async def get_account(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> Optional[EmployeeLeaveAccount]:
        result = await db.execute(
            select(EmployeeLeaveAccount).where(
                EmployeeLeaveAccount.employee_id == employee_id,
                EmployeeLeaveAccount.year == year,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def open_account(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> EmployeeLeaveAccount:
        """Return the (employee, year) account, creating it with the default allocation."""
        account = await LeaveLedger.get_account(db, employee_id, year)
        if account is not None:
            return account

        try:
            async with db.begin_nested():
                account = EmployeeLeaveAccount(
                    employee_id=employee_id,
                    year=year,
                    base_allocation_days=settings.DEFAULT_ANNUAL_LEAVE_DAYS,
                    used_days=0,
                )
                db.add(account)
                await db.flush()
        except IntegrityError:
            # Opened concurrently by another transaction
            account = await LeaveLedger.get_account(db, employee_id, year)
            if account is None:
                raise
            return account

        logger.info(
            "Opened leave account %s for employee %s/%s with %s days",
            account.id, employee_id, year, account.base_allocation_days,
        )
        return account

    @staticmethod
    async def lock_account(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> EmployeeLeaveAccount:
        """Open (if needed) and row-lock the account, refreshing its state."""
        account = await LeaveLedger.open_account(db, employee_id, year)
        locked = await LeaveLedger.lock_account_by_id(db, account.id)
        if locked is None:
            raise ConcurrentUpdateError("EmployeeLeaveAccount", account.id)
        return locked

    @staticmethod
    async def lock_account_by_id(
        db: AsyncSession,
        account_id: Optional[uuid.UUID],
    ) -> Optional[EmployeeLeaveAccount]:
        """Row-lock an account by id; None when it no longer exists."""
        if account_id is None:
            return None
        result = await db.execute(
            select(EmployeeLeaveAccount)
            .where(EmployeeLeaveAccount.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def _carryover_grants(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        *,
        lock: bool = False,
    ) -> Sequence[CarryoverGrant]:
        query = (
            select(CarryoverGrant)
            .where(
                CarryoverGrant.employee_id == employee_id,
                CarryoverGrant.to_year == year,
            )
            .order_by(CarryoverGrant.from_year)
        )
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def _bonus_total(db: AsyncSession, employee_id: uuid.UUID, year: int) -> int:
        result = await db.execute(
            select(func.coalesce(func.sum(BonusGrant.bonus_days), 0)).where(
                BonusGrant.employee_id == employee_id,
                BonusGrant.year == year,
            )
        )
        return int(result.scalar_one())

    @staticmethod
    async def _breakdown(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        account: Optional[EmployeeLeaveAccount],
        grants: Sequence[CarryoverGrant],
    ) -> BalanceBreakdown:
        return BalanceBreakdown(
            employee_id=employee_id,
            year=year,
            base_allocation_days=(
                account.base_allocation_days if account is not None
                else settings.DEFAULT_ANNUAL_LEAVE_DAYS
            ),
            carryover_remaining_days=sum(g.remaining_days for g in grants),
            bonus_days=await LeaveLedger._bonus_total(db, employee_id, year),
            used_days=account.used_days if account is not None else 0,
        )

    @staticmethod
    async def balance_breakdown(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> BalanceBreakdown:
        """Per-bucket balance. A missing account reads as the default allocation."""
        account = await LeaveLedger.get_account(db, employee_id, year)
        grants = await LeaveLedger._carryover_grants(db, employee_id, year)
        return await LeaveLedger._breakdown(db, employee_id, year, account, grants)

    @staticmethod
    async def available_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> int:
        breakdown = await LeaveLedger.balance_breakdown(db, employee_id, year)
        return breakdown.available_days

    # ── Mutations ───────────────────────────────────────────────────

    @staticmethod
    async def _commit_account(db: AsyncSession, account: EmployeeLeaveAccount) -> None:
        """Flush the account, bumping its version; stale versions → ConcurrentUpdateError."""
        account.updated_at = datetime.now(timezone.utc)
        try:
            await db.flush()
        except StaleDataError as exc:
            raise ConcurrentUpdateError("EmployeeLeaveAccount", account.id) from exc

    @staticmethod
    async def debit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        days: int,
        *,
        account: Optional[EmployeeLeaveAccount] = None,
    ) -> LedgerMovement:
        """Consume *days*: carryover remaining first (oldest grant first), the
        rest from the current-year bucket.

        Raises InsufficientBalanceError when *days* exceeds the available
        balance, evaluated under the account lock.
        """
        if days <= 0:
            raise ValidationException({"days": ["Days to debit must be positive."]})

        if account is None:
            account = await LeaveLedger.lock_account(db, employee_id, year)
        grants = await LeaveLedger._carryover_grants(db, employee_id, year, lock=True)
        breakdown = await LeaveLedger._breakdown(db, employee_id, year, account, grants)
        if days > breakdown.available_days:
            raise InsufficientBalanceError(requested=days, available=breakdown.available_days)

        take = min(days, breakdown.carryover_remaining_days)
        _consume_carryover(grants, take)
        account.used_days += days - take
        await LeaveLedger._commit_account(db, account)
        logger.info(
            "Debited %s days from %s/%s: carryover %s, current %s (used now %s)",
            days, employee_id, year, take, days - take, account.used_days,
        )
        return LedgerMovement(from_carryover=take, from_current=days - take)

    @staticmethod
    async def credit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        days: int,
        *,
        account: Optional[EmployeeLeaveAccount] = None,
    ) -> LedgerMovement:
        """Return *days* to the current-year bucket; ``used_days`` floors at 0."""
        if days <= 0:
            raise ValidationException({"days": ["Days to credit must be positive."]})

        if account is None:
            account = await LeaveLedger.lock_account(db, employee_id, year)
        before = account.used_days
        account.used_days = max(0, before - days)
        await LeaveLedger._commit_account(db, account)

        movement = LedgerMovement(from_current=account.used_days - before)
        logger.info(
            "Credited %s days to %s/%s (used %s -> %s)",
            days, employee_id, year, before, account.used_days,
        )
        return movement

    @staticmethod
    async def apply_delta(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        delta: int,
        policy: SourcePolicy = SourcePolicy.auto,
        *,
        account: Optional[EmployeeLeaveAccount] = None,
    ) -> LedgerMovement:
        """Apply a signed correction to the ledger.

        Positive *delta* consumes days, negative refunds them:

        * ``auto`` — consume carryover remaining first (oldest grant first),
          the rest from the current year; refunds go to the current year.
        * ``current_only`` — whole delta on ``used_days`` (floor 0).
        * ``carryover_only`` — whole delta on the carryover grants; raises
          PolicyBucketExhaustedError when they cannot absorb it.
        """
        policy = SourcePolicy(policy)
        if delta == 0:
            return LedgerMovement()

        if account is None:
            account = await LeaveLedger.lock_account(db, employee_id, year)
        grants = await LeaveLedger._carryover_grants(db, employee_id, year, lock=True)

        if policy is SourcePolicy.carryover_only:
            movement = await LeaveLedger._apply_to_carryover(
                db, employee_id, year, delta, account, grants,
            )
        elif policy is SourcePolicy.auto and delta > 0:
            take = min(delta, sum(g.remaining_days for g in grants))
            _consume_carryover(grants, take)
            before = account.used_days
            account.used_days = before + (delta - take)
            movement = LedgerMovement(
                from_carryover=take, from_current=account.used_days - before,
            )
        else:
            before = account.used_days
            account.used_days = max(0, before + delta)
            movement = LedgerMovement(from_current=account.used_days - before)

        await LeaveLedger._commit_account(db, account)
        logger.info(
            "Applied delta %+d (%s) to %s/%s: carryover %+d, current %+d",
            delta, policy.value, employee_id, year,
            movement.from_carryover, movement.from_current,
        )
        return movement

    @staticmethod
    async def _apply_to_carryover(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        delta: int,
        account: EmployeeLeaveAccount,
        grants: Sequence[CarryoverGrant],
    ) -> LedgerMovement:
        remaining = sum(g.remaining_days for g in grants)
        used = sum(g.used_days for g in grants)
        if not grants or (delta > 0 and remaining < delta) or (delta < 0 and used < -delta):
            breakdown = await LeaveLedger._breakdown(db, employee_id, year, account, grants)
            raise PolicyBucketExhaustedError(
                policy=SourcePolicy.carryover_only.value,
                current_available=breakdown.current_year_available,
                carryover_remaining=remaining,
            )

        if delta > 0:
            _consume_carryover(grants, delta)
        else:
            _refund_carryover(grants, -delta)
        return LedgerMovement(from_carryover=delta)

    # ── Carryover grants ────────────────────────────────────────────

    @staticmethod
    async def grant_carryover(
        db: AsyncSession,
        employee_id: uuid.UUID,
        from_year: int,
        to_year: int,
        remaining_days: int,
    ) -> CarryoverGrant:
        """Create or reset the ``(from_year, to_year)`` grant to *remaining_days*.

        Days already consumed from an existing grant stay consumed, so a
        re-import sets ``initial_days = used_days + remaining_days``.
        """
        if remaining_days < 0:
            raise ValidationException({"remaining_days": ["Remaining days cannot be negative."]})

        account = await LeaveLedger.lock_account(db, employee_id, to_year)
        grant = (
            await db.execute(
                select(CarryoverGrant)
                .where(
                    CarryoverGrant.employee_id == employee_id,
                    CarryoverGrant.from_year == from_year,
                    CarryoverGrant.to_year == to_year,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalars().first()
        if grant is None:
            grant = CarryoverGrant(
                employee_id=employee_id,
                from_year=from_year,
                to_year=to_year,
                initial_days=remaining_days,
                used_days=0,
                remaining_days=remaining_days,
            )
            db.add(grant)
        else:
            grant.initial_days = grant.used_days + remaining_days
            grant.remaining_days = grant.initial_days - grant.used_days
        await LeaveLedger._commit_account(db, account)

        logger.info(
            "Carryover %s->%s for %s set to %s remaining (%s used)",
            from_year, to_year, employee_id, grant.remaining_days, grant.used_days,
        )
        return grant


# ── Grant arithmetic (keeps remaining = initial - used) ─────────────


def _consume_carryover(grants: Sequence[CarryoverGrant], days: int) -> None:
    for grant in grants:
        if days <= 0:
            break
        take = min(days, grant.remaining_days)
        grant.used_days += take
        grant.remaining_days = grant.initial_days - grant.used_days
        days -= take


def _refund_carryover(grants: Sequence[CarryoverGrant], days: int) -> None:
    # Newest grant first, mirroring oldest-first consumption
    for grant in reversed(grants):
        if days <= 0:
            break
        back = min(days, grant.used_days)
        grant.used_days -= back
        grant.remaining_days = grant.initial_days - grant.used_days
        days -= back

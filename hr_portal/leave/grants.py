"""Bonus grants and carryover import — the additive ledger buckets."""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.audit import emit_audit_event
from hr_portal.common.constants import AuditAction, CarryoverImportStatus
from hr_portal.common.exceptions import NotFoundException, ValidationException
from hr_portal.core_hr.models import Employee
from hr_portal.core_hr.service import DirectoryService
from hr_portal.leave.ledger import LeaveLedger
from hr_portal.leave.models import BonusGrant, CarryoverGrant
from hr_portal.leave.schemas import (
    BonusGrantCreate,
    CarryoverImportRequest,
    CarryoverImportResult,
    CarryoverImportRow,
    CarryoverImportRowResult,
)

logger = logging.getLogger(__name__)


class GrantService:
    """Bonus days and prior-year carryover."""

    # ── Bonus grants ────────────────────────────────────────────────

    @staticmethod
    async def add_bonus(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: BonusGrantCreate,
    ) -> BonusGrant:
        await DirectoryService.get_employee(db, data.employee_id)

        bonus = BonusGrant(
            employee_id=data.employee_id,
            year=data.year,
            bonus_days=data.bonus_days,
            reason=data.reason.strip(),
            legal_basis=data.legal_basis,
            created_by=actor_id,
        )
        db.add(bonus)
        await db.flush()

        logger.info(
            "Bonus of %s days granted to %s for %s by %s",
            bonus.bonus_days, bonus.employee_id, bonus.year, actor_id,
        )
        await emit_audit_event(
            db,
            action=AuditAction.leave_bonus_add,
            entity_type="leave_bonus",
            entity_id=bonus.id,
            actor_id=actor_id,
            new_values={
                "employee_id": str(bonus.employee_id),
                "year": bonus.year,
                "bonus_days": bonus.bonus_days,
                "reason": bonus.reason,
                "legal_basis": bonus.legal_basis,
            },
        )
        return bonus

    @staticmethod
    async def list_bonuses(
        db: AsyncSession,
        *,
        employee_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
    ) -> Sequence[BonusGrant]:
        query = select(BonusGrant).order_by(BonusGrant.year.desc(), BonusGrant.created_at.desc())
        if employee_id is not None:
            query = query.where(BonusGrant.employee_id == employee_id)
        if year is not None:
            query = query.where(BonusGrant.year == year)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def delete_bonus(
        db: AsyncSession,
        actor_id: uuid.UUID,
        bonus_id: uuid.UUID,
    ) -> None:
        bonus = await db.get(BonusGrant, bonus_id)
        if bonus is None:
            raise NotFoundException("BonusGrant", str(bonus_id))

        old_values = {
            "employee_id": str(bonus.employee_id),
            "year": bonus.year,
            "bonus_days": bonus.bonus_days,
            "reason": bonus.reason,
        }
        await db.delete(bonus)
        await db.flush()

        logger.info("Bonus %s removed by %s", bonus_id, actor_id)
        await emit_audit_event(
            db,
            action=AuditAction.leave_bonus_delete,
            entity_type="leave_bonus",
            entity_id=bonus_id,
            actor_id=actor_id,
            old_values=old_values,
        )

    # ── Carryover ───────────────────────────────────────────────────

    @staticmethod
    async def list_carryover(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Sequence[CarryoverGrant]:
        result = await db.execute(
            select(CarryoverGrant)
            .where(CarryoverGrant.employee_id == employee_id)
            .order_by(CarryoverGrant.to_year.desc(), CarryoverGrant.from_year.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def _find_employee(db: AsyncSession, row: CarryoverImportRow) -> Optional[Employee]:
        query = select(Employee).where(Employee.is_active.is_(True))
        if row.employee_id is not None:
            query = query.where(Employee.id == row.employee_id)
        else:
            query = query.where(Employee.employee_code == row.employee_code)
        return (await db.execute(query)).scalars().first()

    @staticmethod
    async def import_carryover(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: CarryoverImportRequest,
    ) -> CarryoverImportResult:
        """Upsert carryover rows for ``(from_year, to_year)``; one result per row."""
        if data.to_year <= data.from_year:
            raise ValidationException({"to_year": ["Carryover must move days into a later year."]})

        results: list[CarryoverImportRowResult] = []
        for row in data.rows:
            reference = str(row.employee_id) if row.employee_id is not None else row.employee_code
            if row.remaining_days < 0:
                results.append(CarryoverImportRowResult(
                    employee_ref=reference,
                    status=CarryoverImportStatus.error,
                    message="Remaining days cannot be negative.",
                ))
                continue

            employee = await GrantService._find_employee(db, row)
            if employee is None:
                results.append(CarryoverImportRowResult(
                    employee_ref=reference,
                    status=CarryoverImportStatus.not_found,
                    message="No active employee matches this row.",
                ))
                continue

            try:
                async with db.begin_nested():
                    grant = await LeaveLedger.grant_carryover(
                        db, employee.id, data.from_year, data.to_year, row.remaining_days,
                    )
            except SQLAlchemyError as exc:
                logger.exception("Carryover row for %s failed", reference)
                results.append(CarryoverImportRowResult(
                    employee_ref=reference,
                    employee_id=employee.id,
                    status=CarryoverImportStatus.error,
                    message=str(exc.__class__.__name__),
                ))
                continue

            results.append(CarryoverImportRowResult(
                employee_ref=reference,
                employee_id=employee.id,
                status=CarryoverImportStatus.success,
                remaining_days=grant.remaining_days,
            ))

        summary = CarryoverImportResult.from_rows(data.from_year, data.to_year, results)
        logger.info(
            "Carryover import %s->%s by %s: %s ok, %s not found, %s errors",
            data.from_year, data.to_year, actor_id,
            summary.success_count, summary.not_found_count, summary.error_count,
        )
        await emit_audit_event(
            db,
            action=AuditAction.bulk_leave_carryover_import,
            entity_type="leave_carryover",
            entity_id=None,
            actor_id=actor_id,
            new_values={
                "from_year": data.from_year,
                "to_year": data.to_year,
                "total": len(results),
                "success": summary.success_count,
                "not_found": summary.not_found_count,
                "error": summary.error_count,
            },
        )
        return summary

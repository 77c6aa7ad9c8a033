"""Directory lookups used by the leave core: employees, roles, colleagues."""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.auth.models import RoleAssignment
from hr_portal.common.constants import UserRole
from hr_portal.common.exceptions import NotFoundException
from hr_portal.core_hr.models import Employee


class DirectoryService:
    """Read-only access to the employee directory."""

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> Employee:
        """Load an employee or raise NotFoundException."""
        query = select(Employee).where(Employee.id == employee_id)
        if active_only:
            query = query.where(Employee.is_active.is_(True))
        employee = (await db.execute(query)).scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def has_role(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *roles: UserRole,
    ) -> bool:
        """True when the employee holds any of *roles* (system_admin counts for all)."""
        result = await db.execute(
            select(RoleAssignment.id).where(
                RoleAssignment.employee_id == employee_id,
                RoleAssignment.role.in_([*roles, UserRole.system_admin]),
                RoleAssignment.is_active.is_(True),
            ).limit(1)
        )
        return result.scalar() is not None

    @staticmethod
    async def get_role_holders(
        db: AsyncSession,
        role: UserRole,
        *,
        department_id: Optional[uuid.UUID] = None,
    ) -> Sequence[Employee]:
        """Active employees holding *role*, optionally within one department."""
        query = (
            select(Employee)
            .join(RoleAssignment, RoleAssignment.employee_id == Employee.id)
            .where(
                RoleAssignment.role == role,
                RoleAssignment.is_active.is_(True),
                Employee.is_active.is_(True),
            )
            .order_by(Employee.last_name, Employee.first_name)
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_colleagues(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Sequence[Employee]:
        """Active employees of the same department, excluding the employee."""
        employee = await DirectoryService.get_employee(db, employee_id)
        if employee.department_id is None:
            return []
        result = await db.execute(
            select(Employee)
            .where(
                Employee.department_id == employee.department_id,
                Employee.id != employee_id,
                Employee.is_active.is_(True),
            )
            .order_by(Employee.last_name, Employee.first_name)
        )
        return result.scalars().all()

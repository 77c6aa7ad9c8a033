"""Auth dependencies — bearer-token identity, role enforcement.

Tokens are issued by the portal's identity provider; this module only
verifies them and resolves the acting employee.
"""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.common.constants import UserRole
from hr_portal.common.exceptions import ForbiddenException
from hr_portal.config import settings
from hr_portal.core_hr.models import Employee
from hr_portal.database import get_db

# Role hierarchy: each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.system_admin: set(UserRole),
    UserRole.hr_admin: {UserRole.hr_admin, UserRole.employee},
    UserRole.director: {UserRole.director, UserRole.employee},
    UserRole.department_head: {UserRole.department_head, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate the JWT and return the authenticated Employee."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        employee_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True))
    )
    employee = result.scalars().first()
    if employee is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    # Attach role to request state for downstream use
    role_str = payload.get("role", UserRole.employee.value)
    try:
        role = UserRole(role_str)
    except ValueError:
        role = UserRole.employee
    request.state.user_role = role

    return employee


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. system_admin can access HR endpoints.
    """

    async def _check(
        request: Request,
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        user_role: UserRole = request.state.user_role
        effective_roles = _ROLE_HIERARCHY.get(user_role, {user_role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return employee

    return _check

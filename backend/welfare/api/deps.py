# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from welfare.exceptions import PermissionDeniedError
from welfare.schemas.auth import REVIEWER_ROLES, ROLES, AuthContext


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default="employee"),
    x_user_name: str | None = Header(default=None),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    role = x_role.strip().lower()
    if role not in ROLES:
        raise PermissionDeniedError(f"Unknown role '{x_role}'")
    return AuthContext(user_id=x_user_id, role=role, name=x_user_name)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if not auth.is_admin:
        raise PermissionDeniedError("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def require_reviewer(
    auth: AuthDep,
) -> AuthContext:
    """Require one of the approver roles (or admin)."""
    if auth.role not in REVIEWER_ROLES:
        raise PermissionDeniedError("Approver access required")
    return auth


ReviewerDep = Annotated[AuthContext, Depends(require_reviewer)]


def ensure_self_or_reviewer(auth: AuthContext, employee_id: uuid.UUID) -> None:
    """Employees may only look at their own records."""
    if employee_id != auth.user_id and auth.role not in REVIEWER_ROLES:
        raise PermissionDeniedError("You can only view your own records")

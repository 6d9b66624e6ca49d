# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

ROLES = ("employee", "manager", "hr", "accounting", "admin")

# Roles that see every request; everyone else only sees their own.
REVIEWER_ROLES = frozenset({"manager", "hr", "accounting", "admin"})


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    user_id: uuid.UUID
    role: str = "employee"
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from welfare.exceptions import IdentityLookupError

logger = logging.getLogger(__name__)


class EmployeeInfo(BaseModel):
    """Identity and department record from the Employee Directory."""

    id: uuid.UUID
    name: str
    position: str | None = None
    department: str
    email: str | None = None


@runtime_checkable
class EmployeeService(Protocol):
    """Interface for the Employee Directory."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee identity. Returns None if not found."""
        ...

    async def list_employees(self) -> list[EmployeeInfo]:
        """List all known employees."""
        ...


class InMemoryEmployeeService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[employee.id] = employee

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee identity. Returns None if not found."""
        return self._employees.get(employee_id)

    async def list_employees(self) -> list[EmployeeInfo]:
        """List all known employees."""
        return list(self._employees.values())


_employee_service: EmployeeService = InMemoryEmployeeService()


def get_employee_service() -> EmployeeService:
    """FastAPI dependency for the Employee Directory."""
    return _employee_service


def set_employee_service(service: EmployeeService) -> None:
    """Override the service (for testing or production wiring)."""
    global _employee_service
    _employee_service = service


async def resolve_requester(employee_id: uuid.UUID) -> EmployeeInfo:
    """Look up the requester; a missing record or a missing department is fatal.

    Requester identity is copied into every request and its approval
    records, so there is no fallback value.
    """
    try:
        employee = await get_employee_service().get_employee(employee_id)
    except Exception as exc:
        logger.exception("Employee directory lookup failed for %s", employee_id)
        raise IdentityLookupError(
            "Could not look up your employee record. Please contact support."
        ) from exc

    if employee is None or not employee.department.strip():
        logger.warning("No employee record or department for %s", employee_id)
        raise IdentityLookupError(
            "Your employee record or department could not be found. Please contact support."
        )
    return employee

# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from welfare.api.deps import AdminDep, AuthDep, ReviewerDep, ensure_self_or_reviewer
from welfare.exceptions import NotFoundError
from welfare.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from welfare.services.employee import EmployeeInfo, get_employee_service

employees_router = APIRouter(
    prefix="/employees",
    tags=["employees"],
)


def _to_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        name=employee.name,
        position=employee.position,
        department=employee.department,
        email=employee.email,
    )


@employees_router.put(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
async def upsert_employee(
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    auth: AdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the stub directory (admin only)."""
    svc = get_employee_service()
    employee = EmployeeInfo(
        id=employee_id,
        name=payload.name,
        position=payload.position,
        department=payload.department,
        email=payload.email,
    )
    svc.seed(employee)  # ty: ignore[unresolved-attribute]
    return _to_response(employee)


@employees_router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
async def get_employee(
    employee_id: uuid.UUID,
    auth: AuthDep,
) -> EmployeeResponse:
    """Get employee info from the directory."""
    ensure_self_or_reviewer(auth, employee_id)
    employee = await get_employee_service().get_employee(employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return _to_response(employee)


@employees_router.get(
    "",
    response_model=EmployeeListResponse,
)
async def list_employees(
    auth: ReviewerDep,
) -> EmployeeListResponse:
    """List all employees in the directory."""
    employees = await get_employee_service().list_employees()
    items = [_to_response(e) for e in employees]
    return EmployeeListResponse(items=items, total=len(items))

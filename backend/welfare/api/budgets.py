# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from welfare.api.deps import AuthDep, ensure_self_or_reviewer
from welfare.db import SessionDep
from welfare.models.enums import RequestType, StoredBudgetKey
from welfare.schemas.budget import (
    BenefitLimitListResponse,
    BudgetSnapshot,
    BudgetSnapshotListResponse,
    SetStoredBudgetPayload,
    StoredBudgetResponse,
)
from welfare.services import budget as budget_service

limits_router = APIRouter(
    prefix="/benefit-limits",
    tags=["budgets"],
)

budgets_router = APIRouter(
    prefix="/employees/{employee_id}/budgets",
    tags=["budgets"],
)


@limits_router.get("", response_model=BenefitLimitListResponse)
async def list_benefit_limits(
    auth: AuthDep,
) -> BenefitLimitListResponse:
    """Static limits for every benefit type."""
    return BenefitLimitListResponse(items=budget_service.list_benefit_limits())


@budgets_router.get("", response_model=BudgetSnapshotListResponse)
async def list_budgets(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> BudgetSnapshotListResponse:
    """Limit, used and remaining for every benefit type of one employee."""
    ensure_self_or_reviewer(auth, employee_id)
    return await budget_service.list_budget_snapshots(session, employee_id)


@budgets_router.get("/{benefit_type}", response_model=BudgetSnapshot)
async def get_budget(
    employee_id: uuid.UUID,
    benefit_type: RequestType,
    session: SessionDep,
    auth: AuthDep,
) -> BudgetSnapshot:
    """Current remaining budget for one benefit type."""
    ensure_self_or_reviewer(auth, employee_id)
    return await budget_service.get_budget_snapshot(session, employee_id, benefit_type)


@budgets_router.put("/{budget_key}", response_model=StoredBudgetResponse)
async def set_stored_budget(
    employee_id: uuid.UUID,
    budget_key: StoredBudgetKey,
    payload: SetStoredBudgetPayload,
    session: SessionDep,
    auth: AuthDep,
) -> StoredBudgetResponse:
    """Set an employee's stored training or dental/glasses budget (hr/admin only)."""
    return await budget_service.set_stored_budget(session, auth, employee_id, budget_key, payload.amount)

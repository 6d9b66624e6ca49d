# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from welfare.models.enums import BudgetPeriod, RequestType, StoredBudgetKey


class BenefitLimit(BaseModel):
    """Static policy cap for one benefit type."""

    benefit_type: RequestType
    amount: Decimal
    condition: str
    is_monthly: bool = False
    period: BudgetPeriod = BudgetPeriod.ANNUAL


class BenefitLimitListResponse(BaseModel):
    items: list[BenefitLimit]


class BudgetSnapshot(BaseModel):
    """Remaining entitlement of one employee for one benefit type, computed on demand."""

    employee_id: uuid.UUID
    benefit_type: RequestType
    period_kind: BudgetPeriod
    limit: Decimal
    used: Decimal
    remaining: Decimal


class BudgetSnapshotListResponse(BaseModel):
    items: list[BudgetSnapshot]


class SetStoredBudgetPayload(BaseModel):
    """Request body for setting a stored budget figure."""

    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class StoredBudgetResponse(BaseModel):
    employee_id: uuid.UUID
    budget_key: StoredBudgetKey
    amount: Decimal
    updated_by: uuid.UUID | None
    updated_at: datetime

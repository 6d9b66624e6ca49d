"""Budget ledger queries: static benefit limits and remaining entitlements.

Remaining figures are derived from completed requests (or a stored
per-employee figure) at the moment of the query. Submission reads them
once and freezes the value into the request; nothing here locks.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from welfare.config import get_settings
from welfare.exceptions import PermissionDeniedError, SubmissionValidationError
from welfare.models.budget import EmployeeBudget
from welfare.models.enums import BENEFIT_TYPES, BudgetPeriod, RequestStatus, RequestType, StoredBudgetKey
from welfare.models.request import WelfareRequest
from welfare.schemas.budget import (
    BenefitLimit,
    BudgetSnapshot,
    BudgetSnapshotListResponse,
    StoredBudgetResponse,
)
from welfare.services.financials import ZERO, to_money

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from welfare.schemas.auth import AuthContext

# Static caps. Training is employee-specific and resolved separately.
_STATIC_LIMITS: dict[RequestType, BenefitLimit] = {
    RequestType.WEDDING: BenefitLimit(
        benefit_type=RequestType.WEDDING,
        amount=Decimal("3000.00"),
        condition="Legally registered marriage, once per employee",
    ),
    RequestType.CHILDBIRTH: BenefitLimit(
        benefit_type=RequestType.CHILDBIRTH,
        amount=Decimal("8000.00"),
        condition="Natural delivery 4,000, caesarean delivery 6,000",
    ),
    RequestType.FUNERAL: BenefitLimit(
        benefit_type=RequestType.FUNERAL,
        amount=Decimal("10000.00"),
        condition="Employee, spouse, child or parent",
    ),
    RequestType.GLASSES: BenefitLimit(
        benefit_type=RequestType.GLASSES,
        amount=Decimal("2000.00"),
        condition="Shared yearly budget with dental care",
    ),
    RequestType.DENTAL: BenefitLimit(
        benefit_type=RequestType.DENTAL,
        amount=Decimal("2000.00"),
        condition="Shared yearly budget with glasses",
    ),
    RequestType.FITNESS: BenefitLimit(
        benefit_type=RequestType.FITNESS,
        amount=Decimal("300.00"),
        condition="Gym or sports membership receipts",
        is_monthly=True,
        period=BudgetPeriod.MONTHLY,
    ),
    RequestType.MEDICAL: BenefitLimit(
        benefit_type=RequestType.MEDICAL,
        amount=Decimal("1000.00"),
        condition="Outpatient treatment not covered by social security",
    ),
}

# Types whose completed requests draw from the same budget.
_SHARED_POOLS: dict[RequestType, frozenset[RequestType]] = {
    RequestType.GLASSES: frozenset({RequestType.GLASSES, RequestType.DENTAL}),
    RequestType.DENTAL: frozenset({RequestType.GLASSES, RequestType.DENTAL}),
}

# Types whose remaining figure comes from a stored per-employee row when present.
_STORED_BALANCE_KEYS: dict[RequestType, StoredBudgetKey] = {
    RequestType.GLASSES: StoredBudgetKey.DENTAL_GLASSES,
    RequestType.DENTAL: StoredBudgetKey.DENTAL_GLASSES,
}

BUDGET_ADMIN_ROLES = frozenset({"hr", "admin"})


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def get_benefit_limit(benefit_type: RequestType) -> BenefitLimit | None:
    """Static policy lookup. None for advance/clearing types, which have no cap.

    For training the amount is the default allotment; the effective cap
    is per employee, see :func:`get_training_allotment`.
    """
    if benefit_type == RequestType.TRAINING:
        return BenefitLimit(
            benefit_type=RequestType.TRAINING,
            amount=to_money(get_settings().default_training_budget),
            condition="Based on the employee's remaining training budget",
            period=BudgetPeriod.RUNNING,
        )
    return _STATIC_LIMITS.get(benefit_type)


def list_benefit_limits() -> list[BenefitLimit]:
    """Limits for every benefit type, in catalogue order."""
    limits = [get_benefit_limit(t) for t in RequestType if t in BENEFIT_TYPES]
    return [limit for limit in limits if limit is not None]


def period_bounds(period: BudgetPeriod, today: date) -> tuple[datetime, datetime] | None:
    """Return the [start, end) UTC window for a period, or None for running budgets."""
    if period == BudgetPeriod.MONTHLY:
        start = datetime(today.year, today.month, 1, tzinfo=UTC)
        if today.month == 12:
            end = datetime(today.year + 1, 1, 1, tzinfo=UTC)
        else:
            end = datetime(today.year, today.month + 1, 1, tzinfo=UTC)
        return start, end
    if period == BudgetPeriod.ANNUAL:
        return datetime(today.year, 1, 1, tzinfo=UTC), datetime(today.year + 1, 1, 1, tzinfo=UTC)
    return None


def _as_money(value: object) -> Decimal:
    return to_money(Decimal(str(value or 0)))


# ---------------------------------------------------------------------------
# Ledger queries
# ---------------------------------------------------------------------------


async def _get_stored_budget(
    session: AsyncSession,
    employee_id: uuid.UUID,
    key: StoredBudgetKey,
) -> EmployeeBudget | None:
    result = await session.execute(
        select(EmployeeBudget).where(
            col(EmployeeBudget.employee_id) == employee_id,
            col(EmployeeBudget.budget_key) == key.value,
        )
    )
    return result.scalar_one_or_none()


async def get_training_allotment(session: AsyncSession, employee_id: uuid.UUID) -> Decimal:
    """Employee's training allotment; the configured default when none is stored."""
    stored = await _get_stored_budget(session, employee_id, StoredBudgetKey.TRAINING)
    if stored is not None:
        return to_money(stored.amount)
    return to_money(get_settings().default_training_budget)


async def _sum_completed(
    session: AsyncSession,
    employee_id: uuid.UUID,
    pool: frozenset[RequestType],
    window: tuple[datetime, datetime] | None,
    *,
    budget_covered: bool = False,
) -> Decimal:
    """Sum completed requests of the pool within the window.

    ``budget_covered`` sums ``gross - excess``, the part of a training
    request the budget actually paid, instead of the submitted amount.
    """
    amount = (
        col(WelfareRequest.gross_amount) - col(WelfareRequest.excess_amount)
        if budget_covered
        else col(WelfareRequest.submitted_amount)
    )
    query = select(func.coalesce(func.sum(amount), 0)).where(
        col(WelfareRequest.requester_id) == employee_id,
        col(WelfareRequest.request_type).in_([t.value for t in pool]),
        col(WelfareRequest.status) == RequestStatus.COMPLETED.value,
    )
    if window is not None:
        start, end = window
        query = query.where(
            col(WelfareRequest.submitted_at) >= start,
            col(WelfareRequest.submitted_at) < end,
        )
    result = await session.execute(query)
    return _as_money(result.scalar_one())


async def get_budget_snapshot(
    session: AsyncSession,
    employee_id: uuid.UUID,
    benefit_type: RequestType,
    today: date | None = None,
) -> BudgetSnapshot:
    """Compute limit, used and remaining for one benefit type right now."""
    if not benefit_type.is_benefit:
        raise SubmissionValidationError(f"'{benefit_type.value}' has no benefit budget")

    today = today or datetime.now(UTC).date()

    if benefit_type == RequestType.TRAINING:
        limit = await get_training_allotment(session, employee_id)
        used = await _sum_completed(
            session, employee_id, frozenset({RequestType.TRAINING}), None, budget_covered=True
        )
        return BudgetSnapshot(
            employee_id=employee_id,
            benefit_type=benefit_type,
            period_kind=BudgetPeriod.RUNNING,
            limit=limit,
            used=used,
            remaining=max(limit - used, ZERO),
        )

    static = _STATIC_LIMITS[benefit_type]
    limit = static.amount

    stored_key = _STORED_BALANCE_KEYS.get(benefit_type)
    if stored_key is not None:
        stored = await _get_stored_budget(session, employee_id, stored_key)
        if stored is not None:
            remaining = max(to_money(stored.amount), ZERO)
            return BudgetSnapshot(
                employee_id=employee_id,
                benefit_type=benefit_type,
                period_kind=static.period,
                limit=limit,
                used=max(limit - remaining, ZERO),
                remaining=remaining,
            )

    pool = _SHARED_POOLS.get(benefit_type, frozenset({benefit_type}))
    used = await _sum_completed(session, employee_id, pool, period_bounds(static.period, today))
    return BudgetSnapshot(
        employee_id=employee_id,
        benefit_type=benefit_type,
        period_kind=static.period,
        limit=limit,
        used=used,
        remaining=max(limit - used, ZERO),
    )


async def get_remaining_budget(
    session: AsyncSession,
    employee_id: uuid.UUID,
    benefit_type: RequestType,
    today: date | None = None,
) -> Decimal:
    """Current-period remaining entitlement for one benefit type."""
    snapshot = await get_budget_snapshot(session, employee_id, benefit_type, today)
    return snapshot.remaining


async def list_budget_snapshots(
    session: AsyncSession,
    employee_id: uuid.UUID,
    today: date | None = None,
) -> BudgetSnapshotListResponse:
    """Snapshots for every benefit type of one employee."""
    items = [
        await get_budget_snapshot(session, employee_id, t, today) for t in RequestType if t in BENEFIT_TYPES
    ]
    return BudgetSnapshotListResponse(items=items)


async def set_stored_budget(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    key: StoredBudgetKey,
    amount: Decimal,
) -> StoredBudgetResponse:
    """Create or replace a stored budget figure (hr/admin only)."""
    if auth.role not in BUDGET_ADMIN_ROLES:
        raise PermissionDeniedError("Only HR or an administrator can set stored budgets")

    stored = await _get_stored_budget(session, employee_id, key)
    now = datetime.now(UTC)
    if stored is None:
        stored = EmployeeBudget(
            employee_id=employee_id,
            budget_key=key.value,
            amount=to_money(amount),
            updated_by=auth.user_id,
            updated_at=now,
        )
        session.add(stored)
    else:
        stored.amount = to_money(amount)
        stored.updated_by = auth.user_id
        stored.updated_at = now

    await session.commit()
    return StoredBudgetResponse(
        employee_id=stored.employee_id,
        budget_key=StoredBudgetKey(stored.budget_key),
        amount=to_money(stored.amount),
        updated_by=stored.updated_by,
        updated_at=stored.updated_at,
    )

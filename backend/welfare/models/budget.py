# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from welfare.models.base import money_column


def _now_utc() -> datetime:
    return datetime.now(UTC)


class EmployeeBudget(SQLModel, table=True):
    """Per-employee stored budget figure (training allotment, glasses/dental balance)."""

    __tablename__ = "employee_budget"

    employee_id: uuid.UUID = Field(primary_key=True)
    budget_key: str = Field(primary_key=True, max_length=50)
    amount: Decimal = Field(sa_column=money_column())
    updated_by: uuid.UUID | None = None
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )

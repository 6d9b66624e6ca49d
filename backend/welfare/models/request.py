# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from welfare.models.base import TimestampMixin, UUIDBase, money_column
from welfare.models.enums import RequestStatus

_ZERO = Decimal("0.00")


def _now_utc() -> datetime:
    return datetime.now(UTC)


class WelfareRequest(UUIDBase, TimestampMixin, table=True):
    """One benefit or advance submission and its approval workflow state.

    Requester fields and the financial breakdown are written once at
    submission. Approval steps only touch ``status``, ``version``,
    ``cycle``, ``revision_note`` and ``updated_at``.
    """

    __tablename__ = "welfare_request"
    __table_args__ = (
        sa.Index("ix_request_requester_type", "requester_id", "request_type"),
        sa.Index("ix_request_status_type", "status", "request_type"),
    )

    request_type: str = Field(max_length=50, index=True)
    status: str = Field(
        default=RequestStatus.PENDING_MANAGER,
        max_length=50,
        index=True,
        sa_column_kwargs={"server_default": "pending_manager"},
    )

    requester_id: uuid.UUID = Field(index=True)
    requester_name: str = Field(max_length=255)
    requester_position: str | None = Field(default=None, max_length=255)
    requester_department: str = Field(max_length=255)

    submitted_amount: Decimal = Field(default=_ZERO, sa_column=money_column())
    is_vat_included: bool = False
    gross_amount: Decimal = Field(default=_ZERO, sa_column=money_column())
    vat: Decimal = Field(default=_ZERO, sa_column=money_column())
    withholding_tax: Decimal = Field(default=_ZERO, sa_column=money_column())
    net_amount: Decimal = Field(default=_ZERO, sa_column=money_column())
    excess_amount: Decimal = Field(default=_ZERO, sa_column=money_column())
    company_payment: Decimal = Field(default=_ZERO, sa_column=money_column())
    employee_payment: Decimal = Field(default=_ZERO, sa_column=money_column())
    remaining_budget: Decimal | None = Field(default=None, sa_column=money_column(nullable=True))

    details: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    line_items: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    attachments: list[str] = Field(default_factory=list, sa_type=sa.JSON)
    document_url: str | None = Field(default=None, max_length=1024)
    revision_note: str | None = None

    cycle: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    submitted_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )

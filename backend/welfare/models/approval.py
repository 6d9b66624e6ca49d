# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlmodel import Field

from welfare.models.base import UUIDBase


def _now_utc() -> datetime:
    return datetime.now(UTC)


class RequestApproval(UUIDBase, table=True):
    """Append-only record of one completed transition on a request."""

    __tablename__ = "request_approval"
    __table_args__ = (sa.Index("ix_approval_request_cycle", "request_id", "cycle"),)

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("welfare_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    cycle: int
    sequence: int
    role: str = Field(max_length=50)
    decision: str = Field(max_length=50)
    from_status: str = Field(max_length=50)
    to_status: str = Field(max_length=50)
    approver_id: uuid.UUID
    approver_name: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    created_at: datetime = Field(
        default_factory=_now_utc,
        index=True,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )

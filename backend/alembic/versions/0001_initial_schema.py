"""Initial schema: requests, approval history, stored budgets.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _money(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "welfare_request",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("request_type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="pending_manager", nullable=False),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("requester_name", sa.String(length=255), nullable=False),
        sa.Column("requester_position", sa.String(length=255), nullable=True),
        sa.Column("requester_department", sa.String(length=255), nullable=False),
        _money("submitted_amount"),
        sa.Column("is_vat_included", sa.Boolean(), nullable=False),
        _money("gross_amount"),
        _money("vat"),
        _money("withholding_tax"),
        _money("net_amount"),
        _money("excess_amount"),
        _money("company_payment"),
        _money("employee_payment"),
        _money("remaining_budget", nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("line_items", sa.JSON(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("document_url", sa.String(length=1024), nullable=True),
        sa.Column("revision_note", sa.String(), nullable=True),
        sa.Column("cycle", sa.Integer(), server_default="1", nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_welfare_request_request_type", "welfare_request", ["request_type"])
    op.create_index("ix_welfare_request_status", "welfare_request", ["status"])
    op.create_index("ix_welfare_request_requester_id", "welfare_request", ["requester_id"])
    op.create_index("ix_request_requester_type", "welfare_request", ["requester_id", "request_type"])
    op.create_index("ix_request_status_type", "welfare_request", ["status", "request_type"])

    op.create_table(
        "request_approval",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("welfare_request.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("cycle", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("decision", sa.String(length=50), nullable=False),
        sa.Column("from_status", sa.String(length=50), nullable=False),
        sa.Column("to_status", sa.String(length=50), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=False),
        sa.Column("approver_name", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_request_approval_request_id", "request_approval", ["request_id"])
    op.create_index("ix_request_approval_created_at", "request_approval", ["created_at"])
    op.create_index("ix_approval_request_cycle", "request_approval", ["request_id", "cycle"])

    op.create_table(
        "employee_budget",
        sa.Column("employee_id", sa.Uuid(), nullable=False),
        sa.Column("budget_key", sa.String(length=50), nullable=False),
        _money("amount"),
        sa.Column("updated_by", sa.Uuid(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("employee_id", "budget_key"),
    )


def downgrade() -> None:
    op.drop_table("employee_budget")
    op.drop_index("ix_approval_request_cycle", table_name="request_approval")
    op.drop_index("ix_request_approval_created_at", table_name="request_approval")
    op.drop_index("ix_request_approval_request_id", table_name="request_approval")
    op.drop_table("request_approval")
    op.drop_index("ix_request_status_type", table_name="welfare_request")
    op.drop_index("ix_request_requester_type", table_name="welfare_request")
    op.drop_index("ix_welfare_request_requester_id", table_name="welfare_request")
    op.drop_index("ix_welfare_request_status", table_name="welfare_request")
    op.drop_index("ix_welfare_request_request_type", table_name="welfare_request")
    op.drop_table("welfare_request")

# ruff: noqa: TC001, TC003
from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from welfare.models.enums import RequestStatus, RequestType


class SummaryRow(BaseModel):
    """Count and money totals for one (request type, status) group."""

    request_type: RequestType
    status: RequestStatus
    count: int
    submitted_amount: Decimal
    net_amount: Decimal
    company_payment: Decimal
    employee_payment: Decimal


class RequestSummaryResponse(BaseModel):
    """Request totals grouped by type and status."""

    start_date: date | None
    end_date: date | None
    items: list[SummaryRow]
    total_count: int
    total_net_amount: Decimal

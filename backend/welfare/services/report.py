"""Reporting service: request summaries and CSV exports."""

from __future__ import annotations

import csv
import io
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from welfare.models.enums import RequestStatus, RequestType
from welfare.models.request import WelfareRequest
from welfare.schemas.report import RequestSummaryResponse, SummaryRow
from welfare.services.financials import ZERO, to_money

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

CSV_COLUMNS = (
    "id",
    "request_type",
    "status",
    "requester_id",
    "requester_name",
    "requester_department",
    "submitted_amount",
    "gross_amount",
    "vat",
    "withholding_tax",
    "net_amount",
    "excess_amount",
    "company_payment",
    "employee_payment",
    "cycle",
    "submitted_at",
    "updated_at",
)


def _date_filters(start_date: date | None, end_date: date | None) -> list:
    """Inclusive calendar-date window on ``submitted_at`` (UTC)."""
    filters = []
    if start_date is not None:
        filters.append(col(WelfareRequest.submitted_at) >= datetime.combine(start_date, time.min, tzinfo=UTC))
    if end_date is not None:
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC)
        filters.append(col(WelfareRequest.submitted_at) < end)
    return filters


async def get_request_summary(
    session: AsyncSession,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    request_type: RequestType | None = None,
) -> RequestSummaryResponse:
    """Group requests by type and status with counts and money totals."""
    filters = _date_filters(start_date, end_date)
    if request_type is not None:
        filters.append(col(WelfareRequest.request_type) == request_type.value)

    result = await session.execute(
        select(
            col(WelfareRequest.request_type),
            col(WelfareRequest.status),
            func.count(),
            func.coalesce(func.sum(WelfareRequest.submitted_amount), 0),
            func.coalesce(func.sum(WelfareRequest.net_amount), 0),
            func.coalesce(func.sum(WelfareRequest.company_payment), 0),
            func.coalesce(func.sum(WelfareRequest.employee_payment), 0),
        )
        .where(*filters)
        .group_by(col(WelfareRequest.request_type), col(WelfareRequest.status))
        .order_by(col(WelfareRequest.request_type), col(WelfareRequest.status))
    )

    items = [
        SummaryRow(
            request_type=RequestType(row[0]),
            status=RequestStatus(row[1]),
            count=row[2],
            submitted_amount=to_money(str(row[3])),
            net_amount=to_money(str(row[4])),
            company_payment=to_money(str(row[5])),
            employee_payment=to_money(str(row[6])),
        )
        for row in result.all()
    ]

    return RequestSummaryResponse(
        start_date=start_date,
        end_date=end_date,
        items=items,
        total_count=sum(i.count for i in items),
        total_net_amount=sum((i.net_amount for i in items), ZERO),
    )


async def export_requests_csv(
    session: AsyncSession,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    statuses: list[RequestStatus] | None = None,
    requester_id: uuid.UUID | None = None,
) -> str:
    """Render matching requests as CSV, oldest submission first."""
    filters = _date_filters(start_date, end_date)
    if statuses:
        filters.append(col(WelfareRequest.status).in_([s.value for s in statuses]))
    if requester_id is not None:
        filters.append(col(WelfareRequest.requester_id) == requester_id)

    result = await session.execute(
        select(WelfareRequest).where(*filters).order_by(col(WelfareRequest.submitted_at), col(WelfareRequest.id))
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for request in result.scalars().all():
        row = []
        for column in CSV_COLUMNS:
            value = getattr(request, column)
            row.append(value.isoformat() if isinstance(value, datetime) else value)
        writer.writerow(row)
    return buffer.getvalue()

# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query
from fastapi.responses import Response

from welfare.api.deps import ReviewerDep
from welfare.db import SessionDep
from welfare.models.enums import RequestStatus, RequestType
from welfare.schemas.report import RequestSummaryResponse
from welfare.services import report as report_service

reports_router = APIRouter(
    prefix="/reports",
    tags=["reports"],
)


@reports_router.get(
    "/summary",
    response_model=RequestSummaryResponse,
)
async def get_request_summary(
    session: SessionDep,
    auth: ReviewerDep,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    request_type: RequestType | None = Query(default=None),
) -> RequestSummaryResponse:
    """Request counts and totals grouped by type and status."""
    return await report_service.get_request_summary(
        session,
        start_date=start_date,
        end_date=end_date,
        request_type=request_type,
    )


@reports_router.get("/requests.csv")
async def export_requests_csv(
    session: SessionDep,
    auth: ReviewerDep,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    statuses: list[RequestStatus] | None = Query(default=None, alias="status"),
    requester_id: uuid.UUID | None = Query(default=None),
) -> Response:
    """Export matching requests as CSV."""
    content = await report_service.export_requests_csv(
        session,
        start_date=start_date,
        end_date=end_date,
        statuses=statuses,
        requester_id=requester_id,
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="requests.csv"'},
    )

# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from welfare.api.deps import AuthDep, ReviewerDep
from welfare.db import SessionDep
from welfare.models.enums import RequestStatus, RequestType
from welfare.schemas.request import (
    BulkDecisionPayload,
    BulkDecisionResponse,
    DecisionPayload,
    RequestListResponse,
    RequestResponse,
    ResubmitPayload,
    SubmitAdvancePayload,
    SubmitBenefitPayload,
    UpdateRequestPayload,
)
from welfare.services import approval as approval_service
from welfare.services import request as request_service

requests_router = APIRouter(
    prefix="/requests",
    tags=["requests"],
)


@requests_router.post("/benefits", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_benefit_request(
    payload: SubmitBenefitPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Submit a benefit request."""
    return await request_service.submit_benefit_request(session, auth, payload)


@requests_router.post("/advances", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_advance_request(
    payload: SubmitAdvancePayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Submit an advance or expense-clearing request."""
    return await request_service.submit_advance_request(session, auth, payload)


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    statuses: list[RequestStatus] | None = Query(default=None, alias="status"),
    request_type: RequestType | None = Query(default=None),
    requester_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List requests. Repeat ``status`` to build an approval queue."""
    return await request_service.list_requests(
        session, auth, statuses, request_type, requester_id, offset, limit
    )


@requests_router.post("/bulk-decision", response_model=BulkDecisionResponse)
async def bulk_decision(
    payload: BulkDecisionPayload,
    session: SessionDep,
    auth: ReviewerDep,
) -> BulkDecisionResponse:
    """Apply one decision to many requests; each id gets its own outcome."""
    return await approval_service.apply_approval_bulk(
        session, auth, payload.request_ids, payload.role, payload.decision, payload.reason
    )


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Get a single request with its approval history."""
    return await request_service.get_request(session, auth, request_id)


@requests_router.patch("/{request_id}", response_model=RequestResponse)
async def update_request(
    request_id: uuid.UUID,
    payload: UpdateRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Edit details or attachments of a request not yet past the manager."""
    return await request_service.update_request(session, auth, request_id, payload)


@requests_router.post("/{request_id}/decision", response_model=RequestResponse)
async def decide_request(
    request_id: uuid.UUID,
    payload: DecisionPayload,
    session: SessionDep,
    auth: ReviewerDep,
) -> RequestResponse:
    """Approve, reject or return a request at the caller's stage."""
    return await approval_service.apply_approval(
        session, auth, request_id, payload.role, payload.decision, payload.reason
    )


@requests_router.post("/{request_id}/resubmit", response_model=RequestResponse)
async def resubmit_request(
    request_id: uuid.UUID,
    payload: ResubmitPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Send a request returned for revision back to the manager."""
    return await approval_service.resubmit_request(session, auth, request_id, payload.note, payload.attachments)

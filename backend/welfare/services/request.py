# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from welfare.exceptions import NotFoundError, PermissionDeniedError, PersistenceError, StaleStateError
from welfare.models.approval import RequestApproval
from welfare.models.enums import ApprovalRole, Decision, RequestStatus, RequestType
from welfare.models.request import WelfareRequest
from welfare.schemas.auth import REVIEWER_ROLES
from welfare.schemas.request import (
    ApprovalEntryResponse,
    FinancialsResponse,
    LineItemResponse,
    RequestListResponse,
    RequestResponse,
)
from welfare.services.budget import get_benefit_limit, get_remaining_budget
from welfare.services.documents import get_document_renderer
from welfare.services.employee import resolve_requester
from welfare.services.financials import (
    LineItem,
    compute_advance_total,
    compute_benefit_amounts,
    sanitize_amount,
)
from welfare.services.state_machine import (
    EDITABLE_STATUSES,
    INITIAL_STATUS,
    check_required_fields,
    ensure_not_terminal,
    validate_submission,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from welfare.schemas.auth import AuthContext
    from welfare.schemas.request import SubmitAdvancePayload, SubmitBenefitPayload, UpdateRequestPayload
    from welfare.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_approval_response(entry: RequestApproval) -> ApprovalEntryResponse:
    return ApprovalEntryResponse(
        role=ApprovalRole(entry.role),
        decision=Decision(entry.decision),
        from_status=RequestStatus(entry.from_status),
        to_status=RequestStatus(entry.to_status),
        approver_id=entry.approver_id,
        approver_name=entry.approver_name,
        notes=entry.notes,
        cycle=entry.cycle,
        sequence=entry.sequence,
        created_at=entry.created_at,
    )


def build_request_response(
    request: WelfareRequest,
    approvals: Sequence[RequestApproval] = (),
) -> RequestResponse:
    """Map a request model and its approval history to the response schema."""
    return RequestResponse(
        id=request.id,
        request_type=RequestType(request.request_type),
        status=RequestStatus(request.status),
        requester_id=request.requester_id,
        requester_name=request.requester_name,
        requester_position=request.requester_position,
        requester_department=request.requester_department,
        submitted_amount=request.submitted_amount,
        is_vat_included=request.is_vat_included,
        remaining_budget=request.remaining_budget,
        financials=FinancialsResponse(
            gross_amount=request.gross_amount,
            vat=request.vat,
            withholding_tax=request.withholding_tax,
            net_amount=request.net_amount,
            excess_amount=request.excess_amount,
            company_payment=request.company_payment,
            employee_payment=request.employee_payment,
        ),
        line_items=[LineItemResponse.model_validate(item) for item in request.line_items],
        details=request.details,
        attachments=request.attachments,
        document_url=request.document_url,
        revision_note=request.revision_note,
        approvals=[_build_approval_response(a) for a in approvals],
        cycle=request.cycle,
        version=request.version,
        submitted_at=request.submitted_at,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


async def load_request(session: AsyncSession, request_id: uuid.UUID) -> WelfareRequest:
    """Fresh read of a request from storage. Raises 404 if not found.

    ``populate_existing`` overwrites any copy already held by the session,
    so status checks always see what is persisted now.
    """
    result = await session.execute(
        select(WelfareRequest)
        .where(col(WelfareRequest.id) == request_id)
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Request not found")
    return request


async def load_approvals(
    session: AsyncSession,
    request_ids: Sequence[uuid.UUID],
) -> dict[uuid.UUID, list[RequestApproval]]:
    """Approval history for many requests, in transition order."""
    grouped: dict[uuid.UUID, list[RequestApproval]] = defaultdict(list)
    if not request_ids:
        return grouped
    result = await session.execute(
        select(RequestApproval)
        .where(col(RequestApproval.request_id).in_(list(request_ids)))
        .order_by(col(RequestApproval.request_id), col(RequestApproval.sequence))
    )
    for entry in result.scalars().all():
        grouped[entry.request_id].append(entry)
    return grouped


def _ensure_can_view(auth: AuthContext, request: WelfareRequest) -> None:
    if auth.role not in REVIEWER_ROLES and request.requester_id != auth.user_id:
        raise NotFoundError("Request not found")


def _resolve_subject(auth: AuthContext, employee_id: uuid.UUID | None) -> uuid.UUID:
    """Employee the submission is for. Only admins may submit for someone else."""
    if employee_id is None or employee_id == auth.user_id:
        return auth.user_id
    if not auth.is_admin:
        raise PermissionDeniedError("You can only submit requests for yourself")
    return employee_id


async def _attach_document(request: WelfareRequest) -> None:
    """Render the request document. Failure leaves the request without one."""
    try:
        request.document_url = await get_document_renderer().render(request)
    except Exception:
        logger.exception("Document generation failed for request %s; submitting without document", request.id)


async def _insert(session: AsyncSession, request: WelfareRequest) -> None:
    request_type, requester_id = request.request_type, request.requester_id
    session.add(request)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Failed to persist new %s request for %s", request_type, requester_id)
        raise PersistenceError("Your request could not be saved. Please try again.") from exc


def _new_request(
    request_type: RequestType,
    requester: EmployeeInfo,
    *,
    submitted_amount: Decimal,
    details: dict[str, Any],
    attachments: list[str],
) -> WelfareRequest:
    now = datetime.now(UTC)
    return WelfareRequest(
        request_type=request_type.value,
        status=INITIAL_STATUS.value,
        requester_id=requester.id,
        requester_name=requester.name,
        requester_position=requester.position,
        requester_department=requester.department,
        submitted_amount=submitted_amount,
        details=details,
        attachments=list(dict.fromkeys(attachments)),
        submitted_at=now,
        created_at=now,
        updated_at=now,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_benefit_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitBenefitPayload,
) -> RequestResponse:
    """Submit a benefit request into ``pending_manager``.

    Flow:
    1. Resolve the requester (identity lookup must succeed)
    2. Sanitize the amount
    3. Read the remaining budget, once
    4. Check submission preconditions (budget gate for non-training types)
    5. Compute the financial breakdown; training gets the budget snapshot
    6. Render the document
    7. Insert
    """
    request_type = payload.request_type
    employee_id = _resolve_subject(auth, payload.employee_id)
    requester = await resolve_requester(employee_id)

    amount = sanitize_amount(payload.amount)
    remaining = await get_remaining_budget(session, employee_id, request_type)

    validate_submission(
        request_type,
        amount,
        limit=get_benefit_limit(request_type),
        remaining_budget=remaining,
        details=payload.details,
    )

    financials = compute_benefit_amounts(
        amount,
        payload.is_vat_included,
        remaining if request_type == RequestType.TRAINING else None,
    )

    request = _new_request(
        request_type,
        requester,
        submitted_amount=amount,
        details=payload.details,
        attachments=payload.attachments,
    )
    request.is_vat_included = payload.is_vat_included
    request.remaining_budget = remaining
    request.gross_amount = financials.gross_amount
    request.vat = financials.vat
    request.withholding_tax = financials.withholding_tax
    request.net_amount = financials.net_amount
    request.excess_amount = financials.excess_amount
    request.company_payment = financials.company_payment
    request.employee_payment = financials.employee_payment

    await _attach_document(request)
    await _insert(session, request)

    logger.info(
        "Submitted %s request %s for %s: net=%s remaining=%s",
        request.request_type,
        request.id,
        employee_id,
        request.net_amount,
        remaining,
    )
    return build_request_response(request)


async def submit_advance_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitAdvancePayload,
) -> RequestResponse:
    """Submit an itemized advance or expense-clearing request into ``pending_manager``."""
    request_type = payload.request_type
    employee_id = _resolve_subject(auth, payload.employee_id)
    requester = await resolve_requester(employee_id)

    items = [
        LineItem(
            name=item.name.strip(),
            request_amount=sanitize_amount(item.request_amount),
            tax_rate_percent=sanitize_amount(item.tax_rate_percent),
        )
        for item in payload.line_items
    ]
    totals = compute_advance_total(items)

    validate_submission(
        request_type,
        totals.submitted_amount,
        limit=None,
        remaining_budget=None,
        details=payload.details,
        line_items=items,
    )

    request = _new_request(
        request_type,
        requester,
        submitted_amount=totals.submitted_amount,
        details=payload.details,
        attachments=payload.attachments,
    )
    request.gross_amount = totals.submitted_amount
    request.net_amount = totals.net_amount
    request.line_items = [
        LineItemResponse(
            name=i.name,
            request_amount=i.request_amount,
            tax_rate_percent=i.tax_rate_percent,
            tax_amount=i.tax_amount,
            net_amount=i.net_amount,
        ).model_dump(mode="json")
        for i in totals.items
    ]

    await _attach_document(request)
    await _insert(session, request)

    logger.info(
        "Submitted %s request %s for %s: %d items, net=%s",
        request.request_type,
        request.id,
        employee_id,
        len(items),
        request.net_amount,
    )
    return build_request_response(request)


async def get_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> RequestResponse:
    """Get a single request with its approval history."""
    request = await load_request(session, request_id)
    _ensure_can_view(auth, request)
    approvals = await load_approvals(session, [request.id])
    return build_request_response(request, approvals[request.id])


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    statuses: Sequence[RequestStatus] | None = None,
    request_type: RequestType | None = None,
    requester_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """List requests by status (approval queues), type and requester, newest first."""
    if auth.role not in REVIEWER_ROLES:
        requester_id = auth.user_id

    filters = []
    if statuses:
        filters.append(col(WelfareRequest.status).in_([s.value for s in statuses]))
    if request_type is not None:
        filters.append(col(WelfareRequest.request_type) == request_type.value)
    if requester_id is not None:
        filters.append(col(WelfareRequest.requester_id) == requester_id)

    count_result = await session.execute(select(func.count()).select_from(WelfareRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(WelfareRequest)
        .where(*filters)
        .order_by(col(WelfareRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())
    approvals = await load_approvals(session, [r.id for r in requests])

    return RequestListResponse(
        items=[build_request_response(r, approvals[r.id]) for r in requests],
        total=total,
    )


async def update_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: UpdateRequestPayload,
) -> RequestResponse:
    """Edit descriptive fields while the request is still with the manager or in revision.

    Only the requester may edit. A completed or rejected request is refused
    for everyone. Amounts and financials are never editable.
    """
    request = await load_request(session, request_id)
    _ensure_can_view(auth, request)
    status = RequestStatus(request.status)
    ensure_not_terminal(status)

    if request.requester_id != auth.user_id:
        raise PermissionDeniedError("Only the requester can edit this request")
    if status not in EDITABLE_STATUSES:
        raise StaleStateError(f"Request is '{status.value}' and is already under review. Refresh to see it.")

    values: dict[str, Any] = {}
    if payload.details is not None:
        line_items = [
            LineItem(name=i["name"], request_amount=Decimal(i["request_amount"]))
            for i in request.line_items
        ]
        check_required_fields(RequestType(request.request_type), payload.details, line_items)
        values["details"] = payload.details
    if payload.attachments is not None:
        values["attachments"] = list(dict.fromkeys(payload.attachments))

    if values:
        expected_version = request.version
        values["version"] = expected_version + 1
        values["updated_at"] = datetime.now(UTC)
        try:
            result = await session.execute(
                update(WelfareRequest)
                .where(
                    col(WelfareRequest.id) == request_id,
                    col(WelfareRequest.status) == status.value,
                    col(WelfareRequest.version) == expected_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                raise StaleStateError("This request changed while you were editing it. Refresh and try again.")
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Failed to persist edit of request %s", request_id)
            raise PersistenceError("Your changes could not be saved. Please refresh and try again.") from exc
        logger.info("Request %s edited by %s", request_id, auth.user_id)

    return await get_request(session, auth, request_id)

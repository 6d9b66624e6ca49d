# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from welfare.exceptions import AppError, PermissionDeniedError, PersistenceError, StaleStateError
from welfare.models.approval import RequestApproval
from welfare.models.enums import ApprovalRole, Decision, RequestStatus
from welfare.models.request import WelfareRequest
from welfare.schemas.request import BulkDecisionResponse, BulkOutcome
from welfare.services.request import get_request, load_request
from welfare.services.state_machine import ensure_not_terminal, next_status

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from welfare.schemas.auth import AuthContext
    from welfare.schemas.request import RequestResponse

logger = logging.getLogger(__name__)

# Caller roles allowed to act as each approval stage. Admin acts as any.
_STAGE_ROLES: dict[ApprovalRole, frozenset[str]] = {
    ApprovalRole.MANAGER: frozenset({"manager", "admin"}),
    ApprovalRole.HR: frozenset({"hr", "admin"}),
    ApprovalRole.ACCOUNTING: frozenset({"accounting", "admin"}),
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_can_act(auth: AuthContext, role: ApprovalRole) -> None:
    allowed = _STAGE_ROLES.get(role, frozenset())
    if auth.role not in allowed:
        raise PermissionDeniedError(f"Role '{auth.role}' cannot act as '{role.value}'")


async def _transition(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    role: ApprovalRole,
    decision: Decision,
    reason: str | None,
    *,
    extra_values: dict[str, Any] | None = None,
    new_cycle: bool = False,
) -> RequestStatus:
    """Validate and persist one transition as a conditional write.

    The update only matches if the stored status and version are still the
    ones read here, so of two concurrent actors exactly one succeeds and
    the other gets StaleStateError. The approval record is written in the
    same transaction as the status change.
    """
    request = await load_request(session, request_id)
    current = RequestStatus(request.status)
    target = next_status(current, role, decision, reason)

    # Rollback expires the instance; nothing below may read its attributes.
    expected_version = request.version
    version = expected_version + 1
    cycle = request.cycle + 1 if new_cycle else request.cycle
    now = datetime.now(UTC)
    values: dict[str, Any] = {
        "status": target.value,
        "version": version,
        "cycle": cycle,
        "updated_at": now,
    }
    if extra_values:
        values.update(extra_values)

    try:
        result = await session.execute(
            update(WelfareRequest)
            .where(
                col(WelfareRequest.id) == request_id,
                col(WelfareRequest.status) == current.value,
                col(WelfareRequest.version) == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await session.rollback()
            logger.info("Lost race on request %s at '%s' (%s %s)", request_id, current, role, decision)
            raise StaleStateError(
                "Someone else already acted on this request. Refresh to see its current state."
            )

        session.add(
            RequestApproval(
                request_id=request_id,
                cycle=cycle,
                sequence=version,
                role=role.value,
                decision=decision.value,
                from_status=current.value,
                to_status=target.value,
                approver_id=auth.user_id,
                approver_name=auth.name,
                notes=reason.strip() if reason else None,
                created_at=now,
            )
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Failed to persist %s/%s on request %s", role, decision, request_id)
        raise PersistenceError("The decision could not be saved. Please refresh and try again.") from exc

    logger.info(
        "Request %s: %s -> %s by %s (%s %s)",
        request_id,
        current,
        target,
        auth.user_id,
        role,
        decision,
    )
    return target


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def apply_approval(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    role: ApprovalRole,
    decision: Decision,
    reason: str | None = None,
) -> RequestResponse:
    """Apply one approver's decision to one request.

    Flow:
    1. Check the caller may act as ``role``
    2. Re-read the request and validate the transition against the table
    3. Conditionally write the new status plus an approval record
    """
    _ensure_can_act(auth, role)

    extra: dict[str, Any] = {}
    if decision == Decision.REQUEST_REVISION:
        extra["revision_note"] = reason.strip() if reason else None

    await _transition(session, auth, request_id, role, decision, reason, extra_values=extra)
    return await get_request(session, auth, request_id)


async def apply_approval_bulk(
    session: AsyncSession,
    auth: AuthContext,
    request_ids: Sequence[uuid.UUID],
    role: ApprovalRole,
    decision: Decision,
    reason: str | None = None,
) -> BulkDecisionResponse:
    """Apply the same decision to many requests, each independently.

    One request failing never blocks the others; every id gets its own
    outcome. Duplicate ids are processed once.
    """
    _ensure_can_act(auth, role)

    outcomes: list[BulkOutcome] = []
    for request_id in dict.fromkeys(request_ids):
        extra: dict[str, Any] = {}
        if decision == Decision.REQUEST_REVISION:
            extra["revision_note"] = reason.strip() if reason else None
        try:
            target = await _transition(session, auth, request_id, role, decision, reason, extra_values=extra)
        except AppError as exc:
            logger.info("Bulk %s/%s skipped request %s: %s", role, decision, request_id, exc.message)
            outcomes.append(
                BulkOutcome(
                    request_id=request_id,
                    succeeded=False,
                    error=type(exc).__name__,
                    detail=exc.message,
                )
            )
        else:
            outcomes.append(BulkOutcome(request_id=request_id, succeeded=True, status=target))

    succeeded = sum(1 for o in outcomes if o.succeeded)
    logger.info(
        "Bulk %s/%s by %s: %d succeeded, %d failed",
        role,
        decision,
        auth.user_id,
        succeeded,
        len(outcomes) - succeeded,
    )
    return BulkDecisionResponse(items=outcomes, succeeded=succeeded, failed=len(outcomes) - succeeded)


async def resubmit_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    note: str | None = None,
    attachments: Sequence[str] = (),
) -> RequestResponse:
    """Return a request in revision to the manager, starting a new approval cycle."""
    request = await load_request(session, request_id)
    ensure_not_terminal(RequestStatus(request.status))
    if request.requester_id != auth.user_id:
        raise PermissionDeniedError("Only the requester can resubmit this request")

    extra: dict[str, Any] = {"revision_note": None}
    if attachments:
        extra["attachments"] = list(dict.fromkeys([*request.attachments, *attachments]))

    await _transition(
        session,
        auth,
        request_id,
        ApprovalRole.REQUESTER,
        Decision.RESUBMIT,
        note,
        extra_values=extra,
        new_cycle=True,
    )
    return await get_request(session, auth, request_id)

"""Request status state machine and submission preconditions.

The graph is the explicit ``TRANSITIONS`` table below. Anything not in
the table is refused; there is no other way to move a request.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from welfare.exceptions import (
    BudgetExceededError,
    InvalidDecisionError,
    StaleStateError,
    SubmissionValidationError,
    TerminalStateError,
)
from welfare.models.enums import ApprovalRole, Decision, FuneralType, RequestStatus, RequestType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from welfare.schemas.budget import BenefitLimit
    from welfare.services.financials import LineItem

INITIAL_STATUS = RequestStatus.PENDING_MANAGER

TRANSITIONS: Mapping[tuple[RequestStatus, ApprovalRole, Decision], RequestStatus] = {
    (RequestStatus.PENDING_MANAGER, ApprovalRole.MANAGER, Decision.APPROVE): RequestStatus.PENDING_HR,
    (RequestStatus.PENDING_MANAGER, ApprovalRole.MANAGER, Decision.REJECT): RequestStatus.REJECTED_MANAGER,
    (RequestStatus.PENDING_HR, ApprovalRole.HR, Decision.APPROVE): RequestStatus.PENDING_ACCOUNTING,
    (RequestStatus.PENDING_HR, ApprovalRole.HR, Decision.REJECT): RequestStatus.REJECTED_HR,
    (RequestStatus.PENDING_HR, ApprovalRole.HR, Decision.REQUEST_REVISION): RequestStatus.PENDING_REVISION,
    (RequestStatus.PENDING_REVISION, ApprovalRole.REQUESTER, Decision.RESUBMIT): RequestStatus.PENDING_MANAGER,
    (RequestStatus.PENDING_ACCOUNTING, ApprovalRole.ACCOUNTING, Decision.APPROVE): RequestStatus.COMPLETED,
    (RequestStatus.PENDING_ACCOUNTING, ApprovalRole.ACCOUNTING, Decision.REJECT): RequestStatus.REJECTED_ACCOUNTING,
}

TERMINAL_STATUSES = frozenset(
    {
        RequestStatus.COMPLETED,
        RequestStatus.REJECTED_MANAGER,
        RequestStatus.REJECTED_HR,
        RequestStatus.REJECTED_ACCOUNTING,
    }
)

# The one status each actor may act on.
EXPECTED_STATUS: Mapping[ApprovalRole, RequestStatus] = {
    ApprovalRole.MANAGER: RequestStatus.PENDING_MANAGER,
    ApprovalRole.HR: RequestStatus.PENDING_HR,
    ApprovalRole.ACCOUNTING: RequestStatus.PENDING_ACCOUNTING,
    ApprovalRole.REQUESTER: RequestStatus.PENDING_REVISION,
}

# Statuses in which the requester may still edit descriptive fields.
EDITABLE_STATUSES = frozenset({RequestStatus.PENDING_MANAGER, RequestStatus.PENDING_REVISION})

_REASON_REQUIRED = frozenset({Decision.REJECT, Decision.REQUEST_REVISION})

_DEPARTMENT_REQUIRED = frozenset(
    {
        RequestType.GENERAL_ADVANCE,
        RequestType.EXPENSE_CLEARING,
        RequestType.GENERAL_EXPENSE_CLEARING,
    }
)

OTHER_DEPARTMENT = "other"


def is_terminal(status: RequestStatus) -> bool:
    return status in TERMINAL_STATUSES


def requires_reason(decision: Decision) -> bool:
    return decision in _REASON_REQUIRED


def ensure_not_terminal(status: RequestStatus) -> None:
    """Refuse any change to a completed or rejected request."""
    if status == RequestStatus.COMPLETED:
        raise TerminalStateError("This request is already completed and can no longer be changed")
    if status in TERMINAL_STATUSES:
        raise TerminalStateError(f"This request was closed as '{status.value}' and can no longer be changed")


def next_status(
    current: RequestStatus,
    role: ApprovalRole,
    decision: Decision,
    reason: str | None = None,
) -> RequestStatus:
    """Validate a transition and return the resulting status.

    Raises TerminalStateError from a terminal state, StaleStateError when
    the request is not at ``role``'s stage, InvalidDecisionError when the
    (state, role, decision) edge does not exist or a required reason is
    missing.
    """
    ensure_not_terminal(current)

    expected = EXPECTED_STATUS[role]
    if current != expected:
        raise StaleStateError(
            f"Request is '{current.value}', not '{expected.value}'. Refresh to see its current state."
        )

    target = TRANSITIONS.get((current, role, decision))
    if target is None:
        raise InvalidDecisionError(f"'{role.value}' cannot '{decision.value}' a request that is '{current.value}'")

    if requires_reason(decision) and not (reason and reason.strip()):
        raise InvalidDecisionError(f"A reason is required to '{decision.value}' a request")

    return target


# ---------------------------------------------------------------------------
# Submission preconditions
# ---------------------------------------------------------------------------


def check_required_fields(
    request_type: RequestType,
    details: Mapping[str, Any],
    line_items: Sequence[LineItem],
) -> None:
    if request_type == RequestType.FUNERAL:
        funeral_type = details.get("funeral_type")
        if funeral_type not in {t.value for t in FuneralType}:
            raise SubmissionValidationError(
                "Please choose the funeral benefit type (employee_spouse, child or parent)"
            )

    if request_type == RequestType.TRAINING and not str(details.get("course_name") or "").strip():
        raise SubmissionValidationError("Please enter the course name")

    if request_type in _DEPARTMENT_REQUIRED:
        department = str(details.get("advance_department") or "").strip()
        if not department:
            raise SubmissionValidationError("Please choose the department for this advance")
        if department == OTHER_DEPARTMENT and not str(details.get("advance_department_other") or "").strip():
            raise SubmissionValidationError("Please name the department")

    if request_type.is_advance and not any(
        item.name.strip() and item.request_amount > 0 for item in line_items
    ):
        raise SubmissionValidationError("Add at least one expense item with a name and a positive amount")


def validate_submission(
    request_type: RequestType,
    submitted_amount: Decimal,
    *,
    limit: BenefitLimit | None,
    remaining_budget: Decimal | None,
    details: Mapping[str, Any],
    line_items: Sequence[LineItem] = (),
) -> None:
    """Check every precondition for entering ``pending_manager``.

    Training is exempt from the budget and cap checks: going over its
    budget splits the excess instead of refusing the request.
    """
    if submitted_amount <= 0:
        raise SubmissionValidationError("The amount must be greater than 0")

    check_required_fields(request_type, details, line_items)

    if not request_type.is_benefit or request_type == RequestType.TRAINING:
        return

    if remaining_budget is not None and submitted_amount > remaining_budget:
        raise BudgetExceededError(
            f"The amount {submitted_amount:,.2f} exceeds your remaining {request_type.value} "
            f"budget of {remaining_budget:,.2f}. Lower the amount to at most {remaining_budget:,.2f}."
        )

    if limit is not None and submitted_amount > limit.amount:
        per = "month" if limit.is_monthly else "year"
        raise SubmissionValidationError(
            f"The amount {submitted_amount:,.2f} exceeds the {request_type.value} limit of "
            f"{limit.amount:,.2f} per {per}"
        )

from __future__ import annotations

import enum


class RequestType(enum.StrEnum):
    """Closed set of benefit and advance/clearing request categories."""

    WEDDING = "wedding"
    TRAINING = "training"
    CHILDBIRTH = "childbirth"
    FUNERAL = "funeral"
    GLASSES = "glasses"
    DENTAL = "dental"
    FITNESS = "fitness"
    MEDICAL = "medical"
    ADVANCE = "advance"
    GENERAL_ADVANCE = "general-advance"
    EXPENSE_CLEARING = "expense-clearing"
    GENERAL_EXPENSE_CLEARING = "general-expense-clearing"

    @property
    def is_benefit(self) -> bool:
        return self in BENEFIT_TYPES

    @property
    def is_advance(self) -> bool:
        return self in ADVANCE_TYPES


BENEFIT_TYPES = frozenset(
    {
        RequestType.WEDDING,
        RequestType.TRAINING,
        RequestType.CHILDBIRTH,
        RequestType.FUNERAL,
        RequestType.GLASSES,
        RequestType.DENTAL,
        RequestType.FITNESS,
        RequestType.MEDICAL,
    }
)

ADVANCE_TYPES = frozenset(
    {
        RequestType.ADVANCE,
        RequestType.GENERAL_ADVANCE,
        RequestType.EXPENSE_CLEARING,
        RequestType.GENERAL_EXPENSE_CLEARING,
    }
)


class RequestStatus(enum.StrEnum):
    """State machine for benefit and advance requests."""

    PENDING_MANAGER = "pending_manager"
    PENDING_HR = "pending_hr"
    PENDING_ACCOUNTING = "pending_accounting"
    PENDING_REVISION = "pending_revision"
    COMPLETED = "completed"
    REJECTED_MANAGER = "rejected_manager"
    REJECTED_HR = "rejected_hr"
    REJECTED_ACCOUNTING = "rejected_accounting"


class ApprovalRole(enum.StrEnum):
    """Actor of a transition. REQUESTER only ever resubmits."""

    MANAGER = "manager"
    HR = "hr"
    ACCOUNTING = "accounting"
    REQUESTER = "requester"


class Decision(enum.StrEnum):
    """What an actor does with a request at its current stage."""

    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"
    RESUBMIT = "resubmit"


class BudgetPeriod(enum.StrEnum):
    """Period over which a benefit entitlement is measured."""

    MONTHLY = "monthly"
    ANNUAL = "annual"
    RUNNING = "running"


class FuneralType(enum.StrEnum):
    """Relationship of the deceased, required for funeral requests."""

    EMPLOYEE_SPOUSE = "employee_spouse"
    CHILD = "child"
    PARENT = "parent"


class StoredBudgetKey(enum.StrEnum):
    """Per-employee budget figures held in storage instead of recomputed."""

    TRAINING = "training"
    DENTAL_GLASSES = "dental_glasses"

from sqlmodel import SQLModel

from welfare.models.approval import RequestApproval
from welfare.models.base import TimestampMixin, UUIDBase
from welfare.models.budget import EmployeeBudget
from welfare.models.enums import (
    ApprovalRole,
    BudgetPeriod,
    Decision,
    FuneralType,
    RequestStatus,
    RequestType,
    StoredBudgetKey,
)
from welfare.models.request import WelfareRequest

__all__ = [
    "ApprovalRole",
    "BudgetPeriod",
    "Decision",
    "EmployeeBudget",
    "FuneralType",
    "RequestApproval",
    "RequestStatus",
    "RequestType",
    "SQLModel",
    "StoredBudgetKey",
    "TimestampMixin",
    "UUIDBase",
    "WelfareRequest",
]

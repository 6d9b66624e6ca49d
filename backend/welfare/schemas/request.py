# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

from welfare.models.enums import ApprovalRole, Decision, RequestStatus, RequestType

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitBenefitPayload(BaseModel):
    """Request body for submitting a benefit request."""

    request_type: RequestType
    amount: Decimal
    is_vat_included: bool = False
    details: dict[str, Any] = Field(default_factory=dict)
    attachments: list[str] = Field(default_factory=list)
    employee_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def _validate_type(self) -> Self:
        if not self.request_type.is_benefit:
            msg = f"'{self.request_type.value}' is not a benefit type"
            raise ValueError(msg)
        return self


class LineItemInput(BaseModel):
    """One expected expense on an advance or clearing request."""

    name: str = Field(default="", max_length=255)
    request_amount: Decimal = Decimal("0")
    tax_rate_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class SubmitAdvancePayload(BaseModel):
    """Request body for submitting an advance or expense-clearing request."""

    request_type: RequestType
    line_items: list[LineItemInput] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    attachments: list[str] = Field(default_factory=list)
    employee_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def _validate_type(self) -> Self:
        if not self.request_type.is_advance:
            msg = f"'{self.request_type.value}' is not an advance or clearing type"
            raise ValueError(msg)
        return self


class DecisionPayload(BaseModel):
    """Request body for an approver acting on one request."""

    role: ApprovalRole
    decision: Decision
    reason: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_actor(self) -> Self:
        if self.role == ApprovalRole.REQUESTER or self.decision == Decision.RESUBMIT:
            msg = "Resubmission goes through the resubmit endpoint"
            raise ValueError(msg)
        return self


class BulkDecisionPayload(DecisionPayload):
    """Request body for applying one decision to many requests."""

    request_ids: list[uuid.UUID] = Field(min_length=1, max_length=200)


class ResubmitPayload(BaseModel):
    """Request body for resubmitting a request returned for revision."""

    note: str | None = Field(default=None, max_length=1000)
    attachments: list[str] = Field(default_factory=list)


class UpdateRequestPayload(BaseModel):
    """Request body for editing descriptive fields. Amounts cannot be edited."""

    details: dict[str, Any] | None = None
    attachments: list[str] | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class FinancialsResponse(BaseModel):
    gross_amount: Decimal
    vat: Decimal
    withholding_tax: Decimal
    net_amount: Decimal
    excess_amount: Decimal
    company_payment: Decimal
    employee_payment: Decimal


class LineItemResponse(BaseModel):
    name: str
    request_amount: Decimal
    tax_rate_percent: Decimal
    tax_amount: Decimal
    net_amount: Decimal


class ApprovalEntryResponse(BaseModel):
    """One entry of a request's approval history."""

    role: ApprovalRole
    decision: Decision
    from_status: RequestStatus
    to_status: RequestStatus
    approver_id: uuid.UUID
    approver_name: str | None
    notes: str | None
    cycle: int
    sequence: int
    created_at: datetime


class RequestResponse(BaseModel):
    """Response schema for a single request."""

    id: uuid.UUID
    request_type: RequestType
    status: RequestStatus
    requester_id: uuid.UUID
    requester_name: str
    requester_position: str | None
    requester_department: str
    submitted_amount: Decimal
    is_vat_included: bool
    remaining_budget: Decimal | None
    financials: FinancialsResponse
    line_items: list[LineItemResponse]
    details: dict[str, Any]
    attachments: list[str]
    document_url: str | None
    revision_note: str | None
    approvals: list[ApprovalEntryResponse]
    cycle: int
    version: int
    submitted_at: datetime
    created_at: datetime
    updated_at: datetime


class RequestListResponse(BaseModel):
    """Paginated list of requests."""

    items: list[RequestResponse]
    total: int


class BulkOutcome(BaseModel):
    """Result of the bulk decision for one request id."""

    request_id: uuid.UUID
    succeeded: bool
    status: RequestStatus | None = None
    error: str | None = None
    detail: str | None = None


class BulkDecisionResponse(BaseModel):
    items: list[BulkOutcome]
    succeeded: int
    failed: int

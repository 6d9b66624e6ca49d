"""Tests for the request workflow: submission, approval chain, revision cycle,
requester edits, bulk decisions, visibility and concurrent decisions.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from welfare.exceptions import PersistenceError, StaleStateError
from welfare.models.enums import ApprovalRole, Decision, RequestType
from welfare.models.request import WelfareRequest
from welfare.schemas.auth import AuthContext
from welfare.schemas.request import SubmitBenefitPayload, UpdateRequestPayload
from welfare.services import approval as approval_service
from welfare.services.documents import InMemoryDocumentRenderer, get_document_renderer, set_document_renderer
from welfare.services.employee import EmployeeInfo, InMemoryEmployeeService, set_employee_service
from welfare.services.request import get_request, submit_benefit_request, update_request

if TYPE_CHECKING:
    from collections.abc import Iterator

    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

EMPLOYEE_ID = uuid.uuid4()
OTHER_EMPLOYEE_ID = uuid.uuid4()
NO_DEPARTMENT_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
HR_ID = uuid.uuid4()
ACCOUNTING_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()

EMPLOYEE_HEADERS = {"X-User-Id": str(EMPLOYEE_ID), "X-Role": "employee"}
OTHER_HEADERS = {"X-User-Id": str(OTHER_EMPLOYEE_ID), "X-Role": "employee"}
ROLE_HEADERS = {
    "manager": {"X-User-Id": str(MANAGER_ID), "X-Role": "manager", "X-User-Name": "Manager"},
    "hr": {"X-User-Id": str(HR_ID), "X-Role": "hr", "X-User-Name": "HR"},
    "accounting": {"X-User-Id": str(ACCOUNTING_ID), "X-Role": "accounting", "X-User-Name": "Accounting"},
}
ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "admin"}

MANAGER_AUTH = AuthContext(user_id=MANAGER_ID, role="manager", name="Manager")
HR_AUTH = AuthContext(user_id=HR_ID, role="hr", name="HR")
EMPLOYEE_AUTH = AuthContext(user_id=EMPLOYEE_ID, role="employee")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _seed_directory(_reset_collaborators: None) -> Iterator[None]:
    """Seed the in-memory employee directory for every test."""
    svc = InMemoryEmployeeService()
    svc.seed(EmployeeInfo(id=EMPLOYEE_ID, name="Nok Srisuk", position="Engineer", department="Engineering"))
    svc.seed(EmployeeInfo(id=OTHER_EMPLOYEE_ID, name="Pim Chaiyo", department="Finance"))
    svc.seed(EmployeeInfo(id=NO_DEPARTMENT_ID, name="No Department", department=" "))
    set_employee_service(svc)
    yield


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


async def _submit_benefit(
    client: AsyncClient,
    request_type: str = "medical",
    amount: str = "500",
    *,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    resp = await client.post(
        "/requests/benefits",
        json={"request_type": request_type, "amount": amount, **extra},
        headers=headers or EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    result: dict[str, Any] = resp.json()
    return result


async def _decide(
    client: AsyncClient,
    request_id: str,
    role: str,
    decision: str = "approve",
    reason: str | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    body: dict[str, Any] = {"role": role, "decision": decision}
    if reason is not None:
        body["reason"] = reason
    return await client.post(
        f"/requests/{request_id}/decision",
        json=body,
        headers=headers or ROLE_HEADERS[role],
    )


async def _complete(client: AsyncClient, request_id: str) -> dict[str, Any]:
    for role in ("manager", "hr", "accounting"):
        resp = await _decide(client, request_id, role)
        assert resp.status_code == 200, resp.text
    result: dict[str, Any] = resp.json()
    return result


async def _count_requests(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(WelfareRequest))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


async def test_submit_benefit_request(async_client: AsyncClient) -> None:
    data = await _submit_benefit(async_client, "medical", "1000", details={"hospital": "City Clinic"})
    assert data["status"] == "pending_manager"
    assert data["requester_name"] == "Nok Srisuk"
    assert data["requester_department"] == "Engineering"
    assert Decimal(data["remaining_budget"]) == Decimal("1000")
    assert Decimal(data["financials"]["vat"]) == Decimal("70")
    assert Decimal(data["financials"]["withholding_tax"]) == Decimal("30")
    assert Decimal(data["financials"]["net_amount"]) == Decimal("1040")
    assert data["approvals"] == []
    assert data["cycle"] == 1
    assert data["document_url"] == f"memory://documents/{data['id']}.pdf"


async def test_submit_vat_included_medical(async_client: AsyncClient) -> None:
    data = await _submit_benefit(async_client, "medical", "1000", is_vat_included=True)
    assert Decimal(data["financials"]["vat"]) == 0
    assert Decimal(data["financials"]["net_amount"]) == Decimal("1000")


async def test_glasses_over_remaining_budget_creates_nothing(
    async_client: AsyncClient, db_session: AsyncSession
) -> None:
    resp = await async_client.post(
        "/requests/benefits",
        json={"request_type": "glasses", "amount": "2500"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "BudgetExceededError"
    assert await _count_requests(db_session) == 0


async def test_training_over_budget_splits_excess(async_client: AsyncClient) -> None:
    resp = await async_client.put(
        f"/employees/{EMPLOYEE_ID}/budgets/training",
        json={"amount": "8000"},
        headers=ROLE_HEADERS["hr"],
    )
    assert resp.status_code == 200

    data = await _submit_benefit(async_client, "training", "10000", details={"course_name": "Cloud"})
    financials = data["financials"]
    assert Decimal(data["remaining_budget"]) == Decimal("8000")
    assert Decimal(financials["gross_amount"]) == Decimal("10700")
    assert Decimal(financials["excess_amount"]) == Decimal("2700")
    assert Decimal(financials["net_amount"]) == Decimal("10700")
    assert Decimal(financials["company_payment"]) == Decimal("1350")
    assert Decimal(financials["employee_payment"]) == Decimal("1650")


async def test_zero_amount_is_refused(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/requests/benefits",
        json={"request_type": "medical", "amount": "0"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "SubmissionValidationError"


async def test_benefit_endpoint_refuses_advance_type(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/requests/benefits",
        json={"request_type": "advance", "amount": "100"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 422


async def test_submit_advance_request(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/requests/advances",
        json={
            "request_type": "general-advance",
            "details": {"advance_department": "Finance"},
            "line_items": [
                {"name": "Hotel", "request_amount": "1000", "tax_rate_percent": "5"},
                {"name": "Taxi", "request_amount": "2000"},
            ],
        },
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert Decimal(data["submitted_amount"]) == Decimal("3000")
    assert Decimal(data["financials"]["net_amount"]) == Decimal("3000")
    assert [Decimal(i["tax_amount"]) for i in data["line_items"]] == [Decimal("50"), Decimal("0")]
    assert data["remaining_budget"] is None


async def test_general_advance_needs_department(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/requests/advances",
        json={
            "request_type": "general-advance",
            "line_items": [{"name": "Hotel", "request_amount": "1000"}],
        },
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 400
    assert "department" in resp.json()["detail"]


async def test_unknown_employee_is_identity_failure(async_client: AsyncClient, db_session: AsyncSession) -> None:
    resp = await async_client.post(
        "/requests/benefits",
        json={"request_type": "medical", "amount": "100"},
        headers={"X-User-Id": str(uuid.uuid4()), "X-Role": "employee"},
    )
    assert resp.status_code == 424
    assert resp.json()["error"] == "IdentityLookupError"
    assert await _count_requests(db_session) == 0


async def test_blank_department_is_identity_failure(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/requests/benefits",
        json={"request_type": "medical", "amount": "100"},
        headers={"X-User-Id": str(NO_DEPARTMENT_ID), "X-Role": "employee"},
    )
    assert resp.status_code == 424


async def test_directory_outage_is_identity_failure(async_client: AsyncClient) -> None:
    class _BrokenDirectory(InMemoryEmployeeService):
        async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
            raise ConnectionError("directory down")

    set_employee_service(_BrokenDirectory())
    resp = await async_client.post(
        "/requests/benefits",
        json={"request_type": "medical", "amount": "100"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 424


async def test_document_failure_does_not_block_submission(async_client: AsyncClient) -> None:
    class _BrokenRenderer(InMemoryDocumentRenderer):
        async def render(self, request: WelfareRequest) -> str:
            raise RuntimeError("pdf service down")

    set_document_renderer(_BrokenRenderer())
    data = await _submit_benefit(async_client)
    assert data["status"] == "pending_manager"
    assert data["document_url"] is None


async def test_document_holds_requester_fields(async_client: AsyncClient) -> None:
    data = await _submit_benefit(async_client)
    renderer = get_document_renderer()
    assert isinstance(renderer, InMemoryDocumentRenderer)
    document = renderer.get(uuid.UUID(data["id"]))
    assert document is not None
    assert document["requester_department"] == "Engineering"


async def test_employee_cannot_submit_for_someone_else(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/requests/benefits",
        json={"request_type": "medical", "amount": "100", "employee_id": str(OTHER_EMPLOYEE_ID)},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 403


async def test_admin_submits_on_behalf(async_client: AsyncClient) -> None:
    data = await _submit_benefit(async_client, headers=ADMIN_HEADERS, employee_id=str(OTHER_EMPLOYEE_ID))
    assert data["requester_id"] == str(OTHER_EMPLOYEE_ID)
    assert data["requester_department"] == "Finance"


async def test_storage_failure_is_persistence_error(
    db_session: AsyncSession, session_factory: async_sessionmaker[AsyncSession], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        db_session,
        "commit",
        AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))),
    )
    payload = SubmitBenefitPayload(request_type=RequestType.MEDICAL, amount=Decimal("100"))
    with pytest.raises(PersistenceError):
        await submit_benefit_request(db_session, EMPLOYEE_AUTH, payload)

    async with session_factory() as fresh:
        assert await _count_requests(fresh) == 0


# ---------------------------------------------------------------------------
# Approval chain
# ---------------------------------------------------------------------------


async def test_full_approval_chain(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client, "medical", "400")
    data = await _complete(async_client, submitted["id"])

    assert data["status"] == "completed"
    assert data["financials"] == submitted["financials"]
    assert [a["role"] for a in data["approvals"]] == ["manager", "hr", "accounting"]
    assert [a["to_status"] for a in data["approvals"]] == ["pending_hr", "pending_accounting", "completed"]
    assert data["approvals"][0]["approver_id"] == str(MANAGER_ID)
    assert data["approvals"][0]["approver_name"] == "Manager"
    sequences = [a["sequence"] for a in data["approvals"]]
    assert sequences == sorted(sequences)


async def test_completed_request_reduces_remaining_budget(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client, "medical", "400")
    await _complete(async_client, submitted["id"])

    resp = await async_client.get(f"/employees/{EMPLOYEE_ID}/budgets/medical", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert Decimal(resp.json()["remaining"]) == Decimal("600")

    second = await _submit_benefit(async_client, "medical", "100")
    assert Decimal(second["remaining_budget"]) == Decimal("600")


async def test_pending_requests_do_not_consume_budget(async_client: AsyncClient) -> None:
    await _submit_benefit(async_client, "medical", "900")
    second = await _submit_benefit(async_client, "medical", "900")
    assert Decimal(second["remaining_budget"]) == Decimal("1000")


async def test_employee_cannot_decide(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await _decide(async_client, submitted["id"], "manager", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403


async def test_manager_cannot_act_as_hr(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    await _decide(async_client, submitted["id"], "manager")
    resp = await _decide(async_client, submitted["id"], "hr", headers=ROLE_HEADERS["manager"])
    assert resp.status_code == 403


async def test_admin_can_act_at_any_stage(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await _decide(async_client, submitted["id"], "manager", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending_hr"


async def test_second_manager_approval_is_stale(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    first = await _decide(async_client, submitted["id"], "manager")
    second = await _decide(async_client, submitted["id"], "manager")
    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"] == "StaleStateError"


async def test_reject_requires_reason(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await _decide(async_client, submitted["id"], "manager", "reject")
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidDecisionError"


async def test_rejected_request_is_terminal(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    rejected = await _decide(async_client, submitted["id"], "manager", "reject", reason="Missing receipt")
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected_manager"
    assert rejected.json()["approvals"][0]["notes"] == "Missing receipt"

    resp = await _decide(async_client, submitted["id"], "manager")
    assert resp.status_code == 409
    assert resp.json()["error"] == "TerminalStateError"


async def test_manager_cannot_request_revision(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await _decide(async_client, submitted["id"], "manager", "request_revision", reason="Fix it")
    assert resp.status_code == 400


async def test_decision_payload_rejects_resubmit(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await _decide(async_client, submitted["id"], "manager", "resubmit")
    assert resp.status_code == 422


async def test_decision_on_unknown_request(async_client: AsyncClient) -> None:
    resp = await _decide(async_client, str(uuid.uuid4()), "manager")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Revision cycle
# ---------------------------------------------------------------------------


async def test_revision_cycle(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client, attachments=["receipt-1.pdf"])
    request_id = submitted["id"]
    await _decide(async_client, request_id, "manager")
    returned = await _decide(async_client, request_id, "hr", "request_revision", reason="Receipt unreadable")
    assert returned.status_code == 200
    assert returned.json()["status"] == "pending_revision"
    assert returned.json()["revision_note"] == "Receipt unreadable"

    resp = await async_client.post(
        f"/requests/{request_id}/resubmit",
        json={"note": "Clearer scan attached", "attachments": ["receipt-2.pdf"]},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["status"] == "pending_manager"
    assert data["cycle"] == 2
    assert data["revision_note"] is None
    assert data["attachments"] == ["receipt-1.pdf", "receipt-2.pdf"]
    assert [a["decision"] for a in data["approvals"]] == ["approve", "request_revision", "resubmit"]
    assert data["approvals"][-1]["cycle"] == 2
    assert data["financials"] == submitted["financials"]

    again = await _decide(async_client, request_id, "manager")
    assert again.status_code == 200
    assert len(again.json()["approvals"]) == 4


async def test_only_requester_can_resubmit(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    await _decide(async_client, submitted["id"], "manager")
    await _decide(async_client, submitted["id"], "hr", "request_revision", reason="Fix")
    resp = await async_client.post(
        f"/requests/{submitted['id']}/resubmit",
        json={},
        headers=OTHER_HEADERS,
    )
    assert resp.status_code == 403


async def test_resubmit_outside_revision_is_stale(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await async_client.post(f"/requests/{submitted['id']}/resubmit", json={}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 409


async def test_completed_request_cannot_be_reopened(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    completed = await _complete(async_client, submitted["id"])

    for headers in (EMPLOYEE_HEADERS, ADMIN_HEADERS):
        edit = await async_client.patch(
            f"/requests/{submitted['id']}",
            json={"details": {"hospital": "Other"}},
            headers=headers,
        )
        assert edit.status_code == 409
        assert edit.json()["error"] == "TerminalStateError"

        resubmit = await async_client.post(f"/requests/{submitted['id']}/resubmit", json={}, headers=headers)
        assert resubmit.status_code == 409
        assert resubmit.json()["error"] == "TerminalStateError"

    resp = await async_client.get(f"/requests/{submitted['id']}", headers=EMPLOYEE_HEADERS)
    assert resp.json()["financials"] == completed["financials"]
    assert resp.json()["status"] == "completed"


# ---------------------------------------------------------------------------
# Requester edits
# ---------------------------------------------------------------------------


async def test_requester_edits_before_manager(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client, details={"hospital": "A"})
    resp = await async_client.patch(
        f"/requests/{submitted['id']}",
        json={"details": {"hospital": "B"}, "attachments": ["bill.pdf"]},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["details"] == {"hospital": "B"}
    assert data["attachments"] == ["bill.pdf"]
    assert data["version"] == submitted["version"] + 1
    assert data["financials"] == submitted["financials"]


async def test_edit_after_manager_approval_is_refused(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    await _decide(async_client, submitted["id"], "manager")
    resp = await async_client.patch(
        f"/requests/{submitted['id']}",
        json={"details": {"hospital": "B"}},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 409


async def test_edit_keeps_required_fields(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client, "training", "100", details={"course_name": "Go"})
    resp = await async_client.patch(
        f"/requests/{submitted['id']}",
        json={"details": {}},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 400


async def test_other_employee_cannot_edit(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await async_client.patch(f"/requests/{submitted['id']}", json={"attachments": []}, headers=OTHER_HEADERS)
    assert resp.status_code == 404


async def test_closed_request_is_hidden_from_other_employees(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    await _complete(async_client, submitted["id"])
    resp = await async_client.patch(f"/requests/{submitted['id']}", json={"attachments": []}, headers=OTHER_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFoundError"


async def test_admin_cannot_edit_someone_elses_request(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await async_client.patch(
        f"/requests/{submitted['id']}", json={"attachments": ["receipt.pdf"]}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 403
    unchanged = await async_client.get(f"/requests/{submitted['id']}", headers=EMPLOYEE_HEADERS)
    assert unchanged.json()["attachments"] == []
    assert unchanged.json()["version"] == submitted["version"]


# ---------------------------------------------------------------------------
# Visibility and queues
# ---------------------------------------------------------------------------


async def test_employee_cannot_see_others_requests(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await async_client.get(f"/requests/{submitted['id']}", headers=OTHER_HEADERS)
    assert resp.status_code == 404


async def test_employee_list_is_own_only(async_client: AsyncClient) -> None:
    await _submit_benefit(async_client)
    await _submit_benefit(async_client, headers=OTHER_HEADERS)
    resp = await async_client.get(
        "/requests",
        params={"requester_id": str(OTHER_EMPLOYEE_ID)},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 1
    assert data["items"][0]["requester_id"] == str(EMPLOYEE_ID)


async def test_approval_queue_by_status(async_client: AsyncClient) -> None:
    first = await _submit_benefit(async_client)
    await _submit_benefit(async_client, headers=OTHER_HEADERS)
    await _decide(async_client, first["id"], "manager")

    resp = await async_client.get("/requests", params={"status": "pending_hr"}, headers=ROLE_HEADERS["hr"])
    assert resp.json()["total"] == 1
    assert resp.json()["items"][0]["id"] == first["id"]

    resp = await async_client.get(
        "/requests",
        params=[("status", "pending_manager"), ("status", "pending_hr")],
        headers=ROLE_HEADERS["manager"],
    )
    assert resp.json()["total"] == 2


async def test_list_by_type_and_pagination(async_client: AsyncClient) -> None:
    await _submit_benefit(async_client, "medical", "100")
    await _submit_benefit(async_client, "medical", "100")
    await _submit_benefit(async_client, "fitness", "100")

    resp = await async_client.get(
        "/requests",
        params={"request_type": "medical", "limit": 1},
        headers=ROLE_HEADERS["manager"],
    )
    data = resp.json()
    assert data["total"] == 2
    assert len(data["items"]) == 1


# ---------------------------------------------------------------------------
# Bulk decisions
# ---------------------------------------------------------------------------


async def test_bulk_approval_reports_each_item(async_client: AsyncClient) -> None:
    first = await _submit_benefit(async_client)
    second = await _submit_benefit(async_client)
    already = await _submit_benefit(async_client)
    await _decide(async_client, already["id"], "manager")
    missing = str(uuid.uuid4())

    resp = await async_client.post(
        "/requests/bulk-decision",
        json={
            "request_ids": [first["id"], already["id"], second["id"], missing, first["id"]],
            "role": "manager",
            "decision": "approve",
        },
        headers=ROLE_HEADERS["manager"],
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["succeeded"] == 2
    assert data["failed"] == 2
    outcomes = {o["request_id"]: o for o in data["items"]}
    assert len(data["items"]) == 4
    assert outcomes[first["id"]]["status"] == "pending_hr"
    assert outcomes[second["id"]]["succeeded"] is True
    assert outcomes[already["id"]]["error"] == "StaleStateError"
    assert outcomes[missing]["error"] == "NotFoundError"


async def test_bulk_reject_needs_reason_per_item(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await async_client.post(
        "/requests/bulk-decision",
        json={"request_ids": [submitted["id"]], "role": "manager", "decision": "reject"},
        headers=ROLE_HEADERS["manager"],
    )
    assert resp.status_code == 200
    assert resp.json()["items"][0]["error"] == "InvalidDecisionError"


async def test_bulk_requires_reviewer(async_client: AsyncClient) -> None:
    submitted = await _submit_benefit(async_client)
    resp = await async_client.post(
        "/requests/bulk-decision",
        json={"request_ids": [submitted["id"]], "role": "manager", "decision": "approve"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 403


async def test_bulk_terminal_items_do_not_block_others(async_client: AsyncClient) -> None:
    completed = await _submit_benefit(async_client)
    completed_data = await _complete(async_client, completed["id"])
    rejected = await _submit_benefit(async_client)
    resp = await _decide(async_client, rejected["id"], "manager", "reject", reason="Duplicate claim")
    assert resp.status_code == 200
    eligible = await _submit_benefit(async_client)

    resp = await async_client.post(
        "/requests/bulk-decision",
        json={
            "request_ids": [completed["id"], eligible["id"], rejected["id"]],
            "role": "manager",
            "decision": "approve",
        },
        headers=ROLE_HEADERS["manager"],
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["succeeded"] == 1
    assert data["failed"] == 2
    outcomes = {o["request_id"]: o for o in data["items"]}
    assert outcomes[eligible["id"]]["status"] == "pending_hr"
    assert outcomes[completed["id"]]["error"] == "TerminalStateError"
    assert outcomes[rejected["id"]]["error"] == "TerminalStateError"

    after = (await async_client.get(f"/requests/{completed['id']}", headers=EMPLOYEE_HEADERS)).json()
    assert after["status"] == "completed"
    assert after["financials"] == completed_data["financials"]
    assert after["version"] == completed_data["version"]
    after = (await async_client.get(f"/requests/{rejected['id']}", headers=EMPLOYEE_HEADERS)).json()
    assert after["status"] == "rejected_manager"


# ---------------------------------------------------------------------------
# Failed writes
# ---------------------------------------------------------------------------


def _failing_commits(session: AsyncSession, failures: int) -> None:
    """Make the next ``failures`` commits on ``session`` raise a database error."""
    real_commit = session.commit
    remaining = failures

    async def _commit() -> None:
        nonlocal remaining
        if remaining > 0:
            remaining -= 1
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        await real_commit()

    session.commit = _commit  # type: ignore[method-assign]


async def test_decision_storage_failure_is_persistence_error(
    async_client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    submitted = await _submit_benefit(async_client)
    request_id = uuid.UUID(submitted["id"])

    async with session_factory() as session:
        _failing_commits(session, 1)
        with pytest.raises(PersistenceError):
            await approval_service.apply_approval(
                session, MANAGER_AUTH, request_id, ApprovalRole.MANAGER, Decision.APPROVE
            )

    async with session_factory() as session:
        unchanged = await get_request(session, MANAGER_AUTH, request_id)
    assert unchanged.status == "pending_manager"
    assert unchanged.version == submitted["version"]
    assert unchanged.approvals == []


async def test_bulk_storage_failure_is_isolated(
    async_client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    first = await _submit_benefit(async_client)
    second = await _submit_benefit(async_client)
    ids = [uuid.UUID(first["id"]), uuid.UUID(second["id"])]

    async with session_factory() as session:
        _failing_commits(session, 1)
        result = await approval_service.apply_approval_bulk(
            session, MANAGER_AUTH, ids, ApprovalRole.MANAGER, Decision.APPROVE
        )

    assert result.succeeded == 1
    assert result.failed == 1
    failed, succeeded = result.items
    assert failed.request_id == ids[0]
    assert failed.error == "PersistenceError"
    assert succeeded.request_id == ids[1]
    assert succeeded.status == "pending_hr"

    async with session_factory() as session:
        assert (await get_request(session, MANAGER_AUTH, ids[0])).status == "pending_manager"
        assert (await get_request(session, MANAGER_AUTH, ids[1])).status == "pending_hr"


async def test_edit_storage_failure_is_persistence_error(
    async_client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    submitted = await _submit_benefit(async_client)
    request_id = uuid.UUID(submitted["id"])

    async with session_factory() as session:
        _failing_commits(session, 1)
        with pytest.raises(PersistenceError):
            await update_request(
                session, EMPLOYEE_AUTH, request_id, UpdateRequestPayload(attachments=["receipt.pdf"])
            )

    async with session_factory() as session:
        unchanged = await get_request(session, EMPLOYEE_AUTH, request_id)
    assert unchanged.attachments == []
    assert unchanged.version == submitted["version"]


# ---------------------------------------------------------------------------
# Concurrent decisions
# ---------------------------------------------------------------------------


async def test_sequential_hr_decisions_second_is_stale(
    async_client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    submitted = await _submit_benefit(async_client)
    await _decide(async_client, submitted["id"], "manager")
    request_id = uuid.UUID(submitted["id"])

    async with session_factory() as first, session_factory() as second:
        approved = await approval_service.apply_approval(
            first, HR_AUTH, request_id, ApprovalRole.HR, Decision.APPROVE
        )
        with pytest.raises(StaleStateError):
            await approval_service.apply_approval(
                second, HR_AUTH, request_id, ApprovalRole.HR, Decision.REQUEST_REVISION, "Need receipt"
            )
    assert approved.status == "pending_accounting"


async def test_interleaved_hr_decisions_exactly_one_wins(
    async_client: AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Both actors read pending_hr; the one writing second must fail, not overwrite."""
    submitted = await _submit_benefit(async_client)
    await _decide(async_client, submitted["id"], "manager")
    request_id = uuid.UUID(submitted["id"])

    original_load = approval_service.load_request
    calls = 0

    async with session_factory() as first, session_factory() as second:

        async def _racing_load(session: AsyncSession, rid: uuid.UUID) -> WelfareRequest:
            nonlocal calls
            calls += 1
            request = await original_load(session, rid)
            if calls == 1:
                # The competing approval lands between this read and our write.
                await approval_service.apply_approval(second, HR_AUTH, rid, ApprovalRole.HR, Decision.APPROVE)
            return request

        monkeypatch.setattr(approval_service, "load_request", _racing_load)
        with pytest.raises(StaleStateError):
            await approval_service.apply_approval(
                first, HR_AUTH, request_id, ApprovalRole.HR, Decision.REQUEST_REVISION, "Need receipt"
            )
        monkeypatch.undo()

    async with session_factory() as session:
        final = await get_request(session, HR_AUTH, request_id)
    assert final.status == "pending_accounting"
    assert [a.decision for a in final.approvals] == ["approve", "approve"]
    assert final.revision_note is None

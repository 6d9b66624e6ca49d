"""Seed script for development data.

Run with:  python -m welfare.seed

The employee directory is an in-memory stub, so re-run this after every
API restart. Requests are not idempotent; each run adds a new set.
"""

from __future__ import annotations

import asyncio
import sys

import httpx

BASE_URL = "http://localhost:8000"
ADMIN_USER_ID = "00000000-0000-0000-0000-000000000001"

# Well-known employee UUIDs
NOK_ID = "00000000-0000-0000-0000-000000000002"
PIM_ID = "00000000-0000-0000-0000-000000000003"
MANAGER_ID = "00000000-0000-0000-0000-000000000010"
HR_ID = "00000000-0000-0000-0000-000000000011"
ACCOUNTING_ID = "00000000-0000-0000-0000-000000000012"


def _headers(user_id: str, role: str, name: str | None = None) -> dict[str, str]:
    headers = {"Content-Type": "application/json", "X-User-Id": user_id, "X-Role": role}
    if name:
        headers["X-User-Name"] = name
    return headers


ADMIN = _headers(ADMIN_USER_ID, "admin", "Admin")
MANAGER = _headers(MANAGER_ID, "manager", "Somchai Manager")
HR = _headers(HR_ID, "hr", "Suda HR")
ACCOUNTING = _headers(ACCOUNTING_ID, "accounting", "Wichai Accounting")

EMPLOYEES = [
    {"id": NOK_ID, "name": "Nok Srisuk", "position": "Engineer", "department": "Engineering"},
    {"id": PIM_ID, "name": "Pim Chaiyo", "position": "Analyst", "department": "Finance"},
    {"id": MANAGER_ID, "name": "Somchai Manager", "position": "Manager", "department": "Engineering"},
    {"id": HR_ID, "name": "Suda HR", "position": "HR Officer", "department": "Human Resources"},
    {"id": ACCOUNTING_ID, "name": "Wichai Accounting", "position": "Accountant", "department": "Finance"},
]

# (employee_id, path, body, label, decisions to apply as (headers, role))
REQUESTS = [
    (
        NOK_ID,
        "/requests/benefits",
        {"request_type": "medical", "amount": "800.00", "details": {"hospital": "City Clinic"}},
        "Nok medical 800 (completed)",
        [(MANAGER, "manager"), (HR, "hr"), (ACCOUNTING, "accounting")],
    ),
    (
        NOK_ID,
        "/requests/benefits",
        {"request_type": "training", "amount": "12000.00", "details": {"course_name": "Cloud Architecture"}},
        "Nok training 12,000 (excess split, pending HR)",
        [(MANAGER, "manager")],
    ),
    (
        PIM_ID,
        "/requests/benefits",
        {"request_type": "glasses", "amount": "1500.00", "is_vat_included": True},
        "Pim glasses 1,500 (pending manager)",
        [],
    ),
    (
        PIM_ID,
        "/requests/advances",
        {
            "request_type": "general-advance",
            "details": {"advance_department": "Finance", "purpose": "Client visit"},
            "line_items": [
                {"name": "Hotel", "request_amount": "2400.00", "tax_rate_percent": "7"},
                {"name": "Taxi", "request_amount": "600.00"},
            ],
        },
        "Pim general advance 3,000 (pending manager)",
        [],
    ),
]


async def _safe_post(
    client: httpx.AsyncClient, url: str, json: dict, headers: dict[str, str], label: str
) -> dict | None:
    """POST and report the outcome."""
    resp = await client.post(url, json=json, headers=headers)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def _safe_put(client: httpx.AsyncClient, url: str, json: dict, label: str) -> dict | None:
    """PUT (upsert), safe to repeat."""
    resp = await client.put(url, json=json, headers=ADMIN)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_employees(client: httpx.AsyncClient) -> None:
    """Seed the employee directory via PUT (upsert)."""
    print("\n--- Seeding employees ---")
    for emp in EMPLOYEES:
        body = {k: v for k, v in emp.items() if k != "id"}
        await _safe_put(client, f"{BASE_URL}/employees/{emp['id']}", body, emp["name"])


async def seed_budgets(client: httpx.AsyncClient) -> None:
    """Give Nok a stored training allotment."""
    print("\n--- Seeding stored budgets ---")
    await _safe_put(
        client,
        f"{BASE_URL}/employees/{NOK_ID}/budgets/training",
        {"amount": "10000.00"},
        "Nok training allotment 10,000",
    )


async def seed_requests(client: httpx.AsyncClient) -> None:
    """Submit requests and walk some of them through the approval chain."""
    print("\n--- Seeding requests ---")
    for employee_id, path, body, label, decisions in REQUESTS:
        result = await _safe_post(
            client,
            f"{BASE_URL}{path}",
            body,
            _headers(employee_id, "employee"),
            label,
        )
        if not result:
            continue
        for headers, role in decisions:
            resp = await client.post(
                f"{BASE_URL}/requests/{result['id']}/decision",
                json={"role": role, "decision": "approve"},
                headers=headers,
            )
            if resp.status_code == 200:
                print(f"    [OK] {role} approved -> {resp.json()['status']}")
            else:
                print(f"    [ERROR] {role} approve: {resp.status_code} {resp.text[:200]}")
                break


async def main() -> None:
    print("=" * 60)
    print("  Welfare Flow: Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            print("Make sure the API is running (uvicorn welfare.main:app)")
            sys.exit(1)

        await seed_employees(client)
        await seed_budgets(client)
        await seed_requests(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())

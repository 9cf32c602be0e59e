"""End-to-end tests through the HTTP API with dev auth headers."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from httpx import AsyncClient

TENANT_ID = uuid.uuid4()
OTHER_TENANT_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
BASE = f"/tenants/{TENANT_ID}"
ADMIN_HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(ADMIN_ID), "X-Role": "admin"}
EMPLOYEE_HEADERS = {"X-Tenant-Id": str(TENANT_ID), "X-User-Id": str(EMPLOYEE_ID)}


async def _create_project(client: AsyncClient, **overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "name": "Website",
        "code": "web",
        "assigned_employees": [str(EMPLOYEE_ID)],
        "default_hourly_rate": "80",
    }
    body.update(overrides)
    response = await client.post(f"{BASE}/projects", json=body, headers=ADMIN_HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


async def _create_timesheet(client: AsyncClient) -> dict[str, Any]:
    response = await client.post(
        f"{BASE}/timesheets",
        json={"employee_id": str(EMPLOYEE_ID), "period_start": "2024-01-08", "period_end": "2024-01-14"},
        headers=EMPLOYEE_HEADERS,
    )
    assert response.status_code == 201, response.text
    return response.json()


def _entry(project_id: str, start: str = "09:00", end: str = "10:00") -> dict[str, Any]:
    return {
        "employee_id": str(EMPLOYEE_ID),
        "project_id": project_id,
        "date": "2024-01-10",
        "start_time": start,
        "end_time": end,
    }


# ---------------------------------------------------------------------------
# Auth and errors
# ---------------------------------------------------------------------------


async def test_missing_headers_rejected(async_client: AsyncClient) -> None:
    response = await async_client.get(f"{BASE}/projects")
    assert response.status_code == 422


async def test_tenant_mismatch_forbidden(async_client: AsyncClient) -> None:
    headers = {**ADMIN_HEADERS, "X-Tenant-Id": str(OTHER_TENANT_ID)}
    response = await async_client.get(f"{BASE}/projects", headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Tenant ID mismatch"


async def test_admin_required_for_project_creation(async_client: AsyncClient) -> None:
    response = await async_client.post(
        f"{BASE}/projects", json={"name": "Website", "code": "WEB"}, headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 403


async def test_not_found_error_shape(async_client: AsyncClient) -> None:
    response = await async_client.get(f"{BASE}/projects/{uuid.uuid4()}", headers=EMPLOYEE_HEADERS)
    assert response.status_code == 404
    assert response.json() == {"error": "NotFoundError", "detail": "Project not found", "status_code": 404}


# ---------------------------------------------------------------------------
# Activity codes
# ---------------------------------------------------------------------------


async def test_activity_code_tree(async_client: AsyncClient) -> None:
    response = await async_client.post(
        f"{BASE}/activity-codes",
        json={"code": "dev", "name": "Development", "category": "engineering"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201
    parent = response.json()
    assert parent["code"] == "DEV"

    response = await async_client.post(
        f"{BASE}/activity-codes",
        json={"code": "fe", "name": "Frontend", "category": "engineering", "parent_id": parent["id"]},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201
    assert response.json()["hierarchy"]["full_name"] == "Development > Frontend"

    tree = (await async_client.get(f"{BASE}/activity-codes/tree", headers=EMPLOYEE_HEADERS)).json()
    assert [node["code"] for node in tree] == ["DEV"]
    assert [child["code"] for child in tree[0]["children"]] == ["FE"]

    response = await async_client.delete(f"{BASE}/activity-codes/{parent['id']}", headers=ADMIN_HEADERS)
    assert response.status_code == 409


async def test_stale_version_conflict(async_client: AsyncClient) -> None:
    created = (
        await async_client.post(
            f"{BASE}/activity-codes",
            json={"code": "DEV", "name": "Development", "category": "engineering"},
            headers=ADMIN_HEADERS,
        )
    ).json()
    url = f"{BASE}/activity-codes/{created['id']}"
    response = await async_client.patch(
        url, params={"expected_version": 1}, json={"name": "Dev"}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 200
    response = await async_client.patch(
        url, params={"expected_version": 1}, json={"name": "Ops"}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 409
    assert response.json()["error"] == "StaleWriteError"


# ---------------------------------------------------------------------------
# Projects, entries and timesheets
# ---------------------------------------------------------------------------


async def test_project_status_and_budget(async_client: AsyncClient) -> None:
    project = await _create_project(async_client, budget="1000")
    url = f"{BASE}/projects/{project['id']}"

    response = await async_client.post(f"{url}/status", json={"status": "on_hold"}, headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["status"] == "on_hold"

    response = await async_client.post(f"{url}/status", json={"status": "completed"}, headers=ADMIN_HEADERS)
    assert response.status_code == 409
    assert response.json()["error"] == "StateTransitionError"

    response = await async_client.get(f"{url}/budget-utilization", headers=EMPLOYEE_HEADERS)
    assert response.status_code == 200
    assert response.json()["is_over_budget"] is False


async def test_time_entry_conflicts_reported(async_client: AsyncClient) -> None:
    project = await _create_project(async_client)
    first = await async_client.post(f"{BASE}/time-entries", json=_entry(project["id"]), headers=EMPLOYEE_HEADERS)
    assert first.status_code == 201
    assert first.json()["entry"]["total_cost"] == "80.00"

    second = await async_client.post(
        f"{BASE}/time-entries", json=_entry(project["id"], "09:30", "10:30"), headers=EMPLOYEE_HEADERS
    )
    assert second.status_code == 201
    conflicts = second.json()["conflicts"]
    assert conflicts["has_conflicts"] is True
    assert conflicts["conflicts"][0]["entry_id"] == first.json()["entry"]["id"]

    response = await async_client.get(
        f"{BASE}/time-entries/conflicts",
        params={"employee_id": str(EMPLOYEE_ID), "date": "2024-01-10", "start_time": "10:00", "end_time": "11:00"},
        headers=EMPLOYEE_HEADERS,
    )
    assert response.status_code == 200
    assert len(response.json()["conflicts"]) == 1


async def test_unassigned_employee_denied(async_client: AsyncClient) -> None:
    project = await _create_project(async_client, assigned_employees=[])
    response = await async_client.post(f"{BASE}/time-entries", json=_entry(project["id"]), headers=EMPLOYEE_HEADERS)
    assert response.status_code == 403
    assert response.json()["error"] == "AccessDenied"


async def test_timesheet_workflow(async_client: AsyncClient) -> None:
    project = await _create_project(async_client)
    timesheet = await _create_timesheet(async_client)
    url = f"{BASE}/timesheets/{timesheet['id']}"

    response = await async_client.post(f"{url}/entries", json=_entry(project["id"]), headers=EMPLOYEE_HEADERS)
    assert response.status_code == 201

    response = await async_client.post(f"{url}/approve", headers=ADMIN_HEADERS)
    assert response.status_code == 409

    response = await async_client.post(f"{url}/submit", headers=EMPLOYEE_HEADERS)
    assert response.status_code == 200
    assert response.json()["totals"]["total_minutes"] == 60

    response = await async_client.post(f"{url}/approve", headers=EMPLOYEE_HEADERS)
    assert response.status_code == 403

    for action in ("approve", "lock"):
        response = await async_client.post(f"{url}/{action}", headers=ADMIN_HEADERS)
        assert response.status_code == 200
    assert response.json()["status"] == "locked"

    response = await async_client.post(
        f"{url}/entries", json=_entry(project["id"], "13:00", "14:00"), headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 409
    assert response.json()["error"] == "ImmutabilityError"

    audit = await async_client.get(
        f"{BASE}/audit-log", params={"entity_id": timesheet["id"]}, headers=ADMIN_HEADERS
    )
    assert [entry["action"] for entry in audit.json()] == ["CREATE", "SUBMIT", "APPROVE", "LOCK"]


async def test_bulk_import(async_client: AsyncClient) -> None:
    project = await _create_project(async_client)
    timesheet = await _create_timesheet(async_client)
    entries = [_entry(project["id"]), {**_entry(project["id"], "11:00", "12:00"), "date": "2024-02-01"}]

    response = await async_client.post(
        f"{BASE}/timesheets/{timesheet['id']}/import", json={"entries": entries}, headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 200
    data = response.json()
    assert len(data["imported"]) == 1
    assert data["failed"][0]["index"] == 1
    assert data["totals"]["entry_count"] == 1


async def test_project_patch_and_delete(async_client: AsyncClient) -> None:
    project = await _create_project(async_client)
    url = f"{BASE}/projects/{project['id']}"

    response = await async_client.patch(
        url, json={"settings": {"require_activity_code": True}}, headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 403

    response = await async_client.patch(
        url,
        params={"expected_version": 1},
        json={"name": "Portal", "settings": {"require_activity_code": True}},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200, response.text
    assert response.json()["name"] == "Portal"
    assert response.json()["settings"]["require_activity_code"] is True

    denied = await async_client.post(f"{BASE}/time-entries", json=_entry(project["id"]), headers=EMPLOYEE_HEADERS)
    assert denied.status_code == 403

    response = await async_client.delete(url, params={"expected_version": 1}, headers=ADMIN_HEADERS)
    assert response.status_code == 409
    assert response.json()["error"] == "StaleWriteError"

    response = await async_client.delete(url, headers=ADMIN_HEADERS)
    assert response.status_code == 204
    assert (await async_client.get(url, headers=ADMIN_HEADERS)).status_code == 404


async def test_duplicate_time_entry(async_client: AsyncClient) -> None:
    project = await _create_project(async_client)
    created = await async_client.post(f"{BASE}/time-entries", json=_entry(project["id"]), headers=EMPLOYEE_HEADERS)
    entry_id = created.json()["entry"]["id"]

    response = await async_client.post(
        f"{BASE}/time-entries/{entry_id}/duplicate", json={"date": "2024-01-11"}, headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == 201, response.text
    assert response.json()["entry"]["id"] != entry_id
    assert response.json()["entry"]["date"] == "2024-01-11"

    response = await async_client.delete(f"{BASE}/projects/{project['id']}", headers=ADMIN_HEADERS)
    assert response.status_code == 409
    assert response.json()["error"] == "InvariantViolation"


async def test_delete_timesheet(async_client: AsyncClient) -> None:
    timesheet = await _create_timesheet(async_client)
    url = f"{BASE}/timesheets/{timesheet['id']}"

    response = await async_client.delete(url, headers=EMPLOYEE_HEADERS)
    assert response.status_code == 204
    assert (await async_client.get(url, headers=EMPLOYEE_HEADERS)).status_code == 404

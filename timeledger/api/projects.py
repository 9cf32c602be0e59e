# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status

from timeledger.api.deps import AdminDep, AuthDep, StoreDep, validate_tenant_scope
from timeledger.models.enums import ProjectStatus
from timeledger.schemas.project import (
    ActivityCodeIdsPayload,
    BudgetPayload,
    BudgetUtilization,
    EmployeeIdsPayload,
    Project,
    ProjectCreate,
    ProjectPatch,
    StatusChangePayload,
)
from timeledger.services import project as project_service

router = APIRouter(
    prefix="/tenants/{tenant_id}/projects",
    tags=["projects"],
    dependencies=[Depends(validate_tenant_scope)],
)


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectCreate, store: StoreDep, auth: AdminDep) -> Project:
    """Create a project."""
    return await project_service.create_project(store, auth, payload)


@router.get("", response_model=list[Project])
async def list_projects(
    store: StoreDep,
    auth: AuthDep,
    status_filter: ProjectStatus | None = Query(default=None, alias="status"),
) -> list[Project]:
    """List projects of the tenant."""
    return await project_service.list_projects(store, auth.tenant_id, status_filter)


@router.get("/{project_id}", response_model=Project)
async def get_project(project_id: uuid.UUID, store: StoreDep, auth: AuthDep) -> Project:
    """Get a single project."""
    return await project_service.get_project(store, auth.tenant_id, project_id)


@router.patch("/{project_id}", response_model=Project)
async def update_project(
    project_id: uuid.UUID,
    payload: ProjectPatch,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Project:
    """Partially update a project."""
    return await project_service.update_project(store, auth, project_id, payload, expected_version)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: uuid.UUID,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> None:
    """Delete a project that has no time entries."""
    await project_service.delete_project(store, auth, project_id, expected_version)


@router.post("/{project_id}/employees", response_model=Project)
async def assign_employees(
    project_id: uuid.UUID,
    payload: EmployeeIdsPayload,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Project:
    """Assign employees to the project."""
    return await project_service.assign_employees(store, auth, project_id, payload.employee_ids, expected_version)


@router.post("/{project_id}/employees/unassign", response_model=Project)
async def unassign_employees(
    project_id: uuid.UUID,
    payload: EmployeeIdsPayload,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Project:
    """Unassign employees from the project."""
    return await project_service.unassign_employees(store, auth, project_id, payload.employee_ids, expected_version)


@router.put("/{project_id}/activity-codes", response_model=Project)
async def set_activity_codes(
    project_id: uuid.UUID,
    payload: ActivityCodeIdsPayload,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Project:
    """Replace the activity code whitelist."""
    return await project_service.set_activity_codes(
        store, auth, project_id, payload.activity_code_ids, expected_version
    )


@router.post("/{project_id}/status", response_model=Project)
async def change_status(
    project_id: uuid.UUID,
    payload: StatusChangePayload,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Project:
    """Move the project to another status."""
    return await project_service.change_status(store, auth, project_id, payload.status, expected_version)


@router.put("/{project_id}/budget", response_model=Project)
async def set_budget(
    project_id: uuid.UUID,
    payload: BudgetPayload,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Project:
    """Set or clear the budget."""
    return await project_service.set_budget(store, auth, project_id, payload.budget, expected_version)


@router.get("/{project_id}/budget-utilization", response_model=BudgetUtilization)
async def budget_utilization(
    project_id: uuid.UUID,
    store: StoreDep,
    auth: AuthDep,
    spent: Decimal | None = Query(default=None),
) -> BudgetUtilization:
    """Budget projection; without ``spent`` the stored entries' cost is used."""
    return await project_service.budget_utilization(store, auth.tenant_id, project_id, spent)

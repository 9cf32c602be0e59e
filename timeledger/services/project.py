# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from timeledger.exceptions import InvariantViolation, NotFoundError, ValidationError
from timeledger.models.base import _now_utc
from timeledger.models.enums import AuditAction, EntityKind, ProjectStatus
from timeledger.schemas.project import BudgetUtilization, Project
from timeledger.services.audit import document_to_audit_dict, write_audit_log
from timeledger.services.repository import check_expected_version
from timeledger.services.state_machine import ProjectStateMachine

if TYPE_CHECKING:
    from collections.abc import Iterable

    from timeledger.schemas.auth import AuthContext
    from timeledger.schemas.project import ProjectCreate, ProjectPatch
    from timeledger.services.repository import Store

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _validate_activity_code_ids(store: Store, tenant_id: uuid.UUID, ids: Iterable[uuid.UUID]) -> None:
    """Every whitelisted code must exist in the tenant and be active."""
    for activity_code_id in ids:
        code = await store.activity_codes.get(tenant_id, activity_code_id)
        if code is None:
            raise NotFoundError(f"Activity code {activity_code_id} not found")
        if not code.is_active:
            raise ValidationError(f"Activity code {code.code} is not active")


async def _save(
    store: Store,
    auth: AuthContext,
    before: Project,
    after: Project,
    action: AuditAction = AuditAction.UPDATE,
) -> Project:
    saved = await store.projects.put(after, expected_version=before.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.PROJECT,
        entity_id=saved.id,
        action=action,
        before_json=document_to_audit_dict(before),
        after_json=document_to_audit_dict(saved),
    )
    return saved


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------


async def create_project(store: Store, auth: AuthContext, payload: ProjectCreate) -> Project:
    """Create an active project. The project code is unique per tenant."""
    if payload.budget is not None and payload.budget < 0:
        raise InvariantViolation("Budget cannot be negative")
    if await store.projects.query_by_tenant_and_field(auth.tenant_id, "code", payload.code):
        raise InvariantViolation(f"Project code '{payload.code}' already exists")
    await _validate_activity_code_ids(store, auth.tenant_id, payload.activity_codes)

    project = Project.build(tenant_id=auth.tenant_id, status=ProjectStatus.ACTIVE, **payload.model_dump())
    saved = await store.projects.put(project)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.PROJECT,
        entity_id=saved.id,
        action=AuditAction.CREATE,
        after_json=document_to_audit_dict(saved),
    )
    logger.info("Created project %s (%s) for tenant %s", saved.code, saved.id, auth.tenant_id)
    return saved


async def get_project(store: Store, tenant_id: uuid.UUID, project_id: uuid.UUID) -> Project:
    """Fetch a single project."""
    project = await store.projects.get(tenant_id, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


async def list_projects(
    store: Store,
    tenant_id: uuid.UUID,
    status: ProjectStatus | None = None,
) -> list[Project]:
    """List projects of a tenant, optionally filtered by status."""
    if status is None:
        projects = await store.projects.list_by_tenant(tenant_id)
    else:
        projects = await store.projects.query_by_tenant_and_field(tenant_id, "status", status)
    return sorted(projects, key=lambda p: p.code)


async def assign_employees(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    employee_ids: Iterable[uuid.UUID],
    expected_version: int | None = None,
) -> Project:
    """Add employees to the project. Already assigned ids are ignored."""
    current = await get_project(store, auth.tenant_id, project_id)
    check_expected_version(current, "project", expected_version)

    assigned = (*current.assigned_employees, *employee_ids)
    updated = current.touched(auth.user_id, assigned_employees=assigned)
    if updated.assigned_employees == current.assigned_employees:
        return current
    return await _save(store, auth, current, updated)


async def unassign_employees(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    employee_ids: Iterable[uuid.UUID],
    expected_version: int | None = None,
) -> Project:
    """Remove employees from the project. Ids that are not assigned are ignored."""
    current = await get_project(store, auth.tenant_id, project_id)
    check_expected_version(current, "project", expected_version)

    removed = set(employee_ids)
    remaining = tuple(e for e in current.assigned_employees if e not in removed)
    if remaining == current.assigned_employees:
        return current
    updated = current.touched(auth.user_id, assigned_employees=remaining)
    return await _save(store, auth, current, updated)


async def set_activity_codes(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    activity_code_ids: Iterable[uuid.UUID],
    expected_version: int | None = None,
) -> Project:
    """Replace the project's activity code whitelist."""
    current = await get_project(store, auth.tenant_id, project_id)
    check_expected_version(current, "project", expected_version)

    ids = tuple(activity_code_ids)
    await _validate_activity_code_ids(store, auth.tenant_id, ids)
    updated = current.touched(auth.user_id, activity_codes=ids)
    return await _save(store, auth, current, updated)


async def change_status(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    new_status: ProjectStatus,
    expected_version: int | None = None,
) -> Project:
    """Move the project along the status graph.

    Completing sets ``end_date`` to today when it is absent; reopening clears ``completed_at``.
    """
    current = await get_project(store, auth.tenant_id, project_id)
    check_expected_version(current, "project", expected_version)
    ProjectStateMachine.validate_transition(current.status, new_status)

    changes: dict[str, Any] = {"status": new_status}
    if new_status == ProjectStatus.COMPLETED:
        changes["completed_at"] = _now_utc()
        if current.end_date is None:
            changes["end_date"] = date.today()
    elif ProjectStateMachine.is_reopen(current.status, new_status):
        changes["completed_at"] = None

    updated = current.touched(auth.user_id, **changes)
    saved = await _save(store, auth, current, updated, action=AuditAction.STATUS_CHANGE)
    logger.info("Project %s status changed from %s to %s", saved.id, current.status, new_status)
    return saved


async def complete_project(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    expected_version: int | None = None,
) -> Project:
    """Shortcut for ``change_status(..., COMPLETED)``."""
    return await change_status(store, auth, project_id, ProjectStatus.COMPLETED, expected_version)


async def set_budget(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    amount: Decimal | None,
    expected_version: int | None = None,
) -> Project:
    """Set or clear the project budget."""
    if amount is not None and amount < 0:
        raise InvariantViolation("Budget cannot be negative")
    current = await get_project(store, auth.tenant_id, project_id)
    check_expected_version(current, "project", expected_version)

    updated = current.touched(auth.user_id, budget=amount)
    return await _save(store, auth, current, updated)


async def update_project(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    patch: ProjectPatch,
    expected_version: int | None = None,
) -> Project:
    """Apply a partial update to the descriptive, billing and settings fields."""
    current = await get_project(store, auth.tenant_id, project_id)
    check_expected_version(current, "project", expected_version)

    changes = patch.model_dump(exclude_unset=True)
    if not changes:
        return current
    updated = current.touched(auth.user_id, **changes)
    saved = await _save(store, auth, current, updated)
    logger.info("Updated project %s fields: %s", saved.id, ", ".join(sorted(changes)))
    return saved


async def delete_project(
    store: Store,
    auth: AuthContext,
    project_id: uuid.UUID,
    expected_version: int | None = None,
) -> None:
    """Remove a project that no time entry references."""
    current = await get_project(store, auth.tenant_id, project_id)
    check_expected_version(current, "project", expected_version)
    if await store.time_entries.query_by_tenant_and_field(auth.tenant_id, "project_id", current.id):
        raise InvariantViolation("Cannot delete a project with time entries")

    await store.projects.delete(auth.tenant_id, current.id, expected_version=current.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.PROJECT,
        entity_id=current.id,
        action=AuditAction.DELETE,
        before_json=document_to_audit_dict(current),
    )
    logger.info("Deleted project %s (%s)", current.code, current.id)


# ---------------------------------------------------------------------------
# Budget projections
# ---------------------------------------------------------------------------


async def compute_project_spent(store: Store, tenant_id: uuid.UUID, project_id: uuid.UUID) -> Decimal:
    """Sum of ``total_cost`` over the project's time entries as currently stored."""
    entries = await store.time_entries.query_by_tenant_and_field(tenant_id, "project_id", project_id)
    return sum((entry.total_cost for entry in entries), Decimal("0"))


def summarize_budget(project: Project, spent: Decimal) -> BudgetUtilization:
    """Pure budget projection for a given spend."""
    return BudgetUtilization(
        budget=project.budget,
        spent=spent,
        remaining=project.remaining_budget(spent),
        utilization_percentage=project.budget_utilization(spent),
        is_over_budget=project.is_budget_exceeded(spent),
    )


async def budget_utilization(
    store: Store,
    tenant_id: uuid.UUID,
    project_id: uuid.UUID,
    spent: Decimal | None = None,
) -> BudgetUtilization:
    """Budget projection; ``spent`` defaults to the cost of the project's stored entries."""
    if spent is not None and spent < 0:
        raise ValidationError("Spent amount cannot be negative")
    project = await get_project(store, tenant_id, project_id)
    if spent is None:
        spent = await compute_project_spent(store, tenant_id, project_id)
    return summarize_budget(project, spent)

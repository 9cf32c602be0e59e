"""Tests for the project ledger: lifecycle, whitelists, access checks and budget projections."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest

from timeledger.exceptions import (
    AccessDenied,
    InvariantViolation,
    NotFoundError,
    StaleWriteError,
    StateTransitionError,
    ValidationError,
)
from timeledger.models.enums import AuditAction, ProjectStatus
from timeledger.schemas.activity_code import ActivityCodeCreate
from timeledger.schemas.project import Project, ProjectCreate, ProjectPatch, ProjectSettings
from timeledger.schemas.time_entry import TimeEntry
from timeledger.services import activity_code as activity_code_service
from timeledger.services import project as project_service
from timeledger.services.audit import list_audit_entries

if TYPE_CHECKING:
    from timeledger.schemas.auth import AuthContext
    from timeledger.services.repository import Store


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _create_project(store: Store, auth: AuthContext, code: str = "WEB", **overrides: Any) -> Project:
    payload = ProjectCreate(name="Website", code=code, **overrides)
    return await project_service.create_project(store, auth, payload)


def _project(**overrides: Any) -> Project:
    data: dict[str, Any] = {"tenant_id": uuid.uuid4(), "name": "Website", "code": "WEB"}
    data.update(overrides)
    return Project.build(**data)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def test_create_project_is_active(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin, code="web-2024")
    assert project.code == "WEB-2024"
    assert project.status == ProjectStatus.ACTIVE
    assert project.version == 1


async def test_duplicate_project_code_rejected(store: Store, admin: AuthContext) -> None:
    await _create_project(store, admin)
    with pytest.raises(InvariantViolation, match="already exists"):
        await _create_project(store, admin)


async def test_negative_budget_rejected_on_create(store: Store, admin: AuthContext) -> None:
    with pytest.raises(InvariantViolation, match="Budget cannot be negative"):
        await _create_project(store, admin, budget=Decimal("-1"))


async def test_end_date_must_follow_start_date(store: Store, admin: AuthContext) -> None:
    with pytest.raises(ValidationError, match="End date must be after start date"):
        await _create_project(store, admin, start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))


def test_assigned_employees_are_a_set() -> None:
    employee = uuid.uuid4()
    project = _project(assigned_employees=[employee, employee])
    assert project.assigned_employees == (employee,)


# ---------------------------------------------------------------------------
# Status graph
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("path", "final"),
    [
        ([ProjectStatus.ON_HOLD], ProjectStatus.ON_HOLD),
        ([ProjectStatus.ON_HOLD, ProjectStatus.ACTIVE], ProjectStatus.ACTIVE),
        ([ProjectStatus.COMPLETED, ProjectStatus.ACTIVE], ProjectStatus.ACTIVE),
        ([ProjectStatus.INACTIVE, ProjectStatus.ACTIVE], ProjectStatus.ACTIVE),
        ([ProjectStatus.ON_HOLD, ProjectStatus.INACTIVE], ProjectStatus.INACTIVE),
    ],
)
async def test_allowed_status_paths(
    store: Store,
    admin: AuthContext,
    path: list[ProjectStatus],
    final: ProjectStatus,
) -> None:
    project = await _create_project(store, admin)
    for status in path:
        project = await project_service.change_status(store, admin, project.id, status)
    assert project.status == final


@pytest.mark.parametrize(
    ("setup", "target"),
    [
        ([], ProjectStatus.ACTIVE),
        ([ProjectStatus.ON_HOLD], ProjectStatus.COMPLETED),
        ([ProjectStatus.INACTIVE], ProjectStatus.ON_HOLD),
        ([ProjectStatus.INACTIVE], ProjectStatus.COMPLETED),
        ([ProjectStatus.COMPLETED], ProjectStatus.ON_HOLD),
    ],
)
async def test_illegal_status_transition_leaves_state(
    store: Store,
    admin: AuthContext,
    setup: list[ProjectStatus],
    target: ProjectStatus,
) -> None:
    project = await _create_project(store, admin)
    for status in setup:
        project = await project_service.change_status(store, admin, project.id, status)

    with pytest.raises(StateTransitionError) as exc_info:
        await project_service.change_status(store, admin, project.id, target)

    assert str(project.status) in exc_info.value.message
    assert str(target) in exc_info.value.message
    stored = await project_service.get_project(store, admin.tenant_id, project.id)
    assert stored.status == project.status
    assert stored.version == project.version


async def test_complete_sets_end_date_when_absent(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    completed = await project_service.complete_project(store, admin, project.id)
    assert completed.status == ProjectStatus.COMPLETED
    assert completed.end_date == date.today()
    assert completed.completed_at is not None


async def test_complete_keeps_existing_end_date(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin, start_date=date(2020, 1, 1), end_date=date(2020, 6, 30))
    completed = await project_service.complete_project(store, admin, project.id)
    assert completed.end_date == date(2020, 6, 30)


async def test_reopen_clears_completed_at(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    await project_service.complete_project(store, admin, project.id)
    reopened = await project_service.change_status(store, admin, project.id, ProjectStatus.ACTIVE)
    assert reopened.completed_at is None


# ---------------------------------------------------------------------------
# Assignment, whitelist and access
# ---------------------------------------------------------------------------


async def test_assign_and_unassign_employees(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    a, b = uuid.uuid4(), uuid.uuid4()
    project = await project_service.assign_employees(store, admin, project.id, [a, b, a])
    assert project.assigned_employees == (a, b)

    project = await project_service.assign_employees(store, admin, project.id, [b])
    assert project.assigned_employees == (a, b)

    project = await project_service.unassign_employees(store, admin, project.id, [a, uuid.uuid4()])
    assert project.assigned_employees == (b,)


async def test_set_activity_codes_validates_registry(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    code = await activity_code_service.create_activity_code(
        store, admin, ActivityCodeCreate(code="DEV", name="Development", category="engineering")
    )
    updated = await project_service.set_activity_codes(store, admin, project.id, [code.id, code.id])
    assert updated.activity_codes == (code.id,)

    with pytest.raises(NotFoundError):
        await project_service.set_activity_codes(store, admin, project.id, [uuid.uuid4()])

    await activity_code_service.set_activity_code_active(store, admin, code.id, is_active=False)
    with pytest.raises(ValidationError, match="not active"):
        await project_service.set_activity_codes(store, admin, project.id, [code.id])


def test_validate_employee_access() -> None:
    employee = uuid.uuid4()
    project = _project(assigned_employees=[employee])
    project.validate_employee_access(employee)

    with pytest.raises(AccessDenied, match="does not have access"):
        project.validate_employee_access(uuid.uuid4())


@pytest.mark.parametrize(
    ("status", "accepts"),
    [
        (ProjectStatus.ACTIVE, True),
        (ProjectStatus.ON_HOLD, True),
        (ProjectStatus.INACTIVE, False),
        (ProjectStatus.COMPLETED, False),
    ],
)
def test_can_accept_time_entries(status: ProjectStatus, accepts: bool) -> None:
    employee = uuid.uuid4()
    project = _project(status=status, assigned_employees=[employee])
    assert project.can_accept_time_entries is accepts
    if accepts:
        project.validate_employee_access(employee)
    else:
        with pytest.raises(AccessDenied, match="not accepting time entries"):
            project.validate_employee_access(employee)


def test_activity_code_access_noop_when_not_required() -> None:
    project = _project()
    project.validate_activity_code_access(uuid.uuid4())
    project.validate_activity_code_access(None)


def test_activity_code_access_requires_whitelist() -> None:
    allowed = uuid.uuid4()
    project = _project(activity_codes=[allowed], settings=ProjectSettings(require_activity_code=True))
    project.validate_activity_code_access(allowed)
    with pytest.raises(AccessDenied, match="not allowed"):
        project.validate_activity_code_access(uuid.uuid4())
    with pytest.raises(AccessDenied):
        project.validate_activity_code_access(None)


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


async def test_set_budget_negative_rejected(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    with pytest.raises(InvariantViolation):
        await project_service.set_budget(store, admin, project.id, Decimal("-5"))
    stored = await project_service.get_project(store, admin.tenant_id, project.id)
    assert stored.budget is None


async def test_budget_over_utilization(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin, budget=Decimal("1000"))
    report = await project_service.budget_utilization(store, admin.tenant_id, project.id, Decimal("1200"))
    assert report.utilization_percentage == Decimal("120")
    assert report.is_over_budget is True
    assert report.remaining == Decimal("0")
    assert report.spent == Decimal("1200")


@pytest.mark.parametrize("spent", [Decimal("0"), Decimal("1"), Decimal("1000000")])
def test_budget_never_exceeded_when_unset(spent: Decimal) -> None:
    project = _project()
    assert project.is_budget_exceeded(spent) is False
    assert project.budget_utilization(spent) == Decimal("0")
    assert project.remaining_budget(spent) == Decimal("0")


def test_budget_utilization_rounds_to_cents() -> None:
    project = _project(budget=Decimal("300"))
    assert project.budget_utilization(Decimal("100")) == Decimal("33.33")
    assert project.remaining_budget(Decimal("100")) == Decimal("200")
    assert project.is_budget_exceeded(Decimal("300")) is False


async def test_budget_utilization_defaults_to_stored_spend(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin, budget=Decimal("500"))
    for cost in (Decimal("100"), Decimal("150.50")):
        await store.time_entries.put(
            TimeEntry(
                tenant_id=admin.tenant_id,
                employee_id=uuid.uuid4(),
                project_id=project.id,
                date=date(2024, 1, 10),
                duration=60,
                total_cost=cost,
            )
        )

    report = await project_service.budget_utilization(store, admin.tenant_id, project.id)
    assert report.spent == Decimal("250.50")
    assert report.utilization_percentage == Decimal("50.10")
    assert report.is_over_budget is False


# ---------------------------------------------------------------------------
# Update and delete
# ---------------------------------------------------------------------------


async def test_update_project_toggles_activity_code_requirement(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    assert project.settings.require_activity_code is False

    updated = await project_service.update_project(
        store,
        admin,
        project.id,
        ProjectPatch(settings=ProjectSettings(require_activity_code=True), description="Marketing site"),
        expected_version=1,
    )
    assert updated.settings.require_activity_code is True
    assert updated.description == "Marketing site"
    assert updated.code == "WEB"
    assert updated.version == 2
    assert updated.updated_by == admin.user_id

    audit = await list_audit_entries(store, admin.tenant_id, project.id)
    assert [entry.action for entry in audit] == [AuditAction.CREATE, AuditAction.UPDATE]


async def test_update_project_rechecks_dates(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin, start_date=date(2024, 1, 1))
    with pytest.raises(ValidationError, match="End date must be after start date"):
        await project_service.update_project(store, admin, project.id, ProjectPatch(end_date=date(2023, 12, 1)))
    stored = await project_service.get_project(store, admin.tenant_id, project.id)
    assert stored.end_date is None
    assert stored.version == 1


async def test_update_project_negative_rate_rejected(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    with pytest.raises(ValidationError, match="Hourly rate cannot be negative"):
        await project_service.update_project(
            store, admin, project.id, ProjectPatch(default_hourly_rate=Decimal("-1"))
        )


async def test_update_project_empty_patch_is_noop(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    unchanged = await project_service.update_project(store, admin, project.id, ProjectPatch())
    assert unchanged == project


async def test_update_project_stale_version(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    await project_service.update_project(store, admin, project.id, ProjectPatch(name="Portal"))
    with pytest.raises(StaleWriteError):
        await project_service.update_project(
            store, admin, project.id, ProjectPatch(name="Lost"), expected_version=1
        )


async def test_delete_project_without_entries(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    await project_service.delete_project(store, admin, project.id, expected_version=1)

    with pytest.raises(NotFoundError):
        await project_service.get_project(store, admin.tenant_id, project.id)
    audit = await list_audit_entries(store, admin.tenant_id, project.id)
    assert audit[-1].action == AuditAction.DELETE
    assert audit[-1].before_json is not None


async def test_delete_project_with_entries_refused(store: Store, admin: AuthContext) -> None:
    project = await _create_project(store, admin)
    await store.time_entries.put(
        TimeEntry(
            tenant_id=admin.tenant_id,
            employee_id=uuid.uuid4(),
            project_id=project.id,
            date=date(2024, 1, 10),
            duration=30,
        )
    )
    with pytest.raises(InvariantViolation, match="time entries"):
        await project_service.delete_project(store, admin, project.id)
    assert await project_service.get_project(store, admin.tenant_id, project.id) == project

"""Unit tests for the domain value types and request payloads."""

from __future__ import annotations

import uuid
from datetime import date, time
from decimal import Decimal

import pydantic
import pytest

from timeledger.exceptions import ValidationError
from timeledger.schemas.activity_code import ActivityCode, ActivityCodeCreate, ActivityCodePatch, Hierarchy
from timeledger.schemas.project import Project, ProjectCreate
from timeledger.schemas.time_entry import TimeEntry, minutes_of
from timeledger.schemas.timesheet import Timesheet, TimesheetTotals

TENANT = uuid.uuid4()


# ---------------------------------------------------------------------------
# build / evolve
# ---------------------------------------------------------------------------


def test_build_wraps_pydantic_errors() -> None:
    with pytest.raises(ValidationError) as exc_info:
        ActivityCode.build(tenant_id=TENANT, code="dev", name="Development", category="engineering")
    assert exc_info.value.message.startswith("Activity code must contain only uppercase letters")
    assert exc_info.value.status_code == 422


def test_build_reports_field_location() -> None:
    with pytest.raises(ValidationError, match="^name: "):
        Project.build(tenant_id=TENANT, name="", code="WEB")


def test_documents_are_frozen() -> None:
    project = Project.build(tenant_id=TENANT, name="Website", code="WEB")
    with pytest.raises(pydantic.ValidationError):
        project.name = "Other"  # type: ignore[misc]


def test_evolve_revalidates() -> None:
    project = Project.build(tenant_id=TENANT, name="Website", code="WEB")
    renamed = project.evolve(name="Portal")
    assert renamed.name == "Portal"
    assert renamed.id == project.id
    assert project.name == "Website"

    with pytest.raises(ValidationError, match="Budget cannot be negative"):
        project.evolve(budget=Decimal("-1"))


def test_touched_stamps_actor() -> None:
    actor = uuid.uuid4()
    project = Project.build(tenant_id=TENANT, name="Website", code="WEB")
    touched = project.touched(actor, description="Marketing site")
    assert touched.updated_by == actor
    assert touched.updated_at is not None
    assert touched.description == "Marketing site"


def test_new_document_is_unstored() -> None:
    project = Project.build(tenant_id=TENANT, name="Website", code="WEB")
    assert project.version == 0


# ---------------------------------------------------------------------------
# Activity codes
# ---------------------------------------------------------------------------


def test_root_hierarchy_defaulted() -> None:
    code = ActivityCode.build(tenant_id=TENANT, code="DEV", name="Development", category="engineering")
    assert code.hierarchy == Hierarchy.root("DEV", "Development")
    assert code.is_child is False
    assert code.display_name == "DEV - Development"


def test_child_hierarchy() -> None:
    hierarchy = Hierarchy.child_of("DEV", "Development", "FE", "Frontend")
    assert hierarchy.level == 1
    assert hierarchy.path == "DEV/FE"
    assert hierarchy.full_name == "Development > Frontend"


def test_hierarchy_level_bounded() -> None:
    with pytest.raises(pydantic.ValidationError, match="level must be 0 or 1"):
        Hierarchy(level=2, path="A/B/C", full_name="A > B > C")


def test_child_requires_level_one() -> None:
    with pytest.raises(ValidationError, match="must have hierarchy level 1"):
        ActivityCode.build(
            tenant_id=TENANT,
            code="FE",
            name="Frontend",
            category="engineering",
            parent_id=uuid.uuid4(),
        )


def test_non_billable_code_cannot_have_rate() -> None:
    with pytest.raises(ValidationError, match="Non-billable activity codes cannot have a default rate"):
        ActivityCode.build(
            tenant_id=TENANT,
            code="ADMIN",
            name="Admin",
            category="overhead",
            billable=False,
            default_rate=Decimal("10"),
        )


def test_code_length_limit() -> None:
    with pytest.raises(ValidationError, match="code"):
        ActivityCode.build(tenant_id=TENANT, code="X" * 21, name="Long", category="misc")


def test_create_payload_normalizes() -> None:
    payload = ActivityCodeCreate(code="  dev-1 ", name=" Development ", category=" engineering ")
    assert payload.code == "DEV-1"
    assert payload.name == "Development"
    assert payload.category == "engineering"


def test_patch_tracks_explicit_fields() -> None:
    patch = ActivityCodePatch(default_rate=None, name="Dev")
    assert patch.model_dump(exclude_unset=True) == {"default_rate": None, "name": "Dev"}


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def test_project_create_upper_cases_code() -> None:
    assert ProjectCreate(name="Website", code=" web ").code == "WEB"


def test_project_rejects_negative_rate() -> None:
    with pytest.raises(ValidationError, match="Hourly rate cannot be negative"):
        Project.build(tenant_id=TENANT, name="Website", code="WEB", default_hourly_rate=Decimal("-1"))


# ---------------------------------------------------------------------------
# Time entries and timesheets
# ---------------------------------------------------------------------------


def test_minutes_of() -> None:
    assert minutes_of(time(0, 0)) == 0
    assert minutes_of(time(13, 45)) == 825


def test_time_entry_range() -> None:
    entry = TimeEntry.build(
        tenant_id=TENANT,
        employee_id=uuid.uuid4(),
        date=date(2024, 1, 10),
        start_time=time(9, 0),
        end_time=time(10, 30),
        duration=90,
    )
    assert entry.has_time_range
    assert entry.range_minutes == 90
    assert entry.overlaps(time(10, 0), time(11, 0))
    assert not entry.overlaps(time(10, 30), time(11, 0))
    assert not entry.overlaps(time(8, 0), time(9, 0))


def test_time_entry_without_range() -> None:
    entry = TimeEntry.build(tenant_id=TENANT, employee_id=uuid.uuid4(), date=date(2024, 1, 10), duration=30)
    assert not entry.has_time_range
    assert entry.range_minutes is None


@pytest.mark.parametrize(
    ("start", "end", "message"),
    [
        (time(9, 0), None, "must be provided together"),
        (time(10, 0), time(9, 0), "End time must be after start time"),
        (time(10, 0), time(10, 0), "End time must be after start time"),
    ],
)
def test_time_entry_range_validation(start: time, end: time | None, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        TimeEntry.build(
            tenant_id=TENANT,
            employee_id=uuid.uuid4(),
            date=date(2024, 1, 10),
            start_time=start,
            end_time=end,
            duration=60,
        )


def test_timesheet_contains_is_inclusive() -> None:
    timesheet = Timesheet.build(
        tenant_id=TENANT,
        employee_id=uuid.uuid4(),
        period_start=date(2024, 1, 8),
        period_end=date(2024, 1, 14),
    )
    assert timesheet.contains(date(2024, 1, 8))
    assert timesheet.contains(date(2024, 1, 14))
    assert not timesheet.contains(date(2024, 1, 15))


def test_totals_hours() -> None:
    totals = TimesheetTotals(total_minutes=90, billable_minutes=60, total_cost=Decimal("0"), entry_count=2)
    assert totals.total_hours == Decimal("1.5")

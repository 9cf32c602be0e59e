# ruff: noqa: TC003
from __future__ import annotations

import datetime as dt
import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from timeledger.config import get_settings
from timeledger.exceptions import ImmutabilityError, NotFoundError, ValidationError
from timeledger.models.enums import AuditAction, EntityKind, WarningType
from timeledger.schemas.time_entry import (
    ConflictReport,
    ConflictSummary,
    ConflictWarning,
    EntryConflict,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryResult,
    minutes_of,
)
from timeledger.services.audit import document_to_audit_dict, write_audit_log
from timeledger.services.repository import check_expected_version
from timeledger.services.state_machine import TimesheetStateMachine

if TYPE_CHECKING:
    from timeledger.schemas.activity_code import ActivityCode
    from timeledger.schemas.auth import AuthContext
    from timeledger.schemas.project import Project
    from timeledger.schemas.time_entry import TimeEntryPatch
    from timeledger.schemas.timesheet import Timesheet
    from timeledger.services.repository import Store

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------


def resolve_duration(
    start_time: dt.time | None,
    end_time: dt.time | None,
    duration: int | None,
    tolerance: int | None = None,
) -> int:
    """Return the entry duration in minutes.

    With a time range the duration is derived from it, or, when given, must agree
    with it within ``tolerance`` minutes.
    """
    if (start_time is None) != (end_time is None):
        raise ValidationError("Start time and end time must be provided together")
    if start_time is not None and end_time is not None:
        if end_time <= start_time:
            raise ValidationError("End time must be after start time")
        span = minutes_of(end_time) - minutes_of(start_time)
        if duration is None:
            return span
        if tolerance is None:
            tolerance = get_settings().duration_tolerance_minutes
        if abs(duration - span) > tolerance:
            raise ValidationError("Duration does not match start and end times")
    if duration is None:
        raise ValidationError("Either duration or start and end times are required")
    if duration < 0:
        raise ValidationError("Duration cannot be negative")
    return duration


def compute_total_cost(duration: int, billable: bool, hourly_rate: Decimal | None) -> Decimal:
    """Hours times rate for billable entries, rounded to cents; 0 otherwise."""
    if not billable or hourly_rate is None:
        return Decimal("0")
    return (Decimal(duration) / 60 * hourly_rate).quantize(_CENT, rounding=ROUND_HALF_UP)


def week_of(day: dt.date) -> tuple[dt.date, dt.date]:
    """Monday to Sunday week containing ``day``."""
    start = day - dt.timedelta(days=day.weekday())
    return start, start + dt.timedelta(days=6)


def _weekly_warnings(weekly_total: int, new_duration: int) -> list[ConflictWarning]:
    settings = get_settings()
    projected = weekly_total + new_duration
    if projected > settings.weekly_limit_minutes:
        warning_type = WarningType.WEEKLY_LIMIT_EXCEEDED
        message = f"Weekly time would exceed the {settings.weekly_limit_minutes // 60} hour limit"
    elif projected > settings.weekly_overtime_minutes:
        warning_type = WarningType.WEEKLY_OVERTIME
        message = f"Weekly time would exceed {settings.weekly_overtime_minutes // 60} hours and count as overtime"
    else:
        return []
    return [
        ConflictWarning(
            type=warning_type,
            message=message,
            current_total=weekly_total,
            new_duration=new_duration,
            projected_total=projected,
        )
    ]


def find_conflicts(
    existing: list[TimeEntry],
    start_time: dt.time | None,
    end_time: dt.time | None,
    new_duration: int,
    weekly_total: int | None = None,
) -> ConflictReport:
    """Scan one employee-day for overlaps with ``[start_time, end_time)`` and daily-limit warnings.

    ``weekly_total`` is the employee's other time in the same Monday to Sunday week.
    It is passed only when the project does not allow overtime.
    """
    settings = get_settings()
    conflicts: list[EntryConflict] = []
    if start_time is not None and end_time is not None:
        conflicts = [
            EntryConflict(
                entry_id=entry.id,
                date=entry.date,
                start_time=entry.start_time,
                end_time=entry.end_time,
                duration=entry.duration,
                description=entry.description,
                project_id=entry.project_id,
            )
            for entry in existing
            if entry.overlaps(start_time, end_time)
        ]

    current_total = sum(entry.duration for entry in existing)
    projected_total = current_total + new_duration

    warnings: list[ConflictWarning] = []
    if projected_total > settings.max_daily_minutes:
        warnings.append(
            ConflictWarning(
                type=WarningType.DAILY_LIMIT_EXCEEDED,
                message=f"Total daily time would exceed {settings.max_daily_minutes // 60} hours",
                current_total=current_total,
                new_duration=new_duration,
                projected_total=projected_total,
            )
        )
    if new_duration > settings.long_entry_minutes:
        warnings.append(
            ConflictWarning(
                type=WarningType.LONG_DURATION,
                message=f"Time entry duration exceeds {settings.long_entry_minutes // 60} hours",
                duration=new_duration,
            )
        )
    if weekly_total is not None:
        warnings.extend(_weekly_warnings(weekly_total, new_duration))

    return ConflictReport(
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
        warnings=warnings,
        summary=ConflictSummary(
            conflict_count=len(conflicts),
            warning_count=len(warnings),
            current_daily_total=current_total,
            new_entry_duration=new_duration,
            projected_daily_total=projected_total,
        ),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


async def _load_activity_code(store: Store, tenant_id: uuid.UUID, activity_code_id: uuid.UUID) -> ActivityCode:
    code = await store.activity_codes.get(tenant_id, activity_code_id)
    if code is None:
        raise NotFoundError("Activity code not found")
    if not code.is_active:
        raise ValidationError(f"Activity code {code.code} is not active")
    return code


async def _load_project(store: Store, tenant_id: uuid.UUID, project_id: uuid.UUID) -> Project:
    project = await store.projects.get(tenant_id, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


async def validate_entry(store: Store, entry: TimeEntry) -> None:
    """Referential and access checks for an entry whose fields are already valid.

    Raises NotFoundError, ValidationError or AccessDenied. Scheduling conflicts are not checked here.
    """
    if entry.activity_code_id is not None:
        await _load_activity_code(store, entry.tenant_id, entry.activity_code_id)

    project = await _load_project(store, entry.tenant_id, entry.project_id) if entry.project_id is not None else None
    if not entry.billable:
        return
    if project is None:
        raise ValidationError("Billable time entries require a project")
    project.validate_employee_access(entry.employee_id)
    project.validate_activity_code_access(entry.activity_code_id)


async def _ensure_timesheet_accepts(store: Store, entry: TimeEntry) -> Timesheet | None:
    """The owning timesheet, if any, must belong to the employee, cover the date and be editable."""
    if entry.timesheet_id is None:
        return None
    timesheet = await store.timesheets.get(entry.tenant_id, entry.timesheet_id)
    if timesheet is None:
        raise NotFoundError("Timesheet not found")
    if not TimesheetStateMachine.can_modify_entries(timesheet.status):
        raise ImmutabilityError(f"Cannot modify time entries of a {timesheet.status} timesheet")
    if timesheet.employee_id != entry.employee_id:
        raise ValidationError("Time entry employee does not match the timesheet employee")
    if not timesheet.contains(entry.date):
        raise ValidationError("Time entry date is outside the timesheet period")
    return timesheet


async def _ensure_owner_editable(store: Store, entry: TimeEntry) -> None:
    """An entry attached to an approved or locked timesheet cannot change."""
    if entry.timesheet_id is None:
        return
    timesheet = await store.timesheets.get(entry.tenant_id, entry.timesheet_id)
    if timesheet is not None and not TimesheetStateMachine.can_modify_entries(timesheet.status):
        raise ImmutabilityError(f"Cannot modify time entries of a {timesheet.status} timesheet")


async def detect_conflicts(
    store: Store,
    tenant_id: uuid.UUID,
    employee_id: uuid.UUID,
    date: dt.date,
    start_time: dt.time | None,
    end_time: dt.time | None,
    exclude_entry_id: uuid.UUID | None = None,
    duration: int | None = None,
    project_id: uuid.UUID | None = None,
) -> ConflictReport:
    """Report overlaps with the employee's stored entries on ``date``. Advisory only.

    When ``project_id`` names a project that does not allow overtime, the employee's
    week is checked against the weekly thresholds as well. The result reflects the
    entries stored at the moment of the read.
    """
    if (start_time is None) != (end_time is None):
        raise ValidationError("Start time and end time must be provided together")
    if start_time is not None and end_time is not None and end_time <= start_time:
        raise ValidationError("End time must be after start time")

    employee_entries = await store.time_entries.query_by_tenant_and_field(tenant_id, "employee_id", employee_id)
    existing = [e for e in employee_entries if e.date == date and e.id != exclude_entry_id]
    if duration is None:
        duration = 0
        if start_time is not None and end_time is not None:
            duration = minutes_of(end_time) - minutes_of(start_time)

    weekly_total = None
    project = await store.projects.get(tenant_id, project_id) if project_id is not None else None
    if project is not None and not project.settings.allow_overtime:
        week_start, week_end = week_of(date)
        weekly_total = sum(
            e.duration for e in employee_entries if week_start <= e.date <= week_end and e.id != exclude_entry_id
        )
    return find_conflicts(existing, start_time, end_time, duration, weekly_total)


# ---------------------------------------------------------------------------
# Entry operations
# ---------------------------------------------------------------------------


async def _default_rate(store: Store, tenant_id: uuid.UUID, data: dict[str, Any]) -> Decimal | None:
    """Entry rate, else the activity code's default rate, else the project's hourly rate."""
    if data.get("hourly_rate") is not None or not data.get("billable"):
        return data.get("hourly_rate")
    if data.get("activity_code_id") is not None:
        code = await store.activity_codes.get(tenant_id, data["activity_code_id"])
        if code is not None and code.default_rate is not None:
            return code.default_rate
    if data.get("project_id") is not None:
        project = await store.projects.get(tenant_id, data["project_id"])
        if project is not None:
            return project.default_hourly_rate
    return None


async def prepare_time_entry(store: Store, tenant_id: uuid.UUID, payload: TimeEntryCreate) -> TimeEntry:
    """Build and check an entry without storing it: field validation, then access checks."""
    data = payload.model_dump()
    data["duration"] = resolve_duration(payload.start_time, payload.end_time, payload.duration)
    data["hourly_rate"] = await _default_rate(store, tenant_id, data)
    data["total_cost"] = compute_total_cost(data["duration"], payload.billable, data["hourly_rate"])
    entry = TimeEntry.build(tenant_id=tenant_id, **data)

    await validate_entry(store, entry)
    return entry


async def create_time_entry(store: Store, auth: AuthContext, payload: TimeEntryCreate) -> TimeEntryResult:
    """Validate, access-check, conflict-scan and store a new entry.

    Order: field validation, access checks, owning timesheet mutability, conflict scan, write.
    """
    entry = await prepare_time_entry(store, auth.tenant_id, payload)
    await _ensure_timesheet_accepts(store, entry)
    report = await detect_conflicts(
        store,
        auth.tenant_id,
        entry.employee_id,
        entry.date,
        entry.start_time,
        entry.end_time,
        duration=entry.duration,
        project_id=entry.project_id,
    )

    saved = await store.time_entries.put(entry)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.TIME_ENTRY,
        entity_id=saved.id,
        action=AuditAction.CREATE,
        after_json=document_to_audit_dict(saved),
    )
    if report.has_conflicts:
        logger.info("Time entry %s stored with %d overlapping entries", saved.id, len(report.conflicts))
    return TimeEntryResult(entry=saved, conflicts=report)


async def duplicate_time_entry(
    store: Store,
    auth: AuthContext,
    entry_id: uuid.UUID,
    date: dt.date | None = None,
    timesheet_id: uuid.UUID | None = None,
) -> TimeEntryResult:
    """Copy an entry, optionally to another date or timesheet, as a new entry.

    The copy goes through every check ``create_time_entry`` runs.
    """
    source = await get_time_entry(store, auth.tenant_id, entry_id)
    payload = TimeEntryCreate(
        employee_id=source.employee_id,
        date=date or source.date,
        project_id=source.project_id,
        activity_code_id=source.activity_code_id,
        timesheet_id=timesheet_id or source.timesheet_id,
        start_time=source.start_time,
        end_time=source.end_time,
        duration=source.duration,
        billable=source.billable,
        hourly_rate=source.hourly_rate,
        description=source.description,
    )
    result = await create_time_entry(store, auth, payload)
    logger.info("Duplicated time entry %s as %s", source.id, result.entry.id)
    return result


async def get_time_entry(store: Store, tenant_id: uuid.UUID, entry_id: uuid.UUID) -> TimeEntry:
    """Fetch a single time entry."""
    entry = await store.time_entries.get(tenant_id, entry_id)
    if entry is None:
        raise NotFoundError("Time entry not found")
    return entry


async def list_time_entries(
    store: Store,
    tenant_id: uuid.UUID,
    *,
    employee_id: uuid.UUID | None = None,
    project_id: uuid.UUID | None = None,
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
) -> list[TimeEntry]:
    """List entries ordered by date and start time."""
    if employee_id is not None:
        entries = await store.time_entries.query_by_tenant_and_field(tenant_id, "employee_id", employee_id)
    else:
        entries = await store.time_entries.list_by_tenant(tenant_id)
    if project_id is not None:
        entries = [e for e in entries if e.project_id == project_id]
    if start_date is not None:
        entries = [e for e in entries if e.date >= start_date]
    if end_date is not None:
        entries = [e for e in entries if e.date <= end_date]
    return sorted(entries, key=lambda e: (e.date, e.start_time or dt.time.min))


async def update_time_entry(
    store: Store,
    auth: AuthContext,
    entry_id: uuid.UUID,
    patch: TimeEntryPatch,
    expected_version: int | None = None,
) -> TimeEntryResult:
    """Apply a partial update, re-running every check a new entry goes through."""
    current = await get_time_entry(store, auth.tenant_id, entry_id)
    check_expected_version(current, "time_entry", expected_version)
    await _ensure_owner_editable(store, current)

    changes = patch.model_dump(exclude_unset=True)
    merged = {**current.model_dump(), **changes}
    if {"start_time", "end_time", "duration"} & changes.keys():
        requested = changes.get("duration")
        if requested is None and merged["start_time"] is None:
            requested = current.duration
        merged["duration"] = resolve_duration(merged["start_time"], merged["end_time"], requested)
    if changes.keys() & {"billable", "activity_code_id", "project_id"} and "hourly_rate" not in changes:
        merged["hourly_rate"] = await _default_rate(store, auth.tenant_id, {**merged, "hourly_rate": None})
    merged["total_cost"] = compute_total_cost(merged["duration"], merged["billable"], merged["hourly_rate"])

    fields = {key: merged[key] for key in (*changes.keys(), "duration", "hourly_rate", "total_cost")}
    updated = current.touched(auth.user_id, **fields)
    await validate_entry(store, updated)
    await _ensure_timesheet_accepts(store, updated)
    report = await detect_conflicts(
        store,
        auth.tenant_id,
        updated.employee_id,
        updated.date,
        updated.start_time,
        updated.end_time,
        exclude_entry_id=updated.id,
        duration=updated.duration,
        project_id=updated.project_id,
    )

    saved = await store.time_entries.put(updated, expected_version=current.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.TIME_ENTRY,
        entity_id=saved.id,
        action=AuditAction.UPDATE,
        before_json=document_to_audit_dict(current),
        after_json=document_to_audit_dict(saved),
    )
    return TimeEntryResult(entry=saved, conflicts=report)


async def delete_time_entry(
    store: Store,
    auth: AuthContext,
    entry_id: uuid.UUID,
    expected_version: int | None = None,
) -> None:
    """Remove an entry unless its timesheet is approved or locked."""
    current = await get_time_entry(store, auth.tenant_id, entry_id)
    check_expected_version(current, "time_entry", expected_version)
    await _ensure_owner_editable(store, current)

    await store.time_entries.delete(auth.tenant_id, current.id, expected_version=current.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.TIME_ENTRY,
        entity_id=current.id,
        action=AuditAction.DELETE,
        before_json=document_to_audit_dict(current),
    )

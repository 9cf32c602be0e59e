# ruff: noqa: TC003
from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from timeledger.exceptions import (
    AccessDenied,
    AppError,
    ImmutabilityError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from timeledger.models.base import _now_utc
from timeledger.models.enums import AuditAction, EntityKind, TimesheetStatus
from timeledger.schemas.timesheet import BulkImportFailure, BulkImportResult, Timesheet, TimesheetTotals
from timeledger.services import time_entry as time_entry_service
from timeledger.services.audit import document_to_audit_dict, write_audit_log
from timeledger.services.repository import check_expected_version
from timeledger.services.state_machine import TimesheetStateMachine

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from timeledger.schemas.auth import AuthContext
    from timeledger.schemas.time_entry import TimeEntry, TimeEntryCreate, TimeEntryResult
    from timeledger.schemas.timesheet import TimesheetCreate
    from timeledger.services.repository import Store

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Periods and totals
# ---------------------------------------------------------------------------


def weekly_period(day: date) -> tuple[date, date]:
    """Monday to Sunday week containing ``day``."""
    return time_entry_service.week_of(day)


def monthly_period(year: int, month: int) -> tuple[date, date]:
    """First to last day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def totals_for(entries: Iterable[TimeEntry]) -> TimesheetTotals:
    """Pure aggregate of a set of entries; independent of their order."""
    total_minutes = 0
    billable_minutes = 0
    total_cost = Decimal("0")
    entry_count = 0
    for entry in entries:
        entry_count += 1
        total_minutes += entry.duration
        total_cost += entry.total_cost
        if entry.billable:
            billable_minutes += entry.duration
    return TimesheetTotals(
        total_minutes=total_minutes,
        billable_minutes=billable_minutes,
        total_cost=total_cost,
        entry_count=entry_count,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _save(
    store: Store,
    auth: AuthContext,
    before: Timesheet,
    after: Timesheet,
    action: AuditAction,
) -> Timesheet:
    saved = await store.timesheets.put(after, expected_version=before.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.TIMESHEET,
        entity_id=saved.id,
        action=action,
        before_json=document_to_audit_dict(before),
        after_json=document_to_audit_dict(saved),
    )
    return saved


async def _transition(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    to_status: TimesheetStatus,
    action: AuditAction,
    expected_version: int | None,
    **changes: Any,
) -> Timesheet:
    current = await get_timesheet(store, auth.tenant_id, timesheet_id)
    check_expected_version(current, "timesheet", expected_version)
    TimesheetStateMachine.validate_transition(current.status, to_status)

    updated = current.touched(auth.user_id, status=to_status, **changes)
    saved = await _save(store, auth, current, updated, action)
    logger.info("Timesheet %s moved from %s to %s by %s", saved.id, current.status, to_status, auth.user_id)
    return saved


# ---------------------------------------------------------------------------
# Timesheet CRUD
# ---------------------------------------------------------------------------


async def create_timesheet(store: Store, auth: AuthContext, payload: TimesheetCreate) -> Timesheet:
    """Open a draft timesheet. Periods of one employee never overlap."""
    timesheet = Timesheet.build(tenant_id=auth.tenant_id, **payload.model_dump())

    existing = await store.timesheets.query_by_tenant_and_field(auth.tenant_id, "employee_id", payload.employee_id)
    for other in existing:
        if other.period_start <= timesheet.period_end and other.period_end >= timesheet.period_start:
            raise InvariantViolation("Timesheet period overlaps an existing timesheet for this employee")

    saved = await store.timesheets.put(timesheet)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.TIMESHEET,
        entity_id=saved.id,
        action=AuditAction.CREATE,
        after_json=document_to_audit_dict(saved),
    )
    return saved


async def delete_timesheet(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    expected_version: int | None = None,
) -> None:
    """Remove a draft timesheet that holds no time entries."""
    current = await get_timesheet(store, auth.tenant_id, timesheet_id)
    check_expected_version(current, "timesheet", expected_version)
    if current.status != TimesheetStatus.DRAFT:
        raise ImmutabilityError(f"Only draft timesheets can be deleted, this one is {current.status}")
    if await store.time_entries.query_by_tenant_and_field(auth.tenant_id, "timesheet_id", current.id):
        raise InvariantViolation("Cannot delete a timesheet with time entries")

    await store.timesheets.delete(auth.tenant_id, current.id, expected_version=current.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.TIMESHEET,
        entity_id=current.id,
        action=AuditAction.DELETE,
        before_json=document_to_audit_dict(current),
    )
    logger.info("Deleted draft timesheet %s of employee %s", current.id, current.employee_id)


async def get_timesheet(store: Store, tenant_id: uuid.UUID, timesheet_id: uuid.UUID) -> Timesheet:
    """Fetch a single timesheet."""
    timesheet = await store.timesheets.get(tenant_id, timesheet_id)
    if timesheet is None:
        raise NotFoundError("Timesheet not found")
    return timesheet


async def list_timesheets(
    store: Store,
    tenant_id: uuid.UUID,
    *,
    employee_id: uuid.UUID | None = None,
    status: TimesheetStatus | None = None,
) -> list[Timesheet]:
    """List timesheets, most recent period first."""
    if employee_id is not None:
        timesheets = await store.timesheets.query_by_tenant_and_field(tenant_id, "employee_id", employee_id)
    else:
        timesheets = await store.timesheets.list_by_tenant(tenant_id)
    if status is not None:
        timesheets = [t for t in timesheets if t.status == status]
    return sorted(timesheets, key=lambda t: t.period_start, reverse=True)


async def calculate_totals(store: Store, tenant_id: uuid.UUID, timesheet_id: uuid.UUID) -> TimesheetTotals:
    """Totals over the entries stored for the timesheet at the moment of the read."""
    await get_timesheet(store, tenant_id, timesheet_id)
    entries = await store.time_entries.query_by_tenant_and_field(tenant_id, "timesheet_id", timesheet_id)
    return totals_for(entries)


async def recalculate_totals(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    expected_version: int | None = None,
) -> Timesheet:
    """Recompute totals and store them on the timesheet."""
    current = await get_timesheet(store, auth.tenant_id, timesheet_id)
    check_expected_version(current, "timesheet", expected_version)
    totals = await calculate_totals(store, auth.tenant_id, timesheet_id)
    if totals == current.totals:
        return current
    return await _save(store, auth, current, current.touched(auth.user_id, totals=totals), AuditAction.UPDATE)


# ---------------------------------------------------------------------------
# Workflow transitions
# ---------------------------------------------------------------------------


async def submit(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    expected_version: int | None = None,
) -> Timesheet:
    """draft → submitted. The timesheet must have at least one entry."""
    current = await get_timesheet(store, auth.tenant_id, timesheet_id)
    TimesheetStateMachine.validate_transition(current.status, TimesheetStatus.SUBMITTED)
    totals = await calculate_totals(store, auth.tenant_id, timesheet_id)
    if totals.entry_count == 0:
        raise ValidationError("Cannot submit a timesheet without time entries")
    return await _transition(
        store,
        auth,
        timesheet_id,
        TimesheetStatus.SUBMITTED,
        AuditAction.SUBMIT,
        expected_version,
        totals=totals,
        submitted_at=_now_utc(),
    )


async def approve(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    expected_version: int | None = None,
) -> Timesheet:
    """submitted → approved."""
    return await _transition(
        store,
        auth,
        timesheet_id,
        TimesheetStatus.APPROVED,
        AuditAction.APPROVE,
        expected_version,
        approved_at=_now_utc(),
        approved_by=auth.user_id,
        rejection_reason=None,
    )


async def reject(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    reason: str,
    expected_version: int | None = None,
) -> Timesheet:
    """submitted → rejected, with a non-blank reason."""
    if not reason.strip():
        raise ValidationError("Rejection reason is required")
    return await _transition(
        store,
        auth,
        timesheet_id,
        TimesheetStatus.REJECTED,
        AuditAction.REJECT,
        expected_version,
        rejection_reason=reason.strip(),
        approved_at=None,
        approved_by=None,
    )


async def lock(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    expected_version: int | None = None,
) -> Timesheet:
    """approved → locked. Entries become immutable."""
    return await _transition(store, auth, timesheet_id, TimesheetStatus.LOCKED, AuditAction.LOCK, expected_version)


async def unlock(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    expected_version: int | None = None,
) -> Timesheet:
    """locked → approved. Administrators only."""
    if not auth.is_admin:
        raise AccessDenied("Only administrators can unlock a timesheet")
    return await _transition(
        store, auth, timesheet_id, TimesheetStatus.APPROVED, AuditAction.UNLOCK, expected_version
    )


async def return_to_draft(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    expected_version: int | None = None,
) -> Timesheet:
    """rejected → draft, editable again."""
    return await _transition(
        store,
        auth,
        timesheet_id,
        TimesheetStatus.DRAFT,
        AuditAction.RETURN_TO_DRAFT,
        expected_version,
        submitted_at=None,
        rejection_reason=None,
    )


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


async def add_time_entry(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    payload: TimeEntryCreate,
) -> TimeEntryResult:
    """Create an entry attached to the timesheet.

    The entry goes through the time entry checks first; an approved or locked
    timesheet then refuses it with ImmutabilityError and nothing is stored.
    """
    await get_timesheet(store, auth.tenant_id, timesheet_id)
    return await time_entry_service.create_time_entry(
        store, auth, payload.model_copy(update={"timesheet_id": timesheet_id})
    )


async def remove_time_entry(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    entry_id: uuid.UUID,
) -> None:
    """Delete an entry of the timesheet while the timesheet is editable."""
    entry = await time_entry_service.get_time_entry(store, auth.tenant_id, entry_id)
    if entry.timesheet_id != timesheet_id:
        raise NotFoundError("Time entry not found in this timesheet")
    await time_entry_service.delete_time_entry(store, auth, entry_id)


async def bulk_import(
    store: Store,
    auth: AuthContext,
    timesheet_id: uuid.UUID,
    entries: Sequence[TimeEntryCreate],
) -> BulkImportResult:
    """Import entries one by one. Each stored entry is its own write; failures do not stop the import."""
    await get_timesheet(store, auth.tenant_id, timesheet_id)
    result = BulkImportResult()
    for index, payload in enumerate(entries):
        try:
            created = await add_time_entry(store, auth, timesheet_id, payload)
        except AppError as exc:
            logger.warning("Bulk import into timesheet %s rejected entry %d: %s", timesheet_id, index, exc.message)
            result.failed.append(BulkImportFailure(index=index, error=exc.message))
        else:
            result.imported.append(created.entry)

    result.totals = await calculate_totals(store, auth.tenant_id, timesheet_id)
    logger.info(
        "Bulk import into timesheet %s: %d imported, %d failed",
        timesheet_id,
        len(result.imported),
        len(result.failed),
    )
    return result

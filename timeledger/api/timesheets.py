# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from timeledger.api.deps import AdminDep, AuthDep, StoreDep, validate_tenant_scope
from timeledger.models.enums import TimesheetStatus
from timeledger.schemas.time_entry import TimeEntryCreate, TimeEntryResult
from timeledger.schemas.timesheet import (
    BulkImportPayload,
    BulkImportResult,
    RejectPayload,
    Timesheet,
    TimesheetCreate,
    TimesheetTotals,
)
from timeledger.services import timesheet as timesheet_service

router = APIRouter(
    prefix="/tenants/{tenant_id}/timesheets",
    tags=["timesheets"],
    dependencies=[Depends(validate_tenant_scope)],
)


@router.post("", response_model=Timesheet, status_code=status.HTTP_201_CREATED)
async def create_timesheet(payload: TimesheetCreate, store: StoreDep, auth: AuthDep) -> Timesheet:
    """Open a draft timesheet."""
    return await timesheet_service.create_timesheet(store, auth, payload)


@router.get("", response_model=list[Timesheet])
async def list_timesheets(
    store: StoreDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    status_filter: TimesheetStatus | None = Query(default=None, alias="status"),
) -> list[Timesheet]:
    """List timesheets of the tenant."""
    return await timesheet_service.list_timesheets(store, auth.tenant_id, employee_id=employee_id, status=status_filter)


@router.get("/{timesheet_id}", response_model=Timesheet)
async def get_timesheet(timesheet_id: uuid.UUID, store: StoreDep, auth: AuthDep) -> Timesheet:
    """Get a single timesheet."""
    return await timesheet_service.get_timesheet(store, auth.tenant_id, timesheet_id)


@router.delete("/{timesheet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timesheet(
    timesheet_id: uuid.UUID,
    store: StoreDep,
    auth: AuthDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> None:
    """Delete an empty draft timesheet."""
    await timesheet_service.delete_timesheet(store, auth, timesheet_id, expected_version)


@router.get("/{timesheet_id}/totals", response_model=TimesheetTotals)
async def calculate_totals(timesheet_id: uuid.UUID, store: StoreDep, auth: AuthDep) -> TimesheetTotals:
    """Totals over the entries currently stored for the timesheet."""
    return await timesheet_service.calculate_totals(store, auth.tenant_id, timesheet_id)


@router.post("/{timesheet_id}/totals", response_model=Timesheet)
async def recalculate_totals(timesheet_id: uuid.UUID, store: StoreDep, auth: AuthDep) -> Timesheet:
    """Recompute and store the totals."""
    return await timesheet_service.recalculate_totals(store, auth, timesheet_id)


@router.post("/{timesheet_id}/submit", response_model=Timesheet)
async def submit(
    timesheet_id: uuid.UUID,
    store: StoreDep,
    auth: AuthDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Timesheet:
    """Submit a draft timesheet for approval."""
    return await timesheet_service.submit(store, auth, timesheet_id, expected_version)


@router.post("/{timesheet_id}/approve", response_model=Timesheet)
async def approve(
    timesheet_id: uuid.UUID,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Timesheet:
    """Approve a submitted timesheet."""
    return await timesheet_service.approve(store, auth, timesheet_id, expected_version)


@router.post("/{timesheet_id}/reject", response_model=Timesheet)
async def reject(
    timesheet_id: uuid.UUID,
    payload: RejectPayload,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Timesheet:
    """Reject a submitted timesheet with a reason."""
    return await timesheet_service.reject(store, auth, timesheet_id, payload.reason, expected_version)


@router.post("/{timesheet_id}/lock", response_model=Timesheet)
async def lock(
    timesheet_id: uuid.UUID,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Timesheet:
    """Lock an approved timesheet."""
    return await timesheet_service.lock(store, auth, timesheet_id, expected_version)


@router.post("/{timesheet_id}/unlock", response_model=Timesheet)
async def unlock(
    timesheet_id: uuid.UUID,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Timesheet:
    """Unlock a locked timesheet back to approved."""
    return await timesheet_service.unlock(store, auth, timesheet_id, expected_version)


@router.post("/{timesheet_id}/return-to-draft", response_model=Timesheet)
async def return_to_draft(
    timesheet_id: uuid.UUID,
    store: StoreDep,
    auth: AuthDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> Timesheet:
    """Reopen a rejected timesheet for editing."""
    return await timesheet_service.return_to_draft(store, auth, timesheet_id, expected_version)


@router.post("/{timesheet_id}/entries", response_model=TimeEntryResult, status_code=status.HTTP_201_CREATED)
async def add_time_entry(
    timesheet_id: uuid.UUID,
    payload: TimeEntryCreate,
    store: StoreDep,
    auth: AuthDep,
) -> TimeEntryResult:
    """Record time on the timesheet."""
    return await timesheet_service.add_time_entry(store, auth, timesheet_id, payload)


@router.delete("/{timesheet_id}/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_time_entry(
    timesheet_id: uuid.UUID,
    entry_id: uuid.UUID,
    store: StoreDep,
    auth: AuthDep,
) -> None:
    """Remove an entry from the timesheet."""
    await timesheet_service.remove_time_entry(store, auth, timesheet_id, entry_id)


@router.post("/{timesheet_id}/import", response_model=BulkImportResult)
async def bulk_import(
    timesheet_id: uuid.UUID,
    payload: BulkImportPayload,
    store: StoreDep,
    auth: AuthDep,
) -> BulkImportResult:
    """Import several entries; the response lists imported entries and per-entry failures."""
    return await timesheet_service.bulk_import(store, auth, timesheet_id, payload.entries)

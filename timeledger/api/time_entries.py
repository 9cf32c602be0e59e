# ruff: noqa: TC001, TC003
from __future__ import annotations

import datetime as dt
import uuid

from fastapi import APIRouter, Depends, Query, status

from timeledger.api.deps import AuthDep, StoreDep, validate_tenant_scope
from timeledger.schemas.time_entry import (
    ConflictReport,
    DuplicatePayload,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryPatch,
    TimeEntryResult,
)
from timeledger.services import time_entry as time_entry_service

router = APIRouter(
    prefix="/tenants/{tenant_id}/time-entries",
    tags=["time-entries"],
    dependencies=[Depends(validate_tenant_scope)],
)


@router.post("", response_model=TimeEntryResult, status_code=status.HTTP_201_CREATED)
async def create_time_entry(payload: TimeEntryCreate, store: StoreDep, auth: AuthDep) -> TimeEntryResult:
    """Record time. Overlaps are reported in the response, not rejected."""
    return await time_entry_service.create_time_entry(store, auth, payload)


@router.post("/validation", response_model=TimeEntry)
async def validate_time_entry(payload: TimeEntryCreate, store: StoreDep, auth: AuthDep) -> TimeEntry:
    """Run field and access checks without storing; returns the entry as it would be stored."""
    return await time_entry_service.prepare_time_entry(store, auth.tenant_id, payload)


@router.get("/conflicts", response_model=ConflictReport)
async def detect_conflicts(
    store: StoreDep,
    auth: AuthDep,
    employee_id: uuid.UUID = Query(),
    date: dt.date = Query(),
    start_time: dt.time | None = Query(default=None),
    end_time: dt.time | None = Query(default=None),
    exclude_entry_id: uuid.UUID | None = Query(default=None),
    project_id: uuid.UUID | None = Query(default=None),
) -> ConflictReport:
    """Scan the employee's day for overlaps with the given range, and the week when the project forbids overtime."""
    return await time_entry_service.detect_conflicts(
        store, auth.tenant_id, employee_id, date, start_time, end_time, exclude_entry_id, project_id=project_id
    )


@router.get("", response_model=list[TimeEntry])
async def list_time_entries(
    store: StoreDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    project_id: uuid.UUID | None = Query(default=None),
    start_date: dt.date | None = Query(default=None),
    end_date: dt.date | None = Query(default=None),
) -> list[TimeEntry]:
    """List time entries."""
    return await time_entry_service.list_time_entries(
        store,
        auth.tenant_id,
        employee_id=employee_id,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/{entry_id}", response_model=TimeEntry)
async def get_time_entry(entry_id: uuid.UUID, store: StoreDep, auth: AuthDep) -> TimeEntry:
    """Get a single time entry."""
    return await time_entry_service.get_time_entry(store, auth.tenant_id, entry_id)


@router.patch("/{entry_id}", response_model=TimeEntryResult)
async def update_time_entry(
    entry_id: uuid.UUID,
    payload: TimeEntryPatch,
    store: StoreDep,
    auth: AuthDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> TimeEntryResult:
    """Partially update a time entry."""
    return await time_entry_service.update_time_entry(store, auth, entry_id, payload, expected_version)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_entry(
    entry_id: uuid.UUID,
    store: StoreDep,
    auth: AuthDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> None:
    """Delete a time entry."""
    await time_entry_service.delete_time_entry(store, auth, entry_id, expected_version)


@router.post("/{entry_id}/duplicate", response_model=TimeEntryResult, status_code=status.HTTP_201_CREATED)
async def duplicate_time_entry(
    entry_id: uuid.UUID,
    payload: DuplicatePayload,
    store: StoreDep,
    auth: AuthDep,
) -> TimeEntryResult:
    """Copy an entry to another date or timesheet."""
    return await time_entry_service.duplicate_time_entry(
        store, auth, entry_id, date=payload.date, timesheet_id=payload.timesheet_id
    )

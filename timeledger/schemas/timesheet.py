# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

from timeledger.models.enums import TimesheetStatus
from timeledger.schemas.base import Document, DomainModel
from timeledger.schemas.time_entry import TimeEntry, TimeEntryCreate


class TimesheetTotals(DomainModel):
    """Aggregates derived from the entries attached to a timesheet."""

    total_minutes: int = 0
    billable_minutes: int = 0
    total_cost: Decimal = Decimal("0")
    entry_count: int = 0

    @property
    def total_hours(self) -> Decimal:
        return (Decimal(self.total_minutes) / 60).quantize(Decimal("0.01"))


class Timesheet(Document):
    """An employee's time for one period, moving through the approval workflow."""

    employee_id: uuid.UUID
    period_start: date
    period_end: date
    status: TimesheetStatus = TimesheetStatus.DRAFT
    totals: TimesheetTotals = Field(default_factory=TimesheetTotals)
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: uuid.UUID | None = None
    rejection_reason: str | None = None

    @model_validator(mode="after")
    def _validate_period(self) -> Self:
        if self.period_end <= self.period_start:
            msg = "Period end date must be after start date"
            raise ValueError(msg)
        return self

    def contains(self, day: date) -> bool:
        return self.period_start <= day <= self.period_end


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class TimesheetCreate(BaseModel):
    """Request body for opening a timesheet."""

    employee_id: uuid.UUID
    period_start: date
    period_end: date


class RejectPayload(BaseModel):
    """Reason given by the approver."""

    reason: str = Field(max_length=1000)


class BulkImportPayload(BaseModel):
    """Entries to import into a timesheet."""

    entries: list[TimeEntryCreate]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BulkImportFailure(BaseModel):
    """An entry of a bulk import that was not stored."""

    index: int
    error: str


class BulkImportResult(BaseModel):
    """Per-entry outcome of a bulk import."""

    imported: list[TimeEntry] = Field(default_factory=list)
    failed: list[BulkImportFailure] = Field(default_factory=list)
    totals: TimesheetTotals | None = None

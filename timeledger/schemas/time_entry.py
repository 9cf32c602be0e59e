# ruff: noqa: TC003
from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

from timeledger.models.enums import ConflictType, WarningType
from timeledger.schemas.base import Document


def minutes_of(value: dt.time) -> int:
    """Minutes since midnight for a wall-clock time."""
    return value.hour * 60 + value.minute


class TimeEntry(Document):
    """A single block of work recorded by an employee."""

    employee_id: uuid.UUID
    project_id: uuid.UUID | None = None
    activity_code_id: uuid.UUID | None = None
    timesheet_id: uuid.UUID | None = None
    date: dt.date
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    duration: int = 0
    billable: bool = True
    hourly_rate: Decimal | None = None
    total_cost: Decimal = Decimal("0")
    description: str = Field(default="", max_length=1000)

    @model_validator(mode="after")
    def _validate_entry(self) -> Self:
        if self.duration < 0:
            msg = "Duration cannot be negative"
            raise ValueError(msg)
        if self.hourly_rate is not None and self.hourly_rate < 0:
            msg = "Hourly rate cannot be negative"
            raise ValueError(msg)
        if self.total_cost < 0:
            msg = "Total cost cannot be negative"
            raise ValueError(msg)
        if (self.start_time is None) != (self.end_time is None):
            msg = "Start time and end time must be provided together"
            raise ValueError(msg)
        if self.start_time is not None and self.end_time is not None and self.end_time <= self.start_time:
            msg = "End time must be after start time"
            raise ValueError(msg)
        return self

    @property
    def has_time_range(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    @property
    def range_minutes(self) -> int | None:
        """Length of the start/end range, or None when the entry is duration-only."""
        if self.start_time is None or self.end_time is None:
            return None
        return minutes_of(self.end_time) - minutes_of(self.start_time)

    def overlaps(self, start: dt.time, end: dt.time) -> bool:
        """Half-open interval test: touching ranges do not overlap."""
        if self.start_time is None or self.end_time is None:
            return False
        return self.start_time < end and self.end_time > start


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class TimeEntryCreate(BaseModel):
    """Request body for recording time."""

    employee_id: uuid.UUID
    date: dt.date
    project_id: uuid.UUID | None = None
    activity_code_id: uuid.UUID | None = None
    timesheet_id: uuid.UUID | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    duration: int | None = None
    billable: bool = True
    hourly_rate: Decimal | None = None
    description: str = ""


class TimeEntryPatch(BaseModel):
    """Partial update. Only fields explicitly present are applied."""

    project_id: uuid.UUID | None = None
    activity_code_id: uuid.UUID | None = None
    date: dt.date | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    duration: int | None = None
    billable: bool | None = None
    hourly_rate: Decimal | None = None
    description: str | None = None


class DuplicatePayload(BaseModel):
    """Target of a copied entry; omitted fields keep the source entry's values."""

    date: dt.date | None = None
    timesheet_id: uuid.UUID | None = None


# ---------------------------------------------------------------------------
# Conflict report
# ---------------------------------------------------------------------------


class EntryConflict(BaseModel):
    """An existing entry whose time range overlaps the candidate."""

    conflict_type: ConflictType = ConflictType.TIME_OVERLAP
    entry_id: uuid.UUID
    date: dt.date
    start_time: dt.time | None
    end_time: dt.time | None
    duration: int
    description: str
    project_id: uuid.UUID | None


class ConflictWarning(BaseModel):
    """Advisory finding; never blocks a write."""

    type: WarningType
    message: str
    current_total: int | None = None
    new_duration: int | None = None
    projected_total: int | None = None
    duration: int | None = None


class ConflictSummary(BaseModel):
    """Daily totals seen by the scan."""

    conflict_count: int
    warning_count: int
    current_daily_total: int
    new_entry_duration: int
    projected_daily_total: int


class ConflictReport(BaseModel):
    """Outcome of a conflict scan for one candidate entry."""

    has_conflicts: bool
    conflicts: list[EntryConflict] = Field(default_factory=list)
    warnings: list[ConflictWarning] = Field(default_factory=list)
    summary: ConflictSummary


class TimeEntryResult(BaseModel):
    """A stored entry with the conflict scan that preceded the write."""

    entry: TimeEntry
    conflicts: ConflictReport

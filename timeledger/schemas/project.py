# ruff: noqa: TC001, TC003
from __future__ import annotations

import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from timeledger.exceptions import AccessDenied
from timeledger.models.enums import ProjectStatus
from timeledger.schemas.base import Document, DomainModel

_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")
_CENT = Decimal("0.01")

# Statuses in which a project takes new time entries.
ACCEPTING_STATUSES = frozenset({ProjectStatus.ACTIVE, ProjectStatus.ON_HOLD})


class ProjectSettings(DomainModel):
    """Per-project time entry rules."""

    require_activity_code: bool = False
    allow_overtime: bool = True
    auto_approve: bool = False


class Project(Document):
    """Project ledger: lifecycle, whitelists and budget."""

    client_id: uuid.UUID | None = None
    name: str = Field(min_length=1, max_length=200)
    code: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=1000)
    status: ProjectStatus = ProjectStatus.ACTIVE
    start_date: date | None = None
    end_date: date | None = None
    budget: Decimal | None = None
    default_hourly_rate: Decimal | None = None
    billable: bool = True
    assigned_employees: tuple[uuid.UUID, ...] = ()
    activity_codes: tuple[uuid.UUID, ...] = ()
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    completed_at: datetime | None = None

    @field_validator("code")
    @classmethod
    def _validate_code(cls, value: str) -> str:
        if not _CODE_PATTERN.match(value):
            msg = "Project code must contain only uppercase letters, numbers, hyphens, and underscores"
            raise ValueError(msg)
        return value

    @field_validator("assigned_employees", "activity_codes")
    @classmethod
    def _as_set(cls, value: tuple[uuid.UUID, ...]) -> tuple[uuid.UUID, ...]:
        # Set semantics with a stable order.
        return tuple(dict.fromkeys(value))

    @model_validator(mode="after")
    def _validate_ledger(self) -> Self:
        if self.budget is not None and self.budget < 0:
            msg = "Budget cannot be negative"
            raise ValueError(msg)
        if self.default_hourly_rate is not None and self.default_hourly_rate < 0:
            msg = "Hourly rate cannot be negative"
            raise ValueError(msg)
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            msg = "End date must be after start date"
            raise ValueError(msg)
        return self

    @property
    def can_accept_time_entries(self) -> bool:
        return self.status in ACCEPTING_STATUSES

    def is_employee_assigned(self, employee_id: uuid.UUID) -> bool:
        return employee_id in self.assigned_employees

    def has_activity_code(self, activity_code_id: uuid.UUID) -> bool:
        return activity_code_id in self.activity_codes

    def validate_employee_access(self, employee_id: uuid.UUID) -> None:
        """Raise AccessDenied unless the employee is assigned and the project takes entries."""
        if not self.is_employee_assigned(employee_id):
            raise AccessDenied("Employee does not have access to this project")
        if not self.can_accept_time_entries:
            raise AccessDenied("Project is not accepting time entries")

    def validate_activity_code_access(self, activity_code_id: uuid.UUID | None) -> None:
        """Raise AccessDenied when the project requires whitelisted codes and this one is not."""
        if not self.settings.require_activity_code:
            return
        if activity_code_id is None or not self.has_activity_code(activity_code_id):
            raise AccessDenied("Activity code is not allowed for this project")

    def budget_utilization(self, spent: Decimal) -> Decimal:
        """Percentage of the budget consumed; 0 when no budget is set."""
        if not self.budget:
            return Decimal("0")
        return (Decimal(spent) / self.budget * 100).quantize(_CENT)

    def remaining_budget(self, spent: Decimal) -> Decimal:
        if self.budget is None:
            return Decimal("0")
        return max(Decimal("0"), self.budget - Decimal(spent))

    def is_budget_exceeded(self, spent: Decimal) -> bool:
        if self.budget is None:
            return False
        return Decimal(spent) > self.budget


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    """Request body for creating a project."""

    name: str
    code: str
    client_id: uuid.UUID | None = None
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    budget: Decimal | None = None
    default_hourly_rate: Decimal | None = None
    billable: bool = True
    assigned_employees: list[uuid.UUID] = Field(default_factory=list)
    activity_codes: list[uuid.UUID] = Field(default_factory=list)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class ProjectPatch(BaseModel):
    """Partial update of the descriptive and billing fields.

    Status, whitelists and budget have their own endpoints. ``code`` is immutable.
    """

    name: str | None = None
    description: str | None = None
    client_id: uuid.UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    default_hourly_rate: Decimal | None = None
    billable: bool | None = None
    settings: ProjectSettings | None = None


class EmployeeIdsPayload(BaseModel):
    """Employees to assign or unassign."""

    employee_ids: list[uuid.UUID]


class ActivityCodeIdsPayload(BaseModel):
    """Full replacement of the allowed activity codes."""

    activity_code_ids: list[uuid.UUID]


class StatusChangePayload(BaseModel):
    """Requested project status."""

    status: ProjectStatus
    reason: str | None = Field(default=None, max_length=1000)


class BudgetPayload(BaseModel):
    """New budget; ``None`` clears it."""

    budget: Decimal | None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BudgetUtilization(BaseModel):
    """Budget projection for a given spend."""

    budget: Decimal | None
    spent: Decimal
    remaining: Decimal
    utilization_percentage: Decimal
    is_over_budget: bool

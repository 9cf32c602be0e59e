# ruff: noqa: TC003
from __future__ import annotations

import re
import uuid
from decimal import Decimal
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from timeledger.schemas.base import Document, DomainModel

_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]+$")


def normalize_code(value: str) -> str:
    """Codes are stored trimmed and upper-cased."""
    return value.strip().upper()


class Hierarchy(DomainModel):
    """Cached position of a code in the two-level tree."""

    level: int
    path: str = Field(min_length=1)
    full_name: str = Field(min_length=1)

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: int) -> int:
        if value not in (0, 1):
            msg = "Activity code hierarchy level must be 0 or 1"
            raise ValueError(msg)
        return value

    @classmethod
    def root(cls, code: str, name: str) -> Hierarchy:
        return cls(level=0, path=code, full_name=name)

    @classmethod
    def child_of(cls, parent_code: str, parent_name: str, code: str, name: str) -> Hierarchy:
        return cls(level=1, path=f"{parent_code}/{code}", full_name=f"{parent_name} > {name}")


class ActivityCode(Document):
    """A billable or non-billable work category, optionally nested under one parent."""

    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    category: str = Field(min_length=1, max_length=50)
    parent_id: uuid.UUID | None = None
    billable: bool = True
    default_rate: Decimal | None = None
    is_active: bool = True
    project_specific: bool = False
    hierarchy: Hierarchy

    @model_validator(mode="before")
    @classmethod
    def _default_hierarchy(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("hierarchy") is None and data.get("code") and data.get("name"):
            data = {**data, "hierarchy": {"level": 0, "path": data["code"], "full_name": data["name"]}}
        return data

    @field_validator("code")
    @classmethod
    def _validate_code(cls, value: str) -> str:
        if not _CODE_PATTERN.match(value):
            msg = "Activity code must contain only uppercase letters, numbers, hyphens, and underscores"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _validate_consistency(self) -> Self:
        if self.default_rate is not None:
            if self.default_rate < 0:
                msg = "Default rate cannot be negative"
                raise ValueError(msg)
            if not self.billable:
                msg = "Non-billable activity codes cannot have a default rate"
                raise ValueError(msg)
        if self.parent_id is not None:
            if self.parent_id == self.id:
                msg = "Activity code cannot be its own parent"
                raise ValueError(msg)
            if self.hierarchy.level != 1:
                msg = "Child activity code must have hierarchy level 1"
                raise ValueError(msg)
        elif self.hierarchy.level != 0:
            msg = "Parent activity code must have hierarchy level 0"
            raise ValueError(msg)
        return self

    @property
    def is_child(self) -> bool:
        return self.parent_id is not None

    @property
    def display_name(self) -> str:
        return f"{self.code} - {self.name}"


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class ActivityCodeCreate(BaseModel):
    """Request body for creating an activity code."""

    code: str
    name: str
    category: str
    description: str | None = None
    parent_id: uuid.UUID | None = None
    billable: bool = True
    default_rate: Decimal | None = None
    is_active: bool = True
    project_specific: bool = False

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        return normalize_code(value)

    @field_validator("name", "category")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class ActivityCodePatch(BaseModel):
    """Partial update. Only fields explicitly present are applied."""

    code: str | None = None
    name: str | None = None
    category: str | None = None
    description: str | None = None
    parent_id: uuid.UUID | None = None
    billable: bool | None = None
    default_rate: Decimal | None = None
    is_active: bool | None = None
    project_specific: bool | None = None

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str | None) -> str | None:
        return normalize_code(value) if value is not None else None


class SetParentPayload(BaseModel):
    """Request body for attaching a code under a parent."""

    parent_id: uuid.UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HierarchyIssue(BaseModel):
    """Problems found for one code by the consistency sweep."""

    activity_code_id: uuid.UUID
    code: str
    issues: list[str]


class HierarchyReport(BaseModel):
    """Result of a tenant-wide hierarchy sweep."""

    is_valid: bool
    issues: list[HierarchyIssue]


class ActivityCodeTreeNode(BaseModel):
    """A parent code with its children."""

    id: uuid.UUID
    code: str
    name: str
    level: int
    children: list[ActivityCodeTreeNode] = Field(default_factory=list)

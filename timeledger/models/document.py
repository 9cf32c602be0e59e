# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from timeledger.models.base import _now_utc


class StoredDocument(SQLModel, table=True):
    """One engine document (activity code, project, time entry, timesheet, audit entry) per row.

    ``version`` is the optimistic-concurrency marker; writes compare-and-swap on it.
    """

    __tablename__ = "stored_document"
    __table_args__ = (
        sa.PrimaryKeyConstraint("kind", "tenant_id", "id"),
        sa.Index("ix_document_kind_tenant", "kind", "tenant_id"),
    )

    kind: str = Field(max_length=50)
    tenant_id: uuid.UUID
    id: uuid.UUID
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
    data: dict[str, Any] = Field(sa_type=sa.JSON)
    created_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )

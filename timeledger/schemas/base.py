# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Self

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from timeledger.exceptions import ValidationError
from timeledger.models.base import _now_utc, _uuid_factory


def _error_message(exc: pydantic.ValidationError) -> str:
    """Render the first pydantic error the way the engine reports field errors."""
    error = exc.errors()[0]
    if error["type"] == "value_error":
        return str(error["msg"]).removeprefix("Value error, ")
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else str(error["msg"])


class DomainModel(BaseModel):
    """Immutable value type. Changes produce a new, re-validated value."""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def build(cls, **data: Any) -> Self:
        """Validate ``data`` and construct the value, raising the engine's ValidationError."""
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(_error_message(exc)) from exc

    def evolve(self, **changes: Any) -> Self:
        """Return a copy with ``changes`` applied and every invariant checked again."""
        return type(self).build(**{**self.model_dump(), **changes})


class Document(DomainModel):
    """Fields shared by every stored entity.

    ``version`` is 0 until the document is first stored and grows by one on each write.
    """

    id: uuid.UUID = Field(default_factory=_uuid_factory)
    tenant_id: uuid.UUID
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_now_utc)
    updated_at: datetime | None = None
    updated_by: uuid.UUID | None = None

    def touched(self, actor_id: uuid.UUID, **changes: Any) -> Self:
        """Evolve and stamp the acting user and time."""
        return self.evolve(updated_at=_now_utc(), updated_by=actor_id, **changes)

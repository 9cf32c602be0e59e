# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Any

from timeledger.models.enums import AuditAction, EntityKind
from timeledger.schemas.base import Document


class AuditEntry(Document):
    """Immutable record of a mutation, with the document before and after."""

    entity_type: EntityKind
    entity_id: uuid.UUID
    action: AuditAction
    actor_id: uuid.UUID
    before_json: dict[str, Any] | None = None
    after_json: dict[str, Any] | None = None

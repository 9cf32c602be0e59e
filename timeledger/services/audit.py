from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from timeledger.schemas.audit import AuditEntry

if TYPE_CHECKING:
    from timeledger.models.enums import AuditAction, EntityKind
    from timeledger.schemas.base import Document
    from timeledger.services.repository import Store


def document_to_audit_dict(document: Document) -> dict[str, Any]:
    """Serialize a document to a JSON-safe dict for audit logging."""
    return document.model_dump(mode="json")


async def write_audit_log(
    store: Store,
    *,
    tenant_id: uuid.UUID,
    actor_id: uuid.UUID,
    entity_type: EntityKind,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditEntry:
    """Append an immutable audit log entry. This is its own document write."""
    entry = AuditEntry(
        tenant_id=tenant_id,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        before_json=before_json,
        after_json=after_json,
    )
    return await store.audit_log.put(entry)


async def list_audit_entries(
    store: Store,
    tenant_id: uuid.UUID,
    entity_id: uuid.UUID | None = None,
) -> list[AuditEntry]:
    """Audit entries of a tenant, optionally for one entity, oldest first."""
    if entity_id is None:
        entries = await store.audit_log.list_by_tenant(tenant_id)
    else:
        entries = await store.audit_log.query_by_tenant_and_field(tenant_id, "entity_id", entity_id)
    return sorted(entries, key=lambda entry: entry.created_at)

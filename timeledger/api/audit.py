# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from timeledger.api.deps import AdminDep, StoreDep, validate_tenant_scope
from timeledger.schemas.audit import AuditEntry
from timeledger.services import audit as audit_service

router = APIRouter(
    prefix="/tenants/{tenant_id}/audit-log",
    tags=["audit"],
    dependencies=[Depends(validate_tenant_scope)],
)


@router.get("", response_model=list[AuditEntry])
async def list_audit_entries(
    store: StoreDep,
    auth: AdminDep,
    entity_id: uuid.UUID | None = Query(default=None),
) -> list[AuditEntry]:
    """Audit trail of the tenant, optionally for one entity."""
    return await audit_service.list_audit_entries(store, auth.tenant_id, entity_id)

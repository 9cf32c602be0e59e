# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from timeledger.api.deps import AdminDep, AuthDep, StoreDep, validate_tenant_scope
from timeledger.schemas.activity_code import (
    ActivityCode,
    ActivityCodeCreate,
    ActivityCodePatch,
    ActivityCodeTreeNode,
    HierarchyReport,
    SetParentPayload,
)
from timeledger.services import activity_code as activity_code_service

router = APIRouter(
    prefix="/tenants/{tenant_id}/activity-codes",
    tags=["activity-codes"],
    dependencies=[Depends(validate_tenant_scope)],
)


@router.post("", response_model=ActivityCode, status_code=status.HTTP_201_CREATED)
async def create_activity_code(payload: ActivityCodeCreate, store: StoreDep, auth: AdminDep) -> ActivityCode:
    """Create an activity code."""
    return await activity_code_service.create_activity_code(store, auth, payload)


@router.get("", response_model=list[ActivityCode])
async def list_activity_codes(
    store: StoreDep,
    auth: AuthDep,
    include_inactive: bool = Query(default=False),
    category: str | None = Query(default=None),
) -> list[ActivityCode]:
    """List activity codes of the tenant."""
    return await activity_code_service.list_activity_codes(
        store, auth.tenant_id, include_inactive=include_inactive, category=category
    )


@router.get("/tree", response_model=list[ActivityCodeTreeNode])
async def get_activity_code_tree(store: StoreDep, auth: AuthDep) -> list[ActivityCodeTreeNode]:
    """Active codes grouped under their parents."""
    codes = await activity_code_service.list_activity_codes(store, auth.tenant_id)
    return activity_code_service.build_activity_code_tree(codes)


@router.get("/hierarchy/validation", response_model=HierarchyReport)
async def validate_hierarchy(store: StoreDep, auth: AuthDep) -> HierarchyReport:
    """Run the hierarchy consistency sweep."""
    return await activity_code_service.validate_hierarchy(store, auth.tenant_id)


@router.get("/{activity_code_id}", response_model=ActivityCode)
async def get_activity_code(activity_code_id: uuid.UUID, store: StoreDep, auth: AuthDep) -> ActivityCode:
    """Get a single activity code."""
    return await activity_code_service.get_activity_code(store, auth.tenant_id, activity_code_id)


@router.patch("/{activity_code_id}", response_model=ActivityCode)
async def update_activity_code(
    activity_code_id: uuid.UUID,
    payload: ActivityCodePatch,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> ActivityCode:
    """Partially update an activity code."""
    return await activity_code_service.update_activity_code(store, auth, activity_code_id, payload, expected_version)


@router.put("/{activity_code_id}/parent", response_model=ActivityCode)
async def set_parent(
    activity_code_id: uuid.UUID,
    payload: SetParentPayload,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> ActivityCode:
    """Attach the code under a parent code."""
    return await activity_code_service.set_parent(store, auth, activity_code_id, payload.parent_id, expected_version)


@router.delete("/{activity_code_id}/parent", response_model=ActivityCode)
async def remove_parent(
    activity_code_id: uuid.UUID,
    store: StoreDep,
    auth: AdminDep,
    expected_version: int | None = Query(default=None, ge=1),
) -> ActivityCode:
    """Detach the code from its parent."""
    return await activity_code_service.remove_parent(store, auth, activity_code_id, expected_version)


@router.post("/{activity_code_id}/deactivate", response_model=ActivityCode)
async def deactivate_activity_code(activity_code_id: uuid.UUID, store: StoreDep, auth: AdminDep) -> ActivityCode:
    """Soft-deactivate a code."""
    return await activity_code_service.set_activity_code_active(store, auth, activity_code_id, is_active=False)


@router.post("/{activity_code_id}/activate", response_model=ActivityCode)
async def activate_activity_code(activity_code_id: uuid.UUID, store: StoreDep, auth: AdminDep) -> ActivityCode:
    """Reactivate a code."""
    return await activity_code_service.set_activity_code_active(store, auth, activity_code_id, is_active=True)


@router.delete("/{activity_code_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity_code(activity_code_id: uuid.UUID, store: StoreDep, auth: AdminDep) -> None:
    """Delete a code that nothing references."""
    await activity_code_service.delete_activity_code(store, auth, activity_code_id)

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from timeledger.exceptions import InvariantViolation, NotFoundError
from timeledger.models.enums import AuditAction, EntityKind
from timeledger.schemas.activity_code import (
    ActivityCode,
    ActivityCodeTreeNode,
    Hierarchy,
    HierarchyIssue,
    HierarchyReport,
)
from timeledger.services.audit import document_to_audit_dict, write_audit_log
from timeledger.services.repository import check_expected_version

if TYPE_CHECKING:
    from collections.abc import Iterable

    from timeledger.schemas.activity_code import ActivityCodeCreate, ActivityCodePatch
    from timeledger.schemas.auth import AuthContext
    from timeledger.services.repository import Store

logger = logging.getLogger(__name__)

PARENT_NOT_FOUND = "Parent activity code not found"
DEPTH_EXCEEDED = "Activity code hierarchy cannot exceed 2 levels"
CHILD_LEVEL = "Child activity code should have level 1"
PATH_INCONSISTENT = "Hierarchy path is inconsistent with parent"
ROOT_LEVEL = "Parent activity code should have level 0"
OWN_ANCESTOR = "Activity code cannot be its own ancestor"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _ensure_unique_code(
    store: Store,
    tenant_id: uuid.UUID,
    code: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    existing = await store.activity_codes.query_by_tenant_and_field(tenant_id, "code", code)
    if any(doc.id != exclude_id for doc in existing):
        raise InvariantViolation(f"Activity code '{code}' already exists")


async def _resolve_parent(store: Store, tenant_id: uuid.UUID, code_id: uuid.UUID, parent_id: uuid.UUID) -> ActivityCode:
    """Load the prospective parent and check that attaching ``code_id`` under it keeps the tree valid."""
    if parent_id == code_id:
        raise InvariantViolation("Activity code cannot be its own parent")

    parent = await store.activity_codes.get(tenant_id, parent_id)
    if parent is None:
        raise NotFoundError(PARENT_NOT_FOUND)
    if parent.parent_id is not None:
        raise InvariantViolation(DEPTH_EXCEEDED)

    # Walk the stored chain; the depth cap keeps it short, the visited set keeps drifted data finite.
    seen: set[uuid.UUID] = set()
    ancestor: ActivityCode | None = parent
    while ancestor is not None and ancestor.id not in seen:
        if ancestor.id == code_id:
            raise InvariantViolation(OWN_ANCESTOR)
        seen.add(ancestor.id)
        ancestor = (
            await store.activity_codes.get(tenant_id, ancestor.parent_id) if ancestor.parent_id is not None else None
        )

    children = await store.activity_codes.query_by_tenant_and_field(tenant_id, "parent_id", code_id)
    if children:
        raise InvariantViolation("Activity code with child codes cannot be nested under a parent")
    return parent


async def _save(
    store: Store,
    auth: AuthContext,
    before: ActivityCode,
    after: ActivityCode,
    action: AuditAction = AuditAction.UPDATE,
) -> ActivityCode:
    saved = await store.activity_codes.put(after, expected_version=before.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.ACTIVITY_CODE,
        entity_id=saved.id,
        action=action,
        before_json=document_to_audit_dict(before),
        after_json=document_to_audit_dict(saved),
    )
    return saved


# ---------------------------------------------------------------------------
# Registry operations
# ---------------------------------------------------------------------------


async def create_activity_code(store: Store, auth: AuthContext, payload: ActivityCodeCreate) -> ActivityCode:
    """Create a code, standalone (level 0) or directly under a parent (level 1)."""
    await _ensure_unique_code(store, auth.tenant_id, payload.code)

    data: dict[str, Any] = payload.model_dump()
    data["id"] = uuid.uuid4()
    if payload.parent_id is not None:
        parent = await _resolve_parent(store, auth.tenant_id, data["id"], payload.parent_id)
        data["hierarchy"] = Hierarchy.child_of(parent.code, parent.name, payload.code, payload.name)

    code = ActivityCode.build(tenant_id=auth.tenant_id, **data)
    saved = await store.activity_codes.put(code)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.ACTIVITY_CODE,
        entity_id=saved.id,
        action=AuditAction.CREATE,
        after_json=document_to_audit_dict(saved),
    )
    logger.info("Created activity code %s (%s) for tenant %s", saved.code, saved.id, auth.tenant_id)
    return saved


async def get_activity_code(store: Store, tenant_id: uuid.UUID, activity_code_id: uuid.UUID) -> ActivityCode:
    """Fetch a single activity code."""
    code = await store.activity_codes.get(tenant_id, activity_code_id)
    if code is None:
        raise NotFoundError("Activity code not found")
    return code


async def list_activity_codes(
    store: Store,
    tenant_id: uuid.UUID,
    *,
    include_inactive: bool = False,
    category: str | None = None,
) -> list[ActivityCode]:
    """List codes of a tenant ordered by hierarchy path."""
    codes = await store.activity_codes.list_by_tenant(tenant_id)
    if not include_inactive:
        codes = [c for c in codes if c.is_active]
    if category is not None:
        codes = [c for c in codes if c.category == category]
    return sorted(codes, key=lambda c: c.hierarchy.path)


async def update_activity_code(
    store: Store,
    auth: AuthContext,
    activity_code_id: uuid.UUID,
    patch: ActivityCodePatch,
    expected_version: int | None = None,
) -> ActivityCode:
    """Apply a partial update.

    A changed ``parent_id`` goes through the same checks as ``set_parent``. The code's own
    hierarchy is recomputed from its parent; its children are left as they are.
    """
    current = await get_activity_code(store, auth.tenant_id, activity_code_id)
    check_expected_version(current, "activity_code", expected_version)

    changes = patch.model_dump(exclude_unset=True)
    if changes.get("code") is not None and changes["code"] != current.code:
        await _ensure_unique_code(store, auth.tenant_id, changes["code"], exclude_id=current.id)
    if changes.get("billable") is False and "default_rate" not in changes:
        changes["default_rate"] = None

    code = changes.get("code") or current.code
    name = changes.get("name") or current.name
    parent_id = changes["parent_id"] if "parent_id" in changes else current.parent_id
    if parent_id is None:
        changes["hierarchy"] = Hierarchy.root(code, name)
    else:
        if parent_id != current.parent_id:
            parent = await _resolve_parent(store, auth.tenant_id, current.id, parent_id)
        else:
            parent = await get_activity_code(store, auth.tenant_id, parent_id)
        changes["hierarchy"] = Hierarchy.child_of(parent.code, parent.name, code, name)

    updated = current.touched(auth.user_id, **changes)
    return await _save(store, auth, current, updated)


async def set_parent(
    store: Store,
    auth: AuthContext,
    activity_code_id: uuid.UUID,
    parent_id: uuid.UUID,
    expected_version: int | None = None,
) -> ActivityCode:
    """Attach a code under a root code, recomputing its hierarchy."""
    current = await get_activity_code(store, auth.tenant_id, activity_code_id)
    check_expected_version(current, "activity_code", expected_version)
    parent = await _resolve_parent(store, auth.tenant_id, current.id, parent_id)

    updated = current.touched(
        auth.user_id,
        parent_id=parent.id,
        hierarchy=Hierarchy.child_of(parent.code, parent.name, current.code, current.name),
    )
    return await _save(store, auth, current, updated)


async def remove_parent(
    store: Store,
    auth: AuthContext,
    activity_code_id: uuid.UUID,
    expected_version: int | None = None,
) -> ActivityCode:
    """Detach a code from its parent, making it a root code."""
    current = await get_activity_code(store, auth.tenant_id, activity_code_id)
    check_expected_version(current, "activity_code", expected_version)
    if current.parent_id is None:
        return current

    updated = current.touched(auth.user_id, parent_id=None, hierarchy=Hierarchy.root(current.code, current.name))
    return await _save(store, auth, current, updated)


async def set_activity_code_active(
    store: Store,
    auth: AuthContext,
    activity_code_id: uuid.UUID,
    is_active: bool,
    expected_version: int | None = None,
) -> ActivityCode:
    """Soft (de)activation. Inactive codes cannot be used on new entries or whitelists."""
    current = await get_activity_code(store, auth.tenant_id, activity_code_id)
    check_expected_version(current, "activity_code", expected_version)
    if current.is_active == is_active:
        return current
    updated = current.touched(auth.user_id, is_active=is_active)
    return await _save(store, auth, current, updated, action=AuditAction.STATUS_CHANGE)


async def delete_activity_code(
    store: Store,
    auth: AuthContext,
    activity_code_id: uuid.UUID,
    expected_version: int | None = None,
) -> None:
    """Remove a code that nothing references."""
    current = await get_activity_code(store, auth.tenant_id, activity_code_id)
    check_expected_version(current, "activity_code", expected_version)

    if await store.activity_codes.query_by_tenant_and_field(auth.tenant_id, "parent_id", current.id):
        raise InvariantViolation("Cannot delete activity code with child codes")
    if await store.time_entries.query_by_tenant_and_field(auth.tenant_id, "activity_code_id", current.id):
        raise InvariantViolation("Cannot delete activity code that is referenced by time entries")

    await store.activity_codes.delete(auth.tenant_id, current.id, expected_version=current.version)
    await write_audit_log(
        store,
        tenant_id=auth.tenant_id,
        actor_id=auth.user_id,
        entity_type=EntityKind.ACTIVITY_CODE,
        entity_id=current.id,
        action=AuditAction.DELETE,
        before_json=document_to_audit_dict(current),
    )


# ---------------------------------------------------------------------------
# Consistency sweep and tree
# ---------------------------------------------------------------------------


def check_hierarchy(codes: Iterable[ActivityCode]) -> HierarchyReport:
    """Inspect every code of one tenant and report hierarchy drift. Never mutates."""
    by_id = {code.id: code for code in codes}
    found: list[HierarchyIssue] = []

    for code in by_id.values():
        issues: list[str] = []
        if code.parent_id is not None:
            parent = by_id.get(code.parent_id)
            if parent is None:
                issues.append(PARENT_NOT_FOUND)
            else:
                if parent.parent_id is not None:
                    issues.append(DEPTH_EXCEEDED)
                if code.hierarchy.level != 1:
                    issues.append(CHILD_LEVEL)
                if parent.code not in code.hierarchy.path:
                    issues.append(PATH_INCONSISTENT)

            seen = {code.id}
            ancestor = parent
            while ancestor is not None:
                if ancestor.id in seen:
                    if ancestor.id == code.id:
                        issues.append(OWN_ANCESTOR)
                    break
                seen.add(ancestor.id)
                ancestor = by_id.get(ancestor.parent_id) if ancestor.parent_id is not None else None
        elif code.hierarchy.level != 0:
            issues.append(ROOT_LEVEL)

        if issues:
            found.append(HierarchyIssue(activity_code_id=code.id, code=code.code, issues=issues))

    return HierarchyReport(is_valid=not found, issues=found)


async def validate_hierarchy(store: Store, tenant_id: uuid.UUID) -> HierarchyReport:
    """Run the consistency sweep over all codes of the tenant."""
    report = check_hierarchy(await store.activity_codes.list_by_tenant(tenant_id))
    if not report.is_valid:
        logger.info("Activity code hierarchy drift for tenant %s: %d code(s) affected", tenant_id, len(report.issues))
    return report


def build_activity_code_tree(codes: Iterable[ActivityCode]) -> list[ActivityCodeTreeNode]:
    """Group codes into root nodes with their children, both sorted by code.

    Children whose parent is not in ``codes`` are listed as roots.
    """
    ordered = sorted(codes, key=lambda c: c.code)
    nodes = {
        code.id: ActivityCodeTreeNode(id=code.id, code=code.code, name=code.name, level=code.hierarchy.level)
        for code in ordered
    }
    roots: list[ActivityCodeTreeNode] = []
    for code in ordered:
        node = nodes[code.id]
        parent_node = nodes.get(code.parent_id) if code.parent_id is not None else None
        if parent_node is None:
            roots.append(node)
        else:
            parent_node.children.append(node)
    return roots

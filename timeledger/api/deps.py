# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated, Literal

from fastapi import Depends, Header, Path, status

from timeledger.exceptions import AppError
from timeledger.schemas.auth import AuthContext
from timeledger.services.repository import Store, get_store


async def get_auth_context(
    x_tenant_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_role: Literal["admin", "employee"] = Header(default="employee"),
) -> AuthContext:
    """Acting user from the dev auth headers. A gateway sets these in production."""
    return AuthContext(tenant_id=x_tenant_id, user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]
StoreDep = Annotated[Store, Depends(get_store)]


async def require_admin(auth: AuthDep) -> AuthContext:
    """Approvals, registry edits and project administration are admin-only."""
    if not auth.is_admin:
        raise AppError("Admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def validate_tenant_scope(auth: AuthDep, tenant_id: uuid.UUID = Path()) -> AuthContext:
    """Every ``/tenants/{tenant_id}`` route acts only on the caller's own tenant."""
    if tenant_id != auth.tenant_id:
        raise AppError("Tenant ID mismatch", status_code=status.HTTP_403_FORBIDDEN)
    return auth

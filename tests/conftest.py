from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from timeledger.db import create_tables
from timeledger.main import app
from timeledger.schemas.auth import AuthContext
from timeledger.services.repository import Store, get_store
from timeledger.services.sql_repository import sql_store

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

TENANT_ID = uuid.uuid4()
OTHER_TENANT_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()


@pytest.fixture
def store() -> Store:
    """A fresh in-memory store per test."""
    return Store.in_memory()


@pytest.fixture
def admin() -> AuthContext:
    return AuthContext(tenant_id=TENANT_ID, user_id=ADMIN_ID, role="admin")


@pytest.fixture
def employee() -> AuthContext:
    return AuthContext(tenant_id=TENANT_ID, user_id=EMPLOYEE_ID, role="employee")


@pytest.fixture
async def sqlite_store(tmp_path: Path) -> AsyncIterator[Store]:
    """A Store over the stored_document table in a throwaway SQLite database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'timeledger.db'}")
    await create_tables(engine)
    yield sql_store(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


@pytest.fixture
async def async_client(store: Store) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the store dependency overridden."""
    app.dependency_overrides[get_store] = lambda: store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()

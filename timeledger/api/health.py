import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from timeledger.config import get_settings
from timeledger.db import get_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

HealthStatus = Literal["ok", "degraded", "error"]


class HealthResponse(BaseModel):
    """Service status and the active storage backend."""

    status: HealthStatus
    version: str
    environment: str
    storage_backend: str


async def _database_reachable() -> bool:
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """The in-memory store is always reachable; the SQL store is probed with ``SELECT 1``."""
    settings = get_settings()
    healthy = settings.storage_backend != "sql" or await _database_reachable()
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

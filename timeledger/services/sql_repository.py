# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Generic

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from timeledger.exceptions import StaleWriteError
from timeledger.models.base import _now_utc
from timeledger.models.document import StoredDocument
from timeledger.models.enums import EntityKind
from timeledger.schemas.activity_code import ActivityCode
from timeledger.schemas.audit import AuditEntry
from timeledger.schemas.project import Project
from timeledger.schemas.time_entry import TimeEntry
from timeledger.schemas.timesheet import Timesheet
from timeledger.services.repository import DocumentT, Store

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class SqlRepository(Generic[DocumentT]):
    """Repository over the ``stored_document`` table, one JSON document per row.

    Each call runs in its own session and commits before returning. The
    compare-and-swap is a single ``UPDATE ... WHERE version = :expected``.
    """

    def __init__(
        self,
        kind: EntityKind,
        model: type[DocumentT],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.kind = kind
        self._model = model
        self._session_factory = session_factory

    def _load(self, row: StoredDocument) -> DocumentT:
        return self._model.model_validate({**row.data, "version": row.version})

    def _key_filters(self, tenant_id: uuid.UUID, entity_id: uuid.UUID) -> list[Any]:
        return [
            col(StoredDocument.kind) == self.kind.value,
            col(StoredDocument.tenant_id) == tenant_id,
            col(StoredDocument.id) == entity_id,
        ]

    async def _current_version(self, session: AsyncSession, tenant_id: uuid.UUID, entity_id: uuid.UUID) -> int | None:
        result = await session.execute(
            select(StoredDocument.version).where(*self._key_filters(tenant_id, entity_id))
        )
        return result.scalar_one_or_none()

    async def get(self, tenant_id: uuid.UUID, entity_id: uuid.UUID) -> DocumentT | None:
        async with self._session_factory() as session:
            result = await session.execute(select(StoredDocument).where(*self._key_filters(tenant_id, entity_id)))
            row = result.scalar_one_or_none()
        return self._load(row) if row is not None else None

    async def list_by_tenant(self, tenant_id: uuid.UUID) -> list[DocumentT]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(StoredDocument)
                .where(
                    col(StoredDocument.kind) == self.kind.value,
                    col(StoredDocument.tenant_id) == tenant_id,
                )
                .order_by(col(StoredDocument.created_at))
            )
            rows = result.scalars().all()
        return [self._load(row) for row in rows]

    async def query_by_tenant_and_field(self, tenant_id: uuid.UUID, field: str, value: Any) -> list[DocumentT]:
        filters = [
            col(StoredDocument.kind) == self.kind.value,
            col(StoredDocument.tenant_id) == tenant_id,
        ]
        # Ids, codes and enum values are stored as JSON strings and can be matched in the database.
        # Other values (None, numbers, dates) are matched only by the typed comparison below.
        if isinstance(value, uuid.UUID | str):
            filters.append(col(StoredDocument.data)[field].as_string() == str(value))
        async with self._session_factory() as session:
            result = await session.execute(
                select(StoredDocument).where(*filters).order_by(col(StoredDocument.created_at))
            )
            rows = result.scalars().all()
        return [doc for doc in (self._load(row) for row in rows) if getattr(doc, field) == value]

    async def put(self, entity: DocumentT, *, expected_version: int | None = None) -> DocumentT:
        data = entity.model_dump(mode="json", exclude={"version"})
        async with self._session_factory() as session:
            if expected_version is None:
                session.add(
                    StoredDocument(
                        kind=self.kind.value,
                        tenant_id=entity.tenant_id,
                        id=entity.id,
                        version=1,
                        data=data,
                        created_at=entity.created_at,
                        updated_at=entity.updated_at or entity.created_at,
                    )
                )
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    actual = await self._current_version(session, entity.tenant_id, entity.id)
                    raise StaleWriteError(self.kind.value, entity.id, None, actual) from exc
                return entity.model_copy(update={"version": 1})

            result = await session.execute(
                update(StoredDocument)
                .where(
                    *self._key_filters(entity.tenant_id, entity.id),
                    col(StoredDocument.version) == expected_version,
                )
                .values(version=expected_version + 1, data=data, updated_at=entity.updated_at or _now_utc())
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                await session.rollback()
                actual = await self._current_version(session, entity.tenant_id, entity.id)
                raise StaleWriteError(self.kind.value, entity.id, expected_version, actual)
            await session.commit()
        return entity.model_copy(update={"version": expected_version + 1})

    async def delete(self, tenant_id: uuid.UUID, entity_id: uuid.UUID, *, expected_version: int | None = None) -> None:
        filters = self._key_filters(tenant_id, entity_id)
        if expected_version is not None:
            filters.append(col(StoredDocument.version) == expected_version)
        async with self._session_factory() as session:
            result = await session.execute(delete(StoredDocument).where(*filters))
            if result.rowcount == 0 and expected_version is not None:  # type: ignore[attr-defined]
                await session.rollback()
                actual = await self._current_version(session, tenant_id, entity_id)
                if actual is not None:
                    raise StaleWriteError(self.kind.value, entity_id, expected_version, actual)
                return
            await session.commit()


def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> Store:
    """Build a Store whose repositories share one session factory."""
    return Store(
        activity_codes=SqlRepository(EntityKind.ACTIVITY_CODE, ActivityCode, session_factory),
        projects=SqlRepository(EntityKind.PROJECT, Project, session_factory),
        time_entries=SqlRepository(EntityKind.TIME_ENTRY, TimeEntry, session_factory),
        timesheets=SqlRepository(EntityKind.TIMESHEET, Timesheet, session_factory),
        audit_log=SqlRepository(EntityKind.AUDIT_ENTRY, AuditEntry, session_factory),
    )

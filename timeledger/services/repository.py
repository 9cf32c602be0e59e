# ruff: noqa: TC003
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from timeledger.exceptions import StaleWriteError
from timeledger.models.enums import EntityKind
from timeledger.schemas.activity_code import ActivityCode
from timeledger.schemas.audit import AuditEntry
from timeledger.schemas.base import Document
from timeledger.schemas.project import Project
from timeledger.schemas.time_entry import TimeEntry
from timeledger.schemas.timesheet import Timesheet

DocumentT = TypeVar("DocumentT", bound=Document)


@runtime_checkable
class Repository(Protocol[DocumentT]):
    """Tenant-scoped document storage for one entity kind.

    A single ``put`` or ``delete`` is atomic. Nothing spans more than one document.
    """

    kind: EntityKind

    async def get(self, tenant_id: uuid.UUID, entity_id: uuid.UUID) -> DocumentT | None:
        """Fetch one document. Returns None if not found."""
        ...

    async def list_by_tenant(self, tenant_id: uuid.UUID) -> list[DocumentT]:
        """All documents of the tenant, oldest first."""
        ...

    async def query_by_tenant_and_field(self, tenant_id: uuid.UUID, field: str, value: Any) -> list[DocumentT]:
        """Documents of the tenant whose ``field`` equals ``value``."""
        ...

    async def put(self, entity: DocumentT, *, expected_version: int | None = None) -> DocumentT:
        """Insert (``expected_version=None``) or compare-and-swap on the stored version.

        Returns the stored document with its new version.
        """
        ...

    async def delete(self, tenant_id: uuid.UUID, entity_id: uuid.UUID, *, expected_version: int | None = None) -> None:
        """Remove a document, optionally only if it is still at ``expected_version``."""
        ...


class InMemoryRepository(Generic[DocumentT]):
    """Dict-backed repository. Every method completes without yielding, so each write is atomic."""

    def __init__(self, kind: EntityKind) -> None:
        self.kind = kind
        self._documents: dict[tuple[uuid.UUID, uuid.UUID], DocumentT] = {}

    async def get(self, tenant_id: uuid.UUID, entity_id: uuid.UUID) -> DocumentT | None:
        return self._documents.get((tenant_id, entity_id))

    async def list_by_tenant(self, tenant_id: uuid.UUID) -> list[DocumentT]:
        return [doc for (doc_tenant, _), doc in self._documents.items() if doc_tenant == tenant_id]

    async def query_by_tenant_and_field(self, tenant_id: uuid.UUID, field: str, value: Any) -> list[DocumentT]:
        return [doc for doc in await self.list_by_tenant(tenant_id) if getattr(doc, field) == value]

    async def put(self, entity: DocumentT, *, expected_version: int | None = None) -> DocumentT:
        key = (entity.tenant_id, entity.id)
        current = self._documents.get(key)
        actual = current.version if current is not None else None
        if expected_version is None:
            if current is not None:
                raise StaleWriteError(self.kind.value, entity.id, None, actual)
        elif actual != expected_version:
            raise StaleWriteError(self.kind.value, entity.id, expected_version, actual)

        stored = entity.model_copy(update={"version": (expected_version or 0) + 1})
        self._documents[key] = stored
        return stored

    async def delete(self, tenant_id: uuid.UUID, entity_id: uuid.UUID, *, expected_version: int | None = None) -> None:
        current = self._documents.get((tenant_id, entity_id))
        if current is None:
            return
        if expected_version is not None and current.version != expected_version:
            raise StaleWriteError(self.kind.value, entity_id, expected_version, current.version)
        del self._documents[(tenant_id, entity_id)]


@dataclass
class Store:
    """The per-entity repositories the engine reads from and writes to."""

    activity_codes: Repository[ActivityCode]
    projects: Repository[Project]
    time_entries: Repository[TimeEntry]
    timesheets: Repository[Timesheet]
    audit_log: Repository[AuditEntry]

    @classmethod
    def in_memory(cls) -> Store:
        return cls(
            activity_codes=InMemoryRepository(EntityKind.ACTIVITY_CODE),
            projects=InMemoryRepository(EntityKind.PROJECT),
            time_entries=InMemoryRepository(EntityKind.TIME_ENTRY),
            timesheets=InMemoryRepository(EntityKind.TIMESHEET),
            audit_log=InMemoryRepository(EntityKind.AUDIT_ENTRY),
        )


_store: Store = Store.in_memory()


def get_store() -> Store:
    """FastAPI dependency for the document store."""
    return _store


def set_store(store: Store) -> None:
    """Override the store (for testing or production wiring)."""
    global _store
    _store = store


def check_expected_version(entity: Document, entity_name: str, expected_version: int | None) -> None:
    """Fail before any write when the caller read an older version than the one stored."""
    if expected_version is not None and entity.version != expected_version:
        raise StaleWriteError(entity_name, entity.id, expected_version, entity.version)

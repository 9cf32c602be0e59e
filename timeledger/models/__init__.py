from sqlmodel import SQLModel

from timeledger.models.document import StoredDocument
from timeledger.models.enums import (
    AuditAction,
    ConflictType,
    EntityKind,
    ProjectStatus,
    TimesheetStatus,
    WarningType,
)

__all__ = [
    "AuditAction",
    "ConflictType",
    "EntityKind",
    "ProjectStatus",
    "SQLModel",
    "StoredDocument",
    "TimesheetStatus",
    "WarningType",
]

from __future__ import annotations

import enum


class ProjectStatus(enum.StrEnum):
    """Lifecycle of a project."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"


class TimesheetStatus(enum.StrEnum):
    """Approval state machine for timesheets."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    LOCKED = "locked"


class ConflictType(enum.StrEnum):
    """Kind of scheduling conflict between two time entries."""

    TIME_OVERLAP = "time_overlap"


class WarningType(enum.StrEnum):
    """Advisory findings of a conflict scan."""

    DAILY_LIMIT_EXCEEDED = "daily_limit_exceeded"
    LONG_DURATION = "long_duration"
    WEEKLY_OVERTIME = "weekly_overtime"
    WEEKLY_LIMIT_EXCEEDED = "weekly_limit_exceeded"


class EntityKind(enum.StrEnum):
    """Document collections held by the store."""

    ACTIVITY_CODE = "activity_code"
    PROJECT = "project"
    TIME_ENTRY = "time_entry"
    TIMESHEET = "timesheet"
    AUDIT_ENTRY = "audit_entry"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    LOCK = "LOCK"
    UNLOCK = "UNLOCK"
    RETURN_TO_DRAFT = "RETURN_TO_DRAFT"

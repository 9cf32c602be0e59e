"""Status graphs for projects and timesheets."""

from __future__ import annotations

from typing import ClassVar

from timeledger.exceptions import StateTransitionError
from timeledger.models.enums import ProjectStatus, TimesheetStatus


class ProjectStateMachine:
    """Project lifecycle.

    Allowed transitions:
    - active → on_hold, completed, inactive
    - on_hold → active, inactive
    - completed → active (reopen), inactive
    - inactive → active
    """

    VALID_TRANSITIONS: ClassVar[dict[ProjectStatus, frozenset[ProjectStatus]]] = {
        ProjectStatus.ACTIVE: frozenset({ProjectStatus.ON_HOLD, ProjectStatus.COMPLETED, ProjectStatus.INACTIVE}),
        ProjectStatus.ON_HOLD: frozenset({ProjectStatus.ACTIVE, ProjectStatus.INACTIVE}),
        ProjectStatus.COMPLETED: frozenset({ProjectStatus.ACTIVE, ProjectStatus.INACTIVE}),
        ProjectStatus.INACTIVE: frozenset({ProjectStatus.ACTIVE}),
    }

    @classmethod
    def can_transition(cls, from_status: ProjectStatus, to_status: ProjectStatus) -> bool:
        """Check if a transition is valid."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, frozenset())

    @classmethod
    def validate_transition(cls, from_status: ProjectStatus, to_status: ProjectStatus) -> None:
        """Validate a transition, raising StateTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise StateTransitionError("project", from_status, to_status)

    @classmethod
    def is_reopen(cls, from_status: ProjectStatus, to_status: ProjectStatus) -> bool:
        """Check if this transition reopens a completed project."""
        return from_status == ProjectStatus.COMPLETED and to_status == ProjectStatus.ACTIVE

    @classmethod
    def get_next_statuses(cls, current_status: ProjectStatus) -> list[ProjectStatus]:
        """Get list of valid next statuses from current status, in declaration order."""
        allowed = cls.VALID_TRANSITIONS.get(current_status, frozenset())
        return [status for status in ProjectStatus if status in allowed]


class TimesheetStateMachine:
    """Timesheet approval workflow.

    Allowed transitions:
    - draft → submitted
    - submitted → approved, rejected
    - rejected → draft
    - approved → locked
    - locked → approved (privileged unlock)
    """

    VALID_TRANSITIONS: ClassVar[dict[TimesheetStatus, frozenset[TimesheetStatus]]] = {
        TimesheetStatus.DRAFT: frozenset({TimesheetStatus.SUBMITTED}),
        TimesheetStatus.SUBMITTED: frozenset({TimesheetStatus.APPROVED, TimesheetStatus.REJECTED}),
        TimesheetStatus.REJECTED: frozenset({TimesheetStatus.DRAFT}),
        TimesheetStatus.APPROVED: frozenset({TimesheetStatus.LOCKED}),
        TimesheetStatus.LOCKED: frozenset({TimesheetStatus.APPROVED}),
    }

    # Statuses where attached time entries may be created, changed or removed
    ENTRIES_MUTABLE: ClassVar[frozenset[TimesheetStatus]] = frozenset(
        {TimesheetStatus.DRAFT, TimesheetStatus.SUBMITTED, TimesheetStatus.REJECTED}
    )

    @classmethod
    def can_transition(cls, from_status: TimesheetStatus, to_status: TimesheetStatus) -> bool:
        """Check if a transition is valid."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, frozenset())

    @classmethod
    def validate_transition(
        cls,
        from_status: TimesheetStatus,
        to_status: TimesheetStatus,
        reason: str | None = None,
    ) -> None:
        """Validate a transition, raising StateTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise StateTransitionError("timesheet", from_status, to_status, reason)

    @classmethod
    def can_modify_entries(cls, status: TimesheetStatus) -> bool:
        """Check if time entries of a timesheet in this status can change."""
        return status in cls.ENTRIES_MUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: TimesheetStatus) -> list[TimesheetStatus]:
        """Get list of valid next statuses from current status, in declaration order."""
        allowed = cls.VALID_TRANSITIONS.get(current_status, frozenset())
        return [status for status in TimesheetStatus if status in allowed]

"""
Domain-specific exception hierarchy for the class scheduling application.
"""

from __future__ import annotations

from typing import Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ConflictResult


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidTimeSlotError(SchedulingError):
    """Raised when a slot string is malformed or outside the bookable window."""

    def __init__(self, slot: object):
        self.slot = slot
        super().__init__(f"Invalid time slot: {slot!r} (expected HH:MM-HH:MM within class hours)")


class ScheduleConflictError(SchedulingError):
    """Raised when a booking request collides with an existing trainer booking."""

    def __init__(self, conflicts: Dict[int, "ConflictResult"]):
        self.conflicts = conflicts
        reasons = "; ".join(result.reason or "" for result in conflicts.values())
        super().__init__(reasons or "Trainer is busy with another course during that time")


class ScheduleNotFoundError(SchedulingError):
    """Raised when a schedule id does not exist in the store."""

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Schedule not found: {schedule_id}")


class InvalidStatusTransitionError(SchedulingError):
    """Raised when a status change is not permitted by the schedule lifecycle."""


class PermissionDeniedError(SchedulingError):
    """Raised when a role may not perform a scheduling action."""


class StoreError(SchedulingError):
    """Raised when schedule records cannot be read or written."""

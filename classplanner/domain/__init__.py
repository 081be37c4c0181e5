"""
Domain layer - Pure scheduling logic without I/O.
"""

from .conflict_checker import ScheduleConflictChecker
from .models import ConflictResult, Role, Schedule, ScheduleStatus
from .overlap import do_time_slots_overlap, slots_overlap_strict
from .timeslots import (
    SlotOption,
    SlotRules,
    generate_time_slots,
    is_valid_time_slot,
    parse_time_slot,
)

__all__ = [
    "ConflictResult",
    "Role",
    "Schedule",
    "ScheduleConflictChecker",
    "ScheduleStatus",
    "SlotOption",
    "SlotRules",
    "do_time_slots_overlap",
    "generate_time_slots",
    "is_valid_time_slot",
    "parse_time_slot",
    "slots_overlap_strict",
]

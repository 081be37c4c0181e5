"""
Adapters layer - Persistence of schedule records.
"""

from .schedule_store import InMemoryScheduleStore

__all__ = ["InMemoryScheduleStore"]

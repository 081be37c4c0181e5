"""
Service layer helpers that orchestrate the schedule store and domain logic.
"""

from .scheduling_service import (
    BatchResult,
    ScheduleRepositoryProtocol,
    ScheduleRequest,
    SchedulingService,
)

__all__ = ["BatchResult", "ScheduleRepositoryProtocol", "ScheduleRequest", "SchedulingService"]

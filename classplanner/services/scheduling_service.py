"""
Application service for booking and maintaining weekly class schedules.

The service fetches a trainer's existing bookings via a repository adapter
and delegates the conflict decision to the domain-level
``ScheduleConflictChecker``. Check and write happen while the repository
lock is held, so two concurrent bookings cannot both pass a stale check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    AsyncContextManager,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
)

import pendulum

from ..config import AppConfig
from ..domain.conflict_checker import ScheduleConflictChecker
from ..domain.exceptions import (
    InvalidStatusTransitionError,
    InvalidTimeSlotError,
    PermissionDeniedError,
    ScheduleConflictError,
)
from ..domain.models import (
    ConflictResult,
    Role,
    Schedule,
    ScheduleStatus,
    TERMINAL_STATUSES,
    can_manage_schedules,
    to_date,
)
from ..domain.timeslots import SlotOption, generate_time_slots, is_valid_time_slot

logger = logging.getLogger(__name__)


class ScheduleRepositoryProtocol(Protocol):
    """Protocol describing the schedule store behaviour needed by the service."""

    def lock(self) -> AsyncContextManager[Any]:
        """Return a lock serialising check-then-write sequences."""

    def new_id(self) -> str:
        """Return a fresh schedule id."""

    async def list_all(self) -> List[Schedule]:
        """Return every schedule."""

    async def list_by_trainer(self, trainer_id: str) -> List[Schedule]:
        """Return all schedules of a trainer, whatever their status."""

    async def list_by_student(self, student_id: str) -> List[Schedule]:
        """Return all schedules of a student."""

    async def list_by_student_course(
        self,
        student_id: Optional[str],
        course_id: str,
    ) -> List[Schedule]:
        """Return all schedules of one student in one course."""

    async def get(self, schedule_id: str) -> Schedule:
        """Return one schedule or raise ScheduleNotFoundError."""

    async def add_many(self, schedules: List[Schedule]) -> List[Schedule]:
        """Insert new schedules."""

    async def update(self, schedule: Schedule) -> Schedule:
        """Replace an existing schedule."""

    async def update_many(self, schedules: List[Schedule]) -> List[Schedule]:
        """Replace several existing schedules in one write."""


@dataclass(frozen=True)
class ScheduleRequest:
    """A request to book one slot on one or more days of a week."""
    course_id: str
    week_start: Any
    days_of_week: Sequence[int]
    time_slot: str
    created_by: str
    trainer_id: Optional[str] = None
    student_id: Optional[str] = None


@dataclass
class BatchResult:
    """Schedules committed by a booking request and the days that conflicted."""
    created: List[Schedule] = field(default_factory=list)
    conflicts: Dict[int, ConflictResult] = field(default_factory=dict)

    @property
    def fully_booked(self) -> bool:
        return not self.conflicts


class SchedulingService:
    """
    Orchestrates schedule bookings, edits and status changes.

    Dependency inversion toward a protocol makes it easy to plug in a
    database-backed store or the in-memory one in tests.
    """

    def __init__(
        self,
        repository: ScheduleRepositoryProtocol,
        checker: Optional[ScheduleConflictChecker] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self._config = config or AppConfig()
        self._repository = repository
        self._checker = checker or ScheduleConflictChecker(
            rules=self._config.slot_rules.to_rules(),
            occupying_statuses=frozenset(self._config.occupying_statuses),
            week_starts_on=self._config.week_starts_on,
        )

    @property
    def checker(self) -> ScheduleConflictChecker:
        return self._checker

    async def create_schedules(
        self,
        request: ScheduleRequest,
        actor_role: Role,
    ) -> BatchResult:
        """
        Book ``request.time_slot`` on every requested day.

        In ``atomic`` mode a conflict on any day commits nothing; in
        ``partial`` mode the conflict-free days are committed and the others
        are reported in the result.

        Raises:
            PermissionDeniedError: If the role may not book schedules
            InvalidTimeSlotError: If the slot is not bookable
            ScheduleConflictError: In atomic mode, if any day conflicts
        """
        self._require_manager(actor_role)
        self._require_valid_slot(request.time_slot)

        days = list(dict.fromkeys(request.days_of_week))
        if not days:
            raise ValueError("At least one day of the week is required")
        week_start = to_date(request.week_start)

        async with self._repository.lock():
            conflicts: Dict[int, ConflictResult] = {}
            if request.trainer_id:
                existing = await self._repository.list_by_trainer(request.trainer_id)
                verdicts = self._checker.check_days(
                    request.trainer_id,
                    days,
                    week_start,
                    request.time_slot,
                    existing,
                    course_id=request.course_id,
                )
                conflicts = {day: result for day, result in verdicts.items() if not result.allowed}

            if conflicts and self._config.batch_commit_mode == "atomic":
                logger.info(
                    "Rejected booking for trainer %s at %s: %d day(s) conflict",
                    request.trainer_id,
                    request.time_slot,
                    len(conflicts),
                )
                raise ScheduleConflictError(conflicts)

            now = pendulum.now()
            new_schedules = [
                Schedule(
                    id=self._repository.new_id(),
                    course_id=request.course_id,
                    student_id=request.student_id,
                    trainer_id=request.trainer_id,
                    week_start=week_start,
                    day_of_week=day,
                    time_slot=request.time_slot,
                    created_by=request.created_by,
                    created_at=now,
                    updated_at=now,
                )
                for day in days
                if day not in conflicts
            ]
            created = await self._repository.add_many(new_schedules) if new_schedules else []

        for schedule in created:
            logger.info(
                "Created schedule %s: course %s, trainer %s, %s %s",
                schedule.id,
                schedule.course_id,
                schedule.trainer_id,
                schedule.day_name,
                schedule.time_slot,
            )

        return BatchResult(created=created, conflicts=conflicts)

    async def update_schedule(
        self,
        schedule_id: str,
        changes: Dict[str, Any],
        actor_role: Role,
    ) -> Schedule:
        """
        Edit a schedule's course, people, week, day or slot.

        The edited schedule is excluded from its own conflict check.

        Raises:
            PermissionDeniedError: If the role may not edit schedules
            ScheduleNotFoundError: If the schedule does not exist
            InvalidStatusTransitionError: If the schedule is cancelled or completed
            InvalidTimeSlotError: If the new slot is not bookable
            ScheduleConflictError: If the edited booking collides
        """
        self._require_manager(actor_role)

        allowed_fields = {"course_id", "student_id", "trainer_id", "week_start", "day_of_week", "time_slot"}
        unknown = set(changes) - allowed_fields
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        async with self._repository.lock():
            current = await self._repository.get(schedule_id)
            if current.status in TERMINAL_STATUSES:
                raise InvalidStatusTransitionError(
                    f"Cannot edit schedule {schedule_id}: it is {current.status.value}"
                )

            updated = replace(current, **changes, updated_at=pendulum.now())
            self._require_valid_slot(updated.time_slot)

            # Only bookings that hold the trainer's time can collide.
            if updated.is_occupying(self._checker.occupying_statuses):
                await self._require_trainer_free(updated)

            saved = await self._repository.update(updated)

        logger.info("Updated schedule %s", schedule_id)
        return saved

    async def change_status(
        self,
        schedule_id: str,
        new_status: ScheduleStatus,
        actor_role: Role,
    ) -> List[Schedule]:
        """
        Move the schedule and its live siblings to ``new_status``.

        Siblings are the other schedules of the same student and course.
        Cancelled or completed siblings are left alone. Every move is
        validated, and reactivated bookings are conflict-checked, before
        anything is written; the write itself is a single bulk update.

        Raises:
            PermissionDeniedError: If the role may not change statuses
            ScheduleNotFoundError: If the schedule does not exist
            InvalidStatusTransitionError: If the schedule cannot make the move
            ScheduleConflictError: If a reactivated booking collides
        """
        self._require_manager(actor_role)
        target = ScheduleStatus(new_status)

        async with self._repository.lock():
            anchor = await self._repository.get(schedule_id)
            affected = [anchor]
            if anchor.student_id is not None:
                siblings = await self._repository.list_by_student_course(anchor.student_id, anchor.course_id)
                affected.extend(
                    schedule for schedule in siblings
                    if schedule.id != anchor.id and schedule.status not in TERMINAL_STATUSES
                )

            moved = [schedule.with_status(target) for schedule in affected]

            occupying = self._checker.occupying_statuses
            for before, after in zip(affected, moved):
                if after.is_occupying(occupying) and not before.is_occupying(occupying):
                    await self._require_trainer_free(after)

            moved = await self._repository.update_many(moved)

        logger.info(
            "Changed %d schedule(s) of student %s in course %s from %s to %s",
            len(moved),
            anchor.student_id,
            anchor.course_id,
            anchor.status.value,
            target.value,
        )
        return moved

    async def available_slots(
        self,
        trainer_id: str,
        day_of_week: int,
        week_start: Any,
        course_id: Optional[str] = None,
    ) -> List[SlotOption]:
        """Return the generated slots the trainer could still take that day."""
        existing = await self._repository.list_by_trainer(trainer_id)
        return [
            option for option in generate_time_slots(self._checker.rules)
            if self._checker.check_conflict(
                trainer_id,
                day_of_week,
                week_start,
                option.value,
                existing,
                course_id=course_id,
            ).allowed
        ]

    async def trainer_schedules(self, trainer_id: str) -> List[Schedule]:
        """Return a trainer's schedules ordered by week and day."""
        return await self._repository.list_by_trainer(trainer_id)

    async def student_schedules(self, student_id: str, active_only: bool = True) -> List[Schedule]:
        """Return a student's schedules, by default only the active ones."""
        schedules = await self._repository.list_by_student(student_id)
        if active_only:
            schedules = [s for s in schedules if s.status == ScheduleStatus.ACTIVE]
        return schedules

    async def all_schedules(self) -> List[Schedule]:
        return await self._repository.list_all()

    async def _require_trainer_free(self, schedule: Schedule) -> None:
        """Raise ScheduleConflictError if ``schedule`` would double-book its trainer."""
        if not schedule.trainer_id:
            return

        existing = await self._repository.list_by_trainer(schedule.trainer_id)
        result = self._checker.check_conflict(
            schedule.trainer_id,
            schedule.day_of_week,
            schedule.week_start,
            schedule.time_slot,
            existing,
            course_id=schedule.course_id,
            exclude_schedule_id=schedule.id,
        )
        if not result.allowed:
            raise ScheduleConflictError({schedule.day_of_week: result})

    def _require_valid_slot(self, time_slot: str) -> None:
        if not is_valid_time_slot(time_slot, self._checker.rules):
            raise InvalidTimeSlotError(time_slot)

    @staticmethod
    def _require_manager(role: Role) -> None:
        role = Role(role)
        if not can_manage_schedules(role):
            raise PermissionDeniedError(f"Role {role.value} may not manage schedules")

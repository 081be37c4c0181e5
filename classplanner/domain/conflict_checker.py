"""
Trainer-occupancy conflict detection for proposed bookings.

This is pure domain logic: the caller supplies the trainer's existing
schedules and receives a structured verdict. Business-rule violations are
never raised, only malformed proposed slots are.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from .exceptions import InvalidTimeSlotError
from .models import (
    DAY_NAMES,
    OCCUPYING_STATUSES,
    ConflictResult,
    Schedule,
    ScheduleStatus,
    week_anchor,
)
from .overlap import do_time_slots_overlap
from .timeslots import DEFAULT_SLOT_RULES, SlotRules, is_valid_time_slot, parse_time_slot

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "Trainer is busy with another course during that time"


class ScheduleConflictChecker:
    """
    Decides whether a trainer can take on a new weekly booking.

    Algorithm:
    1. Reject malformed proposed slots outright
    2. Keep the trainer's occupying schedules on the same day of the same week
    3. Skip identical batch bookings (same course, same slot)
    4. The first remaining schedule that overlaps the proposal blocks it
    """

    def __init__(
        self,
        rules: SlotRules = DEFAULT_SLOT_RULES,
        occupying_statuses: FrozenSet[ScheduleStatus] = OCCUPYING_STATUSES,
        week_starts_on: int = 0,
    ):
        self.rules = rules
        self.occupying_statuses = frozenset(occupying_statuses)
        self.week_starts_on = week_starts_on

    def check_conflict(
        self,
        trainer_id: str,
        day_of_week: int,
        week_start: Any,
        proposed_slot: str,
        existing_schedules: Iterable[Schedule],
        *,
        course_id: Optional[str] = None,
        exclude_schedule_id: Optional[str] = None,
    ) -> ConflictResult:
        """
        Check one proposed (trainer, day, week, slot) booking.

        Args:
            trainer_id: Trainer being booked
            day_of_week: Day of the booking (0=Sunday)
            week_start: Any date inside the target week
            proposed_slot: Canonical slot string
            existing_schedules: Schedules already held by the trainer
            course_id: Course of the proposal; enables batch bookings
            exclude_schedule_id: Schedule being edited, ignored in the check

        Returns:
            ConflictResult describing whether the booking may be committed

        Raises:
            InvalidTimeSlotError: If ``proposed_slot`` is not a bookable slot
        """
        if not is_valid_time_slot(proposed_slot, self.rules):
            raise InvalidTimeSlotError(proposed_slot)

        candidates = self._candidates(
            trainer_id=trainer_id,
            day_of_week=day_of_week,
            week_start=week_start,
            existing_schedules=existing_schedules,
            exclude_schedule_id=exclude_schedule_id,
        )

        for candidate in candidates:
            if self._is_batch_booking(candidate, course_id, proposed_slot):
                continue

            if parse_time_slot(candidate.time_slot) is None:
                logger.warning(
                    "Schedule %s has malformed time slot %r; ignoring it for conflicts",
                    candidate.id,
                    candidate.time_slot,
                )
                continue

            if do_time_slots_overlap(candidate.time_slot, proposed_slot):
                return ConflictResult(
                    allowed=False,
                    conflicting_schedule_id=candidate.id,
                    reason=(
                        f"{BUSY_MESSAGE}: already booked at {candidate.time_slot} "
                        f"on {DAY_NAMES[candidate.day_of_week]}"
                    ),
                )

        return ConflictResult.ok()

    def check_days(
        self,
        trainer_id: str,
        days_of_week: Sequence[int],
        week_start: Any,
        proposed_slot: str,
        existing_schedules: Iterable[Schedule],
        *,
        course_id: Optional[str] = None,
        exclude_schedule_id: Optional[str] = None,
    ) -> Dict[int, ConflictResult]:
        """
        Check the same slot on several days; each day is judged on its own.
        """
        schedules = list(existing_schedules)
        return {
            day: self.check_conflict(
                trainer_id,
                day,
                week_start,
                proposed_slot,
                schedules,
                course_id=course_id,
                exclude_schedule_id=exclude_schedule_id,
            )
            for day in dict.fromkeys(days_of_week)
        }

    def _candidates(
        self,
        *,
        trainer_id: str,
        day_of_week: int,
        week_start: Any,
        existing_schedules: Iterable[Schedule],
        exclude_schedule_id: Optional[str],
    ) -> List[Schedule]:
        target_week = week_anchor(week_start, self.week_starts_on)

        return [
            schedule for schedule in existing_schedules
            if schedule.trainer_id == trainer_id
            and schedule.id != exclude_schedule_id
            and schedule.day_of_week == day_of_week
            and schedule.is_occupying(self.occupying_statuses)
            and week_anchor(schedule.week_start, self.week_starts_on) == target_week
        ]

    @staticmethod
    def _is_batch_booking(
        candidate: Schedule,
        course_id: Optional[str],
        proposed_slot: str,
    ) -> bool:
        # Several students may share one course/trainer/day/slot.
        return (
            course_id is not None
            and candidate.course_id == course_id
            and candidate.time_slot == proposed_slot
        )

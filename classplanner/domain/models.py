"""
Domain models for weekly class schedules.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidStatusTransitionError

DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Role(str, Enum):
    ADMIN = "admin"
    SALES_CONSULTANT = "sales_consultant"
    TRAINER = "trainer"
    STUDENT = "student"


# Roles allowed to create, edit and change the status of schedules.
SCHEDULE_MANAGERS: FrozenSet[Role] = frozenset({Role.ADMIN, Role.SALES_CONSULTANT})

# Statuses that still block the trainer's time. Cancelled bookings free it.
OCCUPYING_STATUSES: FrozenSet[ScheduleStatus] = frozenset(
    {ScheduleStatus.ACTIVE, ScheduleStatus.PAUSED, ScheduleStatus.COMPLETED}
)

TERMINAL_STATUSES: FrozenSet[ScheduleStatus] = frozenset(
    {ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED}
)

ALLOWED_TRANSITIONS: Dict[ScheduleStatus, FrozenSet[ScheduleStatus]] = {
    ScheduleStatus.ACTIVE: frozenset(
        {ScheduleStatus.PAUSED, ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED}
    ),
    ScheduleStatus.PAUSED: frozenset(
        {ScheduleStatus.ACTIVE, ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED}
    ),
    ScheduleStatus.CANCELLED: frozenset(),
    ScheduleStatus.COMPLETED: frozenset(),
}


def can_transition(current: ScheduleStatus, target: ScheduleStatus) -> bool:
    """Check whether ``current -> target`` is a legal lifecycle step."""
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]


def can_manage_schedules(role: Role) -> bool:
    """Return True if the role may book or modify schedules."""
    return role in SCHEDULE_MANAGERS


def to_date(value: Any) -> Date:
    """
    Coerce a string, ``date`` or ``datetime`` to a pendulum ``Date``.

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if isinstance(value, datetime):
        return Date(value.year, value.month, value.day)
    if isinstance(value, date):
        return Date(value.year, value.month, value.day)
    if isinstance(value, str):
        parsed = pendulum.parse(value)
        if isinstance(parsed, DateTime):
            return parsed.date()
        if isinstance(parsed, Date):
            return parsed
    raise ValueError(f"Cannot interpret {value!r} as a date")


def week_anchor(value: Any, week_starts_on: int = 0) -> Date:
    """
    Return the first day of the week containing ``value``.

    ``week_starts_on`` uses the schedule convention (0=Sunday, 6=Saturday).
    """
    day = to_date(value)
    offset = (day.isoweekday() % 7 - week_starts_on) % 7
    return day.subtract(days=offset)


@dataclass
class Schedule:
    """
    A recurring weekly class booking.

    ``day_of_week`` follows the 0=Sunday convention. ``time_slot`` is the
    canonical ``HH:MM-HH:MM`` string.
    """
    id: str
    course_id: str
    week_start: Date
    day_of_week: int
    time_slot: str
    created_by: str
    student_id: Optional[str] = None
    trainer_id: Optional[str] = None
    status: ScheduleStatus = ScheduleStatus.ACTIVE
    created_at: DateTime = field(default_factory=pendulum.now)
    updated_at: DateTime = field(default_factory=pendulum.now)

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        self.week_start = to_date(self.week_start)
        self.status = ScheduleStatus(self.status)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    def is_occupying(self, occupying: FrozenSet[ScheduleStatus] = OCCUPYING_STATUSES) -> bool:
        """Return True if this booking still blocks its trainer's time."""
        return self.status in occupying

    def with_status(self, target: ScheduleStatus) -> "Schedule":
        """
        Return a copy moved to ``target``.

        Raises:
            InvalidStatusTransitionError: If the lifecycle forbids the change
        """
        target = ScheduleStatus(target)
        if not can_transition(self.status, target):
            raise InvalidStatusTransitionError(
                f"Cannot change schedule {self.id} from {self.status.value} to {target.value}"
            )
        return replace(self, status=target, updated_at=pendulum.now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "courseId": self.course_id,
            "studentId": self.student_id,
            "trainerId": self.trainer_id,
            "weekStart": self.week_start.to_date_string(),
            "dayOfWeek": self.day_of_week,
            "timeSlot": self.time_slot,
            "status": self.status.value,
            "createdBy": self.created_by,
            "createdAt": self.created_at.to_iso8601_string(),
            "updatedAt": self.updated_at.to_iso8601_string(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Schedule":
        """
        Build a schedule from its stored representation.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a field has an invalid value
        """
        now = pendulum.now()
        created_at = pendulum.parse(data["createdAt"]) if data.get("createdAt") else now
        updated_at = pendulum.parse(data["updatedAt"]) if data.get("updatedAt") else created_at
        return cls(
            id=data["id"],
            course_id=data["courseId"],
            student_id=data.get("studentId"),
            trainer_id=data.get("trainerId"),
            week_start=to_date(data["weekStart"]),
            day_of_week=int(data["dayOfWeek"]),
            time_slot=data["timeSlot"],
            status=ScheduleStatus(data.get("status") or ScheduleStatus.ACTIVE.value),
            created_by=data["createdBy"],
            created_at=created_at,
            updated_at=updated_at,
        )


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of checking one proposed booking against a trainer's calendar."""
    allowed: bool
    conflicting_schedule_id: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ConflictResult":
        return cls(allowed=True)

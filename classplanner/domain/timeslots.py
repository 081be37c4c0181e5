"""
Time slot model for weekly class scheduling.

A slot is a fixed-length class window written canonically as ``"HH:MM-HH:MM"``
(zero-padded, 24-hour). All arithmetic happens in integer minutes since
midnight; no timezone conversion is applied anywhere in this module.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

SLOT_PATTERN = re.compile(r"^(\d{2}:\d{2})-(\d{2}:\d{2})$")


def time_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to a zero-padded ``HH:MM`` string."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_12_hour(hour: int, minute: int) -> str:
    """
    Render a wall-clock time as a 12-hour label.

    Minutes are only shown when non-zero: ``9 AM``, ``9:20 AM``, ``12 PM``.
    """
    period = "PM" if hour >= 12 else "AM"
    if hour == 0:
        display_hour = 12
    elif hour > 12:
        display_hour = hour - 12
    else:
        display_hour = hour
    display_minute = f":{minute:02d}" if minute else ""
    return f"{display_hour}{display_minute} {period}"


@dataclass(frozen=True)
class SlotRules:
    """
    The bookable window for one scheduling day.

    Invariant: a slot starting at ``last_start`` must still end by ``day_end``.
    """
    first_start: int = 9 * 60
    last_start: int = 19 * 60
    step_minutes: int = 20
    duration_minutes: int = 120
    day_end: int = 21 * 60

    def __post_init__(self):
        if self.step_minutes <= 0 or self.duration_minutes <= 0:
            raise ValueError("step_minutes and duration_minutes must be positive")
        if self.first_start > self.last_start:
            raise ValueError(
                f"first_start {minutes_to_time(self.first_start)} is after "
                f"last_start {minutes_to_time(self.last_start)}"
            )
        if self.last_start + self.duration_minutes > self.day_end:
            raise ValueError(
                f"A slot starting at {minutes_to_time(self.last_start)} would end after "
                f"{minutes_to_time(self.day_end)}"
            )

    def slot_count(self) -> int:
        """Number of slots the generator yields for these rules."""
        return (self.last_start - self.first_start) // self.step_minutes + 1


DEFAULT_SLOT_RULES = SlotRules()


@dataclass(frozen=True)
class ParsedSlot:
    """Start and end of a slot string, as ``HH:MM`` values."""
    start_time: str
    end_time: str

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end_minutes - self.start_minutes


@dataclass(frozen=True)
class SlotOption:
    """A generated slot, ready for display in a picker."""
    value: str
    label: str
    start_time: str
    end_time: str


def generate_time_slots(rules: SlotRules = DEFAULT_SLOT_RULES) -> List[SlotOption]:
    """
    Produce every legal slot for one scheduling day, in start-time order.

    Start times run from ``rules.first_start`` to ``rules.last_start`` inclusive
    in ``rules.step_minutes`` increments. Each call returns a new list.
    """
    slots: List[SlotOption] = []

    for start in range(rules.first_start, rules.last_start + 1, rules.step_minutes):
        end = start + rules.duration_minutes
        start_time = minutes_to_time(start)
        end_time = minutes_to_time(end)
        label = (
            f"{format_12_hour(start // 60, start % 60)} - "
            f"{format_12_hour(end // 60, end % 60)}"
        )
        slots.append(
            SlotOption(
                value=f"{start_time}-{end_time}",
                label=label,
                start_time=start_time,
                end_time=end_time,
            )
        )

    return slots


def parse_time_slot(slot: object) -> Optional[ParsedSlot]:
    """
    Split a canonical slot string into its start and end times.

    Returns None for anything that is not exactly ``HH:MM-HH:MM``; callers
    must treat None as "invalid, do not proceed".
    """
    if not isinstance(slot, str):
        return None

    match = SLOT_PATTERN.match(slot)
    if not match:
        return None

    return ParsedSlot(start_time=match.group(1), end_time=match.group(2))


def is_valid_time_slot(slot: object, rules: SlotRules = DEFAULT_SLOT_RULES) -> bool:
    """
    Check that a slot is well formed and bookable under ``rules``.

    Requires the start inside ``[first_start, last_start]``, the exact class
    duration, and an end no later than ``day_end``.
    """
    parsed = parse_time_slot(slot)
    if parsed is None:
        return False

    start = parsed.start_minutes
    end = parsed.end_minutes

    return (
        rules.first_start <= start <= rules.last_start
        and end - start == rules.duration_minutes
        and end <= rules.day_end
    )

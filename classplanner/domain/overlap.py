"""
Temporal comparison of slot strings.
"""

from .exceptions import InvalidTimeSlotError
from .timeslots import ParsedSlot, parse_time_slot


def _overlaps(first: ParsedSlot, second: ParsedSlot) -> bool:
    # Half-open intervals: back-to-back slots do not overlap.
    return (
        first.start_minutes < second.end_minutes
        and second.start_minutes < first.end_minutes
    )


def do_time_slots_overlap(first: str, second: str) -> bool:
    """
    Check whether two slot strings overlap in time.

    If either side does not parse, this reports no overlap.
    """
    parsed_first = parse_time_slot(first)
    parsed_second = parse_time_slot(second)

    if parsed_first is None or parsed_second is None:
        return False

    return _overlaps(parsed_first, parsed_second)


def slots_overlap_strict(first: str, second: str) -> bool:
    """
    Like ``do_time_slots_overlap`` but raises on malformed input.

    Raises:
        InvalidTimeSlotError: If either slot string does not parse
    """
    parsed_first = parse_time_slot(first)
    if parsed_first is None:
        raise InvalidTimeSlotError(first)

    parsed_second = parse_time_slot(second)
    if parsed_second is None:
        raise InvalidTimeSlotError(second)

    return _overlaps(parsed_first, parsed_second)

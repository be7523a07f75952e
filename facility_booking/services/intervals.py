"""Wall-clock time parsing and the buffered interval overlap test."""

from __future__ import annotations

import re
from datetime import time

from facility_booking.domain.errors import InvalidTimeFormat

BUFFER_MINUTES = 30

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_of_day(value: str | time) -> time:
    """Return *value* as a ``datetime.time``, rejecting anything but ``HH:MM``.

    Seconds and microseconds are not part of a booking's schedule, so a
    ``time`` carrying them is rejected too.
    """
    if isinstance(value, time):
        if value.second or value.microsecond or value.tzinfo is not None:
            raise InvalidTimeFormat(value)
        return value
    if not isinstance(value, str):
        raise InvalidTimeFormat(value)

    m = _HHMM.match(value.strip())
    if m is None:
        raise InvalidTimeFormat(value)
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTimeFormat(value)
    return time(hours, minutes)


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def to_minutes(value: str | time) -> int:
    """Minutes since midnight for an ``HH:MM`` string or ``time``."""
    parsed = parse_time_of_day(value)
    return parsed.hour * 60 + parsed.minute


def overlaps(
    a_start: int,
    a_end: int,
    b_start: int,
    b_end: int,
    buffer_minutes: int = BUFFER_MINUTES,
) -> bool:
    """Return True when candidate interval *a*, widened by the buffer, meets *b*.

    Only *a* is widened: ``buffer_minutes`` is subtracted from its start and
    added to its end. Touching boundaries after widening are not conflicts.
    """
    return not (a_end + buffer_minutes <= b_start or a_start - buffer_minutes >= b_end)

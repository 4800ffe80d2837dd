"""Free-slot finder — one-hour openings inside a contractor's working day."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable

from app.services.availability import Window, intervals_overlap

SLOT_LENGTH = timedelta(hours=1)


def find_free_slots(
    day: date,
    working_hours_start: time,
    working_hours_end: time,
    occupied: Iterable[Window],
    tz: tzinfo = timezone.utc,
) -> list[datetime]:
    """Return start times of the free one-hour slots on *day*, earliest first.

    Slots start at ``working_hours_start`` and step by an hour while the slot
    start is before ``working_hours_end``, so a trailing partial hour still
    produces a slot. A slot is dropped when it overlaps any *occupied* window.
    An inverted or empty working day yields no slots.
    """
    busy = list(occupied)
    cursor = datetime.combine(day, working_hours_start, tzinfo=tz)
    day_end = datetime.combine(day, working_hours_end, tzinfo=tz)

    free: list[datetime] = []
    while cursor < day_end:
        slot_end = cursor + SLOT_LENGTH
        if not any(intervals_overlap(cursor, slot_end, b_start, b_end) for b_start, b_end in busy):
            free.append(cursor)
        cursor = slot_end
    return free

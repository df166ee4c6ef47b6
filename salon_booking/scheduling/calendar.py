# salon_booking/scheduling/calendar.py
"""
Calendar resolution: which parts of a date are unavailable and why.

Every closure is reported as its own tagged interval. Overlapping closures
are kept apart so a rejected booking can name the entity that caused it.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterable, List, Optional


class Cause(str, Enum):
    hours = "outside-hours"
    recurring_break = "break"
    block = "block"
    appointment = "appointment"


# Lower value is reported first when two intervals start together
CAUSE_PRECEDENCE = {
    Cause.hours: 0,
    Cause.recurring_break: 1,
    Cause.block: 2,
    Cause.appointment: 3,
}


@dataclass(frozen=True)
class UnavailableInterval:
    start: datetime
    end: datetime
    cause: Cause
    source_id: Optional[int] = None

    def sort_key(self):
        return (self.start, CAUSE_PRECEDENCE[self.cause])


def day_bounds(on_date: date):
    day_start = datetime.combine(on_date, time.min)
    return day_start, day_start + timedelta(days=1)


def _applies_to(professional_scope: Optional[int], professional_id: Optional[int]) -> bool:
    # unscoped closures cover everybody; with no professional asked for, include them all
    return professional_scope is None or professional_id is None or professional_scope == professional_id


def operating_hours_gaps(establishment, on_date: date) -> List[UnavailableInterval]:
    day_start, day_end = day_bounds(on_date)
    hours = establishment.hours_for(on_date.weekday())
    if hours is None:
        return [UnavailableInterval(day_start, day_end, Cause.hours)]

    open_at = datetime.combine(on_date, hours[0])
    close_at = datetime.combine(on_date, hours[1])
    gaps = []
    if open_at > day_start:
        gaps.append(UnavailableInterval(day_start, open_at, Cause.hours))
    if close_at < day_end:
        gaps.append(UnavailableInterval(close_at, day_end, Cause.hours))
    return gaps


def resolve_unavailable(
    establishment,
    on_date: date,
    breaks: Iterable,
    blocks: Iterable,
    professional_id: Optional[int] = None,
) -> List[UnavailableInterval]:
    """
    Build the unavailable intervals of one establishment (and optionally one
    professional) for ``on_date``.

    Args:
        establishment: provides ``id`` and ``hours_for(weekday)``
        on_date: the local calendar date
        breaks: recurring closures; only active ones whose weekday set holds
            ``on_date.weekday()`` are used
        blocks: one-off closures; only those dated ``on_date`` are used
        professional_id: narrows professional-scoped breaks and blocks

    Returns:
        Intervals sorted by start, ties ordered outside-hours, break, block.
    """
    weekday = on_date.weekday()
    intervals = operating_hours_gaps(establishment, on_date)

    for b in breaks:
        if b.establishment_id != establishment.id or not b.is_active:
            continue
        if weekday not in (b.days_of_week or []):
            continue
        if not _applies_to(b.professional_id, professional_id):
            continue
        intervals.append(
            UnavailableInterval(
                datetime.combine(on_date, b.start_time),
                datetime.combine(on_date, b.end_time),
                Cause.recurring_break,
                b.id,
            )
        )

    for blk in blocks:
        if blk.establishment_id != establishment.id or blk.block_date != on_date:
            continue
        if not _applies_to(blk.professional_id, professional_id):
            continue
        intervals.append(
            UnavailableInterval(
                datetime.combine(on_date, blk.start_time),
                datetime.combine(on_date, blk.end_time),
                Cause.block,
                blk.id,
            )
        )

    intervals.sort(key=UnavailableInterval.sort_key)
    return intervals

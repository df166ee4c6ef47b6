# salon_booking/scheduling/availability.py

from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Sequence

from salon_booking.exceptions import InvalidInput
from salon_booking.scheduling.calendar import UnavailableInterval
from salon_booking.scheduling.conflicts import detect_conflict


def is_aligned(start: datetime, open_at: datetime, granularity_minutes: int) -> bool:
    """True when ``start`` sits on the slot grid that begins at opening time."""
    if start.second or start.microsecond:
        return False
    offset = (start - open_at).total_seconds() / 60
    return offset % granularity_minutes == 0


class AvailableStarts:
    """
    Bookable start times for one professional, service duration and date.

    Iterating walks the grid from opening time in ``granularity_minutes``
    steps and yields every start whose ``[s, s + duration)`` passes conflict
    detection. The object holds only its inputs, so it can be iterated any
    number of times with the same result.
    """

    def __init__(
        self,
        establishment,
        on_date: date,
        duration_minutes: int,
        granularity_minutes: int,
        unavailable: Sequence[UnavailableInterval],
        appointments: Sequence = (),
        professional_id: Optional[int] = None,
        not_before: Optional[datetime] = None,
    ) -> None:
        if duration_minutes <= 0:
            raise InvalidInput("Service duration must be positive")
        if granularity_minutes <= 0:
            raise InvalidInput("Slot granularity must be positive")
        self.establishment = establishment
        self.on_date = on_date
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=granularity_minutes)
        self.unavailable = tuple(unavailable)
        self.appointments = tuple(appointments)
        self.professional_id = professional_id
        self.not_before = not_before

    def __iter__(self) -> Iterator[datetime]:
        hours = self.establishment.hours_for(self.on_date.weekday())
        if hours is None:
            return
        current = datetime.combine(self.on_date, hours[0])
        close_at = datetime.combine(self.on_date, hours[1])

        while current + self.duration <= close_at:
            candidate = current
            current += self.step
            if self.not_before is not None and candidate < self.not_before:
                continue
            conflict = detect_conflict(
                candidate,
                candidate + self.duration,
                self.unavailable,
                self.appointments,
                professional_id=self.professional_id,
            )
            if conflict is None:
                yield candidate

    def as_strings(self):
        return [s.time().strftime("%H:%M") for s in self]

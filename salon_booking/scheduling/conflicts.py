# salon_booking/scheduling/conflicts.py

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from salon_booking.scheduling.calendar import Cause, UnavailableInterval


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    # half-open intervals: touching endpoints do not overlap
    return start_a < end_b and start_b < end_a


@dataclass(frozen=True)
class ConflictReport:
    cause: Cause
    source_id: Optional[int]
    start: datetime
    end: datetime


def detect_conflict(
    start: datetime,
    end: datetime,
    unavailable: Sequence[UnavailableInterval],
    appointments: Iterable = (),
    professional_id: Optional[int] = None,
    exclude_appointment_id: Optional[int] = None,
) -> Optional[ConflictReport]:
    """
    First conflict for the candidate ``[start, end)``, or None.

    Closures are scanned in the order given (resolver order), then confirmed
    appointments by start time. The first hit wins so identical inputs always
    produce the same report.
    """
    for interval in unavailable:
        if overlaps(start, end, interval.start, interval.end):
            return ConflictReport(interval.cause, interval.source_id, interval.start, interval.end)

    ordered = sorted(appointments, key=lambda a: (a.scheduled_start, a.id or 0))
    for a in ordered:
        if a.status != "confirmed":
            continue
        if exclude_appointment_id is not None and a.id == exclude_appointment_id:
            continue
        if professional_id is not None and a.professional_id != professional_id:
            continue
        if overlaps(start, end, a.scheduled_start, a.scheduled_end):
            return ConflictReport(Cause.appointment, a.id, a.scheduled_start, a.scheduled_end)

    return None

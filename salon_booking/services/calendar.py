# salon_booking/services/calendar.py

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlmodel import Session

from salon_booking.clock import Clock, SystemClock
from salon_booking.config import Settings, get_settings
from salon_booking.exceptions import InvalidInput
from salon_booking.models import Establishment, Professional, Service
from salon_booking.scheduling.availability import AvailableStarts
from salon_booking.scheduling.calendar import UnavailableInterval, resolve_unavailable
from salon_booking.scheduling.conflicts import ConflictReport, detect_conflict
from salon_booking.services.lookups import (
    blocks_on,
    breaks_for,
    confirmed_appointments_on,
    get_or_404,
)

logger = logging.getLogger(__name__)


class CalendarService:
    """Read path: loads closures and appointments, then runs the pure computations."""

    def __init__(self, session: Session, clock: Optional[Clock] = None, settings: Optional[Settings] = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    def unavailable_intervals(
        self,
        establishment: Establishment,
        on_date: date,
        professional_id: Optional[int] = None,
    ) -> List[UnavailableInterval]:
        return resolve_unavailable(
            establishment,
            on_date,
            breaks_for(self.session, establishment.id),
            blocks_on(self.session, establishment.id, on_date),
            professional_id=professional_id,
        )

    def find_conflict(
        self,
        establishment: Establishment,
        professional_id: int,
        start: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[int] = None,
        fresh: bool = False,
    ) -> Optional[ConflictReport]:
        on_date = start.date()
        return detect_conflict(
            start,
            start + timedelta(minutes=duration_minutes),
            self.unavailable_intervals(establishment, on_date, professional_id),
            confirmed_appointments_on(self.session, professional_id, on_date, fresh=fresh),
            professional_id=professional_id,
            exclude_appointment_id=exclude_appointment_id,
        )

    def available_starts(
        self,
        establishment_id: int,
        professional_id: int,
        service_id: int,
        on_date: date,
    ) -> AvailableStarts:
        establishment = get_or_404(self.session, Establishment, establishment_id)
        professional = get_or_404(self.session, Professional, professional_id)
        service = get_or_404(self.session, Service, service_id)
        if professional.establishment_id != establishment.id or service.establishment_id != establishment.id:
            raise InvalidInput("Professional and service must belong to the establishment")

        if not professional.is_active:
            raise InvalidInput("Professional is not active", details={"professional_id": professional.id})
        if not service.is_active:
            raise InvalidInput("Service not available", details={"service_id": service.id})

        return AvailableStarts(
            establishment,
            on_date,
            service.duration_minutes,
            self.settings.slot_minutes,
            self.unavailable_intervals(establishment, on_date, professional.id),
            confirmed_appointments_on(self.session, professional.id, on_date),
            professional_id=professional.id,
            not_before=self.clock.now(),
        )

# salon_booking/services/booking.py
"""
Booking Transactor.

Every write re-runs conflict detection against freshly loaded state while
holding the professional's lock, so two overlapping requests for the same
professional can never both commit. Availability read earlier by the
client is only a hint.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from salon_booking.clock import Clock, SystemClock
from salon_booking.config import Settings, get_settings
from salon_booking.exceptions import Conflict, InvalidInput, InvalidTransition, PersistenceFailure
from salon_booking.locks import professional_lock
from salon_booking.models import Appointment, Client, Establishment, Professional, Service
from salon_booking.scheduling.availability import is_aligned
from salon_booking.schemas import AppointmentStatus, OperatingMode
from salon_booking.services.calendar import CalendarService
from salon_booking.services.lookups import get_or_404

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, session: Session, clock: Optional[Clock] = None, settings: Optional[Settings] = None):
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.calendar = CalendarService(session, self.clock, self.settings)

    # validation

    def _validate_start(self, establishment: Establishment, start: datetime, duration_minutes: int) -> None:
        if start.tzinfo is not None:
            raise InvalidInput(
                "Start time must be local time without a UTC offset",
                details={"starts_at": start.isoformat()},
            )
        if duration_minutes <= 0:
            raise InvalidInput("Duration must be a positive number of minutes")
        if start < self.clock.now():
            raise InvalidInput("Cannot book an appointment in the past")

        hours = establishment.hours_for(start.weekday())
        # closed weekdays fall through to the conflict check (outside-hours)
        if hours is not None:
            open_at = datetime.combine(start.date(), hours[0])
            if not is_aligned(start, open_at, self.settings.slot_minutes):
                raise InvalidInput(
                    f"Start time must be in {self.settings.slot_minutes}-minute increments from opening",
                    details={"starts_at": start.isoformat()},
                )

    def _load_parties(self, establishment_id: int, professional_id: int, service_id: int, client_id: int):
        establishment = get_or_404(self.session, Establishment, establishment_id)
        professional = get_or_404(self.session, Professional, professional_id)
        service = get_or_404(self.session, Service, service_id)
        client = get_or_404(self.session, Client, client_id)

        if establishment.operating_mode == OperatingMode.queue.value:
            raise InvalidInput("Establishment only serves the walk-in queue")
        if professional.establishment_id != establishment.id:
            raise InvalidInput("Professional does not work at this establishment")
        if not professional.is_active:
            raise InvalidInput("Professional is not active", details={"professional_id": professional.id})
        if service.establishment_id != establishment.id or not service.is_active:
            raise InvalidInput("Service not available", details={"service_id": service.id})
        if client.establishment_id != establishment.id:
            raise InvalidInput("Client belongs to another establishment")
        return establishment, professional, service, client

    def _lock_professional_row(self, professional_id: int) -> None:
        # row lock for databases that support it; SQLite relies on the process lock
        self.session.exec(
            select(Professional).where(Professional.id == professional_id).with_for_update()
        ).one()

    def _commit(self, action: str, **context) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "booking_commit_failed",
                extra={"action": action, "error": str(exc), **context},
            )
            raise PersistenceFailure("Could not save the booking, please retry") from exc

    def _reject(self, establishment: Establishment, professional_id: int, start: datetime,
                duration_minutes: int, exclude_appointment_id: Optional[int] = None) -> None:
        conflict = self.calendar.find_conflict(
            establishment,
            professional_id,
            start,
            duration_minutes,
            exclude_appointment_id=exclude_appointment_id,
            fresh=True,
        )
        if conflict is not None:
            self.session.rollback()
            logger.info(
                "booking_rejected",
                extra={
                    "professional_id": professional_id,
                    "starts_at": start.isoformat(),
                    "cause": conflict.cause.value,
                    "source_id": conflict.source_id,
                },
            )
            raise Conflict(conflict.cause.value, conflict.source_id)

    # operations

    def book_appointment(
        self,
        establishment_id: int,
        professional_id: int,
        service_id: int,
        client_id: int,
        start: datetime,
        notes: Optional[str] = None,
    ) -> Appointment:
        establishment, professional, service, client = self._load_parties(
            establishment_id, professional_id, service_id, client_id
        )
        self._validate_start(establishment, start, service.duration_minutes)

        with professional_lock(professional.id):
            self._lock_professional_row(professional.id)
            self._reject(establishment, professional.id, start, service.duration_minutes)

            now = self.clock.now()
            appt = Appointment(
                establishment_id=establishment.id,
                professional_id=professional.id,
                service_id=service.id,
                client_id=client.id,
                scheduled_start=start,
                duration_minutes=service.duration_minutes,
                status=AppointmentStatus.confirmed.value,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            self.session.add(appt)
            self._commit("book", professional_id=professional.id)

        self.session.refresh(appt)  # fills appt.id
        logger.info(
            "appointment_booked",
            extra={
                "appointment_id": appt.id,
                "professional_id": professional.id,
                "starts_at": start.isoformat(),
            },
        )
        return appt

    def reschedule_appointment(
        self,
        appointment_id: int,
        new_start: datetime,
        new_duration: Optional[int] = None,
    ) -> Appointment:
        appt = get_or_404(self.session, Appointment, appointment_id)
        if appt.status != AppointmentStatus.confirmed.value:
            raise InvalidTransition(appt.status, "rescheduled")
        establishment = get_or_404(self.session, Establishment, appt.establishment_id)
        duration = appt.duration_minutes if new_duration is None else new_duration
        self._validate_start(establishment, new_start, duration)

        with professional_lock(appt.professional_id):
            self._lock_professional_row(appt.professional_id)
            self.session.refresh(appt)
            if appt.status != AppointmentStatus.confirmed.value:
                raise InvalidTransition(appt.status, "rescheduled")
            self._reject(establishment, appt.professional_id, new_start, duration, exclude_appointment_id=appt.id)

            appt.scheduled_start = new_start
            appt.duration_minutes = duration
            appt.updated_at = self.clock.now()
            self.session.add(appt)
            self._commit("reschedule", appointment_id=appt.id)

        self.session.refresh(appt)
        logger.info(
            "appointment_rescheduled",
            extra={"appointment_id": appt.id, "starts_at": new_start.isoformat(), "duration": duration},
        )
        return appt

    def cancel_appointment(self, appointment_id: int) -> Appointment:
        appt = get_or_404(self.session, Appointment, appointment_id)
        if appt.status == AppointmentStatus.cancelled.value:
            return appt
        if appt.status == AppointmentStatus.completed.value:
            raise InvalidTransition(appt.status, AppointmentStatus.cancelled.value)

        with professional_lock(appt.professional_id):
            self._lock_professional_row(appt.professional_id)
            self.session.refresh(appt)
            if appt.status == AppointmentStatus.cancelled.value:
                return appt
            if appt.status == AppointmentStatus.completed.value:
                raise InvalidTransition(appt.status, AppointmentStatus.cancelled.value)

            appt.status = AppointmentStatus.cancelled.value
            appt.updated_at = self.clock.now()
            self.session.add(appt)
            self._commit("cancel", appointment_id=appt.id)

        self.session.refresh(appt)
        logger.info("appointment_cancelled", extra={"appointment_id": appt.id})
        return appt

    def complete_appointment(self, appointment_id: int) -> Appointment:
        appt = get_or_404(self.session, Appointment, appointment_id)
        if appt.status == AppointmentStatus.completed.value:
            return appt
        if appt.status != AppointmentStatus.confirmed.value:
            raise InvalidTransition(appt.status, AppointmentStatus.completed.value)

        with professional_lock(appt.professional_id):
            self._lock_professional_row(appt.professional_id)
            self.session.refresh(appt)
            if appt.status == AppointmentStatus.completed.value:
                return appt
            if appt.status != AppointmentStatus.confirmed.value:
                raise InvalidTransition(appt.status, AppointmentStatus.completed.value)

            appt.status = AppointmentStatus.completed.value
            appt.updated_at = self.clock.now()
            self.session.add(appt)
            self._commit("complete", appointment_id=appt.id)

        self.session.refresh(appt)
        logger.info("appointment_completed", extra={"appointment_id": appt.id})
        return appt

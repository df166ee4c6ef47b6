# salon_booking/routers/appointments_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from salon_booking.auth import get_current_user
from salon_booking.clock import Clock
from salon_booking.config import Settings
from salon_booking.db import get_session
from salon_booking.deps import get_app_settings, get_clock, require_owner
from salon_booking.models import Appointment, Establishment
from salon_booking.scheduling.calendar import day_bounds
from salon_booking.schemas import (
    AppointmentCreate,
    AppointmentPublic,
    AppointmentReschedule,
    AppointmentStatus,
)
from salon_booking.services.booking import BookingService
from salon_booking.services.lookups import get_or_404, get_or_create_client

router = APIRouter(
    tags=["appointments"],
)


def _booking(session, clock, settings) -> BookingService:
    return BookingService(session, clock, settings)


@router.post("/establishments/{establishment_id}/appointments", response_model=AppointmentPublic, status_code=201)
def book_appointment(
    establishment_id: int,
    appt: AppointmentCreate,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_app_settings),
):
    get_or_404(session, Establishment, establishment_id)
    client = get_or_create_client(session, establishment_id, **appt.client.model_dump())
    return _booking(session, clock, settings).book_appointment(
        establishment_id,
        appt.professional_id,
        appt.service_id,
        client.id,
        appt.starts_at,
        notes=appt.notes,
    )


@router.get("/establishments/{establishment_id}/appointments", response_model=List[AppointmentPublic])
def list_appointments(
    establishment_id: int,
    status: Optional[str] = "confirmed",
    on_date: Optional[date] = None,
    professional_id: Optional[int] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_owner(session, current_user, establishment_id)

    allowed = {s.value for s in AppointmentStatus} | {"all"}
    if status not in allowed:
        raise HTTPException(status_code=422, detail="status must be 'confirmed', 'completed', 'cancelled', or 'all'")

    stmt = select(Appointment).where(Appointment.establishment_id == establishment_id)
    if on_date is not None:
        day_start_dt, day_end_dt = day_bounds(on_date)
        stmt = stmt.where(Appointment.scheduled_start >= day_start_dt).where(Appointment.scheduled_start < day_end_dt)
    if professional_id is not None:
        stmt = stmt.where(Appointment.professional_id == professional_id)
    if status != "all":
        stmt = stmt.where(Appointment.status == status)

    return session.exec(stmt.order_by(Appointment.scheduled_start)).all()


@router.patch("/appointments/{appt_id}/reschedule", response_model=AppointmentPublic)
def reschedule_appointment(
    appt_id: int,
    payload: AppointmentReschedule,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_app_settings),
    current_user: dict = Depends(get_current_user),
):
    appt = get_or_404(session, Appointment, appt_id)
    require_owner(session, current_user, appt.establishment_id)
    return _booking(session, clock, settings).reschedule_appointment(
        appt_id, payload.starts_at, payload.duration_minutes
    )


@router.patch("/appointments/{appt_id}/cancel", response_model=AppointmentPublic)
def cancel_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_app_settings),
    current_user: dict = Depends(get_current_user),
):
    appt = get_or_404(session, Appointment, appt_id)
    require_owner(session, current_user, appt.establishment_id)
    return _booking(session, clock, settings).cancel_appointment(appt_id)


@router.patch("/appointments/{appt_id}/complete", response_model=AppointmentPublic)
def complete_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_app_settings),
    current_user: dict = Depends(get_current_user),
):
    appt = get_or_404(session, Appointment, appt_id)
    require_owner(session, current_user, appt.establishment_id)
    return _booking(session, clock, settings).complete_appointment(appt_id)

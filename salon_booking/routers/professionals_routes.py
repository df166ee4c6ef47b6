# salon_booking/routers/professionals_routes.py

from datetime import date
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from salon_booking.auth import get_current_user
from salon_booking.clock import Clock
from salon_booking.config import Settings
from salon_booking.db import get_session
from salon_booking.deps import get_app_settings, get_clock, require_owner
from salon_booking.models import Establishment, Professional
from salon_booking.schemas import AvailabilityResponse, ProfessionalCreate, ProfessionalPublic
from salon_booking.services.calendar import CalendarService
from salon_booking.services.lookups import get_or_404

router = APIRouter(
    prefix="/establishments/{establishment_id}/professionals",
    tags=["professionals"],
)


@router.post("", response_model=ProfessionalPublic, status_code=201)
def create_professional(
    establishment_id: int,
    payload: ProfessionalCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_owner(session, current_user, establishment_id)
    professional = Professional(establishment_id=establishment_id, **payload.model_dump())
    session.add(professional)
    session.commit()
    session.refresh(professional)
    return professional


@router.get("", response_model=List[ProfessionalPublic])
def list_professionals(establishment_id: int, session: Session = Depends(get_session)):
    get_or_404(session, Establishment, establishment_id)
    return session.exec(
        select(Professional).where(Professional.establishment_id == establishment_id).order_by(Professional.name)
    ).all()


@router.get("/{professional_id}/availability", response_model=AvailabilityResponse)
def professional_availability(
    establishment_id: int,
    professional_id: int,
    service_id: int,
    date: date,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_app_settings),
):
    starts = CalendarService(session, clock, settings).available_starts(
        establishment_id, professional_id, service_id, date
    )
    return {
        "professional_id": professional_id,
        "service_id": service_id,
        "date": date,
        "available_starts": starts.as_strings(),
    }

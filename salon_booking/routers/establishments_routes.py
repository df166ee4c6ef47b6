# salon_booking/routers/establishments_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from salon_booking.auth import get_current_user
from salon_booking.db import get_session
from salon_booking.deps import require_owner, require_role
from salon_booking.exceptions import InvalidInput
from salon_booking.models import Establishment, Service
from salon_booking.schemas import (
    CalendarResponse,
    EstablishmentCreate,
    EstablishmentPublic,
    EstablishmentUpdate,
    ServiceCreate,
    ServicePublic,
)
from salon_booking.services.calendar import CalendarService
from salon_booking.services.lookups import get_or_404

router = APIRouter(
    prefix="/establishments",
    tags=["establishments"],
)


def _hours_to_strings(weekday_hours) -> dict:
    return {day: [t.strftime("%H:%M") for t in hours] for day, hours in weekday_hours.items()}


@router.post("", response_model=EstablishmentPublic, status_code=201)
def create_establishment(
    payload: EstablishmentCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "owner")
    establishment = Establishment(
        owner_id=current_user["id"],
        name=payload.name,
        phone=payload.phone,
        operating_mode=payload.operating_mode.value,
        open_time=payload.open_time,
        close_time=payload.close_time,
        closed_days=payload.closed_days,
        weekday_hours=_hours_to_strings(payload.weekday_hours),
    )
    session.add(establishment)
    session.commit()
    session.refresh(establishment)
    return establishment


@router.get("/{establishment_id}", response_model=EstablishmentPublic)
def get_establishment(establishment_id: int, session: Session = Depends(get_session)):
    return get_or_404(session, Establishment, establishment_id)


@router.patch("/{establishment_id}", response_model=EstablishmentPublic)
def update_establishment(
    establishment_id: int,
    payload: EstablishmentUpdate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    establishment = require_owner(session, current_user, establishment_id)
    changes = payload.model_dump(exclude_unset=True)
    if "operating_mode" in changes and changes["operating_mode"] is not None:
        changes["operating_mode"] = payload.operating_mode.value
    if changes.get("weekday_hours") is not None:
        changes["weekday_hours"] = _hours_to_strings(payload.weekday_hours)
    for field, value in changes.items():
        if value is not None:
            setattr(establishment, field, value)

    if establishment.open_time >= establishment.close_time:
        raise InvalidInput("open_time must be before close_time")

    session.add(establishment)
    session.commit()
    session.refresh(establishment)
    return establishment


@router.post("/{establishment_id}/services", response_model=ServicePublic, status_code=201)
def create_service(
    establishment_id: int,
    payload: ServiceCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_owner(session, current_user, establishment_id)
    service = Service(establishment_id=establishment_id, **payload.model_dump())
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@router.get("/{establishment_id}/services", response_model=List[ServicePublic])
def list_services(establishment_id: int, session: Session = Depends(get_session)):
    get_or_404(session, Establishment, establishment_id)
    return session.exec(
        select(Service).where(Service.establishment_id == establishment_id).order_by(Service.name)
    ).all()


@router.get("/{establishment_id}/calendar", response_model=CalendarResponse)
def establishment_calendar(
    establishment_id: int,
    date: date,
    professional_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    establishment = get_or_404(session, Establishment, establishment_id)
    intervals = CalendarService(session).unavailable_intervals(establishment, date, professional_id)
    return {
        "establishment_id": establishment.id,
        "professional_id": professional_id,
        "date": date,
        "unavailable": [
            {"start": i.start, "end": i.end, "cause": i.cause.value, "source_id": i.source_id}
            for i in intervals
        ],
    }

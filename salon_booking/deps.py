# salon_booking/deps.py

from fastapi import HTTPException
from sqlmodel import Session

from salon_booking.clock import Clock, SystemClock
from salon_booking.config import Settings, get_settings
from salon_booking.models import Establishment
from salon_booking.services.lookups import get_or_404

_clock = SystemClock()


def get_clock() -> Clock:
    return _clock


def get_app_settings() -> Settings:
    return get_settings()


def require_role(user: dict, role: str):
    if user["role"] != role:
        raise HTTPException(status_code=403, detail="Forbidden")


def require_owner(session: Session, user: dict, establishment_id: int) -> Establishment:
    establishment = get_or_404(session, Establishment, establishment_id)
    if establishment.owner_id != user["id"]:
        raise HTTPException(status_code=403, detail="Forbidden")
    return establishment

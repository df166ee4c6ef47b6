# salon_booking/services/lookups.py

from datetime import date
from typing import List, Optional, Type, TypeVar

from sqlmodel import Session, SQLModel, select

from salon_booking.exceptions import NotFound
from salon_booking.models import Appointment, Break, Client, TimeBlock
from salon_booking.scheduling.calendar import day_bounds

ModelT = TypeVar("ModelT", bound=SQLModel)


def get_or_404(session: Session, model: Type[ModelT], obj_id: int, label: Optional[str] = None) -> ModelT:
    obj = session.get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label or model.__name__} not found", details={"id": obj_id})
    return obj


def breaks_for(session: Session, establishment_id: int) -> List[Break]:
    return session.exec(
        select(Break)
        .where(Break.establishment_id == establishment_id)
        .where(Break.is_active == True)  # noqa: E712
    ).all()


def blocks_on(session: Session, establishment_id: int, on_date: date) -> List[TimeBlock]:
    return session.exec(
        select(TimeBlock)
        .where(TimeBlock.establishment_id == establishment_id)
        .where(TimeBlock.block_date == on_date)
    ).all()


def confirmed_appointments_on(
    session: Session,
    professional_id: int,
    on_date: date,
    fresh: bool = False,
) -> List[Appointment]:
    day_start, day_end = day_bounds(on_date)
    stmt = (
        select(Appointment)
        .where(Appointment.professional_id == professional_id)
        .where(Appointment.status == "confirmed")
        .where(Appointment.scheduled_start >= day_start)
        .where(Appointment.scheduled_start < day_end)
        .order_by(Appointment.scheduled_start)
    )
    if fresh:
        # bypass the identity map: another session may have just committed
        stmt = stmt.execution_options(populate_existing=True)
    return session.exec(stmt).all()


def get_or_create_client(session: Session, establishment_id: int, name: str, phone: str,
                         whatsapp: Optional[str] = None, email: Optional[str] = None) -> Client:
    client = session.exec(
        select(Client)
        .where(Client.establishment_id == establishment_id)
        .where(Client.phone == phone)
    ).first()
    if client is None:
        client = Client(establishment_id=establishment_id, name=name, phone=phone, whatsapp=whatsapp, email=email)
        session.add(client)
        session.commit()
        session.refresh(client)
    return client

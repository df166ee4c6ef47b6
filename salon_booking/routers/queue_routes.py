# salon_booking/routers/queue_routes.py

from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from salon_booking.auth import get_current_user
from salon_booking.clock import Clock
from salon_booking.db import get_session
from salon_booking.deps import get_clock, require_owner
from salon_booking.models import Establishment, QueueEntry
from salon_booking.schemas import QueueAdvance, QueueEntryPublic, QueueJoin
from salon_booking.services.lookups import get_or_404, get_or_create_client
from salon_booking.services.queue import QueueService

router = APIRouter(
    tags=["queue"],
)


@router.post("/establishments/{establishment_id}/queue", response_model=QueueEntryPublic, status_code=201)
def join_queue(
    establishment_id: int,
    payload: QueueJoin,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    get_or_404(session, Establishment, establishment_id)
    client = get_or_create_client(session, establishment_id, **payload.client.model_dump())
    return QueueService(session, clock).enqueue(establishment_id, client.id, payload.service_id)


@router.get("/establishments/{establishment_id}/queue", response_model=List[QueueEntryPublic])
def list_queue(
    establishment_id: int,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    return QueueService(session, clock).list_queue(establishment_id)


@router.patch("/queue/{entry_id}/status", response_model=QueueEntryPublic)
def advance_entry(
    entry_id: int,
    payload: QueueAdvance,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    current_user: dict = Depends(get_current_user),
):
    entry = get_or_404(session, QueueEntry, entry_id, "Queue entry")
    require_owner(session, current_user, entry.establishment_id)
    return QueueService(session, clock).advance(entry_id, payload.status)


@router.delete("/queue/{entry_id}", response_model=QueueEntryPublic)
def remove_from_queue(
    entry_id: int,
    session: Session = Depends(get_session),
    clock: Clock = Depends(get_clock),
    current_user: dict = Depends(get_current_user),
):
    entry = get_or_404(session, QueueEntry, entry_id, "Queue entry")
    require_owner(session, current_user, entry.establishment_id)
    return QueueService(session, clock).remove(entry_id)

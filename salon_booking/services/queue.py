# salon_booking/services/queue.py
"""
Queue Manager.

Positions of the non-terminal entries of one establishment always read
1..N. Every mutation runs under the establishment's queue lock and writes
the status change and the renumbering in a single commit.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, select

from salon_booking.clock import Clock, SystemClock
from salon_booking.exceptions import InvalidInput, InvalidTransition, PersistenceFailure
from salon_booking.locks import queue_lock
from salon_booking.models import Client, Establishment, QueueEntry, Service
from salon_booking.schemas import OperatingMode, QueueStatus
from salon_booking.services.lookups import get_or_404

logger = logging.getLogger(__name__)

TRANSITIONS = {
    QueueStatus.waiting: {QueueStatus.called, QueueStatus.cancelled},
    QueueStatus.called: {QueueStatus.in_service, QueueStatus.cancelled, QueueStatus.no_show},
    QueueStatus.in_service: {QueueStatus.completed},
}
TERMINAL = {QueueStatus.completed, QueueStatus.cancelled, QueueStatus.no_show}
ACTIVE = [s.value for s in QueueStatus if s not in TERMINAL]


def can_transition(current: QueueStatus, requested: QueueStatus) -> bool:
    return requested in TRANSITIONS.get(current, set())


class QueueService:
    def __init__(self, session: Session, clock: Optional[Clock] = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _lock_establishment_row(self, establishment_id: int) -> None:
        self.session.exec(
            select(Establishment).where(Establishment.id == establishment_id).with_for_update()
        ).one()

    def _commit(self, action: str, **context) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("queue_commit_failed", extra={"action": action, "error": str(exc), **context})
            raise PersistenceFailure("Could not update the queue, please retry") from exc

    def list_queue(self, establishment_id: int) -> List[QueueEntry]:
        get_or_404(self.session, Establishment, establishment_id)
        return self.session.exec(
            select(QueueEntry)
            .where(QueueEntry.establishment_id == establishment_id)
            .where(QueueEntry.status.in_(ACTIVE))
            .order_by(QueueEntry.position)
        ).all()

    def enqueue(self, establishment_id: int, client_id: int, service_id: int) -> QueueEntry:
        establishment = get_or_404(self.session, Establishment, establishment_id)
        client = get_or_404(self.session, Client, client_id)
        service = get_or_404(self.session, Service, service_id)
        if establishment.operating_mode == OperatingMode.scheduled.value:
            raise InvalidInput("Establishment only takes scheduled appointments")
        if client.establishment_id != establishment.id:
            raise InvalidInput("Client belongs to another establishment")
        if service.establishment_id != establishment.id or not service.is_active:
            raise InvalidInput("Service not available", details={"service_id": service.id})

        with queue_lock(establishment.id):
            self._lock_establishment_row(establishment.id)
            last = self.session.exec(
                select(func.max(QueueEntry.position))
                .where(QueueEntry.establishment_id == establishment.id)
                .where(QueueEntry.status.in_(ACTIVE))
            ).one()
            entry = QueueEntry(
                establishment_id=establishment.id,
                client_id=client.id,
                service_id=service.id,
                position=(last or 0) + 1,
                status=QueueStatus.waiting.value,
                joined_at=self.clock.now(),
            )
            self.session.add(entry)
            self._commit("enqueue", establishment_id=establishment.id)

        self.session.refresh(entry)
        logger.info(
            "queue_joined",
            extra={"entry_id": entry.id, "establishment_id": establishment.id, "position": entry.position},
        )
        return entry

    def advance(self, entry_id: int, new_status: QueueStatus) -> QueueEntry:
        new_status = QueueStatus(new_status)
        entry = get_or_404(self.session, QueueEntry, entry_id, "Queue entry")

        with queue_lock(entry.establishment_id):
            self._lock_establishment_row(entry.establishment_id)
            self.session.refresh(entry)
            current = QueueStatus(entry.status)
            if not can_transition(current, new_status):
                raise InvalidTransition(current.value, new_status.value)

            now = self.clock.now()
            entry.status = new_status.value
            if new_status == QueueStatus.called:
                entry.called_at = now
            if new_status in TERMINAL:
                entry.completed_at = now
                self._close_gap(entry)
            self.session.add(entry)
            self._commit("advance", entry_id=entry.id)

        self.session.refresh(entry)
        logger.info(
            "queue_transition",
            extra={"entry_id": entry.id, "from_status": current.value, "to_status": new_status.value},
        )
        return entry

    def remove(self, entry_id: int) -> QueueEntry:
        """Cancel an entry and close its gap. Already-terminal entries are returned unchanged."""
        entry = get_or_404(self.session, QueueEntry, entry_id, "Queue entry")
        if QueueStatus(entry.status) in TERMINAL:
            return entry
        return self.advance(entry_id, QueueStatus.cancelled)

    def _close_gap(self, entry: QueueEntry) -> None:
        behind = self.session.exec(
            select(QueueEntry)
            .where(QueueEntry.establishment_id == entry.establishment_id)
            .where(QueueEntry.id != entry.id)
            .where(QueueEntry.status.in_(ACTIVE))
            .where(QueueEntry.position > entry.position)
            .order_by(QueueEntry.position)
            .execution_options(populate_existing=True)
        ).all()
        for other in behind:
            other.position -= 1
            self.session.add(other)

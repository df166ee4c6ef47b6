# salon_booking/services/notifications.py
"""
Notification Scheduler

Periodic sweep that reminds clients of upcoming events:
- confirmed appointments entering a reminder window ("before_60m", ...)
- waiting queue entries that reached the "you're next" position

Each (entity, reminder kind) pair is sent at most once. The ledger row is
written only after the dispatcher confirms the send, and its unique
constraint rejects a second write. Failed sends are counted and retried on
later sweeps until ``max_dispatch_retries`` is reached.
Sweeps are triggered by the Celery beat schedule in ``salon_booking.tasks``.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from salon_booking.clock import Clock, SystemClock
from salon_booking.config import Settings, get_settings
from salon_booking.models import (
    Appointment,
    Client,
    DispatchAttempt,
    Establishment,
    QueueEntry,
    ReminderRecord,
    Service,
)
from salon_booking.schemas import AppointmentStatus, QueueStatus
from salon_booking.services.messaging import MessageDispatcher

logger = logging.getLogger(__name__)

APPOINTMENT = "appointment"
QUEUE_ENTRY = "queue_entry"
QUEUE_NEXT = "queue_next"


def window_kind(minutes: int) -> str:
    return f"before_{minutes}m"


def reminder_message(client_name: str, shop_name: str, service_name: str, starts_at: datetime) -> str:
    return (
        f"Hi {client_name}! Reminder: your appointment is coming up.\n\n"
        f"{shop_name}\n"
        f"Service: {service_name}\n"
        f"Time: {starts_at.strftime('%d/%m/%Y %H:%M')}\n\n"
        "If you can't make it, please let us know in advance."
    )


def queue_next_message(client_name: str, shop_name: str, position: int) -> str:
    ahead = position - 1
    wait = "You're next!" if ahead == 0 else f"Only {ahead} ahead of you."
    return f"Hi {client_name}! {wait}\n\n{shop_name}\nPlease head over so we can call you."


@dataclass(frozen=True)
class ReminderCandidate:
    entity_kind: str
    entity_id: int
    reminder_kind: str
    recipient: str
    message: str


@dataclass
class SweepResult:
    dispatched: int = 0
    failed: int = 0
    abandoned: int = 0
    duplicates: int = 0
    skipped: bool = False


class NotificationScheduler:
    def __init__(
        self,
        engine: Engine,
        dispatcher: MessageDispatcher,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.engine = engine
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self._sweep_lock = threading.Lock()

    # candidate discovery

    def _already_handled(self, session: Session, entity_kind: str, entity_id: int, reminder_kind: str) -> bool:
        sent = session.exec(
            select(ReminderRecord)
            .where(ReminderRecord.entity_kind == entity_kind)
            .where(ReminderRecord.entity_id == entity_id)
            .where(ReminderRecord.reminder_kind == reminder_kind)
        ).first()
        if sent is not None:
            return True
        attempt = self._attempt(session, entity_kind, entity_id, reminder_kind)
        return attempt is not None and attempt.abandoned

    def _attempt(self, session: Session, entity_kind: str, entity_id: int, reminder_kind: str):
        return session.exec(
            select(DispatchAttempt)
            .where(DispatchAttempt.entity_kind == entity_kind)
            .where(DispatchAttempt.entity_id == entity_id)
            .where(DispatchAttempt.reminder_kind == reminder_kind)
        ).first()

    def appointment_candidates(self, session: Session, now: datetime) -> List[ReminderCandidate]:
        windows = self.settings.reminder_windows_minutes
        if not windows:
            return []
        horizon = now + timedelta(minutes=max(windows))
        rows = session.exec(
            select(Appointment, Client, Establishment, Service)
            .join(Client, Client.id == Appointment.client_id)
            .join(Establishment, Establishment.id == Appointment.establishment_id)
            .join(Service, Service.id == Appointment.service_id)
            .where(Appointment.status == AppointmentStatus.confirmed.value)
            .where(Appointment.scheduled_start > now)
            .where(Appointment.scheduled_start <= horizon)
            .order_by(Appointment.scheduled_start)
        ).all()

        candidates = []
        for appt, client, shop, service in rows:
            lead = appt.scheduled_start - now
            # tightest window that still contains the appointment
            minutes = min(w for w in windows if lead <= timedelta(minutes=w))
            kind = window_kind(minutes)
            if self._already_handled(session, APPOINTMENT, appt.id, kind):
                continue
            candidates.append(
                ReminderCandidate(
                    APPOINTMENT,
                    appt.id,
                    kind,
                    client.contact,
                    reminder_message(client.name, shop.name, service.name, appt.scheduled_start),
                )
            )
        return candidates

    def queue_candidates(self, session: Session) -> List[ReminderCandidate]:
        rows = session.exec(
            select(QueueEntry, Client, Establishment)
            .join(Client, Client.id == QueueEntry.client_id)
            .join(Establishment, Establishment.id == QueueEntry.establishment_id)
            .where(QueueEntry.status == QueueStatus.waiting.value)
            .where(QueueEntry.position <= self.settings.queue_next_position)
            .order_by(QueueEntry.establishment_id, QueueEntry.position)
        ).all()

        candidates = []
        for entry, client, shop in rows:
            if self._already_handled(session, QUEUE_ENTRY, entry.id, QUEUE_NEXT):
                continue
            candidates.append(
                ReminderCandidate(
                    QUEUE_ENTRY,
                    entry.id,
                    QUEUE_NEXT,
                    client.contact,
                    queue_next_message(client.name, shop.name, entry.position),
                )
            )
        return candidates

    # delivery

    def _send(self, candidate: ReminderCandidate) -> Optional[str]:
        """Returns None on success, otherwise the failure reason."""
        try:
            delivered = self.dispatcher.send(candidate.recipient, candidate.message)
        except Exception as exc:  # collaborator errors must not stop the sweep
            return f"{type(exc).__name__}: {exc}"
        return None if delivered else "dispatcher reported failure"

    def _record_sent(self, session: Session, candidate: ReminderCandidate, now: datetime, result: SweepResult) -> None:
        session.add(
            ReminderRecord(
                entity_kind=candidate.entity_kind,
                entity_id=candidate.entity_id,
                reminder_kind=candidate.reminder_kind,
                sent_at=now,
            )
        )
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            result.duplicates += 1
            logger.info(
                "reminder_already_recorded",
                extra={"entity_kind": candidate.entity_kind, "entity_id": candidate.entity_id,
                       "reminder_kind": candidate.reminder_kind},
            )
            return
        except SQLAlchemyError as exc:
            session.rollback()
            result.failed += 1
            logger.error(
                "reminder_record_failed",
                extra={"entity_kind": candidate.entity_kind, "entity_id": candidate.entity_id,
                       "reminder_kind": candidate.reminder_kind, "error": str(exc)},
            )
            return
        result.dispatched += 1
        logger.info(
            "reminder_dispatched",
            extra={"entity_kind": candidate.entity_kind, "entity_id": candidate.entity_id,
                   "reminder_kind": candidate.reminder_kind},
        )

    def _record_failure(self, session: Session, candidate: ReminderCandidate, reason: str,
                        now: datetime, result: SweepResult) -> None:
        attempt = self._attempt(session, candidate.entity_kind, candidate.entity_id, candidate.reminder_kind)
        if attempt is None:
            attempt = DispatchAttempt(
                entity_kind=candidate.entity_kind,
                entity_id=candidate.entity_id,
                reminder_kind=candidate.reminder_kind,
                updated_at=now,
            )
        attempt.failures += 1
        attempt.last_error = reason[:500]
        attempt.updated_at = now
        if attempt.failures >= self.settings.max_dispatch_retries:
            attempt.abandoned = True
        session.add(attempt)
        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            result.failed += 1
            logger.error(
                "dispatch_attempt_record_failed",
                extra={"entity_kind": candidate.entity_kind, "entity_id": candidate.entity_id,
                       "reminder_kind": candidate.reminder_kind, "error": str(exc)},
            )
            return

        context = {
            "entity_kind": candidate.entity_kind,
            "entity_id": candidate.entity_id,
            "reminder_kind": candidate.reminder_kind,
            "failures": attempt.failures,
            "error": reason,
        }
        if attempt.abandoned:
            result.abandoned += 1
            logger.error("reminder_abandoned", extra=context)
        else:
            result.failed += 1
            logger.warning("reminder_dispatch_failed", extra=context)

    def sweep(self) -> SweepResult:
        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("reminder_sweep_skipped: previous sweep still running")
            return SweepResult(skipped=True)
        try:
            return self._sweep()
        finally:
            self._sweep_lock.release()

    def _sweep(self) -> SweepResult:
        result = SweepResult()
        now = self.clock.now()
        with Session(self.engine) as session:
            candidates = self.appointment_candidates(session, now) + self.queue_candidates(session)
            for candidate in candidates:
                reason = self._send(candidate)
                if reason is None:
                    self._record_sent(session, candidate, now, result)
                else:
                    self._record_failure(session, candidate, reason, now, result)

        if candidates:
            logger.info(
                "reminder_sweep_finished",
                extra={"dispatched": result.dispatched, "failed": result.failed,
                       "abandoned": result.abandoned, "duplicates": result.duplicates},
            )
        return result

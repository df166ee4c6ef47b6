# salon_booking/models.py

from typing import Optional, List, Dict
from datetime import datetime, date as Date, time, timedelta

from sqlalchemy import UniqueConstraint
from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str = "owner"


class Establishment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    name: str
    phone: Optional[str] = None
    operating_mode: str = "both"  # queue | scheduled | both

    open_time: time = time(9, 0)
    close_time: time = time(18, 0)
    closed_days: List[int] = Field(default_factory=list, sa_column=Column(JSON))  # 0=Mon ... 6=Sun
    # {"5": ["09:00", "14:00"]} overrides open/close for one weekday
    weekday_hours: Dict[str, List[str]] = Field(default_factory=dict, sa_column=Column(JSON))

    def hours_for(self, weekday: int) -> Optional[tuple]:
        """Open/close times for a weekday, or None when the shop is closed that day."""
        if weekday in (self.closed_days or []):
            return None
        override = (self.weekday_hours or {}).get(str(weekday))
        if override:
            return time.fromisoformat(override[0]), time.fromisoformat(override[1])
        return self.open_time, self.close_time


class Professional(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    establishment_id: int = Field(foreign_key="establishment.id", index=True)
    name: str
    phone: Optional[str] = None
    is_active: bool = True


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    establishment_id: int = Field(foreign_key="establishment.id", index=True)
    name: str
    description: Optional[str] = None
    duration_minutes: int
    price: float = 0.0
    is_active: bool = True


class Client(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    establishment_id: int = Field(foreign_key="establishment.id", index=True)
    name: str
    phone: str = Field(index=True)
    whatsapp: Optional[str] = None
    email: Optional[str] = None

    @property
    def contact(self) -> str:
        return self.whatsapp or self.phone


class Break(SQLModel, table=True):
    __tablename__ = "recurring_break"

    id: Optional[int] = Field(default=None, primary_key=True)
    establishment_id: int = Field(foreign_key="establishment.id", index=True)
    professional_id: Optional[int] = Field(default=None, foreign_key="professional.id", index=True)

    name: str
    start_time: time
    end_time: time
    days_of_week: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = True


class TimeBlock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    establishment_id: int = Field(foreign_key="establishment.id", index=True)
    professional_id: Optional[int] = Field(default=None, foreign_key="professional.id", index=True)

    name: str
    description: Optional[str] = None
    block_date: Date = Field(index=True)
    start_time: time
    end_time: time
    block_type: str = "custom"  # maintenance | absence | closed | custom


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    establishment_id: int = Field(foreign_key="establishment.id", index=True)
    professional_id: int = Field(foreign_key="professional.id", index=True)
    service_id: int = Field(foreign_key="service.id")
    client_id: int = Field(foreign_key="client.id", index=True)

    scheduled_start: datetime = Field(index=True)
    duration_minutes: int
    status: str = Field(default="confirmed", index=True)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def scheduled_end(self) -> datetime:
        return self.scheduled_start + timedelta(minutes=self.duration_minutes)


class QueueEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    establishment_id: int = Field(foreign_key="establishment.id", index=True)
    client_id: int = Field(foreign_key="client.id", index=True)
    service_id: int = Field(foreign_key="service.id")

    position: int
    status: str = Field(default="waiting", index=True)
    joined_at: datetime
    called_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ReminderRecord(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("entity_kind", "entity_id", "reminder_kind", name="uq_reminder_once"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    entity_kind: str  # appointment | queue_entry
    entity_id: int
    reminder_kind: str
    sent_at: datetime


class DispatchAttempt(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("entity_kind", "entity_id", "reminder_kind", name="uq_dispatch_attempt"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    entity_kind: str
    entity_id: int
    reminder_kind: str
    failures: int = 0
    abandoned: bool = False
    last_error: Optional[str] = None
    updated_at: datetime

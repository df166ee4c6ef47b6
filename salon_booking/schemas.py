# salon_booking/schemas.py

from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum
from datetime import datetime, date, time
from typing import Dict, List, Optional


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRole(str, Enum):
    owner = "owner"


class OperatingMode(str, Enum):
    queue = "queue"
    scheduled = "scheduled"
    both = "both"


class BlockKind(str, Enum):
    maintenance = "maintenance"
    absence = "absence"
    closed = "closed"
    custom = "custom"


class AppointmentStatus(str, Enum):
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


class QueueStatus(str, Enum):
    waiting = "waiting"
    called = "called"
    in_service = "in_service"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


def _check_weekdays(days: List[int]) -> List[int]:
    for day in days:
        if not (0 <= day <= 6):
            raise ValueError("weekdays must be integers between 0 and 6")
    if len(days) != len(set(days)):
        raise ValueError("weekdays cannot contain duplicates")
    return sorted(days)


def _check_weekday_hours(value: Dict[str, List[time]]) -> Dict[str, List[time]]:
    for key, hours in value.items():
        if key not in {str(d) for d in range(7)}:
            raise ValueError("weekday_hours keys must be weekdays 0-6")
        if len(hours) != 2 or hours[0] >= hours[1]:
            raise ValueError("weekday_hours values must be [open, close] with open before close")
    return value


def _check_wall_clock(value: datetime) -> datetime:
    # the calendar is stored in naive local time
    if value.tzinfo is not None:
        raise ValueError("starts_at must be local time without a UTC offset")
    return value


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole = UserRole.owner


class EstablishmentCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    operating_mode: OperatingMode = OperatingMode.both
    open_time: time = time(9, 0)
    close_time: time = time(18, 0)
    closed_days: List[int] = []    # 0=Mon, 1=Tues....
    weekday_hours: Dict[str, List[time]] = {}

    @field_validator("closed_days")
    @classmethod
    def _days(cls, value):
        return _check_weekdays(value)

    @field_validator("weekday_hours")
    @classmethod
    def _overrides(cls, value):
        return _check_weekday_hours(value)

    @model_validator(mode="after")
    def _hours(self):
        if self.open_time >= self.close_time:
            raise ValueError("open_time must be before close_time")
        return self


class EstablishmentUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    operating_mode: Optional[OperatingMode] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    closed_days: Optional[List[int]] = None
    weekday_hours: Optional[Dict[str, List[time]]] = None

    @field_validator("closed_days")
    @classmethod
    def _days(cls, value):
        return None if value is None else _check_weekdays(value)

    @field_validator("weekday_hours")
    @classmethod
    def _overrides(cls, value):
        return None if value is None else _check_weekday_hours(value)


class EstablishmentPublic(BaseModel):
    id: int
    owner_id: Optional[int]
    name: str
    phone: Optional[str]
    operating_mode: OperatingMode
    open_time: time
    close_time: time
    closed_days: List[int]
    weekday_hours: Dict[str, List[str]]


class ProfessionalCreate(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    is_active: bool = True


class ProfessionalPublic(BaseModel):
    id: int
    establishment_id: int
    name: str
    phone: Optional[str]
    is_active: bool


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    price: float = Field(default=0.0, ge=0)
    is_active: bool = True


class ServicePublic(BaseModel):
    id: int
    establishment_id: int
    name: str
    description: Optional[str]
    duration_minutes: int
    price: float
    is_active: bool


class BreakCreate(BaseModel):
    name: str = Field(min_length=1)
    start_time: time
    end_time: time
    days_of_week: List[int] = Field(min_length=1)
    professional_id: Optional[int] = None
    is_active: bool = True

    @field_validator("days_of_week")
    @classmethod
    def _days(cls, value):
        return _check_weekdays(value)

    @model_validator(mode="after")
    def _span(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BreakUpdate(BaseModel):
    name: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    days_of_week: Optional[List[int]] = None
    is_active: Optional[bool] = None

    @field_validator("days_of_week")
    @classmethod
    def _days(cls, value):
        return None if value is None else _check_weekdays(value)


class BreakPublic(BaseModel):
    id: int
    establishment_id: int
    professional_id: Optional[int]
    name: str
    start_time: time
    end_time: time
    days_of_week: List[int]
    is_active: bool


class BlockCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    date: date
    start_time: time
    end_time: time
    kind: BlockKind = BlockKind.custom
    professional_id: Optional[int] = None

    @model_validator(mode="after")
    def _span(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class BlockPublic(BaseModel):
    id: int
    establishment_id: int
    professional_id: Optional[int]
    name: str
    description: Optional[str]
    date: date
    start_time: time
    end_time: time
    kind: BlockKind


class UnavailableIntervalPublic(BaseModel):
    start: datetime
    end: datetime
    cause: str
    source_id: Optional[int]


class CalendarResponse(BaseModel):
    establishment_id: int
    professional_id: Optional[int]
    date: date
    unavailable: List[UnavailableIntervalPublic]


class AvailabilityResponse(BaseModel):
    professional_id: int
    service_id: int
    date: date
    available_starts: List[str]


class ClientInfo(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=4)
    whatsapp: Optional[str] = None
    email: Optional[str] = None


class AppointmentCreate(BaseModel):
    professional_id: int
    service_id: int
    starts_at: datetime
    client: ClientInfo
    notes: Optional[str] = None

    @field_validator("starts_at")
    @classmethod
    def _local_time(cls, value):
        return _check_wall_clock(value)


class AppointmentReschedule(BaseModel):
    starts_at: datetime
    duration_minutes: Optional[int] = None

    @field_validator("starts_at")
    @classmethod
    def _local_time(cls, value):
        return _check_wall_clock(value)


class AppointmentPublic(BaseModel):
    id: int
    establishment_id: int
    professional_id: int
    service_id: int
    client_id: int
    scheduled_start: datetime
    duration_minutes: int
    status: AppointmentStatus
    notes: Optional[str]


class QueueJoin(BaseModel):
    service_id: int
    client: ClientInfo


class QueueAdvance(BaseModel):
    status: QueueStatus


class QueueEntryPublic(BaseModel):
    id: int
    establishment_id: int
    client_id: int
    service_id: int
    position: int
    status: QueueStatus
    joined_at: datetime
    called_at: Optional[datetime]
    completed_at: Optional[datetime]

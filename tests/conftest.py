from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from salon_booking.clock import FixedClock
from salon_booking.config import Settings
from salon_booking.db import get_session, init_db
from salon_booking.deps import get_app_settings, get_clock
from salon_booking.models import Break, Client, Establishment, Professional, Service

TUESDAY = date(2030, 1, 8)
SUNDAY = date(2030, 1, 13)


def at(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, time.fromisoformat(hhmm))


class RecordingDispatcher:
    """Fake messaging collaborator: records sends, can be told to fail."""

    def __init__(self, fail_times: int = 0, raises: bool = False):
        self.sent = []
        self.calls = 0
        self.fail_times = fail_times
        self.raises = raises

    def send(self, recipient, message):
        self.calls += 1
        if self.calls <= self.fail_times:
            if self.raises:
                raise RuntimeError("gateway down")
            return False
        self.sent.append((recipient, message))
        return True


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        slot_minutes=30,
        reminder_windows_minutes=[60],
        queue_next_position=1,
        max_dispatch_retries=3,
    )


@pytest.fixture
def clock():
    # Monday morning before the week being booked
    return FixedClock(datetime(2030, 1, 7, 8, 0))


def seed_shop(session, operating_mode="both"):
    """Open 09:00-18:00 except Sunday, lunch 12:00-13:00 on weekdays."""
    shop = Establishment(
        name="Barbearia Central",
        operating_mode=operating_mode,
        open_time=time(9, 0),
        close_time=time(18, 0),
        closed_days=[6],
    )
    session.add(shop)
    session.commit()
    session.refresh(shop)

    pro = Professional(establishment_id=shop.id, name="Pedro")
    haircut = Service(establishment_id=shop.id, name="Haircut", duration_minutes=30, price=40)
    beard = Service(establishment_id=shop.id, name="Cut and beard", duration_minutes=60, price=60)
    client = Client(establishment_id=shop.id, name="Ana", phone="5511999990000")
    lunch = Break(
        establishment_id=shop.id,
        name="Lunch",
        start_time=time(12, 0),
        end_time=time(13, 0),
        days_of_week=[0, 1, 2, 3, 4],
    )
    for obj in (pro, haircut, beard, client, lunch):
        session.add(obj)
    session.commit()
    for obj in (pro, haircut, beard, client, lunch):
        session.refresh(obj)
    return SimpleNamespace(shop=shop, pro=pro, haircut=haircut, beard=beard, client=client, lunch=lunch)


@pytest.fixture
def shop(session):
    return seed_shop(session)


@pytest.fixture
def api(engine, clock, settings):
    from salon_booking.main import app

    def _session_override():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_app_settings] = lambda: settings
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

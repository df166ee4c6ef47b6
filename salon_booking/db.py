# salon_booking/db.py

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from salon_booking.config import get_settings


def make_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # required for SQLite + FastAPI worker threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, echo=echo, connect_args=connect_args)


_settings = get_settings()

# Engine = connection to the database
engine = make_engine(_settings.database_url, echo=_settings.database_echo)


def init_db(bind: Engine = engine) -> None:
    import salon_booking.models  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(bind)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session

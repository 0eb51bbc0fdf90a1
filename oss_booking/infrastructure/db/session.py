# oss_booking/infrastructure/db/session.py

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from oss_booking.config import get_settings


def _engine_options(database_url: str) -> dict:
    # SQLite is only used for local runs and tests; requests hop threads.
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5}


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, echo=False, future=True, **_engine_options(database_url))


DATABASE_URL = get_settings().database_url

engine: Engine = build_engine(DATABASE_URL)


class Base(DeclarativeBase):
    pass


SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


@contextmanager
def get_db_session():
    """One unit of work outside a request (scripts, maintenance jobs)."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import DATABASE_URL, DB_ECHO

# SQLite is shared between the API worker threads
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=DB_ECHO, future=True, connect_args=_connect_args)

# use cases hand back detached objects
SessionLocal = sessionmaker(bind=engine, autoflush=False, future=True, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base shared by the scheduling and account tables."""


def create_tables() -> None:
    """Creates the missing tables. The models must be imported first."""
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    Base.metadata.drop_all(bind=engine)


@contextmanager
def db_session() -> Iterator[Session]:
    """One unit of work: commit on success, rollback on any exception."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

"""Engines and sessions for the scenario store, decision log and ledger."""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from shiftplan.logger import get_logger

from .models import Base

DEFAULT_DB_URL = "sqlite:///shiftplan.db"

log = get_logger("db")


@lru_cache(maxsize=None)
def get_engine(db_url: str = DEFAULT_DB_URL) -> Engine:
    """One engine per database URL, reused by every session opened on it."""
    return create_engine(db_url)


def init_database(db_url: str = DEFAULT_DB_URL) -> None:
    """Create the store tables that do not exist yet."""
    Base.metadata.create_all(get_engine(db_url))
    log.info("Database initialized: %s", db_url)


def get_session(db_url: str = DEFAULT_DB_URL, create_tables: bool = False) -> Session:
    """
    Open a session on ``db_url``.

    With ``create_tables`` the missing tables are created first, so commands
    that write to a fresh database do not need a separate ``init-db``.
    """
    engine = get_engine(db_url)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)()

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from persistence.models import Base


def _get_db_url() -> str:
    db_path = settings.sqlite_db_path
    # Ensure parent directory exists
    os.makedirs(os.path.dirname(db_path) if os.path.dirname(db_path) else ".", exist_ok=True)
    return f"sqlite:///{db_path}"


def build_engine(db_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLite engine whose transactions start with BEGIN IMMEDIATE.

    The write lock is taken at the first statement, so a read-then-write unit
    (e.g. upsert-or-insert of a ticket) cannot interleave with another writer.
    """
    new_engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=echo,
    )

    @event.listens_for(new_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to SQLAlchemy (pysqlite would otherwise
        # emit its own deferred BEGIN)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(new_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return new_engine


engine = build_engine(_get_db_url(), echo=settings.db_echo)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db() -> None:
    """Create all tables if they don't exist."""
    Base.metadata.create_all(bind=engine)


@contextmanager
def get_db_session() -> Iterator[Session]:
    """Context manager for database sessions with auto-rollback on error."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

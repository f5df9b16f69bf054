from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from .config import settings

logger = logging.getLogger(__name__)


def _is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def _is_postgres(database_url: str) -> bool:
    return database_url.startswith("postgresql")


def _ensure_sqlite_dir(database_url: str) -> None:
    """
    Ensure the parent folder exists for SQLite file-based DB URLs like:
      sqlite:///./data/locations.sqlite
      sqlite:////absolute/path/to/db.sqlite
    """
    if not database_url.startswith("sqlite:///"):
        return

    path = database_url.replace("sqlite:///", "", 1)
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)


def _sqlite_pragmas(engine: Engine) -> None:
    """
    Pragmas that keep SQLite responsive for the location_data range scans.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA temp_store=MEMORY;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.execute("PRAGMA busy_timeout=5000;")
        # Cache size is in pages; negative means KB. -64000 = ~64MB cache
        cursor.execute("PRAGMA cache_size=-64000;")
        cursor.close()


def _postgres_session_settings(engine: Engine) -> None:
    """
    Per-connection Postgres settings. statement_timeout keeps a runaway
    bounding-box scan on a large location table from hanging a request.
    """

    @event.listens_for(engine, "connect")
    def _set_postgres_settings(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("SET statement_timeout = 30000;")
        except Exception:
            # Some managed providers disallow per-session settings
            logger.warning("Could not set Postgres statement_timeout", exc_info=True)
        finally:
            cursor.close()


def get_engine(database_url: str | None = None) -> Engine:
    """
    Create and return the SQLAlchemy engine.

    - Uses settings.resolved_database_url unless a URL is passed in
    - SQLite gets pragmas + check_same_thread=False for FastAPI
    """
    database_url = database_url or settings.resolved_database_url

    if _is_sqlite(database_url):
        _ensure_sqlite_dir(database_url)

    connect_args = {"check_same_thread": False} if _is_sqlite(database_url) else {}

    engine = create_engine(
        database_url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True,
    )

    if _is_sqlite(database_url):
        _sqlite_pragmas(engine)

    if _is_postgres(database_url):
        _postgres_session_settings(engine)

    return engine


# Single, shared engine for the app process
engine: Engine = get_engine()


def register_models() -> None:
    """
    Central place to import ALL models so SQLModel registers them.
    """
    from .models.location_data import LocationData  # noqa: F401
    from .models.location_list import LocationList, LocationListItem  # noqa: F401


def init_db(create_tables: bool = True) -> None:
    """
    Register models, then create missing tables.
    Non-destructive: create_all will not drop or alter existing tables.
    """
    register_models()
    if create_tables:
        SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    """
    Simple session factory (scripts, the location store, list routes).
    """
    return Session(engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency:
        def route(db: Session = Depends(get_db)):
            ...
    Ensures the session is closed after each request.
    """
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Context manager for scripts/jobs that need commit/rollback safety.

    Usage:
        with session_scope() as db:
            db.add(...)
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

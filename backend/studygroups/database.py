"""Database engine and helpers.

This module builds the SQLModel/SQLAlchemy engine from the application
`Settings` and provides the request-scoped session dependency. The
engine lives on `app.state` so that tests can run each app against its
own database file.
"""

from fastapi import Request
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine, Session

from .config import Settings


def create_engine_for(settings: Settings):
    """Create an engine for `settings.DATABASE_URL`.

    SQLite connections get `check_same_thread=False` because FastAPI runs
    sync handlers in a threadpool, and foreign keys are switched on per
    connection.
    """
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})

        @event.listens_for(engine, "connect")
        def _enable_sqlite_fks(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return engine
    return create_engine(url, echo=False, pool_pre_ping=True)


def create_db_and_tables(engine):
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; production deployments
    should rely on a proper migration tool (alembic) instead.
    """
    # the table classes must be registered on the metadata first
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session bound to the application's engine and
    ensures it is closed when the request scope finishes.
    """
    with Session(request.app.state.engine) as session:
        yield session

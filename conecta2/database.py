"""
SQLAlchemy declarative base and engine factory.

Only the local BaaS emulation (``BAAS_MODE=local``) persists through these
tables; the hosted project owns the real schema.  The models mirror the
hosted tables column for column so that the same PostgREST-style queries
work against both backends.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def make_engine(url: str) -> Engine:
    """Create an engine for *url* with foreign keys enforced on SQLite.

    In-memory SQLite URLs share one connection across threads so that the
    FastAPI threadpool and the test client see the same database.
    """
    kwargs: dict = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """Create every table registered on ``Base.metadata``."""
    import conecta2.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())

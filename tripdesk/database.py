"""Database configuration and session management for Tripdesk."""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tripdesk.db")


def build_engine(url: str) -> Engine:
    """Create the engine for ``url``.

    SQLite connections are shared across the threads of the ASGI server and the
    test client. An in-memory SQLite database lives only as long as its single
    connection, so it is pinned with :class:`StaticPool`.
    """

    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, future=True, pool_pre_ping=True)

    options = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return create_engine(url, future=True, **options)


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


@contextmanager
def unit_of_work(session: Session) -> Generator[Session, None, None]:
    """Group the writes of one multi-step operation on an existing session.

    If any step raises, the session transaction is rolled back (including work
    flushed before the block) and the error re-raised. The caller owns the commit.
    """
    try:
        yield session
        session.flush()
    except Exception:
        session.rollback()
        raise

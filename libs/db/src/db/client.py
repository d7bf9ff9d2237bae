"""Engine and session helpers shared by every consumer of the ledger database.

One engine exists per process, bound to ``DATABASE_URL`` (or an explicit
``database_url``). Tests point it at a fresh SQLite file and call
:func:`dispose_engine` in between.

Usage
-----
from db.client import session_scope

with session_scope() as s:
    s.add(...)
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None
_bound_url: str | None = None


def _resolve_url(explicit: str | None) -> str:
    url = explicit or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; pass database_url or add it to .env")
    return url


def _sqlite_connect(dbapi_conn, _record) -> None:  # pragma: no cover - driver callback
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; _sqlite_begin takes over.
    dbapi_conn.isolation_level = None
    cur = dbapi_conn.cursor()
    # SQLite ignores ON DELETE clauses unless asked per connection.
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def _sqlite_begin(conn) -> None:  # pragma: no cover - driver callback
    conn.exec_driver_sql("BEGIN")


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the process engine, creating it on first use.

    Asking for a different URL while an engine is bound raises; call
    :func:`dispose_engine` first.
    """

    global _engine, _sessions, _bound_url
    url = _resolve_url(database_url)
    if _engine is not None:
        if database_url is not None and url != _bound_url:
            raise RuntimeError(
                f"engine already bound to another database; dispose_engine() before using {url}"
            )
        return _engine

    engine = create_engine(url, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _sqlite_connect)
        event.listen(engine, "begin", _sqlite_begin)
    _engine = engine
    _sessions = sessionmaker(bind=engine, expire_on_commit=False)
    _bound_url = url
    return engine


def dispose_engine() -> None:
    global _engine, _sessions, _bound_url
    if _engine is not None:
        _engine.dispose()
    _engine, _sessions, _bound_url = None, None, None


def get_session(*, database_url: str | None = None) -> Session:
    """New session on the process engine. The caller commits and closes it."""

    get_engine(database_url=database_url)
    assert _sessions is not None
    return _sessions()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Commit on normal exit, roll back on error, always close."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["dispose_engine", "get_engine", "get_session", "session_scope"]

"""Pytest configuration for test isolation.

``db.client`` keeps one process-wide engine. Each test that needs a database
bootstraps its own SQLite file, so the shared engine is disposed after every
test to keep a later test from talking to an earlier test's file.

Environment knobs read by the import pipeline are cleared so a developer's
shell (or ``.env``) cannot change row limits or log levels under the suite.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from db.client import dispose_engine, get_session

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("FINANCE_IMPORT_MAX_ROWS", raising=False)
    monkeypatch.delenv("FINANCE_IMPORT_LOG_LEVEL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    yield
    dispose_engine()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "finance.sqlite3")


@pytest.fixture
def session(db_url: str):
    s = get_session(database_url=db_url)
    try:
        yield s
    finally:
        s.rollback()
        s.close()

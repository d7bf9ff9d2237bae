"""DB helpers for tests: bootstrap a temporary SQLite DB and seed reference rows."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db import Base
from db.client import get_engine
from db.models.finance import Account, Category, Entry, Tag
from db.models.imports import Import


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    return url


def seed_accounts(
    session: Session,
    accounts: Mapping[str, str] | Iterable[str],
    *,
    accountable_type: str = "Depository",
) -> dict[str, Account]:
    """Insert accounts by name. A mapping supplies ``name -> currency``."""

    if isinstance(accounts, Mapping):
        items = list(accounts.items())
    else:
        items = [(name, "USD") for name in accounts]
    out: dict[str, Account] = {}
    for name, currency in items:
        acct = Account(name=name, currency=currency, accountable_type=accountable_type)
        session.add(acct)
        out[name] = acct
    session.flush()
    return out


def seed_categories(session: Session, names: Iterable[str]) -> dict[str, Category]:
    out = {name: Category(name=name) for name in names}
    session.add_all(out.values())
    session.flush()
    return out


def seed_tags(session: Session, names: Iterable[str]) -> dict[str, Tag]:
    out = {name: Tag(name=name) for name in names}
    session.add_all(out.values())
    session.flush()
    return out


def count(session: Session, model) -> int:
    return session.scalar(select(func.count()).select_from(model)) or 0


def entries_for(session: Session, imp: Import) -> list[Entry]:
    stmt = select(Entry).where(Entry.import_id == imp.id).order_by(Entry.id)
    return list(session.scalars(stmt))

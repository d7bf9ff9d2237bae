# ruff: noqa: I001, E402
"""Alembic environment for the ledger schema in ``db.models``.

``DATABASE_URL`` (from the process environment or the nearest ``.env``) wins
over ``sqlalchemy.url`` in ``alembic.ini``. SQLite runs in batch mode so
column changes work through table rebuilds.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import engine_from_config, pool

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# usecwd: the .env sits at the workspace root even when alembic runs in libs/db.
_dotenv = find_dotenv(usecwd=True)
if _dotenv:
    load_dotenv(dotenv_path=_dotenv, override=False)

DB_URL = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url") or ""
if not DB_URL:
    raise RuntimeError("set DATABASE_URL or sqlalchemy.url in alembic.ini before migrating")
config.set_main_option("sqlalchemy.url", DB_URL)

# `prepend_sys_path = src` in alembic.ini makes `db` importable.
from db import metadata as target_metadata


def run_migrations_offline() -> None:
    context.configure(
        url=DB_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

from __future__ import annotations

import os

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

from alembic import context

config = context.config

target_metadata = None

_OUTCOMES_PG_DSN_ENV = "OUTCOMES_PG_DSN"


def _resolve_url() -> str:
    """
    Resolve SQL URL for standalone `alembic` invocations.

    Args:
        None.
    Returns:
        str: `OUTCOMES_PG_DSN` when set, otherwise `sqlalchemy.url` from `alembic.ini`.
    Assumptions:
        `apps.migrations.main` injects a ready connection and never reaches this helper.
    Raises:
        ValueError: If neither source provides URL.
    Side Effects:
        Reads process environment.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - alembic/versions/20261016_0001_signal_outcomes_v1.py
      - apps/migrations/main.py
    """
    url = os.environ.get(_OUTCOMES_PG_DSN_ENV, "").strip()
    if not url:
        url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if not url:
        raise ValueError(f"{_OUTCOMES_PG_DSN_ENV} or sqlalchemy.url is required")
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit outcome schema SQL without opening a database connection."""
    context.configure(
        url=_resolve_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Apply outcome schema migrations over injected or freshly opened connection.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Injected connection already holds migration advisory lock.
    Raises:
        Exception: Alembic configuration/runtime errors.
    Side Effects:
        Applies schema changes.
    """
    injected_connection = config.attributes.get("connection")
    if isinstance(injected_connection, Connection):
        _migrate(injected_connection)
        return

    engine = create_engine(_resolve_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _migrate(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

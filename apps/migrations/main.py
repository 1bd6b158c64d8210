from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Mapping

from psycopg.conninfo import conninfo_to_dict
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection
from sqlalchemy.engine.url import make_url

from alembic import command
from alembic.config import Config

_OUTCOMES_PG_DSN_ENV = "OUTCOMES_PG_DSN"
_DEFAULT_LOCK_KEY = 71820394455
_POSTGRES_URL_PREFIXES: tuple[str, ...] = (
    "postgresql+psycopg://",
    "postgresql://",
    "postgres://",
)
_CONNINFO_URL_FIELDS = frozenset({"dbname", "host", "hostaddr", "password", "port", "user"})


def _build_parser() -> argparse.ArgumentParser:
    """
    Build CLI parser of the outcome storage migration runner.

    Args:
        None.
    Returns:
        argparse.ArgumentParser: Parser with `--dsn` and `--lock-key` options.
    Assumptions:
        Runner may be started from any working directory.
    Raises:
        None.
    Side Effects:
        None.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - alembic.ini
      - alembic/env.py
    """
    parser = argparse.ArgumentParser(prog="outcomes-migrations")
    parser.add_argument(
        "--dsn",
        default="",
        help=f"Postgres DSN. Falls back to ${_OUTCOMES_PG_DSN_ENV} when omitted.",
    )
    parser.add_argument(
        "--lock-key",
        type=int,
        default=_DEFAULT_LOCK_KEY,
        help="pg_advisory_lock key serializing concurrent migration runners.",
    )
    return parser


def _resolve_dsn(*, arg_dsn: str, environ: Mapping[str, str]) -> str:
    """
    Pick DSN from `--dsn` first, then from `OUTCOMES_PG_DSN`.

    Raises:
        ValueError: If neither source provides a non-empty value.
    """
    dsn = arg_dsn.strip() or environ.get(_OUTCOMES_PG_DSN_ENV, "").strip()
    if not dsn:
        raise ValueError(f"Migration DSN is required via --dsn or {_OUTCOMES_PG_DSN_ENV}")
    return dsn


def _build_alembic_config(*, repo_root: Path) -> Config:
    alembic_ini = repo_root / "alembic.ini"
    if not alembic_ini.exists():
        raise ValueError(f"Missing Alembic config file: {alembic_ini}")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(repo_root / "alembic"))
    return config


def _upgrade_head_under_lock(*, config: Config, sqlalchemy_url: URL, lock_key: int) -> None:
    """
    Apply `alembic upgrade head` on one connection guarded by advisory lock.

    Args:
        config: Prepared Alembic config.
        sqlalchemy_url: Normalized `postgresql+psycopg` URL.
        lock_key: Advisory lock key.
    Returns:
        None.
    Assumptions:
        Lock and migrations share the same connection, injected via `config.attributes`.
    Raises:
        Exception: Database or Alembic failures are re-raised after rollback.
    Side Effects:
        Creates/alters outcome storage tables.
    """
    engine = create_engine(sqlalchemy_url, pool_pre_ping=True)
    with engine.connect() as connection:
        _acquire_pg_advisory_lock(connection=connection, lock_key=lock_key)
        try:
            config.attributes["connection"] = connection
            print("Running: alembic upgrade head")
            command.upgrade(config, "head")
            connection.commit()
            print("Migration success")
        except Exception:  # noqa: BLE001
            connection.rollback()
            raise
        finally:
            _release_pg_advisory_lock(connection=connection, lock_key=lock_key)
            connection.commit()


def _acquire_pg_advisory_lock(*, connection: Connection, lock_key: int) -> None:
    print(f"Acquiring pg_advisory_lock({lock_key})")
    connection.execute(text("SELECT pg_advisory_lock(:lock_key)"), {"lock_key": lock_key})


def _release_pg_advisory_lock(*, connection: Connection, lock_key: int) -> None:
    print(f"Releasing pg_advisory_lock({lock_key})")
    connection.execute(text("SELECT pg_advisory_unlock(:lock_key)"), {"lock_key": lock_key})


def _to_sqlalchemy_psycopg_url(*, dsn: str) -> URL:
    """
    Convert URL-style or libpq keyword DSN into SQLAlchemy psycopg URL.

    Args:
        dsn: Raw Postgres DSN.
    Returns:
        URL: URL with `postgresql+psycopg` driver.
    Assumptions:
        Passwords in conninfo form may contain raw `@`, `:` and `%` characters.
    Raises:
        ValueError: If DSN is blank, malformed, or uses a foreign driver.
    Side Effects:
        None.
    """
    normalized = dsn.strip()
    if not normalized:
        raise ValueError("Postgres DSN cannot be empty")
    if normalized.startswith(_POSTGRES_URL_PREFIXES):
        parsed_url = make_url(normalized)
        if parsed_url.drivername not in {"postgresql", "postgres", "postgresql+psycopg"}:
            raise ValueError("Postgres URL DSN must use postgresql:// or postgres:// scheme")
        return parsed_url.set(drivername="postgresql+psycopg")
    return _conninfo_to_sqlalchemy_url(conninfo_dsn=normalized)


def _conninfo_to_sqlalchemy_url(*, conninfo_dsn: str) -> URL:
    try:
        fields = conninfo_to_dict(conninfo_dsn)
    except Exception as error:  # noqa: BLE001
        raise ValueError("Postgres DSN must be URL or libpq conninfo format") from error

    raw_port = str(fields.get("port", "")).strip()
    port: int | None = None
    if raw_port:
        try:
            port = int(raw_port)
        except ValueError as error:
            raise ValueError("Conninfo port must be numeric when provided") from error

    query = {
        key: str(value)
        for key, value in sorted(fields.items())
        if key not in _CONNINFO_URL_FIELDS and str(value)
    }
    return URL.create(
        "postgresql+psycopg",
        username=str(fields.get("user", "")).strip() or None,
        password=str(fields.get("password", "")).strip() or None,
        host=str(fields.get("host", fields.get("hostaddr", ""))).strip() or None,
        port=port,
        database=str(fields.get("dbname", "")).strip() or None,
        query=query,
    )


def main(argv: list[str] | None = None) -> int:
    """
    Fail-fast entrypoint: resolve DSN, take advisory lock, upgrade outcome schema to head.

    Args:
        argv: Optional CLI argument list without program name.
    Returns:
        int: `0` on success, `1` on any failure.
    Assumptions:
        Worker startup is gated on this command succeeding.
    Raises:
        None.
    Side Effects:
        Reads environment, connects to Postgres, prints progress lines.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - alembic/versions/20261016_0001_signal_outcomes_v1.py
      - apps/worker/outcome_resolver/main/main.py
    """
    args = _build_parser().parse_args(argv)

    try:
        dsn = _resolve_dsn(arg_dsn=args.dsn, environ=os.environ)
        sqlalchemy_url = _to_sqlalchemy_psycopg_url(dsn=dsn)
        repo_root = Path(__file__).resolve().parents[2]
        config = _build_alembic_config(repo_root=repo_root)
        _upgrade_head_under_lock(
            config=config,
            sqlalchemy_url=sqlalchemy_url,
            lock_key=args.lock_key,
        )
    except Exception as error:  # noqa: BLE001
        print(f"Migration failed: {error}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

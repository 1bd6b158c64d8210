from __future__ import annotations

from typing import Any, Mapping, Protocol, cast

import psycopg
from psycopg.rows import dict_row


class OutcomesPostgresGateway(Protocol):
    """
    OutcomesPostgresGateway — minimal SQL gateway for outcome resolution Postgres adapters.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        signal_repository.py
    """

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """
        Execute SQL statement and return one mapped row.

        Args:
            query: SQL text.
            parameters: Bind parameters mapping.
        Returns:
            Mapping[str, Any] | None: One row or `None`.
        Assumptions:
            Query may be a data-modifying CTE ending with an aggregate `SELECT`.
        Raises:
            Exception: Storage/driver errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        """
        Execute SQL statement and return all mapped rows.

        Args:
            query: SQL text.
            parameters: Bind parameters mapping.
        Returns:
            tuple[Mapping[str, Any], ...]: Query rows in SQL-defined order.
        Assumptions:
            Deterministic ordering is controlled by explicit `ORDER BY` in SQL.
        Raises:
            Exception: Storage/driver errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        """
        Execute side-effecting SQL statement without returning rows.

        Args:
            query: SQL text.
            parameters: Bind parameters mapping.
        Returns:
            None.
        Assumptions:
            Statement has write side effects.
        Raises:
            Exception: Storage/driver errors from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...


class PsycopgOutcomesPostgresGateway(OutcomesPostgresGateway):
    """
    PsycopgOutcomesPostgresGateway — psycopg3 gateway opening one connection per statement.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/gateway.py
      - apps/worker/outcome_resolver/wiring/modules/outcome_resolver.py
      - alembic/versions/20261016_0001_signal_outcomes_v1.py
    """

    def __init__(self, *, dsn: str, connect_timeout_s: int = 10) -> None:
        """
        Initialize gateway with non-empty PostgreSQL DSN.

        Args:
            dsn: PostgreSQL DSN.
            connect_timeout_s: libpq connection timeout in seconds.
        Returns:
            None.
        Assumptions:
            DSN points to Postgres instance with migrated outcome schema.
        Raises:
            ValueError: If DSN is blank or timeout is not positive.
        Side Effects:
            None.
        """
        normalized_dsn = dsn.strip()
        if not normalized_dsn:
            raise ValueError("PsycopgOutcomesPostgresGateway requires non-empty dsn")
        if connect_timeout_s <= 0:
            raise ValueError("PsycopgOutcomesPostgresGateway.connect_timeout_s must be > 0")
        self._dsn = normalized_dsn
        self._connect_timeout_s = connect_timeout_s

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        with self._connect() as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)
                row = cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        with self._connect() as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)
                rows = cursor.fetchall()
        return tuple(dict(row) for row in rows)

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        with self._connect() as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)

    def _connect(self) -> psycopg.Connection[Any]:
        """
        Open autocommit-free connection; context manager commits or rolls back one statement.

        Args:
            None.
        Returns:
            psycopg.Connection[Any]: Connection with dict row factory.
        Assumptions:
            Multi-step writes are expressed as single CTE statements.
        Raises:
            psycopg.Error: When connection cannot be opened.
        Side Effects:
            Opens network connection.
        """
        return psycopg.connect(
            self._dsn,
            connect_timeout=self._connect_timeout_s,
            row_factory=cast(Any, dict_row),
        )

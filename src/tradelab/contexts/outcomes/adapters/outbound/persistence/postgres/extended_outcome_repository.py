from __future__ import annotations

from typing import Any, Mapping, Sequence

from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres.gateway import (
    OutcomesPostgresGateway,
)
from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres.signal_repository import (
    SIGNAL_COLUMNS,
    map_signal_row,
)
from tradelab.contexts.outcomes.application.ports.repositories import ExtendedOutcomeRepository
from tradelab.contexts.outcomes.domain.entities import ExtendedOutcome, Signal
from tradelab.contexts.outcomes.domain.errors import OutcomeStorageError

EXTENDED_PLAN_COLUMNS: tuple[str, ...] = (
    "signal_id",
    "symbol",
    "category",
    "signal_time",
    "expires_at",
    "entry_price",
    "stop_price",
    "tp1_price",
    "tp2_price",
)

EXTENDED_EVALUATION_COLUMNS: tuple[str, ...] = (
    "status",
    "trade_state",
    "exit_price",
    "exit_time",
    "first_tp1_at",
    "tp2_at",
    "stop_at",
    "mfe_pct",
    "mae_pct",
    "coverage_pct",
    "n_candles_evaluated",
    "n_candles_expected",
    "managed_status",
    "managed_r",
    "managed_pnl_usd",
    "live_managed_r",
    "runner_be_at",
    "runner_exit_at",
    "runner_exit_reason",
    "risk_usd",
    "completed_at",
    "last_evaluated_at",
    "resolve_version",
    "debug_json",
)

EXTENDED_COLUMNS: tuple[str, ...] = EXTENDED_PLAN_COLUMNS + EXTENDED_EVALUATION_COLUMNS


class PostgresExtendedOutcomeRepository(ExtendedOutcomeRepository):
    """
    PostgresExtendedOutcomeRepository — explicit SQL adapter for 24-hour extended outcomes.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/
        extended_outcome_repository.py
      - src/tradelab/contexts/outcomes/domain/entities/extended_outcome.py
      - alembic/versions/20261016_0002_extended_outcomes_v1.py
    """

    def __init__(
        self,
        *,
        gateway: OutcomesPostgresGateway,
        signals_table: str = "signals",
        extended_table: str = "extended_outcomes",
    ) -> None:
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresExtendedOutcomeRepository requires gateway")
        tables = {
            "signals_table": signals_table.strip(),
            "extended_table": extended_table.strip(),
        }
        for name, value in tables.items():
            if not value:
                raise ValueError(f"PostgresExtendedOutcomeRepository requires non-empty {name}")
        self._gateway = gateway
        self._signals_table = tables["signals_table"]
        self._extended_table = tables["extended_table"]

    def list_enrollment_candidates(
        self,
        *,
        since_ms: int,
        categories: Sequence[str],
        limit: int,
    ) -> tuple[Signal, ...]:
        """
        Select recent tracked signals with a long price plan and no extended row.

        Args:
            since_ms: Lower bound for signal detection time (inclusive).
            categories: Tracked signal categories.
            limit: Maximum number of signals.
        Returns:
            tuple[Signal, ...]: Signals ordered by detection time descending.
        Assumptions:
            Postgres sorts NaN above every number, so the ordered chain bounded by
            infinities admits finite levels only.
        Raises:
            OutcomeStorageError: If query fails or rows cannot be mapped.
        Side Effects:
            Executes one SQL select statement.
        """
        if limit <= 0 or not categories:
            return ()
        select_sql = ",\n            ".join(f"s.{column}" for column in SIGNAL_COLUMNS)
        query = f"""
        SELECT
            {select_sql}
        FROM {self._signals_table} AS s
        LEFT JOIN {self._extended_table} AS e
          ON e.signal_id = s.signal_id
        WHERE e.signal_id IS NULL
          AND s.category = ANY(%(categories)s)
          AND s.time >= %(since_ms)s
          AND s.stop > '-Infinity'::DOUBLE PRECISION
          AND s.stop < s.price
          AND s.price < s.tp1
          AND s.tp1 < s.tp2
          AND s.tp2 < 'Infinity'::DOUBLE PRECISION
        ORDER BY s.time DESC, s.signal_id DESC
        LIMIT %(limit)s
        """
        try:
            rows = self._gateway.fetch_all(
                query=query,
                parameters={
                    "categories": list(categories),
                    "since_ms": since_ms,
                    "limit": limit,
                },
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError(
                "PostgresExtendedOutcomeRepository.list_enrollment_candidates failed"
            ) from error
        return tuple(map_signal_row(row=row) for row in rows)

    def enroll(self, *, outcome: ExtendedOutcome) -> bool:
        query = f"""
        INSERT INTO {self._extended_table}
        (
            {", ".join(EXTENDED_COLUMNS)}
        )
        VALUES
        (
            {", ".join(f"%({column})s" for column in EXTENDED_COLUMNS)}
        )
        ON CONFLICT (signal_id) DO NOTHING
        RETURNING signal_id
        """
        try:
            row = self._gateway.fetch_one(
                query=query,
                parameters={column: getattr(outcome, column) for column in EXTENDED_COLUMNS},
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresExtendedOutcomeRepository.enroll failed") from error
        return row is not None

    def list_open(self, *, limit: int) -> tuple[ExtendedOutcome, ...]:
        if limit <= 0:
            return ()
        query = f"""
        SELECT
            {", ".join(EXTENDED_COLUMNS)}
        FROM {self._extended_table}
        WHERE completed_at = 0
        ORDER BY last_evaluated_at ASC, signal_id ASC
        LIMIT %(limit)s
        """
        try:
            rows = self._gateway.fetch_all(query=query, parameters={"limit": limit})
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError(
                "PostgresExtendedOutcomeRepository.list_open failed"
            ) from error
        return tuple(_map_extended_row(row=row) for row in rows)

    def save(self, *, outcome: ExtendedOutcome) -> None:
        """
        Overwrite evaluation columns of one row.

        Args:
            outcome: Evaluated snapshot.
        Returns:
            None.
        Assumptions:
            Price plan columns stay as enrolled; completed rows are never reopened.
        Raises:
            OutcomeStorageError: If statement fails.
        Side Effects:
            Executes one SQL update statement.
        """
        update_sql = ",\n            ".join(
            f"{column} = %({column})s" for column in EXTENDED_EVALUATION_COLUMNS
        )
        query = f"""
        UPDATE {self._extended_table}
        SET
            {update_sql}
        WHERE signal_id = %(signal_id)s
          AND completed_at = 0
        """
        parameters: dict[str, Any] = {
            column: getattr(outcome, column) for column in EXTENDED_EVALUATION_COLUMNS
        }
        parameters["signal_id"] = outcome.signal_id
        try:
            self._gateway.execute(query=query, parameters=parameters)
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresExtendedOutcomeRepository.save failed") from error

    def find(self, *, signal_id: int) -> ExtendedOutcome | None:
        query = f"""
        SELECT
            {", ".join(EXTENDED_COLUMNS)}
        FROM {self._extended_table}
        WHERE signal_id = %(signal_id)s
        """
        try:
            row = self._gateway.fetch_one(query=query, parameters={"signal_id": signal_id})
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresExtendedOutcomeRepository.find failed") from error
        if row is None:
            return None
        return _map_extended_row(row=row)


def _map_extended_row(*, row: Mapping[str, Any]) -> ExtendedOutcome:
    try:
        return ExtendedOutcome(**{column: row[column] for column in EXTENDED_COLUMNS})
    except Exception as error:  # noqa: BLE001
        raise OutcomeStorageError(
            "PostgresExtendedOutcomeRepository cannot map extended row"
        ) from error

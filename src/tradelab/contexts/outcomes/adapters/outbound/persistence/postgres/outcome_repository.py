from __future__ import annotations

from typing import Any, Mapping, Sequence

from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres.gateway import (
    OutcomesPostgresGateway,
)
from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres.signal_repository import (
    SIGNAL_COLUMNS,
    map_signal_row,
)
from tradelab.contexts.outcomes.application.ports.repositories import OutcomeRepository
from tradelab.contexts.outcomes.domain.entities import (
    COMPLETE_OUTCOME_STATES,
    REASON_STALE_RESOLVE,
    OutcomeFilter,
    OutcomeIntegrityReport,
    OutcomeKey,
    OutcomeSkip,
    Signal,
    SignalOutcome,
)
from tradelab.contexts.outcomes.domain.entities.outcome_integrity_report import (
    AMBIGUOUS_OUTCOME_STATE,
    EXPIRED_CHECKPOINT_MS,
)
from tradelab.contexts.outcomes.domain.errors import OutcomeStorageError

OUTCOME_COLUMNS: tuple[str, ...] = (
    "signal_id",
    "horizon_min",
    "entry_time",
    "entry_candle_open_time",
    "entry_rule",
    "start_time",
    "end_time",
    "interval_min",
    "n_candles",
    "n_candles_expected",
    "coverage_pct",
    "entry_price",
    "open_price",
    "close_price",
    "max_high",
    "min_low",
    "ret_pct",
    "r_mult",
    "r_close",
    "r_mfe",
    "r_mae",
    "r_realized",
    "hit_sl",
    "hit_tp1",
    "hit_tp2",
    "tp1_hit_time",
    "sl_hit_time",
    "tp2_hit_time",
    "time_to_first_hit_ms",
    "bars_to_exit",
    "mfe_pct",
    "mae_pct",
    "result",
    "exit_reason",
    "outcome_driver",
    "trade_state",
    "exit_price",
    "exit_time",
    "window_status",
    "outcome_state",
    "invalid_levels",
    "invalid_reason",
    "ambiguous",
    "expired_after_15m",
    "expired_reason",
    "attempted_at",
    "computed_at",
    "resolved_at",
    "resolve_version",
    "prev_snapshot",
    "outcome_debug_json",
)

_UPSERT_OVERWRITTEN_COLUMNS: tuple[str, ...] = tuple(
    column
    for column in OUTCOME_COLUMNS
    if column not in {"signal_id", "horizon_min", "computed_at", "prev_snapshot"}
)
_COMPLETE_STATES_SQL_LITERAL = ",".join(f"'{state}'" for state in sorted(COMPLETE_OUTCOME_STATES))

_FILTER_WHERE_SQL = """
    s.time BETWEEN %(start_time)s AND %(end_time)s
    AND (%(category)s::TEXT IS NULL OR s.category = %(category)s)
    AND (%(symbol)s::TEXT IS NULL OR s.symbol = %(symbol)s)
    AND (%(horizon_min)s::INTEGER IS NULL OR o.horizon_min = %(horizon_min)s)
    AND (%(window_status)s::TEXT IS NULL OR o.window_status = %(window_status)s)
    AND (%(result)s::TEXT IS NULL OR o.result = %(result)s)
"""


class PostgresOutcomeRepository(OutcomeRepository):
    """
    PostgresOutcomeRepository — explicit SQL adapter for outcome rows, skips and meta markers.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/outcome_repository.py
      - src/tradelab/contexts/outcomes/domain/entities/signal_outcome.py
      - alembic/versions/20261016_0001_signal_outcomes_v1.py
    """

    def __init__(
        self,
        *,
        gateway: OutcomesPostgresGateway,
        signals_table: str = "signals",
        outcomes_table: str = "signal_outcomes",
        skips_table: str = "outcome_skips",
        meta_table: str = "outcome_meta",
    ) -> None:
        """
        Initialize repository with SQL gateway and table names.

        Args:
            gateway: SQL gateway abstraction.
            signals_table: Signal table name.
            outcomes_table: Outcome table name.
            skips_table: Skip marker table name.
            meta_table: Meta marker table name.
        Returns:
            None.
        Assumptions:
            Table schema follows outcome resolution v1 migration.
        Raises:
            ValueError: If gateway is missing or one of table names is blank.
        Side Effects:
            None.
        """
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresOutcomeRepository requires gateway")
        tables = {
            "signals_table": signals_table.strip(),
            "outcomes_table": outcomes_table.strip(),
            "skips_table": skips_table.strip(),
            "meta_table": meta_table.strip(),
        }
        for name, value in tables.items():
            if not value:
                raise ValueError(f"PostgresOutcomeRepository requires non-empty {name}")
        self._gateway = gateway
        self._signals_table = tables["signals_table"]
        self._outcomes_table = tables["outcomes_table"]
        self._skips_table = tables["skips_table"]
        self._meta_table = tables["meta_table"]

    def list_resolution_candidates(
        self,
        *,
        horizon_min: int,
        ready_entry_before_ms: int,
        categories: Sequence[str],
        retry_reasons: Sequence[str],
        retry_before_ms: int,
        limit: int,
    ) -> tuple[Signal, ...]:
        """
        Select due signals whose outcome is missing, partial, stale or retryable.

        Args:
            horizon_min: Horizon in minutes.
            ready_entry_before_ms: Upper bound for effective entry time (inclusive).
            categories: Tracked signal categories.
            retry_reasons: Invalid reasons eligible for retry.
            retry_before_ms: Retry cooldown boundary for `attempted_at`.
            limit: Maximum number of candidates.
        Returns:
            tuple[Signal, ...]: Candidates ordered by detection time descending.
        Assumptions:
            Skip markers exclude pairs permanently.
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
        LEFT JOIN {self._outcomes_table} AS o
          ON o.signal_id = s.signal_id
         AND o.horizon_min = %(horizon_min)s
        LEFT JOIN {self._skips_table} AS k
          ON k.signal_id = s.signal_id
         AND k.horizon_min = %(horizon_min)s
        WHERE k.signal_id IS NULL
          AND s.category = ANY(%(categories)s)
          AND (CASE WHEN s.entry_time > 0 THEN s.entry_time ELSE s.time END)
              <= %(ready_entry_before_ms)s
          AND (
              o.signal_id IS NULL
              OR o.window_status = 'PARTIAL'
              OR (o.window_status = 'COMPLETE' AND o.computed_at < s.updated_at)
              OR (
                  o.window_status = 'INVALID'
                  AND o.invalid_reason = ANY(%(retry_reasons)s)
                  AND (o.attempted_at = 0 OR o.attempted_at < %(retry_before_ms)s)
              )
          )
        ORDER BY s.time DESC, s.signal_id DESC
        LIMIT %(limit)s
        """
        try:
            rows = self._gateway.fetch_all(
                query=query,
                parameters={
                    "horizon_min": horizon_min,
                    "categories": list(categories),
                    "ready_entry_before_ms": ready_entry_before_ms,
                    "retry_reasons": list(retry_reasons),
                    "retry_before_ms": retry_before_ms,
                    "limit": limit,
                },
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError(
                "PostgresOutcomeRepository.list_resolution_candidates failed"
            ) from error
        return tuple(map_signal_row(row=row) for row in rows)

    def find_outcome(self, *, signal_id: int, horizon_min: int) -> SignalOutcome | None:
        query = f"""
        SELECT
            {", ".join(OUTCOME_COLUMNS)}
        FROM {self._outcomes_table}
        WHERE signal_id = %(signal_id)s
          AND horizon_min = %(horizon_min)s
        """
        try:
            row = self._gateway.fetch_one(
                query=query,
                parameters={"signal_id": signal_id, "horizon_min": horizon_min},
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresOutcomeRepository.find_outcome failed") from error
        if row is None:
            return None
        return _map_outcome_row(row=row)

    def upsert_outcome(self, *, outcome: SignalOutcome) -> None:
        """
        Insert or overwrite outcome row keyed by `(signal_id, horizon_min)`.

        Args:
            outcome: Outcome snapshot.
        Returns:
            None.
        Assumptions:
            Incoming `computed_at = 0` keeps stored value; NULL `prev_snapshot` keeps stored
            reset snapshot.
        Raises:
            OutcomeStorageError: If statement fails.
        Side Effects:
            Executes one SQL upsert statement.
        """
        update_sql = ",\n            ".join(
            f"{column} = EXCLUDED.{column}" for column in _UPSERT_OVERWRITTEN_COLUMNS
        )
        query = f"""
        INSERT INTO {self._outcomes_table}
        (
            {", ".join(OUTCOME_COLUMNS)}
        )
        VALUES
        (
            {", ".join(f"%({column})s" for column in OUTCOME_COLUMNS)}
        )
        ON CONFLICT (signal_id, horizon_min) DO UPDATE SET
            {update_sql},
            computed_at = CASE
                WHEN EXCLUDED.computed_at = 0 THEN {self._outcomes_table}.computed_at
                ELSE EXCLUDED.computed_at
            END,
            prev_snapshot = COALESCE(
                EXCLUDED.prev_snapshot,
                {self._outcomes_table}.prev_snapshot
            )
        """
        try:
            self._gateway.execute(
                query=query,
                parameters={column: getattr(outcome, column) for column in OUTCOME_COLUMNS},
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresOutcomeRepository.upsert_outcome failed") from error

    def find_meta(self, *, key: str) -> str | None:
        query = f"""
        SELECT value
        FROM {self._meta_table}
        WHERE key = %(key)s
        """
        try:
            row = self._gateway.fetch_one(query=query, parameters={"key": key})
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresOutcomeRepository.find_meta failed") from error
        if row is None:
            return None
        return str(row["value"])

    def reset_for_resolve_version(
        self,
        *,
        resolve_version: str,
        marker_key: str,
        marked_at: int,
        complete_only: bool = False,
    ) -> int:
        """
        Reset every row not tagged with current version and insert marker in one statement.

        Args:
            resolve_version: Current resolve version.
            marker_key: Meta marker key.
            marked_at: Marker timestamp (epoch ms).
            complete_only: Restrict reset to `COMPLETE_*` rows of another version.
        Returns:
            int: Number of reset rows.
        Assumptions:
            Data-modifying CTE runs in one transaction, so marker never exists without reset.
        Raises:
            OutcomeStorageError: If statement fails.
        Side Effects:
            Updates outcome rows and inserts one meta row.
        """
        query = f"""
        WITH reset AS (
            UPDATE {self._outcomes_table}
            SET
                prev_snapshot = jsonb_build_object(
                    'outcome_state', outcome_state,
                    'window_status', window_status,
                    'result', result,
                    'exit_reason', exit_reason,
                    'trade_state', trade_state,
                    'exit_price', exit_price,
                    'exit_time', exit_time,
                    'mfe_pct', mfe_pct,
                    'mae_pct', mae_pct,
                    'bars_to_exit', bars_to_exit,
                    'resolved_at', resolved_at,
                    'resolve_version', resolve_version
                )::TEXT,
                window_status = 'PARTIAL',
                outcome_state = 'PENDING',
                trade_state = 'PENDING',
                result = 'PENDING',
                invalid_reason = %(stale_reason)s,
                invalid_levels = FALSE,
                exit_reason = NULL,
                outcome_driver = NULL,
                exit_price = entry_price,
                exit_time = start_time,
                hit_sl = FALSE,
                hit_tp1 = FALSE,
                hit_tp2 = FALSE,
                tp1_hit_time = 0,
                sl_hit_time = 0,
                tp2_hit_time = 0,
                time_to_first_hit_ms = 0,
                bars_to_exit = 0,
                ambiguous = FALSE,
                expired_after_15m = FALSE,
                expired_reason = NULL,
                attempted_at = 0,
                computed_at = 0,
                resolved_at = 0,
                resolve_version = NULL
            WHERE (resolve_version IS NULL OR resolve_version <> %(resolve_version)s)
              AND (NOT %(complete_only)s OR outcome_state IN ({_COMPLETE_STATES_SQL_LITERAL}))
            RETURNING 1
        ),
        marker AS (
            INSERT INTO {self._meta_table} (key, value, updated_at)
            VALUES (%(marker_key)s, %(marker_value)s, %(marked_at)s)
            ON CONFLICT (key) DO NOTHING
            RETURNING key
        )
        SELECT
            (SELECT COUNT(*) FROM reset) AS reset_rows,
            (SELECT COUNT(*) FROM marker) AS marker_rows
        """
        try:
            row = self._gateway.fetch_one(
                query=query,
                parameters={
                    "stale_reason": REASON_STALE_RESOLVE,
                    "resolve_version": resolve_version,
                    "complete_only": complete_only,
                    "marker_key": marker_key,
                    "marker_value": str(marked_at),
                    "marked_at": marked_at,
                },
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError(
                "PostgresOutcomeRepository.reset_for_resolve_version failed"
            ) from error
        if row is None:
            raise OutcomeStorageError(
                "PostgresOutcomeRepository.reset_for_resolve_version returned no row"
            )
        return int(row["reset_rows"])

    def delete_outcomes(
        self,
        *,
        keys: Sequence[OutcomeKey],
        reason: str,
        created_at: int,
    ) -> int:
        if not keys:
            return 0
        query = f"""
        WITH requested AS (
            SELECT signal_id, horizon_min
            FROM unnest(%(signal_ids)s::BIGINT[], %(horizons)s::INTEGER[])
                AS item (signal_id, horizon_min)
        ),
        skipped AS (
            INSERT INTO {self._skips_table} (signal_id, horizon_min, reason, created_at)
            SELECT signal_id, horizon_min, %(reason)s, %(created_at)s
            FROM requested
            ON CONFLICT (signal_id, horizon_min) DO NOTHING
            RETURNING 1
        ),
        deleted AS (
            DELETE FROM {self._outcomes_table} AS o
            USING requested AS r
            WHERE o.signal_id = r.signal_id
              AND o.horizon_min = r.horizon_min
            RETURNING 1
        )
        SELECT
            (SELECT COUNT(*) FROM deleted) AS deleted_rows,
            (SELECT COUNT(*) FROM skipped) AS skipped_rows
        """
        return self._count_from(
            query=query,
            parameters={
                "signal_ids": [key.signal_id for key in keys],
                "horizons": [key.horizon_min for key in keys],
                "reason": reason,
                "created_at": created_at,
            },
            column="deleted_rows",
            operation="delete_outcomes",
        )

    def delete_outcomes_by_filter(
        self,
        *,
        outcome_filter: OutcomeFilter,
        reason: str,
        created_at: int,
    ) -> int:
        query = f"""
        WITH matched AS (
            SELECT o.signal_id, o.horizon_min
            FROM {self._outcomes_table} AS o
            JOIN {self._signals_table} AS s
              ON s.signal_id = o.signal_id
            WHERE {_FILTER_WHERE_SQL}
        ),
        skipped AS (
            INSERT INTO {self._skips_table} (signal_id, horizon_min, reason, created_at)
            SELECT signal_id, horizon_min, %(reason)s, %(created_at)s
            FROM matched
            ON CONFLICT (signal_id, horizon_min) DO NOTHING
            RETURNING 1
        ),
        deleted AS (
            DELETE FROM {self._outcomes_table} AS d
            USING matched AS m
            WHERE d.signal_id = m.signal_id
              AND d.horizon_min = m.horizon_min
            RETURNING 1
        )
        SELECT
            (SELECT COUNT(*) FROM deleted) AS deleted_rows,
            (SELECT COUNT(*) FROM skipped) AS skipped_rows
        """
        parameters = _filter_parameters(outcome_filter=outcome_filter)
        parameters["reason"] = reason
        parameters["created_at"] = created_at
        return self._count_from(
            query=query,
            parameters=parameters,
            column="deleted_rows",
            operation="delete_outcomes_by_filter",
        )

    def rebuild_outcomes_by_filter(self, *, outcome_filter: OutcomeFilter) -> int:
        query = f"""
        WITH rebuilt AS (
            UPDATE {self._outcomes_table} AS o
            SET
                window_status = 'PARTIAL',
                outcome_state = 'PENDING',
                trade_state = 'PENDING',
                result = 'PENDING',
                exit_reason = NULL,
                outcome_driver = NULL,
                ambiguous = FALSE,
                expired_after_15m = FALSE,
                expired_reason = NULL,
                computed_at = 0,
                resolved_at = 0,
                resolve_version = NULL
            FROM {self._signals_table} AS s
            WHERE s.signal_id = o.signal_id
              AND o.window_status = 'COMPLETE'
              AND {_FILTER_WHERE_SQL}
            RETURNING 1
        )
        SELECT COUNT(*) AS rebuilt_rows FROM rebuilt
        """
        return self._count_from(
            query=query,
            parameters=_filter_parameters(outcome_filter=outcome_filter),
            column="rebuilt_rows",
            operation="rebuild_outcomes_by_filter",
        )

    def list_skips(self, *, signal_id: int) -> tuple[OutcomeSkip, ...]:
        query = f"""
        SELECT signal_id, horizon_min, reason, created_at
        FROM {self._skips_table}
        WHERE signal_id = %(signal_id)s
        ORDER BY horizon_min ASC
        """
        try:
            rows = self._gateway.fetch_all(query=query, parameters={"signal_id": signal_id})
            return tuple(
                OutcomeSkip(
                    signal_id=int(row["signal_id"]),
                    horizon_min=int(row["horizon_min"]),
                    reason=str(row["reason"]),
                    created_at=int(row["created_at"]),
                )
                for row in rows
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresOutcomeRepository.list_skips failed") from error

    def count_integrity_violations(
        self,
        *,
        resolve_version: str,
        resolved_since_ms: int,
    ) -> OutcomeIntegrityReport:
        """
        Aggregate invariant violations over unresolved and recently resolved rows.

        Args:
            resolve_version: Current resolve version.
            resolved_since_ms: Lower bound for `resolved_at` of audited rows.
        Returns:
            OutcomeIntegrityReport: Violation counters.
        Assumptions:
            Predicates mirror `OutcomeIntegrityReport.from_outcomes`.
        Raises:
            OutcomeStorageError: If query fails.
        Side Effects:
            Executes one SQL aggregate statement.
        """
        complete = f"outcome_state IN ({_COMPLETE_STATES_SQL_LITERAL})"
        query = f"""
        SELECT
            COUNT(*) FILTER (
                WHERE {complete}
                  AND resolve_version IS NOT NULL
                  AND resolve_version <> %(resolve_version)s
            ) AS stale_complete,
            COUNT(*) FILTER (WHERE {complete} AND resolved_at = 0) AS missing_resolved_at,
            COUNT(*) FILTER (
                WHERE {complete} AND resolve_version IS NULL
            ) AS missing_resolve_version,
            COUNT(*) FILTER (WHERE {complete} AND exit_reason IS NULL) AS missing_exit_reason,
            COUNT(*) FILTER (
                WHERE {complete} AND (bars_to_exit <= 0 OR bars_to_exit > n_candles)
            ) AS bad_bars_to_exit,
            COUNT(*) FILTER (
                WHERE {complete} AND exit_reason = 'TIMEOUT' AND bars_to_exit <> n_candles
            ) AS bad_timeout_rows,
            COUNT(*) FILTER (
                WHERE {complete} AND exit_reason = 'TIMEOUT' AND exit_time <> end_time
            ) AS bad_timeout_exit_time,
            COUNT(*) FILTER (
                WHERE {complete}
                  AND exit_reason = 'EXPIRED_AFTER_15M'
                  AND exit_time <> start_time + %(expired_checkpoint_ms)s
            ) AS bad_expired_exit_time,
            COUNT(*) FILTER (
                WHERE outcome_state = %(ambiguous_state)s AND NOT ambiguous
            ) AS bad_ambiguous_rows,
            COUNT(*) FILTER (
                WHERE outcome_state = %(ambiguous_state)s
                  AND (sl_hit_time = 0 OR (tp1_hit_time = 0 AND tp2_hit_time = 0))
            ) AS bad_ambiguous_missing_hits,
            COUNT(*) FILTER (
                WHERE NOT ({complete}) AND resolved_at <> 0
            ) AS resolved_not_complete
        FROM {self._outcomes_table}
        WHERE resolved_at = 0
           OR resolved_at >= %(resolved_since_ms)s
        """
        try:
            row = self._gateway.fetch_one(
                query=query,
                parameters={
                    "resolve_version": resolve_version,
                    "resolved_since_ms": resolved_since_ms,
                    "expired_checkpoint_ms": EXPIRED_CHECKPOINT_MS,
                    "ambiguous_state": AMBIGUOUS_OUTCOME_STATE,
                },
            )
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError(
                "PostgresOutcomeRepository.count_integrity_violations failed"
            ) from error
        if row is None:
            return OutcomeIntegrityReport()
        return OutcomeIntegrityReport(
            **{name: int(row[name] or 0) for name in OutcomeIntegrityReport().as_dict()}
        )

    def _count_from(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
        column: str,
        operation: str,
    ) -> int:
        try:
            row = self._gateway.fetch_one(query=query, parameters=parameters)
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError(f"PostgresOutcomeRepository.{operation} failed") from error
        if row is None:
            raise OutcomeStorageError(f"PostgresOutcomeRepository.{operation} returned no row")
        return int(row[column])


def _filter_parameters(*, outcome_filter: OutcomeFilter) -> dict[str, Any]:
    return {
        "start_time": outcome_filter.start_time,
        "end_time": outcome_filter.end_time,
        "category": outcome_filter.category,
        "symbol": outcome_filter.symbol,
        "horizon_min": outcome_filter.horizon_min,
        "window_status": outcome_filter.window_status,
        "result": outcome_filter.result,
    }


def _map_outcome_row(*, row: Mapping[str, Any]) -> SignalOutcome:
    """
    Map SQL row into immutable SignalOutcome domain object.

    Args:
        row: SQL row mapping.
    Returns:
        SignalOutcome: Mapped outcome snapshot.
    Assumptions:
        Enumerations are validated by entity constructor.
    Raises:
        OutcomeStorageError: If mapping fails.
    Side Effects:
        None.
    """
    try:
        return SignalOutcome(**{column: row[column] for column in OUTCOME_COLUMNS})
    except Exception as error:  # noqa: BLE001
        raise OutcomeStorageError("PostgresOutcomeRepository cannot map outcome row") from error

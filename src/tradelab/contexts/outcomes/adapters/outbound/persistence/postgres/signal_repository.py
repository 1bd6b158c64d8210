from __future__ import annotations

import json
from typing import Any, Mapping

from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres.gateway import (
    OutcomesPostgresGateway,
)
from tradelab.contexts.outcomes.application.ports.repositories import SignalRepository
from tradelab.contexts.outcomes.domain.entities import Signal
from tradelab.contexts.outcomes.domain.errors import OutcomeStorageError

SIGNAL_COLUMNS: tuple[str, ...] = (
    "signal_id",
    "symbol",
    "category",
    "time",
    "price",
    "stop",
    "tp1",
    "tp2",
    "config_hash",
    "entry_time",
    "entry_candle_open_time",
    "entry_rule",
    "vwap",
    "atr_pct",
    "rr",
    "rr_est",
    "delta_vwap_pct",
    "vol_spike",
    "rsi9",
    "session_ok",
    "sweep_ok",
    "btc_bear",
    "config_snapshot",
    "created_at",
    "updated_at",
)

_REFRESHED_COLUMNS: tuple[str, ...] = tuple(
    column
    for column in SIGNAL_COLUMNS
    if column not in {"signal_id", "symbol", "category", "time", "config_hash", "created_at"}
)


class PostgresSignalRepository(SignalRepository):
    """
    PostgresSignalRepository — explicit SQL adapter for detection signal storage.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/signal_repository.py
      - src/tradelab/contexts/outcomes/domain/entities/signal.py
      - alembic/versions/20261016_0001_signal_outcomes_v1.py
    """

    def __init__(self, *, gateway: OutcomesPostgresGateway, signals_table: str = "signals") -> None:
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresSignalRepository requires gateway")
        normalized_table = signals_table.strip()
        if not normalized_table:
            raise ValueError("PostgresSignalRepository requires non-empty signals_table")
        self._gateway = gateway
        self._signals_table = normalized_table

    def record(self, *, signal: Signal) -> Signal:
        """
        Insert signal or refresh mutable columns of row with the same natural key.

        Args:
            signal: Signal snapshot; `signal_id` is ignored.
        Returns:
            Signal: Stored snapshot with storage-assigned id.
        Assumptions:
            `created_at` of an existing row is kept; `updated_at` moves forward so complete
            outcomes computed before the refresh become stale.
        Raises:
            OutcomeStorageError: If statement fails or returns no row.
        Side Effects:
            Executes one SQL upsert statement.
        """
        insert_columns = tuple(column for column in SIGNAL_COLUMNS if column != "signal_id")
        values_sql = ",\n            ".join(
            "%(config_snapshot)s::jsonb" if column == "config_snapshot" else f"%({column})s"
            for column in insert_columns
        )
        update_sql = ",\n            ".join(
            f"{column} = EXCLUDED.{column}" for column in _REFRESHED_COLUMNS
        )
        query = f"""
        INSERT INTO {self._signals_table}
        (
            {", ".join(insert_columns)}
        )
        VALUES
        (
            {values_sql}
        )
        ON CONFLICT (symbol, category, time, config_hash) DO UPDATE SET
            {update_sql}
        RETURNING
            {", ".join(SIGNAL_COLUMNS)}
        """
        parameters: dict[str, Any] = {
            column: getattr(signal, column) for column in insert_columns
        }
        parameters["config_snapshot"] = json.dumps(
            dict(signal.config_snapshot),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
        )
        try:
            row = self._gateway.fetch_one(query=query, parameters=parameters)
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresSignalRepository.record failed") from error
        if row is None:
            raise OutcomeStorageError("PostgresSignalRepository.record returned no row")
        return map_signal_row(row=row)

    def find_by_id(self, *, signal_id: int) -> Signal | None:
        query = f"""
        SELECT
            {", ".join(SIGNAL_COLUMNS)}
        FROM {self._signals_table}
        WHERE signal_id = %(signal_id)s
        """
        try:
            row = self._gateway.fetch_one(query=query, parameters={"signal_id": signal_id})
        except Exception as error:  # noqa: BLE001
            raise OutcomeStorageError("PostgresSignalRepository.find_by_id failed") from error
        if row is None:
            return None
        return map_signal_row(row=row)


def map_signal_row(*, row: Mapping[str, Any]) -> Signal:
    """
    Map SQL row into immutable Signal domain object.

    Args:
        row: SQL row mapping.
    Returns:
        Signal: Mapped signal snapshot.
    Assumptions:
        `config_snapshot` arrives as decoded JSONB mapping or JSON text.
    Raises:
        OutcomeStorageError: If mapping fails.
    Side Effects:
        None.
    """
    try:
        snapshot = row["config_snapshot"]
        if isinstance(snapshot, str):
            snapshot = json.loads(snapshot)
        return Signal(
            signal_id=int(row["signal_id"]),
            symbol=str(row["symbol"]),
            category=str(row["category"]),
            time=int(row["time"]),
            price=float(row["price"]),
            stop=_optional_float(row["stop"]),
            tp1=_optional_float(row["tp1"]),
            tp2=_optional_float(row["tp2"]),
            config_hash=str(row["config_hash"]),
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
            entry_time=int(row["entry_time"] or 0),
            entry_candle_open_time=int(row["entry_candle_open_time"] or 0),
            entry_rule=row["entry_rule"],
            vwap=_optional_float(row["vwap"]),
            atr_pct=_optional_float(row["atr_pct"]),
            rr=_optional_float(row["rr"]),
            rr_est=_optional_float(row["rr_est"]),
            delta_vwap_pct=_optional_float(row["delta_vwap_pct"]),
            vol_spike=_optional_float(row["vol_spike"]),
            rsi9=_optional_float(row["rsi9"]),
            session_ok=row["session_ok"],
            sweep_ok=row["sweep_ok"],
            btc_bear=row["btc_bear"],
            config_snapshot=snapshot or {},
        )
    except Exception as error:  # noqa: BLE001
        raise OutcomeStorageError("PostgresSignalRepository cannot map signal row") from error


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)

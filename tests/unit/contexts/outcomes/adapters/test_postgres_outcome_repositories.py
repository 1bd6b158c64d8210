from __future__ import annotations

import json
from typing import Any, Mapping

import pytest

from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres import (
    PostgresOutcomeRepository,
    PostgresSignalRepository,
)
from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres.outcome_repository import (
    OUTCOME_COLUMNS,
)
from tradelab.contexts.outcomes.domain.entities import (
    OutcomeFilter,
    OutcomeKey,
    Signal,
    SignalOutcome,
)
from tradelab.contexts.outcomes.domain.errors import OutcomeStorageError

_T0 = 1_700_000_100_000


class _FakeGateway:
    """
    Deterministic fake SQL gateway for outcome Postgres repository unit tests.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/gateway.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
    """

    def __init__(
        self,
        *,
        fetch_one_results: list[Mapping[str, Any] | None | Exception] | None = None,
        fetch_all_results: list[tuple[Mapping[str, Any], ...] | Exception] | None = None,
        execute_error: Exception | None = None,
    ) -> None:
        self._fetch_one_results = list(fetch_one_results or [])
        self._fetch_all_results = list(fetch_all_results or [])
        self._execute_error = execute_error
        self.fetch_one_calls: list[tuple[str, Mapping[str, Any]]] = []
        self.fetch_all_calls: list[tuple[str, Mapping[str, Any]]] = []
        self.execute_calls: list[tuple[str, Mapping[str, Any]]] = []

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        self.fetch_one_calls.append((query, parameters))
        if not self._fetch_one_results:
            return None
        result = self._fetch_one_results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> tuple[Mapping[str, Any], ...]:
        self.fetch_all_calls.append((query, parameters))
        if not self._fetch_all_results:
            return tuple()
        result = self._fetch_all_results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        self.execute_calls.append((query, parameters))
        if self._execute_error is not None:
            raise self._execute_error


def _signal_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "signal_id": 7,
        "symbol": "BTCUSDT",
        "category": "BEST_ENTRY",
        "time": _T0,
        "price": 100.0,
        "stop": 98.0,
        "tp1": 102.0,
        "tp2": 104.0,
        "config_hash": "cfg",
        "entry_time": None,
        "entry_candle_open_time": 0,
        "entry_rule": None,
        "vwap": 99.5,
        "atr_pct": None,
        "rr": 2.0,
        "rr_est": None,
        "delta_vwap_pct": 0.4,
        "vol_spike": None,
        "rsi9": 51.0,
        "session_ok": True,
        "sweep_ok": None,
        "btc_bear": False,
        "config_snapshot": '{"env":{"RR_MIN_BEST":1.5}}',
        "created_at": _T0,
        "updated_at": _T0 + 1,
    }
    row.update(overrides)
    return row


def _outcome(**overrides: Any) -> SignalOutcome:
    values: dict[str, Any] = {
        "signal_id": 7,
        "horizon_min": 15,
        "entry_time": _T0,
        "entry_candle_open_time": _T0,
        "entry_rule": "signal_close",
        "start_time": _T0,
        "end_time": _T0 + 600_000,
        "interval_min": 5,
        "n_candles": 3,
        "n_candles_expected": 3,
        "coverage_pct": 100.0,
        "entry_price": 100.0,
        "open_price": 100.0,
        "close_price": 100.0,
        "max_high": 100.5,
        "min_low": 99.5,
        "ret_pct": 0.0,
        "r_mult": 0.0,
        "r_close": 0.0,
        "r_mfe": 0.25,
        "r_mae": -0.25,
        "r_realized": 0.0,
        "hit_sl": False,
        "hit_tp1": False,
        "hit_tp2": False,
        "tp1_hit_time": 0,
        "sl_hit_time": 0,
        "tp2_hit_time": 0,
        "time_to_first_hit_ms": 0,
        "bars_to_exit": 3,
        "mfe_pct": 0.5,
        "mae_pct": -0.5,
        "result": "NONE",
        "exit_reason": "TIMEOUT",
        "outcome_driver": None,
        "trade_state": "EXPIRED",
        "exit_price": 100.0,
        "exit_time": _T0 + 600_000,
        "window_status": "COMPLETE",
        "outcome_state": "COMPLETE_TIMEOUT_NO_HIT",
        "invalid_levels": False,
        "invalid_reason": None,
        "ambiguous": False,
        "expired_after_15m": False,
        "expired_reason": None,
        "attempted_at": _T0 + 2_000_000,
        "computed_at": _T0 + 2_000_000,
        "resolved_at": _T0 + 2_000_000,
        "resolve_version": "v2",
    }
    values.update(overrides)
    return SignalOutcome(**values)


def _outcome_row(outcome: SignalOutcome) -> dict[str, Any]:
    return {column: getattr(outcome, column) for column in OUTCOME_COLUMNS}


def test_signal_record_upserts_by_natural_key_and_maps_returned_row() -> None:
    gateway = _FakeGateway(fetch_one_results=[_signal_row()])
    repository = PostgresSignalRepository(gateway=gateway)

    stored = repository.record(
        signal=Signal(
            signal_id=None,
            symbol="btcusdt",
            category="best_entry",
            time=_T0,
            price=100.0,
            stop=98.0,
            tp1=102.0,
            tp2=104.0,
            config_hash="cfg",
            created_at=_T0,
            updated_at=_T0 + 1,
            config_snapshot={"env": {"RR_MIN_BEST": 1.5}},
        )
    )

    query, parameters = gateway.fetch_one_calls[0]
    assert "ON CONFLICT (symbol, category, time, config_hash) DO UPDATE SET" in query
    assert "%(config_snapshot)s::jsonb" in query
    assert "created_at = EXCLUDED.created_at" not in query
    assert "signal_id" not in parameters
    assert parameters["symbol"] == "BTCUSDT"
    assert parameters["config_snapshot"] == '{"env":{"RR_MIN_BEST":1.5}}'
    assert stored.signal_id == 7
    assert stored.entry_time == 0
    assert stored.config_env() == {"RR_MIN_BEST": 1.5}


def test_signal_record_without_returned_row_raises_storage_error() -> None:
    repository = PostgresSignalRepository(gateway=_FakeGateway())

    with pytest.raises(OutcomeStorageError, match="returned no row"):
        repository.record(
            signal=Signal(
                signal_id=None,
                symbol="BTCUSDT",
                category="BEST_ENTRY",
                time=_T0,
                price=100.0,
                stop=None,
                tp1=None,
                tp2=None,
                config_hash="cfg",
                created_at=_T0,
                updated_at=_T0,
            )
        )


def test_signal_find_by_id_returns_none_for_missing_row() -> None:
    repository = PostgresSignalRepository(gateway=_FakeGateway(fetch_one_results=[None]))

    assert repository.find_by_id(signal_id=99) is None


def test_candidates_query_joins_skips_and_orders_newest_first() -> None:
    gateway = _FakeGateway(fetch_all_results=[(_signal_row(), _signal_row(signal_id=6))])
    repository = PostgresOutcomeRepository(gateway=gateway)

    candidates = repository.list_resolution_candidates(
        horizon_min=60,
        ready_entry_before_ms=_T0,
        categories=("BEST_ENTRY", "READY_TO_BUY"),
        retry_reasons=("API_ERROR",),
        retry_before_ms=_T0 - 300_000,
        limit=25,
    )

    query, parameters = gateway.fetch_all_calls[0]
    assert "LEFT JOIN outcome_skips AS k" in query
    assert "WHERE k.signal_id IS NULL" in query
    assert "o.computed_at < s.updated_at" in query
    assert "ORDER BY s.time DESC, s.signal_id DESC" in query
    assert parameters["categories"] == ["BEST_ENTRY", "READY_TO_BUY"]
    assert parameters["retry_reasons"] == ["API_ERROR"]
    assert parameters["limit"] == 25
    assert [candidate.signal_id for candidate in candidates] == [7, 6]


def test_candidates_with_zero_limit_do_not_query() -> None:
    gateway = _FakeGateway()
    repository = PostgresOutcomeRepository(gateway=gateway)

    assert repository.list_resolution_candidates(
        horizon_min=15,
        ready_entry_before_ms=_T0,
        categories=("BEST_ENTRY",),
        retry_reasons=(),
        retry_before_ms=0,
        limit=0,
    ) == ()
    assert gateway.fetch_all_calls == []


def test_find_outcome_maps_row() -> None:
    outcome = _outcome()
    repository = PostgresOutcomeRepository(
        gateway=_FakeGateway(fetch_one_results=[_outcome_row(outcome)])
    )

    assert repository.find_outcome(signal_id=7, horizon_min=15) == outcome


def test_unmappable_outcome_row_raises_storage_error() -> None:
    row = _outcome_row(_outcome())
    row["window_status"] = "UNKNOWN"
    repository = PostgresOutcomeRepository(gateway=_FakeGateway(fetch_one_results=[row]))

    with pytest.raises(OutcomeStorageError, match="cannot map outcome row"):
        repository.find_outcome(signal_id=7, horizon_min=15)


def test_upsert_preserves_stored_computed_at_and_prev_snapshot() -> None:
    gateway = _FakeGateway()
    repository = PostgresOutcomeRepository(gateway=gateway, outcomes_table="outcomes_v2")

    repository.upsert_outcome(outcome=_outcome())

    query, parameters = gateway.execute_calls[0]
    assert "INSERT INTO outcomes_v2" in query
    assert "ON CONFLICT (signal_id, horizon_min) DO UPDATE SET" in query
    assert "WHEN EXCLUDED.computed_at = 0 THEN outcomes_v2.computed_at" in query
    assert "prev_snapshot = COALESCE(" in query
    assert "prev_snapshot = EXCLUDED.prev_snapshot" not in query
    assert "computed_at = EXCLUDED.computed_at" not in query
    assert set(parameters) == set(OUTCOME_COLUMNS)


def test_upsert_wraps_gateway_error() -> None:
    cause = RuntimeError("connection reset")
    repository = PostgresOutcomeRepository(gateway=_FakeGateway(execute_error=cause))

    with pytest.raises(OutcomeStorageError, match="upsert_outcome failed") as error_info:
        repository.upsert_outcome(outcome=_outcome())

    assert error_info.value.__cause__ is cause


def test_find_meta_returns_value_text() -> None:
    repository = PostgresOutcomeRepository(
        gateway=_FakeGateway(fetch_one_results=[{"value": 1_760_000_000_000}, None])
    )

    assert repository.find_meta(key="resolve_version:v2") == "1760000000000"
    assert repository.find_meta(key="resolve_version:v3") is None


def test_reset_for_resolve_version_runs_single_statement_with_marker() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"reset_rows": 4, "marker_rows": 1}])
    repository = PostgresOutcomeRepository(gateway=gateway)

    reset = repository.reset_for_resolve_version(
        resolve_version="v2",
        marker_key="resolve_version:v2",
        marked_at=1_760_000_000_000,
    )

    query, parameters = gateway.fetch_one_calls[0]
    assert reset == 4
    assert "WHERE (resolve_version IS NULL OR resolve_version <> %(resolve_version)s)" in query
    assert "INSERT INTO outcome_meta (key, value, updated_at)" in query
    assert parameters["stale_reason"] == "STALE_RESOLVE"
    assert parameters["marker_value"] == "1760000000000"
    assert parameters["complete_only"] is False


def test_reset_for_resolve_version_can_restrict_to_complete_rows() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"reset_rows": 2, "marker_rows": 0}])
    repository = PostgresOutcomeRepository(gateway=gateway)

    reset = repository.reset_for_resolve_version(
        resolve_version="v1",
        marker_key="resolve_version:v1",
        marked_at=1_760_000_000_000,
        complete_only=True,
    )

    query, parameters = gateway.fetch_one_calls[0]
    assert reset == 2
    assert "NOT %(complete_only)s OR outcome_state IN ('COMPLETE_" in query
    assert parameters["complete_only"] is True


def test_delete_outcomes_inserts_skips_and_deletes_rows() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"deleted_rows": 1, "skipped_rows": 2}])
    repository = PostgresOutcomeRepository(gateway=gateway)

    deleted = repository.delete_outcomes(
        keys=(
            OutcomeKey(signal_id=7, horizon_min=15),
            OutcomeKey(signal_id=8, horizon_min=60),
        ),
        reason="user_delete",
        created_at=_T0,
    )

    query, parameters = gateway.fetch_one_calls[0]
    assert deleted == 1
    assert "INSERT INTO outcome_skips" in query
    assert "DELETE FROM signal_outcomes AS o" in query
    assert parameters["signal_ids"] == [7, 8]
    assert parameters["horizons"] == [15, 60]
    assert parameters["reason"] == "user_delete"


def test_delete_outcomes_with_no_keys_does_not_query() -> None:
    gateway = _FakeGateway()

    assert PostgresOutcomeRepository(gateway=gateway).delete_outcomes(
        keys=(),
        reason="user_delete",
        created_at=_T0,
    ) == 0
    assert gateway.fetch_one_calls == []


def test_delete_by_filter_binds_filter_fields() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"deleted_rows": 3, "skipped_rows": 3}])
    repository = PostgresOutcomeRepository(gateway=gateway)

    deleted = repository.delete_outcomes_by_filter(
        outcome_filter=OutcomeFilter(start_time=_T0, end_time=_T0 + 1, symbol="ethusdt"),
        reason="user_delete",
        created_at=_T0,
    )

    _, parameters = gateway.fetch_one_calls[0]
    assert deleted == 3
    assert parameters["symbol"] == "ETHUSDT"
    assert parameters["category"] is None
    assert parameters["horizon_min"] is None
    assert parameters["start_time"] == _T0


def test_rebuild_by_filter_touches_complete_rows_only() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"rebuilt_rows": 2}])
    repository = PostgresOutcomeRepository(gateway=gateway)

    rebuilt = repository.rebuild_outcomes_by_filter(
        outcome_filter=OutcomeFilter(start_time=0, end_time=_T0, window_status="COMPLETE"),
    )

    query, parameters = gateway.fetch_one_calls[0]
    assert rebuilt == 2
    assert "AND o.window_status = 'COMPLETE'" in query
    assert "resolve_version = NULL" in query
    assert parameters["window_status"] == "COMPLETE"


def test_count_statement_without_row_raises_storage_error() -> None:
    repository = PostgresOutcomeRepository(gateway=_FakeGateway(fetch_one_results=[None]))

    with pytest.raises(OutcomeStorageError, match="rebuild_outcomes_by_filter returned no row"):
        repository.rebuild_outcomes_by_filter(
            outcome_filter=OutcomeFilter(start_time=0, end_time=_T0),
        )


def test_list_skips_maps_rows() -> None:
    gateway = _FakeGateway(
        fetch_all_results=[
            (
                {"signal_id": 7, "horizon_min": 15, "reason": "user_delete", "created_at": _T0},
                {"signal_id": 7, "horizon_min": 60, "reason": "user_delete", "created_at": _T0},
            )
        ]
    )

    skips = PostgresOutcomeRepository(gateway=gateway).list_skips(signal_id=7)

    assert [skip.horizon_min for skip in skips] == [15, 60]
    assert "ORDER BY horizon_min ASC" in gateway.fetch_all_calls[0][0]


def test_count_integrity_violations_maps_aggregate_row() -> None:
    row = {
        "stale_complete": 1,
        "missing_resolved_at": 0,
        "missing_resolve_version": None,
        "missing_exit_reason": 2,
        "bad_bars_to_exit": 0,
        "bad_timeout_rows": 0,
        "bad_timeout_exit_time": 0,
        "bad_expired_exit_time": 0,
        "bad_ambiguous_rows": 0,
        "bad_ambiguous_missing_hits": 0,
        "resolved_not_complete": 0,
    }
    gateway = _FakeGateway(fetch_one_results=[row])

    report = PostgresOutcomeRepository(gateway=gateway).count_integrity_violations(
        resolve_version="v2",
        resolved_since_ms=_T0,
    )

    query, parameters = gateway.fetch_one_calls[0]
    assert report.violations() == {"stale_complete": 1, "missing_exit_reason": 2}
    assert "WHERE resolved_at = 0" in query
    assert "OR resolved_at >= %(resolved_since_ms)s" in query
    assert parameters["expired_checkpoint_ms"] == 900_000


def test_query_errors_are_wrapped_into_storage_error() -> None:
    gateway = _FakeGateway(fetch_all_results=[RuntimeError("timeout")])
    repository = PostgresOutcomeRepository(gateway=gateway)

    with pytest.raises(OutcomeStorageError, match="list_resolution_candidates failed"):
        repository.list_resolution_candidates(
            horizon_min=15,
            ready_entry_before_ms=_T0,
            categories=("BEST_ENTRY",),
            retry_reasons=(),
            retry_before_ms=0,
            limit=5,
        )


def test_repositories_reject_blank_table_names() -> None:
    with pytest.raises(ValueError, match="skips_table"):
        PostgresOutcomeRepository(gateway=_FakeGateway(), skips_table=" ")
    with pytest.raises(ValueError, match="signals_table"):
        PostgresSignalRepository(gateway=_FakeGateway(), signals_table="")


def test_signal_snapshot_json_is_decoded_from_text() -> None:
    repository = PostgresSignalRepository(
        gateway=_FakeGateway(
            fetch_one_results=[_signal_row(config_snapshot=json.dumps({"thresholds": {"a": 1}}))]
        )
    )

    signal = repository.find_by_id(signal_id=7)

    assert signal is not None
    assert signal.config_thresholds() == {"a": 1}

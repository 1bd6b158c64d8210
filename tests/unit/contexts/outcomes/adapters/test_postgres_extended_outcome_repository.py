from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping

import pytest

from tradelab.contexts.outcomes.adapters.outbound.persistence.postgres import (
    PostgresExtendedOutcomeRepository,
    extended_outcome_repository,
)
from tradelab.contexts.outcomes.domain.entities import ExtendedOutcome
from tradelab.contexts.outcomes.domain.errors import OutcomeStorageError

_T0 = 1_700_000_100_000
_DAY_MS = 86_400_000


class _FakeGateway:
    """
    Deterministic fake SQL gateway for extended outcome repository unit tests.
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


def _extended(**overrides: Any) -> ExtendedOutcome:
    values: dict[str, Any] = {
        "signal_id": 7,
        "symbol": "BTCUSDT",
        "category": "BEST_ENTRY",
        "signal_time": _T0,
        "expires_at": _T0 + _DAY_MS,
        "entry_price": 100.0,
        "stop_price": 95.0,
        "tp1_price": 110.0,
        "tp2_price": 120.0,
        "n_candles_expected": 288,
        "risk_usd": 15.0,
        "resolve_version": "v1.0.0",
    }
    values.update(overrides)
    return ExtendedOutcome(**values)


def test_enrollment_candidates_require_long_plan_and_missing_row() -> None:
    gateway = _FakeGateway(fetch_all_results=[tuple()])
    repository = PostgresExtendedOutcomeRepository(gateway=gateway)

    result = repository.list_enrollment_candidates(
        since_ms=_T0,
        categories=("BEST_ENTRY",),
        limit=25,
    )

    assert result == ()
    query, parameters = gateway.fetch_all_calls[0]
    assert "LEFT JOIN extended_outcomes AS e" in query
    assert "e.signal_id IS NULL" in query
    assert "s.stop < s.price" in query
    assert "s.tp2 < 'Infinity'::DOUBLE PRECISION" in query
    assert "ORDER BY s.time DESC, s.signal_id DESC" in query
    assert parameters == {"categories": ["BEST_ENTRY"], "since_ms": _T0, "limit": 25}


def test_enrollment_candidates_without_categories_do_not_query() -> None:
    gateway = _FakeGateway()
    repository = PostgresExtendedOutcomeRepository(gateway=gateway)

    assert repository.list_enrollment_candidates(since_ms=_T0, categories=(), limit=5) == ()
    assert gateway.fetch_all_calls == []


def test_enroll_inserts_once_and_reports_conflict() -> None:
    gateway = _FakeGateway(fetch_one_results=[{"signal_id": 7}, None])
    repository = PostgresExtendedOutcomeRepository(gateway=gateway)

    assert repository.enroll(outcome=_extended()) is True
    assert repository.enroll(outcome=_extended()) is False
    query, parameters = gateway.fetch_one_calls[0]
    assert "ON CONFLICT (signal_id) DO NOTHING" in query
    assert set(parameters) == set(extended_outcome_repository.EXTENDED_COLUMNS)
    assert parameters["status"] == "PENDING"


def test_list_open_orders_by_last_evaluation_and_maps_rows() -> None:
    stored = _extended(status="ACHIEVED_TP1", first_tp1_at=_T0, last_evaluated_at=_T0 + 5)
    gateway = _FakeGateway(fetch_all_results=[(asdict(stored),)])
    repository = PostgresExtendedOutcomeRepository(gateway=gateway)

    rows = repository.list_open(limit=10)

    assert rows == (stored,)
    query, parameters = gateway.fetch_all_calls[0]
    assert "WHERE completed_at = 0" in query
    assert "ORDER BY last_evaluated_at ASC, signal_id ASC" in query
    assert parameters == {"limit": 10}


def test_save_updates_evaluation_columns_of_open_row_only() -> None:
    gateway = _FakeGateway()
    repository = PostgresExtendedOutcomeRepository(gateway=gateway)
    outcome = _extended(
        status="WIN_TP2",
        trade_state="COMPLETED_TP2",
        exit_price=120.0,
        completed_at=_T0 + 10,
    )

    repository.save(outcome=outcome)

    query, parameters = gateway.execute_calls[0]
    assert query.strip().startswith("UPDATE extended_outcomes")
    assert "AND completed_at = 0" in query
    assert "tp1_price" not in query
    assert set(parameters) == set(
        extended_outcome_repository.EXTENDED_EVALUATION_COLUMNS
    ) | {"signal_id"}
    assert parameters["exit_price"] == 120.0


def test_find_returns_none_and_wraps_bad_rows() -> None:
    gateway = _FakeGateway(fetch_one_results=[None, {**asdict(_extended()), "status": "HIT"}])
    repository = PostgresExtendedOutcomeRepository(gateway=gateway)

    assert repository.find(signal_id=7) is None
    with pytest.raises(OutcomeStorageError, match="cannot map"):
        repository.find(signal_id=7)


def test_gateway_errors_are_wrapped_into_storage_error() -> None:
    repository = PostgresExtendedOutcomeRepository(
        gateway=_FakeGateway(
            fetch_all_results=[RuntimeError("connection reset")],
            execute_error=RuntimeError("connection reset"),
        )
    )

    with pytest.raises(OutcomeStorageError, match="list_open"):
        repository.list_open(limit=1)
    with pytest.raises(OutcomeStorageError, match="save"):
        repository.save(outcome=_extended())


def test_rejects_blank_table_names() -> None:
    with pytest.raises(ValueError, match="extended_table"):
        PostgresExtendedOutcomeRepository(gateway=_FakeGateway(), extended_table=" ")

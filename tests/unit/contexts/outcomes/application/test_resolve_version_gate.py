from __future__ import annotations

import json
from datetime import datetime, timezone

from tradelab.contexts.outcomes.adapters.outbound.persistence.in_memory import (
    InMemoryOutcomeRepository,
    InMemorySignalRepository,
)
from tradelab.contexts.outcomes.application import (
    HorizonOutcomeResolver,
    OutcomeResolutionPolicy,
    ResolveVersionGate,
    epoch_ms,
)
from tradelab.contexts.outcomes.application.services.resolve_version_gate import (
    resolve_version_marker_key,
)
from tradelab.contexts.outcomes.domain.entities import Signal
from tradelab.shared_kernel.primitives import Candle

_NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)
_T0 = 1_700_000_100_000


class _FixedClock:
    def now(self) -> datetime:
        return _NOW


class _TimeoutFetcher:
    def fetch(self, *, symbol: str, interval_min: int, start_time_ms: int, limit: int):
        step = interval_min * 60_000
        return tuple(
            Candle(
                open_time=start_time_ms + index * step,
                open=100.0,
                high=100.5,
                low=99.5,
                close=100.0,
            )
            for index in range(limit)
        )


def _policy(resolve_version: str) -> OutcomeResolutionPolicy:
    return OutcomeResolutionPolicy(
        interval_min=5,
        grace_ms=120_000,
        buffer_candles=2,
        min_coverage_pct=95.0,
        min_risk_pct=0.2,
        fee_bps=0.0,
        slippage_bps=0.0,
        entry_rule="signal_close",
        resolve_version=resolve_version,
        expire_after_15m=True,
        entry_drift_atr=1.0,
        structure_tolerance_pct=0.0,
    )


def _seed_v1_outcomes() -> tuple[InMemoryOutcomeRepository, Signal]:
    signals = InMemorySignalRepository()
    outcomes = InMemoryOutcomeRepository(signal_repository=signals)
    signal = signals.record(
        signal=Signal(
            signal_id=None,
            symbol="ETHUSDT",
            category="READY_TO_BUY",
            time=_T0,
            price=100.0,
            stop=98.0,
            tp1=102.0,
            tp2=104.0,
            config_hash="cfg",
            created_at=_T0,
            updated_at=_T0,
        )
    )
    resolver = HorizonOutcomeResolver(
        outcome_repository=outcomes,
        policy=_policy("v1"),
        clock=_FixedClock(),
    )
    for horizon_min in (15, 30):
        resolver.resolve(
            signal=signal,
            horizon_min=horizon_min,
            candle_fetcher=_TimeoutFetcher(),
            now_ms=_T0 + 10_000_000,
        )
    return outcomes, signal


def test_gate_resets_stale_rows_once_and_records_marker() -> None:
    outcomes, signal = _seed_v1_outcomes()
    gate = ResolveVersionGate(
        outcome_repository=outcomes,
        resolve_version="v2",
        clock=_FixedClock(),
    )

    first = gate.apply()
    second = gate.apply()

    assert first.applied is True
    assert first.reset_rows == 2
    assert second.applied is False
    assert second.reset_rows == 0
    assert outcomes.find_meta(key=resolve_version_marker_key("v2")) == str(epoch_ms(_NOW))

    reset = outcomes.find_outcome(signal_id=signal.signal_id or 0, horizon_min=15)
    assert reset is not None
    assert reset.window_status == "PARTIAL"
    assert reset.outcome_state == "PENDING"
    assert reset.trade_state == "PENDING"
    assert reset.invalid_reason == "STALE_RESOLVE"
    assert reset.exit_reason is None
    assert reset.resolved_at == 0
    assert reset.computed_at == 0
    assert reset.resolve_version is None
    snapshot = json.loads(reset.prev_snapshot or "{}")
    assert snapshot["outcome_state"] == "COMPLETE_TIMEOUT_NO_HIT"
    assert snapshot["resolve_version"] == "v1"
    assert snapshot["exit_reason"] == "TIMEOUT"


def test_gate_for_current_version_touches_nothing() -> None:
    outcomes, _ = _seed_v1_outcomes()
    before = outcomes.list_outcomes()

    report = ResolveVersionGate(
        outcome_repository=outcomes,
        resolve_version="v1",
        clock=_FixedClock(),
    ).apply()

    assert report.applied is True
    assert report.reset_rows == 0
    assert outcomes.list_outcomes() == before


def test_reset_rows_are_recomputed_under_new_version_keeping_prev_snapshot() -> None:
    outcomes, signal = _seed_v1_outcomes()
    ResolveVersionGate(
        outcome_repository=outcomes,
        resolve_version="v2",
        clock=_FixedClock(),
    ).apply()
    resolver = HorizonOutcomeResolver(
        outcome_repository=outcomes,
        policy=_policy("v2"),
        clock=_FixedClock(),
    )

    resolver.resolve(
        signal=signal,
        horizon_min=15,
        candle_fetcher=_TimeoutFetcher(),
        now_ms=_T0 + 20_000_000,
    )

    stored = outcomes.find_outcome(signal_id=signal.signal_id or 0, horizon_min=15)
    assert stored is not None
    assert stored.resolve_version == "v2"
    assert stored.outcome_state == "COMPLETE_TIMEOUT_NO_HIT"
    assert stored.prev_snapshot is not None
    assert json.loads(stored.prev_snapshot)["resolve_version"] == "v1"


def test_rollback_to_marked_version_resets_rows_completed_by_newer_version() -> None:
    outcomes, signal = _seed_v1_outcomes()
    v1_gate = ResolveVersionGate(
        outcome_repository=outcomes,
        resolve_version="v1",
        clock=_FixedClock(),
    )
    v1_gate.apply()
    ResolveVersionGate(
        outcome_repository=outcomes,
        resolve_version="v2",
        clock=_FixedClock(),
    ).apply()
    v2_resolver = HorizonOutcomeResolver(
        outcome_repository=outcomes,
        policy=_policy("v2"),
        clock=_FixedClock(),
    )
    v2_resolver.resolve(
        signal=signal,
        horizon_min=15,
        candle_fetcher=_TimeoutFetcher(),
        now_ms=_T0 + 20_000_000,
    )

    rollback = v1_gate.apply()
    repeated = v1_gate.apply()

    assert rollback.applied is False
    assert rollback.reset_rows == 1
    assert repeated.reset_rows == 0
    short = outcomes.find_outcome(signal_id=signal.signal_id or 0, horizon_min=15)
    assert short is not None
    assert short.outcome_state == "PENDING"
    assert short.resolve_version is None
    assert short.invalid_reason == "STALE_RESOLVE"
    assert json.loads(short.prev_snapshot or "{}")["resolve_version"] == "v2"
    assert all(
        outcome.resolve_version in (None, "v1")
        for outcome in outcomes.list_outcomes()
        if outcome.is_complete()
    )

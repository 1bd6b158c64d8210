from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tradelab.contexts.outcomes.adapters.outbound.persistence.in_memory import (
    InMemoryOutcomeRepository,
    InMemorySignalRepository,
)
from tradelab.contexts.outcomes.application import (
    HorizonOutcomeResolver,
    OutcomeBatchReport,
    OutcomeBatchScheduler,
    OutcomeIntegrityChecker,
    OutcomeResolutionPolicy,
    OutcomeSchedulePolicy,
    epoch_ms,
)
from tradelab.contexts.outcomes.domain.entities import Signal
from tradelab.shared_kernel.primitives import Candle

_NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)
_NOW_MS = epoch_ms(_NOW)
_FIVE_MIN_MS = 300_000
_SIGNAL_TIME = _NOW_MS - 2 * 60 * 60_000


class _FixedClock:
    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, *, seconds: int) -> None:
        self._now = self._now + timedelta(seconds=seconds)


class _RecordingSleeper:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def sleep(self, *, seconds: float) -> None:
        self.calls.append(seconds)


class _FlatCandleFetcher:
    """
    Candle fetcher fake serving flat 5-minute candles for any requested range.
    """

    def __init__(self, *, error: Exception | None = None) -> None:
        self._error = error
        self.calls = 0

    def fetch(
        self,
        *,
        symbol: str,
        interval_min: int,
        start_time_ms: int,
        limit: int,
    ) -> tuple[Candle, ...]:
        self.calls += 1
        if self._error is not None:
            raise self._error
        step = interval_min * 60_000
        return tuple(
            Candle(
                open_time=start_time_ms + index * step,
                open=100.0,
                high=100.0,
                low=100.0,
                close=100.0,
            )
            for index in range(limit)
        )


class _ReentrantResolver:
    """
    Resolver fake that triggers a nested pass to observe overlap handling.
    """

    def __init__(self) -> None:
        self.scheduler: OutcomeBatchScheduler | None = None
        self.nested_reports: list[OutcomeBatchReport] = []

    def resolve(self, *, signal, horizon_min, candle_fetcher, now_ms):  # noqa: ANN001
        assert self.scheduler is not None
        self.nested_reports.append(self.scheduler.run_once())
        raise RuntimeError("stop after nested call")


class _FailingIntegrityChecker:
    def __init__(self) -> None:
        self.calls: list[int] = []

    def check(self, *, now_ms: int):  # noqa: ANN201
        self.calls.append(now_ms)
        raise RuntimeError("integrity query timed out")


def _resolution_policy() -> OutcomeResolutionPolicy:
    return OutcomeResolutionPolicy(
        interval_min=5,
        grace_ms=120_000,
        buffer_candles=2,
        min_coverage_pct=95.0,
        min_risk_pct=0.2,
        fee_bps=5.0,
        slippage_bps=2.0,
        entry_rule="signal_close",
        resolve_version="v2",
        expire_after_15m=True,
        entry_drift_atr=1.0,
        structure_tolerance_pct=0.0,
    )


def _schedule_policy(**overrides: object) -> OutcomeSchedulePolicy:
    values: dict[str, object] = {
        "horizons_min": (60, 15),
        "tracked_categories": ("BEST_ENTRY", "READY_TO_BUY"),
        "retry_reasons": ("API_ERROR", "BAD_ALIGN", "NO_DATA_IN_WINDOW", "NOT_ENOUGH_BARS"),
        "retry_after_ms": 600_000,
        "batch_size": 25,
        "pacing_ms": 120,
        "integrity_interval_ms": 600_000,
        "integrity_lookback_days": 14,
    }
    values.update(overrides)
    return OutcomeSchedulePolicy(**values)  # type: ignore[arg-type]


def _signal(*, category: str, time: int = _SIGNAL_TIME, config_hash: str = "cfg") -> Signal:
    return Signal(
        signal_id=None,
        symbol="BTCUSDT",
        category=category,
        time=time,
        price=100.0,
        stop=98.0,
        tp1=102.0,
        tp2=104.0,
        config_hash=config_hash,
        created_at=time,
        updated_at=time,
    )


def _build(
    *,
    schedule_policy: OutcomeSchedulePolicy | None = None,
    fetcher: _FlatCandleFetcher | None = None,
    resolver: object | None = None,
    integrity_checker: object | None = None,
) -> tuple[
    OutcomeBatchScheduler,
    InMemorySignalRepository,
    InMemoryOutcomeRepository,
    _RecordingSleeper,
    _FixedClock,
]:
    signals = InMemorySignalRepository()
    outcomes = InMemoryOutcomeRepository(signal_repository=signals)
    clock = _FixedClock(_NOW)
    sleeper = _RecordingSleeper()
    resolution_policy = _resolution_policy()
    scheduler = OutcomeBatchScheduler(
        outcome_repository=outcomes,
        resolver=resolver  # type: ignore[arg-type]
        or HorizonOutcomeResolver(
            outcome_repository=outcomes,
            policy=resolution_policy,
            clock=clock,
        ),
        candle_fetcher=fetcher or _FlatCandleFetcher(),
        resolution_policy=resolution_policy,
        schedule_policy=schedule_policy or _schedule_policy(),
        integrity_checker=integrity_checker  # type: ignore[arg-type]
        or OutcomeIntegrityChecker(
            outcome_repository=outcomes,
            resolve_version="v2",
            lookback_days=14,
        ),
        clock=clock,
        sleeper=sleeper,
    )
    return scheduler, signals, outcomes, sleeper, clock


def test_pass_resolves_due_pairs_with_shared_fetch_cache_and_pacing() -> None:
    fetcher = _FlatCandleFetcher()
    scheduler, signals, outcomes, sleeper, _ = _build(fetcher=fetcher)
    signals.record(signal=_signal(category="BEST_ENTRY"))
    signals.record(signal=_signal(category="READY_TO_BUY"))
    signals.record(signal=_signal(category="IGNORED"))
    signals.record(
        signal=_signal(category="BEST_ENTRY", time=_NOW_MS - 5 * 60_000, config_hash="x")
    )

    report = scheduler.run_once()

    assert report.skipped is False
    assert report.processed == 4
    assert report.failed == 0
    assert report.fetch_errors == 0
    assert report.provider_calls == 2
    assert report.cache_hits == 2
    assert fetcher.calls == 2
    assert sleeper.calls == [0.12, 0.12, 0.12]
    assert report.integrity is not None and report.integrity.ok
    stored = outcomes.list_outcomes()
    assert [(row.signal_id, row.horizon_min) for row in stored] == [
        (1, 15),
        (1, 60),
        (2, 15),
        (2, 60),
    ]
    assert all(row.outcome_state == "COMPLETE_TIMEOUT_NO_HIT" for row in stored)
    assert all(row.computed_at == _NOW_MS for row in stored)


def test_second_pass_skips_resolved_rows_and_integrity_until_interval() -> None:
    scheduler, signals, _, _, clock = _build()
    signals.record(signal=_signal(category="BEST_ENTRY"))

    first = scheduler.run_once()
    second = scheduler.run_once()
    clock.advance(seconds=600)
    third = scheduler.run_once()

    assert first.processed == 2
    assert second.processed == 0
    assert second.integrity is None
    assert third.integrity is not None
    health = scheduler.health()
    assert health.passes == 3
    assert health.running is False
    assert health.last_integrity_at == epoch_ms(clock.now())
    assert health.last_integrity_ok is True


def test_updated_signal_is_recomputed() -> None:
    scheduler, signals, outcomes, _, clock = _build(
        schedule_policy=_schedule_policy(horizons_min=(15,)),
    )
    signal = signals.record(signal=_signal(category="BEST_ENTRY"))
    scheduler.run_once()

    clock.advance(seconds=60)
    refreshed = Signal(
        signal_id=None,
        symbol=signal.symbol,
        category=signal.category,
        time=signal.time,
        price=100.0,
        stop=97.0,
        tp1=102.0,
        tp2=104.0,
        config_hash=signal.config_hash,
        created_at=signal.created_at,
        updated_at=_NOW_MS + 30_000,
    )
    signals.record(signal=refreshed)
    report = scheduler.run_once()

    assert report.processed == 1
    assert outcomes.list_outcomes()[0].computed_at == _NOW_MS + 60_000


def test_fetch_errors_are_counted_and_retried_after_cooldown() -> None:
    scheduler, signals, outcomes, _, clock = _build(
        schedule_policy=_schedule_policy(horizons_min=(15,)),
        fetcher=_FlatCandleFetcher(error=RuntimeError("HTTP 429")),
    )
    signals.record(signal=_signal(category="BEST_ENTRY"))
    signals.record(signal=_signal(category="READY_TO_BUY"))

    first = scheduler.run_once()
    immediate = scheduler.run_once()
    clock.advance(seconds=601)
    after_cooldown = scheduler.run_once()

    assert first.processed == 2
    assert first.fetch_errors == 2
    assert first.failed == 0
    assert all(row.invalid_reason == "API_ERROR" for row in outcomes.list_outcomes())
    assert immediate.processed == 0
    assert after_cooldown.processed == 2
    assert scheduler.health().last_fetch_errors == 2


def test_overlapping_pass_is_skipped_and_pair_failure_is_counted() -> None:
    resolver = _ReentrantResolver()
    scheduler, signals, _, _, _ = _build(
        schedule_policy=_schedule_policy(horizons_min=(15,)),
        resolver=resolver,
    )
    resolver.scheduler = scheduler
    signals.record(signal=_signal(category="BEST_ENTRY"))

    report = scheduler.run_once()

    assert [nested.skipped for nested in resolver.nested_reports] == [True]
    assert report.skipped is False
    assert report.failed == 1
    assert report.processed == 0
    assert scheduler.health().passes == 1


def test_batch_size_caps_candidates_newest_first() -> None:
    scheduler, signals, outcomes, _, _ = _build(
        schedule_policy=_schedule_policy(horizons_min=(15,), batch_size=1, pacing_ms=0),
    )
    signals.record(signal=_signal(category="BEST_ENTRY", time=_SIGNAL_TIME - _FIVE_MIN_MS))
    newest = signals.record(signal=_signal(category="BEST_ENTRY", config_hash="new"))

    report = scheduler.run_once()

    assert report.processed == 1
    assert [row.signal_id for row in outcomes.list_outcomes()] == [newest.signal_id]


def test_scheduler_requires_dependencies() -> None:
    with pytest.raises(ValueError):
        OutcomeBatchScheduler(
            outcome_repository=None,  # type: ignore[arg-type]
            resolver=None,  # type: ignore[arg-type]
            candle_fetcher=_FlatCandleFetcher(),
            resolution_policy=_resolution_policy(),
            schedule_policy=_schedule_policy(),
            integrity_checker=None,  # type: ignore[arg-type]
            clock=_FixedClock(_NOW),
            sleeper=_RecordingSleeper(),
        )


def test_failing_integrity_sweep_waits_for_next_interval() -> None:
    checker = _FailingIntegrityChecker()
    scheduler, _, _, _, clock = _build(integrity_checker=checker)

    first = scheduler.run_once()
    second = scheduler.run_once()

    assert first.integrity is None
    assert second.integrity is None
    assert checker.calls == [_NOW_MS]
    health = scheduler.health()
    assert health.last_integrity_at == _NOW_MS
    assert health.last_integrity_ok is None

    clock.advance(seconds=600)
    scheduler.run_once()

    assert checker.calls == [_NOW_MS, _NOW_MS + 600_000]

from __future__ import annotations

from tradelab.contexts.outcomes.application.services.window_evaluator import (
    evaluate_outcome_window,
    plan_outcome_window,
)
from tradelab.shared_kernel.primitives import Candle

_FIVE_MIN_MS = 300_000
_START = 1_700_000_100_000


def _flat(open_time: int, price: float = 100.0) -> Candle:
    return Candle(open_time=open_time, open=price, high=price, low=price, close=price)


def test_plan_outcome_window_aligns_entry_and_computes_ready_at() -> None:
    window = plan_outcome_window(
        entry_time_ms=1_700_000_123_456,
        horizon_min=15,
        interval_min=5,
        grace_ms=120_000,
        buffer_candles=2,
    )

    assert window.needed == 3
    assert window.start_time == 1_700_000_100_000
    assert window.end_time == 1_700_000_700_000
    assert window.ready_at == 1_700_001_720_000
    assert window.fetch_start == 1_699_999_500_000
    assert window.fetch_limit == 7
    assert window.interval_ms == _FIVE_MIN_MS
    assert window.is_due(now_ms=1_700_001_719_999) is False
    assert window.is_due(now_ms=1_700_001_720_000) is True


def test_plan_outcome_window_rounds_needed_up_and_never_below_one() -> None:
    assert (
        plan_outcome_window(
            entry_time_ms=0, horizon_min=7, interval_min=5, grace_ms=0, buffer_candles=0
        ).needed
        == 2
    )
    short = plan_outcome_window(
        entry_time_ms=0, horizon_min=1, interval_min=5, grace_ms=0, buffer_candles=3
    )
    assert short.needed == 1
    assert short.fetch_start == 0


def test_evaluate_window_complete_ignores_buffer_candles_and_input_order() -> None:
    candles = [_flat(_START + offset * _FIVE_MIN_MS) for offset in (3, 1, -1, 0, 2, -2)]

    assessment = evaluate_outcome_window(
        start_time=_START,
        end_time=_START + 2 * _FIVE_MIN_MS,
        interval_ms=_FIVE_MIN_MS,
        needed=3,
        min_coverage_pct=95.0,
        candles=candles,
    )

    assert assessment.status == "COMPLETE"
    assert assessment.reason is None
    assert assessment.n_candles == 3
    assert assessment.coverage_pct == 100.0
    assert [candle.open_time for candle in assessment.candles] == [
        _START,
        _START + _FIVE_MIN_MS,
        _START + 2 * _FIVE_MIN_MS,
    ]


def test_evaluate_window_without_candles_is_invalid_no_data() -> None:
    assessment = evaluate_outcome_window(
        start_time=_START,
        end_time=_START + 2 * _FIVE_MIN_MS,
        interval_ms=_FIVE_MIN_MS,
        needed=3,
        min_coverage_pct=95.0,
        candles=[_flat(_START - _FIVE_MIN_MS)],
    )

    assert assessment.status == "INVALID"
    assert assessment.reason == "NO_DATA_IN_WINDOW"
    assert assessment.n_candles == 0
    assert assessment.coverage_pct == 0.0


def test_evaluate_window_low_coverage_is_partial_not_enough_bars() -> None:
    assessment = evaluate_outcome_window(
        start_time=_START,
        end_time=_START + 2 * _FIVE_MIN_MS,
        interval_ms=_FIVE_MIN_MS,
        needed=3,
        min_coverage_pct=95.0,
        candles=[_flat(_START), _flat(_START + _FIVE_MIN_MS)],
    )

    assert assessment.status == "PARTIAL"
    assert assessment.reason == "NOT_ENOUGH_BARS"
    assert assessment.n_candles == 2


def test_evaluate_window_gap_inside_accepted_coverage_is_bad_align() -> None:
    open_times = [_START + offset * _FIVE_MIN_MS for offset in range(20) if offset != 10]

    assessment = evaluate_outcome_window(
        start_time=_START,
        end_time=_START + 19 * _FIVE_MIN_MS,
        interval_ms=_FIVE_MIN_MS,
        needed=20,
        min_coverage_pct=95.0,
        candles=[_flat(open_time) for open_time in open_times],
    )

    assert assessment.status == "PARTIAL"
    assert assessment.reason == "BAD_ALIGN"
    assert assessment.n_candles == 19

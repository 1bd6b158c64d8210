from __future__ import annotations

import pytest

from tradelab.contexts.outcomes.application.services.trade_simulator import simulate_trade
from tradelab.shared_kernel.primitives import Candle

_FIVE_MIN_MS = 300_000
_START = 1_700_000_100_000


def _bar(index: int, open_: float, high: float, low: float, close: float) -> Candle:
    return Candle(
        open_time=_START + index * _FIVE_MIN_MS,
        open=open_,
        high=high,
        low=low,
        close=close,
    )


def _simulate(candles: list[Candle], *, fee_bps: float = 0.0, slippage_bps: float = 0.0):
    return simulate_trade(
        entry=100.0,
        stop=98.0,
        tp1=102.0,
        tp2=104.0,
        entry_time_ms=_START,
        candles=candles,
        fee_bps=fee_bps,
        slippage_bps=slippage_bps,
    )


def test_first_target_exit_freezes_extremes_at_exit_candle() -> None:
    simulation = _simulate(
        [
            _bar(0, 100.0, 101.0, 99.0, 100.5),
            _bar(1, 100.5, 102.5, 100.0, 102.0),
            _bar(2, 102.0, 105.0, 101.0, 104.5),
        ]
    )

    assert simulation.exit_reason == "TP1"
    assert simulation.result == "WIN"
    assert simulation.exit_price == 102.0
    assert simulation.exit_time == _START + _FIVE_MIN_MS
    assert simulation.exit_index == 1
    assert simulation.bars_to_exit == 2
    assert simulation.max_high == 102.5
    assert simulation.min_low == 99.0
    assert simulation.hit_tp1 is True
    assert simulation.hit_tp2 is False
    assert simulation.hit_sl is False
    assert simulation.tp1_hit_time == _START + _FIVE_MIN_MS
    assert simulation.time_to_first_hit_ms == _FIVE_MIN_MS
    assert simulation.r_realized == 1.0
    assert simulation.ret_pct == pytest.approx(2.0)
    assert simulation.r_close == pytest.approx(1.0)
    assert simulation.mfe_pct == pytest.approx(2.5)
    assert simulation.mae_pct == pytest.approx(-1.0)
    assert simulation.last_close == 104.5


def test_second_target_wins_over_first_inside_one_candle() -> None:
    simulation = _simulate([_bar(0, 100.0, 104.5, 99.5, 104.0)])

    assert simulation.exit_reason == "TP2"
    assert simulation.exit_price == 104.0
    assert simulation.r_realized == 2.0
    assert simulation.hit_tp1 is True
    assert simulation.hit_tp2 is True


def test_stop_and_target_in_same_candle_is_ambiguous_loss() -> None:
    simulation = _simulate(
        [
            _bar(0, 100.0, 101.0, 99.0, 100.0),
            _bar(1, 100.0, 102.5, 97.5, 99.0),
        ]
    )

    assert simulation.ambiguous is True
    assert simulation.exit_reason == "STOP"
    assert simulation.result == "LOSS"
    assert simulation.exit_price == 98.0
    assert simulation.r_realized == -1.0
    assert simulation.sl_hit_time == _START + _FIVE_MIN_MS
    assert simulation.tp1_hit_time == _START + _FIVE_MIN_MS
    assert simulation.tp2_hit_time == 0
    assert simulation.time_to_first_hit_ms == _FIVE_MIN_MS


def test_plain_stop_hit_is_not_ambiguous() -> None:
    simulation = _simulate([_bar(0, 100.0, 101.0, 97.9, 98.5)])

    assert simulation.ambiguous is False
    assert simulation.exit_reason == "STOP"
    assert simulation.r_close == pytest.approx(-1.0)


def test_no_hit_times_out_at_last_close() -> None:
    simulation = _simulate(
        [
            _bar(0, 100.0, 101.0, 99.0, 100.5),
            _bar(1, 100.5, 101.5, 99.5, 101.0),
            _bar(2, 101.0, 101.8, 100.0, 101.2),
        ]
    )

    assert simulation.exit_reason == "TIMEOUT"
    assert simulation.result == "NONE"
    assert simulation.exit_price == 101.2
    assert simulation.exit_time == _START + 2 * _FIVE_MIN_MS
    assert simulation.bars_to_exit == 3
    assert simulation.r_realized == 0.0
    assert simulation.time_to_first_hit_ms == 0


def test_costs_widen_entry_and_shrink_exit() -> None:
    simulation = _simulate([_bar(0, 100.0, 102.5, 99.5, 102.0)], fee_bps=5.0, slippage_bps=2.0)

    cost = 7.0 / 10_000
    entry_adj = 100.0 * (1 + cost)
    exit_adj = 102.0 * (1 - cost)
    risk = entry_adj - 98.0 * (1 - cost)
    assert simulation.ret_pct == pytest.approx((exit_adj - entry_adj) / entry_adj * 100)
    assert simulation.r_close == pytest.approx((exit_adj - entry_adj) / risk)
    assert simulation.ret_pct < 2.0


def test_empty_candles_give_neutral_timeout() -> None:
    simulation = _simulate([])

    assert simulation.exit_reason == "TIMEOUT"
    assert simulation.exit_price == 100.0
    assert simulation.exit_time == 0
    assert simulation.exit_index == -1
    assert simulation.ret_pct == 0.0
    assert simulation.hit_sl is False


def test_simulation_is_deterministic() -> None:
    candles = [
        _bar(0, 100.0, 101.0, 99.0, 100.5),
        _bar(1, 100.5, 102.5, 97.5, 99.0),
    ]

    assert _simulate(candles, fee_bps=5.0) == _simulate(list(candles), fee_bps=5.0)

from __future__ import annotations

import pytest

from tradelab.contexts.outcomes.application.services.managed_pnl import evaluate_managed_pnl
from tradelab.shared_kernel.primitives import Candle

_FIVE_MIN_MS = 300_000
_START = 1_700_000_100_000
_EXPIRES = _START + 24 * 60 * 60_000


def _bar(index: int, open_: float, high: float, low: float, close: float) -> Candle:
    return Candle(
        open_time=_START + index * _FIVE_MIN_MS,
        open=open_,
        high=high,
        low=low,
        close=close,
    )


def _managed(candles: list[Candle], *, completed: bool = False):
    return evaluate_managed_pnl(
        entry=100.0,
        stop=95.0,
        tp1=110.0,
        tp2=120.0,
        candles=candles,
        expires_at_ms=_EXPIRES,
        window_completed=completed,
        risk_per_trade_usd=15.0,
    )


_TP1_BAR = _bar(0, 100.0, 111.0, 99.0, 109.0)


@pytest.mark.parametrize(
    "first_bar",
    [_bar(0, 100.0, 104.0, 94.0, 96.0), _bar(0, 100.0, 111.0, 94.0, 100.0)],
    ids=["stop_only", "stop_with_first_target"],
)
def test_stop_before_first_target_loses_full_risk(first_bar: Candle) -> None:
    managed = _managed([first_bar])

    assert managed.status == "CLOSED_STOP"
    assert managed.realized_r == -1.0
    assert managed.pnl_usd == -15.0
    assert managed.runner_exit_reason == "STOP_BEFORE_TP1"
    assert managed.runner_exit_at == _START


def test_partial_then_second_target_realizes_one_and_half_r() -> None:
    managed = _managed([_TP1_BAR, _bar(1, 109.0, 121.0, 108.0, 120.0)])

    assert managed.status == "CLOSED_TP2"
    assert managed.realized_r == 1.5
    assert managed.pnl_usd == 22.5
    assert managed.runner_exit_reason == "TP2"
    assert managed.runner_exit_at == _START + _FIVE_MIN_MS


def test_runner_returning_to_entry_closes_at_break_even() -> None:
    managed = _managed([_TP1_BAR, _bar(1, 109.0, 112.0, 100.0, 104.0)])

    assert managed.status == "CLOSED_BE_AFTER_TP1"
    assert managed.realized_r == 0.5
    assert managed.pnl_usd == 7.5
    assert managed.runner_be_at == _START + _FIVE_MIN_MS
    assert managed.runner_exit_reason == "BREAK_EVEN"


def test_break_even_wins_over_second_target_in_same_candle() -> None:
    managed = _managed([_TP1_BAR, _bar(1, 109.0, 121.0, 99.5, 120.0)])

    assert managed.status == "CLOSED_BE_AFTER_TP1"
    assert managed.realized_r == 0.5


def test_open_runner_reports_live_r_and_closes_at_market_on_timeout() -> None:
    candles = [_TP1_BAR, _bar(1, 109.0, 115.0, 105.0, 114.0)]

    open_runner = _managed(candles)
    timed_out = _managed(candles, completed=True)

    assert open_runner.status == "PARTIAL_TP1_OPEN"
    assert open_runner.realized_r == 0.5
    assert open_runner.pnl_usd == 7.5
    assert open_runner.live_r == pytest.approx(1.9)
    assert timed_out.status == "CLOSED_TIMEOUT"
    assert timed_out.realized_r == pytest.approx(1.9)
    assert timed_out.pnl_usd == pytest.approx(28.5)
    assert timed_out.runner_exit_reason == "TIMEOUT_MARKET"
    assert timed_out.runner_exit_at == _EXPIRES


def test_no_first_target_is_pending_then_closed_at_last_close() -> None:
    candles = [_bar(0, 100.0, 104.0, 97.0, 102.0)]

    pending = _managed(candles)
    timed_out = _managed(candles, completed=True)

    assert pending.status == "PENDING"
    assert pending.realized_r is None
    assert pending.live_r == pytest.approx(0.4)
    assert timed_out.status == "CLOSED_TIMEOUT"
    assert timed_out.realized_r == pytest.approx(0.4)
    assert timed_out.pnl_usd == pytest.approx(6.0)


def test_no_candles_or_inverted_risk_stays_pending() -> None:
    inverted = evaluate_managed_pnl(
        entry=100.0,
        stop=105.0,
        tp1=110.0,
        tp2=120.0,
        candles=[_TP1_BAR],
        expires_at_ms=_EXPIRES,
        window_completed=True,
        risk_per_trade_usd=15.0,
    )

    assert _managed([], completed=True).status == "PENDING"
    assert inverted.status == "PENDING"
    assert inverted.pnl_usd is None

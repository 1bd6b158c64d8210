from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from tradelab.shared_kernel.primitives import Candle

SimulatedResult = Literal["WIN", "LOSS", "NONE"]
SimulatedExitReason = Literal["TP1", "TP2", "STOP", "TIMEOUT"]

_BPS_DIVISOR = 10_000.0


@dataclass(frozen=True, slots=True)
class TradeSimulation:
    """
    TradeSimulation — deterministic replay result of one long trade over a candle window.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/trade_simulator.py
      - src/tradelab/contexts/outcomes/application/services/horizon_resolver.py
    """

    max_high: float
    min_low: float
    last_close: float
    ret_pct: float
    r_close: float
    r_mfe: float
    r_mae: float
    r_realized: float
    hit_sl: bool
    hit_tp1: bool
    hit_tp2: bool
    tp1_hit_time: int
    sl_hit_time: int
    tp2_hit_time: int
    time_to_first_hit_ms: int
    bars_to_exit: int
    mfe_pct: float
    mae_pct: float
    result: SimulatedResult
    exit_reason: SimulatedExitReason
    exit_price: float
    exit_time: int
    ambiguous: bool
    exit_index: int


def simulate_trade(
    *,
    entry: float,
    stop: float,
    tp1: float,
    tp2: float,
    entry_time_ms: int,
    candles: Sequence[Candle],
    fee_bps: float,
    slippage_bps: float,
) -> TradeSimulation:
    """
    Replay candles bar-by-bar and determine exit, returns and excursions of a long trade.

    Args:
        entry: Entry price.
        stop: Stop-loss price (below entry).
        tp1: First take-profit price.
        tp2: Second take-profit price.
        entry_time_ms: Entry timestamp used for time-to-hit deltas.
        candles: Window candles ordered by open time.
        fee_bps: Fee per side in basis points.
        slippage_bps: Slippage per side in basis points.
    Returns:
        TradeSimulation: Exit and statistics; neutral timeout result for empty input.
    Assumptions:
        A candle touching both stop and any target is resolved as stop (ambiguous).
        Priority inside one candle without ambiguity is STOP > TP2 > TP1.
    Raises:
        None.
    Side Effects:
        None.
    """
    if not candles:
        return _neutral_simulation(entry=entry)

    cost = (fee_bps + slippage_bps) / _BPS_DIVISOR
    entry_adj = entry * (1 + cost)
    stop_adj = stop * (1 - cost)
    risk = entry_adj - stop_adj

    tp1_hit_time = 0
    sl_hit_time = 0
    tp2_hit_time = 0
    result: SimulatedResult = "NONE"
    exit_reason: SimulatedExitReason = "TIMEOUT"
    ambiguous = False
    exit_price = candles[-1].close
    exit_time = candles[-1].open_time
    exit_index = len(candles) - 1

    for index, candle in enumerate(candles):
        if not tp1_hit_time and candle.high >= tp1:
            tp1_hit_time = candle.open_time
        if not sl_hit_time and candle.low <= stop:
            sl_hit_time = candle.open_time
        if not tp2_hit_time and candle.high >= tp2:
            tp2_hit_time = candle.open_time

        hit_sl_in_bar = candle.low <= stop
        hit_tp2_in_bar = candle.high >= tp2
        hit_tp1_in_bar = candle.high >= tp1

        if hit_sl_in_bar and (hit_tp1_in_bar or hit_tp2_in_bar):
            # intrabar order is unknowable from OHLC; long closes at the worst case
            ambiguous = True
            result, exit_reason, exit_price = "LOSS", "STOP", stop
        elif hit_sl_in_bar:
            result, exit_reason, exit_price = "LOSS", "STOP", stop
        elif hit_tp2_in_bar:
            result, exit_reason, exit_price = "WIN", "TP2", tp2
        elif hit_tp1_in_bar:
            result, exit_reason, exit_price = "WIN", "TP1", tp1
        else:
            continue
        exit_time = candle.open_time
        exit_index = index
        break

    traded = candles[: exit_index + 1]
    max_high = max(candle.high for candle in traded)
    min_low = min(candle.low for candle in traded)
    last_close = candles[-1].close

    exit_adj = exit_price * (1 - cost)
    max_high_adj = max_high * (1 - cost)
    min_low_adj = min_low * (1 - cost)

    tp1_delta = max(0, tp1_hit_time - entry_time_ms) if tp1_hit_time > 0 else 0
    sl_delta = max(0, sl_hit_time - entry_time_ms) if sl_hit_time > 0 else 0
    tp2_delta = max(0, tp2_hit_time - entry_time_ms) if tp2_hit_time > 0 else 0
    if tp1_delta and sl_delta:
        time_to_first_hit_ms = min(tp1_delta, sl_delta)
    else:
        time_to_first_hit_ms = tp1_delta or sl_delta or tp2_delta or 0

    return TradeSimulation(
        max_high=max_high,
        min_low=min_low,
        last_close=last_close,
        ret_pct=((exit_adj - entry_adj) / entry_adj) * 100 if entry_adj else 0.0,
        r_close=(exit_adj - entry_adj) / risk if risk > 0 else 0.0,
        r_mfe=(max_high_adj - entry_adj) / risk if risk > 0 else 0.0,
        r_mae=(min_low_adj - entry_adj) / risk if risk > 0 else 0.0,
        r_realized=_realized_r(result=result, exit_reason=exit_reason),
        hit_sl=min_low <= stop,
        hit_tp1=max_high >= tp1,
        hit_tp2=max_high >= tp2,
        tp1_hit_time=tp1_hit_time,
        sl_hit_time=sl_hit_time,
        tp2_hit_time=tp2_hit_time,
        time_to_first_hit_ms=time_to_first_hit_ms,
        bars_to_exit=max(1, exit_index + 1),
        mfe_pct=((max_high - entry) / entry) * 100 if entry else 0.0,
        mae_pct=((min_low - entry) / entry) * 100 if entry else 0.0,
        result=result,
        exit_reason=exit_reason,
        exit_price=exit_price,
        exit_time=exit_time,
        ambiguous=ambiguous,
        exit_index=exit_index,
    )


def _realized_r(*, result: SimulatedResult, exit_reason: SimulatedExitReason) -> float:
    """
    Map exit to discrete realized risk multiple.

    Args:
        result: Trade result.
        exit_reason: Exit reason.
    Returns:
        float: -1 for stop, +2 for second target, +1 for first target, 0 otherwise.
    Assumptions:
        Continuous exit-based multiple is kept separately as `r_close`.
    Raises:
        None.
    Side Effects:
        None.
    """
    if result == "LOSS":
        return -1.0
    if result == "WIN" and exit_reason == "TP2":
        return 2.0
    if result == "WIN":
        return 1.0
    return 0.0


def _neutral_simulation(*, entry: float) -> TradeSimulation:
    return TradeSimulation(
        max_high=entry,
        min_low=entry,
        last_close=entry,
        ret_pct=0.0,
        r_close=0.0,
        r_mfe=0.0,
        r_mae=0.0,
        r_realized=0.0,
        hit_sl=False,
        hit_tp1=False,
        hit_tp2=False,
        tp1_hit_time=0,
        sl_hit_time=0,
        tp2_hit_time=0,
        time_to_first_hit_ms=0,
        bars_to_exit=0,
        mfe_pct=0.0,
        mae_pct=0.0,
        result="NONE",
        exit_reason="TIMEOUT",
        exit_price=entry,
        exit_time=0,
        ambiguous=False,
        exit_index=-1,
    )

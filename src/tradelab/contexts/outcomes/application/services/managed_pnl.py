from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from tradelab.shared_kernel.primitives import Candle

_PARTIAL_FRACTION = 0.5
_TP2_R = 1.5


@dataclass(frozen=True, slots=True)
class ManagedPnl:
    """
    ManagedPnl — realized R and USD of a position half closed at TP1 with runner at break-even.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/extended_tracker.py
      - src/tradelab/contexts/outcomes/domain/entities/extended_outcome.py

    `realized_r` and `pnl_usd` are `None` while nothing is realized.
    `live_r` carries realized plus unrealized runner R for an open runner.
    """

    status: str
    realized_r: float | None = None
    pnl_usd: float | None = None
    live_r: float | None = None
    runner_be_at: int = 0
    runner_exit_at: int = 0
    runner_exit_reason: str | None = None


def evaluate_managed_pnl(
    *,
    entry: float,
    stop: float,
    tp1: float,
    tp2: float,
    candles: Sequence[Candle],
    expires_at_ms: int,
    window_completed: bool,
    risk_per_trade_usd: float,
) -> ManagedPnl:
    """
    Replay window candles for the managed position of one long signal.

    Args:
        entry: Entry price.
        stop: Initial stop price.
        tp1: Partial take-profit price (half the position).
        tp2: Runner take-profit price.
        candles: Window candles ordered by open time.
        expires_at_ms: Window end used as timeout exit time.
        window_completed: Whether the extended window is closed (hit or elapsed).
        risk_per_trade_usd: USD value of 1R.
    Returns:
        ManagedPnl: Managed status and results.
    Assumptions:
        Before TP1 the stop wins over TP1 in the same candle (-1R).
        TP1 realizes +0.5R and moves the runner stop to entry; TP2 realizes +1.5R in total.
        After TP1 a candle touching entry closes the runner at break-even even when it also
        touches TP2.
        Timeout exits are valued at the last candle close.
    Raises:
        None.
    Side Effects:
        None.
    """
    risk = entry - stop
    if risk <= 0 or not candles:
        return ManagedPnl(status="PENDING")

    def to_r(price: float) -> float:
        return (price - entry) / risk

    tp1_index = -1
    for index, candle in enumerate(candles):
        if candle.low <= stop:
            return _closed(
                status="CLOSED_STOP",
                r=-1.0,
                risk_usd=risk_per_trade_usd,
                runner_exit_at=candle.open_time,
                runner_exit_reason="STOP_BEFORE_TP1",
            )
        if candle.high >= tp1:
            tp1_index = index
            break

    last_close = candles[-1].close
    if tp1_index < 0:
        if not window_completed:
            return ManagedPnl(status="PENDING", live_r=to_r(last_close))
        return _closed(
            status="CLOSED_TIMEOUT",
            r=to_r(last_close),
            risk_usd=risk_per_trade_usd,
            runner_exit_at=expires_at_ms,
            runner_exit_reason="TIMEOUT_MARKET",
        )

    for candle in candles[tp1_index + 1 :]:
        # runner stop sits at entry after the partial
        if candle.low <= entry:
            return _closed(
                status="CLOSED_BE_AFTER_TP1",
                r=_PARTIAL_FRACTION,
                risk_usd=risk_per_trade_usd,
                runner_be_at=candle.open_time,
                runner_exit_at=candle.open_time,
                runner_exit_reason="BREAK_EVEN",
            )
        if candle.high >= tp2:
            return _closed(
                status="CLOSED_TP2",
                r=_TP2_R,
                risk_usd=risk_per_trade_usd,
                runner_exit_at=candle.open_time,
                runner_exit_reason="TP2",
            )

    runner_r = _PARTIAL_FRACTION * to_r(last_close)
    if window_completed:
        return _closed(
            status="CLOSED_TIMEOUT",
            r=_PARTIAL_FRACTION + runner_r,
            risk_usd=risk_per_trade_usd,
            runner_exit_at=expires_at_ms,
            runner_exit_reason="TIMEOUT_MARKET",
        )
    return ManagedPnl(
        status="PARTIAL_TP1_OPEN",
        realized_r=_PARTIAL_FRACTION,
        pnl_usd=_PARTIAL_FRACTION * risk_per_trade_usd,
        live_r=_PARTIAL_FRACTION + runner_r,
    )


def _closed(
    *,
    status: str,
    r: float,
    risk_usd: float,
    runner_exit_at: int,
    runner_exit_reason: str,
    runner_be_at: int = 0,
) -> ManagedPnl:
    return ManagedPnl(
        status=status,
        realized_r=r,
        pnl_usd=r * risk_usd,
        runner_be_at=runner_be_at,
        runner_exit_at=runner_exit_at,
        runner_exit_reason=runner_exit_reason,
    )

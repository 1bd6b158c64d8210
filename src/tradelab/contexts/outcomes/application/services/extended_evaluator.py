from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from tradelab.shared_kernel.primitives import Candle

_TRADE_STATE_BY_STATUS: dict[str, str] = {
    "PENDING": "PENDING",
    "ACHIEVED_TP1": "PENDING",
    "WIN_TP2": "COMPLETED_TP2",
    "WIN_TP1": "COMPLETED_TP1",
    "LOSS_STOP": "FAILED_SL",
    "FLAT_TIMEOUT_24H": "EXPIRED",
}


@dataclass(frozen=True, slots=True)
class ExtendedConflict:
    """Candle where the stop and a target, or both targets, were touched together."""

    time: int
    stop_hit: bool
    tp1_hit: bool
    tp2_hit: bool
    resolution: str


@dataclass(frozen=True, slots=True)
class ExtendedEvaluation:
    """
    ExtendedEvaluation — result of replaying the 24-hour window of one signal.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/extended_tracker.py
      - src/tradelab/contexts/outcomes/domain/entities/extended_outcome.py
    """

    status: str
    trade_state: str
    completed: bool
    first_tp1_at: int
    tp2_at: int
    stop_at: int
    exit_price: float | None
    exit_time: int
    mfe_pct: float
    mae_pct: float
    coverage_pct: float
    n_candles_evaluated: int
    n_candles_expected: int
    conflicts: tuple[ExtendedConflict, ...] = ()


def window_candles(
    *,
    candles: Sequence[Candle],
    signal_time_ms: int,
    expires_at_ms: int,
) -> tuple[Candle, ...]:
    """Candles opened inside `[signal_time, expires_at]`, ordered by open time."""
    return tuple(
        sorted(
            (
                candle
                for candle in candles
                if signal_time_ms <= candle.open_time <= expires_at_ms
            ),
            key=lambda candle: candle.open_time,
        )
    )


def evaluate_extended_outcome(
    *,
    entry: float,
    stop: float,
    tp1: float,
    tp2: float,
    signal_time_ms: int,
    expires_at_ms: int,
    interval_ms: int,
    candles: Sequence[Candle],
    now_ms: int,
) -> ExtendedEvaluation:
    """
    Replay candles of the extended window where reaching TP1 keeps the trade open toward TP2.

    Args:
        entry: Entry price.
        stop: Stop-loss price (below entry).
        tp1: First take-profit price.
        tp2: Second take-profit price.
        signal_time_ms: Window start (signal detection time).
        expires_at_ms: Window end (inclusive open time).
        interval_ms: Candle interval used for expected candle count.
        candles: Provider candles, filtered and sorted here.
        now_ms: Evaluation timestamp.
    Returns:
        ExtendedEvaluation: Status, hit times and window measures.
    Assumptions:
        Stop touched in a candle wins over any target in the same candle.
        TP2 counts only in a candle after the one where TP1 was first reached; a candle
        touching both targets without an earlier TP1 only records TP1.
        Excursions are signed percent moves of the extremes up to the exit candle, the same
        convention as horizon rows. Coverage counts the whole window.
        An open window completes as `WIN_TP1` or `FLAT_TIMEOUT_24H` once `now_ms` or the
        last candle reaches `expires_at_ms`.
    Raises:
        ValueError: If interval is not positive.
    Side Effects:
        None.
    """
    if interval_ms <= 0:
        raise ValueError("evaluate_extended_outcome requires interval_ms > 0")

    window = window_candles(
        candles=candles,
        signal_time_ms=signal_time_ms,
        expires_at_ms=expires_at_ms,
    )
    expected = max(1, (expires_at_ms - signal_time_ms) // interval_ms)

    status = "PENDING"
    completed = False
    first_tp1_at = 0
    tp2_at = 0
    stop_at = 0
    exit_price: float | None = None
    exit_time = 0
    conflicts: list[ExtendedConflict] = []
    max_high: float | None = None
    min_low: float | None = None

    for candle in window:
        max_high = candle.high if max_high is None else max(max_high, candle.high)
        min_low = candle.low if min_low is None else min(min_low, candle.low)

        stop_hit = candle.low <= stop
        tp1_hit = candle.high >= tp1
        tp2_hit = candle.high >= tp2

        if stop_hit and (tp1_hit or tp2_hit):
            conflicts.append(
                ExtendedConflict(
                    time=candle.open_time,
                    stop_hit=True,
                    tp1_hit=tp1_hit,
                    tp2_hit=tp2_hit,
                    resolution="STOP_WINS",
                )
            )
        elif tp1_hit and tp2_hit:
            conflicts.append(
                ExtendedConflict(
                    time=candle.open_time,
                    stop_hit=False,
                    tp1_hit=True,
                    tp2_hit=True,
                    resolution="TP2_WINS" if first_tp1_at else "TP1_WINS",
                )
            )

        if stop_hit:
            stop_at = candle.open_time
            status = "LOSS_STOP"
            exit_price, exit_time = stop, candle.open_time
            completed = True
            break
        if tp2_hit and first_tp1_at:
            tp2_at = candle.open_time
            status = "WIN_TP2"
            exit_price, exit_time = tp2, candle.open_time
            completed = True
            break
        if tp1_hit and not first_tp1_at:
            first_tp1_at = candle.open_time
            status = "ACHIEVED_TP1"

    if not completed:
        window_elapsed = now_ms >= expires_at_ms or (
            bool(window) and window[-1].open_time >= expires_at_ms
        )
        if window_elapsed:
            completed = True
            exit_time = expires_at_ms
            if first_tp1_at:
                status = "WIN_TP1"
                exit_price = tp1
            else:
                status = "FLAT_TIMEOUT_24H"
                exit_price = window[-1].close if window else None

    return ExtendedEvaluation(
        status=status,
        trade_state=_TRADE_STATE_BY_STATUS[status],
        completed=completed,
        first_tp1_at=first_tp1_at,
        tp2_at=tp2_at,
        stop_at=stop_at,
        exit_price=exit_price,
        exit_time=exit_time,
        mfe_pct=_excursion_pct(entry=entry, price=max_high),
        mae_pct=_excursion_pct(entry=entry, price=min_low),
        coverage_pct=min(100.0, len(window) / expected * 100.0),
        n_candles_evaluated=len(window),
        n_candles_expected=expected,
        conflicts=tuple(conflicts),
    )


def _excursion_pct(*, entry: float, price: float | None) -> float:
    if price is None or entry <= 0:
        return 0.0
    return (price - entry) / entry * 100.0

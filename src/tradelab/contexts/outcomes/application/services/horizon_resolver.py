from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any

from tradelab.contexts.outcomes.application.dto import OutcomeResolutionPolicy
from tradelab.contexts.outcomes.application.ports import (
    CandleFetcher,
    OutcomeClock,
    OutcomeRepository,
    epoch_ms,
)
from tradelab.contexts.outcomes.application.services.outcome_driver import (
    classify_outcome_driver,
)
from tradelab.contexts.outcomes.application.services.trade_simulator import (
    TradeSimulation,
    simulate_trade,
)
from tradelab.contexts.outcomes.application.services.window_evaluator import (
    OutcomeWindow,
    evaluate_outcome_window,
    plan_outcome_window,
)
from tradelab.contexts.outcomes.domain.entities import (
    REASON_API_ERROR,
    REASON_BAD_LEVELS,
    REASON_FUTURE_WINDOW,
    REASON_NO_PLAN,
    REASON_RISK_TOO_SMALL,
    ExitReason,
    ExpiredReason,
    OutcomeState,
    Signal,
    SignalOutcome,
    TradeResult,
    TradeState,
    WindowStatus,
)
from tradelab.shared_kernel.primitives import Candle

log = logging.getLogger(__name__)

_CHECKPOINT_HORIZON_MIN = 15
_CHECKPOINT_MS = _CHECKPOINT_HORIZON_MIN * 60_000
_OPEN_ENTRY_RULES = frozenset({"signal_open", "next_open"})


@dataclass(frozen=True, slots=True)
class _ResolvedTrade:
    """
    Trade fields written to a complete row, from simulation or from the 15m checkpoint.
    """

    max_high: float
    min_low: float
    close_price: float
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
    result: TradeResult
    exit_reason: ExitReason
    exit_price: float
    exit_time: int
    ambiguous: bool
    exit_index: int


@dataclass(frozen=True, slots=True)
class _ExpiredCheckpoint:
    """
    Outcome of the 15-minute checkpoint replay for a position that is no longer alive.
    """

    reason: ExpiredReason
    open_price: float
    trade: _ResolvedTrade


class HorizonOutcomeResolver:
    """
    HorizonOutcomeResolver — resolves and persists one `(signal, horizon)` outcome.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/window_evaluator.py
      - src/tradelab/contexts/outcomes/application/services/trade_simulator.py
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
    """

    def __init__(
        self,
        *,
        outcome_repository: OutcomeRepository,
        policy: OutcomeResolutionPolicy,
        clock: OutcomeClock,
    ) -> None:
        """
        Initialize resolver dependencies.

        Args:
            outcome_repository: Outcome storage port.
            policy: Resolution tunables.
            clock: Wall clock used for `attempted_at` stamps.
        Returns:
            None.
        Assumptions:
            `computed_at`/`resolved_at` use pass time passed to `resolve`, not wall clock.
        Raises:
            ValueError: If one of dependencies is missing.
        Side Effects:
            None.
        """
        if outcome_repository is None:  # type: ignore[truthy-bool]
            raise ValueError("HorizonOutcomeResolver requires outcome_repository")
        if policy is None:  # type: ignore[truthy-bool]
            raise ValueError("HorizonOutcomeResolver requires policy")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("HorizonOutcomeResolver requires clock")
        self._outcome_repository = outcome_repository
        self._policy = policy
        self._clock = clock

    def resolve(
        self,
        *,
        signal: Signal,
        horizon_min: int,
        candle_fetcher: CandleFetcher,
        now_ms: int,
    ) -> SignalOutcome:
        """
        Resolve one horizon of one signal and upsert the resulting row.

        Args:
            signal: Stored signal snapshot.
            horizon_min: Horizon in minutes.
            candle_fetcher: Candle-supplying service (usually per-pass cache).
            now_ms: Pass timestamp (epoch ms) used for readiness and resolution stamps.
        Returns:
            SignalOutcome: Row as written; storage may keep an older non-zero `computed_at`.
        Assumptions:
            Candle fetch failures are recorded on this row as retryable `API_ERROR`.
        Raises:
            ValueError: If signal has no storage id.
            OutcomeStorageError: If persistence fails.
        Side Effects:
            Reads checkpoint row, may call candle fetcher, writes one outcome row.
        """
        if signal.signal_id is None:
            raise ValueError("HorizonOutcomeResolver.resolve requires stored signal")

        policy = self._policy
        entry_rule = signal.entry_rule or policy.entry_rule
        window = plan_outcome_window(
            entry_time_ms=signal.effective_entry_time(),
            horizon_min=horizon_min,
            interval_min=policy.interval_min,
            grace_ms=policy.grace_ms,
            buffer_candles=policy.buffer_candles,
        )
        attempted_at = epoch_ms(self._clock.now())

        status: WindowStatus = "PARTIAL"
        reason: str | None = REASON_FUTURE_WINDOW
        candles: tuple[Candle, ...] = ()
        n_candles = 0
        coverage_pct = 0.0
        expired: _ExpiredCheckpoint | None = None
        due = window.is_due(now_ms=now_ms)

        if due:
            if policy.expire_after_15m and horizon_min > _CHECKPOINT_HORIZON_MIN:
                expired = self._expired_checkpoint(signal=signal, window=window)
            if expired is not None:
                status, reason = "COMPLETE", None
                n_candles, coverage_pct = window.needed, 100.0
            else:
                try:
                    fetched = candle_fetcher.fetch(
                        symbol=signal.symbol,
                        interval_min=policy.interval_min,
                        start_time_ms=window.fetch_start,
                        limit=window.fetch_limit,
                    )
                except Exception as error:  # noqa: BLE001
                    log.warning(
                        "outcome candle fetch failed signal_id=%s horizon_min=%s symbol=%s "
                        "reason=%s",
                        signal.signal_id,
                        horizon_min,
                        signal.symbol,
                        error,
                    )
                    return self._persist(
                        _fetch_failure_outcome(
                            signal=signal,
                            window=window,
                            entry_rule=entry_rule,
                            entry_candle_open_time=self._align(
                                signal.effective_entry_candle_open_time()
                            ),
                            attempted_at=attempted_at,
                        )
                    )
                assessment = evaluate_outcome_window(
                    start_time=window.start_time,
                    end_time=window.end_time,
                    interval_ms=window.interval_ms,
                    needed=window.needed,
                    min_coverage_pct=policy.min_coverage_pct,
                    candles=fetched,
                )
                status, reason = assessment.status, assessment.reason
                candles = assessment.candles
                n_candles, coverage_pct = assessment.n_candles, assessment.coverage_pct

        if expired is not None:
            open_price = expired.open_price
        elif candles:
            open_price = candles[0].open
        else:
            open_price = signal.price
        entry = open_price if entry_rule in _OPEN_ENTRY_RULES else signal.price

        invalid_levels = False
        if due:
            level_reason = _validate_levels(
                entry=entry,
                stop=signal.stop,
                tp1=signal.tp1,
                tp2=signal.tp2,
                min_risk_pct=policy.min_risk_pct,
            )
            if level_reason is not None:
                invalid_levels = True
                status, reason = "INVALID", level_reason

        trade: _ResolvedTrade | None = None
        if status == "COMPLETE":
            if expired is not None:
                trade = expired.trade
            else:
                trade = _trade_from_simulation(
                    simulation=simulate_trade(
                        entry=entry,
                        stop=float(signal.stop),  # type: ignore[arg-type]
                        tp1=float(signal.tp1),  # type: ignore[arg-type]
                        tp2=float(signal.tp2),  # type: ignore[arg-type]
                        entry_time_ms=window.start_time,
                        candles=candles,
                        fee_bps=policy.fee_bps,
                        slippage_bps=policy.slippage_bps,
                    ),
                    window=window,
                )

        trade_state = _trade_state(status=status, trade=trade)
        outcome_state = _outcome_state(status=status, reason=reason, trade=trade)
        outcome_driver = (
            classify_outcome_driver(signal=signal) if trade_state == "FAILED_SL" else None
        )
        exit_candle = _exit_candle(candles=candles, trade=trade)

        outcome = SignalOutcome(
            signal_id=signal.signal_id,
            horizon_min=horizon_min,
            entry_time=window.start_time,
            entry_candle_open_time=self._align(signal.effective_entry_candle_open_time()),
            entry_rule=entry_rule,
            start_time=window.start_time,
            end_time=window.end_time,
            interval_min=policy.interval_min,
            n_candles=n_candles,
            n_candles_expected=window.needed,
            coverage_pct=coverage_pct,
            entry_price=entry,
            open_price=open_price,
            close_price=trade.close_price if trade else entry,
            max_high=trade.max_high if trade else entry,
            min_low=trade.min_low if trade else entry,
            ret_pct=trade.ret_pct if trade else 0.0,
            r_mult=trade.r_close if trade else 0.0,
            r_close=trade.r_close if trade else 0.0,
            r_mfe=trade.r_mfe if trade else 0.0,
            r_mae=trade.r_mae if trade else 0.0,
            r_realized=trade.r_realized if trade else 0.0,
            hit_sl=trade.hit_sl if trade else False,
            hit_tp1=trade.hit_tp1 if trade else False,
            hit_tp2=trade.hit_tp2 if trade else False,
            tp1_hit_time=trade.tp1_hit_time if trade else 0,
            sl_hit_time=trade.sl_hit_time if trade else 0,
            tp2_hit_time=trade.tp2_hit_time if trade else 0,
            time_to_first_hit_ms=trade.time_to_first_hit_ms if trade else 0,
            bars_to_exit=trade.bars_to_exit if trade else 0,
            mfe_pct=trade.mfe_pct if trade else 0.0,
            mae_pct=trade.mae_pct if trade else 0.0,
            result=trade.result if trade else "PENDING",
            exit_reason=trade.exit_reason if trade else None,
            outcome_driver=outcome_driver,
            trade_state=trade_state,
            exit_price=trade.exit_price if trade else entry,
            exit_time=trade.exit_time if trade else window.start_time,
            window_status=status,
            outcome_state=outcome_state,
            invalid_levels=invalid_levels,
            invalid_reason=None if status == "COMPLETE" else reason,
            ambiguous=trade.ambiguous if trade else False,
            expired_after_15m=expired is not None and status == "COMPLETE",
            expired_reason=expired.reason if expired is not None and status == "COMPLETE" else None,
            attempted_at=attempted_at,
            computed_at=0 if status == "PARTIAL" else now_ms,
            resolved_at=now_ms if status == "COMPLETE" else 0,
            resolve_version=policy.resolve_version if status == "COMPLETE" else None,
            outcome_debug_json=_debug_payload(
                window=window,
                status=status,
                reason=reason,
                n_candles=n_candles,
                coverage_pct=coverage_pct,
                entry=entry,
                trade=trade,
                exit_candle=exit_candle,
            ),
        )
        return self._persist(outcome)

    def _expired_checkpoint(
        self,
        *,
        signal: Signal,
        window: OutcomeWindow,
    ) -> _ExpiredCheckpoint | None:
        """
        Decide whether a longer horizon can be concluded from the 15-minute timeout row.

        Args:
            signal: Stored signal snapshot.
            window: Planned window of the longer horizon.
        Returns:
            _ExpiredCheckpoint | None: Expired conclusion or `None` when position is alive
            or checkpoint row is not a clean current-version timeout.
        Assumptions:
            Checks with non-finite inputs count as passing.
        Raises:
            OutcomeStorageError: If checkpoint read fails.
        Side Effects:
            Reads one outcome row.
        """
        assert signal.signal_id is not None
        short = self._outcome_repository.find_outcome(
            signal_id=signal.signal_id,
            horizon_min=_CHECKPOINT_HORIZON_MIN,
        )
        if (
            short is None
            or short.outcome_state != "COMPLETE_TIMEOUT_NO_HIT"
            or short.window_status != "COMPLETE"
            or short.resolve_version != self._policy.resolve_version
        ):
            return None

        entry_short = _finite_or(short.entry_price, signal.price)
        close_short = _finite_or(short.close_price, entry_short)
        stop = _finite(signal.stop)
        min_low = _finite(short.min_low)
        vwap = _finite(signal.vwap)
        atr_pct = _finite(signal.atr_pct)

        not_stopped = True
        if stop is not None and min_low is not None:
            not_stopped = min_low > stop
        still_near_entry = True
        if atr_pct is not None:
            drift_limit = self._policy.entry_drift_atr * entry_short * (atr_pct / 100)
            still_near_entry = abs(close_short - entry_short) <= drift_limit
        structure_not_broken = True
        if vwap is not None:
            structure_not_broken = close_short >= vwap * (
                1 - self._policy.structure_tolerance_pct / 100
            )

        if not_stopped and still_near_entry and structure_not_broken:
            return None

        reason: ExpiredReason
        if not not_stopped:
            reason = "STOP"
        elif not still_near_entry:
            reason = "DRIFT"
        else:
            reason = "STRUCTURE"

        return _ExpiredCheckpoint(
            reason=reason,
            open_price=_finite_or(short.open_price, entry_short),
            trade=_ResolvedTrade(
                max_high=_finite_or(short.max_high, entry_short),
                min_low=_finite_or(short.min_low, entry_short),
                close_price=close_short,
                ret_pct=_finite_or(short.ret_pct, 0.0),
                r_close=_finite_or(short.r_close, 0.0),
                r_mfe=_finite_or(short.r_mfe, 0.0),
                r_mae=_finite_or(short.r_mae, 0.0),
                r_realized=_finite_or(short.r_realized, 0.0),
                hit_sl=False,
                hit_tp1=False,
                hit_tp2=False,
                tp1_hit_time=0,
                sl_hit_time=0,
                tp2_hit_time=0,
                time_to_first_hit_ms=0,
                bars_to_exit=max(1, math.ceil(_CHECKPOINT_HORIZON_MIN / window.interval_min)),
                mfe_pct=_finite_or(short.mfe_pct, 0.0),
                mae_pct=_finite_or(short.mae_pct, 0.0),
                result="NONE",
                exit_reason="EXPIRED_AFTER_15M",
                exit_price=_finite_or(short.exit_price, close_short),
                exit_time=window.start_time + _CHECKPOINT_MS,
                ambiguous=False,
                exit_index=-1,
            ),
        )

    def _align(self, value: int) -> int:
        step = self._policy.interval_ms
        return (value // step) * step

    def _persist(self, outcome: SignalOutcome) -> SignalOutcome:
        self._outcome_repository.upsert_outcome(outcome=outcome)
        return outcome


def _validate_levels(
    *,
    entry: float,
    stop: float | None,
    tp1: float | None,
    tp2: float | None,
    min_risk_pct: float,
) -> str | None:
    """
    Validate long trade geometry and minimal stop distance.

    Args:
        entry: Effective entry price.
        stop: Stop price.
        tp1: First target price.
        tp2: Second target price.
        min_risk_pct: Minimal stop distance in percent of entry (0 disables check).
    Returns:
        str | None: `NO_PLAN`, `BAD_LEVELS`, `RISK_TOO_SMALL`, or `None` when valid.
    Assumptions:
        Only long trades are resolved: `stop < entry < tp1 < tp2`.
    Raises:
        None.
    Side Effects:
        None.
    """
    entry_value = _finite(entry)
    stop_value = _finite(stop)
    tp1_value = _finite(tp1)
    tp2_value = _finite(tp2)
    if entry_value is None or stop_value is None or tp1_value is None or tp2_value is None:
        return REASON_NO_PLAN
    if not (stop_value < entry_value < tp1_value < tp2_value):
        return REASON_BAD_LEVELS
    if min_risk_pct > 0:
        risk_pct = ((entry_value - stop_value) / entry_value) * 100
        if risk_pct < min_risk_pct:
            return REASON_RISK_TOO_SMALL
    return None


def _trade_from_simulation(*, simulation: TradeSimulation, window: OutcomeWindow) -> _ResolvedTrade:
    # timeouts exit at the window end
    exit_time = simulation.exit_time
    if simulation.exit_reason == "TIMEOUT":
        exit_time = window.end_time
    return _ResolvedTrade(
        max_high=simulation.max_high,
        min_low=simulation.min_low,
        close_price=simulation.last_close,
        ret_pct=simulation.ret_pct,
        r_close=simulation.r_close,
        r_mfe=simulation.r_mfe,
        r_mae=simulation.r_mae,
        r_realized=simulation.r_realized,
        hit_sl=simulation.hit_sl,
        hit_tp1=simulation.hit_tp1,
        hit_tp2=simulation.hit_tp2,
        tp1_hit_time=simulation.tp1_hit_time,
        sl_hit_time=simulation.sl_hit_time,
        tp2_hit_time=simulation.tp2_hit_time,
        time_to_first_hit_ms=simulation.time_to_first_hit_ms,
        bars_to_exit=simulation.bars_to_exit,
        mfe_pct=simulation.mfe_pct,
        mae_pct=simulation.mae_pct,
        result=simulation.result,
        exit_reason=simulation.exit_reason,
        exit_price=simulation.exit_price,
        exit_time=exit_time,
        ambiguous=simulation.ambiguous,
        exit_index=simulation.exit_index,
    )


def _trade_state(*, status: WindowStatus, trade: _ResolvedTrade | None) -> TradeState:
    if status == "INVALID":
        return "INVALIDATED"
    if status != "COMPLETE" or trade is None:
        return "PENDING"
    if trade.exit_reason == "TP2":
        return "COMPLETED_TP2"
    if trade.exit_reason == "TP1":
        return "COMPLETED_TP1"
    if trade.exit_reason == "STOP":
        return "FAILED_SL"
    return "EXPIRED"


def _outcome_state(
    *,
    status: WindowStatus,
    reason: str | None,
    trade: _ResolvedTrade | None,
) -> OutcomeState:
    if status == "COMPLETE" and trade is not None:
        if trade.ambiguous:
            return "COMPLETE_AMBIGUOUS_TP_AND_SL_SAME_CANDLE"
        if trade.exit_reason == "TP2":
            return "COMPLETE_HIT_TP2"
        if trade.exit_reason == "TP1":
            return "COMPLETE_HIT_TP1"
        if trade.exit_reason == "STOP":
            return "COMPLETE_HIT_STOP"
        return "COMPLETE_TIMEOUT_NO_HIT"
    if reason == REASON_FUTURE_WINDOW:
        return "PENDING"
    if status == "INVALID":
        return "INVALID"
    return "PARTIAL_NOT_ENOUGH_BARS"


def _fetch_failure_outcome(
    *,
    signal: Signal,
    window: OutcomeWindow,
    entry_rule: str,
    entry_candle_open_time: int,
    attempted_at: int,
) -> SignalOutcome:
    """
    Build retryable `API_ERROR` row for a pair whose candle fetch failed.

    Args:
        signal: Stored signal snapshot.
        window: Planned window.
        entry_rule: Effective entry rule.
        entry_candle_open_time: Aligned entry candle open time.
        attempted_at: Attempt timestamp used for retry cooldown.
    Returns:
        SignalOutcome: Invalid unresolved row; `computed_at = 0` keeps stored value.
    Assumptions:
        Row is re-selected after retry cooldown because `API_ERROR` is retryable.
    Raises:
        None.
    Side Effects:
        None.
    """
    assert signal.signal_id is not None
    return SignalOutcome(
        signal_id=signal.signal_id,
        horizon_min=window.horizon_min,
        entry_time=window.start_time,
        entry_candle_open_time=entry_candle_open_time,
        entry_rule=entry_rule,
        start_time=window.start_time,
        end_time=window.end_time,
        interval_min=window.interval_min,
        n_candles=0,
        n_candles_expected=window.needed,
        coverage_pct=0.0,
        entry_price=signal.price,
        open_price=signal.price,
        close_price=signal.price,
        max_high=signal.price,
        min_low=signal.price,
        ret_pct=0.0,
        r_mult=0.0,
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
        result="PENDING",
        exit_reason=None,
        outcome_driver=None,
        trade_state="PENDING",
        exit_price=signal.price,
        exit_time=window.start_time,
        window_status="INVALID",
        outcome_state="INVALID",
        invalid_levels=False,
        invalid_reason=REASON_API_ERROR,
        ambiguous=False,
        expired_after_15m=False,
        expired_reason=None,
        attempted_at=attempted_at,
        computed_at=0,
        resolved_at=0,
        resolve_version=None,
    )


def _exit_candle(*, candles: tuple[Candle, ...], trade: _ResolvedTrade | None) -> Candle | None:
    if trade is None or not 0 <= trade.exit_index < len(candles):
        return None
    return candles[trade.exit_index]


def _debug_payload(
    *,
    window: OutcomeWindow,
    status: WindowStatus,
    reason: str | None,
    n_candles: int,
    coverage_pct: float,
    entry: float,
    trade: _ResolvedTrade | None,
    exit_candle: Candle | None,
) -> str:
    """
    Serialize opaque observability snapshot stored next to the outcome row.

    Args:
        window: Planned window.
        status: Final window status.
        reason: Final invalid/partial reason.
        n_candles: Observed candle count.
        coverage_pct: Observed coverage.
        entry: Effective entry price.
        trade: Resolved trade or `None`.
        exit_candle: Candle at exit index, if any.
    Returns:
        str: Deterministic JSON text (sorted keys).
    Assumptions:
        Payload is never read by resolution logic.
    Raises:
        None.
    Side Effects:
        None.
    """
    payload: dict[str, Any] = {
        "window": {
            "startTimeMs": window.start_time,
            "endTimeMs": window.end_time,
            "intervalMs": window.interval_ms,
            "needed": window.needed,
            "nCandles": n_candles,
            "coveragePct": coverage_pct,
        },
        "resolution": {
            "result": trade.result if trade else "PENDING",
            "reason": trade.exit_reason if trade else (reason or "PENDING"),
            "ambiguous": trade.ambiguous if trade else False,
        },
        "hits": {
            "tp1HitTime": trade.tp1_hit_time if trade else 0,
            "tp2HitTime": trade.tp2_hit_time if trade else 0,
            "slHitTime": trade.sl_hit_time if trade else 0,
            "timeToFirstHitMs": trade.time_to_first_hit_ms if trade else 0,
        },
        "exit": {
            "price": trade.exit_price if trade else entry,
            "time": trade.exit_time if trade else window.start_time,
            "index": trade.exit_index if trade else -1,
        },
        "exitCandle": exit_candle.as_dict() if exit_candle is not None else None,
        "excursions": {
            "mfePct": trade.mfe_pct if trade else 0.0,
            "maePct": trade.mae_pct if trade else 0.0,
            "rMfe": trade.r_mfe if trade else 0.0,
            "rMae": trade.r_mae if trade else 0.0,
        },
        "windowStatus": status,
        "invalidReason": None if status == "COMPLETE" else reason,
    }
    return json.dumps(payload, sort_keys=True)


def _finite(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def _finite_or(value: float | None, fallback: float) -> float:
    finite_value = _finite(value)
    return fallback if finite_value is None else finite_value

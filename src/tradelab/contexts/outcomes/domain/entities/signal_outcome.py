from __future__ import annotations

from dataclasses import dataclass

from tradelab.contexts.outcomes.domain.entities.outcome_skip import OutcomeKey
from tradelab.contexts.outcomes.domain.entities.outcome_states import (
    EXIT_REASONS,
    EXPIRED_REASONS,
    OUTCOME_STATES,
    TRADE_RESULTS,
    TRADE_STATES,
    WINDOW_STATUSES,
    ExitReason,
    ExpiredReason,
    OutcomeState,
    TradeResult,
    TradeState,
    WindowStatus,
    is_complete_outcome_state,
)


@dataclass(frozen=True, slots=True)
class SignalOutcome:
    """
    SignalOutcome — persisted resolution of one `(signal, horizon)` pair.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/horizon_resolver.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
      - alembic/versions/20261016_0001_signal_outcomes_v1.py

    All timestamps are epoch milliseconds UTC, `0` means "not set".
    `window_status`, `outcome_state` and `trade_state` are orthogonal lifecycle views.
    `outcome_debug_json` and `prev_snapshot` are opaque serialized payloads.
    """

    signal_id: int
    horizon_min: int
    entry_time: int
    entry_candle_open_time: int
    entry_rule: str
    start_time: int
    end_time: int
    interval_min: int
    n_candles: int
    n_candles_expected: int
    coverage_pct: float
    entry_price: float
    open_price: float
    close_price: float
    max_high: float
    min_low: float
    ret_pct: float
    r_mult: float
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
    exit_reason: ExitReason | None
    outcome_driver: str | None
    trade_state: TradeState
    exit_price: float
    exit_time: int
    window_status: WindowStatus
    outcome_state: OutcomeState
    invalid_levels: bool
    invalid_reason: str | None
    ambiguous: bool
    expired_after_15m: bool
    expired_reason: ExpiredReason | None
    attempted_at: int
    computed_at: int
    resolved_at: int
    resolve_version: str | None
    prev_snapshot: str | None = None
    outcome_debug_json: str | None = None

    def __post_init__(self) -> None:
        """
        Validate identity, enumeration and timestamp invariants of outcome snapshot.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Cross-field lifecycle invariants are audited by the integrity checker rather
            than enforced here, so rows written by older algorithm versions stay readable.
        Raises:
            ValueError: If identity, enumeration or timestamp values are invalid.
        Side Effects:
            None.
        """
        if self.signal_id <= 0:
            raise ValueError("SignalOutcome.signal_id must be > 0")
        if self.horizon_min <= 0:
            raise ValueError("SignalOutcome.horizon_min must be > 0")
        if self.interval_min <= 0:
            raise ValueError("SignalOutcome.interval_min must be > 0")
        if self.window_status not in WINDOW_STATUSES:
            raise ValueError(f"SignalOutcome.window_status is unsupported: {self.window_status!r}")
        if self.outcome_state not in OUTCOME_STATES:
            raise ValueError(f"SignalOutcome.outcome_state is unsupported: {self.outcome_state!r}")
        if self.trade_state not in TRADE_STATES:
            raise ValueError(f"SignalOutcome.trade_state is unsupported: {self.trade_state!r}")
        if self.result not in TRADE_RESULTS:
            raise ValueError(f"SignalOutcome.result is unsupported: {self.result!r}")
        if self.exit_reason is not None and self.exit_reason not in EXIT_REASONS:
            raise ValueError(f"SignalOutcome.exit_reason is unsupported: {self.exit_reason!r}")
        if self.expired_reason is not None and self.expired_reason not in EXPIRED_REASONS:
            raise ValueError(
                f"SignalOutcome.expired_reason is unsupported: {self.expired_reason!r}"
            )
        for name in ("attempted_at", "computed_at", "resolved_at"):
            if getattr(self, name) < 0:
                raise ValueError(f"SignalOutcome.{name} must be >= 0")
        if self.n_candles < 0 or self.n_candles_expected < 0:
            raise ValueError("SignalOutcome candle counts must be >= 0")

    @property
    def key(self) -> OutcomeKey:
        return OutcomeKey(signal_id=self.signal_id, horizon_min=self.horizon_min)

    def is_complete(self) -> bool:
        """Return True when outcome state is one of `COMPLETE_*` classifications."""
        return is_complete_outcome_state(self.outcome_state)

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from tradelab.contexts.outcomes.domain.entities.outcome_states import TRADE_STATES

ExtendedStatus = Literal[
    "PENDING",
    "ACHIEVED_TP1",
    "LOSS_STOP",
    "WIN_TP1",
    "WIN_TP2",
    "FLAT_TIMEOUT_24H",
]

ManagedStatus = Literal[
    "PENDING",
    "PARTIAL_TP1_OPEN",
    "CLOSED_STOP",
    "CLOSED_TP2",
    "CLOSED_BE_AFTER_TP1",
    "CLOSED_TIMEOUT",
]

RunnerExitReason = Literal["TP2", "BREAK_EVEN", "TIMEOUT_MARKET", "STOP_BEFORE_TP1"]

EXTENDED_STATUSES: frozenset[str] = frozenset(
    {"PENDING", "ACHIEVED_TP1", "LOSS_STOP", "WIN_TP1", "WIN_TP2", "FLAT_TIMEOUT_24H"}
)
TERMINAL_EXTENDED_STATUSES: frozenset[str] = frozenset(
    {"LOSS_STOP", "WIN_TP1", "WIN_TP2", "FLAT_TIMEOUT_24H"}
)
MANAGED_STATUSES: frozenset[str] = frozenset(
    {
        "PENDING",
        "PARTIAL_TP1_OPEN",
        "CLOSED_STOP",
        "CLOSED_TP2",
        "CLOSED_BE_AFTER_TP1",
        "CLOSED_TIMEOUT",
    }
)
RUNNER_EXIT_REASONS: frozenset[str] = frozenset(
    {"TP2", "BREAK_EVEN", "TIMEOUT_MARKET", "STOP_BEFORE_TP1"}
)


@dataclass(frozen=True, slots=True)
class ExtendedOutcome:
    """
    ExtendedOutcome — 24-hour tracking of one signal where TP1 continues toward TP2.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/extended_evaluator.py
      - src/tradelab/contexts/outcomes/application/services/managed_pnl.py
      - src/tradelab/contexts/outcomes/application/services/extended_tracker.py
      - alembic/versions/20261016_0002_extended_outcomes_v1.py

    One row per signal. Timestamps are epoch milliseconds UTC, `0` means "not set".
    `status` follows the plain TP1 -> TP2 path; `managed_*` fields follow the managed
    position (half closed at TP1, runner stop moved to entry).
    """

    signal_id: int
    symbol: str
    category: str
    signal_time: int
    expires_at: int
    entry_price: float
    stop_price: float
    tp1_price: float
    tp2_price: float
    status: str = "PENDING"
    trade_state: str = "PENDING"
    exit_price: float | None = None
    exit_time: int = 0
    first_tp1_at: int = 0
    tp2_at: int = 0
    stop_at: int = 0
    mfe_pct: float = 0.0
    mae_pct: float = 0.0
    coverage_pct: float = 0.0
    n_candles_evaluated: int = 0
    n_candles_expected: int = 0
    managed_status: str = "PENDING"
    managed_r: float | None = None
    managed_pnl_usd: float | None = None
    live_managed_r: float | None = None
    runner_be_at: int = 0
    runner_exit_at: int = 0
    runner_exit_reason: str | None = None
    risk_usd: float = 0.0
    completed_at: int = 0
    last_evaluated_at: int = 0
    resolve_version: str | None = None
    debug_json: str | None = None

    def __post_init__(self) -> None:
        """
        Validate identity, enumerations and timestamp ordering.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Only long plans are tracked, levels are checked by the tracker before enrollment.
        Raises:
            ValueError: If one of values is invalid.
        Side Effects:
            None.
        """
        if self.signal_id <= 0:
            raise ValueError("ExtendedOutcome.signal_id must be > 0")
        if self.signal_time <= 0:
            raise ValueError("ExtendedOutcome.signal_time must be > 0")
        if self.expires_at <= self.signal_time:
            raise ValueError("ExtendedOutcome.expires_at must be after signal_time")
        if self.status not in EXTENDED_STATUSES:
            raise ValueError(f"ExtendedOutcome.status is unsupported: {self.status!r}")
        if self.trade_state not in TRADE_STATES:
            raise ValueError(f"ExtendedOutcome.trade_state is unsupported: {self.trade_state!r}")
        if self.managed_status not in MANAGED_STATUSES:
            raise ValueError(
                f"ExtendedOutcome.managed_status is unsupported: {self.managed_status!r}"
            )
        if self.runner_exit_reason is not None and (
            self.runner_exit_reason not in RUNNER_EXIT_REASONS
        ):
            raise ValueError(
                f"ExtendedOutcome.runner_exit_reason is unsupported: {self.runner_exit_reason!r}"
            )
        for name in (
            "exit_time",
            "first_tp1_at",
            "tp2_at",
            "stop_at",
            "runner_be_at",
            "runner_exit_at",
            "completed_at",
            "last_evaluated_at",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"ExtendedOutcome.{name} must be >= 0")
        if self.n_candles_evaluated < 0 or self.n_candles_expected < 0:
            raise ValueError("ExtendedOutcome candle counts must be >= 0")
        if self.risk_usd < 0:
            raise ValueError("ExtendedOutcome.risk_usd must be >= 0")

    def is_complete(self) -> bool:
        return self.completed_at > 0

    def seconds_to(self, at: int) -> int | None:
        """Whole seconds from signal time to `at`, or `None` when `at` is not set."""
        if at <= 0:
            return None
        return max(0, (at - self.signal_time) // 1000)

    @property
    def time_to_first_hit_seconds(self) -> int | None:
        hits = [at for at in (self.first_tp1_at, self.tp2_at, self.stop_at) if at > 0]
        return self.seconds_to(min(hits)) if hits else None

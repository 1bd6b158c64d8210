from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from tradelab.contexts.outcomes.domain.entities.outcome_states import ENTRY_RULES
from tradelab.shared_kernel.primitives import Symbol


@dataclass(frozen=True, slots=True)
class Signal:
    """
    Signal — immutable trading idea produced by the detection pipeline.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/signal_repository.py
      - src/tradelab/contexts/outcomes/application/services/horizon_resolver.py
      - alembic/versions/20261016_0001_signal_outcomes_v1.py

    Times are epoch milliseconds UTC. `signal_id` is `None` until storage assigns it.
    Natural key is `(symbol, category, time, config_hash)`.
    """

    signal_id: int | None
    symbol: str
    category: str
    time: int
    price: float
    stop: float | None
    tp1: float | None
    tp2: float | None
    config_hash: str
    created_at: int
    updated_at: int
    entry_time: int = 0
    entry_candle_open_time: int = 0
    entry_rule: str | None = None
    vwap: float | None = None
    atr_pct: float | None = None
    rr: float | None = None
    rr_est: float | None = None
    delta_vwap_pct: float | None = None
    vol_spike: float | None = None
    rsi9: float | None = None
    session_ok: bool | None = None
    sweep_ok: bool | None = None
    btc_bear: bool | None = None
    config_snapshot: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """
        Normalize symbol/category and validate timestamp invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Price levels may be missing or non-finite; level validation belongs to resolver.
        Raises:
            ValueError: If identity or timestamp fields are invalid.
        Side Effects:
            Normalizes `symbol`, `category`, and `config_hash` in place.
        """
        object.__setattr__(self, "symbol", str(Symbol(self.symbol)))

        normalized_category = self.category.strip().upper()
        if not normalized_category:
            raise ValueError("Signal.category must be non-empty")
        object.__setattr__(self, "category", normalized_category)
        object.__setattr__(self, "config_hash", self.config_hash.strip())

        if self.signal_id is not None and self.signal_id <= 0:
            raise ValueError("Signal.signal_id must be > 0 when provided")
        if self.time <= 0:
            raise ValueError("Signal.time must be > 0")
        if self.entry_time < 0:
            raise ValueError("Signal.entry_time must be >= 0")
        if self.entry_candle_open_time < 0:
            raise ValueError("Signal.entry_candle_open_time must be >= 0")
        if self.created_at < 0 or self.updated_at < 0:
            raise ValueError("Signal.created_at/updated_at must be >= 0")
        if self.entry_rule is not None and self.entry_rule not in ENTRY_RULES:
            raise ValueError(f"Signal.entry_rule is unsupported: {self.entry_rule!r}")
        if not isinstance(self.config_snapshot, Mapping):
            raise ValueError("Signal.config_snapshot must be mapping")

    def effective_entry_time(self) -> int:
        """Entry timestamp used for window planning (`entry_time`, falling back to `time`)."""
        return self.entry_time or self.time

    def effective_entry_candle_open_time(self) -> int:
        return self.entry_candle_open_time or self.effective_entry_time()

    def levels_finite(self) -> bool:
        """Return True when price, stop and both targets are finite numbers."""
        return all(
            value is not None and math.isfinite(value)
            for value in (self.price, self.stop, self.tp1, self.tp2)
        )

    def has_long_plan(self) -> bool:
        """Return True for finite levels ordered `stop < price < tp1 < tp2`."""
        if not self.levels_finite():
            return False
        assert self.stop is not None and self.tp1 is not None and self.tp2 is not None
        return self.stop < self.price < self.tp1 < self.tp2

    def config_env(self) -> Mapping[str, Any]:
        env = self.config_snapshot.get("env")
        return env if isinstance(env, Mapping) else {}

    def config_thresholds(self) -> Mapping[str, Any]:
        thresholds = self.config_snapshot.get("thresholds")
        return thresholds if isinstance(thresholds, Mapping) else {}

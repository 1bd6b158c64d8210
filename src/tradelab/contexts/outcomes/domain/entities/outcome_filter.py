from __future__ import annotations

from dataclasses import dataclass

from tradelab.contexts.outcomes.domain.entities.outcome_states import (
    TRADE_RESULTS,
    WINDOW_STATUSES,
)
from tradelab.shared_kernel.primitives import Symbol


@dataclass(frozen=True, slots=True)
class OutcomeFilter:
    """
    OutcomeFilter — admin selection of outcome rows joined with their signals.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/outcome_admin.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py

    `start_time`/`end_time` bound the signal detection time (inclusive, epoch ms).
    """

    start_time: int
    end_time: int
    category: str | None = None
    symbol: str | None = None
    horizon_min: int | None = None
    window_status: str | None = None
    result: str | None = None

    def __post_init__(self) -> None:
        if self.start_time < 0:
            raise ValueError("OutcomeFilter.start_time must be >= 0")
        if self.end_time < self.start_time:
            raise ValueError("OutcomeFilter.end_time must be >= start_time")
        if self.horizon_min is not None and self.horizon_min <= 0:
            raise ValueError("OutcomeFilter.horizon_min must be > 0 when provided")
        if self.window_status is not None and self.window_status not in WINDOW_STATUSES:
            raise ValueError(f"OutcomeFilter.window_status is unsupported: {self.window_status!r}")
        if self.result is not None and self.result not in TRADE_RESULTS:
            raise ValueError(f"OutcomeFilter.result is unsupported: {self.result!r}")
        if self.category is not None:
            object.__setattr__(self, "category", self.category.strip().upper() or None)
        if self.symbol is not None:
            symbol = str(Symbol(self.symbol)) if self.symbol.strip() else None
            object.__setattr__(self, "symbol", symbol)

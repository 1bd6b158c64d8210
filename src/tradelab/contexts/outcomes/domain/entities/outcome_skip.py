from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class OutcomeKey:
    """
    OutcomeKey — unique `(signal_id, horizon_min)` identity of one outcome row.
    """

    signal_id: int
    horizon_min: int

    def __post_init__(self) -> None:
        if self.signal_id <= 0:
            raise ValueError("OutcomeKey.signal_id must be > 0")
        if self.horizon_min <= 0:
            raise ValueError("OutcomeKey.horizon_min must be > 0")


@dataclass(frozen=True, slots=True)
class OutcomeSkip:
    """
    OutcomeSkip — explicit exclusion marker written before an outcome row is deleted.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/outcome_admin.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
    """

    signal_id: int
    horizon_min: int
    reason: str
    created_at: int

    def __post_init__(self) -> None:
        if self.signal_id <= 0:
            raise ValueError("OutcomeSkip.signal_id must be > 0")
        if self.horizon_min <= 0:
            raise ValueError("OutcomeSkip.horizon_min must be > 0")
        if not self.reason.strip():
            raise ValueError("OutcomeSkip.reason must be non-empty")
        if self.created_at < 0:
            raise ValueError("OutcomeSkip.created_at must be >= 0")

    @property
    def key(self) -> OutcomeKey:
        return OutcomeKey(signal_id=self.signal_id, horizon_min=self.horizon_min)

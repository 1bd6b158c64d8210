from __future__ import annotations

from dataclasses import dataclass

from tradelab.contexts.outcomes.domain.entities import ENTRY_RULES

_MIN_COVERAGE_FLOOR_PCT = 50.0
_MIN_COVERAGE_CEIL_PCT = 100.0


@dataclass(frozen=True, slots=True)
class OutcomeResolutionPolicy:
    """
    OutcomeResolutionPolicy — tunables of one `(signal, horizon)` resolution.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/horizon_resolver.py
      - src/tradelab/contexts/outcomes/adapters/outbound/config/
        outcome_resolver_runtime_config.py
      - configs/dev/outcome_resolver.yaml
    """

    interval_min: int
    grace_ms: int
    buffer_candles: int
    min_coverage_pct: float
    min_risk_pct: float
    fee_bps: float
    slippage_bps: float
    entry_rule: str
    resolve_version: str
    expire_after_15m: bool
    entry_drift_atr: float
    structure_tolerance_pct: float
    max_fetch_limit: int = 1000

    def __post_init__(self) -> None:
        """
        Validate resolution tunables and clamp minimum coverage into `[50, 100]`.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Coverage below 50% is never accepted as a complete window.
        Raises:
            ValueError: If one of values is out of allowed range.
        Side Effects:
            Normalizes `min_coverage_pct` and `resolve_version`.
        """
        if self.interval_min <= 0:
            raise ValueError("OutcomeResolutionPolicy.interval_min must be > 0")
        if self.grace_ms < 0:
            raise ValueError("OutcomeResolutionPolicy.grace_ms must be >= 0")
        if self.buffer_candles < 0:
            raise ValueError("OutcomeResolutionPolicy.buffer_candles must be >= 0")
        if self.min_risk_pct < 0:
            raise ValueError("OutcomeResolutionPolicy.min_risk_pct must be >= 0")
        if self.fee_bps < 0 or self.slippage_bps < 0:
            raise ValueError("OutcomeResolutionPolicy.fee_bps/slippage_bps must be >= 0")
        if self.entry_rule not in ENTRY_RULES:
            raise ValueError(
                f"OutcomeResolutionPolicy.entry_rule is unsupported: {self.entry_rule!r}"
            )
        if self.entry_drift_atr <= 0:
            raise ValueError("OutcomeResolutionPolicy.entry_drift_atr must be > 0")
        if self.structure_tolerance_pct < 0:
            raise ValueError("OutcomeResolutionPolicy.structure_tolerance_pct must be >= 0")
        if self.max_fetch_limit <= 0:
            raise ValueError("OutcomeResolutionPolicy.max_fetch_limit must be > 0")

        normalized_version = self.resolve_version.strip()
        if not normalized_version:
            raise ValueError("OutcomeResolutionPolicy.resolve_version must be non-empty")
        object.__setattr__(self, "resolve_version", normalized_version)
        object.__setattr__(
            self,
            "min_coverage_pct",
            min(_MIN_COVERAGE_CEIL_PCT, max(_MIN_COVERAGE_FLOOR_PCT, float(self.min_coverage_pct))),
        )

    @property
    def interval_ms(self) -> int:
        return self.interval_min * 60_000


@dataclass(frozen=True, slots=True)
class OutcomeSchedulePolicy:
    """
    OutcomeSchedulePolicy — candidate selection, pacing and integrity cadence of batch passes.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
      - configs/dev/outcome_resolver.yaml
    """

    horizons_min: tuple[int, ...]
    tracked_categories: tuple[str, ...]
    retry_reasons: tuple[str, ...]
    retry_after_ms: int
    batch_size: int
    pacing_ms: int
    integrity_interval_ms: int
    integrity_lookback_days: int

    def __post_init__(self) -> None:
        """
        Validate schedule policy and normalize horizons into ascending unique order.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Horizons are processed shortest first so the 15-minute row exists before longer ones.
        Raises:
            ValueError: If one of values is invalid.
        Side Effects:
            Normalizes tuples in place.
        """
        if not self.horizons_min:
            raise ValueError("OutcomeSchedulePolicy.horizons_min must be non-empty")
        if any(horizon <= 0 for horizon in self.horizons_min):
            raise ValueError("OutcomeSchedulePolicy.horizons_min values must be > 0")
        if not self.tracked_categories:
            raise ValueError("OutcomeSchedulePolicy.tracked_categories must be non-empty")
        if self.retry_after_ms < 0:
            raise ValueError("OutcomeSchedulePolicy.retry_after_ms must be >= 0")
        if self.batch_size <= 0:
            raise ValueError("OutcomeSchedulePolicy.batch_size must be > 0")
        if self.pacing_ms < 0:
            raise ValueError("OutcomeSchedulePolicy.pacing_ms must be >= 0")
        if self.integrity_interval_ms <= 0:
            raise ValueError("OutcomeSchedulePolicy.integrity_interval_ms must be > 0")
        if self.integrity_lookback_days <= 0:
            raise ValueError("OutcomeSchedulePolicy.integrity_lookback_days must be > 0")

        object.__setattr__(self, "horizons_min", tuple(sorted(set(self.horizons_min))))
        object.__setattr__(
            self,
            "tracked_categories",
            tuple(category.strip().upper() for category in self.tracked_categories),
        )
        object.__setattr__(
            self,
            "retry_reasons",
            tuple(reason.strip().upper() for reason in self.retry_reasons),
        )


@dataclass(frozen=True, slots=True)
class ExtendedOutcomePolicy:
    """
    ExtendedOutcomePolicy — window, enrollment and risk settings of 24-hour extended tracking.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/extended_tracker.py
      - configs/dev/outcome_resolver.yaml
    """

    enabled: bool
    window_hours: int
    interval_min: int
    batch_size: int
    enroll_lookback_days: int
    risk_per_trade_usd: float
    resolve_version: str
    tracked_categories: tuple[str, ...]
    pacing_ms: int = 0
    max_fetch_limit: int = 1000

    def __post_init__(self) -> None:
        """
        Validate extended tracking settings.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            The whole window must fit into one provider page.
        Raises:
            ValueError: If one of values is invalid.
        Side Effects:
            Normalizes `resolve_version` and `tracked_categories`.
        """
        if self.window_hours <= 0:
            raise ValueError("ExtendedOutcomePolicy.window_hours must be > 0")
        if self.interval_min <= 0:
            raise ValueError("ExtendedOutcomePolicy.interval_min must be > 0")
        if self.batch_size <= 0:
            raise ValueError("ExtendedOutcomePolicy.batch_size must be > 0")
        if self.enroll_lookback_days <= 0:
            raise ValueError("ExtendedOutcomePolicy.enroll_lookback_days must be > 0")
        if self.risk_per_trade_usd <= 0:
            raise ValueError("ExtendedOutcomePolicy.risk_per_trade_usd must be > 0")
        if self.pacing_ms < 0:
            raise ValueError("ExtendedOutcomePolicy.pacing_ms must be >= 0")
        if self.max_fetch_limit <= 0:
            raise ValueError("ExtendedOutcomePolicy.max_fetch_limit must be > 0")
        if self.expected_candles + 1 > self.max_fetch_limit:
            raise ValueError(
                "ExtendedOutcomePolicy window does not fit into one fetch of "
                f"{self.max_fetch_limit} candles"
            )
        normalized_version = self.resolve_version.strip()
        if not normalized_version:
            raise ValueError("ExtendedOutcomePolicy.resolve_version must be non-empty")
        object.__setattr__(self, "resolve_version", normalized_version)
        object.__setattr__(
            self,
            "tracked_categories",
            tuple(category.strip().upper() for category in self.tracked_categories),
        )

    @property
    def window_ms(self) -> int:
        return self.window_hours * 3_600_000

    @property
    def interval_ms(self) -> int:
        return self.interval_min * 60_000

    @property
    def expected_candles(self) -> int:
        return self.window_ms // self.interval_ms

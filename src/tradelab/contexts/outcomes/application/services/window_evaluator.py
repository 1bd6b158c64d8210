from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from tradelab.contexts.outcomes.domain.entities import (
    REASON_BAD_ALIGN,
    REASON_NO_DATA_IN_WINDOW,
    REASON_NOT_ENOUGH_BARS,
    WindowStatus,
)
from tradelab.shared_kernel.primitives import Candle

_MS_PER_MINUTE = 60_000


@dataclass(frozen=True, slots=True)
class OutcomeWindow:
    """
    OutcomeWindow — candle window required to resolve one horizon.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/horizon_resolver.py
      - tests/unit/contexts/outcomes/application/test_window_evaluator.py

    `start_time`/`end_time` are open times of the first/last required candle.
    `ready_at` adds one interval, the grace period and buffer candles after `end_time`.
    """

    horizon_min: int
    interval_min: int
    needed: int
    start_time: int
    end_time: int
    ready_at: int
    fetch_start: int
    fetch_limit: int

    @property
    def interval_ms(self) -> int:
        return self.interval_min * _MS_PER_MINUTE

    def is_due(self, *, now_ms: int) -> bool:
        """Return True when the window (plus grace and buffer) is in the past."""
        return now_ms >= self.ready_at


@dataclass(frozen=True, slots=True)
class WindowAssessment:
    """
    WindowAssessment — data sufficiency classification of fetched candles.
    """

    status: WindowStatus
    reason: str | None
    candles: tuple[Candle, ...]
    n_candles: int
    coverage_pct: float


def plan_outcome_window(
    *,
    entry_time_ms: int,
    horizon_min: int,
    interval_min: int,
    grace_ms: int,
    buffer_candles: int,
) -> OutcomeWindow:
    """
    Compute candle window, readiness timestamp and fetch range for one horizon.

    Args:
        entry_time_ms: Signal entry timestamp (epoch ms), aligned down to interval.
        horizon_min: Horizon in minutes.
        interval_min: Candle interval in minutes.
        grace_ms: Provider lag grace period.
        buffer_candles: Extra candles requested around the window and waited after it.
    Returns:
        OutcomeWindow: Planned window.
    Assumptions:
        At least one candle is always required.
    Raises:
        ValueError: If horizon or interval are not positive.
    Side Effects:
        None.
    """
    if horizon_min <= 0:
        raise ValueError("plan_outcome_window.horizon_min must be > 0")
    if interval_min <= 0:
        raise ValueError("plan_outcome_window.interval_min must be > 0")

    interval_ms = interval_min * _MS_PER_MINUTE
    needed = max(1, math.ceil(horizon_min / interval_min))
    start_time = (entry_time_ms // interval_ms) * interval_ms
    end_time = start_time + (needed - 1) * interval_ms
    ready_at = end_time + interval_ms + grace_ms + buffer_candles * interval_ms
    return OutcomeWindow(
        horizon_min=horizon_min,
        interval_min=interval_min,
        needed=needed,
        start_time=start_time,
        end_time=end_time,
        ready_at=ready_at,
        fetch_start=max(0, start_time - buffer_candles * interval_ms),
        fetch_limit=needed + buffer_candles * 2,
    )


def evaluate_outcome_window(
    *,
    start_time: int,
    end_time: int,
    interval_ms: int,
    needed: int,
    min_coverage_pct: float,
    candles: Sequence[Candle],
) -> WindowAssessment:
    """
    Classify candle sufficiency and alignment for closed window `[start_time, end_time]`.

    Args:
        start_time: Expected open time of the first candle.
        end_time: Expected open time of the last candle.
        interval_ms: Candle interval in milliseconds.
        needed: Expected candle count.
        min_coverage_pct: Minimal accepted coverage percentage.
        candles: Candles returned by provider (any order, may include buffer candles).
    Returns:
        WindowAssessment: Exactly one of COMPLETE, PARTIAL or INVALID with kept slice.
    Assumptions:
        Misalignment is reported separately from absence because it signals upstream gaps.
    Raises:
        None.
    Side Effects:
        None.
    """
    window = sorted(
        (candle for candle in candles if start_time <= candle.open_time <= end_time),
        key=lambda candle: candle.open_time,
    )
    window_slice = tuple(window[: max(needed, 0)])
    n_candles = len(window_slice)
    coverage_pct = (n_candles / needed) * 100 if needed > 0 else 0.0

    if n_candles == 0:
        return WindowAssessment(
            status="INVALID",
            reason=REASON_NO_DATA_IN_WINDOW,
            candles=window_slice,
            n_candles=n_candles,
            coverage_pct=coverage_pct,
        )

    if coverage_pct < min_coverage_pct:
        return WindowAssessment(
            status="PARTIAL",
            reason=REASON_NOT_ENOUGH_BARS,
            candles=window_slice,
            n_candles=n_candles,
            coverage_pct=coverage_pct,
        )

    if not _is_aligned(
        candles=window_slice,
        start_time=start_time,
        end_time=end_time,
        interval_ms=interval_ms,
    ):
        return WindowAssessment(
            status="PARTIAL",
            reason=REASON_BAD_ALIGN,
            candles=window_slice,
            n_candles=n_candles,
            coverage_pct=coverage_pct,
        )

    return WindowAssessment(
        status="COMPLETE",
        reason=None,
        candles=window_slice,
        n_candles=n_candles,
        coverage_pct=coverage_pct,
    )


def _is_aligned(
    *,
    candles: Sequence[Candle],
    start_time: int,
    end_time: int,
    interval_ms: int,
) -> bool:
    if candles[0].open_time != start_time:
        return False
    if candles[-1].open_time != end_time:
        return False
    for previous, current in zip(candles, candles[1:]):
        if current.open_time - previous.open_time != interval_ms:
            return False
    return True

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, replace

from tradelab.contexts.outcomes.application.dto import ExtendedOutcomePolicy
from tradelab.contexts.outcomes.application.ports import (
    CandleFetcher,
    ExtendedOutcomeRepository,
    OutcomeClock,
    OutcomeSleeper,
    epoch_ms,
)
from tradelab.contexts.outcomes.application.services.extended_evaluator import (
    ExtendedEvaluation,
    evaluate_extended_outcome,
    window_candles,
)
from tradelab.contexts.outcomes.application.services.managed_pnl import evaluate_managed_pnl
from tradelab.contexts.outcomes.domain.entities import ExtendedOutcome, Signal
from tradelab.shared_kernel.primitives import Candle

log = logging.getLogger(__name__)

_DAY_MS = 86_400_000


@dataclass(frozen=True, slots=True)
class ExtendedTrackerReport:
    """
    ExtendedTrackerReport — counters of one extended tracking pass.
    """

    started_at: int
    finished_at: int
    enrolled: int = 0
    skipped_levels: int = 0
    evaluated: int = 0
    completed: int = 0
    failed: int = 0
    fetch_errors: int = 0

    @property
    def duration_ms(self) -> int:
        return max(0, self.finished_at - self.started_at)


class ExtendedOutcomeTracker:
    """
    ExtendedOutcomeTracker — enrolls tracked signals and re-evaluates open 24-hour outcomes.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/extended_evaluator.py
      - src/tradelab/contexts/outcomes/application/services/managed_pnl.py
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
      - apps/worker/outcome_resolver/wiring/modules/outcome_resolver.py
    """

    def __init__(
        self,
        *,
        repository: ExtendedOutcomeRepository,
        candle_fetcher: CandleFetcher,
        policy: ExtendedOutcomePolicy,
        clock: OutcomeClock,
        sleeper: OutcomeSleeper,
    ) -> None:
        """
        Initialize tracker dependencies.

        Args:
            repository: Extended outcome storage port.
            candle_fetcher: Candle-supplying service.
            policy: Window, enrollment and risk settings.
            clock: UTC clock port.
            sleeper: Pacing sleeper port.
        Returns:
            None.
        Assumptions:
            Called from the same loop as the horizon scheduler, never concurrently.
        Raises:
            ValueError: If one of dependencies is missing.
        Side Effects:
            None.
        """
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("ExtendedOutcomeTracker requires repository")
        if candle_fetcher is None:  # type: ignore[truthy-bool]
            raise ValueError("ExtendedOutcomeTracker requires candle_fetcher")
        if policy is None:  # type: ignore[truthy-bool]
            raise ValueError("ExtendedOutcomeTracker requires policy")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("ExtendedOutcomeTracker requires clock")
        if sleeper is None:  # type: ignore[truthy-bool]
            raise ValueError("ExtendedOutcomeTracker requires sleeper")
        self._repository = repository
        self._candle_fetcher = candle_fetcher
        self._policy = policy
        self._clock = clock
        self._sleeper = sleeper

    def run_once(self) -> ExtendedTrackerReport:
        """
        Enroll new signals, then evaluate open rows least recently evaluated first.

        Args:
            None.
        Returns:
            ExtendedTrackerReport: Pass counters.
        Assumptions:
            Fetch failures only touch `last_evaluated_at` so the row moves to the queue tail.
            Per-row failures are logged and counted; they never abort the pass.
        Raises:
            OutcomeStorageError: If enrollment or open-row selection fails.
        Side Effects:
            Calls candle provider, writes extended rows, sleeps between rows.
        """
        policy = self._policy
        started_at = epoch_ms(self._clock.now())
        enrolled, skipped_levels = self._enroll(now_ms=started_at)

        evaluated = 0
        completed = 0
        failed = 0
        fetch_errors = 0
        for index, row in enumerate(self._repository.list_open(limit=policy.batch_size)):
            if index and policy.pacing_ms > 0:
                self._sleeper.sleep(seconds=policy.pacing_ms / 1000)
            try:
                candles: tuple[Candle, ...] | None = self._candle_fetcher.fetch(
                    symbol=row.symbol,
                    interval_min=policy.interval_min,
                    start_time_ms=row.signal_time,
                    limit=policy.expected_candles + 1,
                )
            except Exception as error:  # noqa: BLE001
                fetch_errors += 1
                candles = None
                log.warning(
                    "extended outcome candle fetch failed signal_id=%s symbol=%s reason=%s",
                    row.signal_id,
                    row.symbol,
                    error,
                )
            try:
                if candles is None:
                    self._repository.save(outcome=replace(row, last_evaluated_at=started_at))
                    continue
                updated = self.evaluate(row=row, candles=candles, now_ms=started_at)
                self._repository.save(outcome=updated)
            except Exception:  # noqa: BLE001
                failed += 1
                log.exception("extended outcome evaluation failed signal_id=%s", row.signal_id)
                continue
            evaluated += 1
            if updated.is_complete():
                completed += 1
                log.info(
                    "extended outcome completed signal_id=%s status=%s managed_status=%s",
                    updated.signal_id,
                    updated.status,
                    updated.managed_status,
                )

        return ExtendedTrackerReport(
            started_at=started_at,
            finished_at=epoch_ms(self._clock.now()),
            enrolled=enrolled,
            skipped_levels=skipped_levels,
            evaluated=evaluated,
            completed=completed,
            failed=failed,
            fetch_errors=fetch_errors,
        )

    def evaluate(
        self,
        *,
        row: ExtendedOutcome,
        candles: tuple[Candle, ...],
        now_ms: int,
    ) -> ExtendedOutcome:
        """
        Build the next snapshot of one open row from provider candles.

        Args:
            row: Stored open row.
            candles: Provider candles starting at signal time.
            now_ms: Evaluation timestamp.
        Returns:
            ExtendedOutcome: Re-evaluated snapshot; `completed_at` is set once closed.
        Assumptions:
            Managed PnL replays the same window candles as the plain evaluation.
        Raises:
            ValueError: If evaluation produces an invalid snapshot.
        Side Effects:
            None.
        """
        window = window_candles(
            candles=candles,
            signal_time_ms=row.signal_time,
            expires_at_ms=row.expires_at,
        )
        evaluation = evaluate_extended_outcome(
            entry=row.entry_price,
            stop=row.stop_price,
            tp1=row.tp1_price,
            tp2=row.tp2_price,
            signal_time_ms=row.signal_time,
            expires_at_ms=row.expires_at,
            interval_ms=self._policy.interval_ms,
            candles=window,
            now_ms=now_ms,
        )
        managed = evaluate_managed_pnl(
            entry=row.entry_price,
            stop=row.stop_price,
            tp1=row.tp1_price,
            tp2=row.tp2_price,
            candles=window,
            expires_at_ms=row.expires_at,
            window_completed=evaluation.completed,
            risk_per_trade_usd=row.risk_usd or self._policy.risk_per_trade_usd,
        )
        return replace(
            row,
            status=evaluation.status,
            trade_state=evaluation.trade_state,
            exit_price=evaluation.exit_price,
            exit_time=evaluation.exit_time,
            first_tp1_at=evaluation.first_tp1_at,
            tp2_at=evaluation.tp2_at,
            stop_at=evaluation.stop_at,
            mfe_pct=evaluation.mfe_pct,
            mae_pct=evaluation.mae_pct,
            coverage_pct=evaluation.coverage_pct,
            n_candles_evaluated=evaluation.n_candles_evaluated,
            n_candles_expected=evaluation.n_candles_expected,
            managed_status=managed.status,
            managed_r=managed.realized_r,
            managed_pnl_usd=managed.pnl_usd,
            live_managed_r=managed.live_r,
            runner_be_at=managed.runner_be_at,
            runner_exit_at=managed.runner_exit_at,
            runner_exit_reason=managed.runner_exit_reason,
            completed_at=now_ms if evaluation.completed else 0,
            last_evaluated_at=now_ms,
            resolve_version=self._policy.resolve_version,
            debug_json=_debug_payload(evaluation=evaluation),
        )

    def _enroll(self, *, now_ms: int) -> tuple[int, int]:
        policy = self._policy
        signals = self._repository.list_enrollment_candidates(
            since_ms=now_ms - policy.enroll_lookback_days * _DAY_MS,
            categories=policy.tracked_categories,
            limit=policy.batch_size,
        )
        enrolled = 0
        skipped = 0
        for signal in signals:
            if signal.signal_id is None or not signal.has_long_plan():
                skipped += 1
                log.warning(
                    "extended outcome enrollment skipped signal_id=%s: no long price plan",
                    signal.signal_id,
                )
                continue
            if self._repository.enroll(outcome=self._pending_row(signal=signal)):
                enrolled += 1
        return enrolled, skipped

    def _pending_row(self, *, signal: Signal) -> ExtendedOutcome:
        assert signal.signal_id is not None
        assert signal.stop is not None and signal.tp1 is not None and signal.tp2 is not None
        policy = self._policy
        return ExtendedOutcome(
            signal_id=signal.signal_id,
            symbol=signal.symbol,
            category=signal.category,
            signal_time=signal.time,
            expires_at=signal.time + policy.window_ms,
            entry_price=signal.price,
            stop_price=signal.stop,
            tp1_price=signal.tp1,
            tp2_price=signal.tp2,
            n_candles_expected=policy.expected_candles,
            risk_usd=policy.risk_per_trade_usd,
            resolve_version=policy.resolve_version,
        )


def _debug_payload(*, evaluation: ExtendedEvaluation) -> str | None:
    if not evaluation.conflicts:
        return None
    return json.dumps(
        {"conflicts": [asdict(conflict) for conflict in evaluation.conflicts]},
        sort_keys=True,
    )

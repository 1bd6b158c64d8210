from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from tradelab.contexts.outcomes.application.dto import (
    OutcomeResolutionPolicy,
    OutcomeSchedulePolicy,
)
from tradelab.contexts.outcomes.application.ports import (
    CandleFetcher,
    OutcomeClock,
    OutcomeRepository,
    OutcomeSleeper,
    epoch_ms,
)
from tradelab.contexts.outcomes.application.services.candle_cache import PassCandleCache
from tradelab.contexts.outcomes.application.services.horizon_resolver import (
    HorizonOutcomeResolver,
)
from tradelab.contexts.outcomes.application.services.integrity_checker import (
    OutcomeIntegrityChecker,
)
from tradelab.contexts.outcomes.application.services.window_evaluator import (
    plan_outcome_window,
)
from tradelab.contexts.outcomes.domain.entities import (
    REASON_API_ERROR,
    OutcomeIntegrityReport,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OutcomeBatchReport:
    """
    OutcomeBatchReport — counters of one scheduler pass.

    `skipped=True` means another pass was in progress and nothing was done.
    """

    started_at: int
    finished_at: int
    processed: int = 0
    failed: int = 0
    fetch_errors: int = 0
    provider_calls: int = 0
    cache_hits: int = 0
    skipped: bool = False
    integrity: OutcomeIntegrityReport | None = None

    @property
    def duration_ms(self) -> int:
        return max(0, self.finished_at - self.started_at)


@dataclass(frozen=True, slots=True)
class OutcomeSchedulerHealth:
    """
    OutcomeSchedulerHealth — read-only snapshot of scheduler state for operators.
    """

    running: bool
    passes: int
    last_started_at: int
    last_finished_at: int
    last_duration_ms: int
    last_processed: int
    last_failed: int
    last_fetch_errors: int
    last_integrity_at: int
    last_integrity_ok: bool | None


class OutcomeBatchScheduler:
    """
    OutcomeBatchScheduler — periodic batch pass resolving every due `(signal, horizon)` pair.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/services/horizon_resolver.py
      - src/tradelab/contexts/outcomes/application/services/candle_cache.py
      - apps/worker/outcome_resolver/wiring/modules/outcome_resolver.py
    """

    def __init__(
        self,
        *,
        outcome_repository: OutcomeRepository,
        resolver: HorizonOutcomeResolver,
        candle_fetcher: CandleFetcher,
        resolution_policy: OutcomeResolutionPolicy,
        schedule_policy: OutcomeSchedulePolicy,
        integrity_checker: OutcomeIntegrityChecker,
        clock: OutcomeClock,
        sleeper: OutcomeSleeper,
    ) -> None:
        """
        Initialize scheduler dependencies and empty health state.

        Args:
            outcome_repository: Outcome storage port used for candidate selection.
            resolver: Per-pair resolver.
            candle_fetcher: Provider-backed candle fetcher wrapped by a per-pass cache.
            resolution_policy: Window tunables used to compute readiness lag.
            schedule_policy: Horizons, categories, retry and pacing settings.
            integrity_checker: Lifecycle invariant auditor.
            clock: UTC clock port.
            sleeper: Pacing sleeper port.
        Returns:
            None.
        Assumptions:
            One scheduler instance per process; overlapping calls are skipped, not queued.
        Raises:
            ValueError: If one of dependencies is missing.
        Side Effects:
            None.
        """
        if outcome_repository is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires outcome_repository")
        if resolver is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires resolver")
        if candle_fetcher is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires candle_fetcher")
        if resolution_policy is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires resolution_policy")
        if schedule_policy is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires schedule_policy")
        if integrity_checker is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires integrity_checker")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires clock")
        if sleeper is None:  # type: ignore[truthy-bool]
            raise ValueError("OutcomeBatchScheduler requires sleeper")

        self._outcome_repository = outcome_repository
        self._resolver = resolver
        self._candle_fetcher = candle_fetcher
        self._resolution_policy = resolution_policy
        self._schedule_policy = schedule_policy
        self._integrity_checker = integrity_checker
        self._clock = clock
        self._sleeper = sleeper

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._passes = 0
        self._last_report: OutcomeBatchReport | None = None
        self._last_integrity_at = 0
        self._last_integrity_ok: bool | None = None

    def run_once(self) -> OutcomeBatchReport:
        """
        Run one pass unless another pass is already in progress.

        Args:
            None.
        Returns:
            OutcomeBatchReport: Pass counters, or skipped report on overlap.
        Assumptions:
            Per-pair failures are logged and counted; they never abort the pass.
        Raises:
            OutcomeStorageError: If candidate selection fails.
        Side Effects:
            Calls candle provider, writes outcome rows, sleeps between pairs.
        """
        if not self._run_lock.acquire(blocking=False):
            now_ms = epoch_ms(self._clock.now())
            log.info("outcome batch pass skipped: previous pass still running")
            return OutcomeBatchReport(started_at=now_ms, finished_at=now_ms, skipped=True)
        try:
            report = self._run_pass()
        finally:
            self._run_lock.release()

        with self._state_lock:
            self._passes += 1
            self._last_report = report
        return report

    def health(self) -> OutcomeSchedulerHealth:
        with self._state_lock:
            report = self._last_report
            return OutcomeSchedulerHealth(
                running=self._run_lock.locked(),
                passes=self._passes,
                last_started_at=report.started_at if report else 0,
                last_finished_at=report.finished_at if report else 0,
                last_duration_ms=report.duration_ms if report else 0,
                last_processed=report.processed if report else 0,
                last_failed=report.failed if report else 0,
                last_fetch_errors=report.fetch_errors if report else 0,
                last_integrity_at=self._last_integrity_at,
                last_integrity_ok=self._last_integrity_ok,
            )

    def _run_pass(self) -> OutcomeBatchReport:
        """
        Resolve candidates of every horizon (ascending) and run integrity sweep when due.

        Args:
            None.
        Returns:
            OutcomeBatchReport: Pass counters.
        Assumptions:
            Shorter horizons go first so the 15-minute checkpoint row is fresh for longer ones.
        Raises:
            OutcomeStorageError: If candidate selection fails.
        Side Effects:
            Writes outcome rows and sleeps between pairs.
        """
        resolution = self._resolution_policy
        schedule = self._schedule_policy
        started_at = epoch_ms(self._clock.now())
        cache = PassCandleCache(
            fetcher=self._candle_fetcher,
            max_limit=resolution.max_fetch_limit,
        )
        processed = 0
        failed = 0
        fetch_errors = 0
        pairs_started = 0

        for horizon_min in schedule.horizons_min:
            # window planned from epoch zero: ready_at equals the readiness lag
            readiness_lag_ms = plan_outcome_window(
                entry_time_ms=0,
                horizon_min=horizon_min,
                interval_min=resolution.interval_min,
                grace_ms=resolution.grace_ms,
                buffer_candles=resolution.buffer_candles,
            ).ready_at
            candidates = self._outcome_repository.list_resolution_candidates(
                horizon_min=horizon_min,
                ready_entry_before_ms=started_at - readiness_lag_ms,
                categories=schedule.tracked_categories,
                retry_reasons=schedule.retry_reasons,
                retry_before_ms=started_at - schedule.retry_after_ms,
                limit=schedule.batch_size,
            )
            for signal in candidates:
                if pairs_started and schedule.pacing_ms > 0:
                    self._sleeper.sleep(seconds=schedule.pacing_ms / 1000)
                pairs_started += 1
                try:
                    outcome = self._resolver.resolve(
                        signal=signal,
                        horizon_min=horizon_min,
                        candle_fetcher=cache,
                        now_ms=started_at,
                    )
                except Exception:  # noqa: BLE001
                    failed += 1
                    log.exception(
                        "outcome resolution failed signal_id=%s horizon_min=%s",
                        signal.signal_id,
                        horizon_min,
                    )
                    continue
                processed += 1
                if outcome.invalid_reason == REASON_API_ERROR:
                    fetch_errors += 1

        integrity = self._maybe_check_integrity(now_ms=started_at)
        return OutcomeBatchReport(
            started_at=started_at,
            finished_at=epoch_ms(self._clock.now()),
            processed=processed,
            failed=failed,
            fetch_errors=fetch_errors,
            provider_calls=cache.provider_calls,
            cache_hits=cache.cache_hits,
            integrity=integrity,
        )

    def _maybe_check_integrity(self, *, now_ms: int) -> OutcomeIntegrityReport | None:
        due = (
            self._last_integrity_at == 0
            or now_ms - self._last_integrity_at >= self._schedule_policy.integrity_interval_ms
        )
        if not due:
            return None
        # stamped before the sweep so a failing query waits for the next interval
        with self._state_lock:
            self._last_integrity_at = now_ms
            self._last_integrity_ok = None
        try:
            report = self._integrity_checker.check(now_ms=now_ms)
        except Exception:  # noqa: BLE001
            log.exception("outcome integrity sweep failed")
            return None
        with self._state_lock:
            self._last_integrity_ok = report.ok
        return report

from __future__ import annotations

import json
from dataclasses import replace
from typing import Sequence

from tradelab.contexts.outcomes.adapters.outbound.persistence.in_memory.signal_repository import (
    InMemorySignalRepository,
)
from tradelab.contexts.outcomes.application.ports.repositories import OutcomeRepository
from tradelab.contexts.outcomes.domain.entities import (
    REASON_STALE_RESOLVE,
    OutcomeFilter,
    OutcomeIntegrityReport,
    OutcomeKey,
    OutcomeSkip,
    Signal,
    SignalOutcome,
)


class InMemoryOutcomeRepository(OutcomeRepository):
    """
    InMemoryOutcomeRepository — deterministic in-memory OutcomeRepository adapter.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/outcome_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
      - tests/unit/contexts/outcomes/application
    """

    def __init__(self, *, signal_repository: InMemorySignalRepository) -> None:
        """
        Initialize empty outcome storage joined with in-memory signal storage.

        Args:
            signal_repository: Signal storage used for candidate selection and filters.
        Returns:
            None.
        Assumptions:
            Adapter lifetime is process-local and non-persistent.
        Raises:
            ValueError: If signal repository is missing.
        Side Effects:
            Creates mutable in-memory dictionary state.
        """
        if signal_repository is None:  # type: ignore[truthy-bool]
            raise ValueError("InMemoryOutcomeRepository requires signal_repository")
        self._signal_repository = signal_repository
        self._outcomes: dict[OutcomeKey, SignalOutcome] = {}
        self._skips: dict[OutcomeKey, OutcomeSkip] = {}
        self._meta: dict[str, str] = {}

    def list_resolution_candidates(
        self,
        *,
        horizon_min: int,
        ready_entry_before_ms: int,
        categories: Sequence[str],
        retry_reasons: Sequence[str],
        retry_before_ms: int,
        limit: int,
    ) -> tuple[Signal, ...]:
        if limit <= 0:
            return ()
        candidates: list[Signal] = []
        for signal in self._signal_repository.list_all():
            assert signal.signal_id is not None
            key = OutcomeKey(signal_id=signal.signal_id, horizon_min=horizon_min)
            if key in self._skips:
                continue
            if signal.category not in categories:
                continue
            if signal.effective_entry_time() > ready_entry_before_ms:
                continue
            outcome = self._outcomes.get(key)
            if _needs_resolution(
                signal=signal,
                outcome=outcome,
                retry_reasons=retry_reasons,
                retry_before_ms=retry_before_ms,
            ):
                candidates.append(signal)
        candidates.sort(key=lambda item: (item.time, item.signal_id or 0), reverse=True)
        return tuple(candidates[:limit])

    def find_outcome(self, *, signal_id: int, horizon_min: int) -> SignalOutcome | None:
        return self._outcomes.get(OutcomeKey(signal_id=signal_id, horizon_min=horizon_min))

    def upsert_outcome(self, *, outcome: SignalOutcome) -> None:
        existing = self._outcomes.get(outcome.key)
        if existing is not None:
            if outcome.computed_at == 0:
                outcome = replace(outcome, computed_at=existing.computed_at)
            if outcome.prev_snapshot is None:
                outcome = replace(outcome, prev_snapshot=existing.prev_snapshot)
        self._outcomes[outcome.key] = outcome

    def find_meta(self, *, key: str) -> str | None:
        return self._meta.get(key)

    def reset_for_resolve_version(
        self,
        *,
        resolve_version: str,
        marker_key: str,
        marked_at: int,
        complete_only: bool = False,
    ) -> int:
        reset_rows = 0
        for key, outcome in list(self._outcomes.items()):
            if outcome.resolve_version == resolve_version:
                continue
            if complete_only and not outcome.is_complete():
                continue
            self._outcomes[key] = _reset_for_stale_version(outcome=outcome)
            reset_rows += 1
        self._meta.setdefault(marker_key, str(marked_at))
        return reset_rows

    def delete_outcomes(
        self,
        *,
        keys: Sequence[OutcomeKey],
        reason: str,
        created_at: int,
    ) -> int:
        deleted = 0
        for key in keys:
            self._skips.setdefault(
                key,
                OutcomeSkip(
                    signal_id=key.signal_id,
                    horizon_min=key.horizon_min,
                    reason=reason,
                    created_at=created_at,
                ),
            )
            if self._outcomes.pop(key, None) is not None:
                deleted += 1
        return deleted

    def delete_outcomes_by_filter(
        self,
        *,
        outcome_filter: OutcomeFilter,
        reason: str,
        created_at: int,
    ) -> int:
        return self.delete_outcomes(
            keys=self._matched_keys(outcome_filter=outcome_filter),
            reason=reason,
            created_at=created_at,
        )

    def rebuild_outcomes_by_filter(self, *, outcome_filter: OutcomeFilter) -> int:
        rebuilt = 0
        for key in self._matched_keys(outcome_filter=outcome_filter):
            outcome = self._outcomes[key]
            if outcome.window_status != "COMPLETE":
                continue
            self._outcomes[key] = replace(
                outcome,
                window_status="PARTIAL",
                outcome_state="PENDING",
                trade_state="PENDING",
                result="PENDING",
                exit_reason=None,
                outcome_driver=None,
                ambiguous=False,
                expired_after_15m=False,
                expired_reason=None,
                computed_at=0,
                resolved_at=0,
                resolve_version=None,
            )
            rebuilt += 1
        return rebuilt

    def list_skips(self, *, signal_id: int) -> tuple[OutcomeSkip, ...]:
        return tuple(
            sorted(
                (skip for skip in self._skips.values() if skip.signal_id == signal_id),
                key=lambda skip: skip.horizon_min,
            )
        )

    def count_integrity_violations(
        self,
        *,
        resolve_version: str,
        resolved_since_ms: int,
    ) -> OutcomeIntegrityReport:
        return OutcomeIntegrityReport.from_outcomes(
            outcomes=(
                outcome
                for outcome in self._outcomes.values()
                if outcome.resolved_at == 0 or outcome.resolved_at >= resolved_since_ms
            ),
            resolve_version=resolve_version,
        )

    def list_outcomes(self) -> tuple[SignalOutcome, ...]:
        """Return stored rows ordered by `(signal_id, horizon_min)`."""
        return tuple(
            self._outcomes[key]
            for key in sorted(self._outcomes, key=lambda item: (item.signal_id, item.horizon_min))
        )

    def _matched_keys(self, *, outcome_filter: OutcomeFilter) -> tuple[OutcomeKey, ...]:
        matched: list[OutcomeKey] = []
        for key in sorted(self._outcomes, key=lambda item: (item.signal_id, item.horizon_min)):
            outcome = self._outcomes[key]
            signal = self._signal_repository.find_by_id(signal_id=key.signal_id)
            if signal is None:
                continue
            if not outcome_filter.start_time <= signal.time <= outcome_filter.end_time:
                continue
            if outcome_filter.category is not None and signal.category != outcome_filter.category:
                continue
            if outcome_filter.symbol is not None and signal.symbol != outcome_filter.symbol:
                continue
            if (
                outcome_filter.horizon_min is not None
                and outcome.horizon_min != outcome_filter.horizon_min
            ):
                continue
            if (
                outcome_filter.window_status is not None
                and outcome.window_status != outcome_filter.window_status
            ):
                continue
            if outcome_filter.result is not None and outcome.result != outcome_filter.result:
                continue
            matched.append(key)
        return tuple(matched)


def _needs_resolution(
    *,
    signal: Signal,
    outcome: SignalOutcome | None,
    retry_reasons: Sequence[str],
    retry_before_ms: int,
) -> bool:
    if outcome is None or outcome.window_status == "PARTIAL":
        return True
    if outcome.window_status == "COMPLETE":
        return outcome.computed_at < signal.updated_at
    return (
        outcome.invalid_reason in retry_reasons
        and (outcome.attempted_at == 0 or outcome.attempted_at < retry_before_ms)
    )


def _reset_for_stale_version(*, outcome: SignalOutcome) -> SignalOutcome:
    snapshot = {
        "outcome_state": outcome.outcome_state,
        "window_status": outcome.window_status,
        "result": outcome.result,
        "exit_reason": outcome.exit_reason,
        "trade_state": outcome.trade_state,
        "exit_price": outcome.exit_price,
        "exit_time": outcome.exit_time,
        "mfe_pct": outcome.mfe_pct,
        "mae_pct": outcome.mae_pct,
        "bars_to_exit": outcome.bars_to_exit,
        "resolved_at": outcome.resolved_at,
        "resolve_version": outcome.resolve_version,
    }
    return replace(
        outcome,
        prev_snapshot=json.dumps(snapshot, sort_keys=True),
        window_status="PARTIAL",
        outcome_state="PENDING",
        trade_state="PENDING",
        result="PENDING",
        invalid_reason=REASON_STALE_RESOLVE,
        invalid_levels=False,
        exit_reason=None,
        outcome_driver=None,
        exit_price=outcome.entry_price,
        exit_time=outcome.start_time,
        hit_sl=False,
        hit_tp1=False,
        hit_tp2=False,
        tp1_hit_time=0,
        sl_hit_time=0,
        tp2_hit_time=0,
        time_to_first_hit_ms=0,
        bars_to_exit=0,
        ambiguous=False,
        expired_after_15m=False,
        expired_reason=None,
        attempted_at=0,
        computed_at=0,
        resolved_at=0,
        resolve_version=None,
    )

from __future__ import annotations

from typing import Protocol, Sequence

from tradelab.contexts.outcomes.domain.entities import (
    OutcomeFilter,
    OutcomeIntegrityReport,
    OutcomeKey,
    OutcomeSkip,
    Signal,
    SignalOutcome,
)


class OutcomeRepository(Protocol):
    """
    OutcomeRepository — storage port for outcome rows, skips and one-time meta markers.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        outcome_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/in_memory/
        outcome_repository.py
      - src/tradelab/contexts/outcomes/application/services/batch_scheduler.py
    """

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
        """
        Select signals whose outcome for one horizon is missing, partial, stale or retryable.

        Args:
            horizon_min: Horizon in minutes.
            ready_entry_before_ms: Upper bound for signal entry time (inclusive).
            categories: Tracked signal categories.
            retry_reasons: Invalid reasons eligible for retry.
            retry_before_ms: Retry cooldown boundary for `attempted_at`.
            limit: Maximum number of candidates.
        Returns:
            tuple[Signal, ...]: Candidates ordered by detection time descending.
        Assumptions:
            Pairs with a skip marker are never returned.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            None.
        """
        ...

    def find_outcome(self, *, signal_id: int, horizon_min: int) -> SignalOutcome | None:
        """
        Find one outcome row by unique key.

        Args:
            signal_id: Signal identifier.
            horizon_min: Horizon in minutes.
        Returns:
            SignalOutcome | None: Stored outcome or `None`.
        Assumptions:
            None.
        Raises:
            OutcomeStorageError: If storage operation fails or row is malformed.
        Side Effects:
            None.
        """
        ...

    def upsert_outcome(self, *, outcome: SignalOutcome) -> None:
        """
        Insert or fully overwrite outcome row keyed by `(signal_id, horizon_min)`.

        Args:
            outcome: Outcome snapshot.
        Returns:
            None.
        Assumptions:
            Incoming `computed_at == 0` keeps previously stored `computed_at`.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Writes one outcome row.
        """
        ...

    def find_meta(self, *, key: str) -> str | None:
        """
        Read one meta marker value.

        Args:
            key: Marker key.
        Returns:
            str | None: Marker value or `None` when absent.
        Assumptions:
            None.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            None.
        """
        ...

    def reset_for_resolve_version(
        self,
        *,
        resolve_version: str,
        marker_key: str,
        marked_at: int,
        complete_only: bool = False,
    ) -> int:
        """
        Force-reset every row not tagged with `resolve_version` and write marker atomically.

        Args:
            resolve_version: Current resolve version.
            marker_key: Meta marker key recorded together with the reset.
            marked_at: Marker value timestamp (epoch ms).
            complete_only: Reset only `COMPLETE_*` rows of another version (marker present).
        Returns:
            int: Number of reset rows.
        Assumptions:
            Previous values are snapshotted into `prev_snapshot`.
            Existing marker value is never overwritten.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Updates outcome rows and inserts one meta row.
        """
        ...

    def delete_outcomes(
        self,
        *,
        keys: Sequence[OutcomeKey],
        reason: str,
        created_at: int,
    ) -> int:
        """
        Record skip markers for keys and delete corresponding outcome rows atomically.

        Args:
            keys: Outcome keys to delete.
            reason: Skip reason.
            created_at: Skip timestamp (epoch ms).
        Returns:
            int: Number of deleted outcome rows.
        Assumptions:
            Skip insertion is idempotent (insert-or-ignore).
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Inserts skip rows and deletes outcome rows.
        """
        ...

    def delete_outcomes_by_filter(
        self,
        *,
        outcome_filter: OutcomeFilter,
        reason: str,
        created_at: int,
    ) -> int:
        """
        Record skips and delete every outcome row matched by filter.

        Args:
            outcome_filter: Row selection.
            reason: Skip reason.
            created_at: Skip timestamp (epoch ms).
        Returns:
            int: Number of deleted outcome rows.
        Assumptions:
            Filter joins outcome rows with their signals.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Inserts skip rows and deletes outcome rows.
        """
        ...

    def rebuild_outcomes_by_filter(self, *, outcome_filter: OutcomeFilter) -> int:
        """
        Reset matched `COMPLETE` rows back to `PARTIAL`/`PENDING` for recomputation.

        Args:
            outcome_filter: Row selection (only complete rows are touched).
        Returns:
            int: Number of reset rows.
        Assumptions:
            Resolution stamps and version are cleared so lifecycle invariants hold.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Updates outcome rows.
        """
        ...

    def list_skips(self, *, signal_id: int) -> tuple[OutcomeSkip, ...]:
        """
        List skip markers of one signal ordered by horizon.

        Args:
            signal_id: Signal identifier.
        Returns:
            tuple[OutcomeSkip, ...]: Skip markers.
        Assumptions:
            None.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            None.
        """
        ...

    def count_integrity_violations(
        self,
        *,
        resolve_version: str,
        resolved_since_ms: int,
    ) -> OutcomeIntegrityReport:
        """
        Count lifecycle invariant violations over recently resolved rows.

        Args:
            resolve_version: Current resolve version.
            resolved_since_ms: Lower bound for `resolved_at` of audited complete rows.
        Returns:
            OutcomeIntegrityReport: Violation counters.
        Assumptions:
            Rows with `resolved_at = 0` are audited regardless of lookback.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            None.
        """
        ...

from __future__ import annotations

from typing import Protocol, Sequence

from tradelab.contexts.outcomes.domain.entities import ExtendedOutcome, Signal


class ExtendedOutcomeRepository(Protocol):
    """
    ExtendedOutcomeRepository — storage port for one 24-hour extended outcome row per signal.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        extended_outcome_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/in_memory/
        extended_outcome_repository.py
      - src/tradelab/contexts/outcomes/application/services/extended_tracker.py
    """

    def list_enrollment_candidates(
        self,
        *,
        since_ms: int,
        categories: Sequence[str],
        limit: int,
    ) -> tuple[Signal, ...]:
        """
        Select tracked signals detected since `since_ms` that have no extended row yet.

        Args:
            since_ms: Lower bound for signal detection time (inclusive).
            categories: Tracked signal categories.
            limit: Maximum number of signals.
        Returns:
            tuple[Signal, ...]: Signals with a full price plan, newest first.
        Assumptions:
            Signals missing stop or targets are never returned.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            None.
        """
        ...

    def enroll(self, *, outcome: ExtendedOutcome) -> bool:
        """
        Insert pending row unless one already exists for the signal.

        Args:
            outcome: Pending extended outcome.
        Returns:
            bool: True when a row was inserted.
        Assumptions:
            Insert-or-ignore keyed by `signal_id`.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Writes at most one row.
        """
        ...

    def list_open(self, *, limit: int) -> tuple[ExtendedOutcome, ...]:
        """
        Select rows not completed yet, least recently evaluated first.

        Args:
            limit: Maximum number of rows.
        Returns:
            tuple[ExtendedOutcome, ...]: Open rows.
        Assumptions:
            Completed rows are never re-evaluated.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            None.
        """
        ...

    def save(self, *, outcome: ExtendedOutcome) -> None:
        """
        Overwrite evaluation fields of an existing row.

        Args:
            outcome: Evaluated snapshot.
        Returns:
            None.
        Assumptions:
            Identity and price plan columns are written once by `enroll`.
        Raises:
            OutcomeStorageError: If storage operation fails.
        Side Effects:
            Updates one row.
        """
        ...

    def find(self, *, signal_id: int) -> ExtendedOutcome | None:
        """
        Find one row by signal id.

        Args:
            signal_id: Signal identifier.
        Returns:
            ExtendedOutcome | None: Stored row or `None`.
        Assumptions:
            None.
        Raises:
            OutcomeStorageError: If storage operation fails or row is malformed.
        Side Effects:
            None.
        """
        ...

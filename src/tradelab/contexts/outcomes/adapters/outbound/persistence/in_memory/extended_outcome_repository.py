from __future__ import annotations

from typing import Sequence

from tradelab.contexts.outcomes.adapters.outbound.persistence.in_memory.signal_repository import (
    InMemorySignalRepository,
)
from tradelab.contexts.outcomes.application.ports.repositories import ExtendedOutcomeRepository
from tradelab.contexts.outcomes.domain.entities import ExtendedOutcome, Signal


class InMemoryExtendedOutcomeRepository(ExtendedOutcomeRepository):
    """
    InMemoryExtendedOutcomeRepository — deterministic in-memory ExtendedOutcomeRepository.

    Docs:
      - docs/architecture/outcomes/outcome-resolution-engine-v1.md
    Related:
      - src/tradelab/contexts/outcomes/application/ports/repositories/
        extended_outcome_repository.py
      - src/tradelab/contexts/outcomes/adapters/outbound/persistence/postgres/
        extended_outcome_repository.py
      - tests/unit/contexts/outcomes/application/test_extended_tracker.py
    """

    def __init__(self, *, signal_repository: InMemorySignalRepository) -> None:
        if signal_repository is None:  # type: ignore[truthy-bool]
            raise ValueError("InMemoryExtendedOutcomeRepository requires signal_repository")
        self._signal_repository = signal_repository
        self._rows: dict[int, ExtendedOutcome] = {}

    def list_enrollment_candidates(
        self,
        *,
        since_ms: int,
        categories: Sequence[str],
        limit: int,
    ) -> tuple[Signal, ...]:
        if limit <= 0:
            return ()
        candidates = [
            signal
            for signal in self._signal_repository.list_all()
            if signal.signal_id not in self._rows
            and signal.category in categories
            and signal.time >= since_ms
            and signal.has_long_plan()
        ]
        candidates.sort(key=lambda signal: (signal.time, signal.signal_id or 0), reverse=True)
        return tuple(candidates[:limit])

    def enroll(self, *, outcome: ExtendedOutcome) -> bool:
        if outcome.signal_id in self._rows:
            return False
        self._rows[outcome.signal_id] = outcome
        return True

    def list_open(self, *, limit: int) -> tuple[ExtendedOutcome, ...]:
        if limit <= 0:
            return ()
        rows = sorted(
            (row for row in self._rows.values() if not row.is_complete()),
            key=lambda row: (row.last_evaluated_at, row.signal_id),
        )
        return tuple(rows[:limit])

    def save(self, *, outcome: ExtendedOutcome) -> None:
        """
        Overwrite evaluation fields of an existing row.

        Args:
            outcome: Evaluated snapshot.
        Returns:
            None.
        Assumptions:
            Unknown signal ids and completed rows are left untouched.
        Raises:
            None.
        Side Effects:
            Mutates in-memory dictionary.
        """
        stored = self._rows.get(outcome.signal_id)
        if stored is not None and not stored.is_complete():
            self._rows[outcome.signal_id] = outcome

    def find(self, *, signal_id: int) -> ExtendedOutcome | None:
        return self._rows.get(signal_id)

    def list_all(self) -> tuple[ExtendedOutcome, ...]:
        """Return stored rows ordered by signal id."""
        return tuple(self._rows[signal_id] for signal_id in sorted(self._rows))
